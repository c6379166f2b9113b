"""Auth REST routes."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Request
from fastapi import Response

import sessionguard.runtime as runtime
from sessionguard.api.deps import require_current_principal
from sessionguard.auth.errors import AuthError
from sessionguard.auth.errors import raise_auth_error
from sessionguard.auth.http import api_result
from sessionguard.auth.models import LoginRequest
from sessionguard.auth.models import Principal
from sessionguard.core.tokens import TokenError

router = APIRouter()


@router.post("/api/auth/login")
def login(payload: LoginRequest, request: Request, response: Response) -> dict[str, object]:
    """Authenticate and issue an access token plus the refresh cookie."""
    try:
        data = runtime.auth_service.login(payload, request=request, response=response)
    except (AuthError, TokenError) as exc:
        raise_auth_error(exc, response)
    return api_result(data=data)


@router.post("/api/auth/refresh")
def refresh(request: Request, response: Response) -> dict[str, object]:
    """Rotate the refresh cookie and return a new access token."""
    try:
        data = runtime.auth_service.refresh(request=request, response=response)
    except (AuthError, TokenError) as exc:
        raise_auth_error(exc, response)
    return api_result(data=data)


@router.post("/api/auth/logout")
def logout(request: Request, response: Response) -> dict[str, object]:
    """End the caller's session; always succeeds."""
    runtime.auth_service.logout(request=request, response=response)
    return api_result()


@router.get("/api/auth/me")
def me(principal: Principal = Depends(require_current_principal)) -> dict[str, object]:
    """Public view of the bearer token's principal."""
    return api_result(data=principal.public_view())


@router.get("/api/auth/security")
def security(principal: Principal = Depends(require_current_principal)) -> dict[str, object]:
    """Security profile and anomaly audit trail for the bearer token's principal."""
    try:
        data = runtime.auth_service.security_overview(principal)
    except AuthError as exc:
        raise_auth_error(exc)
    return api_result(data=data)
