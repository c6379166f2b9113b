"""Dependency helpers shared by API routers."""

from __future__ import annotations

from fastapi import Header

import sessionguard.runtime as runtime
from sessionguard.auth.errors import AuthError
from sessionguard.auth.errors import raise_unauthenticated
from sessionguard.auth.models import Principal
from sessionguard.auth.transport import bearer_token
from sessionguard.core.tokens import TokenError


def require_current_principal(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> Principal:
    """Read and validate the Bearer access token from the Authorization header."""
    token = bearer_token(authorization)
    if token is None:
        raise_unauthenticated()
    try:
        return runtime.auth_service.authenticate(token)
    except (AuthError, TokenError):
        raise_unauthenticated()
