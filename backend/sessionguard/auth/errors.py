"""Auth failure taxonomy and its mapping onto the public error envelope."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import NoReturn

from fastapi import HTTPException
from starlette.responses import Response

from sessionguard.auth.http import api_result
from sessionguard.core.tokens import TokenError

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Base class for rejections raised by the auth orchestrator.

    ``cause`` is a server-side diagnostic tag and is never sent to clients.
    """

    cause = "auth_error"


class CredentialError(AuthError):
    """Unknown username or wrong password."""

    cause = "credential_mismatch"


class AccountStateError(AuthError):
    """Principal is missing, disabled or deleted."""

    cause = "account_state"


class LockoutError(AuthError):
    """Too many failed login attempts for this username."""

    cause = "lockout"


class SessionError(AuthError):
    """Refresh token absent from, or different to, the stored session."""

    cause = "session_mismatch"


class AnomalyError(AuthError):
    """Session revoked because the request origin changed."""

    cause = "anomaly_revocation"


class AuthUnavailableError(AuthError):
    """Shared store outage or an unexpected internal failure."""

    cause = "unavailable"


@dataclass(frozen=True)
class PublicError:
    status_code: int
    code: str
    message: str


SESSION_INVALID = PublicError(401, "AUTH_SESSION_INVALID", "session is invalid or expired, please log in again")
UNAUTHENTICATED = PublicError(401, "AUTH_UNAUTHENTICATED", "authentication required")

_PUBLIC_ERRORS: dict[type[Exception], PublicError] = {
    CredentialError: PublicError(401, "AUTH_INVALID_CREDENTIALS", "invalid username or password"),
    LockoutError: PublicError(429, "AUTH_LOCKED", "too many failed login attempts, try again later"),
    AccountStateError: PublicError(403, "AUTH_ACCOUNT_UNAVAILABLE", "account is unavailable"),
    TokenError: SESSION_INVALID,
    SessionError: SESSION_INVALID,
    AnomalyError: PublicError(401, "AUTH_ANOMALY_REVOKED", "unusual access detected, please log in again"),
    AuthUnavailableError: PublicError(503, "AUTH_UNAVAILABLE", "authentication is temporarily unavailable"),
}


def cause_of(exc: Exception) -> str:
    if isinstance(exc, TokenError):
        return "token_error"
    return getattr(exc, "cause", "unknown")


def public_error_for(exc: Exception) -> PublicError:
    """Resolve the cause-agnostic public error for an auth failure."""
    for error_type in type(exc).__mro__:
        public = _PUBLIC_ERRORS.get(error_type)
        if public is not None:
            return public
    return _PUBLIC_ERRORS[AuthUnavailableError]


def raise_auth_error(exc: AuthError | TokenError, response: Response | None = None) -> NoReturn:
    """Raise the enveloped HTTP error for ``exc``, keeping any Set-Cookie already written."""
    public = public_error_for(exc)
    logger.info("auth rejected: cause=%s code=%s reason=%s", cause_of(exc), public.code, exc)

    headers = None
    if response is not None and "set-cookie" in response.headers:
        headers = {"set-cookie": response.headers["set-cookie"]}

    raise HTTPException(
        status_code=public.status_code,
        detail=api_result(code=public.code, message=public.message),
        headers=headers,
    ) from exc


def raise_unauthenticated() -> NoReturn:
    """Raise the bearer-authentication failure response."""
    raise HTTPException(
        status_code=UNAUTHENTICATED.status_code,
        detail=api_result(code=UNAUTHENTICATED.code, message=UNAUTHENTICATED.message),
        headers={"WWW-Authenticate": "Bearer"},
    )


__all__ = [
    "AccountStateError",
    "AnomalyError",
    "AuthError",
    "AuthUnavailableError",
    "CredentialError",
    "LockoutError",
    "SessionError",
    "TokenError",
    "public_error_for",
    "raise_auth_error",
    "raise_unauthenticated",
]
