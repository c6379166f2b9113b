"""Refresh-token cookie and bearer-header handling."""

from __future__ import annotations

import logging

from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

REFRESH_TOKEN_COOKIE_NAME = "refresh_token"


def bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an ``Authorization: Bearer <token>`` header value."""
    if authorization is None:
        return None
    scheme, _, token = authorization.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        return None
    return token


class SessionTransport:
    """Carries the refresh token in an HttpOnly, SameSite=Strict cookie."""

    def __init__(self, *, max_age_seconds: int, secure: bool = False, domain: str | None = None) -> None:
        self.max_age_seconds = max_age_seconds
        self.secure = secure
        self.domain = domain or None

    def read_refresh_token(self, request: Request) -> str | None:
        value = request.cookies.get(REFRESH_TOKEN_COOKIE_NAME)
        if not value or not value.strip():
            return None
        return value.strip()

    def set_refresh_token(self, response: Response, token: str) -> None:
        self._write(response, token, self.max_age_seconds)
        logger.debug("set refresh cookie, max_age=%d", self.max_age_seconds)

    def clear_refresh_token(self, response: Response) -> None:
        self._write(response, "", 0)
        logger.debug("cleared refresh cookie")

    def _write(self, response: Response, value: str, max_age: int) -> None:
        # One refresh cookie per response: a later write replaces an earlier one.
        prefix = f"{REFRESH_TOKEN_COOKIE_NAME}=".encode("latin-1")
        response.raw_headers[:] = [
            (name, header_value)
            for name, header_value in response.raw_headers
            if not (name == b"set-cookie" and header_value.startswith(prefix))
        ]
        response.set_cookie(
            key=REFRESH_TOKEN_COOKIE_NAME,
            value=value,
            max_age=max_age,
            path="/",
            domain=self.domain,
            secure=self.secure,
            httponly=True,
            samesite="strict",
        )
