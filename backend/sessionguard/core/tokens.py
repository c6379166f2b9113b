"""HS256 signed token codec for access and refresh credentials."""

from __future__ import annotations

import base64
import binascii
import logging
import secrets
from datetime import datetime
from datetime import timedelta
from datetime import timezone
from typing import Any

import jwt

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
MIN_KEY_BYTES = 32

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

_RESERVED_CLAIMS = frozenset({"sub", "iat", "exp", "jti"})


class TokenError(ValueError):
    """Raised when a token is malformed, badly signed, expired or of the wrong type."""


def derive_signing_key(secret: str) -> bytes:
    """Prefer a Base64-encoded secret; fall back to its raw UTF-8 bytes."""
    try:
        key = base64.b64decode(secret, validate=True)
    except (binascii.Error, ValueError):
        logger.warning("JWT secret is not valid Base64; using its raw bytes as the signing key")
        key = secret.encode("utf-8")
    if not key:
        key = secret.encode("utf-8")

    if len(key) < MIN_KEY_BYTES:
        logger.warning(
            "JWT signing key is %d bytes; HS256 should use at least %d bytes",
            len(key),
            MIN_KEY_BYTES,
        )
    return key


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TokenCodec:
    """Stateless creation and verification of signed tokens."""

    def __init__(self, secret: str) -> None:
        self._key = derive_signing_key(secret)

    def create(
        self,
        subject: str,
        ttl_seconds: int,
        claims: dict[str, Any] | None = None,
        *,
        now: datetime | None = None,
    ) -> str:
        """Sign claims plus sub/iat/exp/jti into a compact token."""
        if not subject:
            raise ValueError("subject must be non-empty")
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")

        issued_at = now or utc_now()
        payload: dict[str, Any] = {
            key: value for key, value in (claims or {}).items() if key not in _RESERVED_CLAIMS
        }
        payload.update(
            {
                "sub": subject,
                "iat": int(issued_at.timestamp()),
                "exp": int((issued_at + timedelta(seconds=ttl_seconds)).timestamp()),
                "jti": secrets.token_urlsafe(16),
            }
        )
        return jwt.encode(payload, self._key, algorithm=ALGORITHM)

    def parse(
        self,
        token: str,
        *,
        now: datetime | None = None,
        expected_type: str | None = None,
    ) -> dict[str, Any]:
        """Verify signature and expiry, returning the token claims."""
        try:
            payload = jwt.decode(
                token,
                self._key,
                algorithms=[ALGORITHM],
                options={"verify_exp": False, "verify_iat": False},
            )
        except jwt.InvalidTokenError as exc:
            raise TokenError("invalid token") from exc

        exp = payload.get("exp")
        if not isinstance(exp, int):
            raise TokenError("missing or invalid exp")

        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            raise TokenError("missing subject")

        now_ts = int((now or utc_now()).astimezone(timezone.utc).timestamp())
        if now_ts >= exp:
            raise TokenError("token expired")

        if expected_type is not None and payload.get("typ") != expected_type:
            raise TokenError("unexpected token type")

        return payload
