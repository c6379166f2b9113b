"""Server-side registry holding the single live refresh token per principal."""

from __future__ import annotations

import hmac
import logging

from sessionguard.core.store import KeyValueStore
from sessionguard.core.tokens import REFRESH_TOKEN_TYPE
from sessionguard.core.tokens import TokenCodec

logger = logging.getLogger(__name__)

REFRESH_TOKEN_PREFIX = "refresh_token:"


def refresh_token_key(principal_id: int) -> str:
    return f"{REFRESH_TOKEN_PREFIX}{principal_id}"


class RefreshSessionStore:
    """Issue, validate and revoke refresh tokens keyed by principal id.

    Issuing overwrites whatever token the principal held before, which ends
    any other session for that principal. Two concurrent refreshes for the
    same principal may both validate before either overwrites; the store does
    not serialise them.
    """

    def __init__(self, store: KeyValueStore, codec: TokenCodec, *, refresh_ttl_seconds: int) -> None:
        self._store = store
        self._codec = codec
        self.refresh_ttl_seconds = refresh_ttl_seconds

    def issue(self, principal_id: int, subject: str) -> str:
        token = self._codec.create(
            subject,
            self.refresh_ttl_seconds,
            {"typ": REFRESH_TOKEN_TYPE, "uid": principal_id},
        )
        self._store.set(refresh_token_key(principal_id), token, ttl_seconds=self.refresh_ttl_seconds)
        logger.info("issued refresh token for principal_id=%s", principal_id)
        return token

    def current(self, principal_id: int) -> str | None:
        return self._store.get(refresh_token_key(principal_id))

    def validate(self, principal_id: int, token: str) -> bool:
        stored = self.current(principal_id)
        if stored is None:
            return False
        return hmac.compare_digest(stored.encode("utf-8"), token.encode("utf-8"))

    def revoke(self, principal_id: int) -> None:
        removed = self._store.delete(refresh_token_key(principal_id))
        logger.info("revoked refresh token for principal_id=%s (removed=%d)", principal_id, removed)
