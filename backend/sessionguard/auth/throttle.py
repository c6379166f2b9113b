"""Per-username failed-login counter with a sliding lockout window."""

from __future__ import annotations

import logging

from sessionguard.core.store import KeyValueStore

logger = logging.getLogger(__name__)

LOGIN_ATTEMPT_PREFIX = "login_attempt:"
DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_LOCK_SECONDS = 15 * 60


class LoginThrottle:
    """Block a username after repeated failures until its window lapses.

    Every recorded failure restarts the window, so a steady stream of
    attempts keeps the username locked.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        lock_seconds: int = DEFAULT_LOCK_SECONDS,
    ) -> None:
        self._store = store
        self.max_attempts = max_attempts
        self.lock_seconds = lock_seconds

    @staticmethod
    def _key(username: str) -> str:
        return f"{LOGIN_ATTEMPT_PREFIX}{username}"

    def attempts(self, username: str) -> int:
        raw = self._store.get(self._key(username))
        return int(raw) if raw is not None else 0

    def is_blocked(self, username: str) -> bool:
        return self.attempts(username) >= self.max_attempts

    def retry_after(self, username: str) -> int:
        """Seconds until the counter for ``username`` lapses, or 0 if none is stored."""
        remaining = self._store.ttl(self._key(username))
        return remaining if remaining is not None and remaining > 0 else 0

    def record_failure(self, username: str) -> int:
        count = self._store.incr(self._key(username), ttl_seconds=self.lock_seconds)
        if count >= self.max_attempts:
            logger.warning(
                "username locked after %d failed attempts for %d seconds: %s",
                count,
                self.lock_seconds,
                username,
            )
        return count

    def clear(self, username: str) -> None:
        self._store.delete(self._key(username))
