"""Shared expiring key-value store used for sessions, throttles and profiles."""

from __future__ import annotations

import fnmatch
import threading
import time
from collections.abc import Callable
from collections.abc import Iterator
from collections.abc import Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Protocol

import redis

from sessionguard.core.config import Settings


class StoreUnavailableError(RuntimeError):
    """Raised when the shared store times out or cannot be reached."""


class KeyValueStore(Protocol):
    """Single-key operations the auth components rely on.

    Each call touches exactly one key (``delete`` aside) and there is no
    multi-key transaction.
    """

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str, *, ttl_seconds: int) -> None: ...

    def delete(self, *keys: str) -> int: ...

    def incr(self, key: str, *, ttl_seconds: int) -> int: ...

    def hgetall(self, key: str) -> dict[str, str]: ...

    def hset(self, key: str, mapping: Mapping[str, str], *, ttl_seconds: int | None = None) -> None: ...

    def ttl(self, key: str) -> int | None: ...

    def scan(self, pattern: str) -> list[str]: ...

    def ping(self) -> None: ...


@contextmanager
def _translate_redis_errors() -> Iterator[None]:
    try:
        yield
    except redis.RedisError as exc:
        raise StoreUnavailableError(f"shared store unavailable: {exc}") from exc


class RedisStore:
    """Redis-backed store; every command carries the configured socket timeout."""

    def __init__(self, redis_url: str, *, timeout_seconds: float) -> None:
        self.redis_url = redis_url
        self.client = redis.Redis.from_url(
            redis_url,
            decode_responses=True,
            socket_timeout=timeout_seconds,
            socket_connect_timeout=timeout_seconds,
        )

    def get(self, key: str) -> str | None:
        with _translate_redis_errors():
            return self.client.get(key)

    def set(self, key: str, value: str, *, ttl_seconds: int) -> None:
        with _translate_redis_errors():
            self.client.set(key, value, ex=max(1, int(ttl_seconds)))

    def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        with _translate_redis_errors():
            return int(self.client.delete(*keys))

    def incr(self, key: str, *, ttl_seconds: int) -> int:
        with _translate_redis_errors():
            pipe = self.client.pipeline(transaction=True)
            pipe.incr(key)
            pipe.expire(key, max(1, int(ttl_seconds)))
            count, _ = pipe.execute()
        return int(count)

    def hgetall(self, key: str) -> dict[str, str]:
        with _translate_redis_errors():
            return dict(self.client.hgetall(key))

    def hset(self, key: str, mapping: Mapping[str, str], *, ttl_seconds: int | None = None) -> None:
        with _translate_redis_errors():
            pipe = self.client.pipeline(transaction=True)
            pipe.hset(key, mapping=dict(mapping))
            if ttl_seconds is not None:
                pipe.expire(key, max(1, int(ttl_seconds)))
            pipe.execute()

    def ttl(self, key: str) -> int | None:
        with _translate_redis_errors():
            remaining = int(self.client.ttl(key))
        # -2: no key, -1: key without expiry
        if remaining == -2:
            return None
        return remaining

    def scan(self, pattern: str) -> list[str]:
        with _translate_redis_errors():
            return sorted(self.client.scan_iter(match=pattern))

    def ping(self) -> None:
        with _translate_redis_errors():
            self.client.ping()

    def close(self) -> None:
        self.client.close()


@dataclass
class _Entry:
    value: str | dict[str, str]
    expires_at: float | None


class MemoryStore:
    """Thread-safe in-process store with TTL semantics matching RedisStore."""

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def _live(self, key: str) -> _Entry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and self._clock() >= entry.expires_at:
            del self._entries[key]
            return None
        return entry

    def _deadline(self, ttl_seconds: int) -> float:
        return self._clock() + max(1, int(ttl_seconds))

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                return None
            if not isinstance(entry.value, str):
                raise TypeError(f"key {key!r} holds a hash, not a string")
            return entry.value

    def set(self, key: str, value: str, *, ttl_seconds: int) -> None:
        with self._lock:
            self._entries[key] = _Entry(value=str(value), expires_at=self._deadline(ttl_seconds))

    def delete(self, *keys: str) -> int:
        removed = 0
        with self._lock:
            for key in keys:
                if self._live(key) is not None:
                    del self._entries[key]
                    removed += 1
        return removed

    def incr(self, key: str, *, ttl_seconds: int) -> int:
        with self._lock:
            entry = self._live(key)
            current = 0
            if entry is not None:
                if not isinstance(entry.value, str):
                    raise TypeError(f"key {key!r} holds a hash, not a counter")
                current = int(entry.value)
            current += 1
            self._entries[key] = _Entry(value=str(current), expires_at=self._deadline(ttl_seconds))
            return current

    def hgetall(self, key: str) -> dict[str, str]:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                return {}
            if not isinstance(entry.value, dict):
                raise TypeError(f"key {key!r} holds a string, not a hash")
            return dict(entry.value)

    def hset(self, key: str, mapping: Mapping[str, str], *, ttl_seconds: int | None = None) -> None:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                entry = _Entry(value={}, expires_at=None)
                self._entries[key] = entry
            if not isinstance(entry.value, dict):
                raise TypeError(f"key {key!r} holds a string, not a hash")
            entry.value.update({field: str(value) for field, value in mapping.items()})
            if ttl_seconds is not None:
                entry.expires_at = self._deadline(ttl_seconds)

    def ttl(self, key: str) -> int | None:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                return None
            if entry.expires_at is None:
                return -1
            return max(0, int(round(entry.expires_at - self._clock())))

    def scan(self, pattern: str) -> list[str]:
        with self._lock:
            keys = [key for key in list(self._entries) if self._live(key) is not None]
        return sorted(key for key in keys if fnmatch.fnmatchcase(key, pattern))

    def ping(self) -> None:
        return None


def create_store(settings: Settings) -> KeyValueStore:
    """Build the store backend selected by settings."""
    if settings.sg_store_backend == "memory":
        return MemoryStore()
    return RedisStore(settings.sg_redis_url, timeout_seconds=settings.sg_store_timeout_seconds)
