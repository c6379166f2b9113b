"""SQLite access for principal records."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager

DEFAULT_BUSY_TIMEOUT_SECONDS = 5.0


@contextmanager
def sqlite_transaction(path: str, *, timeout_seconds: float = DEFAULT_BUSY_TIMEOUT_SECONDS) -> Iterator[sqlite3.Connection]:
    """Yield a connection, commit on success and roll back on error.

    The connection is always closed on exit; callers never hold one across calls.
    """
    conn = sqlite3.connect(path, timeout=timeout_seconds)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
