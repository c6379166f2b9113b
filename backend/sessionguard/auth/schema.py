"""Schema bootstrap for the principal table."""

from __future__ import annotations

from sessionguard.core.db import sqlite_transaction


CREATE_PRINCIPAL_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY,
    username TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    status INTEGER NOT NULL DEFAULT 1,
    deleted INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL
);
"""


def init_principal_schema(sqlite_path: str) -> None:
    """Ensure the users table exists."""
    with sqlite_transaction(sqlite_path) as conn:
        conn.executescript(CREATE_PRINCIPAL_SCHEMA_SQL)
