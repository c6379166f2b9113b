"""Principal lookup and the few writes the auth flows need."""

from __future__ import annotations

from datetime import datetime
from datetime import timezone
from typing import Protocol

from sessionguard.auth.models import Principal
from sessionguard.auth.models import STATUS_ENABLED
from sessionguard.core.db import sqlite_transaction

_PRINCIPAL_COLUMNS = "id, username, password_hash, status, deleted, created_at"


class PrincipalRepository(Protocol):
    """Read access to principals plus the password-hash migration write."""

    def get_by_username(self, username: str) -> Principal | None: ...

    def get_by_id(self, principal_id: int) -> Principal | None: ...

    def update_password_hash(self, principal_id: int, password_hash: str) -> None: ...


def _row_to_principal(row: tuple) -> Principal:
    principal_id, username, password_hash, status, deleted, created_at = row
    return Principal(
        id=int(principal_id),
        username=str(username),
        password_hash=str(password_hash),
        status=int(status),
        deleted=bool(deleted),
        created_at=str(created_at),
    )


def _utc_iso_now() -> str:
    return (
        datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")
    )


class SqlitePrincipalRepository:
    """SQLite-backed principal store; one short-lived connection per call."""

    def __init__(self, sqlite_path: str) -> None:
        self.sqlite_path = sqlite_path

    def _fetch_one(self, where: str, value: object) -> Principal | None:
        with sqlite_transaction(self.sqlite_path) as conn:
            row = conn.execute(
                f"SELECT {_PRINCIPAL_COLUMNS} FROM users WHERE {where} = ?",
                (value,),
            ).fetchone()
        return None if row is None else _row_to_principal(row)

    def _update(self, assignment: str, value: object, principal_id: int) -> None:
        with sqlite_transaction(self.sqlite_path) as conn:
            conn.execute(f"UPDATE users SET {assignment} = ? WHERE id = ?", (value, principal_id))

    def get_by_username(self, username: str) -> Principal | None:
        return self._fetch_one("username", username)

    def get_by_id(self, principal_id: int) -> Principal | None:
        return self._fetch_one("id", principal_id)

    def update_password_hash(self, principal_id: int, password_hash: str) -> None:
        self._update("password_hash", password_hash, principal_id)

    def create_principal(
        self,
        *,
        username: str,
        password_hash: str,
        status: int = STATUS_ENABLED,
        created_at: str | None = None,
    ) -> Principal:
        """Insert a principal; used by seeding scripts and tests."""
        with sqlite_transaction(self.sqlite_path) as conn:
            cursor = conn.execute(
                """
                INSERT INTO users (username, password_hash, status, deleted, created_at)
                VALUES (?, ?, ?, 0, ?)
                """,
                (username, password_hash, status, created_at or _utc_iso_now()),
            )
            principal_id = int(cursor.lastrowid)

        principal = self.get_by_id(principal_id)
        if principal is None:
            raise RuntimeError(f"principal_id={principal_id} vanished right after insert")
        return principal

    def set_status(self, principal_id: int, status: int) -> None:
        self._update("status", status, principal_id)

    def mark_deleted(self, principal_id: int) -> None:
        self._update("deleted", 1, principal_id)
