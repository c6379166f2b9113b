"""Auth request models and value types shared by the auth components."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel

STATUS_DISABLED = 0
STATUS_ENABLED = 1


class LoginRequest(BaseModel):
    """POST /api/auth/login request body."""

    username: str
    password: str


@dataclass(frozen=True, slots=True)
class Principal:
    """Identity record read from the principal store; never mutated here."""

    id: int
    username: str
    password_hash: str
    status: int
    deleted: bool
    created_at: str

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ENABLED and not self.deleted

    def public_view(self) -> dict[str, object]:
        return {"id": self.id, "username": self.username, "created_at": self.created_at}
