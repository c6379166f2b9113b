"""Password hashing helpers for auth services."""

from __future__ import annotations

from passlib.context import CryptContext
from passlib.exc import UnknownHashError

# Stored hashes are bcrypt; anything else is treated as unusable.
_PASSWORD_CONTEXT = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(plain_password: str) -> str:
    """Hash plaintext password using bcrypt."""
    return _PASSWORD_CONTEXT.hash(plain_password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Constant-time check of a plaintext password against a stored hash.

    Unknown or malformed hashes never match.
    """
    if not password_hash:
        return False
    try:
        return _PASSWORD_CONTEXT.verify(plain_password, password_hash)
    except (UnknownHashError, ValueError):
        return False
