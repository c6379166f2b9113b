"""Canonical form of usernames used as throttle keys and lookup keys."""

from __future__ import annotations

import unicodedata

import regex

MAX_USERNAME_GRAPHEMES = 64
_GRAPHEME_PATTERN = regex.compile(r"\X")


class UsernameValidationError(ValueError):
    """Raised when a username is empty or longer than the grapheme limit."""


def canonical_username(raw_username: str) -> str:
    """Trim surrounding whitespace and normalize to NFC."""
    return unicodedata.normalize("NFC", raw_username.strip())


def grapheme_length(value: str) -> int:
    return len(_GRAPHEME_PATTERN.findall(value))


def require_valid_username(username: str) -> str:
    """Return ``username`` unchanged if it is 1-64 graphemes long."""
    length = grapheme_length(username)
    if length == 0 or length > MAX_USERNAME_GRAPHEMES:
        raise UsernameValidationError(
            f"username must be 1-{MAX_USERNAME_GRAPHEMES} user-visible characters"
        )
    return username
