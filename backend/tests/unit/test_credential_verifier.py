"""Credential verifier tests, including the one-off seed-hash migration."""

from __future__ import annotations

import pytest

from sessionguard.auth import credentials
from sessionguard.auth.credentials import SEED_PLACEHOLDER_HASH
from sessionguard.auth.credentials import CredentialVerifier
from sessionguard.auth.models import Principal
from sessionguard.auth.repository import SqlitePrincipalRepository
from sessionguard.core.password import verify_password


def test_correct_password_matches(alice: Principal, principals: SqlitePrincipalRepository) -> None:
    verifier = CredentialVerifier(principals)

    assert verifier.verify(alice, "correct") is True
    assert verifier.verify(alice, "wrong") is False


def test_seed_placeholder_accepts_only_seed_password_and_migrates(
    principals: SqlitePrincipalRepository,
) -> None:
    """Input: placeholder hash + 123456 -> Output: True and a real bcrypt hash persisted."""
    seeded = principals.create_principal(username="seed", password_hash=SEED_PLACEHOLDER_HASH)
    verifier = CredentialVerifier(principals)

    assert verifier.verify(seeded, "wrong") is False
    assert principals.get_by_id(seeded.id).password_hash == SEED_PLACEHOLDER_HASH

    assert verifier.verify(seeded, "123456") is True
    migrated = principals.get_by_id(seeded.id)
    assert migrated.password_hash != SEED_PLACEHOLDER_HASH
    assert verify_password("123456", migrated.password_hash) is True
    assert verifier.verify(migrated, "123456") is True


def test_seed_placeholder_is_rejected_when_migration_disabled(
    principals: SqlitePrincipalRepository,
) -> None:
    seeded = principals.create_principal(username="seed", password_hash=SEED_PLACEHOLDER_HASH)
    verifier = CredentialVerifier(principals, seed_migration_enabled=False)

    assert verifier.verify(seeded, "123456") is False
    assert principals.get_by_id(seeded.id).password_hash == SEED_PLACEHOLDER_HASH


def test_placeholder_hash_never_matches_through_bcrypt() -> None:
    """Input: malformed placeholder hash -> Output: plain verify_password returns False."""
    assert verify_password("123456", SEED_PLACEHOLDER_HASH) is False


def test_missing_principal_still_pays_one_bcrypt_check(
    principals: SqlitePrincipalRepository,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Input: verify_absent("guess") -> Output: False after one comparison against a real bcrypt hash."""
    calls: list[tuple[str, str]] = []

    def recording_verify(candidate: str, password_hash: str) -> bool:
        calls.append((candidate, password_hash))
        return True

    monkeypatch.setattr(credentials, "verify_password", recording_verify)

    assert CredentialVerifier(principals).verify_absent("guess") is False
    [(candidate, password_hash)] = calls
    assert candidate == "guess"
    assert password_hash.startswith("$2")
    assert password_hash != SEED_PLACEHOLDER_HASH


def test_rejected_seed_password_also_pays_bcrypt_check(
    principals: SqlitePrincipalRepository,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    seeded = principals.create_principal(username="seed", password_hash=SEED_PLACEHOLDER_HASH)
    calls: list[str] = []
    monkeypatch.setattr(credentials, "verify_password", lambda candidate, _hash: calls.append(candidate) or False)

    assert CredentialVerifier(principals).verify(seeded, "wrong") is False
    assert calls == ["wrong"]
