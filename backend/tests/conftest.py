"""Shared fixtures for session-and-trust tests."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from sessionguard.auth.models import Principal
from sessionguard.auth.repository import SqlitePrincipalRepository
from sessionguard.auth.schema import init_principal_schema
from sessionguard.auth.service import AuthService
from sessionguard.auth.service import build_auth_service
from sessionguard.core.config import Settings
from sessionguard.core.password import hash_password
from sessionguard.core.store import MemoryStore
from tests.auth_helpers import TEST_SECRET
from tests.auth_helpers import FakeClock

# Importing sessionguard.runtime loads settings eagerly; keep that import safe.
os.environ.setdefault("SG_JWT_SECRET", TEST_SECRET)
os.environ.setdefault("SG_STORE_BACKEND", "memory")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> MemoryStore:
    return MemoryStore(clock=clock)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        sg_jwt_secret=TEST_SECRET,
        sg_store_backend="memory",
        sg_sqlite_path=str(tmp_path / "principals.sqlite3"),
    )


@pytest.fixture
def principals(settings: Settings) -> SqlitePrincipalRepository:
    init_principal_schema(settings.sg_sqlite_path)
    return SqlitePrincipalRepository(settings.sg_sqlite_path)


@pytest.fixture
def alice(principals: SqlitePrincipalRepository) -> Principal:
    """Enabled principal alice/correct."""
    return principals.create_principal(username="alice", password_hash=hash_password("correct"))


@pytest.fixture
def auth_service(
    settings: Settings,
    store: MemoryStore,
    principals: SqlitePrincipalRepository,
) -> AuthService:
    return build_auth_service(settings, store=store, principals=principals)
