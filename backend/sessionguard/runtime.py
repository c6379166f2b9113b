"""Process-wide runtime state shared by the HTTP handlers."""

from __future__ import annotations

import logging

from sessionguard.auth.repository import SqlitePrincipalRepository
from sessionguard.auth.schema import init_principal_schema
from sessionguard.auth.service import AuthService
from sessionguard.auth.service import build_auth_service
from sessionguard.core.config import Settings
from sessionguard.core.config import load_settings
from sessionguard.core.log import configure_logging
from sessionguard.core.store import KeyValueStore
from sessionguard.core.store import StoreUnavailableError
from sessionguard.core.store import create_store

logger = logging.getLogger(__name__)

settings = load_settings()
store: KeyValueStore = create_store(settings)
principals = SqlitePrincipalRepository(settings.sg_sqlite_path)
auth_service: AuthService = build_auth_service(settings, store=store, principals=principals)


def startup() -> None:
    """Reload settings, ensure the principal table exists and rebuild the auth service."""
    global settings, store, principals, auth_service
    settings = load_settings()
    configure_logging(settings.sg_log_level)
    init_principal_schema(settings.sg_sqlite_path)
    store = create_store(settings)
    check_store_ready(store)
    principals = SqlitePrincipalRepository(settings.sg_sqlite_path)
    auth_service = build_auth_service(settings, store=store, principals=principals)


def check_store_ready(candidate: KeyValueStore) -> bool:
    """Ping the shared store once; an outage is logged, requests then fail closed."""
    try:
        candidate.ping()
    except StoreUnavailableError as exc:
        logger.error("shared store not reachable at startup: %s", exc)
        return False
    return True


__all__ = [
    "Settings",
    "auth_service",
    "check_store_ready",
    "principals",
    "settings",
    "startup",
    "store",
]
