"""Session-and-trust components: tokens, throttling, sessions, anomaly checks."""

from sessionguard.auth.http import handle_http_exception
from sessionguard.auth.models import LoginRequest
from sessionguard.auth.models import Principal
from sessionguard.auth.service import AuthService
from sessionguard.auth.service import build_auth_service

__all__ = [
    "AuthService",
    "LoginRequest",
    "Principal",
    "build_auth_service",
    "handle_http_exception",
]
