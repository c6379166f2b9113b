"""Login, refresh and logout flows composed from the auth components."""

from __future__ import annotations

import logging

from starlette.requests import Request
from starlette.responses import Response

from sessionguard.auth.anomaly import AccessAnomalyMonitor
from sessionguard.auth.anomaly import RequestOrigin
from sessionguard.auth.credentials import CredentialVerifier
from sessionguard.auth.errors import AccountStateError
from sessionguard.auth.errors import AnomalyError
from sessionguard.auth.errors import AuthError
from sessionguard.auth.errors import AuthUnavailableError
from sessionguard.auth.errors import CredentialError
from sessionguard.auth.errors import LockoutError
from sessionguard.auth.errors import SessionError
from sessionguard.auth.models import LoginRequest
from sessionguard.auth.models import Principal
from sessionguard.auth.repository import PrincipalRepository
from sessionguard.auth.sessions import RefreshSessionStore
from sessionguard.auth.throttle import LoginThrottle
from sessionguard.auth.transport import SessionTransport
from sessionguard.core.config import Settings
from sessionguard.core.store import KeyValueStore
from sessionguard.core.store import StoreUnavailableError
from sessionguard.core.tokens import ACCESS_TOKEN_TYPE
from sessionguard.core.tokens import REFRESH_TOKEN_TYPE
from sessionguard.core.tokens import TokenCodec
from sessionguard.core.tokens import TokenError
from sessionguard.core.username import UsernameValidationError
from sessionguard.core.username import canonical_username
from sessionguard.core.username import require_valid_username

logger = logging.getLogger(__name__)


class AuthService:
    """Orchestrates the auth components for each inbound operation.

    Every operation is an independent unit of work. The verified principal is
    passed along explicitly; nothing is stashed in ambient per-request state.
    A shared-store failure always ends the operation as a failure.
    """

    def __init__(
        self,
        *,
        principals: PrincipalRepository,
        codec: TokenCodec,
        verifier: CredentialVerifier,
        throttle: LoginThrottle,
        sessions: RefreshSessionStore,
        monitor: AccessAnomalyMonitor,
        transport: SessionTransport,
        access_ttl_seconds: int,
    ) -> None:
        self.principals = principals
        self.codec = codec
        self.verifier = verifier
        self.throttle = throttle
        self.sessions = sessions
        self.monitor = monitor
        self.transport = transport
        self.access_ttl_seconds = access_ttl_seconds

    def login(self, payload: LoginRequest, *, request: Request, response: Response) -> dict[str, object]:
        """Authenticate credentials, then issue an access token and a refresh cookie."""
        username = canonical_username(payload.username)
        try:
            return self._login(username, payload.password, request=request, response=response)
        except (AuthError, TokenError):
            raise
        except StoreUnavailableError as exc:
            raise AuthUnavailableError("shared store unavailable during login") from exc
        except Exception as exc:
            logger.exception("unexpected login failure")
            raise AuthUnavailableError("unexpected login failure") from exc

    def _login(self, username: str, password: str, *, request: Request, response: Response) -> dict[str, object]:
        if self.throttle.is_blocked(username):
            retry_after = self.throttle.retry_after(username)
            raise LockoutError(f"login blocked for {username!r}, retry in {retry_after}s")

        principal = self._verify_credentials(username, password)
        if not principal.is_active:
            self.throttle.record_failure(username)
            raise AccountStateError(f"principal_id={principal.id} is disabled or deleted")

        self.throttle.clear(username)

        # Lenient on login: an origin change is logged but does not block.
        if self.monitor.check_anomaly(principal.id, RequestOrigin.from_request(request)):
            logger.warning("login from a new origin for principal_id=%s", principal.id)

        access_token, refresh_token = self._issue_pair(principal)
        self.transport.set_refresh_token(response, refresh_token)
        return {
            "access_token": access_token,
            "token_type": "bearer",
            "expires_in": self.access_ttl_seconds,
            "user": principal.public_view(),
        }

    def _verify_credentials(self, username: str, password: str) -> Principal:
        try:
            require_valid_username(username)
        except UsernameValidationError as exc:
            self.verifier.verify_absent(password)
            self.throttle.record_failure(username)
            raise CredentialError("username fails length rule") from exc

        principal = self.principals.get_by_username(username)
        if principal is None:
            self.verifier.verify_absent(password)
            self.throttle.record_failure(username)
            raise CredentialError("unknown username")

        if not self.verifier.verify(principal, password):
            self.throttle.record_failure(username)
            raise CredentialError(f"password mismatch for principal_id={principal.id}")
        return principal

    def refresh(self, *, request: Request, response: Response) -> dict[str, object]:
        """Rotate the refresh cookie and return a new access token.

        Any failure clears the refresh cookie before propagating.
        """
        try:
            return self._refresh(request=request, response=response)
        except (AuthError, TokenError):
            self.transport.clear_refresh_token(response)
            raise
        except StoreUnavailableError as exc:
            self.transport.clear_refresh_token(response)
            raise AuthUnavailableError("shared store unavailable during refresh") from exc
        except Exception as exc:
            self.transport.clear_refresh_token(response)
            logger.exception("unexpected refresh failure")
            raise AuthUnavailableError("unexpected refresh failure") from exc

    def _refresh(self, *, request: Request, response: Response) -> dict[str, object]:
        token = self.transport.read_refresh_token(request)
        if token is None:
            raise SessionError("missing refresh token cookie")

        claims = self.codec.parse(token, expected_type=REFRESH_TOKEN_TYPE)
        principal = self.principals.get_by_username(claims["sub"])
        if principal is None:
            raise AccountStateError("refresh token subject has no principal")
        if not principal.is_active:
            self.sessions.revoke(principal.id)
            raise AccountStateError(f"principal_id={principal.id} is disabled or deleted")

        # Strict on refresh: an origin change ends every session for the principal.
        if self.monitor.check_anomaly(principal.id, RequestOrigin.from_request(request)):
            self.monitor.invalidate_all(principal.id)
            raise AnomalyError(f"origin changed for principal_id={principal.id}")

        if not self.sessions.validate(principal.id, token):
            raise SessionError(f"refresh token is not the live session for principal_id={principal.id}")

        access_token, refresh_token = self._issue_pair(principal)
        self.transport.set_refresh_token(response, refresh_token)
        return {
            "access_token": access_token,
            "token_type": "bearer",
            "expires_in": self.access_ttl_seconds,
        }

    def logout(self, *, request: Request, response: Response) -> None:
        """Best-effort session teardown; always clears the cookie and never fails."""
        try:
            token = self.transport.read_refresh_token(request)
            if token is not None:
                claims = self.codec.parse(token, expected_type=REFRESH_TOKEN_TYPE)
                principal = self.principals.get_by_username(claims["sub"])
                if principal is not None:
                    self.monitor.invalidate_all(principal.id)
        except TokenError as exc:
            logger.info("logout with unusable refresh token: %s", exc)
        except Exception:
            logger.exception("logout cleanup failed; clearing cookie anyway")
        finally:
            self.transport.clear_refresh_token(response)

    def authenticate(self, access_token: str) -> Principal:
        """Resolve the principal behind a bearer access token.

        Validity is signature plus expiry only; a revoked refresh session does
        not invalidate access tokens already issued.
        """
        claims = self.codec.parse(access_token, expected_type=ACCESS_TOKEN_TYPE)
        principal = self.principals.get_by_username(claims["sub"])
        if principal is None or not principal.is_active:
            raise AccountStateError("bearer subject is missing, disabled or deleted")
        return principal

    def security_overview(self, principal: Principal) -> dict[str, object]:
        """Current security profile and anomaly audit trail for ``principal``."""
        try:
            profile = self.monitor.profile(principal.id)
            records = self.monitor.anomaly_records(principal.id)
        except StoreUnavailableError as exc:
            raise AuthUnavailableError("shared store unavailable") from exc
        return {
            "profile": None
            if profile is None
            else {
                "last_ip": profile.last_ip,
                "last_device_fingerprint": profile.last_device_fingerprint,
                "last_access_time": profile.last_access_time,
            },
            "anomalies": [
                {
                    "last_ip": record.last_ip,
                    "current_ip": record.current_ip,
                    "last_device": record.last_device,
                    "current_device": record.current_device,
                    "timestamp": record.timestamp,
                }
                for record in records
            ],
        }

    def _issue_pair(self, principal: Principal) -> tuple[str, str]:
        access_token = self.codec.create(
            principal.username,
            self.access_ttl_seconds,
            {"typ": ACCESS_TOKEN_TYPE, "uid": principal.id},
        )
        refresh_token = self.sessions.issue(principal.id, principal.username)
        return access_token, refresh_token


def build_auth_service(
    settings: Settings,
    *,
    store: KeyValueStore,
    principals: PrincipalRepository,
) -> AuthService:
    """Wire the auth components from settings."""
    codec = TokenCodec(settings.sg_jwt_secret)
    sessions = RefreshSessionStore(
        store,
        codec,
        refresh_ttl_seconds=settings.sg_refresh_token_expire_seconds,
    )
    return AuthService(
        principals=principals,
        codec=codec,
        verifier=CredentialVerifier(
            principals,
            seed_migration_enabled=settings.sg_seed_hash_migration_enabled,
        ),
        throttle=LoginThrottle(
            store,
            max_attempts=settings.sg_login_max_attempts,
            lock_seconds=settings.sg_login_lock_seconds,
        ),
        sessions=sessions,
        monitor=AccessAnomalyMonitor(
            store,
            sessions,
            profile_ttl_seconds=settings.sg_security_profile_ttl_seconds,
            record_ttl_seconds=settings.sg_anomaly_record_ttl_seconds,
        ),
        transport=SessionTransport(
            max_age_seconds=settings.sg_refresh_token_expire_seconds,
            secure=settings.sg_cookie_secure,
            domain=settings.sg_cookie_domain,
        ),
        access_ttl_seconds=settings.sg_access_token_expire_seconds,
    )
