"""Device/IP change detection for authenticated principals.

Each principal has a security profile holding the last seen client IP and
device fingerprint. The first observation is stored as the baseline
(trust-on-first-use); later requests are compared against it. A mismatch is
written to an append-only audit trail and becomes the new baseline.

The monitor only reports. Whether an anomaly revokes anything is decided
by the caller.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from collections.abc import Callable
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from datetime import timezone

from starlette.requests import Request

from sessionguard.auth.sessions import RefreshSessionStore
from sessionguard.core.config import NINETY_DAYS_SECONDS
from sessionguard.core.config import THIRTY_DAYS_SECONDS
from sessionguard.core.store import KeyValueStore

logger = logging.getLogger(__name__)

USER_SECURITY_PREFIX = "user_security:"
ANOMALY_ACCESS_PREFIX = "anomaly_access:"
UNKNOWN = "unknown"

# Checked in order before falling back to the socket address.
PROXY_IP_HEADERS = (
    "X-Forwarded-For",
    "Proxy-Client-IP",
    "WL-Proxy-Client-IP",
    "HTTP_CLIENT_IP",
    "HTTP_X_FORWARDED_FOR",
)


def resolve_client_ip(headers: Mapping[str, str], remote_addr: str | None) -> str:
    """Return the originating client IP, preferring proxy headers."""
    ip: str | None = None
    for header in PROXY_IP_HEADERS:
        value = headers.get(header)
        if value and value.strip() and value.strip().lower() != UNKNOWN:
            ip = value
            break
    if ip is None:
        ip = remote_addr or UNKNOWN

    if "," in ip:
        ip = ip.split(",")[0]
    return ip.strip() or UNKNOWN


@dataclass(frozen=True, slots=True)
class RequestOrigin:
    """Where a request came from, as seen by the anomaly monitor."""

    client_ip: str
    user_agent: str

    @classmethod
    def from_request(cls, request: Request) -> "RequestOrigin":
        remote_addr = request.client.host if request.client is not None else None
        user_agent = request.headers.get("User-Agent") or UNKNOWN
        return cls(client_ip=resolve_client_ip(request.headers, remote_addr), user_agent=user_agent)


@dataclass(frozen=True, slots=True)
class SecurityProfile:
    last_ip: str
    last_device_fingerprint: str
    last_access_time: int


@dataclass(frozen=True, slots=True)
class AnomalyRecord:
    principal_id: int
    last_ip: str
    current_ip: str
    last_device: str
    current_device: str
    timestamp: int


def _epoch_millis(value: datetime) -> int:
    return int(value.astimezone(timezone.utc).timestamp() * 1000)


class AccessAnomalyMonitor:
    """Fingerprint requests and compare them against each principal's baseline."""

    def __init__(
        self,
        store: KeyValueStore,
        sessions: RefreshSessionStore,
        *,
        profile_ttl_seconds: int = THIRTY_DAYS_SECONDS,
        record_ttl_seconds: int = NINETY_DAYS_SECONDS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._sessions = sessions
        self.profile_ttl_seconds = profile_ttl_seconds
        self.record_ttl_seconds = record_ttl_seconds
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @staticmethod
    def fingerprint(origin: RequestOrigin) -> str:
        material = f"{origin.client_ip}|{origin.user_agent}"
        return hashlib.sha256(material.encode("utf-8")).hexdigest()

    @staticmethod
    def _profile_key(principal_id: int) -> str:
        return f"{USER_SECURITY_PREFIX}{principal_id}"

    def profile(self, principal_id: int) -> SecurityProfile | None:
        fields = self._store.hgetall(self._profile_key(principal_id))
        if "last_ip" not in fields:
            return None
        return SecurityProfile(
            last_ip=fields.get("last_ip", ""),
            last_device_fingerprint=fields.get("last_device_fingerprint", ""),
            last_access_time=int(fields.get("last_access_time", "0")),
        )

    def check_anomaly(self, principal_id: int, origin: RequestOrigin) -> bool:
        """Return True when ``origin`` differs from the stored baseline."""
        current_ip = origin.client_ip
        current_fingerprint = self.fingerprint(origin)
        now_ms = _epoch_millis(self._clock())

        profile = self.profile(principal_id)
        if profile is None:
            self._save_profile(principal_id, current_ip, current_fingerprint, now_ms)
            return False

        ip_changed = profile.last_ip != current_ip
        device_changed = profile.last_device_fingerprint != current_fingerprint
        if ip_changed or device_changed:
            logger.warning(
                "access anomaly for principal_id=%s: ip %s -> %s, device %s -> %s",
                principal_id,
                profile.last_ip,
                current_ip,
                profile.last_device_fingerprint[:12],
                current_fingerprint[:12],
            )
            self._record_anomaly(
                AnomalyRecord(
                    principal_id=principal_id,
                    last_ip=profile.last_ip,
                    current_ip=current_ip,
                    last_device=profile.last_device_fingerprint,
                    current_device=current_fingerprint,
                    timestamp=now_ms,
                )
            )
            self._save_profile(principal_id, current_ip, current_fingerprint, now_ms)
            return True

        self._store.hset(self._profile_key(principal_id), {"last_access_time": str(now_ms)})
        return False

    def invalidate_all(self, principal_id: int) -> None:
        """Drop the principal's refresh token and security profile."""
        self._sessions.revoke(principal_id)
        self._store.delete(self._profile_key(principal_id))
        logger.warning("invalidated all session state for principal_id=%s", principal_id)

    def anomaly_records(self, principal_id: int) -> list[AnomalyRecord]:
        """Audit entries for a principal that have not yet expired, oldest first."""
        records = []
        for key in self._store.scan(f"{ANOMALY_ACCESS_PREFIX}{principal_id}:*"):
            fields = self._store.hgetall(key)
            if not fields:
                continue
            records.append(
                AnomalyRecord(
                    principal_id=int(fields["user_id"]),
                    last_ip=fields.get("last_ip", ""),
                    current_ip=fields.get("current_ip", ""),
                    last_device=fields.get("last_device", ""),
                    current_device=fields.get("current_device", ""),
                    timestamp=int(fields.get("timestamp", "0")),
                )
            )
        records.sort(key=lambda record: record.timestamp)
        return records

    def _save_profile(self, principal_id: int, ip: str, fingerprint: str, now_ms: int) -> None:
        self._store.hset(
            self._profile_key(principal_id),
            {
                "last_ip": ip,
                "last_device_fingerprint": fingerprint,
                "last_access_time": str(now_ms),
            },
            ttl_seconds=self.profile_ttl_seconds,
        )

    def _record_anomaly(self, record: AnomalyRecord) -> None:
        key = f"{ANOMALY_ACCESS_PREFIX}{record.principal_id}:{record.timestamp}:{secrets.token_hex(4)}"
        self._store.hset(
            key,
            {
                "user_id": str(record.principal_id),
                "last_ip": record.last_ip,
                "current_ip": record.current_ip,
                "last_device": record.last_device,
                "current_device": record.current_device,
                "timestamp": str(record.timestamp),
            },
            ttl_seconds=self.record_ttl_seconds,
        )
