"""Access anomaly monitor: trust-on-first-use baseline, audit trail, client IP resolution."""

from __future__ import annotations

from datetime import datetime
from datetime import timedelta
from datetime import timezone

import pytest

from sessionguard.auth.anomaly import AccessAnomalyMonitor
from sessionguard.auth.anomaly import RequestOrigin
from sessionguard.auth.anomaly import resolve_client_ip
from sessionguard.auth.sessions import RefreshSessionStore
from sessionguard.core.store import MemoryStore
from sessionguard.core.tokens import TokenCodec
from tests.auth_helpers import DEFAULT_AGENT
from tests.auth_helpers import DEFAULT_IP
from tests.auth_helpers import TEST_SECRET
from tests.auth_helpers import build_request

HOME = RequestOrigin(client_ip=DEFAULT_IP, user_agent=DEFAULT_AGENT)


class _Ticker:
    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def sessions(store: MemoryStore) -> RefreshSessionStore:
    return RefreshSessionStore(store, TokenCodec(TEST_SECRET), refresh_ttl_seconds=3600)


@pytest.fixture
def monitor(store: MemoryStore, sessions: RefreshSessionStore) -> AccessAnomalyMonitor:
    return AccessAnomalyMonitor(store, sessions, clock=_Ticker())


def test_first_observation_becomes_baseline(monitor: AccessAnomalyMonitor, store: MemoryStore) -> None:
    """Input: no profile -> Output: False and a profile with a 30-day expiry."""
    assert monitor.profile(1) is None

    assert monitor.check_anomaly(1, HOME) is False

    profile = monitor.profile(1)
    assert profile is not None
    assert profile.last_ip == DEFAULT_IP
    assert profile.last_device_fingerprint == AccessAnomalyMonitor.fingerprint(HOME)
    assert store.ttl("user_security:1") == 30 * 24 * 3600
    assert monitor.anomaly_records(1) == []


def test_same_origin_only_touches_access_time(monitor: AccessAnomalyMonitor) -> None:
    monitor.check_anomaly(1, HOME)
    first_seen = monitor.profile(1).last_access_time

    assert monitor.check_anomaly(1, HOME) is False

    assert monitor.profile(1).last_access_time > first_seen
    assert monitor.anomaly_records(1) == []


@pytest.mark.parametrize(
    "changed",
    [
        RequestOrigin(client_ip="198.51.100.7", user_agent=DEFAULT_AGENT),
        RequestOrigin(client_ip=DEFAULT_IP, user_agent="other-browser/2.0"),
    ],
)
def test_changed_origin_is_reported_once_then_trusted(
    monitor: AccessAnomalyMonitor,
    store: MemoryStore,
    changed: RequestOrigin,
) -> None:
    """Input: baseline then a different IP or agent -> Output: True once, then False."""
    monitor.check_anomaly(1, HOME)

    assert monitor.check_anomaly(1, changed) is True
    assert monitor.check_anomaly(1, changed) is False

    [record] = monitor.anomaly_records(1)
    assert record.principal_id == 1
    assert record.last_ip == DEFAULT_IP
    assert record.current_ip == changed.client_ip
    assert record.last_device == AccessAnomalyMonitor.fingerprint(HOME)
    assert record.current_device == AccessAnomalyMonitor.fingerprint(changed)
    assert monitor.profile(1).last_ip == changed.client_ip

    [key] = store.scan("anomaly_access:1:*")
    assert store.ttl(key) == 90 * 24 * 3600


def test_records_accumulate_in_time_order(monitor: AccessAnomalyMonitor) -> None:
    away = RequestOrigin(client_ip="198.51.100.7", user_agent=DEFAULT_AGENT)
    monitor.check_anomaly(1, HOME)
    monitor.check_anomaly(1, away)
    monitor.check_anomaly(1, HOME)

    records = monitor.anomaly_records(1)

    assert [record.current_ip for record in records] == ["198.51.100.7", DEFAULT_IP]
    assert records[0].timestamp < records[1].timestamp
    assert monitor.anomaly_records(2) == []


def test_invalidate_all_drops_refresh_token_and_profile(
    monitor: AccessAnomalyMonitor,
    sessions: RefreshSessionStore,
) -> None:
    token = sessions.issue(1, "alice")
    monitor.check_anomaly(1, HOME)

    monitor.invalidate_all(1)
    monitor.invalidate_all(1)

    assert sessions.validate(1, token) is False
    assert monitor.profile(1) is None
    # With the profile gone the next origin is trusted on first use again.
    assert monitor.check_anomaly(1, RequestOrigin(client_ip="198.51.100.7", user_agent="x")) is False


def test_proxy_headers_take_precedence_in_order() -> None:
    headers = {"Proxy-Client-IP": "10.0.0.2", "HTTP_X_FORWARDED_FOR": "10.0.0.9"}

    assert resolve_client_ip(headers, "127.0.0.1") == "10.0.0.2"


@pytest.mark.parametrize(
    ("headers", "remote", "expected"),
    [
        ({"X-Forwarded-For": "198.51.100.1, 10.0.0.1, 10.0.0.2"}, "127.0.0.1", "198.51.100.1"),
        ({"X-Forwarded-For": "unknown", "WL-Proxy-Client-IP": "10.0.0.3"}, "127.0.0.1", "10.0.0.3"),
        ({"X-Forwarded-For": "  "}, "127.0.0.1", "127.0.0.1"),
        ({}, "192.0.2.44", "192.0.2.44"),
        ({}, None, "unknown"),
    ],
)
def test_resolve_client_ip_cases(headers: dict[str, str], remote: str | None, expected: str) -> None:
    assert resolve_client_ip(headers, remote) == expected


def test_request_origin_reads_forwarded_for_and_user_agent() -> None:
    request = build_request(
        client_ip="127.0.0.1",
        user_agent="agent/3",
        headers={"X-Forwarded-For": "198.51.100.1, 10.0.0.1"},
    )

    origin = RequestOrigin.from_request(request)

    assert origin == RequestOrigin(client_ip="198.51.100.1", user_agent="agent/3")


def test_request_origin_defaults_missing_agent_to_unknown() -> None:
    request = build_request(user_agent=None)

    assert RequestOrigin.from_request(request).user_agent == "unknown"
