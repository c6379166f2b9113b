"""RedisStore command mapping and fail-closed error translation."""

from __future__ import annotations

import pytest
import redis

from sessionguard.core.config import Settings
from sessionguard.core.store import MemoryStore
from sessionguard.core.store import RedisStore
from sessionguard.core.store import StoreUnavailableError
from sessionguard.core.store import create_store
from tests.auth_helpers import TEST_SECRET


class _RecordingPipeline:
    def __init__(self, results: list[object]) -> None:
        self.calls: list[tuple[str, tuple, dict]] = []
        self._results = results

    def __getattr__(self, name: str):
        def record(*args: object, **kwargs: object) -> "_RecordingPipeline":
            self.calls.append((name, args, kwargs))
            return self

        return record

    def execute(self) -> list[object]:
        return self._results


class _TimingOutClient:
    def __getattr__(self, name: str):
        def fail(*args: object, **kwargs: object) -> None:
            raise redis.TimeoutError("Timeout reading from socket")

        return fail


def test_client_is_built_with_socket_timeouts() -> None:
    """Input: timeout 1.5s -> Output: both socket timeouts are 1.5s."""
    store = RedisStore("redis://localhost:6379/0", timeout_seconds=1.5)

    kwargs = store.client.connection_pool.connection_kwargs
    assert kwargs["socket_timeout"] == 1.5
    assert kwargs["socket_connect_timeout"] == 1.5
    assert kwargs["decode_responses"] is True


def test_incr_sets_expiry_in_same_transaction(monkeypatch: pytest.MonkeyPatch) -> None:
    store = RedisStore("redis://localhost:6379/0", timeout_seconds=1.0)
    pipe = _RecordingPipeline([3, True])
    monkeypatch.setattr(store.client, "pipeline", lambda transaction=True: pipe)

    assert store.incr("login_attempt:alice", ttl_seconds=900) == 3
    assert [call[0] for call in pipe.calls] == ["incr", "expire"]
    assert pipe.calls[1][1] == ("login_attempt:alice", 900)


@pytest.mark.parametrize(
    "operation",
    [
        lambda store: store.get("k"),
        lambda store: store.set("k", "v", ttl_seconds=5),
        lambda store: store.delete("k"),
        lambda store: store.hgetall("k"),
        lambda store: store.ping(),
    ],
)
def test_redis_errors_become_store_unavailable(operation) -> None:
    """Input: client raising redis.TimeoutError -> Output: StoreUnavailableError."""
    store = RedisStore("redis://localhost:6379/0", timeout_seconds=0.1)
    store.client = _TimingOutClient()

    with pytest.raises(StoreUnavailableError):
        operation(store)


def test_create_store_picks_backend() -> None:
    memory = create_store(Settings(sg_jwt_secret=TEST_SECRET, sg_store_backend="memory"))
    remote = create_store(Settings(sg_jwt_secret=TEST_SECRET, sg_store_backend="redis"))

    assert isinstance(memory, MemoryStore)
    assert isinstance(remote, RedisStore)
