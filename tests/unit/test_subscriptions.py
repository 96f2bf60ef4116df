"""
Unit tests for the change-feed subscription manager.

Tests cover:
- Snapshots are cached and delivered
- Replacement under the same cache key
- Unsubscribe semantics
- Feed failure fallback to the cache
- Setup failures
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from sdk.docmirror.cache import MirrorCache
from sdk.docmirror.connection import ConnectionTracker
from sdk.docmirror.document import Document
from sdk.docmirror.query import DEFAULT_ORDER, Filter
from sdk.docmirror.remote.memory import InMemoryRemoteStore
from sdk.docmirror.subscriptions import SubscriptionManager


class Recorder:
    """Callback that records every delivery."""

    def __init__(self) -> None:
        self.calls = []
        self.event = asyncio.Event()

    def __call__(self, documents):
        self.calls.append(documents)
        self.event.set()

    async def wait(self, count: int = 1, timeout: float = 1.0) -> None:
        async def until():
            while len(self.calls) < count:
                self.event.clear()
                await self.event.wait()

        await asyncio.wait_for(until(), timeout=timeout)


async def settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.fixture
def store():
    return InMemoryRemoteStore()


@pytest.fixture
def cache():
    return MirrorCache()


@pytest.fixture
def manager(store, cache):
    return SubscriptionManager(store, cache, ConnectionTracker(store, timeout=0.5))


class TestSubscriptionManager:
    """Tests for SubscriptionManager."""

    @pytest.mark.asyncio
    async def test_initial_snapshot_cached_and_delivered(self, store, cache, manager):
        seeded = store.seed("lead", {"studentId": "s1"})
        recorder = Recorder()

        unsubscribe = await manager.subscribe(
            "lead", {"studentId": "s1"}, "leads_student_s1", recorder
        )
        await recorder.wait()

        assert [d.id for d in recorder.calls[0]] == [seeded["id"]]
        assert cache.get("lead", seeded["id"]) is not None
        assert manager.active_keys() == ["leads_student_s1"]
        unsubscribe()
        await manager.close()

    @pytest.mark.asyncio
    async def test_changes_delivered(self, store, manager):
        recorder = Recorder()
        await manager.subscribe("lead", None, "all", recorder, order=DEFAULT_ORDER)
        await recorder.wait()

        await store.create_doc("lead", {"n": 1})
        await recorder.wait(2)

        assert recorder.calls[0] == []
        assert len(recorder.calls[1]) == 1
        await manager.close()

    @pytest.mark.asyncio
    async def test_async_callbacks_supported(self, store, manager):
        seen = []
        done = asyncio.Event()

        async def on_change(documents):
            seen.append(len(documents))
            done.set()

        await manager.subscribe("lead", None, "all", on_change)
        await asyncio.wait_for(done.wait(), timeout=1.0)

        assert seen == [0]
        await manager.close()

    @pytest.mark.asyncio
    async def test_callback_error_does_not_end_subscription(self, store, manager):
        calls = []
        second = asyncio.Event()

        def flaky(documents):
            calls.append(documents)
            if len(calls) == 1:
                raise RuntimeError("callback bug")
            second.set()

        await manager.subscribe("lead", None, "all", flaky)
        await settle()
        await store.create_doc("lead", {})
        await asyncio.wait_for(second.wait(), timeout=1.0)

        assert len(calls) == 2
        await manager.close()

    @pytest.mark.asyncio
    async def test_same_key_replaces_previous(self, store, manager):
        """The first callback hears nothing after being replaced."""
        first = Recorder()
        second = Recorder()

        await manager.subscribe("lead", None, "key", first)
        await first.wait()
        await manager.subscribe("lead", None, "key", second)
        await second.wait()

        await store.create_doc("lead", {})
        await second.wait(2)
        await settle()

        assert len(first.calls) == 1
        assert len(manager) == 1
        assert store.watcher_count("lead") == 1
        await manager.close()

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_callbacks_and_keeps_cache(self, store, cache, manager):
        store.seed("lead", {})
        recorder = Recorder()
        unsubscribe = await manager.subscribe("lead", None, "key", recorder)
        await recorder.wait()

        unsubscribe()
        unsubscribe()
        await store.create_doc("lead", {})
        await settle()

        assert len(recorder.calls) == 1
        assert len(cache) == 1
        assert len(manager) == 0

    @pytest.mark.asyncio
    async def test_stale_unsubscribe_leaves_replacement_alone(self, manager):
        old_unsubscribe = await manager.subscribe("lead", None, "key", Recorder())
        await manager.subscribe("lead", None, "key", Recorder())

        old_unsubscribe()

        assert manager.active_keys() == ["key"]
        await manager.close()

    @pytest.mark.asyncio
    async def test_unsubscribe_during_in_flight_snapshot(self, store, cache, manager):
        """No cache write or callback happens once unsubscribed."""
        recorder = Recorder()
        unsubscribe = await manager.subscribe("lead", None, "key", recorder)
        await recorder.wait()

        await store.create_doc("lead", {})
        unsubscribe()
        await settle()

        assert len(recorder.calls) == 1
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_feed_error_falls_back_to_filtered_cache(self, store, cache, manager):
        cache.put("lead", "a", Document("lead", "a", {"studentId": "s1"}))
        cache.put("lead", "b", Document("lead", "b", {"studentId": "s2"}))
        cache.put("lead_archive", "c", Document("lead_archive", "c", {"studentId": "s1"}))
        recorder = Recorder()

        await manager.subscribe("lead", [Filter("studentId", "==", "s1")], "key", recorder)
        await recorder.wait()
        store.set_available(False)
        await recorder.wait(2)

        assert [d.id for d in recorder.calls[1]] == ["a"]
        await manager.close()

    @pytest.mark.asyncio
    async def test_feed_error_marks_offline_and_tries_reconnect(self, store, cache):
        tracker = ConnectionTracker(store, timeout=0.5)
        manager = SubscriptionManager(store, cache, tracker)
        recorder = Recorder()

        await manager.subscribe("lead", None, "key", recorder)
        await recorder.wait()
        store.set_available(False)
        await recorder.wait(2)

        assert not tracker.is_online()
        assert tracker.reconnect_attempts == 1
        assert store.calls["ping"] == 1
        await manager.close()

    @pytest.mark.asyncio
    async def test_setup_error_yields_empty_result(self, cache):
        remote = MagicMock()
        remote.watch.side_effect = RuntimeError("cannot open feed")
        manager = SubscriptionManager(remote, cache, ConnectionTracker(remote))
        recorder = Recorder()

        unsubscribe = await manager.subscribe("lead", None, "key", recorder)

        assert recorder.calls == [[]]
        assert len(manager) == 0
        unsubscribe()

    @pytest.mark.asyncio
    async def test_invalid_filter_is_a_setup_error(self, store, manager):
        recorder = Recorder()

        await manager.subscribe("lead", [Filter("n", "==", 1), "not a filter"], "key", recorder)
        await settle()

        assert recorder.calls[0] == []

    @pytest.mark.asyncio
    async def test_close_ends_everything(self, store, manager):
        await manager.subscribe("lead", None, "a", Recorder())
        await manager.subscribe("user", None, "b", Recorder())
        await settle()

        await manager.close()

        assert len(manager) == 0
        assert store.watcher_count() == 0

    @pytest.mark.asyncio
    async def test_feed_that_ends_falls_back(self, cache):
        async def single_snapshot(*args):
            yield []

        remote = MagicMock()
        remote.watch.side_effect = single_snapshot
        remote.ping = AsyncMock()
        cache.put("lead", "a", Document("lead", "a", {}))
        manager = SubscriptionManager(remote, cache, ConnectionTracker(remote, timeout=0.5))
        recorder = Recorder()

        await manager.subscribe("lead", None, "key", recorder)
        await recorder.wait(2)
        await settle()

        assert recorder.calls[0] == []
        assert [d.id for d in recorder.calls[1]] == ["a"]
        assert len(manager) == 0

    @pytest.mark.asyncio
    async def test_lost_feed_is_unregistered(self, store, manager):
        recorder = Recorder()
        await manager.subscribe("lead", None, "key", recorder)
        await recorder.wait()

        store.set_available(False)
        await recorder.wait(2)
        await settle()

        assert len(manager) == 0
        assert manager.get("key") is None
        assert store.watcher_count() == 0
