"""
Unit tests for the connection tracker.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from sdk.docmirror.connection import ConnectionState, ConnectionTracker
from sdk.docmirror.remote.base import RemoteUnavailableError


def make_remote(ping=None):
    remote = MagicMock()
    remote.ping = ping or AsyncMock(return_value=None)
    return remote


class TestConnectionTracker:
    """Tests for ConnectionTracker."""

    def test_starts_online(self):
        tracker = ConnectionTracker(make_remote())

        assert tracker.is_online()
        assert tracker.status == ConnectionState.ONLINE

    def test_mark_unreachable(self):
        tracker = ConnectionTracker(make_remote())
        tracker.mark_unreachable()

        assert not tracker.is_online()
        assert tracker.status == ConnectionState.RECONNECTING

    @pytest.mark.asyncio
    async def test_reconnect_success(self):
        remote = make_remote()
        tracker = ConnectionTracker(remote)
        tracker.mark_unreachable()

        assert await tracker.attempt_reconnect()
        assert tracker.is_online()
        assert tracker.reconnect_attempts == 0
        remote.ping.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_reconnect_failure_stays_offline(self):
        remote = make_remote(AsyncMock(side_effect=RemoteUnavailableError("down")))
        tracker = ConnectionTracker(remote)
        tracker.mark_unreachable()

        assert not await tracker.attempt_reconnect()
        assert not tracker.is_online()
        assert tracker.reconnect_attempts == 1

    @pytest.mark.asyncio
    async def test_reconnect_is_bounded_by_timeout(self):
        async def hang():
            await asyncio.sleep(10)

        tracker = ConnectionTracker(make_remote(AsyncMock(side_effect=hang)), timeout=0.05)
        tracker.mark_unreachable()

        assert not await tracker.attempt_reconnect()

    @pytest.mark.asyncio
    async def test_attempts_capped(self):
        """After the cap, no further pings are made."""
        remote = make_remote(AsyncMock(side_effect=RemoteUnavailableError("down")))
        tracker = ConnectionTracker(remote, max_reconnect_attempts=3)
        tracker.mark_unreachable()

        results = [await tracker.attempt_reconnect() for _ in range(5)]

        assert results == [False] * 5
        assert remote.ping.await_count == 3

    @pytest.mark.asyncio
    async def test_success_resets_cap(self):
        remote = make_remote(AsyncMock(side_effect=RemoteUnavailableError("down")))
        tracker = ConnectionTracker(remote, max_reconnect_attempts=1)
        tracker.mark_unreachable()
        await tracker.attempt_reconnect()

        tracker.mark_reachable()
        tracker.mark_unreachable()
        await tracker.attempt_reconnect()

        assert remote.ping.await_count == 2
