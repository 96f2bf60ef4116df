"""
Connection tracker.

Remembers whether the remote store is believed reachable. Facade calls mark it
reachable or unreachable as they succeed or fail; ``attempt_reconnect`` probes
the store on demand. Nothing here schedules its own retries.

Consecutive reconnect attempts are capped. Once the cap is reached,
``attempt_reconnect`` answers False without contacting the store until a
successful remote call resets the counter.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from enum import Enum

from .remote.base import RemoteStore

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Reachability of the remote store."""

    ONLINE = "online"
    RECONNECTING = "reconnecting"


class ConnectionTracker:
    """Online/offline state machine for one remote store.

    Example:
        >>> tracker = ConnectionTracker(store, timeout=5.0)
        >>> tracker.mark_unreachable()
        >>> await tracker.attempt_reconnect()
        True
    """

    def __init__(
        self,
        remote: RemoteStore,
        timeout: float = 10.0,
        max_reconnect_attempts: int = 3,
    ) -> None:
        self._remote = remote
        self.timeout = timeout
        self.max_reconnect_attempts = max_reconnect_attempts
        self._state = ConnectionState.ONLINE
        self._attempts = 0
        self._lock = threading.Lock()

    @property
    def status(self) -> ConnectionState:
        """Current state."""
        return self._state

    @property
    def reconnect_attempts(self) -> int:
        """Reconnect attempts since the store was last reachable."""
        return self._attempts

    def is_online(self) -> bool:
        """Whether the store is believed reachable."""
        return self._state == ConnectionState.ONLINE

    def mark_unreachable(self) -> None:
        """Record that a remote call failed for connectivity reasons."""
        with self._lock:
            if self._state == ConnectionState.ONLINE:
                logger.warning("Remote store unreachable, switching to cached reads")
            self._state = ConnectionState.RECONNECTING

    def mark_reachable(self) -> None:
        """Record a successful remote call."""
        with self._lock:
            if self._state != ConnectionState.ONLINE:
                logger.info("Remote store reachable again")
            self._state = ConnectionState.ONLINE
            self._attempts = 0

    async def attempt_reconnect(self) -> bool:
        """Probe the store once.

        Returns:
            True if the store answered; False if it did not, or if the
            attempt cap has been reached
        """
        with self._lock:
            if self._attempts >= self.max_reconnect_attempts:
                logger.debug(
                    "Reconnect attempt cap reached",
                    extra={"attempts": self._attempts},
                )
                return False
            self._attempts += 1
            attempt = self._attempts

        try:
            await asyncio.wait_for(self._remote.ping(), timeout=self.timeout)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(
                "Reconnect attempt failed",
                extra={"attempt": attempt, "error": str(e)},
            )
            with self._lock:
                self._state = ConnectionState.RECONNECTING
            return False

        self.mark_reachable()
        return True
