"""
Sliding-window rate limiter.

Each actor gets a queue of admission times. A request is admitted when fewer
than ``max_requests`` admissions fall inside the trailing window, and only
admitted requests are recorded. State is in memory and per process.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, Optional

logger = logging.getLogger(__name__)

ANONYMOUS_ACTOR = "anonymous"


class RateLimiter:
    """Per-actor sliding-window admission control.

    Thread-safe: ``admit`` may be called from any thread or coroutine.

    Example:
        >>> limiter = RateLimiter(max_requests=50, window_seconds=60)
        >>> limiter.admit("user-1")
        True
    """

    def __init__(
        self,
        max_requests: int = 50,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_requests <= 0:
            raise ValueError("max_requests must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def __len__(self) -> int:
        """Actors with requests inside the current window."""
        with self._lock:
            return len(self._windows)

    def _expire(self, window: Deque[float], now: float) -> None:
        cutoff = now - self.window_seconds
        while window and window[0] <= cutoff:
            window.popleft()

    def _sweep(self, now: float) -> None:
        # Drop actors whose whole window has expired, at most once per window
        if now - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = now
        for actor in list(self._windows):
            window = self._windows[actor]
            self._expire(window, now)
            if not window:
                del self._windows[actor]

    def admit(self, actor_id: Optional[str]) -> bool:
        """Admit or refuse one request for ``actor_id``."""
        actor = actor_id or ANONYMOUS_ACTOR
        with self._lock:
            now = self._clock()
            self._sweep(now)
            window = self._windows.setdefault(actor, deque())
            self._expire(window, now)
            if len(window) >= self.max_requests:
                logger.warning(
                    "Rate limit exceeded",
                    extra={"actor_id": actor, "limit": self.max_requests},
                )
                return False
            window.append(now)
            return True

    def remaining(self, actor_id: Optional[str]) -> int:
        """Requests ``actor_id`` may still make in the current window."""
        actor = actor_id or ANONYMOUS_ACTOR
        with self._lock:
            window = self._windows.get(actor)
            if not window:
                return self.max_requests
            self._expire(window, self._clock())
            if not window:
                del self._windows[actor]
                return self.max_requests
            return self.max_requests - len(window)

    def reset(self, actor_id: Optional[str] = None) -> None:
        """Forget one actor's history, or everyone's."""
        with self._lock:
            if actor_id is None:
                self._windows.clear()
            else:
                self._windows.pop(actor_id, None)
