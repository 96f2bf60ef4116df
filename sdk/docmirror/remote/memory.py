"""
In-memory remote store implementation for testing.

This module provides a simple in-memory document store for:
- Unit tests
- Integration tests
- Local development without a remote service

Invariants:
    - All data is lost on process exit
    - Ids and timestamps are assigned here, like a real store would
    - Change-feeds see every committed change

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with the RemoteStore protocol
    - Add features to help with testing scenarios
"""

from __future__ import annotations

import asyncio
import copy
import logging
import time
import uuid
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple

from ..query import Filter, Order, apply_query
from .base import RemoteDoc, RemoteError, RemoteUnavailableError

logger = logging.getLogger(__name__)


class InMemoryRemoteStore:
    """In-memory implementation of RemoteStore for testing.

    Failure injection:
        ``set_available(False)`` makes every call (and every open change-feed)
        fail with RemoteUnavailableError until it is turned back on.
        ``fail_next(exc)`` makes the next call raise ``exc`` once.
        ``break_watches(exc)`` fails the currently open change-feeds only.

    Example:
        >>> store = InMemoryRemoteStore()
        >>> await store.connect()
        >>> created = await store.create_doc("lead", {"subject": "Math"})
        >>> async for snapshot in store.watch("lead"):
        ...     print(len(snapshot))
    """

    def __init__(self, latency: float = 0.0) -> None:
        """Initialize in-memory store.

        Args:
            latency: Seconds every call sleeps before answering
        """
        self.latency = latency
        self._kinds: Dict[str, Dict[str, RemoteDoc]] = defaultdict(dict)
        self._connected = False
        self._closed = False
        self._available = True
        self._pending_failure: Optional[BaseException] = None
        self._lock = asyncio.Lock()
        self._change_events: Dict[str, List[asyncio.Event]] = defaultdict(list)
        self._watch_failures: Dict[int, BaseException] = {}
        self.calls: Dict[str, int] = defaultdict(int)

    @property
    def is_connected(self) -> bool:
        """Whether connected (always true after connect())."""
        return self._connected

    async def connect(self) -> None:
        """Connect (no-op for in-memory)."""
        await self._enter("connect")
        self._connected = True
        self._closed = False
        logger.debug("InMemoryRemoteStore connected")

    async def close(self) -> None:
        """Close and end open change-feeds; stored documents are kept."""
        self._connected = False
        self._closed = True
        for events in self._change_events.values():
            for event in events:
                event.set()
        logger.debug("InMemoryRemoteStore closed")

    async def _enter(self, operation: str) -> None:
        self.calls[operation] += 1
        if self.latency:
            await asyncio.sleep(self.latency)
        if self._pending_failure is not None:
            exc, self._pending_failure = self._pending_failure, None
            raise exc
        if not self._available:
            raise RemoteUnavailableError(f"Remote store unavailable during {operation}")

    def _notify(self, kind: str) -> None:
        for event in self._change_events.get(kind, []):
            event.set()

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    async def ping(self) -> None:
        """Reachability probe."""
        await self._enter("ping")

    async def create_doc(self, kind: str, data: Dict[str, Any]) -> RemoteDoc:
        """Store a new document under a fresh id."""
        await self._enter("create_doc")
        async with self._lock:
            now = self._now()
            doc = copy.deepcopy(data)
            doc["id"] = uuid.uuid4().hex
            doc["createdAt"] = now
            doc["updatedAt"] = now
            self._kinds[kind][doc["id"]] = doc
            self._notify(kind)
        logger.debug("Document created in memory store", extra={"kind": kind, "id": doc["id"]})
        return copy.deepcopy(doc)

    async def get_doc(self, kind: str, doc_id: str) -> Optional[RemoteDoc]:
        """Read one document."""
        await self._enter("get_doc")
        doc = self._kinds.get(kind, {}).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def update_doc(self, kind: str, doc_id: str, fields: Dict[str, Any]) -> RemoteDoc:
        """Overlay fields on an existing document."""
        await self._enter("update_doc")
        async with self._lock:
            doc = self._kinds.get(kind, {}).get(doc_id)
            if doc is None:
                raise RemoteError(f"No document {kind}/{doc_id}")
            doc.update(copy.deepcopy(fields))
            doc["updatedAt"] = self._now()
            self._notify(kind)
        return copy.deepcopy(doc)

    async def delete_doc(self, kind: str, doc_id: str) -> None:
        """Delete a document; deleting a missing one is a no-op."""
        await self._enter("delete_doc")
        async with self._lock:
            if self._kinds.get(kind, {}).pop(doc_id, None) is not None:
                self._notify(kind)

    def _run_query(
        self,
        kind: str,
        filters: Sequence[Filter],
        order: Optional[Order],
    ) -> List[RemoteDoc]:
        return [copy.deepcopy(row) for row in apply_query(self._kinds.get(kind, {}).values(), filters, order)]

    async def query(
        self,
        kind: str,
        filters: Sequence[Filter] = (),
        order: Optional[Order] = None,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> Tuple[List[RemoteDoc], Optional[str]]:
        """Filter, order and page the documents of a kind.

        The cursor is the id of the last document of the previous page.
        """
        await self._enter("query")
        rows = self._run_query(kind, filters, order)
        if cursor is not None:
            ids = [row["id"] for row in rows]
            if cursor not in ids:
                raise RemoteError(f"Unknown cursor '{cursor}'")
            rows = rows[ids.index(cursor) + 1 :]
        if limit is not None and len(rows) > limit:
            rows = rows[:limit]
            return rows, rows[-1]["id"]
        return rows, None

    async def watch(
        self,
        kind: str,
        filters: Sequence[Filter] = (),
        order: Optional[Order] = None,
    ) -> AsyncIterator[List[RemoteDoc]]:
        """Yield the query result now and after every change to the kind."""
        await self._enter("watch")
        event = asyncio.Event()
        self._change_events[kind].append(event)
        watch_id = id(event)
        try:
            while True:
                event.clear()
                yield self._run_query(kind, filters, order)
                await event.wait()
                failure = self._watch_failures.pop(watch_id, None)
                if failure is not None:
                    raise failure
                if not self._available:
                    raise RemoteUnavailableError("Change-feed lost: remote store unavailable")
                if self._closed:
                    return
        finally:
            self._change_events[kind].remove(event)
            self._watch_failures.pop(watch_id, None)

    # Testing helpers

    def set_available(self, available: bool) -> None:
        """Simulate losing or regaining the connection.

        Going offline also breaks every open change-feed.
        """
        self._available = available
        if not available:
            for events in self._change_events.values():
                for event in events:
                    event.set()

    def fail_next(self, exc: BaseException) -> None:
        """Make the next call raise ``exc``."""
        self._pending_failure = exc

    def break_watches(self, exc: Optional[BaseException] = None) -> int:
        """Fail every open change-feed with ``exc``. Returns how many."""
        failure = exc or RemoteUnavailableError("Change-feed broken")
        count = 0
        for events in self._change_events.values():
            for event in events:
                self._watch_failures[id(event)] = failure
                event.set()
                count += 1
        return count

    def watcher_count(self, kind: Optional[str] = None) -> int:
        """Open change-feeds, for one kind or in total."""
        if kind is not None:
            return len(self._change_events.get(kind, []))
        return sum(len(events) for events in self._change_events.values())

    def get_all_docs(self, kind: str) -> List[RemoteDoc]:
        """Every stored document of a kind, in insertion order."""
        return [copy.deepcopy(doc) for doc in self._kinds.get(kind, {}).values()]

    def get_doc_count(self, kind: str) -> int:
        """Number of stored documents of a kind."""
        return len(self._kinds.get(kind, {}))

    def seed(self, kind: str, doc: RemoteDoc) -> RemoteDoc:
        """Insert a document directly, bypassing failure injection and feeds."""
        stored = copy.deepcopy(doc)
        stored.setdefault("id", uuid.uuid4().hex)
        now = self._now()
        stored.setdefault("createdAt", now)
        stored.setdefault("updatedAt", now)
        self._kinds[kind][stored["id"]] = stored
        return copy.deepcopy(stored)

    async def wait_for_docs(self, kind: str, count: int, timeout: float = 5.0) -> bool:
        """Wait until a kind holds at least ``count`` documents."""
        start = time.monotonic()
        while time.monotonic() - start < timeout:
            if self.get_doc_count(kind) >= count:
                return True
            await asyncio.sleep(0.01)
        return False
