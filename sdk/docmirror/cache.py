"""
Local mirror cache.

Holds the last known copy of every document the client has read, written or
received from a change-feed, keyed by ``(kind, id)``. It answers reads while
the remote store is unreachable.

Invariants:
    - The last ``put`` for a key wins; entries are never partially merged
    - ``scan`` returns documents in insertion order
    - With a capacity, the least recently used entry is evicted first
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .document import Document

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, str]


@dataclass(frozen=True)
class CacheEntry:
    """A cached document and when it was captured (wall clock)."""

    document: Document
    captured_at: float


class MirrorCache:
    """Thread-safe ``(kind, id) -> Document`` store.

    Args:
        capacity: Maximum number of entries; None for unbounded
    """

    def __init__(self, capacity: Optional[int] = None) -> None:
        if capacity is not None and capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._entries: OrderedDict[CacheKey, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()

    def put(self, kind: str, doc_id: str, document: Document) -> None:
        """Store ``document``, replacing any previous entry."""
        key = (kind, doc_id)
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = CacheEntry(document=document, captured_at=time.time())
            if self.capacity is not None and len(self._entries) > self.capacity:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Evicted cache entry", extra={"kind": evicted[0], "id": evicted[1]})

    def entry(self, kind: str, doc_id: str) -> Optional[CacheEntry]:
        """Get the cache entry for a key."""
        key = (kind, doc_id)
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self.capacity is not None:
                self._entries.move_to_end(key)
            return entry

    def get(self, kind: str, doc_id: str) -> Optional[Document]:
        """Get the cached document for a key."""
        entry = self.entry(kind, doc_id)
        return entry.document if entry is not None else None

    def remove(self, kind: str, doc_id: str) -> bool:
        """Drop a key. Returns whether it was present."""
        with self._lock:
            return self._entries.pop((kind, doc_id), None) is not None

    def scan(self, kind_prefix: str) -> List[Document]:
        """Documents whose kind starts with ``kind_prefix``."""
        with self._lock:
            return [
                entry.document
                for (kind, _), entry in self._entries.items()
                if kind.startswith(kind_prefix)
            ]

    def clear(self) -> None:
        """Drop every entry."""
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries
