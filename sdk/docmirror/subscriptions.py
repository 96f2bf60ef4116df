"""
Change-feed subscription manager.

Multiplexes live query subscriptions by cache key. Each subscription runs as
one asyncio task that reads snapshots from the remote change-feed, writes
every document into the mirror cache and hands the snapshot to the caller's
callback.

Invariants:
    - At most one live subscription per cache key; subscribing again under the
      same key tears the previous one down first
    - Once unsubscribed, a subscription makes no further cache writes or
      callbacks, even for a snapshot already in flight
    - A broken feed ends with one callback carrying the cached documents
      matching the subscription's filters
    - Callbacks may be plain functions or coroutine functions; an exception
      from a callback is logged and does not end the subscription
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    Tuple,
    Union,
)

from .cache import MirrorCache
from .connection import ConnectionTracker
from .document import Document
from .errors import SubscriptionError
from .query import Filter, Order, matches_all, normalize_filters, sort_value
from .remote.base import RemoteDoc, RemoteStore, RemoteUnavailableError

logger = logging.getLogger(__name__)

OnChange = Callable[[List[Document]], Union[None, Awaitable[None]]]
Unsubscribe = Callable[[], None]


def _noop() -> None:
    pass


@dataclass
class Subscription:
    """Handle for one live query.

    Attributes:
        cache_key: Key the subscription is registered under
        kind: Entity kind being watched
        filters: Query filters
        order: Query ordering, if any
        on_change: Caller callback
        task: Task reading the change-feed
        active: Cleared on unsubscribe; checked before every side effect
    """

    cache_key: str
    kind: str
    filters: Tuple[Filter, ...]
    order: Optional[Order]
    on_change: OnChange
    task: Optional[asyncio.Task] = None
    active: bool = True
    snapshots: int = 0

    def cancel(self) -> None:
        """Stop side effects now and cancel the feed task."""
        self.active = False
        if self.task is not None and not self.task.done():
            self.task.cancel()


def cached_matches(
    cache: MirrorCache,
    kind: str,
    filters: Iterable[Filter],
    order: Optional[Order] = None,
) -> List[Document]:
    """Cached documents of exactly ``kind`` that match ``filters``."""
    filters = tuple(filters)
    documents = [
        doc
        for doc in cache.scan(kind)
        if doc.kind == kind and matches_all(doc.to_dict(), filters)
    ]
    if order is not None:
        documents.sort(
            key=lambda doc: sort_value(doc.to_dict().get(order.field)),
            reverse=order.descending,
        )
    return documents


class SubscriptionManager:
    """Registry of live change-feed subscriptions.

    Example:
        >>> manager = SubscriptionManager(store, cache, tracker)
        >>> unsubscribe = await manager.subscribe(
        ...     "lead", {"studentId": "s1"}, "leads_student_s1", on_leads
        ... )
        >>> unsubscribe()
    """

    def __init__(
        self,
        remote: RemoteStore,
        cache: MirrorCache,
        tracker: ConnectionTracker,
    ) -> None:
        self._remote = remote
        self._cache = cache
        self._tracker = tracker
        self._subscriptions: Dict[str, Subscription] = {}

    def __len__(self) -> int:
        return len(self._subscriptions)

    def active_keys(self) -> List[str]:
        """Cache keys with a registered subscription."""
        return list(self._subscriptions)

    def get(self, cache_key: str) -> Optional[Subscription]:
        """Registered subscription for a key."""
        return self._subscriptions.get(cache_key)

    async def subscribe(
        self,
        kind: str,
        filters: Union[Iterable[Filter], Dict[str, Any], None],
        cache_key: str,
        on_change: OnChange,
        order: Optional[Order] = None,
    ) -> Unsubscribe:
        """Start a live query under ``cache_key``.

        If the feed cannot be opened, ``on_change`` is called once with an
        empty list and a no-op unsubscribe is returned.

        Returns:
            Idempotent callable that ends the subscription
        """
        self.unsubscribe(cache_key)

        try:
            normalized = normalize_filters(filters)
            feed = self._remote.watch(kind, normalized, order)
        except Exception as e:
            error = SubscriptionError(f"Failed to open change-feed: {e}", cache_key, kind)
            logger.warning(
                error.message,
                extra={"cache_key": cache_key, "kind": kind, "error": str(e)},
            )
            await self._invoke(on_change, [], cache_key)
            return _noop

        sub = Subscription(
            cache_key=cache_key,
            kind=kind,
            filters=normalized,
            order=order,
            on_change=on_change,
        )
        self._subscriptions[cache_key] = sub
        sub.task = asyncio.create_task(self._run(sub, feed), name=f"docmirror-sub-{cache_key}")
        logger.debug("Subscription started", extra={"cache_key": cache_key, "kind": kind})

        def unsubscribe() -> None:
            sub.cancel()
            if self._subscriptions.get(cache_key) is sub:
                del self._subscriptions[cache_key]

        return unsubscribe

    def unsubscribe(self, cache_key: str) -> bool:
        """End the subscription registered under ``cache_key``, if any."""
        sub = self._subscriptions.pop(cache_key, None)
        if sub is None:
            return False
        sub.cancel()
        logger.debug("Subscription ended", extra={"cache_key": cache_key})
        return True

    async def close(self) -> None:
        """End every subscription and wait for their tasks."""
        subs = list(self._subscriptions.values())
        self._subscriptions.clear()
        for sub in subs:
            sub.cancel()
        tasks = [sub.task for sub in subs if sub.task is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _invoke(self, on_change: OnChange, documents: List[Document], cache_key: str) -> None:
        try:
            result = on_change(documents)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Subscription callback failed", extra={"cache_key": cache_key})

    async def _apply_snapshot(self, sub: Subscription, snapshot: List[RemoteDoc]) -> None:
        documents = [Document.from_remote(sub.kind, raw) for raw in snapshot]
        for doc in documents:
            if not sub.active:
                return
            self._cache.put(sub.kind, doc.id, doc)
        if not sub.active:
            return
        sub.snapshots += 1
        await self._invoke(sub.on_change, documents, sub.cache_key)

    async def _run(self, sub: Subscription, feed: AsyncIterator[List[RemoteDoc]]) -> None:
        try:
            async for snapshot in feed:
                if not sub.active:
                    return
                self._tracker.mark_reachable()
                await self._apply_snapshot(sub, snapshot)
            if sub.active:
                await self._fall_back(sub, RemoteUnavailableError("Change-feed ended"))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if not sub.active:
                return
            await self._fall_back(sub, e)
        finally:
            aclose = getattr(feed, "aclose", None)
            if aclose is not None:
                try:
                    await aclose()
                except RuntimeError:
                    # Generator still running when cancelled mid-iteration
                    pass
            sub.active = False
            if self._subscriptions.get(sub.cache_key) is sub:
                del self._subscriptions[sub.cache_key]
                logger.debug("Subscription ended with its feed", extra={"cache_key": sub.cache_key})

    async def _fall_back(self, sub: Subscription, exc: Exception) -> None:
        error = SubscriptionError(f"Change-feed failed: {exc}", sub.cache_key, sub.kind)
        logger.warning(
            error.message,
            extra={"cache_key": sub.cache_key, "kind": sub.kind, "error": str(exc)},
        )
        self._tracker.mark_unreachable()
        await self._tracker.attempt_reconnect()
        if not sub.active:
            return

        cached = cached_matches(self._cache, sub.kind, sub.filters, sub.order)
        logger.info(
            "Serving subscription from cache",
            extra={"cache_key": sub.cache_key, "documents": len(cached)},
        )
        await self._invoke(sub.on_change, cached, sub.cache_key)
