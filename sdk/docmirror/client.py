"""
Document access facade for docmirror.

This module provides the main client interface:
- DocumentClient: Reads, writes and live subscriptions against a remote store
- KindService: The same operations bound to one entity kind
- Page: One page of a list query
- ConnectionStatus: Snapshot of reachability and local state

Example:
    >>> async with DocumentClient(InMemoryRemoteStore()) as db:
    ...     lead_id = await db.create("lead", {...}, actor_id="user-1")
    ...     lead = await db.get("lead", lead_id)

Invariants:
    - Every write with an actor id is admitted by the rate limiter first
    - Writes are never retried; remote write failures always surface
    - Reads fall back to the mirror cache when the remote store fails
    - Every successful mutation is audited without waiting for the audit sink
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Dict, Iterable, List, Mapping, Optional, TypeVar, Union

from .audit import AuditLogWriter, AuditRecord
from .cache import MirrorCache
from .config import ClientSettings
from .connection import ConnectionTracker
from .document import Document, parse_timestamp
from .errors import (
    DocumentNotFound,
    RateLimitExceeded,
    RemoteReadError,
    RemoteWriteError,
)
from .kinds import default_registry
from .query import Filter, Order, normalize_filters
from .ratelimit import RateLimiter
from .registry import SchemaRegistry
from .remote.base import RemoteStore, RemoteTimeoutError, is_transient
from .subscriptions import OnChange, SubscriptionManager, Unsubscribe, cached_matches

logger = logging.getLogger(__name__)

T = TypeVar("T")

Filters = Union[Iterable[Filter], Dict[str, Any], None]


@dataclass
class Page:
    """One page of a list query.

    Attributes:
        documents: Documents on this page
        next_cursor: Pass to ``get_many`` for the next page; None on the last
        from_cache: Whether the page was served from the mirror cache
    """

    documents: List[Document] = field(default_factory=list)
    next_cursor: Optional[str] = None
    from_cache: bool = False

    def __len__(self) -> int:
        return len(self.documents)

    def __iter__(self):
        return iter(self.documents)


@dataclass(frozen=True)
class ConnectionStatus:
    """Reachability and local state.

    Attributes:
        online: Whether the remote store is believed reachable
        cache_size: Documents held by the mirror cache
        status: ``online`` or ``reconnecting``
        subscriptions: Live subscriptions
    """

    online: bool
    cache_size: int
    status: str
    subscriptions: int


class DocumentClient:
    """Facade over a remote document store.

    Owns its schema registry, rate limiter, mirror cache, connection tracker,
    subscription manager and audit writer; nothing is shared between clients.

    Example:
        >>> db = DocumentClient(HttpRemoteStore("https://docs.example.com"))
        >>> await db.start()
        >>> page = await db.get_many("lead", {"status": "open"}, page_size=20)
        >>> await db.close()
    """

    def __init__(
        self,
        remote: RemoteStore,
        settings: ClientSettings | None = None,
        registry: SchemaRegistry | None = None,
        **overrides: Any,
    ) -> None:
        """Initialize client.

        Args:
            remote: Remote store backend
            settings: Configuration; loaded from the environment if omitted
            registry: Schema registry; the built-in kinds if omitted
            **overrides: Individual settings that take precedence
        """
        if settings is None:
            settings = ClientSettings(**overrides)
        elif overrides:
            settings = ClientSettings(**{**settings.model_dump(exclude_unset=True), **overrides})
        self.settings = settings

        self.registry = registry or default_registry(
            max_string_length=settings.max_string_length,
            max_array_length=settings.max_array_length,
        )
        self._remote = remote
        self.limiter = RateLimiter(
            max_requests=settings.rate_limit_max_requests,
            window_seconds=settings.rate_limit_window_seconds,
        )
        self.cache = MirrorCache(capacity=settings.cache_capacity)
        self.tracker = ConnectionTracker(
            remote,
            timeout=settings.remote_timeout_seconds,
            max_reconnect_attempts=settings.max_reconnect_attempts,
        )
        self.subscriptions = SubscriptionManager(remote, self.cache, self.tracker)
        self.audit = AuditLogWriter(
            remote,
            kind=settings.audit_kind,
            queue_size=settings.audit_queue_size,
            timeout=settings.remote_timeout_seconds,
        )
        self._started = False

    # Lifecycle

    async def start(self) -> None:
        """Connect the remote store and start background work.

        An unreachable store is not fatal: the client starts offline and
        serves reads from the cache.
        """
        if self._started:
            return
        try:
            await asyncio.wait_for(self._remote.connect(), timeout=self.settings.remote_timeout_seconds)
        except Exception as e:
            if not is_transient(e):
                raise
            self.tracker.mark_unreachable()
            logger.warning("Remote store unreachable at startup", extra={"error": str(e)})
        if self.settings.audit_enabled:
            self.audit.start()
        self._started = True
        self.settings.log_config()

    async def close(self) -> None:
        """Tear down subscriptions, flush audit records and disconnect."""
        await self.subscriptions.close()
        await self.audit.close()
        await self._remote.close()
        self._started = False

    async def __aenter__(self) -> DocumentClient:
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # Internals

    def _admit(self, actor_id: Optional[str]) -> None:
        # Writes without an actor are not rate-limited
        if actor_id is None:
            return
        if not self.limiter.admit(actor_id):
            raise RateLimitExceeded(
                actor_id,
                self.limiter.max_requests,
                self.limiter.window_seconds,
            )

    async def _remote_call(self, call: Awaitable[T], operation: str, kind: str) -> T:
        """Await a remote call under the timeout and update the tracker."""
        try:
            result = await asyncio.wait_for(call, timeout=self.settings.remote_timeout_seconds)
        except asyncio.TimeoutError as e:
            self.tracker.mark_unreachable()
            raise RemoteTimeoutError(
                f"{operation} {kind} timed out after {self.settings.remote_timeout_seconds:g}s"
            ) from e
        except Exception as e:
            if is_transient(e):
                self.tracker.mark_unreachable()
            raise
        self.tracker.mark_reachable()
        return result

    def _record(
        self,
        action: str,
        kind: str,
        document_id: str,
        actor_id: Optional[str],
        before: Optional[Dict[str, Any]] = None,
        after: Optional[Dict[str, Any]] = None,
    ) -> None:
        if not self.settings.audit_enabled:
            return
        self.audit.start()
        self.audit.record(
            AuditRecord(
                action=action,
                kind=kind,
                document_id=document_id,
                actor=actor_id,
                before=dict(before) if before is not None else None,
                after=dict(after) if after is not None else None,
            )
        )

    async def _fetch_for_write(self, kind: str, doc_id: str, operation: str) -> Document:
        try:
            raw = await self._remote_call(self._remote.get_doc(kind, doc_id), operation, kind)
        except Exception as e:
            logger.error(
                f"Failed to read {kind} before {operation}",
                extra={"kind": kind, "id": doc_id, "error": str(e)},
            )
            raise RemoteWriteError(str(e), operation, kind, transient=is_transient(e)) from e
        if raw is None:
            raise DocumentNotFound(kind, doc_id)
        return Document.from_remote(kind, raw)

    # Writes

    async def create(
        self,
        kind: str,
        raw: Mapping[str, Any],
        actor_id: Optional[str] = None,
    ) -> str:
        """Create a document.

        Args:
            kind: Entity kind
            raw: Field values; sanitized, default-filled and validated
            actor_id: Who is making the change

        Returns:
            Id assigned by the remote store

        Raises:
            RateLimitExceeded: If the actor is over its window
            ValidationError: If the input fails the kind's schema
            RemoteWriteError: If the remote store rejected or missed the write
        """
        self._admit(actor_id)
        data = self.registry.standardize(kind, raw)

        try:
            stored = await self._remote_call(self._remote.create_doc(kind, data), "create", kind)
        except Exception as e:
            logger.error(
                f"Failed to create {kind}",
                extra={"kind": kind, "actor_id": actor_id, "error": str(e)},
            )
            raise RemoteWriteError(str(e), "create", kind, transient=is_transient(e)) from e

        doc = Document.from_remote(kind, stored)
        self.cache.put(kind, doc.id, doc)
        self._record("create", kind, doc.id, actor_id, after=doc.data)
        logger.debug("Document created", extra={"kind": kind, "id": doc.id})
        return doc.id

    async def update(
        self,
        kind: str,
        doc_id: str,
        partial: Mapping[str, Any],
        actor_id: Optional[str] = None,
    ) -> None:
        """Overlay fields on an existing document.

        Only the given fields are coerced and sanitized; the full schema is
        not re-checked. System fields in ``partial`` are ignored.

        Raises:
            RateLimitExceeded: If the actor is over its window
            DocumentNotFound: If the document does not exist
            ValidationError: If a value cannot be coerced to its field type
            RemoteWriteError: If the remote store rejected or missed the write
        """
        self._admit(actor_id)
        current = await self._fetch_for_write(kind, doc_id, "update")
        changes = self.registry.sanitize_partial(kind, partial)

        try:
            stored = await self._remote_call(
                self._remote.update_doc(kind, doc_id, changes), "update", kind
            )
        except Exception as e:
            logger.error(
                f"Failed to update {kind}",
                extra={"kind": kind, "id": doc_id, "actor_id": actor_id, "error": str(e)},
            )
            raise RemoteWriteError(str(e), "update", kind, transient=is_transient(e)) from e

        updated = current.merged(changes, updated_at=parse_timestamp((stored or {}).get("updatedAt")))
        self.cache.put(kind, doc_id, updated)
        self._record("update", kind, doc_id, actor_id, before=current.data, after=updated.data)
        logger.debug("Document updated", extra={"kind": kind, "id": doc_id, "fields": sorted(changes)})

    async def delete(
        self,
        kind: str,
        doc_id: str,
        actor_id: Optional[str] = None,
    ) -> None:
        """Delete a document.

        Raises:
            RateLimitExceeded: If the actor is over its window
            DocumentNotFound: If the document does not exist
            RemoteWriteError: If the remote store rejected or missed the write
        """
        self._admit(actor_id)
        current = await self._fetch_for_write(kind, doc_id, "delete")

        try:
            await self._remote_call(self._remote.delete_doc(kind, doc_id), "delete", kind)
        except Exception as e:
            logger.error(
                f"Failed to delete {kind}",
                extra={"kind": kind, "id": doc_id, "actor_id": actor_id, "error": str(e)},
            )
            raise RemoteWriteError(str(e), "delete", kind, transient=is_transient(e)) from e

        self.cache.remove(kind, doc_id)
        self._record("delete", kind, doc_id, actor_id, before=current.data)
        logger.debug("Document deleted", extra={"kind": kind, "id": doc_id})

    # Reads

    async def get(self, kind: str, doc_id: str) -> Optional[Document]:
        """Read one document.

        While offline, one reconnect attempt is made first; if the store is
        still unreachable a cached copy is returned without reading it.
        If the remote read fails, the cached copy (or None) is returned.

        Returns:
            Document if found, None otherwise
        """
        if not self.tracker.is_online():
            cached = self.cache.get(kind, doc_id)
            if cached is not None and not await self.tracker.attempt_reconnect():
                logger.debug("Serving offline read from cache", extra={"kind": kind, "id": doc_id})
                return cached

        try:
            raw = await self._remote_call(self._remote.get_doc(kind, doc_id), "get", kind)
        except Exception as e:
            cached = self.cache.get(kind, doc_id)
            logger.warning(
                f"Failed to get {kind}, serving cache",
                extra={"kind": kind, "id": doc_id, "cached": cached is not None, "error": str(e)},
            )
            return cached

        if raw is None:
            return None
        doc = Document.from_remote(kind, raw)
        self.cache.put(kind, doc.id, doc)
        return doc

    async def get_many(
        self,
        kind: str,
        filters: Filters = None,
        page_size: Optional[int] = None,
        cursor: Optional[str] = None,
        order: Optional[Order] = None,
    ) -> Page:
        """List documents matching ``filters``.

        Args:
            kind: Entity kind
            filters: Filter clauses, or a mapping of field to required value
            page_size: Documents per page, capped at ``max_page_size``
            cursor: ``next_cursor`` of the previous page
            order: Sort order; results are unordered when omitted

        Raises:
            RemoteReadError: If the remote query failed and the cache holds
                nothing for the kind
        """
        size = min(page_size or self.settings.default_page_size, self.settings.max_page_size)
        size = max(size, 1)
        normalized = normalize_filters(filters)

        try:
            rows, next_cursor = await self._remote_call(
                self._remote.query(kind, normalized, order, size, cursor), "list", kind
            )
        except Exception as e:
            if not any(doc.kind == kind for doc in self.cache.scan(kind)):
                logger.error(
                    f"Failed to list {kind}, nothing cached",
                    extra={"kind": kind, "error": str(e)},
                )
                raise RemoteReadError(str(e), "list", kind, transient=is_transient(e)) from e
            cached = cached_matches(self.cache, kind, normalized, order)[:size]
            logger.warning(
                f"Failed to list {kind}, serving cache",
                extra={"kind": kind, "documents": len(cached), "error": str(e)},
            )
            return Page(documents=cached, next_cursor=None, from_cache=True)

        documents = [Document.from_remote(kind, row) for row in rows]
        for doc in documents:
            self.cache.put(kind, doc.id, doc)
        return Page(documents=documents, next_cursor=next_cursor)

    # Subscriptions

    async def subscribe(
        self,
        kind: str,
        filters: Filters,
        cache_key: Optional[str],
        callback: OnChange,
        order: Optional[Order] = None,
    ) -> Unsubscribe:
        """Start a live query.

        Subscribing again under the same ``cache_key`` replaces the earlier
        subscription. Without a key, every call creates an independent one.

        Returns:
            Idempotent callable that ends the subscription
        """
        key = cache_key or f"{kind}_{uuid.uuid4().hex}"
        return await self.subscriptions.subscribe(kind, filters, key, callback, order)

    async def subscribe_where(
        self,
        kind: str,
        field_name: str,
        value: Any,
        callback: OnChange,
        order: Optional[Order] = None,
    ) -> Unsubscribe:
        """Live query on one field equal to ``value``.

        Keyed ``<kind>_<field>_<value>`` so repeated calls replace each other.
        """
        return await self.subscribe(
            kind,
            [Filter(field_name, "==", value)],
            f"{kind}_{field_name}_{value}",
            callback,
            order,
        )

    def connection_status(self) -> ConnectionStatus:
        """Current reachability and local state."""
        return ConnectionStatus(
            online=self.tracker.is_online(),
            cache_size=len(self.cache),
            status=self.tracker.status.value,
            subscriptions=len(self.subscriptions),
        )

    def for_kind(self, kind: str) -> KindService:
        """Operations bound to one kind.

        Raises:
            KeyError: If the kind is not registered
        """
        if kind not in self.registry:
            raise KeyError(f"Unknown entity kind '{kind}'")
        return KindService(self, kind)


class KindService:
    """``DocumentClient`` operations for a single entity kind.

    Example:
        >>> leads = db.for_kind("lead")
        >>> lead_id = await leads.create({...}, actor_id="user-1")
        >>> await leads.subscribe_where("studentId", "s1", on_leads)
    """

    def __init__(self, client: DocumentClient, kind: str) -> None:
        self.client = client
        self.kind = kind

    async def create(self, raw: Mapping[str, Any], actor_id: Optional[str] = None) -> str:
        return await self.client.create(self.kind, raw, actor_id)

    async def update(
        self,
        doc_id: str,
        partial: Mapping[str, Any],
        actor_id: Optional[str] = None,
    ) -> None:
        await self.client.update(self.kind, doc_id, partial, actor_id)

    async def delete(self, doc_id: str, actor_id: Optional[str] = None) -> None:
        await self.client.delete(self.kind, doc_id, actor_id)

    async def get(self, doc_id: str) -> Optional[Document]:
        return await self.client.get(self.kind, doc_id)

    async def get_many(
        self,
        filters: Filters = None,
        page_size: Optional[int] = None,
        cursor: Optional[str] = None,
        order: Optional[Order] = None,
    ) -> Page:
        return await self.client.get_many(self.kind, filters, page_size, cursor, order)

    async def subscribe(
        self,
        filters: Filters,
        callback: OnChange,
        cache_key: Optional[str] = None,
        order: Optional[Order] = None,
    ) -> Unsubscribe:
        return await self.client.subscribe(self.kind, filters, cache_key, callback, order)

    async def subscribe_where(
        self,
        field_name: str,
        value: Any,
        callback: OnChange,
        order: Optional[Order] = None,
    ) -> Unsubscribe:
        """Live query on ``field_name == value``, keyed per field and value."""
        return await self.client.subscribe_where(self.kind, field_name, value, callback, order)
