"""
docmirror - resilient data-access layer for remote document stores.

This package sits between application code and a remote document store:
- Entity kinds with sanitizing, default-filling validation (KindDef, field)
- Per-actor rate limiting of writes
- A local mirror cache that answers reads while the store is unreachable
- Live query subscriptions multiplexed by cache key
- A fire-and-forget audit trail of every mutation

Example:
    >>> from docmirror import DocumentClient, InMemoryRemoteStore
    >>>
    >>> async with DocumentClient(InMemoryRemoteStore()) as db:
    ...     leads = db.for_kind("lead")
    ...     lead_id = await leads.create({...}, actor_id="user-1")
    ...     unsubscribe = await leads.subscribe_where("studentId", "s1", print)

Invariants:
    - Nothing is shared between clients; each owns its cache and limiter
    - Writes are never retried
    - Reads degrade to the cache instead of failing

Version: 1.0.0
"""

__version__ = "1.0.0"

from .client import ConnectionStatus, DocumentClient, KindService, Page
from .config import ClientSettings, setup_logging
from .document import Document
from .errors import (
    DocMirrorError,
    DocumentNotFound,
    RateLimitExceeded,
    RemoteOperationError,
    RemoteReadError,
    RemoteWriteError,
    SubscriptionError,
    UnknownFieldError,
    ValidationError,
)
from .kinds import BUILTIN_KINDS, default_registry
from .query import DEFAULT_ORDER, Filter, Order
from .registry import SchemaRegistry
from .remote import HttpRemoteStore, InMemoryRemoteStore, RemoteStore
from .schema import FieldDef, FieldKind, KindDef, Sanitizer, field

__all__ = [
    # Version
    "__version__",
    # Schema types
    "KindDef",
    "FieldDef",
    "FieldKind",
    "Sanitizer",
    "field",
    # Registry
    "SchemaRegistry",
    "default_registry",
    "BUILTIN_KINDS",
    # Queries
    "Filter",
    "Order",
    "DEFAULT_ORDER",
    # Client
    "DocumentClient",
    "KindService",
    "Document",
    "Page",
    "ConnectionStatus",
    "ClientSettings",
    "setup_logging",
    # Remote stores
    "RemoteStore",
    "InMemoryRemoteStore",
    "HttpRemoteStore",
    # Errors
    "DocMirrorError",
    "ValidationError",
    "UnknownFieldError",
    "RateLimitExceeded",
    "DocumentNotFound",
    "RemoteOperationError",
    "RemoteWriteError",
    "RemoteReadError",
    "SubscriptionError",
]
