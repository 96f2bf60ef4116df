"""
Base protocol and errors for remote document stores.

This module defines the RemoteStore protocol every backend implements, along
with the errors backends raise.

Invariants:
    - Documents cross the protocol as flat mappings carrying ``id``,
      ``createdAt`` and ``updatedAt`` next to the kind's fields
    - The store assigns ids and timestamps; callers never supply them
    - ``watch`` yields the full current result set of the query, first
      immediately and then after every change

How to change safely:
    - Protocol changes require updating all implementations
    - Transient errors must stay subclasses of RemoteUnavailableError or
      RemoteTimeoutError so the connection tracker notices them
"""

from __future__ import annotations

import asyncio
from abc import abstractmethod
from typing import (
    Any,
    AsyncIterator,
    Dict,
    List,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    runtime_checkable,
)

from ..query import Filter, Order

RemoteDoc = Dict[str, Any]


class RemoteError(Exception):
    """Base exception for remote store operations."""

    pass


class RemoteUnavailableError(RemoteError):
    """Remote store could not be reached."""

    pass


class RemoteTimeoutError(RemoteError):
    """Remote store did not answer in time."""

    pass


def is_transient(exc: BaseException) -> bool:
    """Whether ``exc`` means the store is unreachable rather than refusing."""
    return isinstance(exc, (RemoteUnavailableError, RemoteTimeoutError, asyncio.TimeoutError))


@runtime_checkable
class RemoteStore(Protocol):
    """Protocol for remote document store backends.

    Example:
        >>> store = InMemoryRemoteStore()
        >>> await store.connect()
        >>> doc = await store.create_doc("lead", {"subject": "Math"})
        >>> doc["id"]
    """

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection.

        Raises:
            RemoteUnavailableError: If the store cannot be reached
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release resources."""
        ...

    @abstractmethod
    async def ping(self) -> None:
        """Cheap reachability probe.

        Raises:
            RemoteError: If the store is unreachable
        """
        ...

    @abstractmethod
    async def create_doc(self, kind: str, data: Dict[str, Any]) -> RemoteDoc:
        """Create a document and return it with id and timestamps."""
        ...

    @abstractmethod
    async def get_doc(self, kind: str, doc_id: str) -> Optional[RemoteDoc]:
        """Read one document. Returns None if it does not exist."""
        ...

    @abstractmethod
    async def update_doc(self, kind: str, doc_id: str, fields: Dict[str, Any]) -> RemoteDoc:
        """Overlay ``fields`` on a document and return the stored result.

        Raises:
            RemoteError: If the document does not exist
        """
        ...

    @abstractmethod
    async def delete_doc(self, kind: str, doc_id: str) -> None:
        """Delete a document."""
        ...

    @abstractmethod
    async def query(
        self,
        kind: str,
        filters: Sequence[Filter] = (),
        order: Optional[Order] = None,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> Tuple[List[RemoteDoc], Optional[str]]:
        """Run a filtered, ordered, paginated query.

        ``cursor`` is the opaque value returned with the previous page.

        Returns:
            Tuple of (documents, next_cursor); next_cursor is None on the
            last page
        """
        ...

    @abstractmethod
    def watch(
        self,
        kind: str,
        filters: Sequence[Filter] = (),
        order: Optional[Order] = None,
    ) -> AsyncIterator[List[RemoteDoc]]:
        """Change-feed for a query.

        Yields the current result set immediately, then again after every
        change that may affect it. Raises from the iterator when the feed
        breaks.
        """
        ...
