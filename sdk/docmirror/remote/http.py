"""
HTTP remote store adapter.

Talks to a JSON document service over REST using ``httpx.AsyncClient``:

    POST   /{kind}            create, body is the document fields
    GET    /{kind}/{id}       read (404 when absent)
    PATCH  /{kind}/{id}       overlay fields
    DELETE /{kind}/{id}       delete
    POST   /{kind}:query      {"filters", "order", "limit", "cursor"}
                              -> {"documents": [...], "next_cursor": ...}
    GET    /_health           reachability probe

The service has no push channel, so ``watch`` polls the query endpoint and
yields whenever the result set changes.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple

import httpx

from ..query import Filter, Order
from .base import RemoteDoc, RemoteError, RemoteTimeoutError, RemoteUnavailableError

logger = logging.getLogger(__name__)


class HttpRemoteStore:
    """RemoteStore over HTTP.

    Args:
        base_url: Service root, e.g. ``https://docs.example.com/v1``
        client: Pre-built client (tests pass one with a mock transport)
        poll_interval: Seconds between change-feed polls
        headers: Extra headers for every request
    """

    def __init__(
        self,
        base_url: str,
        client: Optional[httpx.AsyncClient] = None,
        poll_interval: float = 2.0,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.poll_interval = poll_interval
        self._headers = headers or {}
        self._client = client
        self._owns_client = client is None

    @property
    def is_connected(self) -> bool:
        """Whether an HTTP client is open."""
        return self._client is not None

    async def connect(self) -> None:
        """Open the HTTP client and probe the service."""
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, headers=self._headers)
        await self.ping()
        logger.info("Connected to remote store", extra={"base_url": self.base_url})

    async def close(self) -> None:
        """Close the HTTP client if this adapter created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Optional[httpx.Response]:
        """Send a request and map failures to remote errors.

        Returns None for 404.
        """
        if self._client is None:
            raise RemoteUnavailableError("Not connected")
        try:
            response = await self._client.request(method, path, json=payload)
        except httpx.TimeoutException as e:
            raise RemoteTimeoutError(f"{method} {path} timed out") from e
        except httpx.TransportError as e:
            raise RemoteUnavailableError(f"{method} {path} failed: {e}") from e

        if response.status_code == 404:
            return None
        if response.status_code >= 500:
            raise RemoteUnavailableError(f"{method} {path} returned {response.status_code}")
        if response.status_code >= 400:
            raise RemoteError(f"{method} {path} returned {response.status_code}: {response.text}")
        return response

    async def ping(self) -> None:
        """Probe ``/_health``."""
        response = await self._request("GET", "/_health")
        if response is None:
            raise RemoteUnavailableError("Health endpoint not found")

    async def create_doc(self, kind: str, data: Dict[str, Any]) -> RemoteDoc:
        """Create a document."""
        response = await self._request("POST", f"/{kind}", data)
        if response is None:
            raise RemoteError(f"Unknown kind '{kind}'")
        return response.json()

    async def get_doc(self, kind: str, doc_id: str) -> Optional[RemoteDoc]:
        """Read one document."""
        response = await self._request("GET", f"/{kind}/{doc_id}")
        return response.json() if response is not None else None

    async def update_doc(self, kind: str, doc_id: str, fields: Dict[str, Any]) -> RemoteDoc:
        """Overlay fields on a document."""
        response = await self._request("PATCH", f"/{kind}/{doc_id}", fields)
        if response is None:
            raise RemoteError(f"No document {kind}/{doc_id}")
        return response.json()

    async def delete_doc(self, kind: str, doc_id: str) -> None:
        """Delete a document; a 404 is not an error."""
        await self._request("DELETE", f"/{kind}/{doc_id}")

    async def query(
        self,
        kind: str,
        filters: Sequence[Filter] = (),
        order: Optional[Order] = None,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> Tuple[List[RemoteDoc], Optional[str]]:
        """Run a query on the service."""
        body: Dict[str, Any] = {
            "filters": [f.to_dict() for f in filters],
            "order": order.to_dict() if order is not None else None,
            "limit": limit,
            "cursor": cursor,
        }
        response = await self._request("POST", f"/{kind}:query", body)
        if response is None:
            return [], None
        payload = response.json()
        return payload.get("documents", []), payload.get("next_cursor")

    async def watch(
        self,
        kind: str,
        filters: Sequence[Filter] = (),
        order: Optional[Order] = None,
    ) -> AsyncIterator[List[RemoteDoc]]:
        """Poll the query and yield whenever its result changes."""
        last_digest: Optional[str] = None
        while True:
            documents, _ = await self.query(kind, filters, order)
            digest = json.dumps(documents, sort_keys=True, default=str)
            if digest != last_digest:
                last_digest = digest
                yield documents
            await asyncio.sleep(self.poll_interval)
