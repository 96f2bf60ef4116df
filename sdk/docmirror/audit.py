"""
Audit log writer.

Every successful mutation produces an ``AuditRecord`` that is written to the
remote store as a document of the audit kind. Recording never blocks and
never fails the mutation: records go onto a bounded queue drained by a
background task, a full queue drops the record, and sink failures are logged
and discarded.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .remote.base import RemoteStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditRecord:
    """One mutation of one document.

    Attributes:
        action: create, update or delete
        kind: Entity kind of the mutated document
        document_id: Id of the mutated document
        actor: Who made the change, if known
        timestamp: When the mutation was applied
        before: Field values before the change (update, delete)
        after: Field values after the change (create, update)
    """

    action: str
    kind: str
    document_id: str
    actor: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the stored document shape."""
        return {
            "action": self.action,
            "collection": self.kind,
            "documentId": self.document_id,
            "userId": self.actor,
            "timestamp": self.timestamp.isoformat(),
            "before": self.before,
            "after": self.after,
        }


class AuditLogWriter:
    """Fire-and-forget audit sink.

    Call ``start()`` inside a running event loop to begin draining. Records
    queued before ``start()`` are kept and written once it runs.

    Example:
        >>> writer = AuditLogWriter(store)
        >>> writer.start()
        >>> writer.record(AuditRecord("create", "lead", "abc", actor="u1"))
        >>> await writer.close()
    """

    def __init__(
        self,
        remote: RemoteStore,
        kind: str = "audit_logs",
        queue_size: int = 1000,
        timeout: float = 10.0,
    ) -> None:
        self._remote = remote
        self.kind = kind
        self.timeout = timeout
        self._queue: asyncio.Queue[AuditRecord] = asyncio.Queue(maxsize=queue_size)
        self._task: Optional[asyncio.Task] = None
        self.written = 0
        self.dropped = 0
        self.failed = 0

    @property
    def pending(self) -> int:
        """Records waiting to be written."""
        return self._queue.qsize()

    def record(self, record: AuditRecord) -> bool:
        """Queue a record. Returns False if it was dropped."""
        try:
            self._queue.put_nowait(record)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "Audit queue full, dropping record",
                extra={"action": record.action, "kind": record.kind, "id": record.document_id},
            )
            return False
        return True

    def start(self) -> None:
        """Start the background drain task."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._drain(), name="docmirror-audit")

    async def _write(self, record: AuditRecord) -> None:
        try:
            await asyncio.wait_for(
                self._remote.create_doc(self.kind, record.to_dict()),
                timeout=self.timeout,
            )
            self.written += 1
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.failed += 1
            logger.warning(
                "Failed to write audit record",
                extra={"action": record.action, "kind": record.kind, "error": str(e)},
            )

    async def _drain(self) -> None:
        while True:
            record = await self._queue.get()
            try:
                await self._write(record)
            finally:
                self._queue.task_done()

    async def flush(self) -> None:
        """Write every queued record now."""
        while not self._queue.empty():
            record = self._queue.get_nowait()
            try:
                await self._write(record)
            finally:
                self._queue.task_done()

    async def close(self) -> None:
        """Stop the drain task after writing what is queued."""
        if self._task is not None:
            if not self._task.done():
                try:
                    await asyncio.wait_for(self._queue.join(), timeout=self.timeout)
                except asyncio.TimeoutError:
                    logger.warning("Audit queue not drained before close", extra={"pending": self.pending})
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        await self.flush()
