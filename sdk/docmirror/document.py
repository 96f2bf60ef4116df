"""
Document model.

A ``Document`` is one record of an entity kind as held by the remote store:
a server-assigned ``id``, the kind's fields and the server timestamps.

On the wire (remote backends, cache snapshots) a document is a flat mapping
with ``id``, ``createdAt`` and ``updatedAt`` next to the kind's own fields.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from .schema import SYSTEM_FIELDS


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a remote timestamp.

    Accepts datetimes, ISO-8601 strings (a trailing ``Z`` included) and epoch
    seconds. Naive values are taken as UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        parsed = datetime.fromtimestamp(value, tz=timezone.utc)
    elif isinstance(value, str):
        parsed = datetime.fromisoformat(value.strip())
    else:
        raise ValueError(f"Unsupported timestamp value: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class Document:
    """A document of an entity kind.

    Attributes:
        kind: Entity kind name
        id: Identifier assigned by the remote store; never changes
        data: Field values (system fields excluded)
        created_at: Server creation time
        updated_at: Server time of the last mutation

    Example:
        >>> doc = Document.from_remote("lead", {"id": "abc", "status": "open"})
        >>> doc["status"]
        'open'
    """

    kind: str
    id: str
    data: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_remote(cls, kind: str, raw: Mapping[str, Any]) -> Document:
        """Build a document from a remote store mapping.

        Raises:
            ValueError: If the mapping has no ``id``
        """
        doc_id = raw.get("id")
        if not doc_id:
            raise ValueError(f"Remote {kind} document has no id")
        return cls(
            kind=kind,
            id=str(doc_id),
            data={k: v for k, v in raw.items() if k not in SYSTEM_FIELDS},
            created_at=parse_timestamp(raw.get("createdAt")),
            updated_at=parse_timestamp(raw.get("updatedAt")),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Flat mapping with system fields, as exposed to callers."""
        result: Dict[str, Any] = {"id": self.id}
        result.update(self.data)
        result["createdAt"] = self.created_at.isoformat() if self.created_at else None
        result["updatedAt"] = self.updated_at.isoformat() if self.updated_at else None
        return result

    def merged(self, partial: Mapping[str, Any], updated_at: Optional[datetime] = None) -> Document:
        """Return a copy with ``partial`` overlaid on the current fields."""
        data = dict(self.data)
        data.update(partial)
        return Document(
            kind=self.kind,
            id=self.id,
            data=data,
            created_at=self.created_at,
            updated_at=updated_at or datetime.now(timezone.utc),
        )

    def get(self, name: str, default: Any = None) -> Any:
        """Get a field value."""
        return self.data.get(name, default)

    def __getitem__(self, name: str) -> Any:
        return self.data[name]

    def __contains__(self, name: object) -> bool:
        return name in self.data
