"""
Schema types for docmirror.

This module provides the definitions entity kinds are built from:
- FieldKind: Supported value types
- Sanitizer: How string values are scrubbed before validation
- FieldDef: Individual field definition with defaults and limits
- KindDef: Definition of an entity kind

Invariants:
    - Field names are unique within a kind
    - ENUM fields always carry their allowed values
    - System fields (id, createdAt, updatedAt) are never part of a kind

Example:
    >>> Lead = KindDef(
    ...     name="lead",
    ...     fields=(
    ...         field("studentEmail", "str", required=True, sanitizer="email", format="email"),
    ...         field("status", "enum", enum_values=("open", "closed"), default="open"),
    ...     ),
    ... )
"""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field as dataclass_field
from enum import Enum
from typing import Any, Callable

SYSTEM_FIELDS = ("id", "createdAt", "updatedAt")

FORMATS = ("email", "phone", "url")


class FieldKind(Enum):
    """Supported field types."""

    STRING = "str"
    INTEGER = "int"
    FLOAT = "float"
    BOOLEAN = "bool"
    TIMESTAMP = "timestamp"
    ENUM = "enum"
    LIST_STRING = "list_str"
    LIST_OBJECT = "list_obj"

    @classmethod
    def from_str(cls, value: str) -> FieldKind:
        """Convert string to FieldKind."""
        for kind in cls:
            if kind.value == value:
                return kind
        raise ValueError(f"Invalid field kind: {value}")


class Sanitizer(Enum):
    """String scrubbing applied to a field before validation."""

    TEXT = "text"
    PLAIN = "plain"
    EMAIL = "email"
    PHONE = "phone"
    URL = "url"

    @classmethod
    def from_str(cls, value: str) -> Sanitizer:
        """Convert string to Sanitizer."""
        for sanitizer in cls:
            if sanitizer.value == value:
                return sanitizer
        raise ValueError(f"Invalid sanitizer: {value}")


@dataclass(frozen=True)
class FieldDef:
    """Field definition within an entity kind.

    Attributes:
        name: Field name as stored in the document
        kind: Data type
        required: Whether the field must be present and non-empty
        default: Default value for a missing optional field
        default_factory: Callable producing the default (lists, timestamps)
        enum_values: Valid values for enum type
        min_length: Minimum string length
        max_length: Maximum string length (capped, not rejected)
        max_items: Maximum list length (capped, not rejected)
        item_max_length: Maximum length of each list item
        minimum: Lower clamp for numbers
        maximum: Upper clamp for numbers
        sanitizer: How string values are scrubbed
        format: Format check applied after sanitizing (email, phone, url)
        description: Documentation
    """

    name: str
    kind: FieldKind
    required: bool = False
    default: Any = None
    default_factory: Callable[[], Any] | None = None
    enum_values: tuple[str, ...] | None = None
    min_length: int | None = None
    max_length: int | None = None
    max_items: int | None = None
    item_max_length: int | None = None
    minimum: float | None = None
    maximum: float | None = None
    sanitizer: Sanitizer = Sanitizer.TEXT
    format: str | None = None
    description: str = ""

    def __post_init__(self) -> None:
        """Validate field definition."""
        if not self.name:
            raise ValueError("Field name cannot be empty")
        if self.name in SYSTEM_FIELDS:
            raise ValueError(f"'{self.name}' is a system field and cannot be declared")
        if self.kind == FieldKind.ENUM and not self.enum_values:
            raise ValueError(f"enum_values required for ENUM field '{self.name}'")
        if self.format is not None and self.format not in FORMATS:
            raise ValueError(f"Invalid format '{self.format}' for field '{self.name}'")
        if self.default is not None and self.default_factory is not None:
            raise ValueError(f"Field '{self.name}' cannot have both default and default_factory")
        if (
            self.minimum is not None
            and self.maximum is not None
            and self.minimum > self.maximum
        ):
            raise ValueError(f"minimum exceeds maximum for field '{self.name}'")

    def make_default(self) -> Any:
        """Produce the default value for a missing field."""
        if self.default_factory is not None:
            return self.default_factory()
        return self.default

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result: dict[str, Any] = {
            "name": self.name,
            "kind": self.kind.value,
        }
        if self.required:
            result["required"] = True
        if self.default is not None:
            result["default"] = self.default
        if self.enum_values:
            result["enum_values"] = list(self.enum_values)
        for attr in (
            "min_length",
            "max_length",
            "max_items",
            "item_max_length",
            "minimum",
            "maximum",
            "format",
        ):
            value = getattr(self, attr)
            if value is not None:
                result[attr] = value
        if self.kind in (FieldKind.STRING, FieldKind.LIST_STRING):
            result["sanitizer"] = self.sanitizer.value
        if self.description:
            result["description"] = self.description
        return result


def field(
    name: str,
    kind: str | FieldKind,
    *,
    required: bool = False,
    default: Any = None,
    default_factory: Callable[[], Any] | None = None,
    enum_values: tuple[str, ...] | None = None,
    min_length: int | None = None,
    max_length: int | None = None,
    max_items: int | None = None,
    item_max_length: int | None = None,
    minimum: float | None = None,
    maximum: float | None = None,
    sanitizer: str | Sanitizer = Sanitizer.TEXT,
    format: str | None = None,
    description: str = "",
) -> FieldDef:
    """Convenience function to create a FieldDef.

    Example:
        >>> email = field("email", "str", required=True, sanitizer="email", format="email")
        >>> status = field("status", "enum", enum_values=("open", "closed"), default="open")
    """
    if isinstance(kind, str):
        kind = FieldKind.from_str(kind)
    if isinstance(sanitizer, str):
        sanitizer = Sanitizer.from_str(sanitizer)
    return FieldDef(
        name=name,
        kind=kind,
        required=required,
        default=default,
        default_factory=default_factory,
        enum_values=enum_values,
        min_length=min_length,
        max_length=max_length,
        max_items=max_items,
        item_max_length=item_max_length,
        minimum=minimum,
        maximum=maximum,
        sanitizer=sanitizer,
        format=format,
        description=description,
    )


@dataclass(frozen=True)
class KindDef:
    """Definition of an entity kind.

    Attributes:
        name: Kind name, also the remote collection name
        fields: Tuple of field definitions
        description: Documentation
    """

    name: str
    fields: tuple[FieldDef, ...] = dataclass_field(default_factory=tuple)
    description: str = ""

    def __post_init__(self) -> None:
        """Validate kind definition."""
        if not self.name:
            raise ValueError("Kind name cannot be empty")

        names = [f.name for f in self.fields]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate field name in kind '{self.name}'")

    def get_field(self, name: str) -> FieldDef | None:
        """Get field by name."""
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def get_field_names(self) -> list[str]:
        """Get list of field names."""
        return [f.name for f in self.fields]

    def required_fields(self) -> list[str]:
        """Names of required fields."""
        return [f.name for f in self.fields if f.required]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "fields": [f.to_dict() for f in self.fields],
            "description": self.description,
        }

    def __hash__(self) -> int:
        return hash(self.name)
