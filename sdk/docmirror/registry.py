"""
Schema registry for docmirror.

This module maps entity-kind names to their ``KindDef`` and turns raw caller
input into stored documents:
- Registering kinds (new kinds are added by registration, not by editing code)
- ``standardize``: sanitize, default-fill and validate a full payload
- ``sanitize_partial``: coerce and sanitize only the fields of an update
- Schema fingerprinting

The registry is an explicit instance owned by its client; there is no global.

Example:
    >>> registry = SchemaRegistry()
    >>> registry.register(Lead)
    >>> clean = registry.standardize("lead", {"studentEmail": " A@B.COM ", ...})
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from collections.abc import Iterator, Mapping
from typing import Any

from .errors import ValidationError
from .sanitize import DEFAULT_MAX_STRING_LENGTH
from .schema import SYSTEM_FIELDS, KindDef, Sanitizer
from .validate import (
    INVALID_URL,
    coerce_value,
    collect_issues,
    sanitize_field_value,
    sanitize_unknown_value,
    validate_or_raise,
)

logger = logging.getLogger(__name__)


class RegistryFrozenError(Exception):
    """Registry is frozen and cannot be modified."""

    pass


class DuplicateRegistrationError(Exception):
    """A kind with this name is already registered."""

    pass


class SchemaRegistry:
    """Kind-name to ``KindDef`` table plus the standardize pipeline.

    Kinds that were never registered are passed through with generic string
    and list capping only, unless the registry is ``strict``.

    Example:
        >>> registry = SchemaRegistry(max_string_length=5000)
        >>> registry.register(Lead)
        >>> registry.freeze()
    """

    def __init__(
        self,
        *,
        max_string_length: int = DEFAULT_MAX_STRING_LENGTH,
        max_array_length: int = 100,
        strict: bool = False,
    ) -> None:
        """Initialize empty registry.

        Args:
            max_string_length: Global ceiling for any string value
            max_array_length: Global ceiling for any list value
            strict: Reject kinds that are not registered
        """
        self.max_string_length = max_string_length
        self.max_array_length = max_array_length
        self.strict = strict
        self._kinds: dict[str, KindDef] = {}
        self._frozen = False
        self._fingerprint: str | None = None
        self._lock = threading.Lock()

    @property
    def frozen(self) -> bool:
        """Whether registry is frozen."""
        return self._frozen

    @property
    def fingerprint(self) -> str | None:
        """Schema fingerprint (available after freeze)."""
        return self._fingerprint

    def register(self, kind_def: KindDef) -> None:
        """Register an entity kind.

        Raises:
            RegistryFrozenError: If registry is frozen
            DuplicateRegistrationError: If the name is already registered
        """
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError("Cannot register: registry is frozen")

            if kind_def.name in self._kinds:
                raise DuplicateRegistrationError(f"kind '{kind_def.name}' already registered")

            self._kinds[kind_def.name] = kind_def

    def get(self, name: str) -> KindDef | None:
        """Get kind by name."""
        return self._kinds.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._kinds

    def kinds(self) -> Iterator[KindDef]:
        """Iterate over all kinds."""
        yield from self._kinds.values()

    def freeze(self) -> str:
        """Freeze registry and compute fingerprint.

        Raises:
            RegistryFrozenError: If already frozen
        """
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError("Registry is already frozen")

            self._fingerprint = self._compute_fingerprint()
            self._frozen = True
            return self._fingerprint

    def _compute_fingerprint(self) -> str:
        """Compute SHA-256 fingerprint."""
        canonical = json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))
        hash_bytes = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
        return f"sha256:{hash_bytes}"

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {"kinds": [self._kinds[name].to_dict() for name in sorted(self._kinds)]}

    def to_json(self, indent: int | None = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)

    def _require_kind(self, kind: str) -> KindDef | None:
        kind_def = self._kinds.get(kind)
        if kind_def is None and self.strict:
            raise ValidationError(
                f"Unknown entity kind '{kind}'",
                kind=kind,
                reason="unknown kind",
                errors=[f"Unknown entity kind '{kind}'"],
            )
        return kind_def

    @staticmethod
    def _require_mapping(kind: str, raw: Any) -> Mapping[str, Any]:
        if not isinstance(raw, Mapping):
            reason = f"input must be a mapping, got {type(raw).__name__}"
            raise ValidationError(
                f"Validation failed for {kind}: {reason}",
                kind=kind,
                reason=reason,
                errors=[reason],
            )
        return raw

    def standardize(self, kind: str, raw: Mapping[str, Any]) -> dict[str, Any]:
        """Turn raw input into a storable payload for ``kind``.

        Sanitizes every field, fills defaults for missing optional fields and
        validates the result. System fields in the input are ignored.
        Idempotent: standardizing an already standardized payload returns it
        unchanged.

        Raises:
            ValidationError: If a required field is missing or a value fails
                a type or format check
            UnknownFieldError: If the input has a field the kind does not define
        """
        raw = self._require_mapping(kind, raw)
        kind_def = self._require_kind(kind)
        data = {key: value for key, value in raw.items() if key not in SYSTEM_FIELDS}

        if kind_def is None:
            return {
                key: sanitize_unknown_value(value, self.max_string_length, self.max_array_length)
                for key, value in data.items()
            }

        known = set(kind_def.get_field_names())
        unknown = {key: value for key, value in data.items() if key not in known}
        if unknown:
            # Raises UnknownFieldError with suggestions
            validate_or_raise(kind_def, unknown)

        result: dict[str, Any] = {}
        rejected_urls: list[str] = []
        for field_def in kind_def.fields:
            value = sanitize_field_value(
                field_def,
                data.get(field_def.name),
                self.max_string_length,
                self.max_array_length,
            )
            if (
                field_def.sanitizer == Sanitizer.URL
                and isinstance(data.get(field_def.name), str)
                and data[field_def.name].strip()
                and value == ""
            ):
                rejected_urls.append(field_def.name)
            if value is None or value == "":
                value = field_def.make_default()
            result[field_def.name] = value

        issues = [(name, INVALID_URL) for name in rejected_urls]
        issues += [issue for issue in collect_issues(kind_def, result) if issue[0] not in rejected_urls]
        if issues:
            errors = [f"Field '{name}' {reason}" for name, reason in issues]
            field_name, reason = issues[0]
            logger.debug(
                "Rejected input",
                extra={"kind": kind, "field": field_name, "reason": reason},
            )
            raise ValidationError(
                f"Validation failed for {kind}: {'; '.join(errors)}",
                kind=kind,
                field_name=field_name,
                reason=reason,
                errors=errors,
            )

        return result

    def sanitize_partial(self, kind: str, partial: Mapping[str, Any]) -> dict[str, Any]:
        """Coerce and sanitize only the provided fields of an update.

        No required-field, enum or format checks are made. System fields are
        dropped; fields the kind does not declare get generic sanitization.

        Raises:
            ValidationError: If a value cannot be coerced to its field's type
        """
        partial = self._require_mapping(kind, partial)
        kind_def = self._require_kind(kind)
        result: dict[str, Any] = {}

        for key, value in partial.items():
            if key in SYSTEM_FIELDS:
                continue

            field_def = kind_def.get_field(key) if kind_def is not None else None
            if field_def is None:
                result[key] = sanitize_unknown_value(
                    value, self.max_string_length, self.max_array_length
                )
                continue

            try:
                value = coerce_value(field_def, value)
            except ValueError as e:
                raise ValidationError(
                    f"Validation failed for {kind}: field '{key}' {e}",
                    kind=kind,
                    field_name=key,
                    reason=str(e),
                    errors=[f"Field '{key}' {e}"],
                ) from e

            result[key] = sanitize_field_value(
                field_def, value, self.max_string_length, self.max_array_length
            )

        return result
