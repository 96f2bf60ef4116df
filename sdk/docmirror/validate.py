"""
Payload sanitizing and validation for docmirror.

This module provides the per-field building blocks of ``standardize``:
- Field-level sanitization according to the field's sanitizer and limits
- Field-level validation (type, enum, format, minimum length)
- Payload validation against a kind with helpful error messages
- Type coercion for partial updates

Invariants:
    - Validation errors are deterministic and in field declaration order
    - Error messages include the field name and the reason
    - Unknown fields suggest similar valid fields
"""

from __future__ import annotations

import re
from datetime import datetime
from difflib import get_close_matches
from typing import Any, Dict, List, Optional, Tuple

from .errors import UnknownFieldError, ValidationError
from .sanitize import (
    DEFAULT_MAX_STRING_LENGTH,
    clamp,
    sanitize_email,
    sanitize_list,
    sanitize_phone,
    sanitize_plain,
    sanitize_text,
    sanitize_timestamp,
    sanitize_url,
)
from .schema import FieldDef, FieldKind, KindDef, Sanitizer

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_PHONE_RE = re.compile(r"^\+?[1-9]\d{0,15}$")
_PHONE_SEPARATORS = re.compile(r"[\s\-()]")

# Keys of objects stored in LIST_OBJECT fields are capped to this length
OBJECT_VALUE_MAX_LENGTH = 500

INVALID_URL = "invalid URL (http or https required)"

FieldIssue = Tuple[str, str]


def sanitize_string(
    value: Any,
    sanitizer: Sanitizer,
    max_length: int,
) -> Any:
    """Apply one sanitizer to a string value."""
    if sanitizer == Sanitizer.EMAIL:
        return sanitize_email(value, max_length)
    if sanitizer == Sanitizer.PHONE:
        return sanitize_phone(value, max_length)
    if sanitizer == Sanitizer.URL:
        return sanitize_url(value, max_length)
    if sanitizer == Sanitizer.PLAIN:
        return sanitize_plain(value, max_length)
    return sanitize_text(value, max_length)


def _sanitize_object(value: Any) -> Any:
    if not isinstance(value, dict):
        return value
    return {
        key: sanitize_text(item, OBJECT_VALUE_MAX_LENGTH) if isinstance(item, str) else item
        for key, item in value.items()
    }


def sanitize_field_value(
    field_def: FieldDef,
    value: Any,
    max_string_length: int = DEFAULT_MAX_STRING_LENGTH,
    max_array_length: int = 100,
) -> Any:
    """Sanitize a value for a declared field.

    String caps are the smaller of the field's ``max_length`` and the global
    ceiling; list caps likewise. Numbers are clamped into range.
    """
    if value is None:
        return None

    string_cap = min(field_def.max_length or max_string_length, max_string_length)
    kind = field_def.kind

    if kind == FieldKind.STRING:
        return sanitize_string(value, field_def.sanitizer, string_cap)

    if kind == FieldKind.ENUM:
        return sanitize_plain(value, string_cap)

    if kind == FieldKind.TIMESTAMP:
        return sanitize_timestamp(value)

    if kind in (FieldKind.INTEGER, FieldKind.FLOAT):
        return clamp(value, field_def.minimum, field_def.maximum)

    if kind == FieldKind.LIST_STRING:
        item_cap = min(field_def.item_max_length or max_string_length, max_string_length)
        list_cap = min(field_def.max_items or max_array_length, max_array_length)
        return sanitize_list(
            value,
            lambda item: sanitize_string(item, field_def.sanitizer, item_cap),
            list_cap,
        )

    if kind == FieldKind.LIST_OBJECT:
        list_cap = min(field_def.max_items or max_array_length, max_array_length)
        return sanitize_list(value, _sanitize_object, list_cap)

    return value


def sanitize_unknown_value(
    value: Any,
    max_string_length: int = DEFAULT_MAX_STRING_LENGTH,
    max_array_length: int = 100,
) -> Any:
    """Generic sanitization for values with no field definition."""
    if isinstance(value, str):
        return sanitize_text(value, max_string_length)
    if isinstance(value, (list, tuple)):
        return sanitize_list(
            value,
            lambda item: sanitize_text(item, max_string_length),
            max_array_length,
        )
    return value


def coerce_value(field_def: FieldDef, value: Any) -> Any:
    """Coerce a loosely typed value to the field's type.

    Used by partial updates, which skip full validation.

    Raises:
        ValueError: If the value cannot be coerced
    """
    if value is None:
        return None
    kind = field_def.kind

    if kind == FieldKind.INTEGER:
        if isinstance(value, bool):
            raise ValueError("expected an integer, got bool")
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            return int(value.strip())
        raise ValueError(f"expected an integer, got {type(value).__name__}")

    if kind == FieldKind.FLOAT:
        if isinstance(value, bool):
            raise ValueError("expected a number, got bool")
        if isinstance(value, (int, float)):
            return value
        if isinstance(value, str):
            return float(value.strip())
        raise ValueError(f"expected a number, got {type(value).__name__}")

    if kind == FieldKind.BOOLEAN:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "1", "yes"):
            return True
        if isinstance(value, str) and value.strip().lower() in ("false", "0", "no"):
            return False
        if isinstance(value, int):
            return bool(value)
        raise ValueError(f"expected a boolean, got {value!r}")

    if kind in (FieldKind.STRING, FieldKind.ENUM):
        if isinstance(value, str):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        raise ValueError(f"expected a string, got {type(value).__name__}")

    if kind == FieldKind.LIST_STRING:
        if isinstance(value, str):
            return [value]
        if isinstance(value, (list, tuple)):
            return [str(item) if isinstance(item, (int, float)) else item for item in value]
        raise ValueError(f"expected a list, got {type(value).__name__}")

    if kind == FieldKind.TIMESTAMP and isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value).astimezone().isoformat()

    return value


def _validate_field_value(field_def: FieldDef, value: Any) -> Optional[str]:
    """Validate a single sanitized, non-empty value.

    Returns error reason if invalid, None if valid.
    """
    kind = field_def.kind

    if kind in (FieldKind.STRING, FieldKind.ENUM):
        if not isinstance(value, str):
            return f"must be a string, got {type(value).__name__}"
        if kind == FieldKind.ENUM and field_def.enum_values and value not in field_def.enum_values:
            return f"must be one of {field_def.enum_values}, got '{value}'"
        if field_def.min_length is not None and len(value) < field_def.min_length:
            return f"must be at least {field_def.min_length} characters"
        if field_def.format == "email" and not _EMAIL_RE.match(value):
            return "invalid email format"
        if field_def.format == "phone" and not _PHONE_RE.match(_PHONE_SEPARATORS.sub("", value)):
            return "invalid phone number"
        if field_def.format == "url" and sanitize_url(value) != value:
            return INVALID_URL

    elif kind == FieldKind.INTEGER:
        if not isinstance(value, int) or isinstance(value, bool):
            return f"must be an integer, got {type(value).__name__}"

    elif kind == FieldKind.FLOAT:
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            return f"must be a number, got {type(value).__name__}"

    elif kind == FieldKind.BOOLEAN:
        if not isinstance(value, bool):
            return f"must be a boolean, got {type(value).__name__}"

    elif kind == FieldKind.TIMESTAMP:
        if not isinstance(value, str):
            return "must be an ISO-8601 timestamp"
        try:
            datetime.fromisoformat(value)
        except ValueError:
            return "must be an ISO-8601 timestamp"

    elif kind == FieldKind.LIST_STRING:
        if not isinstance(value, list):
            return f"must be a list, got {type(value).__name__}"
        for i, item in enumerate(value):
            if not isinstance(item, str):
                return f"item [{i}] must be a string"

    elif kind == FieldKind.LIST_OBJECT:
        if not isinstance(value, list):
            return f"must be a list, got {type(value).__name__}"
        for i, item in enumerate(value):
            if not isinstance(item, dict):
                return f"item [{i}] must be an object"

    return None


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def collect_issues(kind_def: KindDef, payload: Dict[str, Any]) -> List[FieldIssue]:
    """Validate a sanitized, default-filled payload.

    Returns:
        List of (field_name, reason) in field declaration order
    """
    issues: List[FieldIssue] = []

    known_fields = set(kind_def.get_field_names())
    for field_name in sorted(set(payload.keys()) - known_fields):
        issues.append((field_name, "unknown field"))

    for field_def in kind_def.fields:
        value = payload.get(field_def.name)

        if _is_empty(value):
            if field_def.required:
                issues.append((field_def.name, "is required"))
            continue

        reason = _validate_field_value(field_def, value)
        if reason:
            issues.append((field_def.name, reason))

    return issues


def validate_payload(
    kind_def: KindDef,
    payload: Dict[str, Any],
) -> Tuple[bool, List[str]]:
    """Validate payload against an entity kind.

    Args:
        kind_def: Kind to validate against
        payload: Payload to validate

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = [f"Field '{name}' {reason}" for name, reason in collect_issues(kind_def, payload)]
    return len(errors) == 0, errors


def validate_or_raise(
    kind_def: KindDef,
    payload: Dict[str, Any],
) -> None:
    """Validate payload and raise if invalid.

    Args:
        kind_def: Kind to validate against
        payload: Payload to validate

    Raises:
        UnknownFieldError: If unknown field is provided
        ValidationError: If validation fails
    """
    # Check unknown fields first (for better error messages)
    known_fields = kind_def.get_field_names()
    unknown = sorted(set(payload.keys()) - set(known_fields))

    if unknown:
        field_name = unknown[0]
        suggestions = get_close_matches(field_name, known_fields, n=3)
        raise UnknownFieldError(field_name, kind_def.name, suggestions)

    issues = collect_issues(kind_def, payload)
    if issues:
        errors = [f"Field '{name}' {reason}" for name, reason in issues]
        field_name, reason = issues[0]
        raise ValidationError(
            f"Validation failed for {kind_def.name}: {'; '.join(errors)}",
            kind=kind_def.name,
            field_name=field_name,
            reason=reason,
            errors=errors,
        )


def suggest_fields(
    partial: str,
    kind_def: KindDef,
    limit: int = 5,
) -> List[str]:
    """Suggest field names based on partial input.

    Args:
        partial: Partial field name
        kind_def: Kind to suggest from
        limit: Maximum suggestions

    Returns:
        List of suggested field names
    """
    known = kind_def.get_field_names()
    matches = get_close_matches(partial, known, n=limit)

    # Also include prefix matches
    prefix_matches = [n for n in known if n.lower().startswith(partial.lower())]

    # Combine and deduplicate
    all_matches = list(dict.fromkeys(matches + prefix_matches))
    return all_matches[:limit]
