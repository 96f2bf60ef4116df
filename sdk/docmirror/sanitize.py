"""
Field sanitizers.

Every sanitizer is idempotent: feeding its output back in returns the same
value. ``standardize`` relies on that to be idempotent itself.

Non-string input is returned unchanged so that type validation, not
sanitization, decides what to do with it.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Callable, Optional
from urllib.parse import urlparse

DEFAULT_MAX_STRING_LENGTH = 10000
MAX_EMAIL_LENGTH = 254
MAX_PHONE_LENGTH = 20
MAX_URL_LENGTH = 500

_ANGLE_BRACKETS = re.compile(r"[<>]")
_SCRIPT_PREFIXES = re.compile(r"(?:javascript|vbscript|data):", re.IGNORECASE)
_EVENT_HANDLERS = re.compile(r"on\w+=", re.IGNORECASE)
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_PHONE_DISALLOWED = re.compile(r"[^\d+\-\s()]")


def sanitize_text(value: Any, max_length: int = DEFAULT_MAX_STRING_LENGTH) -> Any:
    """Scrub free text.

    Trims, removes angle brackets, script-like protocol prefixes, inline event
    handler fragments and control characters, then caps the length. Repeats
    until stable so that removals cannot splice a new match together.
    """
    if not isinstance(value, str):
        return value
    text = value
    while True:
        cleaned = _ANGLE_BRACKETS.sub("", text)
        cleaned = _SCRIPT_PREFIXES.sub("", cleaned)
        cleaned = _EVENT_HANDLERS.sub("", cleaned)
        cleaned = _CONTROL_CHARS.sub("", cleaned)
        cleaned = cleaned.strip()[:max_length].strip()
        if cleaned == text:
            return cleaned
        text = cleaned


def sanitize_plain(value: Any, max_length: int = DEFAULT_MAX_STRING_LENGTH) -> Any:
    """Trim and cap identifiers and other non-prose strings."""
    if not isinstance(value, str):
        return value
    return value.strip()[:max_length].strip()


def sanitize_email(value: Any, max_length: int = MAX_EMAIL_LENGTH) -> Any:
    """Lowercase, trim and cap an email address."""
    if not isinstance(value, str):
        return value
    return value.lower().strip()[: min(max_length, MAX_EMAIL_LENGTH)].strip()


def sanitize_phone(value: Any, max_length: int = MAX_PHONE_LENGTH) -> Any:
    """Keep digits, ``+``, ``-``, spaces and parentheses."""
    if not isinstance(value, str):
        return value
    return _PHONE_DISALLOWED.sub("", value).strip()[: min(max_length, MAX_PHONE_LENGTH)].strip()


def sanitize_url(value: Any, max_length: int = MAX_URL_LENGTH) -> Any:
    """Keep http(s) URLs only; anything else becomes an empty string."""
    if not isinstance(value, str):
        return value
    candidate = value.strip()[: min(max_length, MAX_URL_LENGTH)].strip()
    try:
        parsed = urlparse(candidate)
    except ValueError:
        return ""
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return ""
    return candidate


def sanitize_timestamp(value: Any) -> Any:
    """Normalize datetimes and ISO-8601 strings to ``isoformat()`` text."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip()).isoformat()
        except ValueError:
            return value
    return value


def sanitize_list(
    value: Any,
    item_sanitizer: Optional[Callable[[Any], Any]],
    max_items: int,
) -> Any:
    """Sanitize every item, drop empty ones and cap the list length."""
    if not isinstance(value, (list, tuple)):
        return value
    items = []
    for item in value:
        if item_sanitizer is not None:
            item = item_sanitizer(item)
        if item is None or item == "":
            continue
        items.append(item)
    return items[:max_items]


def clamp(value: Any, minimum: Optional[float] = None, maximum: Optional[float] = None) -> Any:
    """Clamp a number into ``[minimum, maximum]``. Booleans are left alone."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return value
    if minimum is not None and value < minimum:
        return type(value)(minimum)
    if maximum is not None and value > maximum:
        return type(value)(maximum)
    return value
