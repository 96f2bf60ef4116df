"""
Error types for docmirror.

This module defines every exception the data-access layer raises to callers:
- DocMirrorError: Base exception
- ValidationError: Input failed schema checks
- UnknownFieldError: Input carries a field the kind does not define
- RateLimitExceeded: Actor exceeded its request window
- DocumentNotFound: Target document does not exist
- RemoteWriteError / RemoteReadError: Remote store call failed
- SubscriptionError: Change-feed could not be opened or broke

Invariants:
    - All errors inherit from DocMirrorError
    - Errors include context for debugging in ``details``
    - Remote errors keep the underlying failure as ``__cause__``
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class DocMirrorError(Exception):
    """Base exception for all docmirror errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "DOCMIRROR_ERROR"
        self.details = details or {}


class ValidationError(DocMirrorError):
    """Input failed validation for an entity kind.

    Raised when:
    - Required field is missing or empty
    - Field value has the wrong type
    - Value fails a format check (email, phone, url, enum, minimum length)

    Attributes:
        kind: Entity kind being validated
        field_name: First offending field
        reason: Why that field was rejected
        errors: Every error found, in field order
    """

    def __init__(
        self,
        message: str,
        kind: Optional[str] = None,
        field_name: Optional[str] = None,
        reason: Optional[str] = None,
        errors: Optional[List[str]] = None,
    ) -> None:
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={
                "kind": kind,
                "field": field_name,
                "reason": reason,
                "errors": errors or [],
            },
        )
        self.kind = kind
        self.field_name = field_name
        self.reason = reason
        self.errors = errors or []


class UnknownFieldError(ValidationError):
    """Unknown field in input.

    Includes suggestions for similar field names.
    """

    def __init__(
        self,
        field_name: str,
        kind: str,
        suggestions: Optional[List[str]] = None,
    ) -> None:
        suggestions = suggestions or []
        msg = f"Unknown field '{field_name}' in kind '{kind}'"
        if suggestions:
            msg += f". Did you mean: {', '.join(suggestions)}?"

        super().__init__(
            msg,
            kind=kind,
            field_name=field_name,
            reason="unknown field",
            errors=[msg],
        )
        self.code = "UNKNOWN_FIELD"
        self.details["suggestions"] = suggestions
        self.suggestions = suggestions


class RateLimitExceeded(DocMirrorError):
    """Actor made too many requests inside the trailing window.

    Callers must back off; the layer never retries on their behalf.
    """

    def __init__(
        self,
        actor_id: str,
        limit: int,
        window_seconds: float,
    ) -> None:
        super().__init__(
            f"Rate limit exceeded for '{actor_id}': "
            f"{limit} requests per {window_seconds:g}s. Please try again later.",
            code="RATE_LIMITED",
            details={
                "actor_id": actor_id,
                "limit": limit,
                "window_seconds": window_seconds,
            },
        )
        self.actor_id = actor_id
        self.limit = limit
        self.window_seconds = window_seconds


class DocumentNotFound(DocMirrorError):
    """Document does not exist in the remote store."""

    def __init__(self, kind: str, document_id: str) -> None:
        super().__init__(
            f"Document not found: {kind}/{document_id}",
            code="NOT_FOUND",
            details={"kind": kind, "document_id": document_id},
        )
        self.kind = kind
        self.document_id = document_id


class RemoteOperationError(DocMirrorError):
    """A remote store call failed.

    Attributes:
        operation: Facade operation that issued the call (create, get, ...)
        kind: Entity kind involved
        transient: Whether the failure was a connectivity problem
    """

    def __init__(
        self,
        message: str,
        operation: str,
        kind: str,
        transient: bool = False,
        code: str = "REMOTE_ERROR",
    ) -> None:
        super().__init__(
            f"Failed to {operation} {kind}: {message}",
            code=code,
            details={"operation": operation, "kind": kind, "transient": transient},
        )
        self.operation = operation
        self.kind = kind
        self.transient = transient


class RemoteWriteError(RemoteOperationError):
    """A create, update or delete could not be completed remotely.

    Always surfaced; writes are never retried to avoid duplicate mutations.
    """

    def __init__(self, message: str, operation: str, kind: str, transient: bool = False) -> None:
        super().__init__(message, operation, kind, transient, code="REMOTE_WRITE_ERROR")


class RemoteReadError(RemoteOperationError):
    """A read failed and the mirror cache had nothing to answer with."""

    def __init__(self, message: str, operation: str, kind: str, transient: bool = False) -> None:
        super().__init__(message, operation, kind, transient, code="REMOTE_READ_ERROR")


class SubscriptionError(DocMirrorError):
    """A change-feed could not be opened or failed mid-stream.

    Never raised to callers of ``subscribe``; it is logged and the callback
    receives an empty or cached result instead.
    """

    def __init__(self, message: str, cache_key: str, kind: str) -> None:
        super().__init__(
            message,
            code="SUBSCRIPTION_ERROR",
            details={"cache_key": cache_key, "kind": kind},
        )
        self.cache_key = cache_key
        self.kind = kind
