"""
Query model shared by the facade, the cache fallback and remote backends.

A query is a tuple of ``Filter`` clauses (AND-ed together) plus an optional
``Order``. Ordering is always explicit: nothing here adds one on the caller's
behalf.

Example:
    >>> filters = [Filter("status", "==", "open")]
    >>> docs = apply_query(docs, filters, DEFAULT_ORDER)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Sequence

OPERATORS = ("==", "!=", "<", "<=", ">", ">=", "in", "not_in", "array_contains")


@dataclass(frozen=True)
class Filter:
    """A single ``field <op> value`` clause."""

    field: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        if self.op not in OPERATORS:
            raise ValueError(f"Unsupported filter operator '{self.op}'. Must be one of {OPERATORS}")
        if self.op in ("in", "not_in") and not isinstance(self.value, (list, tuple, set, frozenset)):
            raise ValueError(f"Operator '{self.op}' requires a list value")

    def matches(self, data: dict[str, Any]) -> bool:
        """Evaluate this clause against a document's fields."""
        if self.field not in data:
            return self.op in ("!=", "not_in")
        actual = data[self.field]
        if self.op == "==":
            return actual == self.value
        if self.op == "!=":
            return actual != self.value
        if self.op == "in":
            return actual in self.value
        if self.op == "not_in":
            return actual not in self.value
        if self.op == "array_contains":
            return isinstance(actual, list) and self.value in actual
        if actual is None:
            return False
        try:
            if self.op == "<":
                return actual < self.value
            if self.op == "<=":
                return actual <= self.value
            if self.op == ">":
                return actual > self.value
            return actual >= self.value
        except TypeError:
            return False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        value = list(self.value) if isinstance(self.value, (tuple, set, frozenset)) else self.value
        return {"field": self.field, "op": self.op, "value": value}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Filter:
        """Create from dictionary."""
        return cls(field=data["field"], op=data["op"], value=data["value"])


@dataclass(frozen=True)
class Order:
    """Sort specification on a single field."""

    field: str
    descending: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"field": self.field, "descending": self.descending}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Order:
        """Create from dictionary."""
        return cls(field=data["field"], descending=bool(data.get("descending", False)))


# Most recent first
DEFAULT_ORDER = Order("createdAt", descending=True)


def normalize_filters(filters: Iterable[Filter] | dict[str, Any] | None) -> tuple[Filter, ...]:
    """Accept filter clauses or an equality mapping.

    ``{"status": "open"}`` is shorthand for ``[Filter("status", "==", "open")]``.
    """
    if not filters:
        return ()
    if isinstance(filters, dict):
        return tuple(Filter(name, "==", value) for name, value in filters.items())
    clauses = tuple(filters)
    for clause in clauses:
        if not isinstance(clause, Filter):
            raise TypeError(f"Expected Filter, got {type(clause).__name__}")
    return clauses


def matches_all(data: dict[str, Any], filters: Sequence[Filter]) -> bool:
    """Whether every clause matches."""
    return all(f.matches(data) for f in filters)


def sort_value(value: Any) -> tuple:
    # Missing values sort first; mixed types group by type name
    if value is None:
        return (0, "", 0)
    return (1, type(value).__name__, value)


def sort_rows(rows: list[dict[str, Any]], order: Order | None) -> list[dict[str, Any]]:
    """Sort rows by the order's field. Stable; unordered when ``order`` is None."""
    if order is None:
        return list(rows)
    return sorted(rows, key=lambda row: sort_value(row.get(order.field)), reverse=order.descending)


def apply_query(
    rows: Iterable[dict[str, Any]],
    filters: Sequence[Filter],
    order: Order | None = None,
) -> list[dict[str, Any]]:
    """Filter then sort a collection of field mappings."""
    return sort_rows([row for row in rows if matches_all(row, filters)], order)
