"""
Unit tests for the schema registry.

Tests cover:
- Kind registration
- Registry freezing
- Fingerprint generation
- Duplicate detection
- standardize and sanitize_partial
"""

import pytest

from sdk.docmirror.errors import UnknownFieldError, ValidationError
from sdk.docmirror.registry import (
    DuplicateRegistrationError,
    RegistryFrozenError,
    SchemaRegistry,
)
from sdk.docmirror.schema import KindDef, field
from sdk.docmirror.validate import INVALID_URL

Ticket = KindDef(
    name="ticket",
    fields=(
        field("title", "str", required=True, min_length=3, max_length=20),
        field("owner", "str", required=True, sanitizer="email", format="email"),
        field("status", "enum", enum_values=("open", "closed"), default="open"),
        field("tags", "list_str", max_items=3, default_factory=list),
        field("effort", "int", minimum=0, maximum=10, default=1),
        field("link", "str", sanitizer="url", format="url"),
    ),
)


class TestSchemaRegistry:
    """Tests for SchemaRegistry bookkeeping."""

    def test_register_kind(self):
        """Can register a kind."""
        registry = SchemaRegistry()
        registry.register(Ticket)

        assert registry.get("ticket") == Ticket
        assert "ticket" in registry
        assert list(registry.kinds()) == [Ticket]

    def test_duplicate_name_raises(self):
        """Registering a duplicate name raises error."""
        registry = SchemaRegistry()
        registry.register(Ticket)

        with pytest.raises(DuplicateRegistrationError, match="already registered"):
            registry.register(KindDef(name="ticket"))

    def test_freeze_registry(self):
        """Freezing returns a fingerprint."""
        registry = SchemaRegistry()
        registry.register(Ticket)

        fingerprint = registry.freeze()

        assert registry.frozen
        assert fingerprint.startswith("sha256:")
        assert registry.fingerprint == fingerprint

    def test_freeze_twice_raises(self):
        registry = SchemaRegistry()
        registry.freeze()

        with pytest.raises(RegistryFrozenError):
            registry.freeze()

    def test_register_after_freeze_raises(self):
        registry = SchemaRegistry()
        registry.freeze()

        with pytest.raises(RegistryFrozenError):
            registry.register(Ticket)

    def test_fingerprint_deterministic(self):
        """Same kinds give the same fingerprint regardless of order."""
        other = KindDef(name="other", fields=(field("x", "str"),))
        first = SchemaRegistry()
        first.register(Ticket)
        first.register(other)
        second = SchemaRegistry()
        second.register(other)
        second.register(Ticket)

        assert first.freeze() == second.freeze()

    def test_fingerprint_changes_with_schema(self):
        first = SchemaRegistry()
        first.register(Ticket)
        second = SchemaRegistry()
        second.register(KindDef(name="ticket", fields=(field("title", "str"),)))

        assert first.freeze() != second.freeze()

    def test_to_json(self):
        registry = SchemaRegistry()
        registry.register(Ticket)

        assert '"ticket"' in registry.to_json()


class TestStandardize:
    """Tests for SchemaRegistry.standardize."""

    @pytest.fixture
    def registry(self):
        registry = SchemaRegistry()
        registry.register(Ticket)
        return registry

    def test_sanitizes_and_fills_defaults(self, registry):
        result = registry.standardize(
            "ticket",
            {"title": "  Broken <b>login</b>  ", "owner": " Dev@Example.COM "},
        )

        assert result == {
            "title": "Broken blogin/b",
            "owner": "dev@example.com",
            "status": "open",
            "tags": [],
            "effort": 1,
            "link": None,
        }

    def test_idempotent(self, registry):
        raw = {
            "title": "Printer on fire",
            "owner": "OPS@example.com",
            "tags": ["hw", "", "urgent", "x", "y"],
            "effort": 42,
            "link": " https://example.com/t/1 ",
        }
        once = registry.standardize("ticket", raw)
        twice = registry.standardize("ticket", once)

        assert once == twice
        assert once["tags"] == ["hw", "urgent", "x"]
        assert once["effort"] == 10

    def test_system_fields_ignored(self, registry):
        result = registry.standardize(
            "ticket",
            {"id": "abc", "createdAt": "x", "title": "Valid title", "owner": "a@b.co"},
        )

        assert "id" not in result
        assert "createdAt" not in result

    def test_missing_required_field(self, registry):
        with pytest.raises(ValidationError) as exc_info:
            registry.standardize("ticket", {"title": "Valid title"})

        assert exc_info.value.kind == "ticket"
        assert exc_info.value.field_name == "owner"
        assert exc_info.value.reason == "is required"

    def test_enum_rejected(self, registry):
        with pytest.raises(ValidationError) as exc_info:
            registry.standardize(
                "ticket", {"title": "Valid title", "owner": "a@b.co", "status": "lost"}
            )

        assert exc_info.value.field_name == "status"

    def test_unknown_field_rejected(self, registry):
        with pytest.raises(UnknownFieldError) as exc_info:
            registry.standardize(
                "ticket", {"title": "Valid title", "owner": "a@b.co", "titel": "x"}
            )

        assert "title" in exc_info.value.suggestions

    def test_bad_url_rejected_not_blanked(self, registry):
        with pytest.raises(ValidationError) as exc_info:
            registry.standardize(
                "ticket",
                {"title": "Valid title", "owner": "a@b.co", "link": "javascript:alert(1)"},
            )

        assert exc_info.value.field_name == "link"
        assert exc_info.value.reason == INVALID_URL

    def test_non_mapping_rejected(self, registry):
        with pytest.raises(ValidationError):
            registry.standardize("ticket", ["not", "a", "dict"])

    def test_unregistered_kind_passes_through(self, registry):
        result = registry.standardize("notes", {"body": " <hi> ", "n": 3})

        assert result == {"body": "hi", "n": 3}

    def test_strict_registry_rejects_unknown_kind(self):
        registry = SchemaRegistry(strict=True)

        with pytest.raises(ValidationError, match="Unknown entity kind"):
            registry.standardize("notes", {"body": "hi"})

    def test_global_string_cap(self):
        registry = SchemaRegistry(max_string_length=5)
        registry.register(KindDef(name="memo", fields=(field("body", "str"),)))

        assert registry.standardize("memo", {"body": "abcdefghij"}) == {"body": "abcde"}


class TestSanitizePartial:
    """Tests for SchemaRegistry.sanitize_partial."""

    @pytest.fixture
    def registry(self):
        registry = SchemaRegistry()
        registry.register(Ticket)
        return registry

    def test_only_given_fields(self, registry):
        result = registry.sanitize_partial("ticket", {"status": " closed "})

        assert result == {"status": "closed"}

    def test_no_required_checks(self, registry):
        assert registry.sanitize_partial("ticket", {"title": "x"}) == {"title": "x"}

    def test_coerces_and_clamps(self, registry):
        assert registry.sanitize_partial("ticket", {"effort": "99"}) == {"effort": 10}

    def test_strips_system_fields(self, registry):
        result = registry.sanitize_partial("ticket", {"id": "other", "updatedAt": 1, "title": "ok"})

        assert result == {"title": "ok"}

    def test_uncoercible_value_raises(self, registry):
        with pytest.raises(ValidationError) as exc_info:
            registry.sanitize_partial("ticket", {"effort": "lots"})

        assert exc_info.value.field_name == "effort"

    def test_undeclared_fields_get_generic_sanitizing(self, registry):
        assert registry.sanitize_partial("ticket", {"extra": " <x> "}) == {"extra": "x"}
