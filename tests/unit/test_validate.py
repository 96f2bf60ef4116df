"""
Unit tests for payload validation.

Tests cover:
- Field type validation
- Required field checking
- Unknown field detection with suggestions
- Enum, email, phone and URL format checks
- Type coercion for partial updates
"""

import pytest

from sdk.docmirror.errors import UnknownFieldError, ValidationError
from sdk.docmirror.schema import FieldKind, KindDef, field
from sdk.docmirror.validate import (
    INVALID_URL,
    coerce_value,
    sanitize_field_value,
    suggest_fields,
    validate_or_raise,
    validate_payload,
)


@pytest.fixture
def contact_kind():
    """Contact kind for testing."""
    return KindDef(
        name="contact",
        fields=(
            field("email", "str", required=True, format="email", sanitizer="email"),
            field("name", "str", min_length=2),
            field("age", "int"),
            field("score", "float"),
            field("active", "bool"),
            field("seenAt", "timestamp"),
            field("status", "enum", enum_values=("active", "inactive", "pending")),
            field("tags", "list_str"),
            field("history", "list_obj"),
            field("phone", "str", format="phone", sanitizer="phone"),
            field("website", "str", format="url", sanitizer="url"),
        ),
    )


class TestPayloadValidation:
    """Tests for validate_payload."""

    def test_valid_payload(self, contact_kind):
        """Valid payload passes validation."""
        is_valid, errors = validate_payload(
            contact_kind,
            {
                "email": "test@example.com",
                "name": "Test User",
            },
        )
        assert is_valid
        assert len(errors) == 0

    def test_required_field_missing(self, contact_kind):
        """Missing required field fails."""
        is_valid, errors = validate_payload(contact_kind, {"name": "Test User"})
        assert not is_valid
        assert any("email" in e and "required" in e for e in errors)

    def test_empty_string_counts_as_missing(self, contact_kind):
        """An empty required string is treated as absent."""
        is_valid, errors = validate_payload(contact_kind, {"email": ""})
        assert not is_valid
        assert any("required" in e for e in errors)

    def test_unknown_field_detected(self, contact_kind):
        """Unknown field is reported."""
        is_valid, errors = validate_payload(
            contact_kind,
            {
                "email": "test@example.com",
                "unknown_field": "value",
            },
        )
        assert not is_valid
        assert any("unknown_field" in e.lower() for e in errors)

    def test_string_type_validation(self, contact_kind):
        """String field rejects non-string."""
        is_valid, errors = validate_payload(contact_kind, {"email": 123})
        assert not is_valid
        assert any("string" in e for e in errors)

    def test_min_length(self, contact_kind):
        """Strings shorter than min_length fail."""
        is_valid, errors = validate_payload(
            contact_kind, {"email": "test@example.com", "name": "A"}
        )
        assert not is_valid
        assert any("at least 2" in e for e in errors)

    def test_integer_rejects_bool(self, contact_kind):
        """Integer field rejects bool."""
        is_valid, errors = validate_payload(
            contact_kind, {"email": "test@example.com", "age": True}
        )
        assert not is_valid
        assert any("integer" in e for e in errors)

    def test_float_accepts_int(self, contact_kind):
        """Float field accepts integers."""
        is_valid, _ = validate_payload(contact_kind, {"email": "test@example.com", "score": 3})
        assert is_valid

    def test_boolean_type_validation(self, contact_kind):
        """Boolean field rejects strings."""
        is_valid, errors = validate_payload(
            contact_kind, {"email": "test@example.com", "active": "yes"}
        )
        assert not is_valid
        assert any("boolean" in e for e in errors)

    def test_timestamp_validation(self, contact_kind):
        """Timestamp must be ISO-8601 text."""
        ok, _ = validate_payload(
            contact_kind, {"email": "test@example.com", "seenAt": "2024-05-01T10:00:00+00:00"}
        )
        bad, errors = validate_payload(
            contact_kind, {"email": "test@example.com", "seenAt": "yesterday"}
        )
        assert ok
        assert not bad
        assert any("ISO-8601" in e for e in errors)

    def test_enum_validation(self, contact_kind):
        """Enum field rejects values outside the allowed set."""
        is_valid, errors = validate_payload(
            contact_kind, {"email": "test@example.com", "status": "deleted"}
        )
        assert not is_valid
        assert any("must be one of" in e for e in errors)

    def test_email_format(self, contact_kind):
        """Malformed email is rejected."""
        is_valid, errors = validate_payload(contact_kind, {"email": "not-an-email"})
        assert not is_valid
        assert any("invalid email" in e for e in errors)

    def test_phone_format(self, contact_kind):
        """Phone numbers are checked after removing separators."""
        ok, _ = validate_payload(
            contact_kind, {"email": "test@example.com", "phone": "+1 (555) 123-4567"}
        )
        bad, errors = validate_payload(
            contact_kind, {"email": "test@example.com", "phone": "0000"}
        )
        assert ok
        assert not bad
        assert any("phone" in e for e in errors)

    def test_url_format(self, contact_kind):
        """Only http(s) URLs pass."""
        bad, errors = validate_payload(
            contact_kind, {"email": "test@example.com", "website": "ftp://example.com"}
        )
        assert not bad
        assert any(INVALID_URL in e for e in errors)

    def test_list_string_validation(self, contact_kind):
        """List of strings rejects other item types."""
        is_valid, errors = validate_payload(
            contact_kind, {"email": "test@example.com", "tags": ["a", 2]}
        )
        assert not is_valid
        assert any("item [1]" in e for e in errors)

    def test_list_object_validation(self, contact_kind):
        """List of objects rejects scalar items."""
        is_valid, errors = validate_payload(
            contact_kind, {"email": "test@example.com", "history": [{"a": 1}, "b"]}
        )
        assert not is_valid
        assert any("object" in e for e in errors)


class TestValidateOrRaise:
    """Tests for validate_or_raise."""

    def test_valid_payload_no_raise(self, contact_kind):
        validate_or_raise(contact_kind, {"email": "test@example.com"})

    def test_unknown_field_raises_specific_error(self, contact_kind):
        """Unknown fields raise UnknownFieldError with suggestions."""
        with pytest.raises(UnknownFieldError) as exc_info:
            validate_or_raise(contact_kind, {"email": "test@example.com", "naem": "X"})

        assert exc_info.value.field_name == "naem"
        assert "name" in exc_info.value.suggestions
        assert isinstance(exc_info.value, ValidationError)

    def test_validation_failure_raises(self, contact_kind):
        """Invalid payload raises ValidationError naming the field."""
        with pytest.raises(ValidationError) as exc_info:
            validate_or_raise(contact_kind, {"name": "Test"})

        assert exc_info.value.field_name == "email"
        assert exc_info.value.reason == "is required"
        assert exc_info.value.kind == "contact"


class TestSanitizeFieldValue:
    """Tests for per-field sanitizing."""

    def test_field_cap_below_global_cap(self):
        f = field("title", "str", max_length=5)
        assert sanitize_field_value(f, "abcdefgh", max_string_length=100) == "abcde"

    def test_global_cap_below_field_cap(self):
        f = field("title", "str", max_length=500)
        assert sanitize_field_value(f, "x" * 50, max_string_length=10) == "x" * 10

    def test_numbers_clamped(self):
        f = field("pct", "float", minimum=0, maximum=100)
        assert sanitize_field_value(f, 150) == 100
        assert sanitize_field_value(f, -3) == 0

    def test_list_capped_and_items_scrubbed(self):
        f = field("notes", "list_str", max_items=2, item_max_length=3)
        assert sanitize_field_value(f, ["<abcd>", "", "ok", "more"]) == ["abc", "ok"]

    def test_none_passes_through(self):
        assert sanitize_field_value(field("title", "str"), None) is None


class TestCoerceValue:
    """Tests for coerce_value."""

    def test_string_to_int(self):
        assert coerce_value(field("n", "int"), " 42 ") == 42

    def test_integral_float_to_int(self):
        assert coerce_value(field("n", "int"), 3.0) == 3

    def test_bad_int_raises(self):
        with pytest.raises(ValueError):
            coerce_value(field("n", "int"), "many")

    def test_bool_from_text(self):
        assert coerce_value(field("b", "bool"), "true") is True
        assert coerce_value(field("b", "bool"), "no") is False

    def test_number_to_string(self):
        assert coerce_value(field("s", "str"), 12) == "12"

    def test_scalar_to_list(self):
        assert coerce_value(field("tags", "list_str"), "one") == ["one"]

    def test_kind_of_field(self):
        assert field("tags", "list_str").kind == FieldKind.LIST_STRING


class TestSuggestFields:
    """Tests for suggest_fields."""

    def test_exact_prefix_match(self, contact_kind):
        assert "status" in suggest_fields("sta", contact_kind)

    def test_fuzzy_match(self, contact_kind):
        assert "email" in suggest_fields("emial", contact_kind)

    def test_respects_limit(self, contact_kind):
        assert len(suggest_fields("s", contact_kind, limit=1)) <= 1
