"""
Built-in entity kinds.

These are the kinds the data-access layer ships with: tutoring leads,
tutor/partner applications, event registrations, user profiles, job postings,
job applications and hackathons. ``default_registry()`` returns a fresh
registry with all of them registered.
"""

from __future__ import annotations

from datetime import datetime, timezone

from .registry import SchemaRegistry
from .sanitize import DEFAULT_MAX_STRING_LENGTH
from .schema import FieldDef, KindDef, field

PRIORITIES = ("low", "medium", "high")
REVIEW_STATUSES = ("pending", "approved", "rejected")
USER_ROLES = (
    "student",
    "freelancer",
    "tutor",
    "team_leader",
    "manager",
    "vertical_head",
    "admin",
    "bda",
    "sales",
)


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def _email(name: str, *, required: bool = False) -> FieldDef:
    return field(name, "str", required=required, max_length=254, sanitizer="email", format="email")


def _phone(name: str) -> FieldDef:
    return field(name, "str", max_length=20, sanitizer="phone", format="phone")


def _url(name: str) -> FieldDef:
    return field(name, "str", max_length=500, sanitizer="url", format="url")


def _tags(name: str, max_items: int, item_max_length: int) -> FieldDef:
    return field(
        name, "list_str", max_items=max_items, item_max_length=item_max_length, default_factory=list
    )


LEAD = KindDef(
    name="lead",
    description="A student's request for tutoring or a tech consultation",
    fields=(
        field("ticketNumber", "str", required=True, max_length=50, sanitizer="plain"),
        field(
            "type",
            "enum",
            enum_values=("tutor_request", "tech_consultation"),
            default="tutor_request",
        ),
        field("studentId", "str", required=True, max_length=128, sanitizer="plain"),
        field("studentName", "str", required=True, min_length=2, max_length=100),
        _email("studentEmail", required=True),
        _phone("studentPhone"),
        field("doubtDescription", "str", required=True, min_length=10, max_length=2000),
        field("subject", "str", required=True, max_length=200),
        field("tutorType", "enum", enum_values=("instant", "scheduled")),
        field("scheduledDate", "str", max_length=50, sanitizer="plain"),
        field("scheduledTime", "str", max_length=50, sanitizer="plain"),
        field("projectTitle", "str", max_length=200),
        field("projectDescription", "str", max_length=2000),
        field("techStack", "str", max_length=200),
        field("projectType", "str", max_length=100),
        field("timeline", "str", max_length=100),
        field("budget", "str", max_length=100),
        field("experience", "str", max_length=1000),
        field("specificHelp", "str", max_length=2000),
        field(
            "urgencyLevel",
            "enum",
            enum_values=("low", "medium", "high", "urgent"),
            default="medium",
        ),
        field(
            "status",
            "enum",
            enum_values=("open", "assigned", "in_progress", "resolved", "closed"),
            default="open",
        ),
        field("priority", "enum", enum_values=PRIORITIES, default="medium"),
        field("assignedTo", "str", max_length=254, sanitizer="email"),
        field("assignedBy", "str", max_length=100),
        _tags("notes", max_items=50, item_max_length=1000),
        field("source", "str", max_length=100, default="Website"),
        field("value", "float", minimum=0, maximum=1_000_000, default=0),
        field("conversionProbability", "float", minimum=0, maximum=100, default=50),
        field("history", "list_obj", max_items=100, default_factory=list),
    ),
)

APPLICATION = KindDef(
    name="application",
    description="Tutor, partnership or event-partnership application",
    fields=(
        field(
            "type",
            "enum",
            enum_values=("tutor_application", "partnership_application", "event_partnership"),
            default="tutor_application",
        ),
        field("name", "str", min_length=2, max_length=100),
        field("organizationName", "str", min_length=2, max_length=200),
        field("contactName", "str", max_length=100),
        _email("email", required=True),
        _phone("phone"),
        _url("website"),
        field("status", "enum", enum_values=REVIEW_STATUSES, default="pending"),
        field("submittedAt", "timestamp", default_factory=utc_now_iso),
        _tags("skills", max_items=20, item_max_length=50),
        field("experience", "str", max_length=1000),
        field("hourlyRate", "str", max_length=50, sanitizer="plain"),
        field("bio", "str", max_length=2000),
        field("education", "str", max_length=1000),
        _tags("availability", max_items=20, item_max_length=100),
        _tags("languages", max_items=20, item_max_length=50),
        field("partnershipType", "str", max_length=100),
        field("eventType", "str", max_length=100),
        field("targetAudience", "str", max_length=200),
        field("estimatedAttendees", "str", max_length=50, sanitizer="plain"),
        field("eventFrequency", "str", max_length=100),
        field("budget", "str", max_length=100),
        field("message", "str", max_length=2000),
        field("priority", "enum", enum_values=PRIORITIES, default="medium"),
        field("reviewedBy", "str", max_length=100, sanitizer="plain"),
        field("reviewNotes", "str", max_length=2000),
        field("description", "str", max_length=2000),
        field("expectedAttendees", "str", max_length=50, sanitizer="plain"),
    ),
)

EVENT_REGISTRATION = KindDef(
    name="event_registration",
    description="A person's registration for an event",
    fields=(
        field("name", "str", required=True, min_length=2, max_length=100),
        _email("email", required=True),
        _phone("phone"),
        field("eventId", "str", required=True, max_length=128, sanitizer="plain"),
        field("eventTitle", "str", required=True, max_length=200),
        field("eventType", "str", required=True, max_length=100),
        field("registrationDate", "timestamp", default_factory=utc_now_iso),
        field("status", "enum", enum_values=REVIEW_STATUSES, default="pending"),
        field("institution", "str", max_length=200),
        field("additionalInfo", "str", max_length=1000),
        field("approvedBy", "str", max_length=100, sanitizer="plain"),
        field("approvalDate", "timestamp"),
        field("rejectionReason", "str", max_length=1000),
    ),
)

USER = KindDef(
    name="user",
    description="User profile with role-specific counters",
    fields=(
        field("uid", "str", required=True, max_length=128, sanitizer="plain"),
        _email("email", required=True),
        field("displayName", "str", required=True, min_length=2, max_length=100),
        field("role", "enum", enum_values=USER_ROLES, default="student"),
        _phone("phone"),
        _tags("skills", max_items=20, item_max_length=50),
        field("institution", "str", max_length=200),
        field("lastLoginAt", "timestamp"),
        field("isActive", "bool", default=True),
        field("profileComplete", "bool", default=False),
        _tags("ticketNumbers", max_items=100, item_max_length=50),
        field("teamId", "str", max_length=50, sanitizer="plain"),
        field("assignedLeads", "int", minimum=0, maximum=10000, default=0),
        field("convertedLeads", "int", minimum=0, maximum=10000, default=0),
        field("totalEarnings", "float", minimum=0, maximum=10_000_000, default=0),
        field("rating", "float", minimum=0, maximum=5),
        field("totalSessions", "int", minimum=0, maximum=1_000_000, default=0),
        _tags("availability", max_items=20, item_max_length=100),
        _tags("languages", max_items=20, item_max_length=50),
        field("hourlyRate", "float", minimum=0, maximum=100_000),
        field("bio", "str", max_length=2000),
        field("education", "str", max_length=1000),
        field("experience", "str", max_length=1000),
    ),
)

JOB_APPLICATION = KindDef(
    name="job_application",
    description="Application to a posted job",
    fields=(
        field("jobTitle", "str", required=True, max_length=200),
        field("jobId", "str", required=True, max_length=128, sanitizer="plain"),
        field("applicantName", "str", required=True, min_length=2, max_length=100),
        _email("applicantEmail", required=True),
        _phone("applicantPhone"),
        field("coverLetter", "str", required=True, min_length=50, max_length=5000),
        _url("resumeLink"),
        field("experience", "str", max_length=1000),
        _tags("skills", max_items=20, item_max_length=50),
        field(
            "status",
            "enum",
            enum_values=("pending", "reviewed", "shortlisted", "rejected", "hired"),
            default="pending",
        ),
        field("submittedAt", "timestamp", default_factory=utc_now_iso),
        field("priority", "enum", enum_values=PRIORITIES, default="medium"),
    ),
)

JOB = KindDef(
    name="job",
    description="Job posting",
    fields=(
        field("title", "str", required=True, max_length=200),
        field("department", "str", required=True, max_length=100),
        field("location", "str", required=True, max_length=100),
        field(
            "type",
            "enum",
            required=True,
            enum_values=("Full-time", "Part-time", "Contract", "Internship"),
        ),
        field("experience", "str", max_length=100, default=""),
        field("salary", "str", max_length=100, default=""),
        field("description", "str", required=True, min_length=50, max_length=5000),
        _tags("requirements", max_items=20, item_max_length=500),
        _tags("benefits", max_items=20, item_max_length=200),
        field("posted", "str", max_length=50, sanitizer="plain", default=""),
        field("status", "enum", enum_values=("active", "inactive", "closed"), default="active"),
        field("authorId", "str", required=True, max_length=128, sanitizer="plain"),
    ),
)

HACKATHON = KindDef(
    name="hackathon",
    description="Hackathon listing",
    fields=(
        field("title", "str", required=True, max_length=200),
        field("description", "str", required=True, min_length=10, max_length=1000),
        field("content", "str", required=True, min_length=50, max_length=10000),
        _tags("tags", max_items=20, item_max_length=50),
        _url("thumbnail"),
        field("visibility", "enum", required=True, enum_values=("public", "private")),
        field(
            "status",
            "enum",
            enum_values=("draft", "published", "ongoing", "completed"),
            default="draft",
        ),
        field("startDate", "timestamp"),
        field("endDate", "timestamp"),
        field("registrationDeadline", "timestamp"),
        field("maxParticipants", "int", minimum=1, maximum=10000),
        _tags("prizes", max_items=10, item_max_length=200),
        _tags("requirements", max_items=20, item_max_length=500),
        field("authorId", "str", required=True, max_length=128, sanitizer="plain"),
        field("authorName", "str", required=True, max_length=100),
    ),
)

BUILTIN_KINDS: tuple[KindDef, ...] = (
    LEAD,
    APPLICATION,
    EVENT_REGISTRATION,
    USER,
    JOB_APPLICATION,
    JOB,
    HACKATHON,
)


def default_registry(
    *,
    max_string_length: int = DEFAULT_MAX_STRING_LENGTH,
    max_array_length: int = 100,
    strict: bool = False,
) -> SchemaRegistry:
    """Create a registry with every built-in kind registered."""
    registry = SchemaRegistry(
        max_string_length=max_string_length,
        max_array_length=max_array_length,
        strict=strict,
    )
    for kind_def in BUILTIN_KINDS:
        registry.register(kind_def)
    return registry
