"""
Portal Enums

All enum types used throughout the examination portal.
Values must match exactly with database constraints in schema.sql.
"""

from enum import Enum

# ════════════════════════════════════════════════════════════════════════════
# Identity Enums
# ════════════════════════════════════════════════════════════════════════════


class Role(str, Enum):
    """Actor role, assigned out-of-band (no self-service elevation)."""

    STUDENT = "student"
    ADMIN = "admin"  # Department-scoped administrator
    SUPER_ADMIN = "super_admin"  # Escalation tier, no department


ADMIN_ROLES = frozenset({Role.ADMIN, Role.SUPER_ADMIN})


# ════════════════════════════════════════════════════════════════════════════
# Request Enums
# ════════════════════════════════════════════════════════════════════════════


class RequestStatus(str, Enum):
    """Examination request lifecycle status."""

    PENDING = "pending"  # Initial
    RESOLVED = "resolved"  # Terminal
    ESCALATED = "escalated"  # Handed to super-admin tier
    TERMINATED = "terminated"  # Terminal


class RequestType(str, Enum):
    """Kind of examination-support request."""

    EXAM_ISSUE = "exam_issue"
    CLARIFICATION = "clarification"
    RESCHEDULE = "reschedule"
    GRADE_DISPUTE = "grade_dispute"
    OTHER = "other"


class Priority(str, Enum):
    """Request priority chosen by the student."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ResponseType(str, Enum):
    """Audit response kind, one per non-pending transition."""

    RESOLUTION = "resolution"
    ESCALATION = "escalation"
    TERMINATION = "termination"


# ════════════════════════════════════════════════════════════════════════════
# Notification Enums
# ════════════════════════════════════════════════════════════════════════════


class NotificationStatus(str, Enum):
    """Notification delivery status."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class EmailType(str, Enum):
    """Notification event types."""

    REQUEST_RESOLVED = "request_resolved"
    REQUEST_ESCALATED = "request_escalated"
    REQUEST_TERMINATED = "request_terminated"


# ════════════════════════════════════════════════════════════════════════════
# Storage Enums
# ════════════════════════════════════════════════════════════════════════════


class StorageArea(str, Enum):
    """Blob store areas (one container each)."""

    REQUEST_ATTACHMENTS = "request-attachments"
    REQUEST_RESPONSES = "request-responses"
    AVATARS = "avatars"


# Transition target -> (audit response type, notification email type)
TRANSITION_OUTCOMES = {
    RequestStatus.RESOLVED: (ResponseType.RESOLUTION, EmailType.REQUEST_RESOLVED),
    RequestStatus.ESCALATED: (ResponseType.ESCALATION, EmailType.REQUEST_ESCALATED),
    RequestStatus.TERMINATED: (ResponseType.TERMINATION, EmailType.REQUEST_TERMINATED),
}
