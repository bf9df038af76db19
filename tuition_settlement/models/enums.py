"""
Shared enumerations for database models.

Using Python enums mapped to database enums ensures that
only valid statuses can be stored. A typo in a status is
caught by the database, not discovered in production data.
"""

import enum


class Role(str, enum.Enum):
    """Roles resolved by the upstream authentication layer."""
    STUDENT = "student"
    TUTOR = "tutor"
    ADMIN = "admin"


class PostStatus(str, enum.Enum):
    """Lifecycle of a tuition post. APPROVED means open for applications."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CLOSED = "closed"


class ApplicationStatus(str, enum.Enum):
    """CLOSED means superseded: a sibling application was hired."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CLOSED = "closed"


class ModerationDecision(str, enum.Enum):
    APPROVE = "approve"
    REJECT = "reject"


class ApplicationDecision(str, enum.Enum):
    APPROVE = "approve"
    REJECT = "reject"
