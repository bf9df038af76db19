"""
Database models package.

All models must be imported here so that Alembic can discover
them through Base.metadata when generating migrations.
"""

from tuition_settlement.models.base import Base
from tuition_settlement.models.enums import (
    Role,
    PostStatus,
    ApplicationStatus,
    ModerationDecision,
    ApplicationDecision,
)
from tuition_settlement.models.tuition_post import TuitionPost
from tuition_settlement.models.application import Application
from tuition_settlement.models.payment_record import PaymentRecord

__all__ = [
    "Base",
    "Role",
    "PostStatus",
    "ApplicationStatus",
    "ModerationDecision",
    "ApplicationDecision",
    "TuitionPost",
    "Application",
    "PaymentRecord",
]
