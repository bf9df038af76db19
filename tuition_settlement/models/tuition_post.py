"""
Tuition post model.

A student's posted request for a paid tutor. Posts start PENDING,
are opened (APPROVED) or REJECTED by a moderator, and are CLOSED
only by settlement, when exactly one application has been paid for.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    String, Text, Integer, DateTime, Numeric,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tuition_settlement.models.base import Base
from tuition_settlement.models.enums import PostStatus


# Valid state transitions — the source of truth for the state machine.
# CLOSED is reachable only through settlement (TuitionPostRegistry.close).
VALID_TRANSITIONS: dict[PostStatus, set[PostStatus]] = {
    PostStatus.PENDING: {PostStatus.APPROVED, PostStatus.REJECTED},
    PostStatus.APPROVED: {PostStatus.REJECTED, PostStatus.CLOSED},
    PostStatus.REJECTED: {PostStatus.APPROVED},
    PostStatus.CLOSED: set(),  # Terminal state — no transitions out
}


class TuitionPost(Base):
    __tablename__ = "tuition_posts"

    id: Mapped[int] = mapped_column(primary_key=True)
    # Users live in an external registry; only their ids are stored
    owner_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    subject: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    class_level: Mapped[str] = mapped_column(String(50), nullable=False)
    location: Mapped[str] = mapped_column(String(200), nullable=False)
    budget_min: Mapped[Decimal] = mapped_column(Numeric(19, 4), nullable=False)
    budget_max: Mapped[Decimal] = mapped_column(Numeric(19, 4), nullable=False)
    schedule: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[PostStatus] = mapped_column(
        SAEnum(
            PostStatus,
            name="post_status_enum",
            create_constraint=True,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=PostStatus.PENDING,
        index=True,
    )
    # Display only. Nothing relies on it for correctness.
    application_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    assigned_tutor_id: Mapped[int | None] = mapped_column(
        Integer, nullable=True, default=None
    )
    closed_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    applications: Mapped[list["Application"]] = relationship(
        back_populates="post"
    )

    def can_transition_to(self, new_status: PostStatus) -> bool:
        """Check if a state transition is valid."""
        return new_status in VALID_TRANSITIONS.get(self.status, set())

    def __repr__(self) -> str:
        return f"<TuitionPost {self.id} {self.subject} ({self.status.value})>"
