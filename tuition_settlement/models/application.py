"""
Application model.

A tutor's bid against a tuition post. The (post_id, tutor_id)
unique constraint is what stops a tutor applying twice: two
concurrent submissions race on the insert and the database lets
exactly one through.

Only settlement moves an application to APPROVED, and it does so
with a conditional UPDATE on the status column, never a
load-then-save.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    String, Text, Integer, DateTime, Numeric, ForeignKey,
    UniqueConstraint, Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tuition_settlement.models.base import Base
from tuition_settlement.models.enums import ApplicationStatus


class Application(Base):
    __tablename__ = "applications"
    __table_args__ = (
        UniqueConstraint("post_id", "tutor_id", name="uq_application_post_tutor"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    post_id: Mapped[int] = mapped_column(
        ForeignKey("tuition_posts.id"), nullable=False, index=True
    )
    tutor_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    # Terms offered by the tutor
    qualifications: Mapped[str] = mapped_column(Text, nullable=False)
    experience: Mapped[str] = mapped_column(Text, nullable=False)
    expected_price: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False
    )
    availability: Mapped[str] = mapped_column(String(200), nullable=False)
    note: Mapped[str] = mapped_column(Text, nullable=False, default="")

    status: Mapped[ApplicationStatus] = mapped_column(
        SAEnum(
            ApplicationStatus,
            name="application_status_enum",
            create_constraint=True,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=ApplicationStatus.PENDING,
        index=True,
    )
    # Both set iff status is APPROVED
    approved_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, default=None
    )
    payment_reference: Mapped[str | None] = mapped_column(
        String(100), nullable=True, default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    post: Mapped["TuitionPost"] = relationship(back_populates="applications")

    def __repr__(self) -> str:
        return (
            f"<Application {self.id} post={self.post_id} "
            f"tutor={self.tutor_id} ({self.status.value})>"
        )
