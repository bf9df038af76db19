"""
Payment record model — the settlement ledger.

One row per completed charge, keyed by the gateway's charge
reference. Records are written before any application or post is
touched, which makes this table the source of truth when a
settlement has to be reconciled.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    String, Integer, DateTime, Numeric, ForeignKey, event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tuition_settlement.models.base import Base


class PaymentRecord(Base):
    """
    An immutable ledger entry for a completed charge.

    Like any ledger, this table is append-only. The unique
    constraints on external_charge_reference and application_id
    are the idempotency guarantees: one record per charge, one
    record per hired application.
    """

    __tablename__ = "payment_records"

    id: Mapped[int] = mapped_column(primary_key=True)
    external_charge_reference: Mapped[str] = mapped_column(
        String(100), unique=True, nullable=False, index=True
    )
    application_id: Mapped[int] = mapped_column(
        ForeignKey("applications.id"), unique=True, nullable=False
    )
    post_id: Mapped[int] = mapped_column(
        ForeignKey("tuition_posts.id"), nullable=False, index=True
    )
    payer_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    payee_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False
    )
    currency: Mapped[str] = mapped_column(
        String(3), nullable=False
    )
    gateway_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    gateway_currency: Mapped[str] = mapped_column(
        String(3), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    application: Mapped["Application"] = relationship()

    def __repr__(self) -> str:
        return (
            f"<PaymentRecord {self.external_charge_reference} "
            f"{self.amount} {self.currency}>"
        )


# --- Append-only guards ---

@event.listens_for(PaymentRecord, "before_update")
def prevent_payment_record_update(mapper, connection, target):
    raise RuntimeError("PaymentRecord is append-only. Updates are prohibited.")


@event.listens_for(PaymentRecord, "before_delete")
def prevent_payment_record_delete(mapper, connection, target):
    raise RuntimeError("PaymentRecord is append-only. Deletions are prohibited.")
