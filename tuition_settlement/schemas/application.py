"""
Pydantic schemas for application operations.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from tuition_settlement.models.enums import ApplicationStatus, ApplicationDecision


class ApplicationTerms(BaseModel):
    """What a tutor offers when applying."""
    qualifications: str = Field(min_length=1)
    experience: str = Field(min_length=1)
    expected_price: Decimal = Field(gt=0, decimal_places=4)
    availability: str = Field(min_length=1, max_length=200)
    note: str = Field(default="")


class ApplicationUpdate(BaseModel):
    qualifications: str | None = Field(default=None, min_length=1)
    experience: str | None = Field(default=None, min_length=1)
    expected_price: Decimal | None = Field(default=None, gt=0, decimal_places=4)
    availability: str | None = Field(default=None, min_length=1, max_length=200)
    note: str | None = None


class DecisionRequest(BaseModel):
    decision: ApplicationDecision


class PaymentEligibleSnapshot(BaseModel):
    """
    Handed back when a post owner approves an application.

    Approval itself only happens after payment, so this is the
    input to charge intent creation, not a state change.
    """
    application_id: int
    post_id: int
    tutor_id: int
    student_id: int
    amount: Decimal


class ApplicationResponse(BaseModel):
    id: int
    post_id: int
    tutor_id: int
    qualifications: str
    experience: str
    expected_price: Decimal
    availability: str
    note: str
    status: ApplicationStatus
    approved_at: datetime | None
    payment_reference: str | None
    created_at: datetime

    model_config = {"from_attributes": True}
