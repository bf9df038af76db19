"""
Pydantic schemas for tuition post operations.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from tuition_settlement.models.enums import PostStatus, ModerationDecision


class TuitionPostCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    subject: str = Field(min_length=1, max_length=100)
    class_level: str = Field(min_length=1, max_length=50)
    location: str = Field(min_length=1, max_length=200)
    budget_min: Decimal = Field(gt=0)
    budget_max: Decimal = Field(gt=0)
    schedule: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)


class TuitionPostUpdate(BaseModel):
    """Partial edit by the owner. Omitted fields are left alone."""
    title: str | None = Field(default=None, min_length=1, max_length=200)
    subject: str | None = Field(default=None, min_length=1, max_length=100)
    class_level: str | None = Field(default=None, min_length=1, max_length=50)
    location: str | None = Field(default=None, min_length=1, max_length=200)
    budget_min: Decimal | None = Field(default=None, gt=0)
    budget_max: Decimal | None = Field(default=None, gt=0)
    schedule: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, min_length=1)


class ModerationRequest(BaseModel):
    decision: ModerationDecision


class TuitionPostResponse(BaseModel):
    id: int
    owner_id: int
    title: str
    subject: str
    class_level: str
    location: str
    budget_min: Decimal
    budget_max: Decimal
    schedule: str
    description: str
    status: PostStatus
    application_count: int
    assigned_tutor_id: int | None
    closed_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}
