"""
Pydantic schemas for charge intents, settlement and payment history.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from tuition_settlement.schemas.application import ApplicationResponse


# --- Request Schemas ---

class CreateIntentRequest(BaseModel):
    application_id: int


class ConfirmPaymentRequest(BaseModel):
    external_charge_reference: str = Field(min_length=1, max_length=100)
    application_id: int


# --- Response Schemas ---

class ChargeIntentResult(BaseModel):
    """Everything the client needs to complete payment."""
    intent_id: str
    client_secret: str
    domestic_amount: Decimal
    gateway_amount: int
    currency: str


class PaymentRecordResponse(BaseModel):
    id: int
    external_charge_reference: str
    application_id: int
    post_id: int
    payer_id: int
    payee_id: int
    amount: Decimal
    currency: str
    gateway_amount: int
    gateway_currency: str
    created_at: datetime

    model_config = {"from_attributes": True}


class SettlementResponse(BaseModel):
    payment: PaymentRecordResponse
    application: ApplicationResponse


class WebhookAck(BaseModel):
    received: bool = True


class TutorRevenueResponse(BaseModel):
    payments: list[PaymentRecordResponse]
    total_revenue: Decimal
    total_payments: int


class ReconciliationResponse(BaseModel):
    reconciled: list[str]


# --- Gateway metadata ---

class ChargeMetadata(BaseModel):
    """
    What a charge intent carries back to settlement.

    Settlement reads these from the gateway's record of the charge,
    never from client input.
    """
    application_id: int
    post_id: int
    tutor_id: int
    student_id: int
    domestic_amount: Decimal

    def to_gateway(self) -> dict[str, str]:
        return {key: str(value) for key, value in self.model_dump().items()}
