"""
Payment gateway contract.

The coordinator only ever talks to a gateway through this
interface. Implementations translate provider errors into
ExternalGatewayError so that callers never see SDK exceptions.
"""

from typing import Protocol

from pydantic import BaseModel, Field


# Normalized charge statuses
CHARGE_PENDING = "pending"
CHARGE_SUCCEEDED = "succeeded"
CHARGE_FAILED = "failed"

# The only callback event that leads to settlement
EVENT_CHARGE_SUCCEEDED = "payment_intent.succeeded"


class GatewayIntent(BaseModel):
    id: str
    client_secret: str


class ChargeSnapshot(BaseModel):
    """The gateway's authoritative view of one charge."""
    id: str
    status: str
    amount: int
    currency: str
    metadata: dict[str, str] = Field(default_factory=dict)


class GatewayEvent(BaseModel):
    event_type: str
    charge: ChargeSnapshot
    # False when the payload was accepted without a webhook secret
    verified: bool = True


class PaymentGateway(Protocol):

    def create_intent(
        self,
        amount: int,
        currency: str,
        metadata: dict[str, str],
        description: str = "",
    ) -> GatewayIntent:
        """Create a charge intent for `amount` minor units."""
        ...

    def retrieve_charge(self, charge_id: str) -> ChargeSnapshot:
        """Fetch the current status of a charge."""
        ...

    def parse_event(self, payload: bytes, signature: str | None) -> GatewayEvent:
        """
        Verify and decode a callback payload.

        Raises InvalidSignature when verification fails.
        """
        ...
