"""Payment gateway contract and implementations."""

from tuition_settlement.gateway.base import (
    PaymentGateway,
    ChargeSnapshot,
    GatewayEvent,
    GatewayIntent,
)
from tuition_settlement.gateway.stripe_gateway import StripeGateway

__all__ = [
    "PaymentGateway",
    "ChargeSnapshot",
    "GatewayEvent",
    "GatewayIntent",
    "StripeGateway",
]
