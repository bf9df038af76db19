"""
Stripe implementation of the payment gateway.

The API key is passed on every call instead of being assigned to
the stripe module, so the gateway is an ordinary value built once
at startup and handed to whoever needs it.
"""

import json
import logging

import stripe

from tuition_settlement.errors import ExternalGatewayError, InvalidSignature
from tuition_settlement.gateway.base import (
    CHARGE_FAILED,
    CHARGE_PENDING,
    CHARGE_SUCCEEDED,
    ChargeSnapshot,
    GatewayEvent,
    GatewayIntent,
)

logger = logging.getLogger(__name__)

# Stripe reports many in-flight states; settlement only cares
# whether the money has definitely moved.
_STATUS_MAP = {
    "succeeded": CHARGE_SUCCEEDED,
    "canceled": CHARGE_FAILED,
}


def _normalize_status(intent: dict) -> str:
    stripe_status = intent.get("status", "")
    # New intents also start in requires_payment_method; only one
    # carrying a payment error is back there after a declined attempt.
    if stripe_status == "requires_payment_method" and intent.get("last_payment_error"):
        return CHARGE_FAILED
    return _STATUS_MAP.get(stripe_status, CHARGE_PENDING)


def _as_dict(obj) -> dict:
    if isinstance(obj, dict):
        return obj
    return obj.to_dict()


def _snapshot(obj) -> ChargeSnapshot:
    intent = _as_dict(obj)
    metadata = intent.get("metadata") or {}
    return ChargeSnapshot(
        id=intent["id"],
        status=_normalize_status(intent),
        amount=int(intent.get("amount", 0)),
        currency=intent.get("currency", ""),
        metadata={str(k): str(v) for k, v in _as_dict(metadata).items()},
    )


class StripeGateway:

    def __init__(self, api_key: str | None, webhook_secret: str | None = None):
        if not api_key:
            logger.warning(
                "STRIPE_SECRET_KEY is not set; gateway calls will fail"
            )
        self.api_key = api_key
        self.webhook_secret = webhook_secret

    def create_intent(
        self,
        amount: int,
        currency: str,
        metadata: dict[str, str],
        description: str = "",
    ) -> GatewayIntent:
        try:
            intent = stripe.PaymentIntent.create(
                amount=amount,
                currency=currency,
                payment_method_types=["card"],
                metadata=metadata,
                description=description,
                api_key=self.api_key,
            )
        except stripe.StripeError as e:
            logger.error("Stripe error creating payment intent: %s", e)
            raise ExternalGatewayError(f"Failed to create payment intent: {e}") from e
        return GatewayIntent(id=intent.id, client_secret=intent.client_secret)

    def retrieve_charge(self, charge_id: str) -> ChargeSnapshot:
        try:
            intent = stripe.PaymentIntent.retrieve(charge_id, api_key=self.api_key)
        except stripe.StripeError as e:
            logger.error("Stripe error retrieving payment intent %s: %s", charge_id, e)
            raise ExternalGatewayError(f"Failed to retrieve charge {charge_id}: {e}") from e
        return _snapshot(intent)

    def parse_event(self, payload: bytes, signature: str | None) -> GatewayEvent:
        if self.webhook_secret:
            try:
                event = stripe.Webhook.construct_event(
                    payload, signature or "", self.webhook_secret
                )
            except stripe.SignatureVerificationError as e:
                logger.warning("Invalid webhook signature: %s", e)
                raise InvalidSignature("Invalid webhook signature") from e
            except ValueError as e:
                raise InvalidSignature(f"Invalid webhook payload: {e}") from e
        else:
            logger.warning(
                "STRIPE_WEBHOOK_SECRET not configured; accepting webhook "
                "payload WITHOUT signature verification"
            )
            try:
                event = json.loads(payload)
            except ValueError as e:
                raise InvalidSignature(f"Invalid webhook payload: {e}") from e
        verified = self.webhook_secret is not None

        try:
            return GatewayEvent(
                event_type=_as_dict(event)["type"],
                charge=_snapshot(_as_dict(event)["data"]["object"]),
                verified=verified,
            )
        except (KeyError, TypeError) as e:
            raise ExternalGatewayError(f"Malformed webhook event: {e}") from e
