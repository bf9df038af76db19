"""
Payment API endpoints.

Settlement commits on its own, so unlike the other routers these
endpoints never call db.commit(). They still roll back on error
to leave the session clean.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Header
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from tuition_settlement.api.deps import get_requester, get_gateway, get_notifier
from tuition_settlement.errors import ServiceError
from tuition_settlement.gateway.base import PaymentGateway
from tuition_settlement.models.base import get_db
from tuition_settlement.schemas.application import ApplicationResponse
from tuition_settlement.schemas.payment import (
    CreateIntentRequest,
    ConfirmPaymentRequest,
    ChargeIntentResult,
    PaymentRecordResponse,
    SettlementResponse,
    WebhookAck,
    TutorRevenueResponse,
    ReconciliationResponse,
)
from tuition_settlement.schemas.requester import Requester
from tuition_settlement.services.notifications import NotificationEmitter
from tuition_settlement.services.settlement_coordinator import SettlementCoordinator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


def get_coordinator(
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
    notifier: NotificationEmitter = Depends(get_notifier),
) -> SettlementCoordinator:
    return SettlementCoordinator(db, gateway, notifier)


@router.post("/create-intent", response_model=ChargeIntentResult)
def create_payment_intent(
    request: CreateIntentRequest,
    requester: Requester = Depends(get_requester),
    coordinator: SettlementCoordinator = Depends(get_coordinator),
):
    """
    Start paying for an application.

    Returns the client secret the frontend completes payment with.
    Nothing changes until the resulting charge settles.
    """
    try:
        return coordinator.create_charge_intent(request.application_id, requester)
    except ServiceError as e:
        coordinator.db.rollback()
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/confirm", response_model=SettlementResponse)
def confirm_payment(
    request: ConfirmPaymentRequest,
    requester: Requester = Depends(get_requester),
    coordinator: SettlementCoordinator = Depends(get_coordinator),
):
    """
    Client-side confirmation once the student has paid.

    Safe to call after the webhook has already settled the charge:
    both paths return the same settlement.
    """
    try:
        settlement = coordinator.confirm(
            request.external_charge_reference, request.application_id, requester
        )
    except ServiceError as e:
        coordinator.db.rollback()
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return SettlementResponse(
        payment=PaymentRecordResponse.model_validate(settlement.payment),
        application=ApplicationResponse.model_validate(settlement.application),
    )


@router.post("/webhook", response_model=WebhookAck)
async def payment_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None),
    coordinator: SettlementCoordinator = Depends(get_coordinator),
):
    """
    Gateway callback.

    The raw body is needed for signature verification, so the
    payload is read directly rather than through a schema.
    Settlement blocks on the database and the gateway, so it runs
    in the threadpool like the sync routes do. Returns 400 for a
    bad signature; every verified event is acknowledged.
    """
    payload = await request.body()
    try:
        return await run_in_threadpool(
            coordinator.handle_callback, payload, stripe_signature
        )
    except ServiceError as e:
        await run_in_threadpool(coordinator.db.rollback)
        logger.warning("Webhook rejected: %s", e)
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/history", response_model=list[PaymentRecordResponse])
def payment_history(
    requester: Requester = Depends(get_requester),
    coordinator: SettlementCoordinator = Depends(get_coordinator),
):
    """Payments made by the requesting student."""
    try:
        return coordinator.payment_history(requester)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/tutor/revenue", response_model=TutorRevenueResponse)
def tutor_revenue(
    requester: Requester = Depends(get_requester),
    coordinator: SettlementCoordinator = Depends(get_coordinator),
):
    try:
        payments, total = coordinator.tutor_revenue(requester)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return TutorRevenueResponse(
        payments=[PaymentRecordResponse.model_validate(p) for p in payments],
        total_revenue=total,
        total_payments=len(payments),
    )


@router.get("/admin/all", response_model=list[PaymentRecordResponse])
def all_payments(
    requester: Requester = Depends(get_requester),
    coordinator: SettlementCoordinator = Depends(get_coordinator),
):
    try:
        return coordinator.all_payments(requester)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/admin/reconcile", response_model=ReconciliationResponse)
def reconcile_payments(
    requester: Requester = Depends(get_requester),
    coordinator: SettlementCoordinator = Depends(get_coordinator),
):
    """Complete every settlement the ledger shows as unfinished."""
    try:
        reconciled = coordinator.reconcile(requester)
    except ServiceError as e:
        coordinator.db.rollback()
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return ReconciliationResponse(reconciled=reconciled)
