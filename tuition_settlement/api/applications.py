"""
Application API endpoints.

Submission and listing hang off the post; everything else is
addressed by application ID.
"""

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from tuition_settlement.api.deps import get_requester, get_notifier
from tuition_settlement.errors import ServiceError
from tuition_settlement.models.application import Application
from tuition_settlement.models.base import get_db
from tuition_settlement.schemas.application import (
    ApplicationTerms,
    ApplicationUpdate,
    DecisionRequest,
    PaymentEligibleSnapshot,
    ApplicationResponse,
)
from tuition_settlement.schemas.requester import Requester
from tuition_settlement.services.application_ledger import ApplicationLedger
from tuition_settlement.services.notifications import NotificationEmitter

router = APIRouter(tags=["Applications"])


@router.post(
    "/tuitions/{post_id}/applications",
    response_model=ApplicationResponse,
    status_code=201,
)
def submit_application(
    post_id: int,
    request: ApplicationTerms,
    requester: Requester = Depends(get_requester),
    notifier: NotificationEmitter = Depends(get_notifier),
    db: Session = Depends(get_db),
):
    """Apply to an open post. One application per tutor per post."""
    ledger = ApplicationLedger(db, notifier)
    try:
        application = ledger.submit(post_id, requester, request)
        db.commit()
        return application
    except ServiceError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get(
    "/tuitions/{post_id}/applications",
    response_model=list[ApplicationResponse],
)
def list_post_applications(
    post_id: int,
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
):
    ledger = ApplicationLedger(db)
    try:
        return ledger.list_for_post(post_id, requester)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/applications/mine", response_model=list[ApplicationResponse])
def list_my_applications(
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
):
    ledger = ApplicationLedger(db)
    try:
        return ledger.list_for_tutor(requester)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.patch("/applications/{application_id}", response_model=ApplicationResponse)
def update_application(
    application_id: int,
    request: ApplicationUpdate,
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
):
    """Edit the terms of a pending application."""
    ledger = ApplicationLedger(db)
    try:
        application = ledger.update(application_id, requester, request)
        db.commit()
        return application
    except ServiceError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.delete("/applications/{application_id}", status_code=204)
def withdraw_application(
    application_id: int,
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
):
    """Withdraw a pending application. The row is deleted."""
    ledger = ApplicationLedger(db)
    try:
        ledger.withdraw(application_id, requester)
        db.commit()
    except ServiceError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return Response(status_code=204)


@router.post(
    "/applications/{application_id}/decision",
    response_model=ApplicationResponse | PaymentEligibleSnapshot,
)
def decide_application(
    application_id: int,
    request: DecisionRequest,
    requester: Requester = Depends(get_requester),
    notifier: NotificationEmitter = Depends(get_notifier),
    db: Session = Depends(get_db),
):
    """
    The post owner's decision.

    A rejection is applied immediately and returns the application.
    An approval returns the payment-eligible snapshot instead: the
    application is only approved once a charge for it settles.
    """
    ledger = ApplicationLedger(db, notifier)
    try:
        result = ledger.decide(application_id, requester, request.decision)
        db.commit()
    except ServiceError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=str(e))

    if isinstance(result, Application):
        return ApplicationResponse.model_validate(result)
    return result
