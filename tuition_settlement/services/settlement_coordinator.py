"""
Settlement coordinator — turns a successful charge into a hire.

A charge confirmation arrives twice in the normal case: once from
the gateway's callback and once from the student's client. Both
paths end in settle(), and settle() must produce exactly one
outcome however the two interleave.

Settlement of one charge:
1. Idempotency: a PaymentRecord for the charge already exists,
   return it
2. Authoritative status: the gateway (or a verified callback)
   says the charge succeeded, for the amount we asked for
3. Race guard: with the post locked and still open, compare-and-swap
   the application from PENDING to APPROVED unless a sibling already
   holds APPROVED; the loser returns the winner's result
4. Ledger checkpoint: insert the PaymentRecord and commit it
   together with the claim
5. Completion: stamp the application, close the post, supersede
   sibling applications, commit
6. Notify payer and payee, best effort

A crash between 4 and 5 leaves a PaymentRecord whose settlement is
incomplete. The ledger is authoritative: reconcile() (or a
redelivered event) replays step 5 from it.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import NamedTuple

from pydantic import ValidationError as SchemaValidationError
from sqlalchemy import select, update, or_, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, aliased

from tuition_settlement.config import Settings, get_settings
from tuition_settlement.currency import to_gateway_amount
from tuition_settlement.errors import (
    ServiceError,
    ValidationError,
    NotFound,
    Forbidden,
    Conflict,
    InvalidState,
    ExternalGatewayError,
    PersistenceError,
)
from tuition_settlement.gateway.base import (
    CHARGE_SUCCEEDED,
    EVENT_CHARGE_SUCCEEDED,
    ChargeSnapshot,
    PaymentGateway,
)
from tuition_settlement.models.application import Application
from tuition_settlement.models.payment_record import PaymentRecord
from tuition_settlement.models.tuition_post import TuitionPost
from tuition_settlement.models.enums import (
    ApplicationDecision,
    ApplicationStatus,
    PostStatus,
    Role,
)
from tuition_settlement.schemas.payment import (
    ChargeIntentResult,
    ChargeMetadata,
    WebhookAck,
)
from tuition_settlement.schemas.requester import Requester
from tuition_settlement.services.application_ledger import ApplicationLedger
from tuition_settlement.services.notifications import (
    NotificationEmitter,
    LoggingNotificationEmitter,
    emit_safely,
)
from tuition_settlement.services.tuition_registry import TuitionPostRegistry

logger = logging.getLogger(__name__)


class Settlement(NamedTuple):
    payment: PaymentRecord
    application: Application


class SettlementCoordinator:
    """
    Owns the PENDING -> APPROVED transition and the payment ledger.

    Unlike the other services, settlement commits on its own: the
    ledger checkpoint has to be durable before completion starts,
    so the caller cannot be the one choosing the boundary.
    """

    def __init__(
        self,
        db: Session,
        gateway: PaymentGateway,
        notifier: NotificationEmitter | None = None,
        settings: Settings | None = None,
    ):
        self.db = db
        self.gateway = gateway
        self.notifier = notifier or LoggingNotificationEmitter()
        self.settings = settings or get_settings()
        self.registry = TuitionPostRegistry(db)
        self.ledger = ApplicationLedger(db, self.notifier)

    # --- Charge intents ---

    def create_charge_intent(
        self, application_id: int, requester: Requester
    ) -> ChargeIntentResult:
        """
        Ask the gateway for a charge covering an application's price.

        Eligibility (pending application, requester owns the post)
        comes from the ledger's approve decision. Nothing is
        written: the application stays PENDING until the charge
        settles.
        """
        snapshot = self.ledger.decide(
            application_id, requester, ApplicationDecision.APPROVE
        )
        gateway_amount = to_gateway_amount(
            snapshot.amount, self.settings.CONVERSION_RATE
        )
        metadata = ChargeMetadata(
            application_id=snapshot.application_id,
            post_id=snapshot.post_id,
            tutor_id=snapshot.tutor_id,
            student_id=snapshot.student_id,
            domestic_amount=snapshot.amount,
        )

        intent = self.gateway.create_intent(
            amount=gateway_amount,
            currency=self.settings.GATEWAY_CURRENCY,
            metadata=metadata.to_gateway(),
            description=(
                f"Tuition post {snapshot.post_id} - "
                f"application {snapshot.application_id}"
            ),
        )
        logger.info(
            "Created charge intent %s for application %s: %s %s -> %d %s minor units",
            intent.id, snapshot.application_id,
            snapshot.amount, self.settings.DOMESTIC_CURRENCY,
            gateway_amount, self.settings.GATEWAY_CURRENCY,
        )
        return ChargeIntentResult(
            intent_id=intent.id,
            client_secret=intent.client_secret,
            domestic_amount=snapshot.amount,
            gateway_amount=gateway_amount,
            currency=self.settings.DOMESTIC_CURRENCY,
        )

    # --- Settlement ---

    def settle(
        self,
        external_charge_reference: str,
        charge: ChargeSnapshot | None = None,
    ) -> Settlement:
        """
        Settle one charge. Safe to call any number of times, from
        any number of callers, in any order.

        `charge` may be supplied by a caller that already holds the
        gateway's authoritative view (a verified callback); otherwise
        the charge is fetched from the gateway.
        """
        ref = external_charge_reference

        existing = self._find_record(ref)
        if existing:
            logger.info("Charge %s already settled; returning existing record", ref)
            return self._replay(existing)

        if charge is None:
            charge = self.gateway.retrieve_charge(ref)
        if charge.id != ref:
            raise ExternalGatewayError(
                f"Gateway returned charge {charge.id} when asked for {ref}"
            )
        if charge.status != CHARGE_SUCCEEDED:
            raise InvalidState(
                f"Charge {ref} has not succeeded (status: {charge.status})"
            )

        metadata = self._read_metadata(charge)
        application = self._locate_application(ref, metadata)

        if not self._claim(application):
            self.db.rollback()
            self.db.refresh(application)
            return self._settled_by_other(application, ref)

        record = PaymentRecord(
            external_charge_reference=ref,
            application_id=application.id,
            post_id=metadata.post_id,
            payer_id=metadata.student_id,
            payee_id=metadata.tutor_id,
            amount=metadata.domestic_amount,
            currency=self.settings.DOMESTIC_CURRENCY,
            gateway_amount=charge.amount,
            gateway_currency=charge.currency,
        )
        self.db.add(record)
        try:
            self._commit("ledger checkpoint")
        except IntegrityError:
            self.db.rollback()
            existing = self._find_record(ref)
            if existing is None:
                # Another charge for the same application got there first
                self.db.refresh(application)
                return self._settled_by_other(application, ref)
            logger.warning(
                "Charge %s was recorded concurrently; returning existing record", ref
            )
            return self._replay(existing)
        logger.info(
            "Application %s approved by charge %s; ledger entry %s written",
            application.id, ref, record.id,
        )

        post = self._complete(record, application)
        self._commit("settlement completion")

        self._notify(record, post)
        return Settlement(record, application)

    def _commit(self, stage: str) -> None:
        try:
            self.db.commit()
        except IntegrityError:
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Storage failure during %s: %s", stage, e)
            raise PersistenceError(f"Storage failure during {stage}") from e

    def _find_record(self, ref: str) -> PaymentRecord | None:
        return self.db.execute(
            select(PaymentRecord).where(
                PaymentRecord.external_charge_reference == ref
            )
        ).scalar_one_or_none()

    def _read_metadata(self, charge: ChargeSnapshot) -> ChargeMetadata:
        """Parse the charge's metadata and check its amount against it."""
        try:
            metadata = ChargeMetadata.model_validate(charge.metadata)
        except SchemaValidationError as e:
            logger.error(
                "Charge %s carries unusable metadata %r; manual review required",
                charge.id, charge.metadata,
            )
            raise ExternalGatewayError(
                f"Charge {charge.id} metadata is missing or malformed"
            ) from e

        expected = to_gateway_amount(
            metadata.domestic_amount, self.settings.CONVERSION_RATE
        )
        if charge.amount != expected:
            logger.error(
                "Charge %s amount %d does not match %d expected for %s %s",
                charge.id, charge.amount, expected,
                metadata.domestic_amount, self.settings.DOMESTIC_CURRENCY,
            )
            raise ExternalGatewayError(
                f"Charge {charge.id} amount {charge.amount} does not match "
                f"expected {expected}"
            )
        return metadata

    def _locate_application(self, ref: str, metadata: ChargeMetadata) -> Application:
        application = self.db.get(Application, metadata.application_id)
        if application is None:
            logger.error(
                "Charge %s references unknown application %s; manual review required",
                ref, metadata.application_id,
            )
            raise NotFound(f"Application {metadata.application_id} not found")
        if (
            application.post_id != metadata.post_id
            or application.tutor_id != metadata.tutor_id
        ):
            logger.error(
                "Charge %s metadata does not match application %s; manual review required",
                ref, application.id,
            )
            raise ValidationError(
                f"Charge {ref} does not match application {application.id}"
            )
        return application

    def _claim(self, application: Application) -> bool:
        """
        Compare-and-swap PENDING -> APPROVED.

        The post row is locked first and must still be open. The
        application UPDATE then carries the expected status, and the
        absence of an approved sibling, in its WHERE clause. Both
        locks are held until the ledger checkpoint commits, so a
        concurrent claim on the same post matches zero rows once it
        can proceed.
        """
        open_post = self.db.execute(
            select(TuitionPost.id)
            .where(
                TuitionPost.id == application.post_id,
                TuitionPost.status == PostStatus.APPROVED,
            )
            .with_for_update()
        ).scalar_one_or_none()
        if open_post is None:
            return False

        sibling = aliased(Application)
        approved_sibling = (
            select(sibling.id)
            .where(
                sibling.post_id == application.post_id,
                sibling.status == ApplicationStatus.APPROVED,
                sibling.id != application.id,
            )
            .exists()
        )
        result = self.db.execute(
            update(Application)
            .where(
                Application.id == application.id,
                Application.status == ApplicationStatus.PENDING,
                ~approved_sibling,
            )
            .values(status=ApplicationStatus.APPROVED, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        self.db.refresh(application)
        return result.rowcount == 1

    def _settled_by_other(self, application: Application, ref: str) -> Settlement:
        """The claim failed: return the winner's settlement, if there was one."""
        if application.status != ApplicationStatus.APPROVED:
            post = self.registry.get(application.post_id)
            logger.warning(
                "Charge %s succeeded but application %s is %s on a %s post; "
                "refund review required",
                ref, application.id, application.status.value, post.status.value,
            )
            raise InvalidState(
                f"Application {application.id} can no longer be approved "
                f"(application: {application.status.value}, "
                f"post: {post.status.value})"
            )

        record = self.db.execute(
            select(PaymentRecord).where(
                PaymentRecord.application_id == application.id
            )
        ).scalar_one_or_none()
        if record is None:
            logger.error(
                "Application %s is approved but has no ledger entry", application.id
            )
            raise InvalidState(
                f"Application {application.id} is approved without a payment record"
            )

        if record.external_charge_reference != ref:
            logger.warning(
                "Application %s was already settled by charge %s; "
                "charge %s requires refund review",
                application.id, record.external_charge_reference, ref,
            )
        else:
            logger.info("Lost settlement race for charge %s; returning winner's result", ref)
        return self._replay(record)

    def _replay(self, record: PaymentRecord) -> Settlement:
        """Return an existing settlement, finishing it first if it was cut short."""
        application = self.db.get(Application, record.application_id)
        post = self.db.get(TuitionPost, record.post_id)
        if application.payment_reference is None or post.status != PostStatus.CLOSED:
            logger.warning(
                "Settlement of charge %s is incomplete; completing it from the ledger",
                record.external_charge_reference,
            )
            post = self._complete(record, application)
            self._commit("settlement completion")
            self._notify(record, post)
        return Settlement(record, application)

    def _complete(self, record: PaymentRecord, application: Application) -> TuitionPost:
        """
        Everything after the ledger checkpoint. Idempotent, so it can
        be replayed from the ledger any number of times.
        """
        now = datetime.utcnow()
        self.db.execute(
            update(Application)
            .where(
                Application.id == record.application_id,
                Application.payment_reference.is_(None),
            )
            .values(
                approved_at=now,
                payment_reference=record.external_charge_reference,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        self.db.refresh(application)

        post = self.registry.get(record.post_id)
        if not self._closed_for(post, record.payee_id):
            try:
                post = self.registry.close(record.post_id, record.payee_id)
            except Conflict:
                self.db.refresh(post)
                if not self._closed_for(post, record.payee_id):
                    logger.error(
                        "Tuition post %s cannot be closed for charge %s (status: %s); "
                        "manual reconciliation required",
                        post.id, record.external_charge_reference, post.status.value,
                    )
                    raise

        self.ledger.supersede_siblings(record.post_id, record.application_id)
        return post

    @staticmethod
    def _closed_for(post: TuitionPost, tutor_id: int) -> bool:
        return post.status == PostStatus.CLOSED and post.assigned_tutor_id == tutor_id

    def _notify(self, record: PaymentRecord, post: TuitionPost) -> None:
        emit_safely(
            self.notifier,
            record.payer_id,
            "payment",
            "Payment Successful",
            f"Your payment of {record.amount} {record.currency} for the "
            f"{post.subject} tuition was successful.",
            record.id,
        )
        emit_safely(
            self.notifier,
            record.payee_id,
            "payment",
            "New Tuition Hiring",
            f"Congratulations! A student has paid for your services for the "
            f"{post.subject} tuition.",
            record.id,
        )

    # --- Entry points ---

    def confirm(
        self,
        external_charge_reference: str,
        application_id: int,
        requester: Requester,
    ) -> Settlement:
        """
        Client-initiated confirmation after the student pays.

        The charge must belong to the named application and to the
        requesting student; settlement itself is the same as for
        the callback path.
        """
        requester.require_role(Role.STUDENT)
        ref = external_charge_reference

        existing = self._find_record(ref)
        if existing:
            if existing.application_id != application_id:
                raise ValidationError(
                    f"Charge {ref} does not belong to application {application_id}"
                )
            requester.require_owner(existing.payer_id, "payment")
            return self.settle(ref)

        charge = self.gateway.retrieve_charge(ref)
        if charge.metadata.get("application_id") != str(application_id):
            raise ValidationError(
                f"Charge {ref} does not belong to application {application_id}"
            )
        if charge.metadata.get("student_id") != str(requester.user_id):
            raise Forbidden(f"Charge {ref} was not made by this student")
        return self.settle(ref, charge=charge)

    def handle_callback(self, payload: bytes, signature: str | None) -> WebhookAck:
        """
        Gateway callback. Once the event has been verified it is
        acknowledged whether or not processing succeeds. Failures are
        logged, and an incomplete settlement is left in the ledger for
        reconcile() or the client's confirmation to finish.
        """
        event = self.gateway.parse_event(payload, signature)
        if event.event_type != EVENT_CHARGE_SUCCEEDED:
            logger.info("Ignoring gateway event %s", event.event_type)
            return WebhookAck()

        # An unverified payload is only a hint; ask the gateway.
        charge = event.charge if event.verified else None
        try:
            self.settle(event.charge.id, charge=charge)
        except (ServiceError, SQLAlchemyError):
            self.db.rollback()
            logger.exception(
                "Webhook processing failed for charge %s", event.charge.id
            )
        return WebhookAck()

    # --- Reconciliation ---

    def find_unreconciled(self) -> list[PaymentRecord]:
        """Ledger entries whose settlement never completed."""
        records = self.db.execute(
            select(PaymentRecord)
            .join(Application, Application.id == PaymentRecord.application_id)
            .join(TuitionPost, TuitionPost.id == PaymentRecord.post_id)
            .where(
                or_(
                    Application.payment_reference.is_(None),
                    TuitionPost.status != PostStatus.CLOSED,
                )
            )
            .order_by(PaymentRecord.created_at)
        ).scalars().all()
        return list(records)

    def reconcile(self, requester: Requester) -> list[str]:
        """
        Complete every settlement the ledger shows as unfinished.

        Returns the charge references that were repaired. A record
        that cannot be completed is logged and skipped.
        """
        requester.require_role(Role.ADMIN)
        repaired = []
        for record in self.find_unreconciled():
            ref = record.external_charge_reference
            application = self.db.get(Application, record.application_id)
            try:
                post = self._complete(record, application)
                self._commit("reconciliation")
            except (Conflict, PersistenceError):
                self.db.rollback()
                logger.exception("Could not reconcile charge %s", ref)
                continue
            logger.info("Reconciled charge %s", ref)
            self._notify(record, post)
            repaired.append(ref)
        return repaired

    # --- Payment history ---

    def payment_history(self, requester: Requester) -> list[PaymentRecord]:
        """Payments made by the requesting student, newest first."""
        requester.require_role(Role.STUDENT)
        records = self.db.execute(
            select(PaymentRecord)
            .where(PaymentRecord.payer_id == requester.user_id)
            .order_by(PaymentRecord.created_at.desc())
        ).scalars().all()
        return list(records)

    def tutor_revenue(self, requester: Requester) -> tuple[list[PaymentRecord], Decimal]:
        """Payments received by the requesting tutor, and their total."""
        requester.require_role(Role.TUTOR)
        records = self.db.execute(
            select(PaymentRecord)
            .where(PaymentRecord.payee_id == requester.user_id)
            .order_by(PaymentRecord.created_at.desc())
        ).scalars().all()
        total = self.db.execute(
            select(func.coalesce(func.sum(PaymentRecord.amount), 0)).where(
                PaymentRecord.payee_id == requester.user_id
            )
        ).scalar()
        return list(records), Decimal(str(total))

    def all_payments(self, requester: Requester) -> list[PaymentRecord]:
        requester.require_role(Role.ADMIN)
        records = self.db.execute(
            select(PaymentRecord).order_by(PaymentRecord.created_at.desc())
        ).scalars().all()
        return list(records)
