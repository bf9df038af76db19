"""
Application ledger — tutor applications against tuition posts.

Rules enforced here:
1. A tutor has at most one application per post (insert-time
   unique constraint, not a read-then-write check)
2. Applications can only be made against open posts
3. Content edits and withdrawals only while PENDING, only by the
   owning tutor
4. Approving does not approve: it hands back a payment-eligible
   snapshot, because approval is gated on a successful charge

Every status change is a conditional UPDATE on the current status,
so a tutor withdrawing while settlement supersedes the application
cannot both succeed.
"""

import logging
from datetime import datetime

from sqlalchemy import select, update, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tuition_settlement.errors import (
    NotFound,
    Conflict,
    DuplicateApplication,
    InvalidState,
)
from tuition_settlement.models.application import Application
from tuition_settlement.models.tuition_post import TuitionPost
from tuition_settlement.models.enums import (
    ApplicationStatus,
    ApplicationDecision,
    PostStatus,
    Role,
)
from tuition_settlement.schemas.application import (
    ApplicationTerms,
    ApplicationUpdate,
    PaymentEligibleSnapshot,
)
from tuition_settlement.schemas.requester import Requester
from tuition_settlement.services.notifications import (
    NotificationEmitter,
    LoggingNotificationEmitter,
    emit_safely,
)
from tuition_settlement.services.tuition_registry import TuitionPostRegistry

logger = logging.getLogger(__name__)


class ApplicationLedger:

    def __init__(self, db: Session, notifier: NotificationEmitter | None = None):
        self.db = db
        self.notifier = notifier or LoggingNotificationEmitter()
        self.registry = TuitionPostRegistry(db)

    def get(self, application_id: int) -> Application:
        """Get an application by ID."""
        application = self.db.get(Application, application_id)
        if not application:
            raise NotFound(f"Application {application_id} not found")
        return application

    def submit(
        self, post_id: int, requester: Requester, terms: ApplicationTerms
    ) -> Application:
        """
        Apply to an open post.

        Duplicate detection relies on the (post_id, tutor_id)
        constraint: of two concurrent submissions by the same tutor,
        the database accepts one and the other's flush raises. The
        insert runs in a savepoint, so a duplicate only undoes itself
        and the caller's unit of work stays intact.
        """
        requester.require_role(Role.TUTOR)
        post = self.registry.get(post_id)
        if post.status != PostStatus.APPROVED:
            raise InvalidState(
                f"Cannot apply to tuition post {post_id} "
                f"(status: {post.status.value})"
            )

        application = Application(
            post_id=post.id,
            tutor_id=requester.user_id,
            qualifications=terms.qualifications,
            experience=terms.experience,
            expected_price=terms.expected_price,
            availability=terms.availability,
            note=terms.note,
        )
        try:
            with self.db.begin_nested():
                self.db.add(application)
        except IntegrityError as e:
            raise DuplicateApplication(
                f"Tutor {requester.user_id} has already applied "
                f"to tuition post {post_id}"
            ) from e

        self.registry.adjust_application_count(post.id, 1)

        emit_safely(
            self.notifier,
            post.owner_id,
            "application",
            "New Application Received",
            f"A tutor has applied for your {post.subject} tuition.",
            application.id,
        )
        return application

    def _require_own_application(
        self, application_id: int, requester: Requester
    ) -> Application:
        requester.require_role(Role.TUTOR)
        application = self.get(application_id)
        requester.require_owner(application.tutor_id, "application")
        return application

    def update(
        self, application_id: int, requester: Requester, changes: ApplicationUpdate
    ) -> Application:
        """Edit the terms of a pending application."""
        application = self._require_own_application(application_id, requester)

        fields = changes.model_dump(exclude_unset=True, exclude_none=True)
        result = self.db.execute(
            update(Application)
            .where(
                Application.id == application.id,
                Application.status == ApplicationStatus.PENDING,
            )
            .values(**fields, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        self.db.refresh(application)

        if result.rowcount != 1:
            raise Conflict(
                f"Cannot update application that is not pending "
                f"(status: {application.status.value})"
            )
        return application

    def withdraw(self, application_id: int, requester: Requester) -> None:
        """Delete a pending application."""
        application = self._require_own_application(application_id, requester)
        post_id = application.post_id

        result = self.db.execute(
            delete(Application)
            .where(
                Application.id == application.id,
                Application.status == ApplicationStatus.PENDING,
            )
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount != 1:
            self.db.refresh(application)
            raise Conflict(
                f"Cannot withdraw application that is not pending "
                f"(status: {application.status.value})"
            )

        self.registry.adjust_application_count(post_id, -1)

    def decide(
        self,
        application_id: int,
        requester: Requester,
        decision: ApplicationDecision,
    ) -> Application | PaymentEligibleSnapshot:
        """
        The post owner's decision on a pending application.

        REJECT transitions the application and returns it. APPROVE
        only validates eligibility and returns a snapshot for
        charge intent creation; the application stays PENDING until
        a charge for it settles.
        """
        requester.require_role(Role.STUDENT)
        application = self.get(application_id)
        post = self.registry.get(application.post_id)
        requester.require_owner(post.owner_id, "tuition post")

        if application.status != ApplicationStatus.PENDING:
            raise Conflict(
                f"Application {application_id} is not pending "
                f"(status: {application.status.value})"
            )

        if decision == ApplicationDecision.REJECT:
            return self._reject(application, post)

        # Settlement closes the post, which only works while it is open
        if post.status != PostStatus.APPROVED:
            raise InvalidState(
                f"Tuition post {post.id} is not open "
                f"(status: {post.status.value})"
            )

        return PaymentEligibleSnapshot(
            application_id=application.id,
            post_id=post.id,
            tutor_id=application.tutor_id,
            student_id=post.owner_id,
            amount=application.expected_price,
        )

    def _reject(self, application: Application, post: TuitionPost) -> Application:
        result = self.db.execute(
            update(Application)
            .where(
                Application.id == application.id,
                Application.status == ApplicationStatus.PENDING,
            )
            .values(status=ApplicationStatus.REJECTED, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        self.db.refresh(application)
        if result.rowcount != 1:
            raise Conflict(
                f"Application {application.id} is not pending "
                f"(status: {application.status.value})"
            )

        emit_safely(
            self.notifier,
            application.tutor_id,
            "application",
            "Application Update",
            f"Your application for the {post.subject} tuition has been declined.",
            application.id,
        )
        return application

    def supersede_siblings(self, post_id: int, except_application_id: int) -> int:
        """
        Close every other pending application on the post.

        Idempotent: once none are pending, this matches nothing.
        Returns how many applications were superseded.
        """
        result = self.db.execute(
            update(Application)
            .where(
                Application.post_id == post_id,
                Application.id != except_application_id,
                Application.status == ApplicationStatus.PENDING,
            )
            .values(status=ApplicationStatus.CLOSED, updated_at=datetime.utcnow())
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount:
            logger.info(
                "Superseded %d application(s) on tuition post %s",
                result.rowcount, post_id,
            )
        return result.rowcount

    def list_for_post(self, post_id: int, requester: Requester) -> list[Application]:
        """Applications on a post, newest first. Owner or admin only."""
        post = self.registry.get(post_id)
        if requester.role != Role.ADMIN:
            requester.require_owner(post.owner_id, "tuition post")

        applications = self.db.execute(
            select(Application)
            .where(Application.post_id == post_id)
            .order_by(Application.created_at.desc())
        ).scalars().all()
        return list(applications)

    def list_for_tutor(self, requester: Requester) -> list[Application]:
        """The requesting tutor's own applications, newest first."""
        requester.require_role(Role.TUTOR)
        applications = self.db.execute(
            select(Application)
            .where(Application.tutor_id == requester.user_id)
            .order_by(Application.created_at.desc())
        ).scalars().all()
        return list(applications)
