"""
Tuition post registry — owns the lifecycle of a posted request.

Students create posts, moderators open or reject them, and only
settlement closes them. Closing is a conditional write so that a
post can never be closed twice or closed while not open.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import select, update, delete, case
from sqlalchemy.orm import Session

from tuition_settlement.errors import ValidationError, NotFound, Conflict
from tuition_settlement.models.application import Application
from tuition_settlement.models.tuition_post import TuitionPost
from tuition_settlement.models.enums import (
    ApplicationStatus,
    PostStatus,
    ModerationDecision,
    Role,
)
from tuition_settlement.schemas.requester import Requester
from tuition_settlement.schemas.tuition import TuitionPostCreate, TuitionPostUpdate


MODERATION_TARGETS = {
    ModerationDecision.APPROVE: PostStatus.APPROVED,
    ModerationDecision.REJECT: PostStatus.REJECTED,
}


def _check_budget(budget_min: Decimal, budget_max: Decimal) -> None:
    if budget_min > budget_max:
        raise ValidationError(
            f"budget_min ({budget_min}) cannot exceed budget_max ({budget_max})"
        )


class TuitionPostRegistry:

    def __init__(self, db: Session):
        self.db = db

    def create(self, requester: Requester, details: TuitionPostCreate) -> TuitionPost:
        """
        Create a new post in PENDING status.

        Required fields are enforced by the schema; the registry
        checks what a schema cannot, like the budget range.
        """
        requester.require_role(Role.STUDENT)
        _check_budget(details.budget_min, details.budget_max)

        post = TuitionPost(
            owner_id=requester.user_id,
            title=details.title,
            subject=details.subject,
            class_level=details.class_level,
            location=details.location,
            budget_min=details.budget_min,
            budget_max=details.budget_max,
            schedule=details.schedule,
            description=details.description,
        )
        self.db.add(post)
        self.db.flush()
        return post

    def get(self, post_id: int) -> TuitionPost:
        """Get a post by ID."""
        post = self.db.get(TuitionPost, post_id)
        if not post:
            raise NotFound(f"Tuition post {post_id} not found")
        return post

    def list_for_owner(self, owner_id: int) -> list[TuitionPost]:
        """All posts by one student, newest first."""
        posts = self.db.execute(
            select(TuitionPost)
            .where(TuitionPost.owner_id == owner_id)
            .order_by(TuitionPost.created_at.desc())
        ).scalars().all()
        return list(posts)

    def update(
        self, post_id: int, requester: Requester, changes: TuitionPostUpdate
    ) -> TuitionPost:
        """
        Edit a post's details.

        An edited post goes back to PENDING so a moderator sees
        the new content before it is open again.
        """
        post = self.get(post_id)
        requester.require_owner(post.owner_id, "tuition post")
        if post.status == PostStatus.CLOSED:
            raise Conflict(f"Tuition post {post_id} is closed")

        fields = changes.model_dump(exclude_unset=True, exclude_none=True)
        _check_budget(
            fields.get("budget_min", post.budget_min),
            fields.get("budget_max", post.budget_max),
        )
        for name, value in fields.items():
            setattr(post, name, value)

        if post.status in (PostStatus.APPROVED, PostStatus.REJECTED):
            post.status = PostStatus.PENDING

        self.db.flush()
        return post

    def moderate(
        self, post_id: int, decision: ModerationDecision, requester: Requester
    ) -> TuitionPost:
        """Open (APPROVED) or reject a post. Admins only."""
        requester.require_role(Role.ADMIN)
        post = self.get(post_id)
        new_status = MODERATION_TARGETS[decision]

        if post.status == PostStatus.CLOSED:
            raise Conflict(f"Tuition post {post_id} is already closed")
        if not post.can_transition_to(new_status):
            raise Conflict(
                f"Cannot transition from {post.status.value} "
                f"to {new_status.value}"
            )

        post.status = new_status
        self.db.flush()
        return post

    def adjust_application_count(self, post_id: int, delta: int) -> None:
        """
        Shift the display counter by delta, never below zero.

        A single UPDATE, so concurrent submissions don't lose
        increments. Nothing depends on this number being exact.
        """
        new_count = TuitionPost.application_count + delta
        self.db.execute(
            update(TuitionPost)
            .where(TuitionPost.id == post_id)
            .values(application_count=case((new_count < 0, 0), else_=new_count))
            .execution_options(synchronize_session="fetch")
        )

    def close(self, post_id: int, assigned_tutor_id: int) -> TuitionPost:
        """
        Close an open post and record the hired tutor.

        Called only by SettlementCoordinator. The WHERE clause on
        status makes this a compare-and-swap: it succeeds once.
        """
        now = datetime.utcnow()
        result = self.db.execute(
            update(TuitionPost)
            .where(
                TuitionPost.id == post_id,
                TuitionPost.status == PostStatus.APPROVED,
            )
            .values(
                status=PostStatus.CLOSED,
                assigned_tutor_id=assigned_tutor_id,
                closed_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        post = self.get(post_id)
        self.db.refresh(post)
        if result.rowcount != 1:
            raise Conflict(
                f"Tuition post {post_id} is not open "
                f"(status: {post.status.value})"
            )
        return post

    def delete(self, post_id: int, requester: Requester) -> None:
        """
        Remove a post and the applications on it. Owner only.

        The post row is locked the way settlement locks it, so a post
        cannot disappear from under a hire in progress. A post that
        has hired a tutor is kept.
        """
        requester.require_role(Role.STUDENT)
        post = self.get(post_id)
        requester.require_owner(post.owner_id, "tuition post")

        self.db.execute(
            select(TuitionPost.id).where(TuitionPost.id == post_id).with_for_update()
        )
        self.db.refresh(post)
        if post.status == PostStatus.CLOSED:
            raise Conflict(f"Tuition post {post_id} is closed")
        hired = self.db.execute(
            select(Application.id).where(
                Application.post_id == post_id,
                Application.status == ApplicationStatus.APPROVED,
            )
        ).first()
        if hired is not None:
            raise Conflict(f"Tuition post {post_id} has a hired application")

        self.db.execute(
            delete(Application)
            .where(Application.post_id == post_id)
            .execution_options(synchronize_session="fetch")
        )
        self.db.delete(post)
        self.db.flush()
