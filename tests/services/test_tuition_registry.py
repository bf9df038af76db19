"""
Tests for the TuitionPostRegistry.
"""

from decimal import Decimal

import pytest

from tuition_settlement.errors import ValidationError, NotFound, Forbidden, Conflict
from tuition_settlement.models.application import Application
from tuition_settlement.models.enums import (
    ApplicationStatus,
    PostStatus,
    ModerationDecision,
    Role,
)
from tuition_settlement.models.tuition_post import TuitionPost
from tuition_settlement.schemas.requester import Requester
from tuition_settlement.schemas.tuition import TuitionPostCreate, TuitionPostUpdate
from tuition_settlement.services.tuition_registry import TuitionPostRegistry


STUDENT = Requester(user_id=1, role=Role.STUDENT)
OTHER_STUDENT = Requester(user_id=2, role=Role.STUDENT)
TUTOR = Requester(user_id=10, role=Role.TUTOR)
ADMIN = Requester(user_id=99, role=Role.ADMIN)


def make_post(registry, owner=STUDENT, budget_min="4000", budget_max="6000"):
    return registry.create(owner, TuitionPostCreate(
        title="Physics tutor needed",
        subject="Physics",
        class_level="HSC",
        location="Uttara",
        budget_min=Decimal(budget_min),
        budget_max=Decimal(budget_max),
        schedule="Weekends",
        description="Mechanics and waves.",
    ))


def make_open_post(registry, db_session):
    post = make_post(registry)
    registry.moderate(post.id, ModerationDecision.APPROVE, ADMIN)
    db_session.commit()
    return post


class TestCreatePost:

    def test_create_post_starts_pending(self, db_session):
        registry = TuitionPostRegistry(db_session)
        post = make_post(registry)
        db_session.commit()

        assert post.id is not None
        assert post.owner_id == STUDENT.user_id
        assert post.status == PostStatus.PENDING
        assert post.application_count == 0
        assert post.assigned_tutor_id is None

    def test_only_students_create_posts(self, db_session):
        registry = TuitionPostRegistry(db_session)
        with pytest.raises(Forbidden):
            make_post(registry, owner=TUTOR)

    def test_inverted_budget_rejected(self, db_session):
        registry = TuitionPostRegistry(db_session)
        with pytest.raises(ValidationError, match="cannot exceed"):
            make_post(registry, budget_min="7000", budget_max="5000")

    def test_equal_budget_bounds_allowed(self, db_session):
        registry = TuitionPostRegistry(db_session)
        post = make_post(registry, budget_min="5000", budget_max="5000")
        assert post.budget_min == post.budget_max


class TestGetPost:

    def test_get_existing_post(self, db_session):
        registry = TuitionPostRegistry(db_session)
        post = make_post(registry)
        db_session.commit()

        assert registry.get(post.id).id == post.id

    def test_get_missing_post_raises(self, db_session):
        registry = TuitionPostRegistry(db_session)
        with pytest.raises(NotFound, match="not found"):
            registry.get(999)

    def test_list_for_owner_only_returns_own_posts(self, db_session):
        registry = TuitionPostRegistry(db_session)
        make_post(registry)
        make_post(registry)
        make_post(registry, owner=OTHER_STUDENT)
        db_session.commit()

        posts = registry.list_for_owner(STUDENT.user_id)
        assert len(posts) == 2
        assert all(p.owner_id == STUDENT.user_id for p in posts)


class TestModeration:

    def test_admin_approves_pending_post(self, db_session):
        registry = TuitionPostRegistry(db_session)
        post = make_post(registry)
        registry.moderate(post.id, ModerationDecision.APPROVE, ADMIN)
        db_session.commit()

        assert post.status == PostStatus.APPROVED

    def test_admin_rejects_pending_post(self, db_session):
        registry = TuitionPostRegistry(db_session)
        post = make_post(registry)
        registry.moderate(post.id, ModerationDecision.REJECT, ADMIN)

        assert post.status == PostStatus.REJECTED

    def test_rejected_post_can_be_approved(self, db_session):
        registry = TuitionPostRegistry(db_session)
        post = make_post(registry)
        registry.moderate(post.id, ModerationDecision.REJECT, ADMIN)
        registry.moderate(post.id, ModerationDecision.APPROVE, ADMIN)

        assert post.status == PostStatus.APPROVED

    def test_non_admin_cannot_moderate(self, db_session):
        registry = TuitionPostRegistry(db_session)
        post = make_post(registry)
        with pytest.raises(Forbidden):
            registry.moderate(post.id, ModerationDecision.APPROVE, STUDENT)

    def test_approving_twice_is_invalid(self, db_session):
        registry = TuitionPostRegistry(db_session)
        post = make_open_post(registry, db_session)
        with pytest.raises(Conflict, match="Cannot transition"):
            registry.moderate(post.id, ModerationDecision.APPROVE, ADMIN)

    def test_closed_post_cannot_be_moderated(self, db_session):
        registry = TuitionPostRegistry(db_session)
        post = make_open_post(registry, db_session)
        registry.close(post.id, TUTOR.user_id)
        db_session.commit()

        with pytest.raises(Conflict, match="closed"):
            registry.moderate(post.id, ModerationDecision.REJECT, ADMIN)

    def test_moderating_missing_post_raises(self, db_session):
        registry = TuitionPostRegistry(db_session)
        with pytest.raises(NotFound):
            registry.moderate(404, ModerationDecision.APPROVE, ADMIN)


class TestUpdatePost:

    def test_owner_edits_pending_post(self, db_session):
        registry = TuitionPostRegistry(db_session)
        post = make_post(registry)
        registry.update(post.id, STUDENT, TuitionPostUpdate(location="Mirpur"))

        assert post.location == "Mirpur"
        assert post.status == PostStatus.PENDING

    def test_editing_open_post_sends_it_back_to_moderation(self, db_session):
        registry = TuitionPostRegistry(db_session)
        post = make_open_post(registry, db_session)
        registry.update(post.id, STUDENT, TuitionPostUpdate(title="Updated title"))
        db_session.commit()

        assert post.title == "Updated title"
        assert post.status == PostStatus.PENDING

    def test_editing_rejected_post_sends_it_back_to_moderation(self, db_session):
        registry = TuitionPostRegistry(db_session)
        post = make_post(registry)
        registry.moderate(post.id, ModerationDecision.REJECT, ADMIN)
        registry.update(post.id, STUDENT, TuitionPostUpdate(description="Clearer."))

        assert post.status == PostStatus.PENDING

    def test_non_owner_cannot_edit(self, db_session):
        registry = TuitionPostRegistry(db_session)
        post = make_post(registry)
        with pytest.raises(Forbidden):
            registry.update(post.id, OTHER_STUDENT, TuitionPostUpdate(title="Mine"))

    def test_edit_cannot_invert_budget(self, db_session):
        registry = TuitionPostRegistry(db_session)
        post = make_post(registry)
        with pytest.raises(ValidationError):
            registry.update(
                post.id, STUDENT, TuitionPostUpdate(budget_min=Decimal("9000"))
            )

    def test_closed_post_cannot_be_edited(self, db_session):
        registry = TuitionPostRegistry(db_session)
        post = make_open_post(registry, db_session)
        registry.close(post.id, TUTOR.user_id)
        db_session.commit()

        with pytest.raises(Conflict):
            registry.update(post.id, STUDENT, TuitionPostUpdate(title="Too late"))


class TestApplicationCount:

    def test_increment_and_decrement(self, db_session):
        registry = TuitionPostRegistry(db_session)
        post = make_open_post(registry, db_session)

        registry.adjust_application_count(post.id, 1)
        registry.adjust_application_count(post.id, 1)
        registry.adjust_application_count(post.id, -1)
        db_session.commit()

        assert registry.get(post.id).application_count == 1

    def test_count_never_goes_below_zero(self, db_session):
        registry = TuitionPostRegistry(db_session)
        post = make_open_post(registry, db_session)

        registry.adjust_application_count(post.id, -3)
        db_session.commit()

        assert registry.get(post.id).application_count == 0


class TestClosePost:

    def test_close_open_post(self, db_session):
        registry = TuitionPostRegistry(db_session)
        post = make_open_post(registry, db_session)

        closed = registry.close(post.id, TUTOR.user_id)
        db_session.commit()

        assert closed.status == PostStatus.CLOSED
        assert closed.assigned_tutor_id == TUTOR.user_id
        assert closed.closed_at is not None

    def test_close_succeeds_only_once(self, db_session):
        registry = TuitionPostRegistry(db_session)
        post = make_open_post(registry, db_session)
        registry.close(post.id, TUTOR.user_id)

        with pytest.raises(Conflict, match="not open"):
            registry.close(post.id, 11)

        assert registry.get(post.id).assigned_tutor_id == TUTOR.user_id

    def test_pending_post_cannot_be_closed(self, db_session):
        registry = TuitionPostRegistry(db_session)
        post = make_post(registry)
        db_session.commit()

        with pytest.raises(Conflict):
            registry.close(post.id, TUTOR.user_id)


class TestDeletePost:

    def test_owner_deletes_post_with_its_applications(
        self, db_session, open_post, apply
    ):
        post = open_post()
        application_ids = [
            apply(post).id,
            apply(post, Requester(user_id=11, role=Role.TUTOR)).id,
        ]
        post_id = post.id

        TuitionPostRegistry(db_session).delete(post_id, STUDENT)
        db_session.commit()

        assert db_session.get(TuitionPost, post_id) is None
        for application_id in application_ids:
            assert db_session.get(Application, application_id) is None

    def test_owner_deletes_unmoderated_post(self, db_session):
        registry = TuitionPostRegistry(db_session)
        post = make_post(registry)
        db_session.commit()

        registry.delete(post.id, STUDENT)
        db_session.commit()

        with pytest.raises(NotFound):
            registry.get(post.id)

    def test_non_owner_cannot_delete(self, db_session):
        registry = TuitionPostRegistry(db_session)
        post = make_open_post(registry, db_session)

        with pytest.raises(Forbidden):
            registry.delete(post.id, OTHER_STUDENT)
        with pytest.raises(Forbidden):
            registry.delete(post.id, ADMIN)

        assert registry.get(post.id).status == PostStatus.APPROVED

    def test_deleting_missing_post_raises(self, db_session):
        registry = TuitionPostRegistry(db_session)
        with pytest.raises(NotFound):
            registry.delete(999, STUDENT)

    def test_closed_post_cannot_be_deleted(self, db_session):
        registry = TuitionPostRegistry(db_session)
        post = make_open_post(registry, db_session)
        registry.close(post.id, TUTOR.user_id)
        db_session.commit()

        with pytest.raises(Conflict, match="closed"):
            registry.delete(post.id, STUDENT)

    def test_post_with_hired_application_cannot_be_deleted(
        self, db_session, open_post, apply
    ):
        """A hire whose settlement has not finished still pins the post."""
        post = open_post()
        application = apply(post)
        application.status = ApplicationStatus.APPROVED
        db_session.commit()

        with pytest.raises(Conflict, match="hired"):
            TuitionPostRegistry(db_session).delete(post.id, STUDENT)

        assert db_session.get(Application, application.id) is not None
