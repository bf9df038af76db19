"""
Tuition post API endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from tuition_settlement.api.deps import get_requester
from tuition_settlement.errors import ServiceError
from tuition_settlement.models.base import get_db
from tuition_settlement.schemas.requester import Requester
from tuition_settlement.schemas.tuition import (
    TuitionPostCreate,
    TuitionPostUpdate,
    ModerationRequest,
    TuitionPostResponse,
)
from tuition_settlement.services.tuition_registry import TuitionPostRegistry

router = APIRouter(prefix="/tuitions", tags=["Tuitions"])


@router.post("", response_model=TuitionPostResponse, status_code=201)
def create_tuition_post(
    request: TuitionPostCreate,
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
):
    """Post a new tuition request. It waits in PENDING for moderation."""
    registry = TuitionPostRegistry(db)
    try:
        post = registry.create(requester, request)
        db.commit()
        return post
    except ServiceError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/mine", response_model=list[TuitionPostResponse])
def list_my_tuition_posts(
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
):
    registry = TuitionPostRegistry(db)
    return registry.list_for_owner(requester.user_id)


@router.get("/{post_id}", response_model=TuitionPostResponse)
def get_tuition_post(
    post_id: int,
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
):
    registry = TuitionPostRegistry(db)
    try:
        return registry.get(post_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.patch("/{post_id}", response_model=TuitionPostResponse)
def update_tuition_post(
    post_id: int,
    request: TuitionPostUpdate,
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
):
    """
    Edit a post's details.

    An approved or rejected post goes back to PENDING and must be
    moderated again.
    """
    registry = TuitionPostRegistry(db)
    try:
        post = registry.update(post_id, requester, request)
        db.commit()
        return post
    except ServiceError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/{post_id}/moderate", response_model=TuitionPostResponse)
def moderate_tuition_post(
    post_id: int,
    request: ModerationRequest,
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
):
    """Approve or reject a post. Admins only."""
    registry = TuitionPostRegistry(db)
    try:
        post = registry.moderate(post_id, request.decision, requester)
        db.commit()
        return post
    except ServiceError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.delete("/{post_id}", status_code=204)
def delete_tuition_post(
    post_id: int,
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
):
    """Delete a post that has not hired anyone, with its applications."""
    registry = TuitionPostRegistry(db)
    try:
        registry.delete(post_id, requester)
        db.commit()
    except ServiceError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return Response(status_code=204)
