"""
Request-scoped dependencies shared by the routers.

Identity is established upstream; the auth layer forwards the
resolved user as X-User-Id and X-User-Role headers.
"""

from fastapi import Header, HTTPException, Request

from tuition_settlement.gateway.base import PaymentGateway
from tuition_settlement.models.enums import Role
from tuition_settlement.schemas.requester import Requester
from tuition_settlement.services.notifications import NotificationEmitter


def get_requester(
    x_user_id: int | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Requester:
    if x_user_id is None or x_user_role is None:
        raise HTTPException(status_code=401, detail="Missing identity headers")
    try:
        role = Role(x_user_role.lower())
    except ValueError:
        raise HTTPException(status_code=401, detail=f"Unknown role '{x_user_role}'")
    return Requester(user_id=x_user_id, role=role)


def get_gateway(request: Request) -> PaymentGateway:
    """The gateway built at startup in main.py."""
    return request.app.state.gateway


def get_notifier(request: Request) -> NotificationEmitter:
    return request.app.state.notifier
