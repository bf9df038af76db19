"""
Notification emitter contract.

Delivery is someone else's problem: an emitter may queue, drop or
retry as it sees fit. Callers never rely on a return value, and
use emit_safely() so a broken emitter cannot fail the operation
that triggered the notification.
"""

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class NotificationEmitter(Protocol):

    def emit(
        self,
        recipient_id: int,
        type: str,
        title: str,
        body: str,
        related_entity_id: int | None = None,
    ) -> None:
        ...


class LoggingNotificationEmitter:
    """Writes notifications to the log. The default when nothing else is wired."""

    def emit(
        self,
        recipient_id: int,
        type: str,
        title: str,
        body: str,
        related_entity_id: int | None = None,
    ) -> None:
        logger.info(
            "notification recipient=%s type=%s related=%s title=%r body=%r",
            recipient_id, type, related_entity_id, title, body,
        )


def emit_safely(
    emitter: NotificationEmitter,
    recipient_id: int,
    type: str,
    title: str,
    body: str,
    related_entity_id: int | None = None,
) -> None:
    """Emit a notification; log and drop any failure."""
    try:
        emitter.emit(recipient_id, type, title, body, related_entity_id)
    except Exception:
        logger.exception(
            "Failed to emit %s notification to user %s", type, recipient_id
        )
