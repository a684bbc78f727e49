"""Notification delivery job functions."""

import logging

from sqlalchemy.orm import Session

from triage.core.database import get_session_factory
from triage.models.user import Notification
from triage.schemas.base import NotificationType

logger = logging.getLogger(__name__)


def deliver_notification(
    user_id: str,
    type: str,
    title: str,
    message: str,
    payload: dict | None = None,
    session: Session | None = None,
) -> dict:
    """Persist an in-app notification for a user.

    This function is executed by an RQ worker, enqueued by
    QueueNotificationSender after a review transition commits.

    Args:
        user_id: Recipient user id.
        type: NotificationType value.
        title: Short notification title.
        message: Notification body.
        payload: Extra context, e.g. the diagnosis session id.
        session: Optional database session (for tests); a new one is
            opened and committed otherwise.

    Returns:
        Dictionary with the created notification id.
    """
    payload = payload or {}
    notification = Notification(
        user_id=user_id,
        type=NotificationType(type).value,
        title=title,
        message=message,
        payload=payload,
        diagnosis_session_id=payload.get("diagnosis_session_id"),
    )

    if session is not None:
        session.add(notification)
        session.flush()
    else:
        with get_session_factory()() as db:
            db.add(notification)
            db.commit()

    logger.info(f"Delivered {notification.type} notification {notification.id} to user_id={user_id}")
    return {"notification_id": notification.id, "user_id": user_id}
