"""Patient notifications raised by review transitions.

Delivery is fire-and-forget: the sender hands the message to the RQ
notification queue and never waits for, or fails on, delivery.
"""

import logging
from abc import ABC, abstractmethod

from redis.exceptions import RedisError

from triage.core.config import settings
from triage.core.queue import enqueue_job
from triage.schemas.base import NotificationType, ReviewAction

logger = logging.getLogger(__name__)

DELIVER_JOB = "triage.jobs.notifications.deliver_notification"


class NotificationSender(ABC):
    """Fire-and-forget notification channel."""

    @abstractmethod
    def notify(
        self,
        user_id: str,
        type: NotificationType,
        title: str,
        message: str,
        payload: dict | None = None,
    ) -> None:
        """Send a notification. Must not raise on delivery problems."""


class QueueNotificationSender(NotificationSender):
    """Enqueues notifications for the RQ worker to persist."""

    def __init__(self, queue_name: str | None = None) -> None:
        self.queue_name = queue_name or settings.notification_queue

    def notify(
        self,
        user_id: str,
        type: NotificationType,
        title: str,
        message: str,
        payload: dict | None = None,
    ) -> None:
        try:
            job = enqueue_job(
                DELIVER_JOB,
                user_id,
                NotificationType(type).value,
                title,
                message,
                payload or {},
                queue_name=self.queue_name,
                job_timeout=settings.notification_job_timeout,
            )
        except RedisError as e:
            logger.warning(f"Could not enqueue notification for user_id={user_id}: {e}")
            return
        logger.info(f"Queued notification job {job.id} for user_id={user_id}")


def build_review_message(
    action: ReviewAction,
    condition_names: list[str],
    doctor_notes: str | None = None,
) -> tuple[NotificationType, str, str]:
    """Compose the patient notification for a clinician decision.

    Returns:
        (notification type, title, message)
    """
    names = ", ".join(condition_names) if condition_names else "your symptoms"
    notes = f" Doctor notes: {doctor_notes}" if doctor_notes else ""

    if action == ReviewAction.APPROVE:
        message = f"Your diagnosis for {names} has been approved by a doctor.{notes}"
        return NotificationType.DIAGNOSIS_UPDATE, "Diagnosis Approved", message
    if action == ReviewAction.MODIFY:
        message = f"Your diagnosis for {names} has been modified by a doctor.{notes}"
        return NotificationType.DIAGNOSIS_UPDATE, "Diagnosis Modified", message
    if action == ReviewAction.REJECT:
        message = (
            "Your diagnosis submission has been reviewed. Please consult with a "
            f"healthcare provider for further evaluation.{notes}"
        )
        return NotificationType.CONSULTATION_REQUIRED, "Diagnosis Rejected", message
    return NotificationType.DIAGNOSIS_UPDATE, "Diagnosis Reviewed", "Your diagnosis has been reviewed by a doctor."
