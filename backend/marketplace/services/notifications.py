"""
Notification Dispatcher

Hands application lifecycle events to the delivery worker. Dispatch runs
after the state change has been committed and is strictly best-effort: a
failure here is logged and counted but never raised, so it cannot roll back
or block the transition that produced it.

Event kinds:
    - application_submitted: to the applicant, on submission
    - application_received: to the job owner, on submission
    - application_status_changed: to the applicant, on every transition
    - interview_scheduled: to the applicant, when an interview is booked
    - interview_reminder: to the applicant, ahead of an upcoming interview
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from marketplace.config import get_settings
from marketplace.middleware.metrics import record_notification_failure

logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    APPLICATION_SUBMITTED = "application_submitted"
    APPLICATION_RECEIVED = "application_received"
    APPLICATION_STATUS_CHANGED = "application_status_changed"
    INTERVIEW_SCHEDULED = "interview_scheduled"
    INTERVIEW_REMINDER = "interview_reminder"


class NotificationEvent(BaseModel):
    kind: NotificationKind
    application_id: str
    job_id: str
    actor_id: str
    new_status: str
    recipient_id: str
    recipient_address: str
    template_data: Dict[str, Any] = Field(default_factory=dict)


class NotificationDispatcher(ABC):
    """Fire-and-forget sink for notification events."""

    @abstractmethod
    async def notify(self, event: NotificationEvent) -> None:
        """Dispatch an event. Implementations must not raise."""
        pass


class CeleryNotificationDispatcher(NotificationDispatcher):
    """
    Enqueue events on the Celery delivery queue.

    Publishing to the broker is a blocking network call, so it runs in a
    worker thread and is bounded by a timeout.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout or get_settings().notification_timeout_seconds

    async def notify(self, event: NotificationEvent) -> None:
        payload = event.model_dump(mode="json")
        try:
            await asyncio.wait_for(
                asyncio.to_thread(self._enqueue, payload),
                timeout=self.timeout,
            )
            logger.info(
                f"Queued {event.kind.value} notification for application {event.application_id}"
            )
        except Exception as e:
            record_notification_failure(event.kind.value)
            logger.warning(
                f"Failed to queue {event.kind.value} notification "
                f"for application {event.application_id}: {e!r}"
            )

    def _enqueue(self, payload: Dict[str, Any]) -> None:
        # Import here to avoid loading the Celery app in the API process until needed
        from marketplace.tasks.notifications import deliver_notification

        deliver_notification.delay(payload)
