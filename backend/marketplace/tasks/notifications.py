"""
Background Tasks for Notification Delivery

Celery task that delivers one application lifecycle event:
1. POST the event to the configured mail API (template rendering happens there)
2. Publish it on the recipient's Redis pub/sub channel for realtime clients

Delivery is at-least-once from the worker's point of view: transport errors
trigger a retry, so a recipient may occasionally receive a duplicate.
"""

import json
import logging
import time
from typing import Any, Dict

import httpx
import redis
from prometheus_client import Counter, Histogram

from marketplace.celery import celery_app
from marketplace.config import get_settings

logger = logging.getLogger(__name__)

# ==================== Prometheus Metrics ====================

TASK_DURATION = Histogram(
    "celery_task_duration_seconds",
    "Time spent executing Celery tasks",
    ["task_name"]
)

TASK_FAILURES = Counter(
    "celery_task_failures_total",
    "Number of Celery task failures",
    ["task_name"]
)

NOTIFICATIONS_SENT = Counter(
    "notifications_sent_total",
    "Notifications accepted by the mail API",
    ["kind"]
)

SUBJECTS = {
    "application_submitted": "We received your application for {job_title}",
    "application_received": "New application for {job_title}",
    "application_status_changed": "Your application for {job_title} is now {new_status}",
    "interview_scheduled": "Interview scheduled for {job_title}",
    "interview_reminder": "Reminder: your interview for {job_title} is coming up",
}


# ==================== Helper Functions ====================

def build_subject(event: Dict[str, Any]) -> str:
    template = SUBJECTS.get(event["kind"], "Application update")
    data = {"job_title": "your job", **event.get("template_data", {})}
    return template.format(new_status=event["new_status"], **data)


def send_email(event: Dict[str, Any]) -> bool:
    """
    Send the event to the mail API.

    Returns:
        True if the mail API accepted the message, False if no mail API
        is configured
    """
    settings = get_settings()
    if not settings.mail_api_url:
        logger.info(f"Mail API not configured, skipping {event['kind']} email")
        return False

    payload = {
        "from": settings.mail_from_address,
        "to": event["recipient_address"],
        "subject": build_subject(event),
        "template": event["kind"],
        "data": {
            **event.get("template_data", {}),
            "application_id": event["application_id"],
            "job_id": event["job_id"],
            "status": event["new_status"],
        },
    }
    headers = {}
    if settings.mail_api_key:
        headers["Authorization"] = f"Bearer {settings.mail_api_key}"

    with httpx.Client(timeout=10.0) as client:
        response = client.post(settings.mail_api_url, json=payload, headers=headers)
        response.raise_for_status()

    NOTIFICATIONS_SENT.labels(kind=event["kind"]).inc()
    return True


def publish_realtime(event: Dict[str, Any]) -> None:
    """Publish the event for WebSocket forwarding. Failures are logged only."""
    channel = f"user:{event['recipient_id']}"
    try:
        client = redis.from_url(get_settings().redis_url)
        try:
            client.publish(channel, json.dumps({"type": "notification", **event}))
        finally:
            client.close()
    except redis.RedisError as e:
        logger.warning(f"Failed to publish notification on {channel}: {e}")


# ==================== Celery Tasks ====================

@celery_app.task(bind=True, max_retries=3, default_retry_delay=30)
def deliver_notification(self, event: Dict[str, Any]) -> bool:
    """
    Deliver a notification event by email and realtime channel.

    Args:
        event: NotificationEvent serialized with model_dump(mode="json")

    Returns:
        True if an email was sent
    """
    start_time = time.time()

    try:
        sent = send_email(event)
        publish_realtime(event)
        logger.info(
            f"Delivered {event['kind']} for application {event['application_id']} "
            f"(email={'sent' if sent else 'skipped'})"
        )
        return sent

    except httpx.HTTPError as exc:
        TASK_FAILURES.labels(task_name="deliver_notification").inc()
        logger.error(f"Mail API error for application {event['application_id']}: {exc}")
        raise self.retry(exc=exc, countdown=30)

    finally:
        duration = time.time() - start_time
        TASK_DURATION.labels(task_name="deliver_notification").observe(duration)
