"""
Celery Application Configuration

Configures Celery for background notification delivery with:
- Redis as message broker and result backend
- Task autodiscovery from marketplace.tasks module
- Late acknowledgement so deliveries survive worker loss

Usage:
    # Start worker:
    celery -A marketplace.celery worker --loglevel=info -Q notifications

    # Enqueue a task:
    from marketplace.tasks.notifications import deliver_notification
    deliver_notification.delay(event.model_dump(mode="json"))
"""

from celery import Celery
from marketplace.config import get_settings

settings = get_settings()

celery_app = Celery(
    "marketplace",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Worker settings
    worker_prefetch_multiplier=1,  # Fair task distribution
    worker_concurrency=4,

    # Result settings
    result_expires=3600,
    task_track_started=True,

    # Retry settings
    task_acks_late=True,  # Acknowledge after completion
    task_reject_on_worker_lost=True,

    # Fail fast when the broker is down; the API process must not hang
    broker_connection_timeout=2,
    broker_connection_retry_on_startup=True,

    task_routes={
        "marketplace.tasks.notifications.deliver_notification": {"queue": "notifications"},
    },

    task_default_queue="default",
)

celery_app.autodiscover_tasks(["marketplace.tasks"])
