"""
Celery Task Modules

Background tasks:
- notifications.py: Application lifecycle email and realtime delivery
"""

from marketplace.tasks.notifications import deliver_notification

__all__ = [
    "deliver_notification",
]
