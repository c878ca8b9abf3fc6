"""
Background Scheduler - Application Expiry and Interview Reminders

Applications left in Pending longer than APPLICATION_EXPIRY_DAYS are moved to
Rejected by the system actor. Each one goes through the regular state machine,
so history, counters, cache and notifications behave exactly as for a manual
rejection.

Applicants with an interview inside the next INTERVIEW_REMINDER_HOURS get one
reminder each; the hourly sweep claims an interview before notifying.

Default Schedule:
  - expiry: daily at EXPIRY_SWEEP_HOUR (UTC)
  - interview reminders: hourly, on the hour
"""

import logging
from datetime import timedelta
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from marketplace.config import get_settings
from marketplace.dependencies import get_application_service
from marketplace.schemas import ExpiryReport, ReminderReport

logger = logging.getLogger(__name__)
settings = get_settings()
scheduler = AsyncIOScheduler(timezone="UTC")


async def expire_stale_applications() -> ExpiryReport:
    """Run one expiry sweep with the configured window."""
    service = await get_application_service()
    window = timedelta(days=settings.application_expiry_days)
    report = await service.expire_stale(window)
    logger.info(
        f"Expiry sweep: {report.expired}/{report.processed} expired, {report.failed} failed"
    )
    return report


async def send_interview_reminders() -> ReminderReport:
    """Remind applicants about interviews inside the configured window."""
    service = await get_application_service()
    window = timedelta(hours=settings.interview_reminder_hours)
    report = await service.send_interview_reminders(window)
    logger.info(f"Interview reminders: {report.sent}/{report.due} sent")
    return report


def start_scheduler():
    """Start the background scheduler"""
    scheduler.add_job(
        expire_stale_applications,
        trigger=CronTrigger(hour=settings.expiry_sweep_hour, minute=0),
        id="expire_stale_applications",
        replace_existing=True,
    )
    scheduler.add_job(
        send_interview_reminders,
        trigger=CronTrigger(minute=0),
        id="send_interview_reminders",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(
        f"Scheduler started: expiring applications daily at {settings.expiry_sweep_hour:02d}:00 UTC, "
        f"interview reminders hourly"
    )


def stop_scheduler():
    """Stop the background scheduler"""
    if scheduler.running:
        scheduler.shutdown()
