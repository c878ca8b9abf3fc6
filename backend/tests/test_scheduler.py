"""
Tests for the background scheduler jobs.
"""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
from apscheduler.triggers.cron import CronTrigger

from marketplace import scheduler as scheduler_module
from marketplace.schemas import ExpiryReport, ReminderReport


@pytest.fixture
def service():
    service = AsyncMock()
    service.expire_stale = AsyncMock(return_value=ExpiryReport(processed=2, expired=2))
    service.send_interview_reminders = AsyncMock(return_value=ReminderReport(due=1, sent=1))
    return service


class TestJobs:

    @pytest.mark.asyncio
    async def test_expiry_uses_configured_days(self, service):
        with patch.object(scheduler_module, "get_application_service", AsyncMock(return_value=service)):
            report = await scheduler_module.expire_stale_applications()

        service.expire_stale.assert_awaited_once_with(
            timedelta(days=scheduler_module.settings.application_expiry_days)
        )
        assert report.expired == 2

    @pytest.mark.asyncio
    async def test_reminders_use_configured_hours(self, service):
        with patch.object(scheduler_module, "get_application_service", AsyncMock(return_value=service)):
            report = await scheduler_module.send_interview_reminders()

        service.send_interview_reminders.assert_awaited_once_with(
            timedelta(hours=scheduler_module.settings.interview_reminder_hours)
        )
        assert report.sent == 1


class TestRegistration:

    def test_registers_daily_expiry_and_hourly_reminders(self):
        with patch.object(scheduler_module.scheduler, "start"):
            scheduler_module.start_scheduler()
        try:
            expiry = scheduler_module.scheduler.get_job("expire_stale_applications")
            reminders = scheduler_module.scheduler.get_job("send_interview_reminders")

            assert isinstance(expiry.trigger, CronTrigger)
            assert isinstance(reminders.trigger, CronTrigger)
            fields = {f.name: str(f) for f in reminders.trigger.fields}
            assert fields["minute"] == "0"
            assert fields["hour"] == "*"
        finally:
            scheduler_module.scheduler.remove_all_jobs()
