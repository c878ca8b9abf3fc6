"""
Tests for the stale application expiry sweep.

Tests cover:
- Only Pending applications older than the window are rejected
- Expired applications carry a system history entry
- Per-application failures do not stop the sweep
- Re-running the sweep is harmless
"""

from datetime import timedelta
from unittest.mock import patch

import pytest

from marketplace.errors import InvalidTransitionError
from marketplace.models import ApplicationStatus
from marketplace.schemas import ApplicationCreate
from marketplace.services.applications import describe_window

PAYLOAD = ApplicationCreate(cover_letter="Available every weekend in March.")
WINDOW = timedelta(days=30)


class TestExpireStale:
    """Test expire_stale()."""

    @pytest.mark.asyncio
    async def test_expires_only_old_pending(self, machine, make_job, clock, actors):
        job_id = await make_job()
        old = await machine.submit(job_id, "amb-1", PAYLOAD)
        clock.advance(days=21)
        recent = await machine.submit(job_id, "amb-2", PAYLOAD)
        clock.advance(days=10)

        report = await machine.expire_stale(WINDOW)

        assert (report.processed, report.expired, report.failed) == (1, 1, 0)
        expired = await machine.get_application(old.id, actors["admin"])
        untouched = await machine.get_application(recent.id, actors["admin"])
        assert expired.status == ApplicationStatus.REJECTED
        assert untouched.status == ApplicationStatus.PENDING

    @pytest.mark.asyncio
    async def test_history_entry_is_from_system(self, machine, make_job, clock, actors):
        job_id = await make_job()
        application = await machine.submit(job_id, "amb-1", PAYLOAD)
        clock.advance(days=31)

        await machine.expire_stale(WINDOW)

        result = await machine.get_application(application.id, actors["admin"])
        last = result.status_history[-1]
        assert last.actor_id == "system"
        assert last.notes == "auto-expired after 30 days in Pending"

    @pytest.mark.asyncio
    async def test_sub_day_window_is_worded_in_hours(self, machine, make_job, clock, actors):
        job_id = await make_job()
        application = await machine.submit(job_id, "amb-1", PAYLOAD)
        clock.advance(hours=13)

        report = await machine.expire_stale(timedelta(hours=12))

        assert report.expired == 1
        result = await machine.get_application(application.id, actors["admin"])
        assert result.status_history[-1].notes == "auto-expired after 12 hours in Pending"

    @pytest.mark.asyncio
    async def test_reviewed_applications_are_left_alone(self, machine, make_job, clock, actors):
        job_id = await make_job()
        application = await machine.submit(job_id, "amb-1", PAYLOAD)
        await machine.transition(application.id, actors["company"], ApplicationStatus.REVIEWING)
        clock.advance(days=45)

        report = await machine.expire_stale(WINDOW)

        assert report.processed == 0

    @pytest.mark.asyncio
    async def test_second_run_is_a_no_op(self, machine, make_job, clock):
        job_id = await make_job()
        await machine.submit(job_id, "amb-1", PAYLOAD)
        clock.advance(days=31)

        first = await machine.expire_stale(WINDOW)
        second = await machine.expire_stale(WINDOW)

        assert first.expired == 1
        assert (second.processed, second.expired, second.failed) == (0, 0, 0)

    @pytest.mark.asyncio
    async def test_failure_is_counted_and_sweep_continues(self, machine, make_job, clock):
        job_id = await make_job()
        first = await machine.submit(job_id, "amb-1", PAYLOAD)
        await machine.submit(job_id, "amb-2", PAYLOAD)
        clock.advance(days=31)

        original = machine.transition

        async def flaky(application_id, *args, **kwargs):
            if application_id == first.id:
                raise InvalidTransitionError("application changed status concurrently")
            return await original(application_id, *args, **kwargs)

        with patch.object(machine, "transition", side_effect=flaky):
            report = await machine.expire_stale(WINDOW)

        assert (report.processed, report.expired, report.failed) == (2, 1, 1)


class TestDescribeWindow:

    @pytest.mark.parametrize(
        "window, wording",
        [
            (timedelta(days=30), "30 days"),
            (timedelta(days=1), "1 day"),
            (timedelta(hours=12), "12 hours"),
            (timedelta(hours=36), "36 hours"),
            (timedelta(minutes=45), "45 minutes"),
            (timedelta(seconds=90), "90 seconds"),
        ],
    )
    def test_wording(self, window, wording):
        assert describe_window(window) == wording
