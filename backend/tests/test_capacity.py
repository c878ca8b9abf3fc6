"""Tests for the atomic job application counter."""

import pytest

from marketplace.models import JobStatus
from marketplace.services.capacity import JobCapacityCounter


@pytest.fixture
def counter():
    return JobCapacityCounter()


class TestJobCapacityCounter:
    """Test try_increment() and decrement()."""

    @pytest.mark.asyncio
    async def test_increment_active_job(self, counter, session_factory, make_job, get_job_row):
        job_id = await make_job()

        async with session_factory() as session:
            async with session.begin():
                assert await counter.try_increment(session, job_id)

        job = await get_job_row(job_id)
        assert job.application_count == 1

    @pytest.mark.asyncio
    async def test_increment_stops_at_limit(self, counter, session_factory, make_job, get_job_row):
        job_id = await make_job(max_applications=2, application_count=2)

        async with session_factory() as session:
            async with session.begin():
                assert not await counter.try_increment(session, job_id)

        job = await get_job_row(job_id)
        assert job.application_count == 2

    @pytest.mark.asyncio
    async def test_increment_requires_active(self, counter, session_factory, make_job):
        job_id = await make_job(status=JobStatus.PAUSED.value)

        async with session_factory() as session:
            async with session.begin():
                assert not await counter.try_increment(session, job_id)

    @pytest.mark.asyncio
    async def test_decrement(self, counter, session_factory, make_job, get_job_row):
        job_id = await make_job(application_count=3)

        async with session_factory() as session:
            async with session.begin():
                assert await counter.decrement(session, job_id)

        job = await get_job_row(job_id)
        assert job.application_count == 2

    @pytest.mark.asyncio
    async def test_decrement_never_goes_negative(
        self, counter, session_factory, make_job, get_job_row, caplog
    ):
        job_id = await make_job(application_count=0)

        async with session_factory() as session:
            async with session.begin():
                assert not await counter.decrement(session, job_id)

        job = await get_job_row(job_id)
        assert job.application_count == 0
        assert "already at zero" in caplog.text

    @pytest.mark.asyncio
    async def test_rollback_discards_increment(self, counter, session_factory, make_job, get_job_row):
        job_id = await make_job()

        with pytest.raises(RuntimeError):
            async with session_factory() as session:
                async with session.begin():
                    await counter.try_increment(session, job_id)
                    raise RuntimeError("abort")

        job = await get_job_row(job_id)
        assert job.application_count == 0
