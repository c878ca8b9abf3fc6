"""
Job Capacity Counter

Maintains Job.application_count with single-statement atomic updates so that
concurrent submissions for the same job never lose an increment. Callers pass
the session of their own transaction; the counter never commits.

Rules:
    - Increment happens on submission and is gated on the job being Active
      and below max_applications (when set), in the same statement.
    - Decrement happens only when a counted application is withdrawn and
      never takes the counter below zero.
"""

import logging

from sqlalchemy import or_, update
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.models import Job
from marketplace.services.transitions import ACCEPTING_JOB_STATUSES

logger = logging.getLogger(__name__)


class JobCapacityCounter:
    """Atomic increment/decrement of a job's application counter."""

    async def try_increment(self, session: AsyncSession, job_id: str) -> bool:
        """
        Increment the counter if the job can take another application.

        Args:
            session: Session of the caller's open transaction
            job_id: Job UUID

        Returns:
            True if the counter was incremented, False if the job is not
            accepting applications or is at capacity
        """
        stmt = (
            update(Job)
            .where(Job.id == job_id)
            .where(Job.status.in_([s.value for s in ACCEPTING_JOB_STATUSES]))
            .where(
                or_(
                    Job.max_applications.is_(None),
                    Job.application_count < Job.max_applications,
                )
            )
            .values(application_count=Job.application_count + 1)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.rowcount == 1

    async def decrement(self, session: AsyncSession, job_id: str) -> bool:
        """
        Decrement the counter, never below zero.

        Returns:
            True if the counter was decremented
        """
        stmt = (
            update(Job)
            .where(Job.id == job_id)
            .where(Job.application_count > 0)
            .values(application_count=Job.application_count - 1)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        if result.rowcount != 1:
            logger.warning(
                f"Skipped application_count decrement for job {job_id}: counter already at zero"
            )
            return False
        return True
