"""
Job Service - job postings and their moderation lifecycle

Companies create jobs as Draft and submit them for moderation; admins approve
(Active) or reject them. Owners pause, resume, close or cancel their jobs.
Status changes use the same compare-and-set discipline as applications.

This service never writes application_count; that belongs to the
application state machine through the capacity counter.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketplace.database import to_naive_utc, utcnow
from marketplace.errors import (
    ForbiddenError,
    InternalError,
    InvalidTransitionError,
    MarketplaceError,
    NotFoundError,
)
from marketplace.models import Job, JobStatus, User, UserRole
from marketplace.schemas import Actor, JobCreate, JobListResponse, JobResponse
from marketplace.services.cache import (
    JOB_LIST_NAMESPACE,
    EntityCache,
    EntityKind,
    entity_key,
    list_key,
)
from marketplace.services.transitions import (
    authorize_job_transition,
    coerce_job_status,
    is_moderation_edge,
    validate_job_transition,
)

logger = logging.getLogger(__name__)


class JobService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cache: EntityCache,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.cache = cache
        self.clock = clock

    async def create_job(self, actor: Actor, payload: JobCreate) -> JobResponse:
        """Create a Draft job owned by the acting company."""
        if actor.role is not UserRole.COMPANY:
            raise ForbiddenError("only company accounts can post jobs")

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    company = await session.get(User, actor.id)
                    if company is None:
                        raise NotFoundError(f"company {actor.id} not found")

                    job = Job(
                        company_id=actor.id,
                        title=payload.title,
                        description=payload.description,
                        location=payload.location,
                        max_applications=payload.max_applications,
                        application_deadline=to_naive_utc(payload.application_deadline),
                        status=JobStatus.DRAFT.value,
                        application_count=0,
                    )
                    session.add(job)
                    await session.flush()
                    await session.refresh(job)
                    response = JobResponse.model_validate(job)
        except MarketplaceError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Storage error creating job for {actor.id}: {e}")
            raise InternalError("could not store job") from e

        logger.info(f"Job {response.id} created by company {actor.id}")
        await self.cache.invalidate_namespace(JOB_LIST_NAMESPACE)
        return response

    async def get_job(self, job_id: str) -> JobResponse:
        key = entity_key(EntityKind.JOB, job_id)
        cached = await self.cache.get(key)
        if cached is not None:
            return JobResponse.model_validate(cached)

        try:
            async with self.session_factory() as session:
                job = await session.get(Job, job_id)
                if job is None:
                    raise NotFoundError(f"job {job_id} not found")
                response = JobResponse.model_validate(job)
        except SQLAlchemyError as e:
            raise InternalError("could not load job") from e

        await self.cache.set(key, response.model_dump(mode="json"))
        return response

    async def list_jobs(
        self,
        status: Optional[JobStatus] = None,
        company_id: Optional[str] = None,
        page: int = 1,
        per_page: int = 20,
    ) -> JobListResponse:
        params = {
            "status": status.value if status else None,
            "company_id": company_id,
            "page": page,
            "per_page": per_page,
        }
        key = list_key(JOB_LIST_NAMESPACE, params)
        cached = await self.cache.get(key)
        if cached is not None:
            return JobListResponse.model_validate(cached)

        query = select(Job)
        count_query = select(func.count(Job.id))

        if status:
            query = query.where(Job.status == status.value)
            count_query = count_query.where(Job.status == status.value)

        if company_id:
            query = query.where(Job.company_id == company_id)
            count_query = count_query.where(Job.company_id == company_id)

        query = query.order_by(Job.created_at.desc(), Job.id)
        query = query.offset((page - 1) * per_page).limit(per_page)

        try:
            async with self.session_factory() as session:
                total = (await session.execute(count_query)).scalar() or 0
                jobs = (await session.execute(query)).scalars().all()
                response = JobListResponse(
                    jobs=[JobResponse.model_validate(job) for job in jobs],
                    total=total,
                    page=page,
                    per_page=per_page,
                )
        except SQLAlchemyError as e:
            raise InternalError("could not list jobs") from e

        await self.cache.set(key, response.model_dump(mode="json"), namespace=JOB_LIST_NAMESPACE)
        return response

    async def change_status(
        self,
        job_id: str,
        actor: Actor,
        target_status: JobStatus | str,
        reason: Optional[str] = None,
    ) -> JobResponse:
        """
        Move a job along its lifecycle.

        Moderation (Pending -> Active/Rejected) is admin-only and records the
        moderator, time and reason.

        Raises:
            NotFoundError: job does not exist
            ForbiddenError: actor may not make this change
            InvalidTransitionError: edge not in the job status graph
        """
        now = self.clock()
        try:
            target = coerce_job_status(target_status)
            async with self.session_factory() as session:
                async with session.begin():
                    job = await session.get(Job, job_id)
                    if job is None:
                        raise NotFoundError(f"job {job_id} not found")

                    current = coerce_job_status(job.status)
                    authorize_job_transition(actor, current, target, job.company_id)
                    validate_job_transition(current, target)

                    values = {"status": target.value, "updated_at": now}
                    if is_moderation_edge(current, target):
                        values.update(
                            moderated_by=actor.id,
                            moderated_at=now,
                            moderation_reason=reason,
                        )

                    result = await session.execute(
                        update(Job)
                        .where(Job.id == job_id)
                        .where(Job.status == current.value)
                        .values(**values)
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount != 1:
                        raise InvalidTransitionError(
                            f"job changed status concurrently and is no longer {current.value}"
                        )

                    await session.refresh(job)
                    response = JobResponse.model_validate(job)
        except MarketplaceError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Storage error changing status of job {job_id}: {e}")
            raise InternalError("could not update job status") from e

        logger.info(f"Job {job_id}: {current.value} -> {target.value} by {actor.role.value}:{actor.id}")
        await self.cache.invalidate_entity(EntityKind.JOB, job_id)
        return response
