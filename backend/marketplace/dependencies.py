"""Service factories shared by the API layer and the scheduler."""

from marketplace.database import async_session
from marketplace.services.applications import ApplicationStateMachine
from marketplace.services.cache import get_cache
from marketplace.services.jobs import JobService
from marketplace.services.notifications import CeleryNotificationDispatcher


async def get_application_service() -> ApplicationStateMachine:
    cache = await get_cache()
    return ApplicationStateMachine(
        session_factory=async_session,
        cache=cache,
        notifier=CeleryNotificationDispatcher(),
    )


async def get_job_service() -> JobService:
    cache = await get_cache()
    return JobService(session_factory=async_session, cache=cache)
