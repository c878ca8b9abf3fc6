"""
Shared fixtures.

Each test gets its own SQLite file so transactions, constraint checks and
concurrent writers behave as they do in production. Redis and the Celery
queue are replaced with AsyncMocks.
"""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketplace.database import build_engine, build_session_factory, init_db
from marketplace.models import Job, JobStatus, User, UserRole
from marketplace.schemas import Actor
from marketplace.services.applications import ApplicationStateMachine
from marketplace.services.jobs import JobService

NOW = datetime(2026, 3, 1, 12, 0, 0)


class FakeClock:
    """Settable clock for expiry and deadline tests."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mock_cache():
    """EntityCache stand-in that always misses."""
    cache = AsyncMock()
    cache.get = AsyncMock(return_value=None)
    cache.set = AsyncMock(return_value=True)
    cache.invalidate = AsyncMock(return_value=True)
    cache.invalidate_namespace = AsyncMock(return_value=0)
    cache.invalidate_entity = AsyncMock(return_value={"keys": 0, "list_entries": 0})
    return cache


@pytest.fixture
def mock_notifier():
    notifier = AsyncMock()
    notifier.notify = AsyncMock(return_value=None)
    return notifier


@pytest.fixture
def machine(session_factory, mock_cache, mock_notifier, clock):
    return ApplicationStateMachine(
        session_factory=session_factory,
        cache=mock_cache,
        notifier=mock_notifier,
        clock=clock,
    )


@pytest.fixture
def job_service(session_factory, mock_cache, clock):
    return JobService(session_factory=session_factory, cache=mock_cache, clock=clock)


@pytest.fixture
async def users(session_factory):
    """Seed one account per role plus a second ambassador and company."""
    rows = [
        User(id="admin-1", email="admin@example.com", name="Admin", role=UserRole.ADMIN.value),
        User(id="company-1", email="hiring@acme.example", name="Acme", role=UserRole.COMPANY.value),
        User(id="company-2", email="jobs@globex.example", name="Globex", role=UserRole.COMPANY.value),
        User(id="amb-1", email="ada@example.com", name="Ada", role=UserRole.AMBASSADOR.value),
        User(id="amb-2", email="grace@example.com", name="Grace", role=UserRole.AMBASSADOR.value),
    ]
    async with session_factory() as session:
        async with session.begin():
            session.add_all(rows)
    return {user.id: user for user in rows}


@pytest.fixture
def actors():
    return {
        "admin": Actor(id="admin-1", role=UserRole.ADMIN),
        "company": Actor(id="company-1", role=UserRole.COMPANY),
        "other_company": Actor(id="company-2", role=UserRole.COMPANY),
        "ambassador": Actor(id="amb-1", role=UserRole.AMBASSADOR),
        "other_ambassador": Actor(id="amb-2", role=UserRole.AMBASSADOR),
    }


@pytest.fixture
def make_job(session_factory, users):
    """Insert a job owned by company-1 directly, bypassing moderation."""

    async def _make_job(**overrides) -> str:
        values = {
            "company_id": "company-1",
            "title": "Brand Ambassador",
            "description": "Represent Acme at events",
            "status": JobStatus.ACTIVE.value,
            "application_count": 0,
        }
        values.update(overrides)
        job = Job(**values)
        async with session_factory() as session:
            async with session.begin():
                session.add(job)
        return job.id

    return _make_job


@pytest.fixture
def get_job_row(session_factory):
    async def _get(job_id: str) -> Job:
        async with session_factory() as session:
            return await session.get(Job, job_id)

    return _get


@pytest.fixture
def racing_sessions(engine):
    """
    Session factory whose get() lets another writer change the row's status
    right after it is read, so the caller's compare-and-set finds it moved.
    """

    def _build(model, status: str) -> async_sessionmaker:
        class StatusRacingSession(AsyncSession):
            async def get(self, entity, ident, **kwargs):
                obj = await super().get(entity, ident, **kwargs)
                if entity is model and obj is not None:
                    await self.execute(
                        update(model)
                        .where(model.id == ident)
                        .values(status=status)
                        .execution_options(synchronize_session=False)
                    )
                return obj

        return async_sessionmaker(engine, class_=StatusRacingSession, expire_on_commit=False)

    return _build
