from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from marketplace.config import get_settings

settings = get_settings()


class Base(DeclarativeBase):
    pass


def _async_url(url: str) -> str:
    # Convert sqlite:/// to sqlite+aiosqlite:///
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    return url


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine for the given URL.

    SQLite only allows one writer at a time. Write transactions are opened
    with BEGIN IMMEDIATE so concurrent writers wait on the busy timeout
    instead of failing with a lock upgrade deadlock.

    Args:
        database_url: Sync or async SQLAlchemy URL
        echo: Log emitted SQL

    Returns:
        Configured AsyncEngine
    """
    url = _async_url(database_url)

    if not url.startswith("sqlite"):
        return create_async_engine(url, echo=echo)

    engine = create_async_engine(
        url,
        echo=echo,
        connect_args={"timeout": settings.database_busy_timeout_seconds},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        # Let SQLAlchemy emit BEGIN itself
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings.database_url)
async_session = build_session_factory(engine)


async def init_db(target: AsyncEngine = engine):
    # Import models so their tables are registered on Base.metadata
    import marketplace.models  # noqa: F401

    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how DateTime columns are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
