from collections.abc import AsyncGenerator, Awaitable, Callable

import structlog
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from driverhire.config import settings

logger = structlog.get_logger()

# SSL is required for production/staging PostgreSQL connections.
# SQLite (used in tests) does not support SSL connect_args.
_connect_args: dict = {}
if (
    settings.APP_ENV in ("production", "staging")
    and "sqlite" not in settings.DATABASE_URL
):
    _connect_args["ssl"] = "require"

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.APP_DEBUG,
    pool_pre_ping=True,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_recycle=3600,
    pool_timeout=30,
    connect_args=_connect_args,
)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

_AFTER_COMMIT_KEY = "after_commit_callbacks"


class Base(DeclarativeBase):
    pass


def run_after_commit(session: AsyncSession, callback: Callable[[], Awaitable[None]]) -> None:
    """Queue a coroutine factory to run once the session's transaction has committed.

    Callbacks are dropped on rollback.
    """
    session.info.setdefault(_AFTER_COMMIT_KEY, []).append(callback)


def pending_after_commit(session: AsyncSession) -> list[Callable[[], Awaitable[None]]]:
    return list(session.info.get(_AFTER_COMMIT_KEY, []))


def discard_after_commit(session: AsyncSession) -> None:
    session.info.pop(_AFTER_COMMIT_KEY, None)


async def drain_after_commit(session: AsyncSession) -> None:
    """Run and clear the callbacks queued on ``session``. Failures are logged, never raised."""
    callbacks = session.info.pop(_AFTER_COMMIT_KEY, [])
    for callback in callbacks:
        try:
            await callback()
        except Exception:
            logger.exception("after_commit_callback_failed")


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except HTTPException:
            # Domain errors are expected outcomes: undo the request's writes quietly.
            await session.rollback()
            discard_after_commit(session)
            raise
        except Exception:
            await session.rollback()
            discard_after_commit(session)
            logger.exception("db_session_failed")
            raise
        await drain_after_commit(session)
