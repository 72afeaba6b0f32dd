"""
Async SQLAlchemy engine, session factory and transaction scope.
"""

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.config import settings
from app.errors import ClaimServiceError, TransactionFailed
from app.observability.metrics import operation_duration_seconds, transaction_failures_total

logger = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    pass


def _engine_kwargs(url: str) -> dict:
    kwargs = {"echo": settings.DB_ECHO, "pool_pre_ping": True}
    if not url.startswith("sqlite"):
        kwargs["pool_size"] = settings.DB_POOL_SIZE
        kwargs["max_overflow"] = settings.DB_MAX_OVERFLOW
    return kwargs


engine = create_async_engine(settings.DATABASE_URL, **_engine_kwargs(settings.DATABASE_URL))

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield one pooled session per request; always returned to the pool."""
    session = async_session_factory()
    try:
        yield session
    finally:
        await session.close()


@asynccontextmanager
async def atomic(session: AsyncSession, operation: str):
    """
    Run a block of statements as one transaction.

    Commits when the block finishes, rolls back on any error. Database
    errors are logged with their detail and re-raised as TransactionFailed
    so callers never see driver messages.
    """
    started = time.perf_counter()
    try:
        yield session
        await session.commit()
    except ClaimServiceError:
        await session.rollback()
        raise
    except SQLAlchemyError as e:
        await session.rollback()
        transaction_failures_total.labels(operation=operation).inc()
        logger.error("transaction_failed", operation=operation, error=str(e))
        raise TransactionFailed(operation) from e
    except BaseException:
        await session.rollback()
        raise
    finally:
        operation_duration_seconds.labels(operation=operation).observe(
            time.perf_counter() - started
        )


async def close_db() -> None:
    await engine.dispose()
