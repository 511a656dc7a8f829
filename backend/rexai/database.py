"""Async engine and session scopes for the document store."""

import asyncio
import logging
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncSession, async_sessionmaker, create_async_engine

from rexai.config import settings
from rexai.models import Base

logger = logging.getLogger("rexai.database")

MAX_INIT_RETRY_DELAY_SECONDS = 10.0

engine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    pool_size=settings.database_pool_size,
    max_overflow=settings.database_max_overflow,
    pool_recycle=settings.database_pool_recycle,
    pool_pre_ping=settings.database_pool_pre_ping,
)

async_session_maker = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


async def _prepare_schema(conn: AsyncConnection) -> None:
    await conn.exec_driver_sql("CREATE EXTENSION IF NOT EXISTS vector")
    version = await conn.scalar(
        text("SELECT extversion FROM pg_extension WHERE extname = 'vector'")
    )
    logger.info("pgvector %s available", version)
    if settings.debug:
        # Alembic owns the schema outside debug runs.
        await conn.run_sync(Base.metadata.create_all)


async def init_db() -> None:
    """Enable pgvector, retrying while the database comes up."""
    attempts = settings.database_init_retries + 1
    for attempt in range(1, attempts + 1):
        try:
            async with engine.begin() as conn:
                await _prepare_schema(conn)
        except Exception as exc:
            if attempt == attempts:
                logger.exception("Database unavailable after %d attempt(s)", attempt)
                raise
            delay = min(
                settings.database_init_retry_delay_seconds * attempt,
                MAX_INIT_RETRY_DELAY_SECONDS,
            )
            logger.warning(
                "Database not ready (%s), attempt %d/%d; retrying in %.1fs",
                type(exc).__name__,
                attempt,
                attempts,
                delay,
            )
            await asyncio.sleep(delay)
        else:
            return


async def close_db() -> None:
    await engine.dispose()


@asynccontextmanager
async def get_db_context() -> AsyncIterator[AsyncSession]:
    """Session that commits on success and rolls back on error.

    Used directly by background summary tasks, which run after their request
    session is gone.
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session dependency."""
    async with get_db_context() as session:
        yield session
