"""
SafeNote Backend — Database Session Management
================================================

What:  Async SQLAlchemy engine, session factory, FastAPI dependency and
       startup connection check.
Why:   Centralizes all database connection logic in one place.
How:   Creates an async engine with connection pooling, provides a session
       dependency that auto-commits on success and auto-rolls-back on error.
Who:   Used by route handlers via FastAPI's dependency injection system.
When:  Engine is created at module import; sessions are created per-request.

Startup Policy:
    The store is required. init_database() retries the first connection with
    exponential backoff (tenacity) and re-raises once the attempts run out,
    which aborts the lifespan and terminates the process.
"""

import logging
from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)
from tenacity.wait import wait_base

from app.config import settings

logger = logging.getLogger(__name__)


def _engine_options(database_url: str) -> Dict[str, Any]:
    """
    Pool options for the configured backend.

    SQLite (used by tests and quick local runs) manages its own pool and
    rejects pool_size/max_overflow, so only server databases get them.
    """
    options: Dict[str, Any] = {"echo": settings.log_level == "DEBUG"}
    if not database_url.startswith("sqlite"):
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )
    return options


# ── Engine Configuration ──────────────────────────────────────────────────
engine = create_async_engine(settings.database_url, **_engine_options(settings.database_url))

# ── Session Factory ───────────────────────────────────────────────────────
# expire_on_commit=False: attributes stay readable after the request commits
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ── Base Model ────────────────────────────────────────────────────────────
class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models (shared metadata for Alembic)."""
    pass


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Creates a new session from the factory
        2. Yields it to the route handler
        3. On success: commits the transaction
        4. On error: rolls back the transaction
        5. Always: closes the session (returns connection to pool)

    Every write a handler makes (including the primary-key swap of a rename)
    therefore lands in a single transaction.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
def _connect_wait() -> wait_base:
    """
    Backoff between startup connection attempts:
    min(max_wait, min_wait * 2^attempt) plus up to min_wait of random jitter.
    """
    return wait_exponential(
        multiplier=settings.db_connect_retry_min_wait,
        max=settings.db_connect_retry_max_wait,
    ) + wait_random(0, settings.db_connect_retry_min_wait)


@retry(
    retry=retry_if_exception_type((SQLAlchemyError, OSError)),
    stop=stop_after_attempt(settings.db_connect_max_attempts),
    wait=_connect_wait(),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
async def _check_connection(target: AsyncEngine) -> None:
    async with target.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def init_database(target: Optional[AsyncEngine] = None) -> None:
    """
    What:  Verifies the database is reachable and optionally creates tables.
    When:  Called once during application startup (lifespan).
    Raises:
        The last connection error once DB_CONNECT_MAX_ATTEMPTS is exhausted.
    """
    target = target or engine
    await _check_connection(target)
    logger.info("Database connection established")

    if settings.db_create_tables:
        # Import registers the model on Base.metadata
        from app.models.note import Note  # noqa: F401

        async with target.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created (DB_CREATE_TABLES=true)")


async def dispose_engine() -> None:
    """
    What:  Gracefully closes all connections in the pool.
    When:  Called during application shutdown (lifespan handler).
    """
    await engine.dispose()
