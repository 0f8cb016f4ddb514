"""
SQLAlchemy async database client for the Group Vibes service.

Provides async connection management using SQLAlchemy Core with asyncpg,
plus a retry helper for transient connection failures.
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Awaitable, Callable, TypeVar

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from .exceptions import TransientStoreError
from .tables import metadata  # noqa: F401 - exported for Alembic

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Module-level engine (created on first use)
_engine: AsyncEngine | None = None

DB_RETRY_ATTEMPTS = 3
DB_RETRY_BASE_DELAY = 1.0


def _get_database_url() -> str:
    """
    Construct async database URL from environment variables.

    For asyncpg, postgresql://... becomes postgresql+asyncpg://...
    """
    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        raise ValueError("DATABASE_URL environment variable must be set.")

    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    return database_url


def get_engine() -> AsyncEngine:
    """Get or create the async SQLAlchemy engine singleton."""
    global _engine
    if _engine is None:
        database_url = _get_database_url()
        _engine = create_async_engine(
            database_url,
            echo=os.environ.get("SQL_ECHO", "").lower() == "true",
            # Connection pool settings
            pool_size=5,
            max_overflow=10,
            pool_timeout=30,
            pool_recycle=1800,  # Recycle connections every 30 minutes
            pool_pre_ping=True,
        )
    return _engine


@asynccontextmanager
async def get_connection() -> AsyncGenerator[AsyncConnection, None]:
    """
    Get an async database connection from the pool.

    Usage:
        async with get_connection() as conn:
            result = await conn.execute(select(users))
            row = result.mappings().first()
    """
    engine = get_engine()
    async with engine.connect() as conn:
        yield conn


@asynccontextmanager
async def get_transaction() -> AsyncGenerator[AsyncConnection, None]:
    """
    Get an async database connection with automatic transaction management.
    Commits on success, rolls back on exception.

    Usage:
        async with get_transaction() as conn:
            await conn.execute(insert(users).values(...))
            # Auto-commits if no exception
    """
    engine = get_engine()
    async with engine.begin() as conn:
        yield conn


async def close_engine() -> None:
    """Close the engine and all connections. Call on shutdown."""
    global _engine
    if _engine is not None:
        await _engine.dispose()
        _engine = None


def is_configured() -> bool:
    """Check if database credentials are configured."""
    return bool(os.environ.get("DATABASE_URL"))


def get_sync_database_url() -> str:
    """
    Get synchronous database URL for Alembic migrations.

    Alembic runs migrations synchronously, so we need a psycopg2 URL.
    """
    database_url = os.environ.get("DATABASE_URL", "")

    if "postgresql+asyncpg://" in database_url:
        return database_url.replace("postgresql+asyncpg://", "postgresql://")
    if database_url.startswith("postgresql://"):
        return database_url

    raise ValueError("DATABASE_URL must be set for migrations")


# =============================================================================
# Transient failure retries
# =============================================================================


def is_connection_error(error: BaseException) -> bool:
    """Whether an exception means the database was unreachable, not that the query was wrong."""
    if isinstance(error, (OperationalError, InterfaceError)):
        return True
    if isinstance(error, DBAPIError) and error.connection_invalidated:
        return True
    return isinstance(error, (ConnectionError, TimeoutError, asyncio.TimeoutError))


def get_retry_delay(attempt: int, base_delay: float = DB_RETRY_BASE_DELAY) -> float:
    """
    Delay before retry number `attempt` (zero-based): base, 2*base, 4*base, ...
    """
    return base_delay * (2**attempt)


async def with_db_retry(
    operation: Callable[[], Awaitable[T]],
    description: str = "database operation",
    max_attempts: int = DB_RETRY_ATTEMPTS,
    base_delay: float = DB_RETRY_BASE_DELAY,
) -> T:
    """
    Run an async database operation, retrying connection failures with backoff.

    Only connection-level errors are retried; anything else propagates
    unchanged on the first failure.

    Args:
        operation: Zero-argument coroutine function to run
        description: Human-readable name used in log messages
        max_attempts: Total attempts before giving up
        base_delay: Delay before the first retry, doubled each time

    Raises:
        TransientStoreError: If the operation still fails after max_attempts
    """
    for attempt in range(max_attempts):
        try:
            return await operation()
        except Exception as e:
            if not is_connection_error(e):
                raise
            if attempt == max_attempts - 1:
                raise TransientStoreError(
                    f"{description} failed after {max_attempts} attempts: {e}"
                ) from e
            delay = get_retry_delay(attempt, base_delay)
            logger.warning(
                f"Connection error during {description} "
                f"(attempt {attempt + 1}/{max_attempts}), retrying in {delay:.1f}s: {e}"
            )
            await asyncio.sleep(delay)

    raise TransientStoreError(f"{description} was not attempted")
