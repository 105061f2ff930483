"""Database engine and sessions for the auth service.

Commit policy: the SQL stores in `services/stores.py` commit after every
write, so a failed-attempt counter or a blacklist entry is durable even when
the request that produced it ends in an error response. `get_db` therefore
rarely has anything left to commit; its rollback only discards reads and any
write a store did not reach the commit for.
"""

from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from backlog_auth.core.config import settings
from backlog_auth.core.logging import get_logger

logger = get_logger("database")

# Pool sizing comes from DB_POOL_SIZE, DB_MAX_OVERFLOW, DB_POOL_TIMEOUT and
# DB_POOL_RECYCLE. Pre-ping drops connections PostgreSQL closed while idle.
engine = create_async_engine(
    str(settings.database_url),
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_timeout=settings.db_pool_timeout,
    pool_recycle=settings.db_pool_recycle,
    pool_pre_ping=True,
    echo=settings.debug and settings.log_level == "DEBUG",
)

# Stores commit mid-request, so loaded users must stay readable afterwards
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session backing `SqlUserStore` and `SqlRevocationStore`."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except BaseException:
            # Includes CancelledError when the client disconnects mid-request
            await session.rollback()
            raise


async def check_db_connection() -> bool:
    """Return True when `SELECT 1` succeeds. Used by `/health`."""
    try:
        async with async_session_maker() as session:
            await session.execute(text("SELECT 1"))
    except (OSError, ConnectionError) as e:
        logger.debug(f"Database connection check failed: {e}")
        return False
    except Exception as e:
        logger.warning(f"Unexpected error checking database connection: {e}")
        return False
    return True
