"""
Database connection management using asyncpg.

Only used by the postgres publisher backend.

Usage:
    from trendbot.db import get_db_pool

    pool = await get_db_pool()
    async with pool.acquire() as conn:
        rows = await conn.fetch("SELECT * FROM articles")

    # At shutdown:
    await close_db_pool()

The pool is created lazily on first use and shared across the process.
"""

import asyncpg
import structlog

from trendbot.config import get_settings
from trendbot.errors import ConfigurationError

logger = structlog.get_logger()

# Global connection pool (singleton)
_pool: asyncpg.Pool | None = None


async def get_db_pool() -> asyncpg.Pool:
    """
    Get or create the database connection pool.

    Returns:
        asyncpg.Pool: Connection pool

    Raises:
        ConfigurationError: If DATABASE_URL is not set
        asyncpg.PostgresError: If connection fails
    """
    global _pool

    if _pool is None:
        settings = get_settings()
        if not settings.database_url:
            raise ConfigurationError("DATABASE_URL is not set in environment variables.")

        logger.info("Creating database connection pool", database_url=settings.database_url[:30] + "...")

        _pool = await asyncpg.create_pool(
            settings.database_url,
            min_size=1,
            max_size=5,
            command_timeout=60,
        )

        logger.info("Database pool created", min_size=1, max_size=5)

    return _pool


async def close_db_pool() -> None:
    """
    Close the database connection pool.

    Safe to call even if the pool was never created.
    """
    global _pool

    if _pool is not None:
        logger.info("Closing database pool")
        await _pool.close()
        _pool = None


async def check_db_health() -> bool:
    """
    Check if the database is reachable.

    Returns:
        True if healthy, False otherwise
    """
    try:
        pool = await get_db_pool()
        async with pool.acquire() as conn:
            await conn.fetchval("SELECT 1")
        return True
    except Exception as e:
        logger.error("Database health check failed", error=str(e))
        return False
