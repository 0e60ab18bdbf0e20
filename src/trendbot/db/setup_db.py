"""
Database schema setup script (postgres publisher backend).

This script creates the articles table and its indexes.

Run with:
    python -m trendbot.db.setup_db

Or use the reset function for development:
    python -c "import asyncio; from trendbot.db.setup_db import reset_database; asyncio.run(reset_database())"
"""

import asyncio

import structlog

from trendbot.db.connection import close_db_pool, get_db_pool

logger = structlog.get_logger()


# ============================================================
# SQL SCHEMA DEFINITIONS
# ============================================================

# One row per published article. Every run inserts new rows: there is
# no unique constraint on source_url, only a lookup index.
CREATE_ARTICLES_SQL = """
CREATE TABLE IF NOT EXISTS articles (
    id BIGSERIAL PRIMARY KEY,

    -- Where the article came from ("TechCrunch", "Reddit")
    source VARCHAR(64) NOT NULL,
    source_url TEXT NOT NULL,
    title TEXT NOT NULL,

    -- Feed description or post body; may be missing
    content TEXT,

    -- Agent output
    summary TEXT,
    sample_code TEXT,
    llm_provider VARCHAR(64),

    fetched_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_articles_source_url
    ON articles(source_url);

-- For "latest articles" queries: ORDER BY fetched_at DESC
CREATE INDEX IF NOT EXISTS idx_articles_fetched_at
    ON articles(fetched_at DESC);
"""


# ============================================================
# SETUP FUNCTIONS
# ============================================================


async def setup_database() -> None:
    """
    Set up the database schema.

    Safe to run multiple times (uses IF NOT EXISTS).
    """
    logger.info("Setting up database schema")

    pool = await get_db_pool()

    async with pool.acquire() as conn:
        logger.info("Creating articles table")
        await conn.execute(CREATE_ARTICLES_SQL)

    logger.info("Database schema setup complete")


async def reset_database() -> None:
    """
    Drop and recreate the articles table.

    WARNING: This destroys all data! Only use in development.
    """
    logger.warning("Resetting database - all data will be lost!")

    pool = await get_db_pool()

    async with pool.acquire() as conn:
        await conn.execute("DROP TABLE IF EXISTS articles CASCADE")

    await setup_database()
    logger.info("Database reset complete")


async def get_table_stats() -> dict:
    """Row counts, total and per source."""
    pool = await get_db_pool()

    async with pool.acquire() as conn:
        total = await conn.fetchval("SELECT COUNT(*) FROM articles")
        rows = await conn.fetch("SELECT source, COUNT(*) AS count FROM articles GROUP BY source")

    return {
        "articles": total,
        "by_source": {row["source"]: row["count"] for row in rows},
    }


async def main() -> None:
    """Main entry point for running schema setup."""
    try:
        await setup_database()
        stats = await get_table_stats()
        logger.info("Database ready", **stats)
    finally:
        await close_db_pool()


if __name__ == "__main__":
    asyncio.run(main())
