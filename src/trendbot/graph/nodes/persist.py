"""
Persist - Saves analyzed articles to PostgreSQL.

The table-backed alternative to the Notion publisher: one INSERT per
article into the articles table (see trendbot.db.setup_db).

Inserts are plain INSERTs, not upserts. Running the pipeline twice over
the same feed stores the same article twice; source_url is indexed but
not unique.
"""

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

import asyncpg
import structlog

from trendbot.config import Settings
from trendbot.db.connection import get_db_pool
from trendbot.errors import ConfigurationError, PublishError
from trendbot.graph.state import AnalysisResult, Article

logger = structlog.get_logger()


INSERT_ARTICLE_SQL = """
INSERT INTO articles (
    source, source_url, title, content,
    summary, sample_code, llm_provider, fetched_at
) VALUES (
    $1, $2, $3, $4,
    $5, $6, $7, $8
)
RETURNING id;
"""


class PostgresPublisher:
    """
    Publisher that writes one row per article.

    Args:
        pool_factory: Coroutine returning the asyncpg pool (overridable in tests)
    """

    name = "PostgreSQL"

    def __init__(self, pool_factory: Callable[[], Awaitable[asyncpg.Pool]] = get_db_pool):
        self.pool_factory = pool_factory

    @classmethod
    def from_settings(cls, settings: Settings) -> "PostgresPublisher":
        if not settings.database_url:
            raise ConfigurationError("DATABASE_URL is not set in environment variables.")
        return cls()

    async def publish(self, article: Article, analysis: AnalysisResult) -> str:
        """
        Insert the article and return the new row id.

        Raises:
            PublishError: If the insert fails
        """
        log = logger.bind(title=article["title"], source=article["source"])

        try:
            pool = await self.pool_factory()
            async with pool.acquire() as conn:
                row_id = await conn.fetchval(
                    INSERT_ARTICLE_SQL,
                    article["source"],
                    article["source_url"],
                    article["title"],
                    article.get("content"),
                    analysis["summary"],
                    analysis["sample_code"],
                    analysis["provider"],
                    datetime.now(UTC),
                )
        except Exception as e:
            log.error("Failed to persist article", error=str(e), error_type=type(e).__name__)
            raise PublishError(f"Database insert failed: {e}", title=article["title"]) from e

        log.info("Article persisted", row_id=row_id)
        return str(row_id)


async def get_recent_articles(limit: int = 20, source: str | None = None) -> list[dict]:
    """
    Query recently stored articles, newest first.

    Args:
        limit: Maximum number of rows to return
        source: Optional source filter (e.g., "Reddit")
    """
    pool = await get_db_pool()

    query = """
        SELECT id, source, source_url, title, summary, sample_code, llm_provider, fetched_at
        FROM articles
    """
    params: list = []

    if source:
        query += " WHERE source = $1"
        params.append(source)

    query += f" ORDER BY fetched_at DESC LIMIT ${len(params) + 1}"
    params.append(limit)

    async with pool.acquire() as conn:
        rows = await conn.fetch(query, *params)

    return [dict(row) for row in rows]
