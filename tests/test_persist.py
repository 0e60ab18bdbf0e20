"""
Tests for the PostgreSQL publisher.

Key testing strategies:
1. Mock asyncpg pool and connections
2. Test insert parameters
3. Test error handling

Note on mocking asyncpg:
- pool.acquire() returns an async context manager
- We need to mock both the pool and the connection it returns
"""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from trendbot.config import Settings
from trendbot.errors import ConfigurationError, PublishError
from trendbot.graph.nodes.persist import PostgresPublisher, get_recent_articles
from trendbot.graph.state import AnalysisResult, Article


def make_article(content: str | None = "Body") -> Article:
    return Article(
        source="Reddit",
        title="Test Post",
        source_url="https://www.reddit.com/r/programming/comments/1/test/",
        content=content,
    )


def make_analysis() -> AnalysisResult:
    return AnalysisResult(summary="要約", sample_code="none", provider="DeepSeek")


@pytest.fixture
def mock_connection():
    """Create a mock asyncpg connection."""
    conn = MagicMock()
    conn.fetchval = AsyncMock(return_value=42)
    conn.fetch = AsyncMock(return_value=[])
    return conn


@pytest.fixture
def mock_pool(mock_connection):
    """Create a mock asyncpg pool with acquire() context manager."""
    pool = MagicMock()

    @asynccontextmanager
    async def mock_acquire():
        yield mock_connection

    pool.acquire = mock_acquire
    return pool


@pytest.fixture
def publisher(mock_pool):
    async def pool_factory():
        return mock_pool

    return PostgresPublisher(pool_factory=pool_factory)


class TestPostgresPublisher:
    """Tests for inserting articles."""

    async def test_returns_row_id(self, publisher, mock_connection):
        record_id = await publisher.publish(make_article(), make_analysis())

        assert record_id == "42"
        mock_connection.fetchval.assert_called_once()

    async def test_insert_parameters(self, publisher, mock_connection):
        await publisher.publish(make_article(content=None), make_analysis())

        # SQL is first, then: source(1), source_url(2), title(3), content(4),
        # summary(5), sample_code(6), llm_provider(7), fetched_at(8)
        call_args = mock_connection.fetchval.call_args[0]
        assert "INSERT INTO articles" in call_args[0]
        assert call_args[1] == "Reddit"
        assert call_args[3] == "Test Post"
        assert call_args[4] is None
        assert call_args[5] == "要約"
        assert call_args[7] == "DeepSeek"
        assert call_args[8].tzinfo is not None

    async def test_wraps_database_error(self, publisher, mock_connection):
        mock_connection.fetchval = AsyncMock(side_effect=Exception("DB error"))

        with pytest.raises(PublishError, match="DB error") as exc_info:
            await publisher.publish(make_article(), make_analysis())

        assert exc_info.value.title == "Test Post"

    async def test_wraps_pool_error(self):
        async def broken_factory():
            raise ConnectionRefusedError("no database")

        publisher = PostgresPublisher(pool_factory=broken_factory)

        with pytest.raises(PublishError):
            await publisher.publish(make_article(), make_analysis())

    def test_from_settings_requires_url(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        settings = Settings(_env_file=None, publisher_backend="postgres")

        with pytest.raises(ConfigurationError, match="DATABASE_URL"):
            PostgresPublisher.from_settings(settings)


class TestGetRecentArticles:
    """Tests for the query helper."""

    async def test_default_query(self, mock_pool, mock_connection):
        async def mock_get_pool():
            return mock_pool

        with patch("trendbot.graph.nodes.persist.get_db_pool", mock_get_pool):
            await get_recent_articles()

        call_args = mock_connection.fetch.call_args[0]
        assert "ORDER BY fetched_at DESC" in call_args[0]
        assert "WHERE" not in call_args[0]
        assert call_args[1] == 20

    async def test_source_filter(self, mock_pool, mock_connection):
        mock_connection.fetch = AsyncMock(return_value=[{"id": 1, "source": "Reddit"}])

        async def mock_get_pool():
            return mock_pool

        with patch("trendbot.graph.nodes.persist.get_db_pool", mock_get_pool):
            rows = await get_recent_articles(limit=5, source="Reddit")

        call_args = mock_connection.fetch.call_args[0]
        assert "WHERE source = $1" in call_args[0]
        assert call_args[1:] == ("Reddit", 5)
        assert rows == [{"id": 1, "source": "Reddit"}]
