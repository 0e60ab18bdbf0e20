"""
Configuration management using pydantic-settings.

Environment variables are loaded from:
1. .env file (if present)
2. System environment variables (override .env)

Credentials are optional at load time so that commands which don't need
them (setup-db, serve) still start. The components that do need them
raise ConfigurationError when they are built, before any external write.

Usage:
    from trendbot.config import get_settings
    settings = get_settings()
    print(settings.pipeline_mode)
"""

from typing import Literal

from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class RssFeedConfig(BaseModel):
    """Configuration for a single RSS feed."""

    name: str  # Also used as the article source category
    url: str
    max_items: int = Field(default=2, ge=1)


class RedditConfig(BaseModel):
    """Configuration for the Reddit listing endpoints."""

    name: str = "Reddit"
    subreddit_urls: list[str]
    user_agent: str = "TrendBot/1.0 (by /u/trendbot)"
    max_items: int = Field(default=3, ge=1)


class NotionPropertyMapping(BaseModel):
    """
    Property names of the target Notion database.

    The sample code column is computed for every article but only written
    when include_sample_code is set.
    """

    title: str = "記事タイトル"
    source_url: str = "sourceUrl"
    summary: str = "summary"
    sample_code: str = "sampleCode"
    source: str = "source"
    include_sample_code: bool = False
    sample_code_language: str = "typescript"


DEFAULT_RSS_FEED = RssFeedConfig(
    name="TechCrunch",
    url="https://techcrunch.com/feed/",
    max_items=2,
)

DEFAULT_REDDIT_CONFIG = RedditConfig(
    subreddit_urls=[
        "https://www.reddit.com/r/technology/hot.json?limit=2",
        "https://www.reddit.com/r/programming/hot.json?limit=1",
        "https://www.reddit.com/r/artificial/hot.json?limit=1",
    ],
    max_items=3,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Language model ===
    llm_provider: Literal["deepseek", "anthropic"] = Field(
        default="deepseek",
        description="Which chat model backs the analysis agent",
    )
    deepseek_api_key: SecretStr | None = Field(default=None, description="DeepSeek API key")
    deepseek_base_url: str = Field(
        default="https://api.deepseek.com/v1",
        description="OpenAI-compatible endpoint for DeepSeek",
    )
    deepseek_model: str = Field(default="deepseek-chat")
    anthropic_api_key: SecretStr | None = Field(default=None, description="Anthropic API key")
    anthropic_model: str = Field(default="claude-sonnet-4-20250514")
    summary_style: Literal["briefing", "social"] = Field(
        default="social",
        description="briefing = 3-line summary, social = one post of at most 140 characters",
    )

    # === Publishing ===
    publisher_backend: Literal["notion", "postgres"] = Field(default="notion")
    notion_api_key: SecretStr | None = Field(default=None, description="Notion integration token")
    notion_database_id: str | None = Field(default=None, description="Target Notion database")
    notion_include_sample_code: bool = Field(
        default=False,
        description="Write the generated sample code into the Notion page",
    )
    database_url: str | None = Field(
        default=None,
        description="PostgreSQL connection string (postgres backend only)",
    )

    # === Pipeline ===
    pipeline_mode: Literal["context", "batch"] = Field(
        default="batch",
        description="context = single article threaded through one context, batch = all articles",
    )
    techcrunch_max_items: int = Field(default=DEFAULT_RSS_FEED.max_items, ge=1)
    reddit_max_items: int = Field(default=DEFAULT_REDDIT_CONFIG.max_items, ge=1)

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )

    @property
    def rss_feed(self) -> RssFeedConfig:
        return DEFAULT_RSS_FEED.model_copy(update={"max_items": self.techcrunch_max_items})

    @property
    def reddit(self) -> RedditConfig:
        return DEFAULT_REDDIT_CONFIG.model_copy(update={"max_items": self.reddit_max_items})

    @property
    def notion_mapping(self) -> NotionPropertyMapping:
        return NotionPropertyMapping(include_sample_code=self.notion_include_sample_code)

    @property
    def notion_configured(self) -> bool:
        """Check if Notion credentials are fully configured."""
        return all([self.notion_api_key, self.notion_database_id])


def get_settings() -> Settings:
    """Get settings instance. Use this for lazy loading in tests."""
    return Settings()
