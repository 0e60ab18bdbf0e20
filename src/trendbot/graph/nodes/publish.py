"""
Publish Node - Writes analyzed articles to Notion.

Each article becomes one page (row) in the target Notion database:

    title property       <- article title
    sourceUrl (rich_text) <- article URL
    summary (rich_text)   <- analysis summary
    source (select)       <- article source category
    sampleCode (rich_text) <- analysis sample code, only if enabled

Property names and the sample code switch come from NotionPropertyMapping.

There is one write per article with no idempotency key, so re-running
the pipeline creates duplicate pages.

Failures are logged and re-raised as PublishError: there is no useful
fallback for a record that could not be stored.
"""

from typing import Protocol

import structlog
from notion_client import APIResponseError, AsyncClient

from trendbot.config import NotionPropertyMapping, Settings
from trendbot.errors import ConfigurationError, MissingPrerequisiteError, PublishError
from trendbot.graph.state import (
    SAMPLE_CODE_SENTINEL,
    AnalysisResult,
    Article,
    PipelineContext,
    add_log,
)

logger = structlog.get_logger()

# Notion rejects rich text objects longer than this
NOTION_TEXT_LIMIT = 2000


class Publisher(Protocol):
    """Anything that can store one analyzed article."""

    name: str

    async def publish(self, article: Article, analysis: AnalysisResult) -> str:
        """Store the record and return its identifier."""
        ...


def rich_text(content: str) -> list[dict]:
    return [{"text": {"content": content[:NOTION_TEXT_LIMIT]}}]


class NotionPublisher:
    """
    Publisher backed by a Notion database.

    Args:
        client: notion_client.AsyncClient authenticated with the integration token
        database_id: Target database
        mapping: Property names and field switches
    """

    name = "NotionAPI"

    def __init__(
        self,
        client: AsyncClient,
        database_id: str,
        mapping: NotionPropertyMapping | None = None,
    ):
        self.client = client
        self.database_id = database_id
        self.mapping = mapping or NotionPropertyMapping()

    @classmethod
    def from_settings(cls, settings: Settings) -> "NotionPublisher":
        """
        Build a publisher from settings.

        Raises:
            ConfigurationError: If the API key or database id is missing
        """
        if settings.notion_api_key is None:
            raise ConfigurationError("NOTION_API_KEY is not set in environment variables.")
        if not settings.notion_database_id:
            raise ConfigurationError("NOTION_DATABASE_ID is not set in environment variables.")

        client = AsyncClient(auth=settings.notion_api_key.get_secret_value())
        return cls(client, settings.notion_database_id, settings.notion_mapping)

    def build_properties(self, article: Article, analysis: AnalysisResult) -> dict:
        """Map an article and its analysis onto the database properties."""
        mapping = self.mapping
        properties = {
            mapping.title: {"title": rich_text(article["title"])},
            mapping.source_url: {"rich_text": rich_text(article["source_url"])},
            mapping.summary: {"rich_text": rich_text(analysis["summary"])},
            mapping.source: {"select": {"name": article["source"]}},
        }

        if mapping.include_sample_code:
            code = analysis["sample_code"]
            if code != SAMPLE_CODE_SENTINEL:
                code = f"```{mapping.sample_code_language}\n{code}\n```"
            properties[mapping.sample_code] = {"rich_text": rich_text(code)}

        return properties

    async def publish(self, article: Article, analysis: AnalysisResult) -> str:
        """
        Create one page for the article.

        Returns:
            The id of the new Notion page

        Raises:
            PublishError: On any API, auth or transport failure
        """
        log = logger.bind(title=article["title"], database_id=self.database_id)
        log.info("Writing to Notion")

        try:
            response = await self.client.pages.create(
                parent={"database_id": self.database_id},
                properties=self.build_properties(article, analysis),
            )
        except APIResponseError as e:
            log.error("Notion rejected the page", code=str(e.code), status=e.status, error=str(e))
            raise PublishError(f"Notion API error ({e.code}): {e}", title=article["title"]) from e
        except Exception as e:
            log.error("Error writing to Notion", error=str(e), error_type=type(e).__name__)
            raise PublishError(f"Notion request failed: {e}", title=article["title"]) from e

        page_id = response["id"]
        log.info("Successfully wrote to Notion", page_id=page_id)
        return page_id

    async def check_connection(self) -> dict:
        """
        Retrieve the target database to verify the token and database id.

        Raises:
            PublishError: If the database can't be retrieved
        """
        log = logger.bind(database_id=self.database_id)
        log.info("Checking Notion connection")

        try:
            database = await self.client.databases.retrieve(database_id=self.database_id)
        except APIResponseError as e:
            log.error("Notion connection failed", code=str(e.code), status=e.status, error=str(e))
            raise PublishError(f"Notion API error ({e.code}): {e}") from e
        except Exception as e:
            log.error("Notion connection failed", error=str(e), error_type=type(e).__name__)
            raise PublishError(f"Notion request failed: {e}") from e

        title = "".join(part.get("plain_text", "") for part in database.get("title", []))
        log.info("Notion database found", database_title=title)
        return {"success": True, "database": title or self.database_id}


def create_publisher(settings: Settings) -> Publisher:
    """
    Build the publisher selected by settings.publisher_backend.

    Credentials are checked here, so a misconfigured run fails before its
    first write.
    """
    if settings.publisher_backend == "postgres":
        from trendbot.graph.nodes.persist import PostgresPublisher

        return PostgresPublisher.from_settings(settings)

    return NotionPublisher.from_settings(settings)


async def save_article(ctx: PipelineContext, publisher: Publisher) -> PipelineContext:
    """
    Context-mode save stage.

    Raises:
        MissingPrerequisiteError: If the article or its analysis is missing.
            Nothing is written in that case.
        PublishError: If the write fails
    """
    article = ctx.get("article")
    analysis = ctx.get("analysis")
    if article is None or analysis is None:
        missing = [name for name, value in (("article", article), ("analysis", analysis)) if value is None]
        logger.error("Cannot save without prerequisite data", missing=missing)
        raise MissingPrerequisiteError(f"Missing data: {', '.join(missing)}")

    await publisher.publish(article, analysis)

    return add_log(ctx, step="save", agent=publisher.name, note=f"Saved {article['title']}")


def create_save_node(publisher: Publisher):
    """Factory for the context-mode save stage."""

    async def node(ctx: PipelineContext) -> PipelineContext:
        return await save_article(ctx, publisher)

    return node
