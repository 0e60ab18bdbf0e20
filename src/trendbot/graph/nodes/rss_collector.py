"""
RSS Collector Node - Fetches and parses the TechCrunch feed.

This module:
1. Fetches the configured RSS feed using httpx (async HTTP)
2. Parses the feed using feedparser
3. Drops entries without a title or link
4. Converts feed entries to Article format, capped at max_items
5. Handles errors gracefully (logs them, never fails the pipeline)

Two entry points share the same parsing:
- rss_collector: batch-mode LangGraph node, returns {"articles": [...]}
- fetch_latest_article: context-mode stage, puts the newest article
  into the PipelineContext and appends a "fetch" log entry
"""

import feedparser
import httpx
import structlog

from trendbot.config import DEFAULT_RSS_FEED, RssFeedConfig
from trendbot.errors import NetworkError, ParseError
from trendbot.graph.state import Article, BatchState, PipelineContext, add_log

logger = structlog.get_logger()

USER_AGENT = "TrendBot/1.0"
AGENT_NAME = "RSSFetcher"


def extract_content(entry: dict) -> str | None:
    """
    Extract the main content from a feed entry.

    RSS feeds store content in various fields:
    - content: List of content objects (content:encoded / Atom content)
    - summary: feedparser's name for <description>
    - description: Kept as a fallback for hand-built entries

    Returns the longest available content, or None.
    """
    candidates = []

    if content_list := entry.get("content"):
        for content_obj in content_list:
            if value := content_obj.get("value"):
                candidates.append(value)

    for field in ["summary", "description"]:
        if value := entry.get(field):
            candidates.append(value)

    if candidates:
        return max(candidates, key=len)

    return None


def parse_feed_entries(feed_text: str, feed_config: RssFeedConfig) -> list[Article]:
    """
    Parse a feed document into articles.

    Entries missing a title or a link are skipped. The result is not
    truncated here; callers apply the per-source cap.

    Raises:
        ParseError: If the document is malformed and yields no entries
    """
    feed = feedparser.parse(feed_text)

    if feed.bozo and feed.bozo_exception:
        # feedparser sets 'bozo' for malformed feeds but often still recovers entries
        if not feed.entries:
            raise ParseError(f"Unreadable feed: {feed.bozo_exception}")
        logger.warning(
            "Feed has parse errors",
            feed_name=feed_config.name,
            error=str(feed.bozo_exception),
        )

    articles: list[Article] = []
    for entry in feed.entries:
        title = (entry.get("title") or "").strip()
        link = (entry.get("link") or "").strip()
        if not title or not link:
            logger.debug("Skipping entry without title or link", title=title or None)
            continue

        articles.append(
            Article(
                source=feed_config.name,
                title=title,
                source_url=link,
                content=extract_content(entry),
            )
        )

    return articles


async def load_feed_articles(
    client: httpx.AsyncClient,
    feed_config: RssFeedConfig,
) -> list[Article]:
    """
    Download and parse a feed, raising on failure.

    Raises:
        NetworkError: On HTTP status or transport errors
        ParseError: If the document cannot be parsed
    """
    try:
        response = await client.get(feed_config.url, timeout=30.0)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise NetworkError(f"HTTP {e.response.status_code}: {e.response.reason_phrase}") from e
    except httpx.RequestError as e:
        raise NetworkError(str(e) or type(e).__name__) from e

    return parse_feed_entries(response.text, feed_config)


async def fetch_rss_articles(
    client: httpx.AsyncClient,
    feed_config: RssFeedConfig,
) -> list[Article]:
    """
    Fetch the newest articles from a single feed.

    Args:
        client: Shared httpx client (for connection pooling)
        feed_config: RssFeedConfig with name, url and max_items

    Returns:
        At most feed_config.max_items articles. An empty list on any
        failure, so callers can't tell "no news" from "feed down" here;
        the difference is in the logs.
    """
    log = logger.bind(feed_name=feed_config.name, feed_url=feed_config.url)

    try:
        log.info("Fetching RSS feed")
        articles = await load_feed_articles(client, feed_config)
    except NetworkError as e:
        log.error("Network error fetching feed", error=str(e))
        return []
    except ParseError as e:
        log.error("Could not parse feed", error=str(e))
        return []
    except Exception:
        log.exception("Unexpected error processing feed")
        return []

    selected = articles[: feed_config.max_items]
    log.info("Feed processed", available=len(articles), item_count=len(selected))
    return selected


async def fetch_latest_article(
    ctx: PipelineContext,
    feed_config: RssFeedConfig | None = None,
    client: httpx.AsyncClient | None = None,
) -> PipelineContext:
    """
    Context-mode fetch stage: store the newest valid feed item in ctx.

    Uses the given client, or opens (and closes) its own.

    Never raises. Whatever happens, the returned context carries one new
    "fetch" log entry describing it.
    """
    feed_config = feed_config or DEFAULT_RSS_FEED
    log = logger.bind(feed_name=feed_config.name, feed_url=feed_config.url)

    try:
        log.info("Fetching latest article")
        if client is not None:
            articles = await load_feed_articles(client, feed_config)
        else:
            async with httpx.AsyncClient(
                headers={"User-Agent": USER_AGENT},
                follow_redirects=True,
            ) as own_client:
                articles = await load_feed_articles(own_client, feed_config)
    except Exception as e:
        log.error("Failed to fetch latest article", error=str(e), error_type=type(e).__name__)
        return add_log(ctx, step="fetch", agent=AGENT_NAME, note=f"Error fetching RSS: {e}")

    if not articles:
        log.warning("No articles found in RSS feed")
        return add_log(ctx, step="fetch", agent=AGENT_NAME, note="No articles found in RSS feed")

    article = articles[0]
    log.info("Fetched article", title=article["title"])
    return add_log(
        {**ctx, "article": article},
        step="fetch",
        agent=AGENT_NAME,
        note=f"Fetched {article['title']}",
    )


async def rss_collector(
    state: BatchState,
    feed_config: RssFeedConfig | None = None,
) -> dict:
    """
    LangGraph node: Collect articles from the RSS feed.

    Runs in parallel with the Reddit collector; the "articles" lists
    of both are concatenated by the BatchState reducer.

    Returns:
        Partial state update with articles
    """
    feed_config = feed_config or DEFAULT_RSS_FEED

    async with httpx.AsyncClient(
        headers={"User-Agent": USER_AGENT},
        follow_redirects=True,
    ) as client:
        articles = await fetch_rss_articles(client, feed_config)

    logger.info(
        "RSS collection complete",
        run_id=state.get("run_id"),
        source=feed_config.name,
        total_items=len(articles),
    )

    return {"articles": articles}


def create_rss_collector_node(feed_config: RssFeedConfig | None = None):
    """
    Factory function to create an RSS collector node for a given feed.

    Usage:
        builder.add_node("rss_collector", create_rss_collector_node(settings.rss_feed))
    """

    async def node(state: BatchState) -> dict:
        return await rss_collector(state, feed_config=feed_config)

    return node


def create_fetch_node(feed_config: RssFeedConfig | None = None):
    """Factory for the context-mode fetch stage."""

    async def node(ctx: PipelineContext) -> PipelineContext:
        return await fetch_latest_article(ctx, feed_config=feed_config)

    return node
