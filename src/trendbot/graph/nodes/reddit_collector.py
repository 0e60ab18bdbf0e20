"""
Reddit Collector Node - Fetches hot posts from a few subreddits.

Reddit serves every listing as JSON at <subreddit>/hot.json. The shape is:

    {"data": {"children": [{"data": {"title": ..., "permalink": ...}}, ...]}}

Posts that are stickied (pinned by moderators), removed, untitled, or
without a permalink are skipped. Subreddits are fetched one after the
other; a failing subreddit is logged and skipped so the others still count.

Reddit rejects requests without a descriptive User-Agent, so every
request carries RedditConfig.user_agent.
"""

import httpx
import structlog

from trendbot.config import DEFAULT_REDDIT_CONFIG, RedditConfig
from trendbot.errors import NetworkError, ParseError
from trendbot.graph.state import Article, BatchState

logger = structlog.get_logger()

REDDIT_BASE_URL = "https://www.reddit.com"


def parse_reddit_listing(payload: object, source: str = "Reddit") -> list[Article]:
    """
    Convert a listing response into articles.

    Raises:
        ParseError: If the payload is not a listing object
    """
    if not isinstance(payload, dict):
        raise ParseError(f"Expected a listing object, got {type(payload).__name__}")

    children = (payload.get("data") or {}).get("children") or []
    if not isinstance(children, list):
        raise ParseError("Listing 'children' is not a list")

    articles: list[Article] = []
    for child in children:
        post = (child.get("data") or {}) if isinstance(child, dict) else {}

        if post.get("stickied") or post.get("removed") or post.get("removed_by_category"):
            continue
        title = (post.get("title") or "").strip()
        permalink = (post.get("permalink") or "").strip()
        if not title or not permalink:
            continue

        articles.append(
            Article(
                source=source,
                title=title,
                source_url=f"{REDDIT_BASE_URL}{permalink}",
                content=post.get("selftext") or title,
            )
        )

    return articles


async def fetch_subreddit(
    client: httpx.AsyncClient,
    url: str,
    reddit_config: RedditConfig,
) -> list[Article]:
    """
    Fetch one subreddit listing.

    Raises:
        NetworkError: On HTTP status or transport errors
        ParseError: If the body isn't a JSON listing
    """
    try:
        response = await client.get(
            url,
            headers={"User-Agent": reddit_config.user_agent},
            timeout=30.0,
        )
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise NetworkError(f"HTTP {e.response.status_code}: {e.response.reason_phrase}") from e
    except httpx.RequestError as e:
        raise NetworkError(str(e) or type(e).__name__) from e

    try:
        payload = response.json()
    except ValueError as e:
        raise ParseError(f"Response is not JSON: {e}") from e

    return parse_reddit_listing(payload, source=reddit_config.name)


async def fetch_reddit_posts(
    client: httpx.AsyncClient,
    reddit_config: RedditConfig,
) -> list[Article]:
    """
    Fetch posts from every configured subreddit.

    Args:
        client: Shared httpx client
        reddit_config: Subreddit URLs, User-Agent and the overall cap

    Returns:
        At most reddit_config.max_items articles across all subreddits,
        in subreddit order. Empty if every subreddit failed.
    """
    articles: list[Article] = []

    for url in reddit_config.subreddit_urls:
        log = logger.bind(subreddit_url=url)
        try:
            posts = await fetch_subreddit(client, url, reddit_config)
        except (NetworkError, ParseError) as e:
            log.error("Failed to fetch subreddit", error=str(e), error_type=type(e).__name__)
            continue
        except Exception:
            log.exception("Unexpected error processing subreddit")
            continue

        log.debug("Subreddit processed", item_count=len(posts))
        articles.extend(posts)

    selected = articles[: reddit_config.max_items]
    logger.info("Reddit posts fetched", available=len(articles), item_count=len(selected))
    return selected


async def reddit_collector(
    state: BatchState,
    reddit_config: RedditConfig | None = None,
) -> dict:
    """
    LangGraph node: Collect posts from Reddit.

    Returns:
        Partial state update with articles
    """
    reddit_config = reddit_config or DEFAULT_REDDIT_CONFIG

    async with httpx.AsyncClient(follow_redirects=True) as client:
        articles = await fetch_reddit_posts(client, reddit_config)

    logger.info(
        "Reddit collection complete",
        run_id=state.get("run_id"),
        total_items=len(articles),
    )

    return {"articles": articles}


def create_reddit_collector_node(reddit_config: RedditConfig | None = None):
    """Factory function to create a Reddit collector node with custom settings."""

    async def node(state: BatchState) -> dict:
        return await reddit_collector(state, reddit_config=reddit_config)

    return node
