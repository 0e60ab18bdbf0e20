"""
Process Node - Analyzes and publishes every fetched article (batch mode).

Articles are handled one at a time, in fetch order. A failure on one
article (usually the publisher) is logged with the article title,
recorded in "failures", and the loop moves on to the next article.

LangGraph Integration:
- Input: BatchState with articles from both collectors
- Output: {"published": [...], "failures": [...]}
"""

import structlog

from trendbot.graph.nodes.analyze import ArticleAnalyzer
from trendbot.graph.nodes.publish import Publisher
from trendbot.graph.state import ArticleFailure, BatchState, PublishedRecord

logger = structlog.get_logger()


async def process_articles(
    state: BatchState,
    analyzer: ArticleAnalyzer,
    publisher: Publisher,
) -> dict:
    """
    LangGraph node: analyze then publish each article.

    Args:
        state: Current graph state with articles
        analyzer: Never raises; failed calls come back as fallback results
        publisher: May raise; caught per article

    Returns:
        Partial state update with published and failures
    """
    articles = state.get("articles", [])

    logger.info("Starting article processing", item_count=len(articles), publisher=publisher.name)

    if not articles:
        logger.warning("No articles to process")
        return {"published": [], "failures": []}

    published: list[PublishedRecord] = []
    failures: list[ArticleFailure] = []

    for article in articles:
        log = logger.bind(title=article["title"], source=article["source"])
        log.info("Analyzing article")

        try:
            analysis = await analyzer.analyze(article)
            record_id = await publisher.publish(article, analysis)
        except Exception as e:
            log.error(
                "Failed to process article",
                source_url=article["source_url"],
                error=str(e),
                error_type=type(e).__name__,
            )
            failures.append(
                ArticleFailure(
                    source=article["source"],
                    title=article["title"],
                    error_type=type(e).__name__,
                    error_message=str(e),
                )
            )
            continue

        published.append(
            PublishedRecord(source=article["source"], title=article["title"], record_id=record_id)
        )

    logger.info(
        "Article processing complete",
        input_count=len(articles),
        published=len(published),
        failed=len(failures),
    )

    return {"published": published, "failures": failures}


def create_process_node(analyzer: ArticleAnalyzer, publisher: Publisher):
    """
    Factory function to create the process node.

    Usage:
        builder.add_node("process", create_process_node(analyzer, publisher))
    """

    async def node(state: BatchState) -> dict:
        return await process_articles(state, analyzer, publisher)

    return node
