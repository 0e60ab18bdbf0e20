"""
Report Node - Builds the human-readable result of a batch run.

This is the final node before END in the batch graph. The message reads
like "3 processed, 1 failed (TechCrunch: 2, Reddit: 1)", with the
per-source counts covering successfully published articles.
"""

import structlog

from trendbot.graph.state import SOURCES, BatchState, PublishedRecord

logger = structlog.get_logger()


def count_by_source(records: list[PublishedRecord]) -> dict[str, int]:
    """
    Count records per source.

    Known sources come first in SOURCES order, any others after them.
    """
    counts: dict[str, int] = {}
    for record in records:
        counts[record["source"]] = counts.get(record["source"], 0) + 1

    ordered = {source: counts[source] for source in SOURCES if source in counts}
    ordered.update({source: n for source, n in counts.items() if source not in ordered})
    return ordered


def format_report(published: list[PublishedRecord], failed_count: int) -> str:
    message = f"{len(published)} processed, {failed_count} failed"

    counts = count_by_source(published)
    if counts:
        breakdown = ", ".join(f"{source}: {n}" for source, n in counts.items())
        message = f"{message} ({breakdown})"

    return message


async def report(state: BatchState) -> dict:
    """
    LangGraph node: Summarize the run.

    Returns:
        Partial state update with message
    """
    published = state.get("published", [])
    failures = state.get("failures", [])

    message = format_report(published, len(failures))

    logger.info(
        "Batch run report",
        run_id=state.get("run_id"),
        fetched=len(state.get("articles", [])),
        published=len(published),
        failed=len(failures),
        by_source=count_by_source(published),
    )

    return {"message": message}
