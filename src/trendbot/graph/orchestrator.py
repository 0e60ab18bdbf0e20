"""
LangGraph Orchestrator - Wires the stages into runnable pipelines.

Two graphs share the same fetch/analyze/publish components.

Context-threading mode (one article):

    START -> fetch -> analyze -> save -> END

    Each node receives the whole PipelineContext and returns a new one.
    An exception in any node aborts the run and propagates to the caller.
    The result is the accumulated process log.

Batch mode (all articles):

    START -> rss_collector ----\
          -> reddit_collector --+-> process -> report -> END

    The two collectors run concurrently; process waits for both.
    Per-article failures are caught inside process. The result is a
    human-readable message with counts per source.

Usage:
    from trendbot.graph.orchestrator import run_flow

    result = await run_flow()          # mode from settings.pipeline_mode
    log = await run_context_flow()     # list[LogEntry]
    message = await run_batch_flow()   # "3 processed, 0 failed (...)"
"""

import uuid
from datetime import UTC, datetime
from typing import Literal

import structlog
from langgraph.graph import END, START, StateGraph
from langgraph.graph.state import CompiledStateGraph

from trendbot.config import Settings, get_settings
from trendbot.graph.nodes.analyze import ArticleAnalyzer, create_analyze_node, create_analyzer
from trendbot.graph.nodes.process import create_process_node
from trendbot.graph.nodes.publish import Publisher, create_publisher, create_save_node
from trendbot.graph.nodes.reddit_collector import create_reddit_collector_node
from trendbot.graph.nodes.report import report
from trendbot.graph.nodes.rss_collector import create_fetch_node, create_rss_collector_node
from trendbot.graph.state import BatchState, LogEntry, PipelineContext, new_context

logger = structlog.get_logger()

PipelineMode = Literal["context", "batch"]


def generate_run_id() -> str:
    timestamp = datetime.now(UTC).strftime("%Y%m%d_%H%M%S")
    return f"run_{timestamp}_{uuid.uuid4().hex[:8]}"


def create_context_graph(
    settings: Settings | None = None,
    *,
    analyzer: ArticleAnalyzer | None = None,
    publisher: Publisher | None = None,
) -> CompiledStateGraph:
    """
    Create and compile the context-threading graph.

    The analyzer and publisher are built from settings unless given, so
    missing credentials surface here, before anything is fetched.

    Raises:
        ConfigurationError: If the chat model or publisher can't be configured
    """
    settings = settings or get_settings()
    analyzer = analyzer or create_analyzer(settings)
    publisher = publisher or create_publisher(settings)

    logger.info("Creating context graph", provider=analyzer.provider, publisher=publisher.name)

    builder = StateGraph(PipelineContext)

    builder.add_node("fetch", create_fetch_node(settings.rss_feed))
    builder.add_node("analyze", create_analyze_node(analyzer))
    builder.add_node("save", create_save_node(publisher))

    builder.add_edge(START, "fetch")
    builder.add_edge("fetch", "analyze")
    builder.add_edge("analyze", "save")
    builder.add_edge("save", END)

    return builder.compile()


def create_batch_graph(
    settings: Settings | None = None,
    *,
    analyzer: ArticleAnalyzer | None = None,
    publisher: Publisher | None = None,
) -> CompiledStateGraph:
    """
    Create and compile the batch graph.

    Raises:
        ConfigurationError: If the chat model or publisher can't be configured
    """
    settings = settings or get_settings()
    analyzer = analyzer or create_analyzer(settings)
    publisher = publisher or create_publisher(settings)

    logger.info("Creating batch graph", provider=analyzer.provider, publisher=publisher.name)

    builder = StateGraph(BatchState)

    builder.add_node("rss_collector", create_rss_collector_node(settings.rss_feed))
    builder.add_node("reddit_collector", create_reddit_collector_node(settings.reddit))
    builder.add_node("process", create_process_node(analyzer, publisher))
    builder.add_node("report", report)

    # Fan out to both collectors, join before processing
    builder.add_edge(START, "rss_collector")
    builder.add_edge(START, "reddit_collector")
    builder.add_edge(["rss_collector", "reddit_collector"], "process")

    builder.add_edge("process", "report")
    builder.add_edge("report", END)

    return builder.compile()


async def run_context_pipeline(
    graph: CompiledStateGraph,
    run_id: str | None = None,
) -> list[LogEntry]:
    """
    Run the context graph once from an empty context.

    Returns:
        The process log of the run

    Raises:
        Whatever a stage raised (MissingPrerequisiteError, PublishError, ...)
    """
    run_id = run_id or generate_run_id()
    log = logger.bind(run_id=run_id, mode="context")
    log.info("Starting context flow")

    try:
        final_state = await graph.ainvoke(new_context())
    except Exception as e:
        log.error("Context flow failed", error=str(e), error_type=type(e).__name__)
        raise

    entries = final_state.get("log", [])
    for index, entry in enumerate(entries, start=1):
        log.info(
            "Process log",
            index=index,
            step=entry["step"],
            agent=entry["agent"],
            note=entry["note"],
            at=datetime.fromtimestamp(entry["timestamp"] / 1000, UTC).isoformat(),
        )

    log.info("Context flow complete", entries=len(entries))
    return entries


async def run_batch_pipeline(
    graph: CompiledStateGraph,
    run_id: str | None = None,
) -> str:
    """
    Run the batch graph once.

    Returns:
        The run report message
    """
    run_id = run_id or generate_run_id()
    log = logger.bind(run_id=run_id, mode="batch")
    log.info("Starting batch flow")

    final_state = await graph.ainvoke({"run_id": run_id})

    message = final_state.get("message", "0 processed, 0 failed")
    log.info("Batch flow complete", message=message)
    return message


# ========================================
# CONVENIENCE API
# ========================================

_cached_graphs: dict[str, CompiledStateGraph] = {}


def get_graph(mode: PipelineMode) -> CompiledStateGraph:
    """Get or create the compiled graph for a mode (cached per process)."""
    if mode not in _cached_graphs:
        if mode == "context":
            _cached_graphs[mode] = create_context_graph()
        else:
            _cached_graphs[mode] = create_batch_graph()

    return _cached_graphs[mode]


async def run_context_flow() -> list[LogEntry]:
    """Fetch one article, analyze it, save it; return the process log."""
    return await run_context_pipeline(get_graph("context"))


async def run_batch_flow() -> str:
    """Fetch from all sources, analyze and publish each article; return the report."""
    return await run_batch_pipeline(get_graph("batch"))


async def run_flow(mode: PipelineMode | None = None) -> list[LogEntry] | str:
    """
    Trigger entry point for schedulers.

    Args:
        mode: "context" or "batch"; defaults to settings.pipeline_mode
    """
    mode = mode or get_settings().pipeline_mode
    if mode == "context":
        return await run_context_flow()
    return await run_batch_flow()
