"""
LangGraph pipelines for TrendBot.

This package contains:
- state.py: State schemas (Article, AnalysisResult, PipelineContext, BatchState)
- nodes/: Individual pipeline stages
- orchestrator.py: Graph wiring and execution

Usage:
    from trendbot.graph import run_flow

    result = await run_flow("batch")
"""

from trendbot.graph.orchestrator import (
    create_batch_graph,
    create_context_graph,
    get_graph,
    run_batch_flow,
    run_context_flow,
    run_flow,
)
from trendbot.graph.state import (
    SAMPLE_CODE_SENTINEL,
    SOURCES,
    AnalysisResult,
    Article,
    BatchState,
    LogEntry,
    PipelineContext,
    add_log,
)

__all__ = [
    # Orchestration
    "create_batch_graph",
    "create_context_graph",
    "get_graph",
    "run_batch_flow",
    "run_context_flow",
    "run_flow",
    # State types
    "Article",
    "AnalysisResult",
    "LogEntry",
    "PipelineContext",
    "BatchState",
    "SOURCES",
    "SAMPLE_CODE_SENTINEL",
    "add_log",
]
