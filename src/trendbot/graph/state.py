"""
LangGraph state schemas for the pipeline.

This module defines:
1. Article - A normalized item from one of the sources
2. AnalysisResult - The agent's summary and sample code for one article
3. LogEntry - One line of the per-stage process log
4. PipelineContext - The state threaded through the context-mode graph
5. BatchState - The state of the batch-mode graph

PipelineContext is treated as an immutable value: stages never mutate
the context they receive, they build a new one (see add_log) and return
it whole. The context graph therefore uses plain last-value channels.
"""

import operator
import time
from typing import Annotated, Literal, TypedDict

# Source categories, also used as the Notion "source" select options
SOURCES = ["TechCrunch", "Reddit"]

# Placeholder stored when the agent has no sample code for an article
SAMPLE_CODE_SENTINEL = "none"

Step = Literal["fetch", "analyze", "save"]


class Article(TypedDict):
    """An article as fetched from a source, before analysis."""

    source: str  # One of SOURCES
    title: str
    source_url: str
    content: str | None


class AnalysisResult(TypedDict):
    """The parsed output of one agent call."""

    summary: str
    sample_code: str  # SAMPLE_CODE_SENTINEL when absent
    provider: str  # e.g. "DeepSeek"


class LogEntry(TypedDict):
    step: Step
    timestamp: int  # Epoch milliseconds
    agent: str
    note: str


class PipelineContext(TypedDict, total=False):
    """
    Shared context for the context-threading mode.

    START -> fetch -> analyze -> save -> END

    Invariant: analysis is only ever set once article is set.
    """

    article: Article
    analysis: AnalysisResult
    log: list[LogEntry]


class PublishedRecord(TypedDict):
    source: str
    title: str
    record_id: str


class ArticleFailure(TypedDict):
    """Per-article failure in batch mode (non-fatal)."""

    source: str
    title: str
    error_type: str
    error_message: str


class BatchState(TypedDict, total=False):
    """
    Main state for the batch graph.

    START -> [rss_collector, reddit_collector] -> process -> report -> END

    The collectors run in parallel; `Annotated[list, operator.add]` makes
    LangGraph concatenate their outputs instead of overwriting.
    """

    run_id: str
    articles: Annotated[list[Article], operator.add]
    published: list[PublishedRecord]
    failures: list[ArticleFailure]
    message: str  # Human-readable run result


def new_context() -> PipelineContext:
    """Initial, empty context for one run."""
    return {"log": []}


def add_log(ctx: PipelineContext, *, step: Step, agent: str, note: str) -> PipelineContext:
    """
    Return a copy of ctx with one more log entry.

    Timestamps never go backwards: an entry is stamped no earlier than the
    entry before it, even if the wall clock was adjusted in between.
    """
    log = ctx.get("log", [])
    timestamp = int(time.time() * 1000)
    if log:
        timestamp = max(timestamp, log[-1]["timestamp"])

    entry: LogEntry = {
        "step": step,
        "timestamp": timestamp,
        "agent": agent,
        "note": note,
    }
    return {**ctx, "log": [*log, entry]}
