"""
FastAPI application for TrendBot.

The HTTP trigger surface for an external scheduler (cron, Cloud
Scheduler, ...). The run endpoints take no input.

Endpoints:
- GET /: API info
- GET /health: Configuration and database status
- POST /run/context: Run the single-article flow, return its process log
- POST /run/batch: Run the batch flow, return the report message
- GET /notion/check: Verify the Notion credentials
- GET /articles: Recently stored articles (postgres backend)

Usage:
    uvicorn trendbot.api:app --reload

    # Or use the main.py entrypoint
    python -m trendbot.main serve
"""

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Annotated

import structlog
from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel, Field

from trendbot.config import get_settings
from trendbot.db import close_db_pool
from trendbot.db.connection import check_db_health
from trendbot.errors import ConfigurationError, PublishError
from trendbot.graph import run_batch_flow, run_context_flow
from trendbot.graph.nodes.persist import get_recent_articles
from trendbot.graph.nodes.publish import NotionPublisher

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting API server")
    yield
    logger.info("Shutting down API server")
    await close_db_pool()


app = FastAPI(
    title="TrendBot",
    description="Fetches tech news, summarizes it with an LLM and publishes it to Notion",
    version="1.0.0",
    lifespan=lifespan,
)


# ========================================
# PYDANTIC MODELS
# ========================================


class HealthResponse(BaseModel):
    status: str = Field(description="healthy or unhealthy")
    llm_provider: str = Field(description="Configured chat model provider")
    publisher_backend: str = Field(description="notion or postgres")
    notion_configured: bool = Field(description="Notion API key and database id are set")
    database: bool | None = Field(default=None, description="Database reachable (postgres backend only)")
    timestamp: datetime = Field(description="Current server time")


class LogEntryModel(BaseModel):
    step: str
    timestamp: int = Field(description="Epoch milliseconds")
    agent: str
    note: str


class RunResponse(BaseModel):
    status: str = Field(description="completed or failed")
    mode: str = Field(description="context or batch")
    message: str = Field(description="Human-readable status message")
    log: list[LogEntryModel] | None = Field(default=None, description="Process log (context mode)")


class NotionCheckResponse(BaseModel):
    success: bool
    database: str = Field(description="Title of the target database")


class StoredArticle(BaseModel):
    id: int
    source: str
    source_url: str
    title: str
    summary: str | None
    sample_code: str | None
    llm_provider: str | None
    fetched_at: datetime


class ArticlesResponse(BaseModel):
    articles: list[StoredArticle]
    count: int


# ========================================
# ENDPOINTS
# ========================================


@app.get("/", tags=["Health"])
async def root():
    return {
        "name": "TrendBot API",
        "version": "1.0.0",
        "docs": "/docs",
    }


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """
    Report configuration status.

    Unhealthy if the selected publisher is missing credentials or its
    database is unreachable.
    """
    settings = get_settings()

    database = None
    if settings.publisher_backend == "postgres":
        database = await check_db_health()
        healthy = database
    else:
        healthy = settings.notion_configured

    return HealthResponse(
        status="healthy" if healthy else "unhealthy",
        llm_provider=settings.llm_provider,
        publisher_backend=settings.publisher_backend,
        notion_configured=settings.notion_configured,
        database=database,
        timestamp=datetime.now(UTC),
    )


@app.post("/run/context", response_model=RunResponse, tags=["Pipeline"])
async def trigger_context_run():
    """Fetch the newest article, analyze it and save it."""
    logger.info("Context flow triggered via API")

    try:
        entries = await run_context_flow()
    except Exception as e:
        logger.error("Context flow failed", error=str(e), error_type=type(e).__name__)
        return RunResponse(status="failed", mode="context", message=f"Pipeline failed: {e}")

    return RunResponse(
        status="completed",
        mode="context",
        message=f"Pipeline completed with {len(entries)} log entries.",
        log=[LogEntryModel(**entry) for entry in entries],
    )


@app.post("/run/batch", response_model=RunResponse, tags=["Pipeline"])
async def trigger_batch_run():
    """Fetch from every source, then analyze and publish each article."""
    logger.info("Batch flow triggered via API")

    try:
        message = await run_batch_flow()
    except Exception as e:
        logger.error("Batch flow failed", error=str(e), error_type=type(e).__name__)
        return RunResponse(status="failed", mode="batch", message=f"Pipeline failed: {e}")

    return RunResponse(status="completed", mode="batch", message=message)


@app.get("/notion/check", response_model=NotionCheckResponse, tags=["Notion"])
async def check_notion():
    try:
        publisher = NotionPublisher.from_settings(get_settings())
        result = await publisher.check_connection()
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except PublishError as e:
        raise HTTPException(status_code=502, detail=str(e))

    return NotionCheckResponse(**result)


@app.get("/articles", response_model=ArticlesResponse, tags=["Articles"])
async def list_articles(
    limit: Annotated[int, Query(ge=1, le=100, description="Max articles to return")] = 20,
    source: Annotated[str | None, Query(description="Filter by source, e.g. Reddit")] = None,
):
    """Recently stored articles, newest first (postgres backend only)."""
    if get_settings().publisher_backend != "postgres":
        raise HTTPException(status_code=404, detail="Articles are stored in Notion for this deployment")

    try:
        rows = await get_recent_articles(limit=limit, source=source)
    except Exception as e:
        logger.error("Failed to fetch articles", error=str(e))
        raise HTTPException(status_code=500, detail="Failed to fetch articles")

    articles = [StoredArticle(**row) for row in rows]
    return ArticlesResponse(articles=articles, count=len(articles))
