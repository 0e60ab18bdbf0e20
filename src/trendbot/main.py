"""
Main entry point for TrendBot.

Commands:

1. Pipeline Run Mode (one-shot, what the scheduler calls):
   python -m trendbot.main run
   python -m trendbot.main run --mode context

2. API Server Mode:
   python -m trendbot.main serve

3. Notion connection test:
   python -m trendbot.main check-notion

4. Database Setup Mode (postgres backend):
   python -m trendbot.main setup-db
"""

# Load .env into os.environ BEFORE importing LangChain modules
from dotenv import load_dotenv

load_dotenv()

import argparse
import asyncio
import logging
import sys
from datetime import datetime

import structlog
import uvicorn

from trendbot.config import get_settings
from trendbot.errors import ConfigurationError, TrendbotError
from trendbot.graph.state import LogEntry

logger = structlog.get_logger()


def configure_logging(log_level: str = "INFO") -> None:
    """structlog on top of stdlib logging, pretty console output."""
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level.upper())

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def format_process_log(entries: list[LogEntry]) -> str:
    """Render the context-mode process log, one numbered entry per step."""
    lines = ["=== Process Log ==="]
    for index, entry in enumerate(entries, start=1):
        at = datetime.fromtimestamp(entry["timestamp"] / 1000).strftime("%H:%M:%S")
        lines.append(f"{index}. [{at}] {entry['step']} | {entry['agent']}")
        lines.append(f"   {entry['note']}")
    return "\n".join(lines)


# ========================================
# COMMAND FUNCTIONS
# ========================================


async def run_pipeline(mode: str) -> None:
    """
    Run the pipeline once and exit.

    Exits with status 1 if the run can't be configured or, in context
    mode, if any stage fails.
    """
    from trendbot.db import close_db_pool
    from trendbot.graph import run_flow

    logger.info("Running pipeline", mode=mode)

    try:
        result = await run_flow(mode)
    except ConfigurationError as e:
        logger.error("Pipeline is not configured", error=str(e))
        print(f"\nConfiguration Error: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error("Pipeline failed", error=str(e), error_type=type(e).__name__)
        print(f"\nPipeline failed: {e}")
        sys.exit(1)
    finally:
        await close_db_pool()

    print("\n" + "=" * 60)
    print("Pipeline Run Complete")
    print("=" * 60)
    if isinstance(result, str):
        print(result)
    else:
        print(format_process_log(result))


async def check_notion() -> None:
    """Verify the Notion token and database id by retrieving the database."""
    from trendbot.graph.nodes.publish import NotionPublisher

    try:
        publisher = NotionPublisher.from_settings(get_settings())
        result = await publisher.check_connection()
    except TrendbotError as e:
        logger.error("Notion check failed", error=str(e))
        print(f"\nNotion check failed: {e}")
        sys.exit(1)

    print(f"\nNotion database found: {result['database']}")


async def setup_database() -> None:
    """Create the articles table for the postgres backend."""
    from trendbot.db import close_db_pool
    from trendbot.db.setup_db import get_table_stats, setup_database

    logger.info("Setting up database")

    try:
        await setup_database()
        stats = await get_table_stats()

        print("\n" + "=" * 60)
        print("Database Setup Complete")
        print("=" * 60)
        print(f"articles: {stats['articles']} rows")

    except Exception as e:
        logger.error("Database setup failed", error=str(e))
        print(f"\nDatabase setup failed: {e}")
        print("\nMake sure PostgreSQL is running and DATABASE_URL is correct.")
        sys.exit(1)

    finally:
        await close_db_pool()


async def run_server(host: str = "0.0.0.0", port: int = 8000, reload: bool = False):
    """Start the FastAPI server (see trendbot/api.py)."""
    logger.info("Starting API server", host=host, port=port, reload=reload)

    config = uvicorn.Config(
        "trendbot.api:app",
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )
    server = uvicorn.Server(config)
    await server.serve()


# ========================================
# CLI ENTRY POINT
# ========================================


def main():
    parser = argparse.ArgumentParser(
        description="TrendBot - Summarize tech news into Notion",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  trendbot run                  # Run with PIPELINE_MODE (default: batch)
  trendbot run --mode context   # Single article, returns the process log
  trendbot serve --port 8080    # Start API server
  trendbot check-notion         # Test the Notion credentials
  trendbot setup-db             # Create the articles table
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    run_parser = subparsers.add_parser("run", help="Run the pipeline once")
    run_parser.add_argument(
        "--mode",
        choices=["context", "batch"],
        default=None,
        help="Pipeline mode (default: PIPELINE_MODE setting)",
    )

    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Host to bind to (default: 0.0.0.0)")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on (default: 8000)")
    serve_parser.add_argument("--reload", action="store_true", help="Enable auto-reload for development")

    subparsers.add_parser("check-notion", help="Test the Notion connection")
    subparsers.add_parser("setup-db", help="Initialize the database schema")

    args = parser.parse_args()

    if args.command is None:
        args.command = "run"
        args.mode = None

    # Validate settings early
    try:
        settings = get_settings()
    except Exception as e:
        print(f"\nConfiguration Error: {e}")
        print("\nMake sure you have a .env file with the required settings.")
        sys.exit(1)

    configure_logging(settings.log_level)
    logger.debug(
        "Settings loaded",
        log_level=settings.log_level,
        llm_provider=settings.llm_provider,
        publisher_backend=settings.publisher_backend,
        notion_configured=settings.notion_configured,
    )

    if args.command == "run":
        asyncio.run(run_pipeline(args.mode or settings.pipeline_mode))
    elif args.command == "serve":
        asyncio.run(run_server(host=args.host, port=args.port, reload=args.reload))
    elif args.command == "check-notion":
        asyncio.run(check_notion())
    elif args.command == "setup-db":
        asyncio.run(setup_database())


if __name__ == "__main__":
    main()
