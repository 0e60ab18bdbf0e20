"""PostgreSQL helpers for the postgres publisher backend."""

from trendbot.db.connection import close_db_pool, get_db_pool

__all__ = ["get_db_pool", "close_db_pool"]
