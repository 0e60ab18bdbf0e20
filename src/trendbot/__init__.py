"""TrendBot - fetch tech news, summarize it with an LLM, publish it to Notion."""

__version__ = "1.0.0"
