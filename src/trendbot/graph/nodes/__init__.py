"""
LangGraph nodes for the pipeline.

Context mode (one PipelineContext in, a new one out):
- fetch_latest_article: Newest TechCrunch article into the context
- analyze_article: Agent summary of ctx["article"]
- save_article: Notion page / table row for article + analysis

Batch mode (BatchState in, partial update out):
- rss_collector, reddit_collector: Fetch articles (run in parallel)
- process_articles: Analyze and publish each article
- report: Format the run result
"""

from trendbot.graph.nodes.analyze import ArticleAnalyzer, analyze_article
from trendbot.graph.nodes.process import process_articles
from trendbot.graph.nodes.publish import NotionPublisher, Publisher, save_article
from trendbot.graph.nodes.reddit_collector import reddit_collector
from trendbot.graph.nodes.report import report
from trendbot.graph.nodes.rss_collector import fetch_latest_article, rss_collector

__all__ = [
    "ArticleAnalyzer",
    "NotionPublisher",
    "Publisher",
    "analyze_article",
    "fetch_latest_article",
    "process_articles",
    "reddit_collector",
    "report",
    "rss_collector",
    "save_article",
]
