"""
Tests for the process and report nodes (batch mode).

Key testing strategies:
1. Use a real ArticleAnalyzer over a mocked chat model
2. Mock the publisher to fail on selected articles
3. Test that one failure never stops the loop
4. Test the report message format
"""

from unittest.mock import AsyncMock, MagicMock

from langchain_core.messages import AIMessage

from trendbot.graph.nodes.analyze import ANALYSIS_FAILED_SUMMARY, ArticleAnalyzer
from trendbot.graph.nodes.process import process_articles
from trendbot.graph.nodes.report import count_by_source, format_report, report
from trendbot.graph.state import Article, PublishedRecord


def make_article(title: str, source: str = "TechCrunch") -> Article:
    return Article(source=source, title=title, source_url=f"https://example.com/{title}", content="Body")


def make_analyzer(side_effect=None) -> ArticleAnalyzer:
    llm = MagicMock()
    if side_effect is None:
        llm.ainvoke = AsyncMock(return_value=AIMessage(content="**要約：** ok\n**サンプルコード：** none"))
    else:
        llm.ainvoke = AsyncMock(side_effect=side_effect)
    return ArticleAnalyzer(llm, provider="DeepSeek")


def make_publisher(fail_on: set[str] | None = None) -> MagicMock:
    """Publisher double that raises for titles in fail_on."""
    fail_on = fail_on or set()

    async def publish(article, analysis):
        if article["title"] in fail_on:
            raise RuntimeError(f"cannot store {article['title']}")
        return f"id-{article['title']}"

    publisher = MagicMock()
    publisher.name = "MockPublisher"
    publisher.publish = AsyncMock(side_effect=publish)
    return publisher


def make_record(source: str) -> PublishedRecord:
    return PublishedRecord(source=source, title="t", record_id="1")


class TestProcessArticles:
    """Tests for the per-article loop."""

    async def test_publishes_every_article(self):
        articles = [make_article("a"), make_article("b", "Reddit")]
        publisher = make_publisher()

        result = await process_articles({"articles": articles}, make_analyzer(), publisher)

        assert [r["record_id"] for r in result["published"]] == ["id-a", "id-b"]
        assert result["failures"] == []
        assert publisher.publish.call_count == 2

    async def test_failure_does_not_stop_loop(self):
        articles = [make_article("a"), make_article("b"), make_article("c")]
        publisher = make_publisher(fail_on={"b"})

        result = await process_articles({"articles": articles}, make_analyzer(), publisher)

        assert [r["title"] for r in result["published"]] == ["a", "c"]
        assert len(result["failures"]) == 1
        failure = result["failures"][0]
        assert failure["title"] == "b"
        assert failure["error_type"] == "RuntimeError"
        assert failure["error_message"] == "cannot store b"

    async def test_agent_failure_still_publishes_fallback(self):
        publisher = make_publisher()

        result = await process_articles(
            {"articles": [make_article("a")]},
            make_analyzer(side_effect=RuntimeError("llm down")),
            publisher,
        )

        assert len(result["published"]) == 1
        analysis = publisher.publish.call_args[0][1]
        assert analysis["summary"] == ANALYSIS_FAILED_SUMMARY

    async def test_no_articles(self):
        publisher = make_publisher()

        result = await process_articles({}, make_analyzer(), publisher)

        assert result == {"published": [], "failures": []}
        publisher.publish.assert_not_called()


class TestReport:
    """Tests for the run report."""

    def test_counts_in_source_order(self):
        records = [make_record("Reddit"), make_record("TechCrunch"), make_record("TechCrunch")]

        assert list(count_by_source(records).items()) == [("TechCrunch", 2), ("Reddit", 1)]

    def test_unknown_sources_come_last(self):
        records = [make_record("HackerNews"), make_record("Reddit")]

        assert list(count_by_source(records)) == ["Reddit", "HackerNews"]

    def test_format_with_breakdown(self):
        records = [make_record("TechCrunch"), make_record("TechCrunch"), make_record("Reddit")]

        assert format_report(records, 1) == "3 processed, 1 failed (TechCrunch: 2, Reddit: 1)"

    def test_format_empty_run(self):
        assert format_report([], 0) == "0 processed, 0 failed"

    async def test_report_node(self):
        state = {
            "run_id": "test-run",
            "articles": [make_article("a")],
            "published": [make_record("TechCrunch")],
            "failures": [],
        }

        result = await report(state)

        assert result == {"message": "1 processed, 0 failed (TechCrunch: 1)"}
