"""
Tests for the graph orchestrator.

Key testing strategies:
1. Test graph creation and compilation for both modes
2. Test end-to-end flows with mocked HTTP, chat model and publisher
3. Test error propagation in context mode
4. Test graph caching and mode selection
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from langchain_core.messages import AIMessage

import trendbot.graph.orchestrator as orchestrator
from trendbot.config import DEFAULT_REDDIT_CONFIG, DEFAULT_RSS_FEED, Settings
from trendbot.errors import ConfigurationError, MissingPrerequisiteError
from trendbot.graph.nodes.analyze import ArticleAnalyzer
from trendbot.graph.nodes.publish import NotionPublisher
from trendbot.graph.orchestrator import (
    create_batch_graph,
    create_context_graph,
    generate_run_id,
    get_graph,
    run_batch_pipeline,
    run_context_pipeline,
    run_flow,
)
from trendbot.graph.state import new_context

TECHCRUNCH_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>TechCrunch</title>
    <item>
      <title>Startup raises $10M</title>
      <link>https://techcrunch.com/2025/01/01/startup/</link>
      <description>A startup raised money.</description>
    </item>
    <item>
      <title>New phone launched</title>
      <link>https://techcrunch.com/2025/01/01/phone/</link>
      <description>A phone launched.</description>
    </item>
    <item>
      <title>Third story</title>
      <link>https://techcrunch.com/2025/01/01/third/</link>
      <description>Another story.</description>
    </item>
  </channel>
</rss>
"""


def make_listing(*titles: str) -> dict:
    return {
        "data": {
            "children": [
                {"data": {"title": title, "permalink": f"/r/technology/comments/{i}/x/", "selftext": ""}}
                for i, title in enumerate(titles)
            ]
        }
    }


@pytest.fixture
def settings():
    return Settings(_env_file=None)


@pytest.fixture
def analyzer():
    llm = MagicMock()
    llm.ainvoke = AsyncMock(return_value=AIMessage(content="**要約：** 要約です\n**サンプルコード：** none"))
    return ArticleAnalyzer(llm, provider="DeepSeek")


@pytest.fixture
def publisher():
    publisher = MagicMock()
    publisher.name = "NotionAPI"
    publisher.publish = AsyncMock(return_value="page-1")
    return publisher


class TestCreateGraphs:
    """Tests for graph construction."""

    def test_creates_context_graph(self, settings, analyzer, publisher):
        graph = create_context_graph(settings, analyzer=analyzer, publisher=publisher)

        assert {"fetch", "analyze", "save"} <= set(graph.get_graph().nodes)

    def test_creates_batch_graph(self, settings, analyzer, publisher):
        graph = create_batch_graph(settings, analyzer=analyzer, publisher=publisher)

        assert {"rss_collector", "reddit_collector", "process", "report"} <= set(graph.get_graph().nodes)

    def test_missing_credentials_fail_at_build(self, monkeypatch):
        """No API key: the graph is never built, so nothing is fetched."""
        monkeypatch.delenv("DEEPSEEK_API_KEY", raising=False)

        with pytest.raises(ConfigurationError):
            create_context_graph(Settings(_env_file=None, llm_provider="deepseek"))

    def test_run_id_format(self):
        assert generate_run_id().startswith("run_")
        assert generate_run_id() != generate_run_id()


class TestContextFlow:
    """End-to-end runs of the context graph."""

    async def test_happy_path(self, httpx_mock, settings, analyzer, publisher):
        httpx_mock.add_response(url=DEFAULT_RSS_FEED.url, text=TECHCRUNCH_FEED)
        graph = create_context_graph(settings, analyzer=analyzer, publisher=publisher)

        log = await run_context_pipeline(graph, run_id="test-run")

        assert [entry["step"] for entry in log] == ["fetch", "analyze", "save"]
        assert [entry["agent"] for entry in log] == ["RSSFetcher", "DeepSeek", "NotionAPI"]
        assert log[0]["note"] == "Fetched Startup raises $10M"
        assert log[2]["note"] == "Saved Startup raises $10M"
        timestamps = [entry["timestamp"] for entry in log]
        assert timestamps == sorted(timestamps)

        article, analysis = publisher.publish.call_args[0]
        assert article["source"] == "TechCrunch"
        assert analysis["summary"] == "要約です"

    async def test_fetch_failure_aborts_at_save(self, httpx_mock, settings, analyzer, publisher):
        """A dead feed leaves no article; save refuses to write."""
        httpx_mock.add_response(url=DEFAULT_RSS_FEED.url, status_code=500)
        graph = create_context_graph(settings, analyzer=analyzer, publisher=publisher)

        with pytest.raises(MissingPrerequisiteError):
            await run_context_pipeline(graph)

        publisher.publish.assert_not_called()
        analyzer.llm.ainvoke.assert_not_called()

    async def test_single_item_written_to_notion(self, httpx_mock, settings):
        """One feed item goes through a real NotionPublisher over a mocked client."""
        feed = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"><channel><title>TechCrunch</title>
<item><title>X</title><link>http://a</link><description>Y</description></item>
</channel></rss>"""
        httpx_mock.add_response(url=DEFAULT_RSS_FEED.url, text=feed)

        llm = MagicMock()
        llm.ainvoke = AsyncMock(return_value=AIMessage(content="**要約：** summary text\n**サンプルコード：** none"))
        analyzer = ArticleAnalyzer(llm, provider="DeepSeek")

        notion_client = MagicMock()
        notion_client.pages.create = AsyncMock(return_value={"id": "page-1"})
        notion = NotionPublisher(notion_client, "db-1")

        graph = create_context_graph(settings, analyzer=analyzer, publisher=notion)
        final_state = await graph.ainvoke(new_context())

        assert final_state["article"] == {
            "source": "TechCrunch",
            "title": "X",
            "source_url": "http://a",
            "content": "Y",
        }
        assert final_state["analysis"] == {
            "summary": "summary text",
            "sample_code": "none",
            "provider": "DeepSeek",
        }
        assert [entry["step"] for entry in final_state["log"]] == ["fetch", "analyze", "save"]
        assert final_state["log"][2]["agent"] == "NotionAPI"

        notion_client.pages.create.assert_called_once_with(
            parent={"database_id": "db-1"},
            properties={
                "記事タイトル": {"title": [{"text": {"content": "X"}}]},
                "sourceUrl": {"rich_text": [{"text": {"content": "http://a"}}]},
                "summary": {"rich_text": [{"text": {"content": "summary text"}}]},
                "source": {"select": {"name": "TechCrunch"}},
            },
        )


class TestBatchFlow:
    """End-to-end runs of the batch graph."""

    async def test_collects_from_both_sources(self, httpx_mock, settings, analyzer, publisher):
        httpx_mock.add_response(url=DEFAULT_RSS_FEED.url, text=TECHCRUNCH_FEED)
        urls = DEFAULT_REDDIT_CONFIG.subreddit_urls
        httpx_mock.add_response(url=urls[0], json=make_listing("r1", "r2"))
        httpx_mock.add_response(url=urls[1], json=make_listing("r3"))
        httpx_mock.add_response(url=urls[2], json=make_listing("r4"))
        graph = create_batch_graph(settings, analyzer=analyzer, publisher=publisher)

        message = await run_batch_pipeline(graph, run_id="test-run")

        assert message == "5 processed, 0 failed (TechCrunch: 2, Reddit: 3)"
        assert publisher.publish.call_count == 5

    async def test_all_sources_down(self, httpx_mock, settings, analyzer, publisher):
        httpx_mock.add_response(url=DEFAULT_RSS_FEED.url, status_code=500)
        for url in DEFAULT_REDDIT_CONFIG.subreddit_urls:
            httpx_mock.add_response(url=url, status_code=500)
        graph = create_batch_graph(settings, analyzer=analyzer, publisher=publisher)

        message = await run_batch_pipeline(graph)

        assert message == "0 processed, 0 failed"
        publisher.publish.assert_not_called()

    async def test_publish_failures_are_counted(self, httpx_mock, settings, analyzer, publisher):
        httpx_mock.add_response(url=DEFAULT_RSS_FEED.url, text=TECHCRUNCH_FEED)
        for url in DEFAULT_REDDIT_CONFIG.subreddit_urls:
            httpx_mock.add_response(url=url, status_code=500)
        publisher.publish = AsyncMock(side_effect=["page-1", RuntimeError("rate limited")])
        graph = create_batch_graph(settings, analyzer=analyzer, publisher=publisher)

        message = await run_batch_pipeline(graph)

        assert message == "1 processed, 1 failed (TechCrunch: 1)"

    async def test_passes_run_id(self):
        graph = MagicMock()
        graph.ainvoke = AsyncMock(return_value={"message": "0 processed, 0 failed"})

        await run_batch_pipeline(graph, run_id="custom-run-id")

        assert graph.ainvoke.call_args[0][0] == {"run_id": "custom-run-id"}


class TestGetGraph:
    """Tests for the cached get_graph function."""

    def test_returns_same_graph(self):
        orchestrator._cached_graphs.clear()
        sentinel = MagicMock()

        with patch.object(orchestrator, "create_batch_graph", return_value=sentinel) as create:
            assert get_graph("batch") is sentinel
            assert get_graph("batch") is sentinel

        create.assert_called_once()
        orchestrator._cached_graphs.clear()

    def test_modes_are_cached_separately(self):
        orchestrator._cached_graphs.clear()

        with (
            patch.object(orchestrator, "create_context_graph", return_value="context-graph"),
            patch.object(orchestrator, "create_batch_graph", return_value="batch-graph"),
        ):
            assert get_graph("context") == "context-graph"
            assert get_graph("batch") == "batch-graph"

        orchestrator._cached_graphs.clear()


class TestRunFlow:
    """Tests for mode dispatch."""

    async def test_explicit_mode(self):
        with patch.object(orchestrator, "run_context_flow", AsyncMock(return_value=[])) as run_context:
            result = await run_flow("context")

        assert result == []
        run_context.assert_awaited_once()

    async def test_mode_from_settings(self):
        settings = Settings(_env_file=None, pipeline_mode="batch")

        with (
            patch.object(orchestrator, "get_settings", return_value=settings),
            patch.object(orchestrator, "run_batch_flow", AsyncMock(return_value="0 processed, 0 failed")),
        ):
            result = await run_flow()

        assert result == "0 processed, 0 failed"
