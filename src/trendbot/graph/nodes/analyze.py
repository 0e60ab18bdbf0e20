"""
Analyze Node - Summarizes an article with a chat model.

For each article the agent is called once with:
- A system message describing its role (one per summary style)
- A prompt embedding title, URL and content plus a fixed output template

The answer is free text, expected to contain two labeled sections:

    **要約：**
    ...summary...

    **サンプルコード：**
    ...TypeScript sample, or "none"...

The format is not guaranteed, so decoding is two-step: try the section
patterns, and fall back to a prefix of the raw answer (summary) or the
sentinel (sample code) when a pattern misses. Any failure of the call
itself yields fallback_analysis() instead of an exception.

Results are not deterministic: the same article can get a different
summary on every run.
"""

import re
from typing import Literal

import structlog
from langchain_anthropic import ChatAnthropic
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from trendbot.config import Settings
from trendbot.errors import ConfigurationError
from trendbot.graph.state import (
    SAMPLE_CODE_SENTINEL,
    AnalysisResult,
    Article,
    PipelineContext,
    add_log,
)

logger = structlog.get_logger()

SummaryStyle = Literal["briefing", "social"]

ANALYSIS_FAILED_SUMMARY = "記事の分析中にエラーが発生しました。"

# Characters of raw answer kept when the summary section can't be found
SUMMARY_FALLBACK_CHARS = 200

MAX_CONTENT_CHARS = 8000


# === Prompt Templates ===

SYSTEM_INSTRUCTIONS: dict[str, str] = {
    "briefing": """あなたは技術記事を分析する専門のエージェントです。
指定された記事を日本語で正確に読み解き、日本のエンジニアが短時間で要点を掴めるようにまとめてください。
技術的に正確で、示唆に富む分析を心がけてください。""",
    "social": """あなたは技術ニュースをX（旧Twitter）向けの短い投稿に要約する専門のエージェントです。
誰が・何をして・なぜすごいのかが一読でわかる投稿を書いてください。""",
}

SUMMARY_RULES: dict[str, str] = {
    "briefing": """【要約のルール】
- 日本語で3行にまとめる
- 1行目で結論、2〜3行目で背景と影響を書く""",
    "social": """【要約のルール】
- 冒頭で目を引く一言を入れる
- 中学生でもわかる言葉で、カジュアルな文体にする（敬語は使わない）
- 驚き・学び・共感のどれかを必ず含める
- URLとハッシュタグは入れない
- 改行なし、全角140文字以内""",
}

ANALYZE_PROMPT = """以下の技術記事を分析して、要約とサンプルコードを作成してください。

記事タイトル: {title}
記事URL: {url}
記事内容:
{content}

{rules}

出力フォーマット:
**要約：**
[ここに要約]

**サンプルコード：**
[記事に関連するTypeScriptのサンプルコード。該当しない場合は "{sentinel}"]
"""


# === Response Parsing ===

# A label is the whole bold run: "**要約：**", "**Summary:**", "**サンプルコード**："
# Bold words inside a section ("**Codex**") are not labels.
_SUMMARY_LABEL = r"\*\*(?:要約|summary)\s*[:：]?\s*\*\*\s*[:：]?"
_CODE_LABEL = r"\*\*(?:サンプルコード|sample\s*code)\s*[:：]?\s*\*\*\s*[:：]?"

SUMMARY_PATTERN = re.compile(
    _SUMMARY_LABEL + r"\s*([\s\S]*?)(?=" + _CODE_LABEL + r"|\Z)",
    re.IGNORECASE,
)
SAMPLE_CODE_PATTERN = re.compile(
    _CODE_LABEL + r"\s*([\s\S]*?)\Z",
    re.IGNORECASE,
)


def build_prompt(article: Article, style: SummaryStyle = "social") -> str:
    """Embed the article in the analysis prompt."""
    content = article.get("content") or article["title"]
    return ANALYZE_PROMPT.format(
        title=article["title"],
        url=article["source_url"],
        content=content[:MAX_CONTENT_CHARS],
        rules=SUMMARY_RULES[style],
        sentinel=SAMPLE_CODE_SENTINEL,
    )


def parse_analysis(text: str, provider: str) -> AnalysisResult:
    """
    Extract the summary and sample code sections from an agent answer.

    Never raises. Label matching ignores case, so "**Summary:**" works
    as well as "**要約：**".
    """
    summary_match = SUMMARY_PATTERN.search(text)
    code_match = SAMPLE_CODE_PATTERN.search(text)

    summary = summary_match.group(1).strip() if summary_match else ""
    if not summary:
        summary = text[:SUMMARY_FALLBACK_CHARS].strip()

    sample_code = code_match.group(1).strip() if code_match else ""

    return AnalysisResult(
        summary=summary,
        sample_code=sample_code or SAMPLE_CODE_SENTINEL,
        provider=provider,
    )


def fallback_analysis(provider: str) -> AnalysisResult:
    """The result used when the agent call fails."""
    return AnalysisResult(
        summary=ANALYSIS_FAILED_SUMMARY,
        sample_code=SAMPLE_CODE_SENTINEL,
        provider=provider,
    )


def response_text(response) -> str:
    """Flatten a chat model response into plain text."""
    content = getattr(response, "content", response)
    if isinstance(content, str):
        return content

    # Some providers return a list of content blocks
    parts = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


class ArticleAnalyzer:
    """
    Runs the analysis agent for one article at a time.

    Args:
        llm: Any LangChain chat model
        provider: Name recorded in AnalysisResult.provider and the log
        style: Which summary rules to send ("briefing" or "social")
    """

    def __init__(self, llm: BaseChatModel, provider: str, style: SummaryStyle = "social"):
        self.llm = llm
        self.provider = provider
        self.style = style

    async def generate(self, article: Article) -> AnalysisResult:
        """Call the agent once and parse its answer. Propagates call errors."""
        messages = [
            SystemMessage(content=SYSTEM_INSTRUCTIONS[self.style]),
            HumanMessage(content=build_prompt(article, self.style)),
        ]
        response = await self.llm.ainvoke(messages)
        return parse_analysis(response_text(response), self.provider)

    async def analyze(self, article: Article) -> AnalysisResult:
        """Like generate(), but any failure becomes fallback_analysis()."""
        log = logger.bind(title=article["title"], source=article["source"], provider=self.provider)
        try:
            result = await self.generate(article)
        except Exception as e:
            log.error("Failed to analyze article", error=str(e), error_type=type(e).__name__)
            return fallback_analysis(self.provider)

        log.debug("Analysis complete", summary_chars=len(result["summary"]))
        return result


def create_chat_model(settings: Settings) -> tuple[BaseChatModel, str]:
    """
    Build the chat model selected by settings.llm_provider.

    DeepSeek speaks the OpenAI protocol, so it goes through ChatOpenAI
    with a custom base URL.

    Returns:
        (chat model, provider display name)

    Raises:
        ConfigurationError: If the selected provider has no API key
    """
    if settings.llm_provider == "anthropic":
        if settings.anthropic_api_key is None:
            raise ConfigurationError("ANTHROPIC_API_KEY is not set in environment variables.")
        llm = ChatAnthropic(
            model=settings.anthropic_model,
            api_key=settings.anthropic_api_key.get_secret_value(),
            max_tokens=1024,
        )
        return llm, "Anthropic"

    if settings.deepseek_api_key is None:
        raise ConfigurationError("DEEPSEEK_API_KEY is not set in environment variables.")
    llm = ChatOpenAI(
        model=settings.deepseek_model,
        api_key=settings.deepseek_api_key.get_secret_value(),
        base_url=settings.deepseek_base_url,
    )
    return llm, "DeepSeek"


def create_analyzer(settings: Settings) -> ArticleAnalyzer:
    llm, provider = create_chat_model(settings)
    return ArticleAnalyzer(llm, provider=provider, style=settings.summary_style)


async def analyze_article(ctx: PipelineContext, analyzer: ArticleAnalyzer) -> PipelineContext:
    """
    Context-mode analyze stage.

    Without ctx["article"] this only appends an error entry: the run goes
    on and the save stage reports the missing data. Agent failures store
    the fallback analysis and log the error.
    """
    article = ctx.get("article")
    if article is None:
        logger.error("No article in context, skipping analysis")
        return add_log(
            ctx,
            step="analyze",
            agent=analyzer.provider,
            note="Error: No article provided for analysis",
        )

    log = logger.bind(title=article["title"], provider=analyzer.provider)

    try:
        analysis = await analyzer.generate(article)
        note = f"Analyzed {article['title']}"
        log.info("Analysis complete")
    except Exception as e:
        log.error("Failed to analyze article", error=str(e), error_type=type(e).__name__)
        analysis = fallback_analysis(analyzer.provider)
        note = f"Error analyzing {article['title']}: {e}"

    return add_log(
        {**ctx, "analysis": analysis},
        step="analyze",
        agent=analyzer.provider,
        note=note,
    )


def create_analyze_node(analyzer: ArticleAnalyzer):
    """
    Factory for the context-mode analyze stage.

    Usage:
        builder.add_node("analyze", create_analyze_node(create_analyzer(settings)))
    """

    async def node(ctx: PipelineContext) -> PipelineContext:
        return await analyze_article(ctx, analyzer)

    return node
