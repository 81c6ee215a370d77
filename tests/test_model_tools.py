import json

from taskforce.llm import FallbackPolicy, ProviderType
from taskforce.tools.content import ContentGenerationTool, ReportGenerationTool, TranslationTool, content_tools
from taskforce.tools.research import (
    FactExtractionTool,
    SummarizationTool,
    TopicAnalysisTool,
    WebContentReaderTool,
    WebSearchTool,
    research_tools,
)


def test_summarization_uses_style_and_limits(scripted):
    registry, provider = scripted("A short summary.")
    tool = SummarizationTool(registry, model="gpt-4o-mini")

    result = tool.execute({"content": "long text " * 50, "style": "bullet_points", "max_length": 50})

    assert result.success
    assert result.data["summary"] == "A short summary."
    assert result.data["style"] == "bullet_points"
    request = provider.requests[0]
    assert request.model == "gpt-4o-mini"
    assert request.max_tokens == 500
    assert "bullet points" in request.messages[0].content
    assert "under 50 words" in request.messages[0].content


def test_fact_extraction_filters_requested_types(scripted):
    reply = json.dumps({"dates": ["2024"], "names": ["Ada"], "key_facts": ["Ada wrote notes"]})
    registry, provider = scripted(f"```json\n{reply}\n```")

    result = FactExtractionTool(registry).execute({"content": "Ada wrote notes in 2024", "fact_types": ["names"]})

    assert result.success
    assert result.data == {"names": ["Ada"], "key_facts": ["Ada wrote notes"]}
    assert provider.requests[0].response_format == {"type": "json_object"}


def test_topic_analysis_reports_bad_json(scripted):
    registry, _ = scripted("not json at all")

    result = TopicAnalysisTool(registry).execute({"content": "text"})

    assert result.success is False
    assert "JSON" in result.error


def test_model_tool_falls_back_to_active_default_model(scripted):
    registry, provider = scripted("Hola")

    TranslationTool(registry).execute({"content": "Hello", "target_language": "es"})

    # no configs registered, so the built-in tool default applies
    assert provider.requests[0].model == "gpt-4o-mini"
    assert "Spanish" in provider.requests[0].messages[0].content


def test_content_generation_prompt(scripted):
    registry, provider = scripted("# Solar power\n\nIt is bright.")

    result = ContentGenerationTool(registry).execute(
        {"topic": "solar power", "tone": "casual", "length": "short", "context": "for kids"}
    )

    assert result.success
    assert result.data["word_count"] == 6
    system, user = provider.requests[0].messages
    assert "200-300 words" in system.content
    assert "conversational language" in system.content
    assert user.content == "Context: for kids\n\nWrite an article about: solar power"


def test_report_generation_serializes_data(scripted):
    registry, provider = scripted("report body")

    result = ReportGenerationTool(registry).execute({"title": "Q3", "data": {"revenue": 10}})

    assert result.data["sections"] == ["summary", "findings", "recommendations"]
    assert '"revenue": 10' in provider.requests[0].messages[1].content
    assert provider.requests[0].max_tokens == 3000


def test_provider_errors_become_tool_failures(scripted):
    registry, _ = scripted()

    result = SummarizationTool(registry).execute({"content": "anything"})

    assert result.success is False
    assert "exhausted" in result.error


def test_web_search_requires_configuration():
    result = WebSearchTool().execute({"query": "python"})

    assert result.success is False
    assert "not configured" in result.error


def test_web_search_normalizes_results(http):
    http.reply(
        {
            "results": [
                {"title": "Python", "url": "https://python.org/about", "content": "The language"},
                {"title": "PyPI", "url": "https://pypi.org", "content": "Packages"},
            ]
        }
    )

    result = WebSearchTool(search_url="http://search.local/").execute({"query": "python", "num_results": 1})

    assert result.success
    assert result.data == [
        {
            "title": "Python",
            "url": "https://python.org/about",
            "snippet": "The language",
            "source": "python.org",
            "date": None,
        }
    ]
    assert http.requests[0].full_url == "http://search.local/search?q=python&format=json"


def test_read_web_content_extracts_text(http):
    html = (
        "<html><head><title>Example</title>"
        '<meta property="article:published_time" content="2024-05-01">'
        "<script>var hidden = 1;</script></head>"
        "<body><h1>Heading</h1><p>First   paragraph.</p><p>Second.</p></body></html>"
    )
    http.reply(html, content_type="text/html; charset=utf-8")

    result = WebContentReaderTool().execute({"url": "https://example.com"})

    assert result.success
    assert result.data["title"] == "Example"
    assert result.data["published_time"] == "2024-05-01"
    assert result.data["content"] == "Heading\nFirst paragraph.\nSecond."


def test_read_web_content_rejects_non_http_urls():
    assert WebContentReaderTool().execute({"url": "file:///etc/passwd"}).success is False


def test_read_web_content_reports_http_errors(http):
    http.fail_status(404, "missing")

    result = WebContentReaderTool().execute({"url": "https://example.com/gone"})

    assert result.success is False
    assert "404" in result.error


def test_tool_sets_share_the_fallback_policy(scripted):
    registry, _ = scripted(provider_type=ProviderType.OLLAMA)
    policy = FallbackPolicy(enabled=False)

    tools = research_tools(registry, fallback=policy) + content_tools(registry, fallback=policy)

    assert len(tools) == 10
    assert all(tool.fallback is policy for tool in tools if hasattr(tool, "fallback"))
