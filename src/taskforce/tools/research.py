"""Research tools: web search, page reading and model-backed text analysis."""

from __future__ import annotations

import json
import urllib.error
import urllib.parse
import urllib.request
from html.parser import HTMLParser
from typing import Any, Dict, List, Optional

from ..llm.registry import FallbackPolicy, ProviderRegistry
from .base import ModelTool, Tool, ToolParameter, ToolResult

USER_AGENT = "taskforce-agents/0.1 (+research tools)"


def _fetch(url: str, *, timeout: float, accept: str = "*/*") -> tuple[str, str]:
    request = urllib.request.Request(url, headers={"User-Agent": USER_AGENT, "Accept": accept})
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            charset = response.headers.get_content_charset() or "utf-8"
            content_type = response.headers.get("Content-Type", "")
            return response.read().decode(charset, errors="replace"), content_type
    except urllib.error.HTTPError as exc:
        raise RuntimeError(f"HTTP {exc.code} fetching {url}") from exc
    except urllib.error.URLError as exc:
        raise RuntimeError(f"Failed to reach {url}: {exc.reason}") from exc


class WebSearchTool(Tool):
    """Search the web for information on a given topic"""

    name = "web_search"
    parameters = {
        "query": ToolParameter("string", "The search query", required=True),
        "num_results": ToolParameter("number", "Number of results to return (default: 5)", default=5),
    }

    def __init__(self, search_url: Optional[str] = None, timeout: float = 20.0, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.search_url = search_url
        self.timeout = timeout

    def run(self, params: Dict[str, Any]) -> ToolResult:
        query = str(params["query"]).strip()
        if not query:
            return ToolResult.fail("Search query is required")
        if not self.search_url:
            return ToolResult.fail("Web search is not configured: set a search_url for the research tools")
        limit = max(1, int(params.get("num_results") or 5))
        url = f"{self.search_url.rstrip('/')}/search?" + urllib.parse.urlencode({"q": query, "format": "json"})
        body, _ = _fetch(url, timeout=self.timeout, accept="application/json")
        payload = json.loads(body)
        results = [
            {
                "title": item.get("title", ""),
                "url": item.get("url", ""),
                "snippet": item.get("content", ""),
                "source": urllib.parse.urlparse(item.get("url", "")).netloc,
                "date": item.get("publishedDate"),
            }
            for item in (payload.get("results") or [])[:limit]
        ]
        return ToolResult.ok(results, query=query, result_count=len(results))


class _TextExtractor(HTMLParser):
    """Collects visible text, the page title and the published-time meta tag."""

    SKIP = {"script", "style", "noscript", "template", "svg"}
    BLOCK = {"p", "div", "br", "li", "h1", "h2", "h3", "h4", "h5", "h6", "tr", "section", "article"}

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.title = ""
        self.published_time = ""
        self._chunks: List[str] = []
        self._skip_depth = 0
        self._in_title = False

    def handle_starttag(self, tag: str, attrs: List[tuple]) -> None:
        if tag in self.SKIP:
            self._skip_depth += 1
        elif tag == "title":
            self._in_title = True
        elif tag == "meta":
            values = dict(attrs)
            if values.get("property") == "article:published_time" and values.get("content"):
                self.published_time = values["content"]
        if tag in self.BLOCK:
            self._chunks.append("\n")

    def handle_endtag(self, tag: str) -> None:
        if tag in self.SKIP and self._skip_depth:
            self._skip_depth -= 1
        elif tag == "title":
            self._in_title = False

    def handle_data(self, data: str) -> None:
        if self._skip_depth:
            return
        if self._in_title:
            self.title += data.strip()
            return
        self._chunks.append(data)

    @property
    def text(self) -> str:
        lines = (" ".join(line.split()) for line in "".join(self._chunks).splitlines())
        return "\n".join(line for line in lines if line)


class WebContentReaderTool(Tool):
    """Extract and read content from a web page URL"""

    name = "read_web_content"
    parameters = {
        "url": ToolParameter("string", "The URL to read content from", required=True),
        "max_chars": ToolParameter("number", "Maximum characters of page text to return", default=20000),
    }

    def __init__(self, timeout: float = 20.0, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.timeout = timeout

    def run(self, params: Dict[str, Any]) -> ToolResult:
        url = str(params["url"]).strip()
        if urllib.parse.urlparse(url).scheme not in ("http", "https"):
            return ToolResult.fail(f"Unsupported URL: {url}")
        body, content_type = _fetch(url, timeout=self.timeout, accept="text/html,text/plain;q=0.9,*/*;q=0.5")
        limit = int(params.get("max_chars") or 20000)
        if "html" not in content_type and "<html" not in body[:1000].lower():
            return ToolResult.ok({"title": "", "content": body[:limit], "published_time": ""}, url=url)
        parser = _TextExtractor()
        parser.feed(body)
        parser.close()
        text = parser.text
        return ToolResult.ok(
            {"title": parser.title, "content": text[:limit], "published_time": parser.published_time},
            url=url,
            truncated=len(text) > limit,
        )


SUMMARY_STYLES = {
    "brief": "Provide a concise summary in 2-3 sentences.",
    "detailed": "Provide a comprehensive summary covering all key points.",
    "bullet_points": "Summarize as a list of bullet points.",
}


class SummarizationTool(ModelTool):
    """Summarize long text content into key points"""

    name = "summarize_content"
    parameters = {
        "content": ToolParameter("string", "The content to summarize", required=True),
        "style": ToolParameter(
            "string", "Summary style: brief, detailed, bullet_points", enum=list(SUMMARY_STYLES), default="brief"
        ),
        "max_length": ToolParameter("number", "Maximum length of summary in words", default=200),
    }

    def run(self, params: Dict[str, Any]) -> ToolResult:
        content = params["content"]
        if not content:
            return ToolResult.fail("Content is required")
        style = params.get("style") if params.get("style") in SUMMARY_STYLES else "brief"
        max_length = int(params.get("max_length") or 200)
        summary = self.complete(
            f"You are a summarization assistant. {SUMMARY_STYLES[style]} Keep the summary under {max_length} words.",
            f"Summarize the following content:\n\n{content}",
            max_tokens=500,
        )
        return ToolResult.ok(
            {"summary": summary, "style": style, "original_length": len(content), "summary_length": len(summary)}
        )


FACT_TYPES = ["dates", "numbers", "names", "locations", "entities"]

FACTS_PROMPT = """Extract facts from the content. Return a JSON object with the following structure:
{
  "dates": ["list of dates mentioned"],
  "numbers": ["list of important numbers with context"],
  "names": ["list of names mentioned"],
  "locations": ["list of locations mentioned"],
  "entities": ["list of organizations, products, or other entities"],
  "key_facts": ["list of key facts as individual statements"]
}
Only include fields that have extracted data. Be precise and only extract factual information explicitly stated."""


class FactExtractionTool(ModelTool):
    """Extract key facts and information from text content"""

    name = "extract_facts"
    parameters = {
        "content": ToolParameter("string", "The content to extract facts from", required=True),
        "fact_types": ToolParameter(
            "array", "Types of facts to extract: dates, numbers, names, locations, entities", default=FACT_TYPES
        ),
    }

    def run(self, params: Dict[str, Any]) -> ToolResult:
        content = params["content"]
        if not content:
            return ToolResult.fail("Content is required")
        facts = self.complete_json(FACTS_PROMPT, content)
        wanted = params.get("fact_types") or FACT_TYPES
        selected = {kind: facts[kind] for kind in wanted if facts.get(kind)}
        selected["key_facts"] = facts.get("key_facts", [])
        return ToolResult.ok(selected)


TOPICS_PROMPT = """Analyze the content and identify the main topics and themes. Return a JSON object:
{
  "primary_topic": "the main topic",
  "secondary_topics": ["list of secondary topics"],
  "themes": ["list of themes"],
  "keywords": ["list of important keywords"],
  "category": "overall category of the content",
  "sentiment": "positive/negative/neutral"
}"""


class TopicAnalysisTool(ModelTool):
    """Analyze text to identify main topics and themes"""

    name = "analyze_topics"
    parameters = {"content": ToolParameter("string", "The content to analyze", required=True)}
    max_content = 4000

    def run(self, params: Dict[str, Any]) -> ToolResult:
        content = params["content"]
        if not content:
            return ToolResult.fail("Content is required")
        return ToolResult.ok(self.complete_json(TOPICS_PROMPT, content[: self.max_content]))


def research_tools(
    providers: ProviderRegistry,
    *,
    model: Optional[str] = None,
    fallback: Optional[FallbackPolicy] = None,
    search_url: Optional[str] = None,
) -> List[Tool]:
    return [
        WebSearchTool(search_url=search_url),
        WebContentReaderTool(),
        SummarizationTool(providers, model=model, fallback=fallback),
        FactExtractionTool(providers, model=model, fallback=fallback),
        TopicAnalysisTool(providers, model=model, fallback=fallback),
    ]
