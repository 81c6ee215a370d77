"""Domain orchestrators for analytics, research and content work."""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, List, Optional

from ..llm.registry import FallbackPolicy, ProviderRegistry
from ..llm.types import ChatMessage, Role
from ..tasks.base import Task, TaskResult
from ..tools.analytics import analytics_tools
from ..tools.base import Tool
from ..tools.content import content_tools
from ..tools.research import research_tools
from .base import AgentConfig, AgentRole
from .orchestrator import Orchestrator

logger = logging.getLogger(__name__)


class DomainOrchestrator(Orchestrator):
    """Second-level orchestrator that works a task with its own domain tools.

    Subclasses fill in the identity attributes, :meth:`default_tools` and
    :meth:`build_task_prompt`.
    """

    agent_id: str = ""
    agent_name: str = ""
    agent_description: str = ""
    agent_domain: str = "general"
    agent_temperature: float = 0.7
    capabilities: List[str] = []
    system_prompt: str = ""

    def __init__(
        self,
        providers: ProviderRegistry,
        *,
        model: Optional[str] = None,
        tools: Optional[Iterable[Tool]] = None,
        fallback: Optional[FallbackPolicy] = None,
        tool_model: Optional[str] = None,
    ) -> None:
        config = AgentConfig(
            id=self.agent_id,
            name=self.agent_name,
            description=self.agent_description,
            role=AgentRole.SUB_ORCHESTRATOR,
            domain=self.agent_domain,
            model=model,
            temperature=self.agent_temperature,
            system_prompt=self.system_prompt,
        )
        super().__init__(config, providers, fallback=fallback)
        if tools is None:
            tools = self.default_tools(tool_model or model)
        self.register_tools(tools)

    def default_tools(self, model: Optional[str]) -> List[Tool]:
        return []

    def build_task_prompt(self, task: Task) -> str:
        raise NotImplementedError

    def execute(self, task: Task) -> TaskResult:
        try:
            prompt = self.build_task_prompt(task)
        except Exception as exc:
            logger.exception("%s could not build a prompt for task %s", self.name, task.id)
            return TaskResult.failure(f"Could not build {self.domain} prompt: {exc}")
        messages = [
            ChatMessage(role=Role.SYSTEM, content=self.config.system_prompt or f"You are a {self.domain} orchestrator."),
            ChatMessage(role=Role.USER, content=prompt),
        ]
        return self.run_prompted_task(task, messages)


def _dump(value: Any, indent: Optional[int] = None) -> str:
    return json.dumps(value, indent=indent, default=str)


class AnalyticsOrchestrator(DomainOrchestrator):
    agent_id = "analytics-orchestrator"
    agent_name = "Analytics Orchestrator"
    agent_description = "Coordinates data analysis tasks including statistics, trends, and insights"
    agent_domain = "analytics"
    agent_temperature = 0.3
    max_iterations = 15
    capabilities = ["analytics", "analysis", "statistics", "trend", "data", "compare"]
    system_prompt = """You are the Analytics Orchestrator, a specialized agent responsible for data analysis tasks.

Your capabilities include:
- Statistical analysis (mean, median, variance, etc.)
- Trend analysis and forecasting
- Data comparison and correlation
- Data aggregation and filtering
- Insight generation

When analyzing data:
1. First understand the data structure and context
2. Choose appropriate analytical methods
3. Apply tools systematically
4. Interpret results clearly
5. Provide actionable insights

Always validate data quality before analysis and explain your methodology."""

    def default_tools(self, model: Optional[str]) -> List[Tool]:
        return analytics_tools()

    def build_task_prompt(self, task: Task) -> str:
        prompt = f"Task: {task.description}\n"
        if task.metadata.get("data"):
            prompt += f"\nData provided:\n{_dump(task.metadata['data'], indent=2)}\n"
        if task.metadata.get("context"):
            prompt += f"\nContext: {_dump(task.metadata['context'])}\n"
        return prompt + "\nAnalyze the data and provide insights using the available tools."


class ResearchOrchestrator(DomainOrchestrator):
    agent_id = "research-orchestrator"
    agent_name = "Research Orchestrator"
    agent_description = "Coordinates research tasks including web search, content extraction, and analysis"
    agent_domain = "research"
    agent_temperature = 0.5
    max_iterations = 15
    capabilities = ["research", "search", "web", "url", "facts", "summarize"]
    system_prompt = """You are the Research Orchestrator, a specialized agent responsible for research tasks.

Your capabilities include:
- Web search for information
- Content extraction from URLs
- Summarization of long content
- Fact extraction and verification
- Topic analysis

When conducting research:
1. Understand the research question
2. Search for relevant information
3. Extract and verify facts
4. Summarize findings
5. Cite sources properly

Be thorough but efficient. Always verify information from multiple sources when possible."""

    def __init__(self, providers: ProviderRegistry, *, search_url: Optional[str] = None, **kwargs: Any) -> None:
        self.search_url = search_url
        super().__init__(providers, **kwargs)

    def default_tools(self, model: Optional[str]) -> List[Tool]:
        return research_tools(self.providers, model=model, fallback=self.fallback, search_url=self.search_url)

    def build_task_prompt(self, task: Task) -> str:
        prompt = f"Research Task: {task.description}\n"
        if task.metadata.get("urls"):
            prompt += f"\nURLs to investigate:\n{_dump(task.metadata['urls'], indent=2)}\n"
        if task.metadata.get("context"):
            prompt += f"\nContext: {_dump(task.metadata['context'])}\n"
        return prompt + "\nConduct research and provide comprehensive findings."


class ContentOrchestrator(DomainOrchestrator):
    agent_id = "content-orchestrator"
    agent_name = "Content Orchestrator"
    agent_description = "Coordinates content creation, formatting, and enhancement tasks"
    agent_domain = "content"
    agent_temperature = 0.7
    max_iterations = 10
    capabilities = ["content", "write", "article", "report", "format", "translate"]
    system_prompt = """You are the Content Orchestrator, a specialized agent responsible for content tasks.

Your capabilities include:
- Content generation (articles, reports, summaries)
- Content formatting (markdown, HTML)
- Content enhancement (grammar, clarity, style)
- Translation
- Report generation

When creating content:
1. Understand the topic and target audience
2. Choose appropriate tone and style
3. Structure content logically
4. Ensure clarity and engagement
5. Review and refine

Create high-quality, well-structured content that meets the user's requirements."""

    def default_tools(self, model: Optional[str]) -> List[Tool]:
        return content_tools(self.providers, model=model, fallback=self.fallback)

    def build_task_prompt(self, task: Task) -> str:
        prompt = f"Content Task: {task.description}\n"
        for key in ("topic", "tone", "format"):
            if task.metadata.get(key):
                prompt += f"\n{key.capitalize()}: {task.metadata[key]}\n"
        if task.metadata.get("data"):
            prompt += f"\nData to include:\n{_dump(task.metadata['data'], indent=2)}\n"
        if task.metadata.get("context"):
            prompt += f"\nContext: {_dump(task.metadata['context'])}\n"
        return prompt + "\nCreate the requested content."
