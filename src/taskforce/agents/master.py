"""Top-level coordinator over the three domain orchestrators."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from ..llm.registry import FallbackPolicy, ProviderRegistry
from ..llm.types import ChatMessage, Role
from ..tasks.base import Task, TaskResult
from ..tools.base import FunctionTool, ToolDefinition, ToolParameter
from .base import AgentConfig, AgentRole, AgentState
from .domains import AnalyticsOrchestrator, ContentOrchestrator, DomainOrchestrator, ResearchOrchestrator
from .orchestrator import Orchestrator

logger = logging.getLogger(__name__)

MASTER_PROMPT = """You are the Master Orchestrator, the top-level coordinator of a multi-agent system.

Your role is to:
1. Understand user requests and goals
2. Break down complex tasks into subtasks
3. Delegate to specialized sub-orchestrators
4. Coordinate execution and gather results
5. Synthesize outputs into a final response

Available Sub-Orchestrators:
- Analytics Orchestrator: Data analysis, statistics, trends, insights
- Research Orchestrator: Web search, content extraction, fact-checking
- Content Orchestrator: Writing, formatting, report generation

When handling requests:
1. Analyze the request to determine what capabilities are needed
2. Plan the execution order and dependencies
3. Delegate tasks to appropriate orchestrators
4. Monitor progress and handle errors
5. Combine results into a coherent response

Always think step-by-step and explain your reasoning."""


class MasterOrchestrator(Orchestrator):
    """Root of the two-level tree.

    The domain orchestrators are held as fields and reached through three
    explicit delegation tools, one per domain, each with a schema tailored to
    what that domain reads from the task metadata.
    """

    max_iterations = 20

    def __init__(
        self,
        providers: ProviderRegistry,
        *,
        analytics: Optional[AnalyticsOrchestrator] = None,
        research: Optional[ResearchOrchestrator] = None,
        content: Optional[ContentOrchestrator] = None,
        model: Optional[str] = None,
        fallback: Optional[FallbackPolicy] = None,
    ) -> None:
        config = AgentConfig(
            id="master-orchestrator",
            name="Master Orchestrator",
            description="Top-level coordinator that plans and delegates tasks to specialized agents",
            role=AgentRole.MASTER_ORCHESTRATOR,
            domain="general",
            model=model,
            temperature=0.3,
            system_prompt=MASTER_PROMPT,
        )
        super().__init__(config, providers, fallback=fallback)
        self.analytics = analytics or AnalyticsOrchestrator(providers, fallback=self.fallback)
        self.research = research or ResearchOrchestrator(providers, fallback=self.fallback)
        self.content = content or ContentOrchestrator(providers, fallback=self.fallback)
        for orchestrator in self.domain_orchestrators().values():
            self.register_sub_agent(orchestrator, orchestrator.capabilities, expose_tool=False)
        self._register_delegation_tools()

    def domain_orchestrators(self) -> Dict[str, DomainOrchestrator]:
        return {"analytics": self.analytics, "research": self.research, "content": self.content}

    def _register_delegation_tools(self) -> None:
        context = ToolParameter("object", "Additional context for the task")
        analytics = ToolDefinition(
            name="delegate_to_analytics",
            description=(
                "Delegate a data analysis task to the Analytics Orchestrator. "
                "Use for statistics, trends, comparisons, and data insights."
            ),
            parameters={
                "task_description": ToolParameter("string", "Detailed description of the analysis task", required=True),
                "data": ToolParameter("object", "Data to analyze (if applicable)"),
                "context": context,
            },
        )
        research = ToolDefinition(
            name="delegate_to_research",
            description=(
                "Delegate a research task to the Research Orchestrator. "
                "Use for web search, content extraction, and fact-checking."
            ),
            parameters={
                "task_description": ToolParameter("string", "Detailed description of the research task", required=True),
                "urls": ToolParameter("array", "URLs to investigate (if applicable)"),
                "context": context,
            },
        )
        content = ToolDefinition(
            name="delegate_to_content",
            description=(
                "Delegate a content creation task to the Content Orchestrator. "
                "Use for writing, formatting, and report generation."
            ),
            parameters={
                "task_description": ToolParameter("string", "Detailed description of the content task", required=True),
                "topic": ToolParameter("string", "Topic or subject of the content"),
                "tone": ToolParameter(
                    "string", "Writing tone", enum=["formal", "casual", "professional", "technical"]
                ),
                "format": ToolParameter("string", "Output format", enum=["markdown", "html", "plain_text"]),
                "data": ToolParameter("object", "Data to include in the content"),
                "context": context,
            },
        )
        self.register_tools(
            [
                FunctionTool(analytics, self._delegator(self.analytics, ("data",))),
                FunctionTool(research, self._delegator(self.research, ("urls",))),
                FunctionTool(content, self._delegator(self.content, ("topic", "tone", "format", "data"))),
            ]
        )

    def _delegator(self, orchestrator: DomainOrchestrator, fields: tuple):
        def delegate(params: Dict[str, Any]) -> TaskResult:
            return self.delegate_task(
                orchestrator.id,
                params["task_description"],
                params.get("context"),
                metadata={key: params.get(key) for key in fields},
            )

        return delegate

    def execute(self, task: Task) -> TaskResult:
        messages = [
            ChatMessage(role=Role.SYSTEM, content=self.config.system_prompt or "You are a master orchestrator."),
            ChatMessage(role=Role.USER, content=task.description),
        ]
        if task.metadata.get("context"):
            try:
                context = json.dumps(task.metadata["context"], default=str)
            except (TypeError, ValueError) as exc:
                logger.exception("%s could not serialize context for task %s", self.name, task.id)
                return TaskResult.failure(f"Could not build general prompt: {exc}")
            messages.append(ChatMessage(role=Role.USER, content=f"Additional context: {context}"))
        return self.run_prompted_task(task, messages)

    def get_system_status(self) -> Dict[str, AgentState]:
        status = {"master": self.get_status()}
        for domain, orchestrator in self.domain_orchestrators().items():
            status[domain] = orchestrator.get_status()
        return status
