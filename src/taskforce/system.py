"""Entry point that assembles the full orchestrator hierarchy."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from .agents.base import AgentState
from .agents.domains import AnalyticsOrchestrator, ContentOrchestrator, DomainOrchestrator, ResearchOrchestrator
from .agents.master import MasterOrchestrator
from .config import DOMAINS, SystemSettings, TaskSpec
from .llm.registry import FallbackPolicy, ProviderRegistry
from .tasks.base import Task, TaskPriority, TaskResult
from .tasks.runner import TaskRunner
from .tools.base import ToolResult

logger = logging.getLogger(__name__)


class AgentSystem:
    """The master hierarchy plus the registry it talks to."""

    def __init__(self, master: MasterOrchestrator, providers: ProviderRegistry, settings: SystemSettings) -> None:
        self.master = master
        self.providers = providers
        self.settings = settings

    def orchestrator(self, domain: str) -> DomainOrchestrator:
        try:
            return self.master.domain_orchestrators()[domain]
        except KeyError as exc:
            raise ValueError(f"Unknown domain '{domain}' (expected one of: {', '.join(DOMAINS)})") from exc

    def execute(
        self,
        description: str,
        context: Optional[Mapping[str, Any]] = None,
        *,
        direct_to: Optional[str] = None,
        priority: TaskPriority | str = TaskPriority.MEDIUM,
    ) -> TaskResult:
        """Run ``description`` through the master, or straight on one domain orchestrator."""
        try:
            agent = self.orchestrator(direct_to) if direct_to else self.master
            metadata: Dict[str, Any] = {}
            if context:
                metadata["context"] = dict(context)
                if direct_to:
                    # Domain prompts read these directly from the metadata.
                    for key in ("data", "urls", "topic", "tone", "format"):
                        if key in context:
                            metadata[key] = context[key]
            task = Task(description=description, metadata=metadata, priority=priority)
        except ValueError as exc:
            return TaskResult.failure(str(exc))

        task.start(assigned_to=agent.id)
        result = agent.execute(task)
        task.finish(result)
        return result

    def run_spec(self, spec: TaskSpec) -> TaskResult:
        return self.execute(spec.description, spec.context, direct_to=spec.direct_to, priority=spec.priority)

    def runner(self) -> TaskRunner:
        return TaskRunner(self.run_spec, timeout=self.settings.timeout)

    def run_tool(self, domain: str, tool_name: str, params: Optional[Mapping[str, Any]] = None) -> ToolResult:
        """Execute one tool from a domain orchestrator's registry directly."""
        try:
            orchestrator = self.orchestrator(domain)
        except ValueError as exc:
            return ToolResult.fail(str(exc))
        return orchestrator.tools.execute(tool_name, params)

    def get_status(self) -> Dict[str, AgentState]:
        return self.master.get_system_status()


def create_agent_system(
    settings: Optional[SystemSettings] = None,
    providers: Optional[ProviderRegistry] = None,
) -> AgentSystem:
    """Build the registry (unless given), initialize backends and wire the hierarchy."""

    settings = settings or SystemSettings()
    if providers is None:
        providers = ProviderRegistry()
    providers.initialize_all(settings.providers)
    providers.set_active(settings.active_provider)

    fallback = FallbackPolicy(enabled=settings.fallback_enabled, provider=settings.fallback_provider)
    domain_options = dict(tool_model=settings.tool_model, fallback=fallback)
    master = MasterOrchestrator(
        providers,
        analytics=AnalyticsOrchestrator(providers, model=settings.model_for("analytics"), **domain_options),
        research=ResearchOrchestrator(
            providers, model=settings.model_for("research"), search_url=settings.search_url, **domain_options
        ),
        content=ContentOrchestrator(providers, model=settings.model_for("content"), **domain_options),
        model=settings.model_for("general"),
        fallback=fallback,
    )

    for spec in settings.tools.values():
        for domain in spec.agents:
            master.domain_orchestrators()[domain].tools.register_from_spec(spec)
    logger.info(
        "Agent system ready (active provider: %s, fallback: %s)",
        providers.active_type.value,
        fallback.provider.value if fallback.enabled else "disabled",
    )
    return AgentSystem(master, providers, settings)
