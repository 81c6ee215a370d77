"""Orchestrator agents: sub-agent registry, delegation and task bookkeeping."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..llm.types import ChatMessage, Role
from ..tasks.base import Task, TaskResult, utcnow
from ..tools.base import FunctionTool, ToolDefinition, ToolParameter
from .base import Agent

logger = logging.getLogger(__name__)

_JSON_BLOCK = re.compile(r"\{.*\}", re.DOTALL)


@dataclass
class SubAgent:
    id: str
    name: str
    agent: Agent
    capabilities: List[str] = field(default_factory=list)


def delegation_tool_name(agent_name: str) -> str:
    """``"Research Orchestrator"`` -> ``"delegate_to_research_orchestrator"``."""
    return "delegate_to_" + re.sub(r"\s+", "_", agent_name.lower())


class Orchestrator(Agent):
    """Agent that owns sub-agents and delegates tasks to them.

    Delegation is offered to the reasoning loop as ordinary tools, so the model
    decides when to hand work down. Every delegated task is tracked in
    ``pending_tasks`` while it runs and lands in ``completed_tasks`` afterwards,
    whatever the outcome.
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.sub_agents: Dict[str, SubAgent] = {}
        self._pending: Dict[str, Task] = {}
        self._completed: Dict[str, TaskResult] = {}

    # sub-agent management

    def register_sub_agent(self, agent: Agent, capabilities: Iterable[str], *, expose_tool: bool = True) -> SubAgent:
        entry = SubAgent(id=agent.id, name=agent.name, agent=agent, capabilities=list(capabilities))
        self.sub_agents[agent.id] = entry
        if expose_tool:
            self.register_tool(self._delegation_tool(entry))
        return entry

    def _delegation_tool(self, entry: SubAgent) -> FunctionTool:
        definition = ToolDefinition(
            name=delegation_tool_name(entry.name),
            description=f"Delegate task to {entry.name}. Capabilities: {', '.join(entry.capabilities)}",
            parameters={
                "task_description": ToolParameter("string", "Description of the task to delegate", required=True),
                "context": ToolParameter("object", "Additional context for the task"),
            },
        )
        return FunctionTool(
            definition,
            lambda params: self.delegate_task(entry.id, params["task_description"], params.get("context")),
        )

    def get_sub_agent(self, agent_id: str) -> Optional[SubAgent]:
        return self.sub_agents.get(agent_id)

    def available_agents(self) -> List[SubAgent]:
        return list(self.sub_agents.values())

    # delegation

    def delegate_task(
        self,
        agent_id: str,
        description: str,
        context: Any = None,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> TaskResult:
        """Run ``description`` on sub-agent ``agent_id``; never raises."""
        entry = self.sub_agents.get(agent_id)
        if entry is None:
            return TaskResult.failure(f"Sub-agent not found: {agent_id}")

        payload = {key: value for key, value in dict(metadata or {}).items() if value is not None}
        if context is not None:
            payload["context"] = context
        try:
            task = Task(description=description, metadata=payload, parent_task_id=self.state.current_task)
        except ValueError as exc:
            return TaskResult.failure(str(exc))
        task.start(assigned_to=agent_id)

        self._pending[task.id] = task
        logger.info("%s delegating task %s to %s", self.name, task.id, entry.name)
        result = TaskResult.failure("Unknown error")
        try:
            result = entry.agent.execute(task)
            if not isinstance(result, TaskResult):
                result = TaskResult.failure(f"{entry.name} returned {type(result).__name__}, expected TaskResult")
        except Exception as exc:
            logger.exception("Sub-agent %s raised on task %s", entry.name, task.id)
            result = TaskResult.failure(str(exc) or "Unknown error")
        finally:
            # a sub-agent may already have closed the task itself
            if not task.status.is_terminal:
                task.finish(result)
            self._completed[task.id] = result
            del self._pending[task.id]
        logger.info("%s finished task %s (success=%s)", entry.name, task.id, result.success)
        return result

    def select_best_agent(self, description: str) -> Optional[str]:
        """Keyword match over capabilities; first registered sub-agent on no match.

        Override for model-driven selection.
        """
        text = description.lower()
        for agent_id, entry in self.sub_agents.items():
            if any(capability.lower() in text for capability in entry.capabilities):
                return agent_id
        return next(iter(self.sub_agents), None)

    # planning

    def agent_list(self) -> str:
        return "\n".join(
            f"- {entry.name} ({entry.id}): {', '.join(entry.capabilities)}" for entry in self.sub_agents.values()
        )

    def planning_prompt(self) -> str:
        return (
            "You are an orchestrator agent. Your job is to break down complex tasks into subtasks "
            "and delegate them to the appropriate agents.\n\n"
            f"Available agents:\n{self.agent_list()}\n\n"
            "When planning:\n"
            "1. Analyze the task requirements\n"
            "2. Identify which agents are needed\n"
            "3. Determine the order of execution\n"
            "4. Consider dependencies between subtasks\n\n"
            "Return a JSON plan with this structure:\n"
            '{\n  "subtasks": [\n    {\n      "description": "task description",\n'
            '      "agent": "agent_id",\n      "dependencies": ["task_id"]\n    }\n  ]\n}'
        )

    def plan_execution(self, task: Task) -> List[Task]:
        """Ask the model for a plan and turn it into child tasks.

        Subtasks naming a known sub-agent come back ``delegated`` to it. An
        unusable plan yields ``[task]``.
        """
        messages = [
            ChatMessage(role=Role.SYSTEM, content=self.planning_prompt()),
            ChatMessage(
                role=Role.USER,
                content=f"Plan the execution of this task:\n\n{task.description}\n\nAvailable agents:\n{self.agent_list()}",
            ),
        ]
        choice = self.call_llm(messages, temperature=0.3, use_tools=False)
        steps = _parse_plan(choice.message.content)
        if not steps:
            return [task]

        subtasks: List[Task] = []
        for step in steps:
            description = str(step.get("description") or "").strip()
            if not description:
                continue
            child = Task(
                description=description,
                priority=task.priority,
                parent_task_id=task.id,
                metadata={"dependencies": list(step.get("dependencies") or [])},
            )
            agent_id = step.get("agent")
            if agent_id in self.sub_agents:
                child.delegate(agent_id)
            subtasks.append(child)
        if not subtasks:
            return [task]
        task.sub_tasks = subtasks
        task.updated_at = utcnow()
        return subtasks

    # monitoring

    def pending_tasks(self) -> List[Task]:
        return list(self._pending.values())

    def completed_tasks(self) -> Dict[str, TaskResult]:
        return dict(self._completed)

    def get_stats(self) -> Dict[str, int]:
        results = list(self._completed.values())
        succeeded = sum(1 for result in results if result.success)
        return {
            "total_tasks": len(self._pending) + len(results),
            "pending_tasks": len(self._pending),
            "completed_tasks": succeeded,
            "failed_tasks": len(results) - succeeded,
        }


def _parse_plan(text: str) -> List[Dict[str, Any]]:
    match = _JSON_BLOCK.search(text or "")
    if not match:
        return []
    try:
        plan = json.loads(match.group(0))
    except json.JSONDecodeError:
        logger.debug("Discarding unparseable plan: %s", text)
        return []
    steps = plan.get("subtasks") if isinstance(plan, dict) else None
    if not isinstance(steps, list):
        return []
    return [step for step in steps if isinstance(step, dict)]

