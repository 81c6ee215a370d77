"""Core agent and reasoning/tool-call loop."""

from __future__ import annotations

import copy
import json
import logging
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from ..llm.registry import FallbackPolicy, ProviderRegistry
from ..llm.types import ChatCompletionRequest, ChatMessage, FinishReason, Role, ToolCallRequest
from ..tasks.base import Task, TaskResult, utcnow
from ..tools.base import Tool, ToolDefinition, ToolResult
from ..tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

MAX_ITERATIONS_REACHED = "Maximum iterations reached"


class AgentRole(str, Enum):
    MASTER_ORCHESTRATOR = "master_orchestrator"
    SUB_ORCHESTRATOR = "sub_orchestrator"
    SPECIALIST = "specialist"


class AgentStatus(str, Enum):
    IDLE = "idle"
    THINKING = "thinking"
    EXECUTING = "executing"
    WAITING = "waiting"
    ERROR = "error"


@dataclass
class AgentConfig:
    """Static identity of an agent."""

    id: str
    name: str
    description: str = ""
    role: AgentRole = AgentRole.SPECIALIST
    domain: str = "general"
    model: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = 4096
    system_prompt: str = ""

    def __post_init__(self) -> None:
        self.role = AgentRole(self.role)


@dataclass
class ToolCall:
    """A tool call with its arguments decoded.

    ``error`` is set when the serialized arguments could not be decoded into an
    object; the call is then answered with a failed result instead of running.
    """

    id: str
    tool_name: str
    arguments: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    @classmethod
    def from_request(cls, request: ToolCallRequest) -> "ToolCall":
        raw = request.arguments if request.arguments is not None else ""
        if not raw.strip():
            return cls(id=request.id, tool_name=request.name)
        try:
            arguments = json.loads(raw)
        except json.JSONDecodeError as exc:
            return cls(id=request.id, tool_name=request.name, error=f"Invalid tool arguments: {exc}")
        if not isinstance(arguments, dict):
            return cls(
                id=request.id,
                tool_name=request.name,
                error=f"Tool arguments must be a JSON object, got {type(arguments).__name__}",
            )
        return cls(id=request.id, tool_name=request.name, arguments=arguments)


@dataclass
class AgentMessage:
    """Transcript entry recorded by the reasoning loop."""

    role: Role
    content: str
    tool_calls: List[ToolCall] = field(default_factory=list)
    tool_result: Optional[ToolResult] = None
    tool_call_id: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=utcnow)


@dataclass
class AgentState:
    """Mutable runtime status; driven by the reasoning loop."""

    status: AgentStatus = AgentStatus.IDLE
    current_task: Optional[str] = None
    last_activity: Optional[datetime] = None
    messages: List[AgentMessage] = field(default_factory=list)
    context: Dict[str, Any] = field(default_factory=dict)


@dataclass
class LoopResult:
    messages: List[AgentMessage]
    result: Any
    iterations: int
    exhausted: bool = False


class Agent(ABC):
    """Agent that alternates between model turns and the tool calls they request."""

    max_iterations: int = 10

    def __init__(
        self,
        config: AgentConfig,
        providers: ProviderRegistry,
        *,
        tools: Iterable[Tool] = (),
        fallback: FallbackPolicy | None = None,
    ) -> None:
        self.config = config
        self.providers = providers
        self.fallback = fallback or FallbackPolicy()
        self.tools = ToolRegistry()
        self.state = AgentState()
        self.register_tools(tools)

    @property
    def id(self) -> str:
        return self.config.id

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def role(self) -> AgentRole:
        return self.config.role

    @property
    def domain(self) -> str:
        return self.config.domain

    # tools

    def register_tool(self, tool: Tool) -> None:
        self.tools.register_instance(tool)

    def register_tools(self, tools: Iterable[Tool]) -> None:
        for tool in tools:
            self.register_tool(tool)

    def tool_definitions(self) -> List[ToolDefinition]:
        return self.tools.definitions()

    # transcript

    def add_message(self, message: AgentMessage) -> None:
        self.state.messages.append(message)

    @property
    def message_history(self) -> List[AgentMessage]:
        return list(self.state.messages)

    def clear_history(self) -> None:
        self.state.messages.clear()

    # model access

    def resolve_model(self, model: str | None = None) -> str:
        return model or self.config.model or self.providers.default_model() or "gpt-4o"

    def call_llm(
        self,
        messages: List[ChatMessage],
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
        model: str | None = None,
        use_tools: bool = True,
    ):
        """Send ``messages`` (plus the registered tool schemas) to the active backend."""
        request = ChatCompletionRequest(
            model=self.resolve_model(model),
            messages=list(messages),
            temperature=self.config.temperature if temperature is None else temperature,
            max_tokens=max_tokens or self.config.max_tokens,
            tools=[d.to_function_schema() for d in self.tool_definitions()] if use_tools else [],
        )
        response = self.providers.create_chat_completion(request, fallback=self.fallback)
        return response.first

    def execute_tool_call(self, call: ToolCall) -> ToolResult:
        if call.tool_name not in self.tools:
            return ToolResult.fail(f"Unknown tool: {call.tool_name}")
        if call.error:
            return ToolResult.fail(call.error)
        result = self.tools.execute(call.tool_name, call.arguments)
        if not result.success:
            logger.info("%s: tool %s failed: %s", self.name, call.tool_name, result.error)
        return result

    def run_agent_loop(self, initial_messages: List[ChatMessage], max_iterations: int | None = None) -> LoopResult:
        """Alternate model turns and tool execution until the model stops.

        Returns the assistant's final text, or ``MAX_ITERATIONS_REACHED`` when the
        cap is hit first. A model-call failure leaves the agent in ``error`` and
        propagates to the caller.
        """
        limit = self.max_iterations if max_iterations is None else max_iterations
        if limit < 1:
            raise ValueError("max_iterations must be >= 1")

        conversation = list(initial_messages)
        transcript: List[AgentMessage] = []
        iterations = 0
        while iterations < limit:
            iterations += 1
            self.state.status = AgentStatus.THINKING
            try:
                choice = self.call_llm(conversation)
            except Exception:
                self.state.status = AgentStatus.ERROR
                raise

            reply = choice.message
            calls = [ToolCall.from_request(request) for request in reply.tool_calls]
            assistant = AgentMessage(role=Role.ASSISTANT, content=reply.content, tool_calls=calls)
            transcript.append(assistant)
            self.add_message(assistant)
            conversation.append(
                ChatMessage(role=Role.ASSISTANT, content=reply.content, tool_calls=list(reply.tool_calls))
            )

            # With no registered tools the model cannot act, so its first answer is final.
            if choice.finish_reason is FinishReason.STOP or not calls or len(self.tools) == 0:
                self._settle()
                return LoopResult(messages=transcript, result=reply.content, iterations=iterations)

            self.state.status = AgentStatus.EXECUTING
            for call in calls:
                result = self.execute_tool_call(call)
                payload = result.to_json()
                entry = AgentMessage(role=Role.TOOL, content=payload, tool_result=result, tool_call_id=call.id)
                transcript.append(entry)
                self.add_message(entry)
                conversation.append(ChatMessage(role=Role.TOOL, content=payload, tool_call_id=call.id))

        self._settle()
        logger.info("%s: stopped after %d iterations without a final answer", self.name, iterations)
        return LoopResult(messages=transcript, result=MAX_ITERATIONS_REACHED, iterations=iterations, exhausted=True)

    def _settle(self) -> None:
        self.state.status = AgentStatus.IDLE
        self.state.last_activity = utcnow()

    # task execution

    @abstractmethod
    def execute(self, task: Task) -> TaskResult:
        """Run ``task`` and report the outcome; never raises."""

    def run_prompted_task(self, task: Task, messages: List[ChatMessage], max_iterations: int | None = None) -> TaskResult:
        """Shared body of ``execute``: run the loop on ``messages`` and time it."""
        started = time.perf_counter()
        self.state.current_task = task.id
        self.state.status = AgentStatus.THINKING
        try:
            outcome = self.run_agent_loop(messages, max_iterations)
        except Exception as exc:
            self.state.status = AgentStatus.ERROR
            logger.exception("%s failed on task %s", self.name, task.id)
            return TaskResult.failure(
                str(exc) or f"Unknown error during {self.domain} execution",
                execution_time_ms=_elapsed_ms(started),
            )
        return TaskResult(
            success=True,
            output=outcome.result,
            execution_time_ms=_elapsed_ms(started),
            iterations=outcome.iterations,
        )

    # introspection

    def get_status(self) -> AgentState:
        return copy.deepcopy(self.state)

    def get_config(self) -> AgentConfig:
        return copy.copy(self.config)


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 3)
