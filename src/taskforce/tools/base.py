"""Base classes for tools."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from ..llm.registry import FallbackPolicy, ProviderRegistry
from ..llm.types import ChatCompletionRequest, ChatMessage, Role
from ..tasks.base import TaskResult

logger = logging.getLogger(__name__)


@dataclass
class ToolParameter:
    """Schema for one named tool argument."""

    type: str
    description: str
    required: bool = False
    enum: Optional[List[str]] = None
    default: Any = None

    def to_schema(self) -> Dict[str, Any]:
        schema: Dict[str, Any] = {"type": self.type, "description": self.description}
        if self.enum:
            schema["enum"] = list(self.enum)
        if self.default is not None:
            schema["default"] = self.default
        return schema


@dataclass
class ToolDefinition:
    """Declared name, description and parameter schema of a tool."""

    name: str
    description: str
    parameters: Dict[str, ToolParameter] = field(default_factory=dict)

    @property
    def required(self) -> List[str]:
        return [name for name, param in self.parameters.items() if param.required]

    def to_function_schema(self) -> Dict[str, Any]:
        """Render the definition as an OpenAI-style function tool."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": {name: param.to_schema() for name, param in self.parameters.items()},
                    "required": self.required,
                },
            },
        }


@dataclass
class ToolResult:
    """Result returned by a tool.

    A failed result never carries ``data`` and always carries ``error``; a
    successful one never carries ``error``.
    """

    success: bool
    data: Any = None
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.success and self.error is not None:
            raise ValueError("A successful ToolResult cannot carry an error")
        if not self.success:
            if self.data is not None:
                raise ValueError("A failed ToolResult cannot carry data")
            if not self.error:
                raise ValueError("A failed ToolResult requires an error message")

    @classmethod
    def ok(cls, data: Any = None, **metadata: Any) -> "ToolResult":
        return cls(success=True, data=data, metadata=metadata)

    @classmethod
    def fail(cls, error: str, **metadata: Any) -> "ToolResult":
        return cls(success=False, error=error or "Unknown error", metadata=metadata)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": self.success}
        if self.data is not None:
            payload["data"] = self.data
        if self.error is not None:
            payload["error"] = self.error
        if self.metadata:
            payload["metadata"] = self.metadata
        return payload

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


class Tool:
    """Base tool class.

    Subclasses declare ``name``, ``description`` and ``parameters`` and implement
    :meth:`run`. Callers use :meth:`execute`, which fills defaults, checks
    required arguments and turns any exception into a failed ``ToolResult``.
    """

    name: str = ""
    description: str = ""
    parameters: Dict[str, ToolParameter] = {}

    def __init__(self, name: str | None = None, description: str | None = None, **kwargs: Any) -> None:
        self.name = name or self.name
        if not self.name:
            raise ValueError(f"{self.__class__.__name__} requires a name")
        self.description = description or self.description or (self.__class__.__doc__ or "").strip()
        self.config = kwargs

    @property
    def definition(self) -> ToolDefinition:
        return ToolDefinition(name=self.name, description=self.description, parameters=dict(self.parameters))

    def run(self, params: Dict[str, Any]) -> ToolResult:  # pragma: no cover - abstract
        raise NotImplementedError

    def execute(self, params: Mapping[str, Any] | None = None) -> ToolResult:
        arguments = dict(params or {})
        for key, spec in self.parameters.items():
            if arguments.get(key) is None and spec.default is not None:
                arguments[key] = spec.default
        missing = [key for key, spec in self.parameters.items() if spec.required and arguments.get(key) is None]
        if missing:
            return ToolResult.fail(f"Missing required parameter: {', '.join(missing)}")
        try:
            result = self.run(arguments)
        except Exception as exc:
            logger.warning("Tool %s raised: %s", self.name, exc, exc_info=True)
            return ToolResult.fail(str(exc) or exc.__class__.__name__)
        if not isinstance(result, ToolResult):
            return ToolResult.fail(f"Tool {self.name} returned {type(result).__name__}, expected ToolResult")
        return result


class FunctionTool(Tool):
    """Tool backed by a plain callable, used for synthetic delegation tools."""

    def __init__(
        self,
        definition: ToolDefinition,
        func: Callable[[Dict[str, Any]], Any],
    ) -> None:
        self.parameters = dict(definition.parameters)
        super().__init__(name=definition.name, description=definition.description)
        self._func = func

    def run(self, params: Dict[str, Any]) -> ToolResult:
        outcome = self._func(params)
        if isinstance(outcome, ToolResult):
            return outcome
        if isinstance(outcome, TaskResult):
            metadata = {"execution_time_ms": outcome.execution_time_ms}
            if outcome.success:
                return ToolResult.ok(outcome.output, **metadata)
            return ToolResult.fail(outcome.error or "Delegated task failed", **metadata)
        return ToolResult.ok(outcome)


_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


class ModelTool(Tool):
    """Tool whose work is a single completion routed through the provider registry.

    Uses ``model`` when given, otherwise the active backend's default model.
    Completions share the owning agent's fallback policy.
    """

    default_model = "gpt-4o-mini"

    def __init__(
        self,
        providers: ProviderRegistry,
        *,
        model: str | None = None,
        fallback: FallbackPolicy | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.providers = providers
        self.model = model
        self.fallback = fallback or FallbackPolicy()

    def complete(
        self,
        system: str,
        user: str,
        *,
        max_tokens: int | None = None,
        temperature: float | None = None,
        json_mode: bool = False,
    ) -> str:
        request = ChatCompletionRequest(
            model=self.model or self.providers.default_model() or self.default_model,
            messages=[ChatMessage(role=Role.SYSTEM, content=system), ChatMessage(role=Role.USER, content=user)],
            temperature=temperature,
            max_tokens=max_tokens,
            response_format={"type": "json_object"} if json_mode else None,
        )
        response = self.providers.create_chat_completion(request, fallback=self.fallback)
        return response.first.message.content or ""

    def complete_json(self, system: str, user: str, **kwargs: Any) -> Dict[str, Any]:
        text = self.complete(system, user, json_mode=True, **kwargs)
        match = _JSON_OBJECT.search(text)
        if not match:
            raise ValueError(f"Model returned no JSON object: {text[:200]}")
        try:
            payload = json.loads(match.group(0))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Model returned invalid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise ValueError("Model returned JSON that is not an object")
        return payload
