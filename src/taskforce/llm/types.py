"""Value types shared by every chat-completion backend."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ProviderType(str, Enum):
    OPENAI = "openai"
    OLLAMA = "ollama"
    OPENROUTER = "openrouter"
    N8N = "n8n"
    AGENTROUTER = "agentrouter"
    CUSTOM = "custom"


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class FinishReason(str, Enum):
    STOP = "stop"
    TOOL_CALLS = "tool_calls"
    LENGTH = "length"
    CONTENT_FILTER = "content_filter"

    @classmethod
    def parse(cls, value: Any) -> "FinishReason":
        try:
            return cls(value or "stop")
        except ValueError:
            # Backends report extras such as "function_call" or "eos".
            return cls.TOOL_CALLS if value == "function_call" else cls.STOP


@dataclass
class ToolCallRequest:
    """A function call requested by the model; ``arguments`` is serialized JSON."""

    id: str
    name: str
    arguments: str = "{}"

    def to_wire(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass
class ChatMessage:
    role: Role
    content: str = ""
    tool_calls: List[ToolCallRequest] = field(default_factory=list)
    tool_call_id: Optional[str] = None

    def __post_init__(self) -> None:
        self.role = Role(self.role)
        if self.role is Role.TOOL and not self.tool_call_id:
            raise ValueError("Tool messages must carry the originating tool_call_id")

    def to_wire(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.tool_calls:
            payload["tool_calls"] = [call.to_wire() for call in self.tool_calls]
        if self.tool_call_id:
            payload["tool_call_id"] = self.tool_call_id
        return payload


@dataclass
class ChatCompletionRequest:
    model: str
    messages: List[ChatMessage]
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    tools: List[Dict[str, Any]] = field(default_factory=list)
    stream: bool = False
    response_format: Optional[Dict[str, Any]] = None

    def to_wire(self) -> Dict[str, Any]:
        """OpenAI-compatible request body."""
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [message.to_wire() for message in self.messages],
            "stream": self.stream,
        }
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        if self.max_tokens is not None:
            payload["max_tokens"] = self.max_tokens
        if self.tools:
            payload["tools"] = self.tools
        if self.response_format:
            payload["response_format"] = self.response_format
        return payload


@dataclass
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class Choice:
    index: int
    message: ChatMessage
    finish_reason: FinishReason = FinishReason.STOP


@dataclass
class ChatCompletionResponse:
    id: str
    model: str
    choices: List[Choice]
    usage: Optional[Usage] = None

    @property
    def first(self) -> Choice:
        if not self.choices:
            raise IndexError(f"Completion {self.id} has no choices")
        return self.choices[0]


@dataclass
class ProviderModel:
    id: str
    name: str
    provider: ProviderType
    context_length: Optional[int] = None
    supports_tool_calling: bool = False
    supports_vision: bool = False


@dataclass
class ConnectionStatus:
    success: bool
    error: Optional[str] = None


@dataclass
class ProviderConfig:
    """Per-backend settings; one per provider type."""

    type: ProviderType
    enabled: bool = False
    api_key: Optional[str] = None
    base_url: str = ""
    default_model: str = ""
    available_models: List[str] = field(default_factory=list)
    options: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.type = ProviderType(self.type)
