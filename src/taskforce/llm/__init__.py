"""Provider abstraction over chat-completion backends."""

from .provider import (
    AgentRouterProvider,
    AIProvider,
    CustomProvider,
    N8nProvider,
    OllamaProvider,
    OpenAICompatibleProvider,
    OpenAIProvider,
    OpenRouterProvider,
    ProviderError,
    StaticResponseProvider,
    tool_call_reply,
)
from .registry import NO_FALLBACK, FallbackPolicy, ProviderRegistry
from .types import (
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatMessage,
    Choice,
    ConnectionStatus,
    FinishReason,
    ProviderConfig,
    ProviderModel,
    ProviderType,
    Role,
    ToolCallRequest,
    Usage,
)

__all__ = [
    "AIProvider",
    "AgentRouterProvider",
    "ChatCompletionRequest",
    "ChatCompletionResponse",
    "ChatMessage",
    "Choice",
    "ConnectionStatus",
    "CustomProvider",
    "FallbackPolicy",
    "FinishReason",
    "N8nProvider",
    "NO_FALLBACK",
    "OllamaProvider",
    "OpenAICompatibleProvider",
    "OpenAIProvider",
    "OpenRouterProvider",
    "ProviderConfig",
    "ProviderError",
    "ProviderModel",
    "ProviderRegistry",
    "ProviderType",
    "Role",
    "StaticResponseProvider",
    "ToolCallRequest",
    "Usage",
    "tool_call_reply",
]
