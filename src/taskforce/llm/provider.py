"""Provider adapters that normalize chat-completion backends into one shape."""

from __future__ import annotations

import http.client
import itertools
import json
import logging
import time
import urllib.error
import urllib.request
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Union

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

logger = logging.getLogger(__name__)


class ProviderError(RuntimeError):
    """Raised when a backend cannot produce a completion."""

    def __init__(self, message: str, *, status: int | None = None, body: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class AIProvider(Protocol):
    """Contract implemented once per backend."""

    name: str
    type: ProviderType

    def initialize(self, config: ProviderConfig) -> None:  # pragma: no cover - interface
        """Apply ``config`` and prepare the adapter."""

    def is_ready(self) -> bool:  # pragma: no cover - interface
        """Return True once the adapter can serve completions."""

    def list_models(self) -> List[ProviderModel]:  # pragma: no cover - interface
        """Return the models this backend offers."""

    def create_chat_completion(self, request: ChatCompletionRequest) -> ChatCompletionResponse:  # pragma: no cover
        """Run one completion."""

    def test_connection(self) -> ConnectionStatus:  # pragma: no cover - interface
        """Probe the backend without raising."""


def _http_json(
    method: str,
    url: str,
    *,
    payload: Optional[Mapping[str, Any]] = None,
    headers: Optional[Mapping[str, str]] = None,
    timeout: float = 120.0,
    label: str = "Provider",
) -> Any:
    """Send a JSON request; non-2xx statuses raise ``ProviderError`` with the body text."""

    data = json.dumps(payload).encode("utf-8") if payload is not None else None
    request = urllib.request.Request(
        url=url,
        data=data,
        headers={"Content-Type": "application/json", **dict(headers or {})},
        method=method,
    )
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            body = response.read().decode("utf-8")
    except urllib.error.HTTPError as exc:
        text = exc.read().decode("utf-8", errors="replace") if exc.fp is not None else str(exc.reason)
        raise ProviderError(f"{label} API error: {text}", status=exc.code, body=text) from exc
    except urllib.error.URLError as exc:
        raise ProviderError(f"{label} failed to reach {url}: {exc.reason}") from exc
    except (OSError, http.client.HTTPException) as exc:
        # read timeouts and dropped connections surface here, not as URLError
        raise ProviderError(f"{label} request to {url} failed: {exc}") from exc
    if not body:
        return {}
    try:
        return json.loads(body)
    except json.JSONDecodeError as exc:
        raise ProviderError(f"{label} returned non-JSON payload: {body[:200]}", body=body) from exc


def _bearer(api_key: str | None) -> Dict[str, str]:
    return {"Authorization": f"Bearer {api_key}"} if api_key else {}


def _generated_id(prefix: str) -> str:
    return f"{prefix}-{int(time.time() * 1000)}"


def _parse_tool_calls(raw: Any) -> List[ToolCallRequest]:
    calls: List[ToolCallRequest] = []
    if not isinstance(raw, list):
        return calls
    for index, item in enumerate(raw):
        if not isinstance(item, Mapping):
            continue
        function = item.get("function") or {}
        name = function.get("name") or item.get("name") or ""
        arguments = function.get("arguments", item.get("arguments", {}))
        if not isinstance(arguments, str):
            arguments = json.dumps(arguments or {})
        calls.append(
            ToolCallRequest(
                id=str(item.get("id") or f"call_{index}_{int(time.time() * 1000)}"),
                name=name,
                arguments=arguments or "{}",
            )
        )
    return calls


def _parse_usage(raw: Any) -> Optional[Usage]:
    if not isinstance(raw, Mapping):
        return None
    return Usage(
        prompt_tokens=int(raw.get("prompt_tokens") or 0),
        completion_tokens=int(raw.get("completion_tokens") or 0),
        total_tokens=int(raw.get("total_tokens") or 0),
    )


def parse_openai_response(data: Mapping[str, Any], *, fallback_model: str, prefix: str) -> ChatCompletionResponse:
    """Normalize an OpenAI-style ``/chat/completions`` body."""

    choices: List[Choice] = []
    for position, raw in enumerate(data.get("choices") or []):
        message = raw.get("message") or {}
        choices.append(
            Choice(
                index=int(raw.get("index", position)),
                message=ChatMessage(
                    role=Role.ASSISTANT,
                    content=message.get("content") or "",
                    tool_calls=_parse_tool_calls(message.get("tool_calls")),
                ),
                finish_reason=FinishReason.parse(raw.get("finish_reason")),
            )
        )
    return ChatCompletionResponse(
        id=str(data.get("id") or _generated_id(prefix)),
        model=str(data.get("model") or fallback_model),
        choices=choices,
        usage=_parse_usage(data.get("usage")),
    )


class OpenAICompatibleProvider:
    """Adapter for any backend speaking the OpenAI chat-completions protocol."""

    name = "OpenAI-compatible"
    type = ProviderType.CUSTOM
    default_base_url = ""
    completions_path = "/chat/completions"
    models_path = "/models"
    requires_api_key = False
    builtin_models: List[Dict[str, Any]] = []

    def __init__(self) -> None:
        self.config: ProviderConfig | None = None
        self.base_url = self.default_base_url
        self.api_key: str | None = None
        self.timeout = 120.0

    def initialize(self, config: ProviderConfig) -> None:
        self.config = config
        self.base_url = (config.base_url or self.default_base_url).rstrip("/")
        self.api_key = config.api_key or None
        self.timeout = float(config.options.get("timeout", 120.0))

    def is_ready(self) -> bool:
        if self.config is None or not self.base_url:
            return False
        return bool(self.api_key) or not self.requires_api_key

    def headers(self) -> Dict[str, str]:
        return _bearer(self.api_key)

    def _require_ready(self) -> None:
        if not self.is_ready():
            raise ProviderError(f"{self.name} provider not initialized")

    def list_models(self) -> List[ProviderModel]:
        if not self.base_url:
            return []
        try:
            data = _http_json(
                "GET", f"{self.base_url}{self.models_path}", headers=self.headers(), timeout=self.timeout, label=self.name
            )
        except ProviderError as exc:
            logger.debug("%s model listing failed: %s", self.name, exc)
            return self.default_models()
        entries = (data.get("data") or data.get("models") or []) if isinstance(data, Mapping) else []
        models = [self._model_from_entry(entry) for entry in entries if isinstance(entry, Mapping)]
        return models or self.default_models()

    def _model_from_entry(self, entry: Mapping[str, Any]) -> ProviderModel:
        model_id = str(entry.get("id") or entry.get("name"))
        return ProviderModel(
            id=model_id,
            name=str(entry.get("name") or model_id),
            provider=self.type,
            context_length=entry.get("context_length"),
            supports_tool_calling=True,
        )

    def default_models(self) -> List[ProviderModel]:
        if self.builtin_models:
            return [ProviderModel(provider=self.type, **entry) for entry in self.builtin_models]
        configured = self.config.available_models if self.config else []
        if not configured and self.config and self.config.default_model:
            configured = [self.config.default_model]
        return [
            ProviderModel(id=model, name=model, provider=self.type, supports_tool_calling=True)
            for model in configured
        ]

    def create_chat_completion(self, request: ChatCompletionRequest) -> ChatCompletionResponse:
        self._require_ready()
        data = _http_json(
            "POST",
            f"{self.base_url}{self.completions_path}",
            payload=request.to_wire(),
            headers=self.headers(),
            timeout=self.timeout,
            label=self.name,
        )
        if not isinstance(data, Mapping):
            raise ProviderError(f"{self.name} returned unexpected payload: {data!r}")
        return parse_openai_response(data, fallback_model=request.model, prefix=self.type.value)

    def test_connection(self) -> ConnectionStatus:
        if not self.base_url:
            return ConnectionStatus(False, "Base URL is required")
        if self.requires_api_key and not self.api_key:
            return ConnectionStatus(False, "API key is required")
        try:
            _http_json(
                "GET", f"{self.base_url}{self.models_path}", headers=self.headers(), timeout=self.timeout, label=self.name
            )
        except ProviderError as exc:
            # some compatible servers have no /models route
            if exc.status == 404:
                return ConnectionStatus(True)
            return ConnectionStatus(False, str(exc))
        return ConnectionStatus(True)


class OpenAIProvider(OpenAICompatibleProvider):
    """The default backend: OpenAI's hosted API."""

    name = "OpenAI"
    type = ProviderType.OPENAI
    default_base_url = "https://api.openai.com/v1"
    requires_api_key = True
    builtin_models = [
        {"id": "gpt-4o", "name": "GPT-4o", "context_length": 128000, "supports_tool_calling": True, "supports_vision": True},
        {"id": "gpt-4o-mini", "name": "GPT-4o Mini", "context_length": 128000, "supports_tool_calling": True, "supports_vision": True},
        {"id": "gpt-4-turbo", "name": "GPT-4 Turbo", "context_length": 128000, "supports_tool_calling": True, "supports_vision": True},
        {"id": "gpt-3.5-turbo", "name": "GPT-3.5 Turbo", "context_length": 16384, "supports_tool_calling": True},
    ]

    def list_models(self) -> List[ProviderModel]:
        return self.default_models()


class OllamaProvider(OpenAICompatibleProvider):
    """Calls a locally hosted Ollama server through its OpenAI-compatible endpoint."""

    name = "Ollama"
    type = ProviderType.OLLAMA
    default_base_url = "http://localhost:11434"
    completions_path = "/v1/chat/completions"
    models_path = "/api/tags"
    builtin_models = [
        {"id": "llama3.2", "name": "Llama 3.2", "supports_tool_calling": True},
        {"id": "llama3.1", "name": "Llama 3.1", "supports_tool_calling": True},
        {"id": "mistral", "name": "Mistral", "supports_tool_calling": True},
        {"id": "codellama", "name": "Code Llama"},
        {"id": "qwen2.5", "name": "Qwen 2.5", "supports_tool_calling": True},
    ]

    def _model_from_entry(self, entry: Mapping[str, Any]) -> ProviderModel:
        name = str(entry.get("name") or entry.get("model"))
        return ProviderModel(
            id=name,
            name=name,
            provider=self.type,
            supports_tool_calling="llama3" in name or "mistral" in name,
        )

    def test_connection(self) -> ConnectionStatus:
        try:
            _http_json("GET", f"{self.base_url}{self.models_path}", timeout=self.timeout, label=self.name)
        except ProviderError:
            return ConnectionStatus(
                False, f"Cannot connect to Ollama at {self.base_url}. Make sure Ollama is running."
            )
        return ConnectionStatus(True)


class OpenRouterProvider(OpenAICompatibleProvider):
    """OpenRouter gateway."""

    name = "OpenRouter"
    type = ProviderType.OPENROUTER
    default_base_url = "https://openrouter.ai/api/v1"
    requires_api_key = True
    builtin_models = [
        {"id": "anthropic/claude-3.5-sonnet", "name": "Claude 3.5 Sonnet", "supports_tool_calling": True},
        {"id": "anthropic/claude-3-opus", "name": "Claude 3 Opus", "supports_tool_calling": True},
        {"id": "openai/gpt-4o", "name": "GPT-4o", "supports_tool_calling": True},
        {"id": "google/gemini-pro-1.5", "name": "Gemini Pro 1.5", "supports_tool_calling": True},
        {"id": "meta-llama/llama-3.1-70b-instruct", "name": "Llama 3.1 70B", "supports_tool_calling": True},
    ]

    def headers(self) -> Dict[str, str]:
        options = self.config.options if self.config else {}
        return {
            **_bearer(self.api_key),
            "HTTP-Referer": str(options.get("referer", "https://localhost:3000")),
            "X-Title": str(options.get("title", "Multi-Agent System")),
        }


class AgentRouterProvider(OpenAICompatibleProvider):
    """AgentRouter gateway; ``auto`` lets the gateway pick a model."""

    name = "AgentRouter"
    type = ProviderType.AGENTROUTER
    default_base_url = "https://api.agentrouter.ai/v1"
    requires_api_key = True
    builtin_models = [
        {"id": "auto", "name": "Auto (best available)", "supports_tool_calling": True},
        {"id": "gpt-4o", "name": "GPT-4o", "supports_tool_calling": True},
        {"id": "claude-3.5-sonnet", "name": "Claude 3.5 Sonnet", "supports_tool_calling": True},
        {"id": "gemini-pro", "name": "Gemini Pro"},
    ]


class CustomProvider(OpenAICompatibleProvider):
    """Arbitrary OpenAI-compatible endpoint; needs a base URL."""

    name = "Custom"
    type = ProviderType.CUSTOM

    def create_chat_completion(self, request: ChatCompletionRequest) -> ChatCompletionResponse:
        if not self.base_url:
            raise ProviderError("Custom provider not configured. Please set a base URL.")
        return super().create_chat_completion(request)


class N8nProvider:
    """Workflow automation backend reached through a webhook."""

    name = "n8n"
    type = ProviderType.N8N
    default_base_url = "http://localhost:5678"

    def __init__(self) -> None:
        self.config: ProviderConfig | None = None
        self.base_url = self.default_base_url
        self.api_key: str | None = None
        self.webhook_path = "/webhook/ai"
        self.timeout = 120.0

    def initialize(self, config: ProviderConfig) -> None:
        self.config = config
        self.base_url = (config.base_url or self.default_base_url).rstrip("/")
        self.api_key = config.api_key or None
        self.webhook_path = str(config.options.get("webhook_path") or "/webhook/ai")
        self.timeout = float(config.options.get("timeout", 120.0))

    def is_ready(self) -> bool:
        return self.config is not None

    @property
    def webhook_url(self) -> str:
        return f"{self.base_url}{self.webhook_path}"

    def list_models(self) -> List[ProviderModel]:
        return [
            ProviderModel(id="gpt-4o", name="GPT-4o (via n8n)", provider=self.type, supports_tool_calling=True),
            ProviderModel(id="gpt-4o-mini", name="GPT-4o Mini (via n8n)", provider=self.type, supports_tool_calling=True),
            ProviderModel(
                id="claude-3.5-sonnet", name="Claude 3.5 Sonnet (via n8n)", provider=self.type, supports_tool_calling=True
            ),
            ProviderModel(id="gemini-pro", name="Gemini Pro (via n8n)", provider=self.type),
        ]

    def create_chat_completion(self, request: ChatCompletionRequest) -> ChatCompletionResponse:
        if not self.is_ready():
            raise ProviderError("n8n provider not initialized")
        wire = request.to_wire()
        payload = {
            "action": "chat",
            "model": request.model,
            "messages": wire["messages"],
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
            "tools": request.tools or None,
            "options": {"returnFullResponse": True},
        }
        data = _http_json(
            "POST", self.webhook_url, payload=payload, headers=_bearer(self.api_key), timeout=self.timeout, label="n8n webhook"
        )
        if not isinstance(data, Mapping):
            data = {"output": data}
        # Workflows name the reply field differently depending on their last node.
        message = data.get("message") or data.get("output") or data.get("response") or data
        content = message if isinstance(message, str) else json.dumps(message, default=str)
        tool_calls = _parse_tool_calls(data.get("toolCalls") or data.get("tool_calls"))
        return ChatCompletionResponse(
            id=str(data.get("id") or _generated_id("n8n")),
            model=request.model,
            choices=[
                Choice(
                    index=0,
                    message=ChatMessage(role=Role.ASSISTANT, content=content, tool_calls=tool_calls),
                    finish_reason=FinishReason.TOOL_CALLS if tool_calls else FinishReason.STOP,
                )
            ],
            usage=_parse_usage(data.get("usage")),
        )

    def test_connection(self) -> ConnectionStatus:
        try:
            _http_json(
                "POST",
                self.webhook_url,
                payload={"action": "test", "message": "connection test"},
                timeout=self.timeout,
                label="n8n webhook",
            )
        except ProviderError as exc:
            if exc.status is not None:
                return ConnectionStatus(False, f"n8n returned status {exc.status}")
            return ConnectionStatus(
                False,
                f"Cannot connect to n8n at {self.base_url}. Make sure n8n is running and webhook is configured.",
            )
        return ConnectionStatus(True)


ScriptedReply = Union[ChatCompletionResponse, ChatMessage, str, Exception]


class StaticResponseProvider:
    """Provider that replays a finite list of responses (useful for tests).

    Each scripted item may be a full response, an assistant ``ChatMessage``, a
    plain string (a ``stop`` turn) or an exception to raise. Every request is
    recorded in ``requests``.
    """

    name = "Static"

    def __init__(self, responses: Iterable[ScriptedReply], type: ProviderType = ProviderType.OPENAI) -> None:
        self.type = ProviderType(type)
        self._responses = iter(responses)
        self._counter = itertools.count(1)
        self.requests: List[ChatCompletionRequest] = []
        self.config: ProviderConfig | None = None

    def initialize(self, config: ProviderConfig) -> None:
        self.config = config

    def is_ready(self) -> bool:
        return True

    def list_models(self) -> List[ProviderModel]:
        return [ProviderModel(id="static", name="Static replay", provider=self.type, supports_tool_calling=True)]

    def create_chat_completion(self, request: ChatCompletionRequest) -> ChatCompletionResponse:
        self.requests.append(request)
        try:
            reply = next(self._responses)
        except StopIteration as exc:
            raise ProviderError("StaticResponseProvider exhausted") from exc
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, ChatCompletionResponse):
            return reply
        if isinstance(reply, str):
            reply = ChatMessage(role=Role.ASSISTANT, content=reply)
        finish = FinishReason.TOOL_CALLS if reply.tool_calls else FinishReason.STOP
        return ChatCompletionResponse(
            id=f"static-{next(self._counter)}",
            model=request.model,
            choices=[Choice(index=0, message=reply, finish_reason=finish)],
        )

    def test_connection(self) -> ConnectionStatus:
        return ConnectionStatus(True)


def tool_call_reply(*calls: tuple[str, Mapping[str, Any] | str], content: str = "") -> ChatMessage:
    """Build an assistant message requesting ``calls`` as ``(name, arguments)`` pairs."""

    requests = []
    for index, (name, arguments) in enumerate(calls, start=1):
        serialized = arguments if isinstance(arguments, str) else json.dumps(arguments)
        requests.append(ToolCallRequest(id=f"call_{name}_{index}", name=name, arguments=serialized))
    return ChatMessage(role=Role.ASSISTANT, content=content, tool_calls=requests)


def build_default_providers() -> Dict[ProviderType, AIProvider]:
    return {
        ProviderType.OPENAI: OpenAIProvider(),
        ProviderType.OLLAMA: OllamaProvider(),
        ProviderType.OPENROUTER: OpenRouterProvider(),
        ProviderType.N8N: N8nProvider(),
        ProviderType.AGENTROUTER: AgentRouterProvider(),
        ProviderType.CUSTOM: CustomProvider(),
    }
