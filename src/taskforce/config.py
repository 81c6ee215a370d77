"""Configuration helpers for the agent system."""

from __future__ import annotations

import importlib
import os
import pathlib
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, MutableMapping, Optional

import yaml

from .llm.types import ProviderConfig, ProviderType


class ConfigError(RuntimeError):
    """Raised when configuration files are invalid."""


DOMAINS = ("analytics", "research", "content")


def provider_config_from_mapping(type_name: str, data: Optional[Mapping[str, Any]]) -> ProviderConfig:
    """Merge a user mapping over the built-in defaults for ``type_name``."""

    provider_type = _provider_type(type_name)
    base = default_provider_configs()[provider_type]
    if not data:
        return base
    if not isinstance(data, Mapping):
        raise ConfigError(f"Provider '{type_name}' must be a mapping")
    return replace(
        base,
        enabled=bool(data.get("enabled", base.enabled)),
        api_key=data.get("api_key", base.api_key),
        base_url=str(data.get("base_url", base.base_url) or ""),
        default_model=str(data.get("default_model", base.default_model) or ""),
        available_models=list(data.get("available_models", base.available_models)),
        options={**base.options, **dict(data.get("options") or {})},
    )


def default_provider_configs() -> Dict[ProviderType, ProviderConfig]:
    """Fresh copy of the built-in backend defaults; only OpenAI is enabled."""

    return {
        ProviderType.OPENAI: ProviderConfig(
            type=ProviderType.OPENAI,
            enabled=True,
            base_url="https://api.openai.com/v1",
            default_model="gpt-4o",
            available_models=["gpt-4o", "gpt-4o-mini", "gpt-4-turbo", "gpt-3.5-turbo"],
        ),
        ProviderType.OLLAMA: ProviderConfig(
            type=ProviderType.OLLAMA,
            base_url="http://localhost:11434",
            default_model="llama3.2",
            available_models=["llama3.2", "llama3.1", "mistral", "codellama", "qwen2.5"],
        ),
        ProviderType.OPENROUTER: ProviderConfig(
            type=ProviderType.OPENROUTER,
            base_url="https://openrouter.ai/api/v1",
            default_model="anthropic/claude-3.5-sonnet",
            available_models=[
                "anthropic/claude-3.5-sonnet",
                "anthropic/claude-3-opus",
                "openai/gpt-4o",
                "google/gemini-pro-1.5",
                "meta-llama/llama-3.1-70b-instruct",
            ],
        ),
        ProviderType.N8N: ProviderConfig(
            type=ProviderType.N8N,
            base_url="http://localhost:5678",
            default_model="gpt-4o",
            available_models=["gpt-4o", "gpt-4o-mini"],
            options={"webhook_path": "/webhook/ai"},
        ),
        ProviderType.AGENTROUTER: ProviderConfig(
            type=ProviderType.AGENTROUTER,
            base_url="https://api.agentrouter.ai/v1",
            default_model="auto",
            available_models=["auto", "gpt-4o", "claude-3.5-sonnet", "gemini-pro"],
        ),
        ProviderType.CUSTOM: ProviderConfig(type=ProviderType.CUSTOM),
    }


@dataclass
class ToolSpec:
    """Extra tool instantiated from an import path and attached to domain orchestrators."""

    name: str
    type: str
    args: Dict[str, Any] = field(default_factory=dict)
    agents: List[str] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, name: str, data: Mapping[str, Any]) -> "ToolSpec":
        if "type" not in data:
            raise ConfigError(f"Tool '{name}' requires a type path")
        agents = [str(agent) for agent in data.get("agents", [])]
        unknown = [agent for agent in agents if agent not in DOMAINS]
        if unknown:
            raise ConfigError(f"Tool '{name}' targets unknown agents: {', '.join(unknown)}")
        return cls(name=name, type=str(data["type"]), args=dict(data.get("args", {})), agents=agents)


@dataclass
class TaskSpec:
    """Represents a task to be executed in a batch run."""

    id: str
    description: str
    context: Dict[str, Any] = field(default_factory=dict)
    direct_to: Optional[str] = None
    priority: str = "medium"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TaskSpec":
        missing = [key for key in ("id", "description") if key not in data]
        if missing:
            raise ConfigError(f"Task is missing required keys: {', '.join(missing)}")
        direct_to = data.get("direct_to")
        if direct_to is not None and direct_to not in DOMAINS:
            raise ConfigError(f"Task '{data['id']}' has unknown direct_to '{direct_to}'")
        return cls(
            id=str(data["id"]),
            description=str(data["description"]),
            context=dict(data.get("context", {})),
            direct_to=direct_to,
            priority=str(data.get("priority", "medium")),
        )


@dataclass
class SystemSettings:
    """Runtime settings consumed by the agent system."""

    active_provider: ProviderType = ProviderType.OPENAI
    providers: Dict[ProviderType, ProviderConfig] = field(default_factory=default_provider_configs)
    master_model: Optional[str] = None
    sub_orchestrator_model: Optional[str] = None
    tool_model: Optional[str] = None
    timeout: Optional[float] = 60.0
    fallback_enabled: bool = True
    fallback_provider: ProviderType = ProviderType.OPENAI
    log_level: str = "INFO"
    search_url: Optional[str] = None
    tools: Dict[str, ToolSpec] = field(default_factory=dict)
    tasks: List[TaskSpec] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "SystemSettings":
        data = data or {}
        providers = default_provider_configs()
        for name, info in (data.get("providers") or {}).items():
            config = provider_config_from_mapping(name, info)
            providers[config.type] = config
        models = data.get("models") or {}
        timeout = data.get("timeout", 60.0)
        return cls(
            active_provider=_provider_type(data.get("active_provider", ProviderType.OPENAI.value)),
            providers=providers,
            master_model=models.get("master"),
            sub_orchestrator_model=models.get("sub_orchestrator"),
            tool_model=models.get("tool"),
            timeout=float(timeout) if timeout is not None else None,
            fallback_enabled=bool(data.get("fallback_enabled", True)),
            fallback_provider=_provider_type(data.get("fallback_provider", ProviderType.OPENAI.value)),
            log_level=str(data.get("log_level", "INFO")).upper(),
            search_url=data.get("search_url"),
            tools={
                name: ToolSpec.from_mapping(name, info)
                for name, info in (data.get("tools") or {}).items()
            },
            tasks=[TaskSpec.from_mapping(item) for item in data.get("tasks") or []],
        )

    @classmethod
    def from_yaml(cls, text: str) -> "SystemSettings":
        data = yaml.safe_load(text)
        if data is None:
            data = {}
        if not isinstance(data, MutableMapping):
            raise ConfigError("Configuration root must be a mapping")
        return cls.from_mapping(data)

    @classmethod
    def from_file(cls, path: str | pathlib.Path) -> "SystemSettings":
        try:
            text = pathlib.Path(path).read_text()
        except OSError as exc:
            raise ConfigError(f"Cannot read configuration '{path}': {exc}") from exc
        return cls.from_yaml(text)

    @classmethod
    def load(cls, path: str | pathlib.Path | None = None, environ: Mapping[str, str] | None = None) -> "SystemSettings":
        """Read ``path`` (or the defaults) and apply environment overrides."""

        settings = cls.from_file(path) if path else cls()
        return settings.with_env(os.environ if environ is None else environ)

    def with_env(self, environ: Mapping[str, str]) -> "SystemSettings":
        providers = {}
        for provider_type, config in self.providers.items():
            key = environ.get(f"{provider_type.value.upper()}_API_KEY")
            providers[provider_type] = replace(config, api_key=key) if key and not config.api_key else config
        active = environ.get("TASKFORCE_ACTIVE_PROVIDER")
        level = environ.get("TASKFORCE_LOG_LEVEL")
        search_url = environ.get("TASKFORCE_SEARCH_URL")
        return replace(
            self,
            providers=providers,
            active_provider=_provider_type(active) if active else self.active_provider,
            log_level=level.upper() if level else self.log_level,
            search_url=search_url or self.search_url,
        )

    def model_for(self, domain: str) -> Optional[str]:
        return self.master_model if domain == "general" else self.sub_orchestrator_model


def _provider_type(value: Any) -> ProviderType:
    try:
        return ProviderType(str(value).lower())
    except ValueError as exc:
        choices = ", ".join(item.value for item in ProviderType)
        raise ConfigError(f"Unknown provider '{value}' (expected one of: {choices})") from exc


def import_string(path: str) -> Any:
    """Return attribute from module specified by path "module:qualname"."""

    if ":" not in path:
        raise ConfigError(f"Import path '{path}' must use module:qualname format")
    module_path, attr = path.split(":", 1)
    module = importlib.import_module(module_path)
    try:
        return getattr(module, attr)
    except AttributeError as exc:
        raise ConfigError(f"Module '{module_path}' has no attribute '{attr}'") from exc


def instantiate_from_path(path: str, *args: Any, **kwargs: Any) -> Any:
    """Import and instantiate a class given its dotted path."""

    cls = import_string(path)
    return cls(*args, **kwargs)
