"""Taskforce: a hierarchy of LLM agents that plan, delegate and call tools."""

from importlib import metadata

from .cli import app
from .system import AgentSystem, create_agent_system

try:
    __version__ = metadata.version("taskforce-agents")
except metadata.PackageNotFoundError:  # pragma: no cover - fallback for dev
    __version__ = "0.0.0"

__all__ = ["AgentSystem", "app", "create_agent_system", "__version__"]
