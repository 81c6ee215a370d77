"""Registry that keeps track of the tools owned by one agent."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping

from ..config import ToolSpec, instantiate_from_path
from .base import Tool, ToolDefinition, ToolResult

logger = logging.getLogger(__name__)

ToolFactory = Callable[[], Tool]


class ToolRegistry:
    """Maps tool names to tools, instantiating factory-registered tools lazily."""

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        self._factories: Dict[str, ToolFactory] = {}
        self._instances: Dict[str, Tool] = {}
        for tool in tools:
            self.register_instance(tool)

    def register_instance(self, tool: Tool, *, overwrite: bool = False) -> None:
        if tool.name in self and not overwrite:
            raise ValueError(f"Tool {tool.name} already registered")
        self._factories.pop(tool.name, None)
        self._instances[tool.name] = tool

    def register_factory(self, name: str, factory: ToolFactory, *, overwrite: bool = False) -> None:
        if name in self and not overwrite:
            raise ValueError(f"Tool factory {name} already registered")
        self._instances.pop(name, None)
        self._factories[name] = factory

    def register_from_spec(self, spec: ToolSpec) -> None:
        def factory() -> Tool:
            instance = instantiate_from_path(spec.type, name=spec.name, **spec.args)
            if not isinstance(instance, Tool):
                raise TypeError(f"Tool '{spec.name}' must inherit Tool")
            return instance

        self.register_factory(spec.name, factory, overwrite=True)

    def get(self, name: str) -> Tool:
        if name in self._instances:
            return self._instances[name]
        if name not in self._factories:
            raise KeyError(f"Tool {name} not registered")
        instance = self._factories[name]()
        del self._factories[name]
        self._instances[name] = instance
        return instance

    def __contains__(self, name: object) -> bool:
        return name in self._instances or name in self._factories

    def __len__(self) -> int:
        return len(self._instances) + len(self._factories)

    def names(self) -> List[str]:
        return list(self._instances) + [name for name in self._factories if name not in self._instances]

    def available(self) -> Dict[str, Tool]:
        """Instantiate pending factories; ones that fail to build are dropped."""
        for name in list(self._factories.keys()):
            try:
                self.get(name)
            except Exception as exc:
                logger.warning("Dropping tool %s, it could not be built: %s", name, exc)
                del self._factories[name]
        return dict(self._instances)

    def definitions(self) -> List[ToolDefinition]:
        return [tool.definition for tool in self.available().values()]

    def execute(self, name: str, params: Mapping[str, Any] | None = None) -> ToolResult:
        """Run ``name`` with ``params``; never raises."""
        if name not in self:
            return ToolResult.fail(f"Unknown tool: {name}")
        try:
            tool = self.get(name)
        except Exception as exc:
            logger.warning("Could not build tool %s: %s", name, exc)
            return ToolResult.fail(f"Tool {name} could not be loaded: {exc}")
        logger.debug("Executing tool %s", name)
        return tool.execute(params)
