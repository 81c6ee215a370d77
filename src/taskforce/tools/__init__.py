"""Tool abstractions, registries and the built-in domain tool sets."""

from .base import FunctionTool, ModelTool, Tool, ToolDefinition, ToolParameter, ToolResult
from .registry import ToolRegistry

__all__ = [
    "FunctionTool",
    "ModelTool",
    "Tool",
    "ToolDefinition",
    "ToolParameter",
    "ToolRegistry",
    "ToolResult",
]
