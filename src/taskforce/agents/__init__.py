"""Agents, orchestrators and the reasoning loop."""

from .base import (
    MAX_ITERATIONS_REACHED,
    Agent,
    AgentConfig,
    AgentMessage,
    AgentRole,
    AgentState,
    AgentStatus,
    LoopResult,
    ToolCall,
)
from .domains import AnalyticsOrchestrator, ContentOrchestrator, DomainOrchestrator, ResearchOrchestrator
from .master import MasterOrchestrator
from .orchestrator import Orchestrator, SubAgent, delegation_tool_name

__all__ = [
    "MAX_ITERATIONS_REACHED",
    "Agent",
    "AgentConfig",
    "AgentMessage",
    "AgentRole",
    "AgentState",
    "AgentStatus",
    "AnalyticsOrchestrator",
    "ContentOrchestrator",
    "DomainOrchestrator",
    "LoopResult",
    "MasterOrchestrator",
    "Orchestrator",
    "ResearchOrchestrator",
    "SubAgent",
    "ToolCall",
    "delegation_tool_name",
]
