"""Task dataclasses routed through the agent hierarchy."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    DELEGATED = "delegated"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)


_TRANSITIONS: Dict[TaskStatus, frozenset] = {
    TaskStatus.PENDING: frozenset({TaskStatus.IN_PROGRESS, TaskStatus.DELEGATED}),
    TaskStatus.DELEGATED: frozenset({TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED, TaskStatus.FAILED}),
    TaskStatus.IN_PROGRESS: frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.FAILED: frozenset(),
}


class InvalidTransitionError(ValueError):
    """Raised when a task status change breaks the lifecycle."""


@dataclass
class TaskResult:
    """Result of executing a task."""

    success: bool
    output: Any = None
    error: Optional[str] = None
    execution_time_ms: Optional[float] = None
    iterations: int = 0

    @classmethod
    def failure(cls, error: str, **kwargs: Any) -> "TaskResult":
        return cls(success=False, error=error, **kwargs)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": self.success}
        if self.output is not None:
            payload["output"] = self.output
        if self.error is not None:
            payload["error"] = self.error
        if self.execution_time_ms is not None:
            payload["execution_time_ms"] = self.execution_time_ms
        return payload


@dataclass
class Task:
    """A single unit of work.

    ``status`` only moves forward: ``pending -> in_progress -> completed|failed``,
    with ``delegated`` reachable from ``pending`` when an orchestrator hands the
    task to a named sub-agent before it starts. ``result`` is written once, on the
    terminal transition.
    """

    description: str
    priority: TaskPriority = TaskPriority.MEDIUM
    metadata: Dict[str, Any] = field(default_factory=dict)
    assigned_to: Optional[str] = None
    delegated_to: Optional[str] = None
    parent_task_id: Optional[str] = None
    sub_tasks: List["Task"] = field(default_factory=list)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: TaskStatus = field(default=TaskStatus.PENDING, init=False)
    result: Optional[TaskResult] = field(default=None, init=False)
    created_at: datetime = field(default_factory=utcnow, init=False)
    updated_at: datetime = field(default_factory=utcnow, init=False)

    def __post_init__(self) -> None:
        if not isinstance(self.description, str) or not self.description.strip():
            raise ValueError("Task description must be a non-empty string")
        self.priority = TaskPriority(self.priority)

    def transition(self, status: TaskStatus) -> None:
        status = TaskStatus(status)
        if status not in _TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Task {self.id}: cannot move from {self.status.value} to {status.value}"
            )
        self.status = status
        self.updated_at = utcnow()

    def start(self, assigned_to: Optional[str] = None) -> None:
        if assigned_to is not None:
            self.assigned_to = assigned_to
        self.transition(TaskStatus.IN_PROGRESS)

    def delegate(self, agent_id: str) -> None:
        self.delegated_to = agent_id
        self.transition(TaskStatus.DELEGATED)

    def finish(self, result: TaskResult) -> None:
        """Record ``result`` and move to ``completed`` or ``failed``."""
        if self.result is not None:
            raise InvalidTransitionError(f"Task {self.id} already has a result")
        self.transition(TaskStatus.COMPLETED if result.success else TaskStatus.FAILED)
        self.result = result
