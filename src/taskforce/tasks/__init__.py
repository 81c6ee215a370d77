"""Task primitives."""

from .base import InvalidTransitionError, Task, TaskPriority, TaskResult, TaskStatus
from .runner import TaskRunner

__all__ = [
    "InvalidTransitionError",
    "Task",
    "TaskPriority",
    "TaskResult",
    "TaskRunner",
    "TaskStatus",
]
