"""Task runner utilities."""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, Optional

from .base import TaskResult

if TYPE_CHECKING:
    from ..config import TaskSpec

logger = logging.getLogger(__name__)


class TaskRunner:
    """Executes configured tasks through ``dispatch`` under a wall-clock timeout.

    A run that overruns ``timeout`` is reported as a failed result. Its worker
    is a daemon thread that cannot be interrupted, so it is kept as the
    straggler: until it returns, later specs are refused rather than dispatched
    into the same agents concurrently. ``wait`` blocks on it.
    """

    def __init__(self, dispatch: Callable[["TaskSpec"], TaskResult], timeout: Optional[float] = None):
        self._dispatch = dispatch
        self._timeout = timeout
        self._results: Dict[str, TaskResult] = {}
        self._straggler: Optional[threading.Thread] = None
        self._straggler_id: Optional[str] = None

    def run(self, spec: "TaskSpec") -> TaskResult:
        started = time.perf_counter()
        if self._straggler is not None and self._straggler.is_alive():
            logger.warning("Task %s not started: task %s is still running", spec.id, self._straggler_id)
            result = TaskResult.failure(
                f"Task {spec.id} not started: task {self._straggler_id} is still running after timing out"
            )
        elif not self._timeout:
            result = self._dispatch(spec)
        else:
            result = self._run_with_timeout(spec, started)
        self._results[spec.id] = result
        return result

    def _run_with_timeout(self, spec: "TaskSpec", started: float) -> TaskResult:
        outcome: Dict[str, Any] = {}

        def target() -> None:
            try:
                outcome["result"] = self._dispatch(spec)
            except Exception as exc:
                outcome["error"] = exc

        worker = threading.Thread(target=target, name=f"task-{spec.id}", daemon=True)
        worker.start()
        worker.join(self._timeout)
        if worker.is_alive():
            logger.warning("Task %s timed out after %gs", spec.id, self._timeout)
            self._straggler, self._straggler_id = worker, spec.id
            return TaskResult.failure(
                f"Task {spec.id} timed out after {self._timeout:g}s",
                execution_time_ms=round((time.perf_counter() - started) * 1000, 3),
            )
        if "error" in outcome:
            raise outcome["error"]
        return outcome["result"]

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Join a timed-out run; ``True`` once nothing is left running."""
        if self._straggler is None:
            return True
        self._straggler.join(timeout)
        if self._straggler.is_alive():
            return False
        self._straggler = self._straggler_id = None
        return True

    def run_all(self, specs: Iterable["TaskSpec"]) -> Dict[str, TaskResult]:
        for spec in specs:
            self.run(spec)
        return self.results()

    def results(self) -> Dict[str, TaskResult]:
        return dict(self._results)
