import logging
from dataclasses import replace
from typing import Callable, Dict, Iterable, List, Optional

from models.domain import TaskStatus, WorkUnit

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[List[WorkUnit]], None]


class InvalidTransitionError(ValueError):
    pass


class TaskTracker:
    """Ordered collection of work units that reports a full snapshot on every change.

    Units are immutable; a transition swaps in a new ``WorkUnit`` and every
    emitted snapshot is a fresh list, so observers never see a partial update.
    """

    def __init__(self, on_progress: Optional[ProgressCallback] = None):
        self._on_progress = on_progress
        self._order: List[str] = []
        self._units: Dict[str, WorkUnit] = {}

    def initialize(self, units: Iterable[WorkUnit]) -> None:
        self._order = []
        self._units = {}
        for unit in units:
            self._order.append(unit.id)
            self._units[unit.id] = unit
        self._emit()

    def snapshot(self) -> List[WorkUnit]:
        return [self._units[task_id] for task_id in self._order]

    def get(self, task_id: str) -> WorkUnit:
        if task_id not in self._units:
            raise KeyError(f"Unknown task: {task_id}")
        return self._units[task_id]

    def transition(
        self,
        task_id: str,
        status: TaskStatus,
        error: Optional[str] = None,
        retries: Optional[int] = None,
    ) -> WorkUnit:
        current = self.get(task_id)
        if current.status.is_terminal:
            raise InvalidTransitionError(f"Task {task_id} is already {current.status.value}")
        if status == TaskStatus.PENDING and current.status != TaskStatus.PENDING:
            raise InvalidTransitionError(f"Task {task_id} cannot return to pending")

        updated = replace(
            current,
            status=status,
            error=error,
            retries=retries if retries is not None else current.retries,
        )
        self._units[task_id] = updated
        logger.debug(f"Task {task_id}: {current.status.value} -> {status.value}")
        self._emit()
        return updated

    def _emit(self) -> None:
        if self._on_progress is not None:
            self._on_progress(self.snapshot())
