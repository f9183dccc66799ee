# File: store.py
"""Task repository contract and an in-memory implementation.

The engines never talk to storage. Callers load a record, let an engine plan a
transition, then write it back with `compare_and_swap_update`, which applies
the change only if the fields the plan was based on are still unchanged. Two
concurrent completions of the same occurrence therefore cannot both advance
the series: the second one fails with StaleTaskError.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import copy
import threading
from typing import TYPE_CHECKING, Any

from . import const

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .type_defs import TaskData


# ==============================================================================
# EXCEPTIONS
# ==============================================================================


class TaskNotFoundError(Exception):
    """Raised when an operation targets a task id that does not exist."""

    def __init__(self, task_id: str) -> None:
        """Initialize TaskNotFoundError."""
        self.task_id = task_id
        super().__init__(
            const.ERROR_MESSAGES[const.TRANS_KEY_TASK_NOT_FOUND].format(task_id=task_id)
        )


class StaleTaskError(Exception):
    """Raised when a compare-and-swap write finds the record changed.

    Attributes:
        task_id: The task that was written
        field: First field whose stored value no longer matched
    """

    def __init__(self, task_id: str, field: str) -> None:
        """Initialize StaleTaskError."""
        self.task_id = task_id
        self.field = field
        super().__init__(
            const.ERROR_MESSAGES[const.TRANS_KEY_STALE_TASK].format(task_id=task_id)
        )


# ==============================================================================
# REPOSITORY CONTRACT
# ==============================================================================


class TaskStore(ABC):
    """Persistence capability required by the task manager.

    Implementations must make `compare_and_swap_update` atomic with respect to
    other writes of the same task.
    """

    @abstractmethod
    def add(self, task: TaskData) -> TaskData:
        """Insert a new task and return the stored copy."""

    @abstractmethod
    def load(self, task_id: str) -> TaskData:
        """Return a copy of a task.

        Raises:
            TaskNotFoundError: If the id does not exist.
        """

    @abstractmethod
    def list_tasks(
        self, user_id: str | None = None, task_type: str | None = None
    ) -> list[TaskData]:
        """Return copies of all tasks matching the optional filters."""

    @abstractmethod
    def compare_and_swap_update(
        self,
        task_id: str,
        expected: Mapping[str, Any],
        changes: Mapping[str, Any],
    ) -> TaskData:
        """Apply `changes` iff every `expected` field still holds its value.

        Raises:
            TaskNotFoundError: If the id does not exist.
            StaleTaskError: If an expected field changed since it was read.
        """

    @abstractmethod
    def delete(self, task_id: str) -> bool:
        """Delete a task. Returns False if it was already gone."""


# ==============================================================================
# IN-MEMORY IMPLEMENTATION
# ==============================================================================


class InMemoryTaskStore(TaskStore):
    """Dict-backed TaskStore guarded by a lock.

    Records are copied on the way in and out, so callers can never mutate
    stored state except through this API.
    """

    def __init__(self, initial_data: dict[str, Any] | None = None) -> None:
        """Initialize the store.

        Args:
            initial_data: Previously dumped structure (see `data`), or None for
                an empty store.
        """
        self._lock = threading.Lock()
        self._data: dict[str, Any] = (
            copy.deepcopy(initial_data)
            if initial_data is not None
            else InMemoryTaskStore.get_default_structure()
        )
        self._data.setdefault(const.DATA_TASKS, {})
        const.LOGGER.debug(
            "InMemoryTaskStore: Initialized with %s task(s)",
            len(self._data[const.DATA_TASKS]),
        )

    @staticmethod
    def get_default_structure() -> dict[str, Any]:
        """Return canonical empty data structure.

        This is the SINGLE SOURCE OF TRUTH for the storage schema.
        """
        return {
            const.DATA_META: {
                const.DATA_META_SCHEMA_VERSION: const.STORAGE_VERSION,
            },
            const.DATA_TASKS: {},
        }

    @property
    def data(self) -> dict[str, Any]:
        """Return a JSON-serializable snapshot of the whole store."""
        with self._lock:
            return copy.deepcopy(self._data)

    @property
    def _tasks(self) -> dict[str, TaskData]:
        return self._data[const.DATA_TASKS]

    def add(self, task: TaskData) -> TaskData:
        """Insert a new task with revision 1."""
        stored = copy.deepcopy(task)
        stored[const.DATA_TASK_REVISION] = 1
        with self._lock:
            self._tasks[stored[const.DATA_TASK_INTERNAL_ID]] = stored
        const.LOGGER.debug(
            "InMemoryTaskStore: Added task %s", stored[const.DATA_TASK_INTERNAL_ID]
        )
        return copy.deepcopy(stored)

    def load(self, task_id: str) -> TaskData:
        """Return a copy of a task."""
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                raise TaskNotFoundError(task_id)
            return copy.deepcopy(task)

    def list_tasks(
        self, user_id: str | None = None, task_type: str | None = None
    ) -> list[TaskData]:
        """Return copies of tasks filtered by owner and/or type."""
        with self._lock:
            return [
                copy.deepcopy(task)
                for task in self._tasks.values()
                if (user_id is None or task.get(const.DATA_TASK_USER_ID) == user_id)
                and (task_type is None or task.get(const.DATA_TASK_TYPE) == task_type)
            ]

    def compare_and_swap_update(
        self,
        task_id: str,
        expected: Mapping[str, Any],
        changes: Mapping[str, Any],
    ) -> TaskData:
        """Atomically apply changes if the expected fields are unchanged."""
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                raise TaskNotFoundError(task_id)

            for field, value in expected.items():
                if task.get(field) != value:
                    const.LOGGER.info(
                        "InMemoryTaskStore: Stale write to task %s (field %s changed)",
                        task_id,
                        field,
                    )
                    raise StaleTaskError(task_id, field)

            task.update(copy.deepcopy(dict(changes)))
            task[const.DATA_TASK_REVISION] = int(task.get(const.DATA_TASK_REVISION, 0)) + 1
            return copy.deepcopy(task)

    def delete(self, task_id: str) -> bool:
        """Delete a task; deleting a missing id is not an error."""
        with self._lock:
            removed = self._tasks.pop(task_id, None)
        if removed is None:
            const.LOGGER.debug("InMemoryTaskStore: Task %s already gone", task_id)
            return False
        return True
