"""Task Manager - Task lifecycle operations on top of a TaskStore.

This manager handles every write to a task:
- Create and update (validated by data_builders before anything is stored)
- Completion and series closing (planned by TaskEngine, written via CAS)
- Delete, lookup, listing and upcoming-window queries

ARCHITECTURE:
- TaskManager = "The Job" (orchestration, owns the store reference)
- TaskEngine / UpcomingEngine = Pure logic (STATELESS)
- data_builders = Validation and record building

Every write is a single compare-and-swap against the fields the plan was
computed from, so a concurrent writer causes StaleTaskError instead of a lost
or doubled update.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .. import const, data_builders as db
from ..engines.task_engine import TaskEngine, TransitionEffect
from ..engines.upcoming_engine import UpcomingEngine
from ..store import TaskNotFoundError

if TYPE_CHECKING:
    from datetime import datetime

    from ..store import TaskStore
    from ..type_defs import TaskData, UpcomingEntry


__all__ = ["TaskManager"]


def _sort_key(task: TaskData) -> tuple[str, str, str]:
    """Order by anchor date, then time (all-day first), then id."""
    return (
        task.get(const.DATA_TASK_ANCHOR_DATE) or "",
        task.get(const.DATA_TASK_ANCHOR_TIME) or "",
        task.get(const.DATA_TASK_INTERNAL_ID) or "",
    )


class TaskManager:
    """Manager for task lifecycle and completion workflow."""

    def __init__(self, store: TaskStore) -> None:
        """Initialize manager.

        Args:
            store: Repository holding the task records
        """
        self.store = store

    # =========================================================================
    # LOOKUP
    # =========================================================================

    def get_task(self, task_id: str, task_type: str | None = None) -> TaskData:
        """Return a task, optionally requiring a task type.

        Raises:
            TaskNotFoundError: If the id is unknown or belongs to another type.
        """
        task = self.store.load(task_id)
        if task_type is not None and task.get(const.DATA_TASK_TYPE) != task_type:
            raise TaskNotFoundError(task_id)
        return task

    def list_tasks(
        self,
        user_id: str,
        task_type: str | None = None,
        include_completed: bool = True,
    ) -> list[TaskData]:
        """Return a user's tasks ordered by anchor date then time."""
        tasks = self.store.list_tasks(user_id=user_id, task_type=task_type)
        if not include_completed:
            tasks = [t for t in tasks if not t.get(const.DATA_TASK_COMPLETED, False)]
        return sorted(tasks, key=_sort_key)

    def get_upcoming(
        self,
        user_id: str,
        now: datetime,
        horizon_days: int = const.DEFAULT_UPCOMING_DAYS,
        task_type: str | None = None,
    ) -> list[UpcomingEntry]:
        """Return the user's tasks with an occurrence inside the horizon."""
        tasks = self.store.list_tasks(user_id=user_id, task_type=task_type)
        return UpcomingEngine.get_upcoming(tasks, now, horizon_days)

    # =========================================================================
    # CREATE / UPDATE / DELETE
    # =========================================================================

    def create_task(
        self,
        data: dict[str, Any],
        now: datetime,
        task_type: str = const.TASK_TYPE_REMINDER,
    ) -> TaskData:
        """Validate and store a new task.

        Raises:
            EntityValidationError: If the data is invalid. Nothing is stored.
        """
        task = db.build_task(data, now=now, task_type=task_type)
        stored = self.store.add(task)
        const.LOGGER.info(
            "Created %s '%s' (%s) for user %s",
            stored[const.DATA_TASK_TYPE],
            stored[const.DATA_TASK_TITLE],
            stored[const.DATA_TASK_INTERNAL_ID],
            stored[const.DATA_TASK_USER_ID],
        )
        return stored

    def update_task(
        self,
        task_id: str,
        data: dict[str, Any],
        now: datetime,
        task_type: str | None = None,
    ) -> TaskData:
        """Apply a partial update to a task.

        The whole updated record is validated before the write, and the write
        only succeeds if nobody changed the task since it was loaded.

        Raises:
            TaskNotFoundError: Unknown id.
            EntityValidationError: Invalid data. Nothing is written.
            StaleTaskError: Concurrent modification.
        """
        existing = self.get_task(task_id, task_type)
        updated = db.build_task(data, now=now, existing=existing)
        changes = {
            key: value
            for key, value in updated.items()
            if key not in (const.DATA_TASK_INTERNAL_ID, const.DATA_TASK_REVISION)
        }
        stored = self.store.compare_and_swap_update(
            task_id,
            {const.DATA_TASK_REVISION: existing.get(const.DATA_TASK_REVISION)},
            changes,
        )
        const.LOGGER.info("Updated task %s (fields: %s)", task_id, sorted(data))
        return stored

    def delete_task(self, task_id: str) -> bool:
        """Delete a task. Returns False if it did not exist."""
        deleted = self.store.delete(task_id)
        if deleted:
            const.LOGGER.info("Deleted task %s", task_id)
        return deleted

    # =========================================================================
    # COMPLETION
    # =========================================================================

    def complete_task(
        self, task_id: str, now: datetime, task_type: str | None = None
    ) -> tuple[TaskData, TransitionEffect]:
        """Mark the task's current occurrence completed.

        Completing an already completed one-time task (or a closed series) is
        a no-op that returns the stored record unchanged.

        Raises:
            TaskNotFoundError: Unknown id.
            StaleTaskError: The task was completed or edited concurrently.
        """
        task = self.get_task(task_id, task_type)
        effect = TaskEngine.calculate_completion(task, now)
        return self._write_effect(task, effect), effect

    def close_series(
        self, task_id: str, task_type: str | None = None
    ) -> tuple[TaskData, TransitionEffect]:
        """Mark a task completed for good, ending any recurrence."""
        task = self.get_task(task_id, task_type)
        effect = TaskEngine.calculate_close_series(task)
        return self._write_effect(task, effect), effect

    def _write_effect(self, task: TaskData, effect: TransitionEffect) -> TaskData:
        if not effect.changed:
            const.LOGGER.debug(
                "Task %s already in state %s, nothing to write",
                effect.task_id,
                effect.new_state,
            )
            return task

        stored = self.store.compare_and_swap_update(
            effect.task_id, TaskEngine.expected_fields(task), effect.as_changes()
        )
        const.LOGGER.info(
            "Task %s -> %s (acknowledged: %s, next: %s)",
            effect.task_id,
            effect.new_state,
            effect.acknowledged_occurrence,
            effect.next_occurrence,
        )
        return stored
