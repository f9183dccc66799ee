"""Tests for TaskManager orchestration over a store."""

from collections.abc import Callable
from datetime import datetime
from typing import Any

import pytest

from reminder_scheduler import const, data_builders as db
from reminder_scheduler.data_builders import EntityValidationError
from reminder_scheduler.managers.task_manager import TaskManager
from reminder_scheduler.store import (
    InMemoryTaskStore,
    StaleTaskError,
    TaskNotFoundError,
)


class InterleavingStore(InMemoryTaskStore):
    """Runs a competing writer right after the next load."""

    def __init__(self) -> None:
        super().__init__()
        self.interleave: Callable[[str], Any] | None = None

    def load(self, task_id: str) -> dict[str, Any]:
        task = super().load(task_id)
        if self.interleave is not None:
            hook, self.interleave = self.interleave, None
            hook(task_id)
        return task


@pytest.fixture
def manager(store: InMemoryTaskStore) -> TaskManager:
    """Return a manager over the shared store fixture."""
    return TaskManager(store)


def _create(manager: TaskManager, now: datetime, **payload: Any) -> dict[str, Any]:
    body = {"userId": "user-1", "title": "Stretch", "dueDate": "2024-03-04T09:00"}
    body.update(payload)
    return manager.create_task(db.map_reminder_payload(body), now)


class TestCreateAndQuery:
    """Creating and reading tasks."""

    def test_create_stores_task(
        self, manager: TaskManager, store: InMemoryTaskStore, now: datetime
    ) -> None:
        task = _create(manager, now)
        assert store.load(task[const.DATA_TASK_INTERNAL_ID]) == task
        assert task[const.DATA_TASK_REVISION] == 1

    def test_invalid_create_stores_nothing(
        self, manager: TaskManager, store: InMemoryTaskStore, now: datetime
    ) -> None:
        with pytest.raises(EntityValidationError):
            _create(manager, now, repeatType="fortnightly")
        assert store.list_tasks() == []

    def test_list_ordered_by_date_then_time(
        self, manager: TaskManager, now: datetime
    ) -> None:
        _create(manager, now, title="c", dueDate="2024-03-05T08:00")
        _create(manager, now, title="b", dueDate="2024-03-04T18:00")
        _create(manager, now, title="a", dueDate="2024-03-04T07:30")

        titles = [t[const.DATA_TASK_TITLE] for t in manager.list_tasks("user-1")]
        assert titles == ["a", "b", "c"]

    def test_list_excludes_completed(self, manager: TaskManager, now: datetime) -> None:
        done = _create(manager, now, title="done")
        _create(manager, now, title="open")
        manager.complete_task(done[const.DATA_TASK_INTERNAL_ID], now)

        titles = [
            t[const.DATA_TASK_TITLE]
            for t in manager.list_tasks("user-1", include_completed=False)
        ]
        assert titles == ["open"]
        assert len(manager.list_tasks("user-1")) == 2

    def test_get_task_type_mismatch(self, manager: TaskManager, now: datetime) -> None:
        task = _create(manager, now)
        with pytest.raises(TaskNotFoundError):
            manager.get_task(task[const.DATA_TASK_INTERNAL_ID], const.TASK_TYPE_EVENT)

    def test_upcoming(self, manager: TaskManager, now: datetime) -> None:
        _create(manager, now, title="soon", dueDate="2024-03-02T10:00")
        _create(manager, now, title="later", dueDate="2024-04-02T10:00")
        _create(manager, now, title="other user", userId="user-2", dueDate="2024-03-02")

        entries = manager.get_upcoming("user-1", now)
        assert [e["task"][const.DATA_TASK_TITLE] for e in entries] == ["soon"]


class TestUpdateAndDelete:
    """Partial updates and deletion."""

    def test_update_bumps_revision(self, manager: TaskManager, now: datetime) -> None:
        task = _create(manager, now)
        updated = manager.update_task(
            task[const.DATA_TASK_INTERNAL_ID],
            db.map_reminder_payload({"title": "Stretch more"}),
            now,
        )
        assert updated[const.DATA_TASK_TITLE] == "Stretch more"
        assert updated[const.DATA_TASK_REVISION] == 2
        assert updated[const.DATA_TASK_CREATED_AT] == task[const.DATA_TASK_CREATED_AT]

    def test_invalid_update_writes_nothing(
        self, manager: TaskManager, store: InMemoryTaskStore, now: datetime
    ) -> None:
        task = _create(manager, now)
        task_id = task[const.DATA_TASK_INTERNAL_ID]
        with pytest.raises(EntityValidationError):
            manager.update_task(
                task_id,
                db.map_reminder_payload({"title": "New", "dueDate": "2024-02-30"}),
                now,
            )
        assert store.load(task_id) == task

    def test_update_unknown(self, manager: TaskManager, now: datetime) -> None:
        with pytest.raises(TaskNotFoundError):
            manager.update_task("nope", {const.DATA_TASK_TITLE: "x"}, now)

    def test_concurrent_update_is_stale(self, now: datetime) -> None:
        store = InterleavingStore()
        manager = TaskManager(store)
        task = _create(manager, now)
        task_id = task[const.DATA_TASK_INTERNAL_ID]
        store.interleave = lambda tid: manager.complete_task(tid, now)

        with pytest.raises(StaleTaskError):
            manager.update_task(task_id, {const.DATA_TASK_TITLE: "Renamed"}, now)
        assert store.load(task_id)[const.DATA_TASK_TITLE] == "Stretch"

    def test_delete(self, manager: TaskManager, now: datetime) -> None:
        task = _create(manager, now)
        assert manager.delete_task(task[const.DATA_TASK_INTERNAL_ID]) is True
        assert manager.delete_task(task[const.DATA_TASK_INTERNAL_ID]) is False


class TestCompletion:
    """Completion workflow."""

    def test_recurring_completion_advances(
        self, manager: TaskManager, now: datetime
    ) -> None:
        task = _create(manager, now, repeatType="weekly", recurringDays=["mon", "wed"])
        task_id = task[const.DATA_TASK_INTERNAL_ID]

        first, effect = manager.complete_task(task_id, now)
        assert effect.acknowledged_occurrence == "2024-03-04"
        assert first[const.DATA_TASK_LAST_COMPLETED_OCCURRENCE] == "2024-03-04"
        assert first[const.DATA_TASK_COMPLETED] is False

        second, effect = manager.complete_task(task_id, now)
        assert effect.acknowledged_occurrence == "2024-03-06"
        assert second[const.DATA_TASK_REVISION] == 3

    def test_repeat_completion_is_noop(
        self, manager: TaskManager, now: datetime
    ) -> None:
        task = _create(manager, now)
        task_id = task[const.DATA_TASK_INTERNAL_ID]

        once, _ = manager.complete_task(task_id, now)
        twice, effect = manager.complete_task(task_id, now)

        assert not effect.changed
        assert twice == once

    def test_duplicate_completion_acknowledges_once(self, now: datetime) -> None:
        store = InterleavingStore()
        manager = TaskManager(store)
        task = _create(manager, now, repeatType="daily")
        task_id = task[const.DATA_TASK_INTERNAL_ID]
        store.interleave = lambda tid: manager.complete_task(tid, now)

        with pytest.raises(StaleTaskError):
            manager.complete_task(task_id, now)

        stored = store.load(task_id)
        assert stored[const.DATA_TASK_LAST_COMPLETED_OCCURRENCE] == "2024-03-04"
        assert stored[const.DATA_TASK_REVISION] == 2

    def test_schedule_edit_during_completion_is_stale(self, now: datetime) -> None:
        store = InterleavingStore()
        manager = TaskManager(store)
        task = _create(manager, now, repeatType="weekly")
        task_id = task[const.DATA_TASK_INTERNAL_ID]
        store.interleave = lambda tid: manager.update_task(
            tid, db.map_reminder_payload({"dueDate": "2024-03-06T09:00"}), now
        )

        with pytest.raises(StaleTaskError) as err:
            manager.complete_task(task_id, now)

        assert err.value.field == const.DATA_TASK_REVISION
        stored = store.load(task_id)
        assert stored[const.DATA_TASK_ANCHOR_DATE] == "2024-03-06"
        assert stored[const.DATA_TASK_LAST_COMPLETED_OCCURRENCE] is None

    def test_close_series(self, manager: TaskManager, now: datetime) -> None:
        task = _create(manager, now, repeatType="daily")
        closed, effect = manager.close_series(task[const.DATA_TASK_INTERNAL_ID])

        assert effect.new_state == const.TASK_STATE_EXHAUSTED
        assert closed[const.DATA_TASK_COMPLETED] is True
        assert manager.get_upcoming("user-1", now, 30) == []

    def test_complete_unknown(self, manager: TaskManager, now: datetime) -> None:
        with pytest.raises(TaskNotFoundError):
            manager.complete_task("nope", now)
