"""Tests for InMemoryTaskStore - copies, filters and compare-and-swap."""

from collections.abc import Callable
import threading
from typing import Any

import pytest

from reminder_scheduler import const
from reminder_scheduler.store import (
    InMemoryTaskStore,
    StaleTaskError,
    TaskNotFoundError,
)

TaskFactory = Callable[..., dict[str, Any]]


class TestBasicOperations:
    """Add, load, list and delete."""

    def test_add_sets_revision(
        self, store: InMemoryTaskStore, task_factory: TaskFactory
    ) -> None:
        stored = store.add(task_factory(task_id="t1"))
        assert stored[const.DATA_TASK_REVISION] == 1
        assert store.load("t1") == stored

    def test_returned_records_are_copies(
        self, store: InMemoryTaskStore, task_factory: TaskFactory
    ) -> None:
        stored = store.add(task_factory(task_id="t1"))
        stored[const.DATA_TASK_TITLE] = "changed"
        stored[const.DATA_TASK_RECURRENCE]["interval"] = 99

        loaded = store.load("t1")
        assert loaded[const.DATA_TASK_TITLE] == "Water plants"
        assert loaded[const.DATA_TASK_RECURRENCE]["interval"] == 1

    def test_load_missing(self, store: InMemoryTaskStore) -> None:
        with pytest.raises(TaskNotFoundError) as err:
            store.load("nope")
        assert err.value.task_id == "nope"
        assert str(err.value) == "Task nope not found"

    def test_list_filters(
        self, store: InMemoryTaskStore, task_factory: TaskFactory
    ) -> None:
        store.add(task_factory(task_id="r1", user_id="u1"))
        store.add(task_factory(task_id="e1", user_id="u1", task_type=const.TASK_TYPE_EVENT))
        store.add(task_factory(task_id="r2", user_id="u2"))

        assert {t[const.DATA_TASK_INTERNAL_ID] for t in store.list_tasks(user_id="u1")} == {
            "r1",
            "e1",
        }
        assert [
            t[const.DATA_TASK_INTERNAL_ID]
            for t in store.list_tasks(user_id="u1", task_type=const.TASK_TYPE_EVENT)
        ] == ["e1"]
        assert len(store.list_tasks()) == 3

    def test_delete(self, store: InMemoryTaskStore, task_factory: TaskFactory) -> None:
        store.add(task_factory(task_id="t1"))
        assert store.delete("t1") is True
        assert store.delete("t1") is False
        with pytest.raises(TaskNotFoundError):
            store.load("t1")

    def test_snapshot_and_restore(
        self, store: InMemoryTaskStore, task_factory: TaskFactory
    ) -> None:
        store.add(task_factory(task_id="t1"))
        data = store.data

        assert data[const.DATA_META][const.DATA_META_SCHEMA_VERSION] == const.STORAGE_VERSION
        restored = InMemoryTaskStore(data)
        assert restored.load("t1") == store.load("t1")

    def test_default_structure(self) -> None:
        assert InMemoryTaskStore.get_default_structure() == {
            const.DATA_META: {const.DATA_META_SCHEMA_VERSION: const.STORAGE_VERSION},
            const.DATA_TASKS: {},
        }


class TestCompareAndSwap:
    """Conditional writes."""

    def test_matching_expectation_writes(
        self, store: InMemoryTaskStore, task_factory: TaskFactory
    ) -> None:
        store.add(task_factory(task_id="t1"))
        updated = store.compare_and_swap_update(
            "t1",
            {const.DATA_TASK_COMPLETED: False},
            {const.DATA_TASK_COMPLETED: True},
        )
        assert updated[const.DATA_TASK_COMPLETED] is True
        assert updated[const.DATA_TASK_REVISION] == 2
        assert store.load("t1") == updated

    def test_stale_expectation_rejected(
        self, store: InMemoryTaskStore, task_factory: TaskFactory
    ) -> None:
        store.add(task_factory(task_id="t1"))
        before = store.load("t1")

        with pytest.raises(StaleTaskError) as err:
            store.compare_and_swap_update(
                "t1",
                {const.DATA_TASK_LAST_COMPLETED_OCCURRENCE: "2024-03-04"},
                {const.DATA_TASK_LAST_COMPLETED_OCCURRENCE: "2024-03-06"},
            )

        assert err.value.field == const.DATA_TASK_LAST_COMPLETED_OCCURRENCE
        assert store.load("t1") == before

    def test_missing_task(self, store: InMemoryTaskStore) -> None:
        with pytest.raises(TaskNotFoundError):
            store.compare_and_swap_update("nope", {}, {const.DATA_TASK_COMPLETED: True})

    def test_concurrent_writers_only_one_wins(
        self, store: InMemoryTaskStore, task_factory: TaskFactory
    ) -> None:
        store.add(task_factory(task_id="t1"))
        barrier = threading.Barrier(8)
        outcomes: list[str] = []
        outcomes_lock = threading.Lock()

        def worker(occurrence: str) -> None:
            barrier.wait()
            try:
                store.compare_and_swap_update(
                    "t1",
                    {const.DATA_TASK_LAST_COMPLETED_OCCURRENCE: None},
                    {const.DATA_TASK_LAST_COMPLETED_OCCURRENCE: occurrence},
                )
                result = "ok"
            except StaleTaskError:
                result = "stale"
            with outcomes_lock:
                outcomes.append(result)

        threads = [
            threading.Thread(target=worker, args=(f"2024-03-{day:02d}",))
            for day in range(4, 12)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert outcomes.count("ok") == 1
        assert outcomes.count("stale") == 7
        assert store.load("t1")[const.DATA_TASK_REVISION] == 2
