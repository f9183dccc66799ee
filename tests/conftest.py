"""Shared fixtures for reminder scheduler tests."""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
import uuid
from zoneinfo import ZoneInfo

import pytest

from reminder_scheduler import const
from reminder_scheduler.services import ReminderService
from reminder_scheduler.store import InMemoryTaskStore
from reminder_scheduler.utils import dt_utils

# Friday 2024-03-01 12:00 UTC; Monday is 2024-03-04
NOW = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def utc_default_timezone() -> Any:
    """Run every test with UTC as the local timezone."""
    previous = dt_utils.get_default_timezone()
    dt_utils.set_default_timezone(ZoneInfo("UTC"))
    yield
    dt_utils.set_default_timezone(previous)


@pytest.fixture
def now() -> datetime:
    """Return the fixed reference time used across tests."""
    return NOW


@pytest.fixture
def store() -> InMemoryTaskStore:
    """Return an empty in-memory store."""
    return InMemoryTaskStore()


@pytest.fixture
def service(store: InMemoryTaskStore) -> ReminderService:
    """Return a service wired to the store with a fixed clock."""
    return ReminderService(store, clock=lambda: NOW)


def make_rule(
    frequency: str = const.FREQUENCY_NONE,
    interval: int = 1,
    days: list[int] | None = None,
    until: str | None = None,
    clamp_basis: str = const.CLAMP_BASIS_ANCHOR,
) -> dict[str, Any]:
    """Build a normalized recurrence config."""
    return {
        const.DATA_RECURRENCE_FREQUENCY: frequency,
        const.DATA_RECURRENCE_INTERVAL: interval,
        const.DATA_RECURRENCE_APPLICABLE_DAYS: days or [],
        const.DATA_RECURRENCE_UNTIL: until,
        const.DATA_RECURRENCE_CLAMP_BASIS: clamp_basis,
    }


@pytest.fixture
def rule_factory() -> Callable[..., dict[str, Any]]:
    """Return the recurrence config builder."""
    return make_rule


@pytest.fixture
def task_factory() -> Callable[..., dict[str, Any]]:
    """Return a builder for stored-shape task records.

    Records are built directly (not via data_builders) so engine tests do not
    depend on validation.
    """

    def _make_task(
        anchor_date: str = "2024-03-04",
        anchor_time: str | None = "09:00",
        recurrence: dict[str, Any] | None = None,
        completed: bool = False,
        last_completed_occurrence: str | None = None,
        task_id: str | None = None,
        user_id: str = "user-1",
        task_type: str = const.TASK_TYPE_REMINDER,
        title: str = "Water plants",
    ) -> dict[str, Any]:
        return {
            const.DATA_TASK_INTERNAL_ID: task_id or str(uuid.uuid4()),
            const.DATA_TASK_USER_ID: user_id,
            const.DATA_TASK_TYPE: task_type,
            const.DATA_TASK_TITLE: title,
            const.DATA_TASK_DESCRIPTION: None,
            const.DATA_TASK_EVENT_TYPE: const.DEFAULT_EVENT_TYPE,
            const.DATA_TASK_ANCHOR_DATE: anchor_date,
            const.DATA_TASK_ANCHOR_TIME: anchor_time,
            const.DATA_TASK_RECURRENCE: recurrence or make_rule(),
            const.DATA_TASK_COMPLETED: completed,
            const.DATA_TASK_LAST_COMPLETED_OCCURRENCE: last_completed_occurrence,
            const.DATA_TASK_REVISION: 0,
            const.DATA_TASK_CREATED_AT: NOW.isoformat(),
            const.DATA_TASK_UPDATED_AT: NOW.isoformat(),
        }

    return _make_task
