"""Upcoming Engine - Read-only projection of tasks due within a horizon.

Given a collection of tasks, a reference time and a horizon in days, returns
the tasks whose next pending occurrence falls inside [now, now + horizon]:
- One-time tasks appear until completed, and only while their anchor is ahead.
- Recurring tasks appear with their next occurrence until the series is
  closed or exhausted.

Results are ordered by occurrence moment, ties broken by task id. Nothing here
mutates the tasks it is given.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import TYPE_CHECKING

from .. import const
from ..utils.dt_utils import (
    as_local,
    dt_format_date,
    dt_format_time,
    occurrence_moment,
)
from .task_engine import TaskEngine

if TYPE_CHECKING:
    from collections.abc import Iterable

    from ..type_defs import TaskData, UpcomingEntry


class UpcomingEngine:
    """Pure logic engine for upcoming-window queries.

    All methods are static - no instance state.
    """

    @staticmethod
    def in_window(
        occurrence_date: date,
        occurrence_time: time | None,
        now: datetime,
        horizon_days: int,
    ) -> bool:
        """Return True if an occurrence lies within [now, now + horizon_days].

        All-day occurrences are compared by local date on both bounds.
        """
        start = as_local(now)
        end = start + timedelta(days=horizon_days)
        if occurrence_time is None:
            return start.date() <= occurrence_date <= end.date()
        moment = occurrence_moment(occurrence_date, occurrence_time)
        return start <= moment <= end

    @staticmethod
    def get_upcoming(
        tasks: Iterable[TaskData],
        now: datetime,
        horizon_days: int = const.DEFAULT_UPCOMING_DAYS,
    ) -> list[UpcomingEntry]:
        """Return tasks due within the horizon with their occurrence.

        Args:
            tasks: Task records to consider.
            now: Reference time (timezone-aware).
            horizon_days: Length of the forward window in days (>= 0).

        Returns:
            UpcomingEntry list ordered by occurrence moment, then task id.

        Raises:
            ValueError: If horizon_days is negative.
        """
        if horizon_days < 0:
            raise ValueError(f"horizon_days must be >= 0, got {horizon_days}")

        keyed: list[tuple[datetime, str, UpcomingEntry]] = []
        for task in tasks:
            occurrence = TaskEngine.next_pending_occurrence(task, now)
            if occurrence is None:
                continue

            occurrence_time = TaskEngine.get_anchor_time(task)
            if not UpcomingEngine.in_window(
                occurrence, occurrence_time, now, horizon_days
            ):
                continue

            moment = occurrence_moment(occurrence, occurrence_time)
            entry: UpcomingEntry = {
                "task": task,
                "occurrence_date": dt_format_date(occurrence),
                "occurrence_time": (
                    dt_format_time(occurrence_time) if occurrence_time else None
                ),
                "occurrence": (
                    moment.isoformat()
                    if occurrence_time
                    else dt_format_date(occurrence)
                ),
            }
            keyed.append(
                (moment, str(task.get(const.DATA_TASK_INTERNAL_ID, "")), entry)
            )

        keyed.sort(key=lambda item: (item[0], item[1]))
        const.LOGGER.debug(
            "UpcomingEngine: %s task(s) due within %s day(s) of %s",
            len(keyed),
            horizon_days,
            now.isoformat(),
        )
        return [entry for _, _, entry in keyed]
