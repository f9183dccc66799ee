"""Task Engine - Pure logic for task completion state and recurrence progress.

This engine provides stateless, pure Python functions for:
- Locating the current pending occurrence of a task
- State derivation (pending / done / exhausted)
- TransitionEffect planning for completion and series closing
- Applying an effect to a task record without mutating the original

ARCHITECTURE: All functions are static methods that operate on passed-in data.
Nothing here reads the clock or touches storage: `now` is always an argument,
and the compare-and-swap write of an effect belongs to the TaskStore.

Completion semantics:
- One-time task: completing sets `completed`; completing again is a no-op.
- Recurring task: completing acknowledges the latest occurrence that has
  already fallen due and is not yet acknowledged, or else the next upcoming
  one, by recording it in `last_completed_occurrence`. `completed` is only set once
  the series has no further occurrence (exhausted) or is closed explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import TYPE_CHECKING, Any

from .. import const
from ..utils.dt_utils import (
    as_local,
    dt_format_date,
    dt_parse_date,
    dt_parse_time,
    occurrence_moment,
)
from .schedule_engine import RecurrenceEngine

if TYPE_CHECKING:
    from ..type_defs import TaskData


# =============================================================================
# TRANSITION EFFECT DATA STRUCTURE
# =============================================================================


@dataclass
class TransitionEffect:
    """Effect of a completion-related transition on one task.

    Returned by TaskEngine.calculate_completion() / calculate_close_series().

    Attributes:
        task_id: The task affected by this transition
        new_state: Task state after the transition
        changed: False when the transition is a no-op (idempotent repeat)
        completed: Value for the `completed` field
        last_completed_occurrence: Value for `last_completed_occurrence`
        acknowledged_occurrence: Occurrence acknowledged by this transition
        next_occurrence: Next pending occurrence after the transition, if any
    """

    task_id: str
    new_state: str
    changed: bool = True
    completed: bool = False
    last_completed_occurrence: str | None = None
    acknowledged_occurrence: str | None = None
    next_occurrence: str | None = None

    def as_changes(self) -> dict[str, Any]:
        """Return the record fields this effect writes."""
        return {
            const.DATA_TASK_COMPLETED: self.completed,
            const.DATA_TASK_LAST_COMPLETED_OCCURRENCE: self.last_completed_occurrence,
        }


# =============================================================================
# TASK ENGINE
# =============================================================================


class TaskEngine:
    """Pure logic engine for task completion and recurrence progress.

    All methods are static - no instance state.
    """

    # Valid state transitions matrix
    VALID_TRANSITIONS: dict[str, list[str]] = {
        # From PENDING: acknowledge one occurrence, finish, or close the series
        const.TASK_STATE_PENDING: [
            const.TASK_STATE_ACKNOWLEDGED,
            const.TASK_STATE_DONE,
            const.TASK_STATE_EXHAUSTED,
        ],
        # ACKNOWLEDGED is transient: the series moves on or ends
        const.TASK_STATE_ACKNOWLEDGED: [
            const.TASK_STATE_PENDING,
            const.TASK_STATE_EXHAUSTED,
        ],
        # Terminal states
        const.TASK_STATE_DONE: [],
        const.TASK_STATE_EXHAUSTED: [],
    }

    # =========================================================================
    # QUERY FUNCTIONS
    # =========================================================================

    @staticmethod
    def can_transition(current_state: str, target_state: str) -> bool:
        """Validate if a state transition is allowed."""
        return target_state in TaskEngine.VALID_TRANSITIONS.get(current_state, [])

    @staticmethod
    def is_recurring(task: TaskData) -> bool:
        """Return True if the task has a repeat pattern."""
        recurrence = task.get(const.DATA_TASK_RECURRENCE) or {}
        return (
            recurrence.get(const.DATA_RECURRENCE_FREQUENCY, const.FREQUENCY_NONE)
            != const.FREQUENCY_NONE
        )

    @staticmethod
    def get_anchor_date(task: TaskData) -> date:
        """Return the anchor date of a stored task.

        Raises:
            ValueError: If the stored anchor is not a valid ISO date.
        """
        raw = task.get(const.DATA_TASK_ANCHOR_DATE)
        anchor = dt_parse_date(raw)
        if anchor is None:
            raise ValueError(f"Task has an invalid anchor date: {raw!r}")
        return anchor

    @staticmethod
    def get_anchor_time(task: TaskData) -> time | None:
        """Return the anchor time of a task, or None for all-day tasks."""
        return dt_parse_time(task.get(const.DATA_TASK_ANCHOR_TIME))

    @staticmethod
    def get_engine(task: TaskData) -> RecurrenceEngine:
        """Build the RecurrenceEngine for a task's rule and anchor."""
        recurrence = task.get(const.DATA_TASK_RECURRENCE) or {
            const.DATA_RECURRENCE_FREQUENCY: const.FREQUENCY_NONE
        }
        return RecurrenceEngine(recurrence, TaskEngine.get_anchor_date(task))

    @staticmethod
    def is_not_before(
        occurrence_date: date, occurrence_time: time | None, now: datetime
    ) -> bool:
        """Return True if an occurrence is at or after `now`.

        Timed occurrences compare as full moments. All-day occurrences compare
        by local date, so today's all-day occurrence still counts.
        """
        if occurrence_time is None:
            return occurrence_date >= as_local(now).date()
        return occurrence_moment(occurrence_date, occurrence_time) >= as_local(now)

    @staticmethod
    def next_pending_occurrence(task: TaskData, now: datetime) -> date | None:
        """Return the occurrence the task is currently waiting on.

        One-time tasks: the anchor, unless completed. The anchor is returned
        even if it is in the past (an overdue one-time task is still pending).

        Recurring tasks: the first occurrence strictly after
        `last_completed_occurrence` (or the anchor itself when never completed)
        that is at or after `now`. Missed occurrences are skipped.

        Returns:
            The occurrence date, or None if completed or exhausted.
        """
        if task.get(const.DATA_TASK_COMPLETED, False):
            return None

        anchor = TaskEngine.get_anchor_date(task)
        if not TaskEngine.is_recurring(task):
            return anchor

        engine = TaskEngine.get_engine(task)
        anchor_time = TaskEngine.get_anchor_time(task)
        today = as_local(now).date()

        last_done = dt_parse_date(task.get(const.DATA_TASK_LAST_COMPLETED_OCCURRENCE))
        if last_done is None and anchor >= today:
            candidate: date | None = anchor
        else:
            candidate = engine.first_occurrence_on_or_after(last_done or anchor, today)

        # A timed occurrence earlier today is already behind `now`
        if candidate is not None and not TaskEngine.is_not_before(
            candidate, anchor_time, now
        ):
            candidate = engine.get_next_occurrence(candidate)

        return candidate

    @staticmethod
    def last_due_occurrence(task: TaskData, now: datetime) -> date | None:
        """Return the latest unacknowledged occurrence that has already fallen due.

        Only open recurring tasks have one. A timed occurrence is due once its
        moment has passed; an all-day occurrence is due on its local date.
        """
        if task.get(const.DATA_TASK_COMPLETED, False) or not TaskEngine.is_recurring(
            task
        ):
            return None

        anchor = TaskEngine.get_anchor_date(task)
        anchor_time = TaskEngine.get_anchor_time(task)
        local_now = as_local(now)
        bound = local_now.date()
        if anchor_time is not None and occurrence_moment(bound, anchor_time) > local_now:
            bound -= timedelta(days=1)

        last_done = dt_parse_date(task.get(const.DATA_TASK_LAST_COMPLETED_OCCURRENCE))
        latest = TaskEngine.get_engine(task).last_occurrence_on_or_before(
            last_done or anchor, bound
        )
        if latest is None and last_done is None and anchor <= bound:
            return anchor
        return latest

    @staticmethod
    def completion_target(task: TaskData, now: datetime) -> date | None:
        """Return the occurrence a completion at `now` acknowledges.

        An occurrence that has already fallen due wins over the next upcoming
        one, so completing a reminder just after it fires acknowledges it.
        Upcoming queries keep using next_pending_occurrence().
        """
        return TaskEngine.last_due_occurrence(
            task, now
        ) or TaskEngine.next_pending_occurrence(task, now)

    @staticmethod
    def get_recorded_state(task: TaskData) -> str:
        """Return the state implied by the stored `completed` flag alone."""
        if not task.get(const.DATA_TASK_COMPLETED, False):
            return const.TASK_STATE_PENDING
        if TaskEngine.is_recurring(task):
            return const.TASK_STATE_EXHAUSTED
        return const.TASK_STATE_DONE

    @staticmethod
    def get_state(task: TaskData, now: datetime) -> str:
        """Derive the task state at `now`.

        Returns:
            TASK_STATE_PENDING, TASK_STATE_DONE (completed one-time task) or
            TASK_STATE_EXHAUSTED (closed or exhausted recurring series).
        """
        if not TaskEngine.is_recurring(task):
            return TaskEngine.get_recorded_state(task)

        if TaskEngine.completion_target(task, now) is None:
            return const.TASK_STATE_EXHAUSTED
        return const.TASK_STATE_PENDING

    @staticmethod
    def expected_fields(task: TaskData) -> dict[str, Any]:
        """Return the fields a completion write must find unchanged (CAS guard).

        `revision` ties the write to the schedule the effect was planned on.
        """
        return {
            const.DATA_TASK_REVISION: task.get(const.DATA_TASK_REVISION),
            const.DATA_TASK_COMPLETED: task.get(const.DATA_TASK_COMPLETED, False),
            const.DATA_TASK_LAST_COMPLETED_OCCURRENCE: task.get(
                const.DATA_TASK_LAST_COMPLETED_OCCURRENCE
            ),
        }

    # =========================================================================
    # TRANSITION PLANNING
    # =========================================================================

    @staticmethod
    def calculate_completion(task: TaskData, now: datetime) -> TransitionEffect:
        """Plan the effect of marking a task completed at `now`.

        Args:
            task: The task record as currently stored.
            now: Reference time (timezone-aware).

        Returns:
            TransitionEffect describing the new field values.
        """
        task_id = task.get(const.DATA_TASK_INTERNAL_ID, "")
        last_done = task.get(const.DATA_TASK_LAST_COMPLETED_OCCURRENCE)
        current = TaskEngine.get_recorded_state(task)

        # === ONE-TIME TASK ===
        if not TaskEngine.is_recurring(task):
            changed = TaskEngine.can_transition(current, const.TASK_STATE_DONE)
            return TransitionEffect(
                task_id=task_id,
                new_state=const.TASK_STATE_DONE,
                changed=changed,
                completed=True,
                last_completed_occurrence=last_done,
                acknowledged_occurrence=(
                    task.get(const.DATA_TASK_ANCHOR_DATE) if changed else None
                ),
            )

        # === RECURRING, ALREADY CLOSED ===
        if not TaskEngine.can_transition(current, const.TASK_STATE_ACKNOWLEDGED):
            return TransitionEffect(
                task_id=task_id,
                new_state=const.TASK_STATE_EXHAUSTED,
                changed=False,
                completed=True,
                last_completed_occurrence=last_done,
            )

        pending = TaskEngine.completion_target(task, now)

        # === RECURRING, NOTHING LEFT TO ACKNOWLEDGE ===
        if pending is None:
            const.LOGGER.debug(
                "TaskEngine: Task %s has no pending occurrence, closing series",
                task_id,
            )
            return TransitionEffect(
                task_id=task_id,
                new_state=const.TASK_STATE_EXHAUSTED,
                completed=True,
                last_completed_occurrence=last_done,
            )

        # === RECURRING, ACKNOWLEDGE CURRENT OCCURRENCE ===
        acknowledged = dt_format_date(pending)
        following = TaskEngine.get_engine(task).get_next_occurrence(pending)
        if following is None:
            return TransitionEffect(
                task_id=task_id,
                new_state=const.TASK_STATE_EXHAUSTED,
                completed=True,
                last_completed_occurrence=acknowledged,
                acknowledged_occurrence=acknowledged,
            )

        return TransitionEffect(
            task_id=task_id,
            new_state=const.TASK_STATE_PENDING,
            completed=False,
            last_completed_occurrence=acknowledged,
            acknowledged_occurrence=acknowledged,
            next_occurrence=dt_format_date(following),
        )

    @staticmethod
    def calculate_close_series(task: TaskData) -> TransitionEffect:
        """Plan closing a task for good without acknowledging an occurrence.

        For one-time tasks this is the same as completing them.
        """
        target = (
            const.TASK_STATE_EXHAUSTED
            if TaskEngine.is_recurring(task)
            else const.TASK_STATE_DONE
        )
        return TransitionEffect(
            task_id=task.get(const.DATA_TASK_INTERNAL_ID, ""),
            new_state=target,
            changed=TaskEngine.can_transition(
                TaskEngine.get_recorded_state(task), target
            ),
            completed=True,
            last_completed_occurrence=task.get(
                const.DATA_TASK_LAST_COMPLETED_OCCURRENCE
            ),
        )

    @staticmethod
    def apply_effect(task: TaskData, effect: TransitionEffect) -> TaskData:
        """Return a copy of `task` with the effect's fields applied."""
        updated = dict(task)
        updated.update(effect.as_changes())
        return updated  # type: ignore[return-value]
