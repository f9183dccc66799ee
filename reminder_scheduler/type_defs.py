"""Type definitions for reminder scheduler data structures.

Stored records are plain dicts (JSON-serializable) described with TypedDict,
so the same structures travel unchanged between the store, the engines and
the service layer.

NOTE: TypedDict is STATIC ANALYSIS ONLY. Runtime validation lives in
data_builders.py.

IMPORTANT: This file must NOT import from engines or the service layer.
Only import from typing.
"""

from typing import Any, NotRequired, TypedDict

# =============================================================================
# Type Aliases (for readability)
# =============================================================================

TaskId = str  # UUID string
UserId = str  # Opaque external identity
ISODatetime = str  # ISO 8601 datetime string "2026-01-18T12:30:00+00:00"
ISODate = str  # ISO 8601 date string (no time) "2026-01-18"
ClockTimeStr = str  # 24-hour "HH:mm"


# =============================================================================
# Recurrence
# =============================================================================


class RecurrenceConfig(TypedDict):
    """Normalized recurrence rule stored on a task.

    frequency=none means no other field is consulted.
    """

    frequency: str
    interval: int
    applicable_days: list[int]  # 0=Mon .. 6=Sun, weekly only
    until: ISODate | None  # Inclusive
    clamp_basis: str


# =============================================================================
# Tasks
# =============================================================================


class TaskData(TypedDict):
    """A reminder or calendar event with an optional recurrence rule."""

    internal_id: TaskId
    user_id: UserId
    task_type: str  # reminder | event
    title: str
    description: str | None
    event_type: str
    anchor_date: ISODate
    anchor_time: ClockTimeStr | None  # None = all-day
    recurrence: RecurrenceConfig
    completed: bool
    last_completed_occurrence: ISODate | None
    revision: int
    created_at: ISODatetime
    updated_at: ISODatetime


class UpcomingEntry(TypedDict):
    """One row of an upcoming-window result."""

    task: TaskData
    occurrence_date: ISODate
    occurrence_time: ClockTimeStr | None
    occurrence: ISODatetime | ISODate  # Full moment, or date for all-day


# =============================================================================
# Service layer
# =============================================================================


class ServiceBody(TypedDict):
    """Response body shape shared by all service handlers."""

    success: bool
    data: NotRequired[Any]
    error: NotRequired[str]
    message: NotRequired[str]
