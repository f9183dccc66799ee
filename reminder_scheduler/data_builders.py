"""Task lifecycle helpers.

This module is the SINGLE SOURCE OF TRUTH for:
- Task field defaults
- Strict date/time/recurrence validation (create AND update paths)
- Complete task record building
- Boundary payload → DATA key mapping

### Mapping Functions
`map_reminder_payload()` and `map_event_payload()` translate request payloads
(camelCase boundary names such as `dueDate`, `repeatType`, `recurringDays`) into
a partial dict keyed by DATA_* constants. Only keys present in the payload are
mapped, so the same functions serve create and partial update.

### Build Functions
`build_task()` takes mapped data, validates every field, normalizes the
recurrence rule and returns a complete TaskData ready for storage. When an
existing record is passed it builds the updated record instead; nothing is
written until the whole record validates.

Consumers:
- task_manager.py (create/update orchestration)
- services.py (boundary error mapping)
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any
import uuid

from . import const
from .utils.dt_utils import (
    as_local,
    dt_format_date,
    dt_format_time,
    dt_parse_date,
    dt_parse_time,
    dt_split_due,
    is_iso_date_format,
)

if TYPE_CHECKING:
    from datetime import date, datetime

    from .type_defs import RecurrenceConfig, TaskData

# Sentinel for "field not supplied" in partial payloads
_MISSING = object()


# ==============================================================================
# EXCEPTIONS
# ==============================================================================


class EntityValidationError(Exception):
    """Validation error with field-specific information.

    Raised when a task payload fails validation on create or update. Nothing
    has been written when this is raised.

    Attributes:
        field: The DATA_* / FIELD_* name of the field that failed
        translation_key: The TRANS_KEY_* constant for the error message
        placeholders: Values substituted into the message template

    Example:
        raise EntityValidationError(
            field=const.DATA_RECURRENCE_INTERVAL,
            translation_key=const.TRANS_KEY_INVALID_INTERVAL,
            placeholders={"value": "0"},
        )
    """

    def __init__(
        self,
        field: str,
        translation_key: str,
        placeholders: dict[str, str] | None = None,
    ) -> None:
        """Initialize EntityValidationError."""
        self.field = field
        self.translation_key = translation_key
        self.placeholders = placeholders or {}
        super().__init__(self.message)

    @property
    def message(self) -> str:
        """Return the human-readable error message."""
        template = const.ERROR_MESSAGES.get(self.translation_key, self.translation_key)
        try:
            return template.format(**self.placeholders)
        except KeyError:
            return template


# ==============================================================================
# FIELD VALIDATORS
# ==============================================================================


def validate_date_field(value: Any, field: str) -> date:
    """Strictly validate a YYYY-MM-DD value.

    Raises:
        EntityValidationError: Malformed string or non-existent calendar date.
    """
    if not is_iso_date_format(value):
        raise EntityValidationError(
            field=field,
            translation_key=const.TRANS_KEY_INVALID_DATE_FORMAT,
            placeholders={"field": field},
        )
    parsed = dt_parse_date(value)
    if parsed is None:
        raise EntityValidationError(
            field=field,
            translation_key=const.TRANS_KEY_INVALID_DATE_VALUE,
            placeholders={"field": field, "value": str(value)},
        )
    return parsed


def validate_time_field(value: Any, field: str) -> str:
    """Strictly validate a 24-hour HH:mm value and return its canonical form.

    Raises:
        EntityValidationError: Value is not a valid HH:mm string.
    """
    parsed = dt_parse_time(value)
    if parsed is None:
        raise EntityValidationError(
            field=field,
            translation_key=const.TRANS_KEY_INVALID_TIME_FORMAT,
            placeholders={"field": field},
        )
    return dt_format_time(parsed)


def parse_weekdays(value: Any, field: str = const.DATA_RECURRENCE_APPLICABLE_DAYS) -> list[int]:
    """Normalize a weekday collection to sorted weekday indexes (0=Mon).

    Accepts a list (or JSON array string, as stored by older clients) of
    weekday indexes 0-6, short names ("mon") or full names ("Monday").

    Raises:
        EntityValidationError: Unknown weekday or unparseable value.
    """
    if value is None or value == "":
        return []

    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as err:
            raise EntityValidationError(
                field=field,
                translation_key=const.TRANS_KEY_INVALID_WEEKDAY,
                placeholders={"value": value},
            ) from err

    if not isinstance(value, (list, tuple, set, frozenset)):
        raise EntityValidationError(
            field=field,
            translation_key=const.TRANS_KEY_INVALID_WEEKDAY,
            placeholders={"value": str(value)},
        )

    order = list(const.WEEKDAY_OPTIONS.keys())
    full_names = [name.lower() for name in const.WEEKDAY_OPTIONS.values()]
    days: set[int] = set()
    for item in value:
        if isinstance(item, int) and not isinstance(item, bool) and 0 <= item <= 6:
            days.add(item)
        elif isinstance(item, str) and item.lower() in order:
            days.add(order.index(item.lower()))
        elif isinstance(item, str) and item.lower() in full_names:
            days.add(full_names.index(item.lower()))
        else:
            raise EntityValidationError(
                field=field,
                translation_key=const.TRANS_KEY_INVALID_WEEKDAY,
                placeholders={"value": str(item)},
            )
    return sorted(days)


def _validate_interval(value: Any) -> int:
    """Return a positive integer interval (default when absent)."""
    if value is None:
        return const.DEFAULT_INTERVAL
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise EntityValidationError(
            field=const.DATA_RECURRENCE_INTERVAL,
            translation_key=const.TRANS_KEY_INVALID_INTERVAL,
            placeholders={"value": str(value)},
        )
    return value


def _validate_title(value: Any) -> str:
    """Return a stripped, non-empty title."""
    title = value.strip() if isinstance(value, str) else ""
    if not title:
        raise EntityValidationError(
            field=const.DATA_TASK_TITLE,
            translation_key=const.TRANS_KEY_INVALID_TITLE,
        )
    return title


# ==============================================================================
# RECURRENCE
# ==============================================================================


def default_recurrence() -> RecurrenceConfig:
    """Return the recurrence of a one-time task."""
    return {
        "frequency": const.FREQUENCY_NONE,
        "interval": const.DEFAULT_INTERVAL,
        "applicable_days": [],
        "until": None,
        "clamp_basis": const.DEFAULT_CLAMP_BASIS,
    }


def build_recurrence(data: dict[str, Any], anchor: date) -> RecurrenceConfig:
    """Validate and normalize a recurrence rule - SINGLE SOURCE OF TRUTH.

    Args:
        data: Raw rule with DATA_RECURRENCE_* keys (any subset).
        anchor: Anchor date of the task (until must not precede it).

    Returns:
        Normalized RecurrenceConfig. A NONE rule carries defaults only, since
        no other field is consulted for it.

    Raises:
        EntityValidationError: On any invalid field.

    Validation Rules:
        1. Frequency in FREQUENCY_OPTIONS (aliases like "biweekly" resolved)
        2. Interval is a positive integer (default 1)
        3. applicable_days only kept for WEEKLY
        4. until is a strict date, not before the anchor
        5. clamp_basis in CLAMP_BASIS_OPTIONS
    """
    raw_frequency = data.get(const.DATA_RECURRENCE_FREQUENCY) or const.FREQUENCY_NONE
    frequency = str(raw_frequency).lower()
    alias_interval: int | None = None
    if frequency in const.FREQUENCY_ALIASES:
        frequency, alias_interval = const.FREQUENCY_ALIASES[frequency]
    if frequency not in const.FREQUENCY_OPTIONS:
        raise EntityValidationError(
            field=const.DATA_RECURRENCE_FREQUENCY,
            translation_key=const.TRANS_KEY_INVALID_FREQUENCY,
            placeholders={"value": str(raw_frequency)},
        )

    if frequency == const.FREQUENCY_NONE:
        return default_recurrence()

    raw_interval = data.get(const.DATA_RECURRENCE_INTERVAL)
    if raw_interval is None and alias_interval is not None:
        raw_interval = alias_interval
    interval = _validate_interval(raw_interval)

    applicable_days: list[int] = []
    if frequency == const.FREQUENCY_WEEKLY:
        applicable_days = parse_weekdays(
            data.get(const.DATA_RECURRENCE_APPLICABLE_DAYS)
        )

    until: str | None = None
    raw_until = data.get(const.DATA_RECURRENCE_UNTIL)
    if raw_until:
        until_date = validate_date_field(raw_until, const.DATA_RECURRENCE_UNTIL)
        if until_date < anchor:
            raise EntityValidationError(
                field=const.DATA_RECURRENCE_UNTIL,
                translation_key=const.TRANS_KEY_UNTIL_BEFORE_ANCHOR,
                placeholders={
                    "until": dt_format_date(until_date),
                    "anchor": dt_format_date(anchor),
                },
            )
        until = dt_format_date(until_date)

    clamp_basis = data.get(const.DATA_RECURRENCE_CLAMP_BASIS) or const.DEFAULT_CLAMP_BASIS
    if clamp_basis not in const.CLAMP_BASIS_OPTIONS:
        raise EntityValidationError(
            field=const.DATA_RECURRENCE_CLAMP_BASIS,
            translation_key=const.TRANS_KEY_INVALID_CLAMP_BASIS,
            placeholders={"value": str(clamp_basis)},
        )

    return {
        "frequency": frequency,
        "interval": interval,
        "applicable_days": applicable_days,
        "until": until,
        "clamp_basis": clamp_basis,
    }


# ==============================================================================
# PAYLOAD MAPPING
# ==============================================================================


def _map_recurrence_fields(
    payload: dict[str, Any],
    frequency_field: str,
    until_field: str,
) -> dict[str, Any]:
    """Map boundary recurrence fields present in payload to DATA_RECURRENCE_* keys."""
    mapping = {
        frequency_field: const.DATA_RECURRENCE_FREQUENCY,
        const.FIELD_INTERVAL: const.DATA_RECURRENCE_INTERVAL,
        until_field: const.DATA_RECURRENCE_UNTIL,
        const.FIELD_RECURRING_DAYS: const.DATA_RECURRENCE_APPLICABLE_DAYS,
        const.FIELD_CLAMP_BASIS: const.DATA_RECURRENCE_CLAMP_BASIS,
    }
    return {
        data_key: payload[field] for field, data_key in mapping.items() if field in payload
    }


def map_reminder_payload(payload: dict[str, Any]) -> dict[str, Any]:
    """Map a reminder request payload to DATA_* keys.

    `dueDate` is "YYYY-MM-DD" or "YYYY-MM-DDTHH:mm". A bare date leaves the
    time unset: build_task() keeps the stored time on update and falls back to
    DEFAULT_REMINDER_TIME on create.

    Raises:
        EntityValidationError: If dueDate has the wrong shape.
    """
    data: dict[str, Any] = {}
    if const.FIELD_USER_ID in payload:
        data[const.DATA_TASK_USER_ID] = payload[const.FIELD_USER_ID]
    if const.FIELD_TITLE in payload:
        data[const.DATA_TASK_TITLE] = payload[const.FIELD_TITLE]
    if const.FIELD_DESCRIPTION in payload:
        data[const.DATA_TASK_DESCRIPTION] = payload[const.FIELD_DESCRIPTION]

    due = payload.get(const.FIELD_DUE_DATE, _MISSING)
    if due is not _MISSING and due is not None:
        parts = dt_split_due(due)
        if parts is None:
            raise EntityValidationError(
                field=const.FIELD_DUE_DATE,
                translation_key=const.TRANS_KEY_INVALID_DATE_FORMAT,
                placeholders={"field": const.FIELD_DUE_DATE},
            )
        date_part, time_part = parts
        data[const.DATA_TASK_ANCHOR_DATE] = date_part
        if time_part:
            data[const.DATA_TASK_ANCHOR_TIME] = time_part

    recurrence = _map_recurrence_fields(
        payload, const.FIELD_REPEAT_TYPE, const.FIELD_REPEAT_UNTIL
    )
    if recurrence:
        data[const.DATA_TASK_RECURRENCE] = recurrence
    return data


def map_event_payload(payload: dict[str, Any]) -> dict[str, Any]:
    """Map a calendar event request payload to DATA_* keys.

    `time` is optional; a missing or null time makes the event all-day.
    """
    data: dict[str, Any] = {}
    simple_fields = {
        const.FIELD_USER_ID: const.DATA_TASK_USER_ID,
        const.FIELD_TITLE: const.DATA_TASK_TITLE,
        const.FIELD_DESCRIPTION: const.DATA_TASK_DESCRIPTION,
        const.FIELD_TYPE: const.DATA_TASK_EVENT_TYPE,
        const.FIELD_COMPLETED: const.DATA_TASK_COMPLETED,
        const.FIELD_DATE: const.DATA_TASK_ANCHOR_DATE,
    }
    for field, data_key in simple_fields.items():
        if field in payload:
            data[data_key] = payload[field]
    if const.FIELD_TIME in payload:
        data[const.DATA_TASK_ANCHOR_TIME] = payload[const.FIELD_TIME] or None

    recurrence = _map_recurrence_fields(
        payload, const.FIELD_RECURRING, const.FIELD_RECURRING_END_DATE
    )
    if recurrence:
        data[const.DATA_TASK_RECURRENCE] = recurrence
    return data


# ==============================================================================
# TASKS
# ==============================================================================


def _check_anchor_age(anchor: date, now: datetime) -> None:
    """Reject anchors too far in the past to catch up from."""
    if (as_local(now).date() - anchor).days > const.MAX_ANCHOR_AGE_DAYS:
        raise EntityValidationError(
            field=const.DATA_TASK_ANCHOR_DATE,
            translation_key=const.TRANS_KEY_ANCHOR_TOO_OLD,
            placeholders={"value": dt_format_date(anchor)},
        )


def build_task(
    data: dict[str, Any],
    *,
    now: datetime,
    task_type: str = const.TASK_TYPE_REMINDER,
    existing: TaskData | None = None,
) -> TaskData:
    """Build a complete task record from mapped data.

    Args:
        data: Partial data keyed by DATA_* constants (from map_*_payload).
        now: Reference time for timestamps and the anchor-age check.
        task_type: TASK_TYPE_REMINDER or TASK_TYPE_EVENT (create only).
        existing: Current record when updating. Only supplied keys change.

    Returns:
        A new TaskData. `existing` is never mutated.

    Raises:
        EntityValidationError: On any invalid or missing field.
    """
    if existing is not None and not data:
        raise EntityValidationError(
            field="",
            translation_key=const.TRANS_KEY_NO_FIELDS_TO_UPDATE,
        )

    base: dict[str, Any] = dict(existing) if existing is not None else {}
    is_event = (
        base.get(const.DATA_TASK_TYPE, task_type) == const.TASK_TYPE_EVENT
    )

    if existing is None:
        missing_key = (
            const.TRANS_KEY_MISSING_EVENT_FIELDS
            if is_event
            else const.TRANS_KEY_MISSING_REMINDER_FIELDS
        )
        for required in (
            const.DATA_TASK_USER_ID,
            const.DATA_TASK_TITLE,
            const.DATA_TASK_ANCHOR_DATE,
        ):
            if not data.get(required):
                raise EntityValidationError(field=required, translation_key=missing_key)

    # === Anchor ===
    anchor_changed = existing is None or (
        const.DATA_TASK_ANCHOR_DATE in data
        and data[const.DATA_TASK_ANCHOR_DATE] != base.get(const.DATA_TASK_ANCHOR_DATE)
    )
    anchor = validate_date_field(
        data.get(const.DATA_TASK_ANCHOR_DATE, base.get(const.DATA_TASK_ANCHOR_DATE)),
        const.FIELD_DATE if is_event else const.FIELD_DUE_DATE,
    )
    if anchor_changed:
        _check_anchor_age(anchor, now)

    anchor_time = data.get(
        const.DATA_TASK_ANCHOR_TIME, base.get(const.DATA_TASK_ANCHOR_TIME)
    )
    if anchor_time is not None:
        anchor_time = validate_time_field(
            anchor_time, const.FIELD_TIME if is_event else const.FIELD_DUE_DATE
        )
    elif not is_event:
        anchor_time = const.DEFAULT_REMINDER_TIME

    # === Recurrence (merged over the stored rule on update) ===
    raw_recurrence: dict[str, Any] = dict(base.get(const.DATA_TASK_RECURRENCE) or {})
    new_recurrence: dict[str, Any] = data.get(const.DATA_TASK_RECURRENCE) or {}
    if (
        str(new_recurrence.get(const.DATA_RECURRENCE_FREQUENCY, "")).lower()
        in const.FREQUENCY_ALIASES
        and const.DATA_RECURRENCE_INTERVAL not in new_recurrence
    ):
        # An alias carries its own interval; the stored one must not override it
        raw_recurrence.pop(const.DATA_RECURRENCE_INTERVAL, None)
    raw_recurrence.update(new_recurrence)
    recurrence = build_recurrence(raw_recurrence, anchor)

    # === Simple fields ===
    title = _validate_title(data.get(const.DATA_TASK_TITLE, base.get(const.DATA_TASK_TITLE)))
    description = data.get(
        const.DATA_TASK_DESCRIPTION, base.get(const.DATA_TASK_DESCRIPTION)
    )
    completed = bool(
        data.get(const.DATA_TASK_COMPLETED, base.get(const.DATA_TASK_COMPLETED, False))
    )

    last_completed = base.get(const.DATA_TASK_LAST_COMPLETED_OCCURRENCE)
    new_schedule = {
        const.DATA_TASK_ANCHOR_DATE: dt_format_date(anchor),
        const.DATA_TASK_ANCHOR_TIME: anchor_time,
        const.DATA_TASK_RECURRENCE: recurrence,
    }
    if existing is not None and any(
        new_schedule[key] != existing.get(key) for key in const.SCHEDULE_FIELDS
    ):
        const.LOGGER.debug(
            "Schedule of task %s changed, clearing acknowledged occurrence",
            existing.get(const.DATA_TASK_INTERNAL_ID),
        )
        last_completed = None

    timestamp = now.isoformat()
    task: TaskData = {
        "internal_id": base.get(const.DATA_TASK_INTERNAL_ID) or str(uuid.uuid4()),
        "user_id": str(data.get(const.DATA_TASK_USER_ID, base.get(const.DATA_TASK_USER_ID))),
        "task_type": const.TASK_TYPE_EVENT if is_event else const.TASK_TYPE_REMINDER,
        "title": title,
        "description": description,
        "event_type": (
            data.get(const.DATA_TASK_EVENT_TYPE)
            or base.get(const.DATA_TASK_EVENT_TYPE)
            or const.DEFAULT_EVENT_TYPE
        ),
        "anchor_date": new_schedule[const.DATA_TASK_ANCHOR_DATE],
        "anchor_time": anchor_time,
        "recurrence": recurrence,
        "completed": completed,
        "last_completed_occurrence": last_completed,
        "revision": int(base.get(const.DATA_TASK_REVISION, 0)),
        "created_at": base.get(const.DATA_TASK_CREATED_AT) or timestamp,
        "updated_at": timestamp,
    }
    return task


def validate_task_data(
    data: dict[str, Any],
    *,
    now: datetime,
    task_type: str = const.TASK_TYPE_REMINDER,
    existing: TaskData | None = None,
) -> dict[str, str]:
    """Validate task data without building it.

    Returns:
        Dict of errors: {field: translation_key}. Empty dict means valid.
    """
    try:
        build_task(data, now=now, task_type=task_type, existing=existing)
    except EntityValidationError as err:
        return {err.field: err.translation_key}
    return {}
