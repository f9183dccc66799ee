# File: const.py
"""Constants for the reminder scheduler.

This file centralizes storage keys, recurrence options, defaults, boundary
field names and error messages for consistency across the package.
"""

import logging

# Logger
LOGGER = logging.getLogger(__package__)

# Storage and Versioning
STORAGE_VERSION = 1

# ------------------------------------------------------------------------------------------------
# Storage Data Keys
# ------------------------------------------------------------------------------------------------
DATA_META = "meta"
DATA_META_SCHEMA_VERSION = "schema_version"
DATA_TASKS = "tasks"

# Task record fields
DATA_TASK_INTERNAL_ID = "internal_id"
DATA_TASK_USER_ID = "user_id"
DATA_TASK_TYPE = "task_type"
DATA_TASK_TITLE = "title"
DATA_TASK_DESCRIPTION = "description"
DATA_TASK_EVENT_TYPE = "event_type"
DATA_TASK_ANCHOR_DATE = "anchor_date"
DATA_TASK_ANCHOR_TIME = "anchor_time"
DATA_TASK_RECURRENCE = "recurrence"
DATA_TASK_COMPLETED = "completed"
DATA_TASK_LAST_COMPLETED_OCCURRENCE = "last_completed_occurrence"
DATA_TASK_REVISION = "revision"
DATA_TASK_CREATED_AT = "created_at"
DATA_TASK_UPDATED_AT = "updated_at"

# Recurrence config fields
DATA_RECURRENCE_FREQUENCY = "frequency"
DATA_RECURRENCE_INTERVAL = "interval"
DATA_RECURRENCE_APPLICABLE_DAYS = "applicable_days"
DATA_RECURRENCE_UNTIL = "until"
DATA_RECURRENCE_CLAMP_BASIS = "clamp_basis"

# Fields whose change invalidates the acknowledged occurrence
SCHEDULE_FIELDS = frozenset(
    {
        DATA_TASK_ANCHOR_DATE,
        DATA_TASK_ANCHOR_TIME,
        DATA_TASK_RECURRENCE,
    }
)

# Task types
TASK_TYPE_REMINDER = "reminder"
TASK_TYPE_EVENT = "event"

DEFAULT_EVENT_TYPE = "event"

# ------------------------------------------------------------------------------------------------
# Recurrence
# ------------------------------------------------------------------------------------------------
FREQUENCY_NONE = "none"
FREQUENCY_DAILY = "daily"
FREQUENCY_WEEKLY = "weekly"
FREQUENCY_BIWEEKLY = "biweekly"
FREQUENCY_MONTHLY = "monthly"
FREQUENCY_YEARLY = "yearly"

# Frequencies stored on a task (biweekly is normalized to weekly/2)
FREQUENCY_OPTIONS = [
    FREQUENCY_NONE,
    FREQUENCY_DAILY,
    FREQUENCY_WEEKLY,
    FREQUENCY_MONTHLY,
    FREQUENCY_YEARLY,
]

# Boundary aliases -> (frequency, interval override)
FREQUENCY_ALIASES: dict[str, tuple[str, int | None]] = {
    FREQUENCY_BIWEEKLY: (FREQUENCY_WEEKLY, 2),
}

# Clamp basis for month/year arithmetic
CLAMP_BASIS_ANCHOR = "anchor"
CLAMP_BASIS_PREVIOUS = "previous"
CLAMP_BASIS_OPTIONS = [CLAMP_BASIS_ANCHOR, CLAMP_BASIS_PREVIOUS]

# Weekdays (0=Monday, matches datetime.weekday())
WEEKDAY_OPTIONS = {
    "mon": "Monday",
    "tue": "Tuesday",
    "wed": "Wednesday",
    "thu": "Thursday",
    "fri": "Friday",
    "sat": "Saturday",
    "sun": "Sunday",
}
RRULE_WEEKDAY_CODES = ["MO", "TU", "WE", "TH", "FR", "SA", "SU"]
DAYS_PER_WEEK = 7

# ------------------------------------------------------------------------------------------------
# Task States
# ------------------------------------------------------------------------------------------------
TASK_STATE_PENDING = "pending"
TASK_STATE_ACKNOWLEDGED = "acknowledged"
TASK_STATE_DONE = "done"
TASK_STATE_EXHAUSTED = "exhausted"

# ------------------------------------------------------------------------------------------------
# Defaults and Limits
# ------------------------------------------------------------------------------------------------
DEFAULT_INTERVAL = 1
DEFAULT_UPCOMING_DAYS = 7
DEFAULT_REMINDER_TIME = "09:00"
DEFAULT_CLAMP_BASIS = CLAMP_BASIS_ANCHOR

# Anchors older than this are rejected so catch-up iteration stays bounded
MAX_ANCHOR_AGE_DAYS = 1830

# Safety limit for occurrence stepping loops
MAX_RECURRENCE_STEPS = 4000

# Safety limit for series expansion (get_occurrences)
DEFAULT_OCCURRENCE_LIMIT = 100

# ------------------------------------------------------------------------------------------------
# Boundary Fields (request payloads)
# ------------------------------------------------------------------------------------------------
FIELD_USER_ID = "userId"
FIELD_TITLE = "title"
FIELD_DESCRIPTION = "description"
FIELD_TYPE = "type"
FIELD_COMPLETED = "completed"

# Reminders
FIELD_DUE_DATE = "dueDate"
FIELD_REPEAT_TYPE = "repeatType"
FIELD_REPEAT_UNTIL = "repeatUntil"
FIELD_INTERVAL = "interval"

# Calendar events
FIELD_DATE = "date"
FIELD_TIME = "time"
FIELD_RECURRING = "recurring"
FIELD_RECURRING_DAYS = "recurringDays"
FIELD_RECURRING_END_DATE = "recurringEndDate"

# Shared optional
FIELD_CLAMP_BASIS = "clampBasis"

# ------------------------------------------------------------------------------------------------
# HTTP-style status codes returned by the service layer
# ------------------------------------------------------------------------------------------------
HTTP_OK = 200
HTTP_CREATED = 201
HTTP_BAD_REQUEST = 400
HTTP_NOT_FOUND = 404
HTTP_CONFLICT = 409

# ------------------------------------------------------------------------------------------------
# Error Translation Keys
# ------------------------------------------------------------------------------------------------
TRANS_KEY_MISSING_REMINDER_FIELDS = "missing_reminder_fields"
TRANS_KEY_MISSING_EVENT_FIELDS = "missing_event_fields"
TRANS_KEY_INVALID_TITLE = "invalid_title"
TRANS_KEY_INVALID_DATE_FORMAT = "invalid_date_format"
TRANS_KEY_INVALID_DATE_VALUE = "invalid_date_value"
TRANS_KEY_INVALID_TIME_FORMAT = "invalid_time_format"
TRANS_KEY_INVALID_FREQUENCY = "invalid_frequency"
TRANS_KEY_INVALID_INTERVAL = "invalid_interval"
TRANS_KEY_INVALID_WEEKDAY = "invalid_weekday"
TRANS_KEY_INVALID_CLAMP_BASIS = "invalid_clamp_basis"
TRANS_KEY_UNTIL_BEFORE_ANCHOR = "until_before_anchor"
TRANS_KEY_ANCHOR_TOO_OLD = "anchor_too_old"
TRANS_KEY_NO_FIELDS_TO_UPDATE = "no_fields_to_update"
TRANS_KEY_TASK_NOT_FOUND = "task_not_found"
TRANS_KEY_STALE_TASK = "stale_task"
TRANS_KEY_INVALID_FIELD = "invalid_field"

ERROR_MESSAGES: dict[str, str] = {
    TRANS_KEY_MISSING_REMINDER_FIELDS: "userId, title, and dueDate are required",
    TRANS_KEY_MISSING_EVENT_FIELDS: "userId, title, and date are required",
    TRANS_KEY_INVALID_TITLE: "Title must be a non-empty string",
    TRANS_KEY_INVALID_DATE_FORMAT: "Invalid date format for {field}. Use YYYY-MM-DD",
    TRANS_KEY_INVALID_DATE_VALUE: "Invalid date value for {field}: {value}",
    TRANS_KEY_INVALID_TIME_FORMAT: (
        "Invalid time format for {field}. Use HH:mm (24-hour format)"
    ),
    TRANS_KEY_INVALID_FREQUENCY: "Unsupported repeat pattern: {value}",
    TRANS_KEY_INVALID_INTERVAL: "Interval must be a positive integer, got {value}",
    TRANS_KEY_INVALID_WEEKDAY: "Unknown weekday: {value}",
    TRANS_KEY_INVALID_CLAMP_BASIS: "Unsupported clamp basis: {value}",
    TRANS_KEY_UNTIL_BEFORE_ANCHOR: (
        "Repeat end date {until} is before the first occurrence {anchor}"
    ),
    TRANS_KEY_ANCHOR_TOO_OLD: "Date {value} is too far in the past",
    TRANS_KEY_NO_FIELDS_TO_UPDATE: "No valid fields to update",
    TRANS_KEY_TASK_NOT_FOUND: "Task {task_id} not found",
    TRANS_KEY_STALE_TASK: "Task {task_id} was modified concurrently",
    TRANS_KEY_INVALID_FIELD: "Invalid value for {field}",
}

# Success messages
MSG_REMINDER_DELETED = "Reminder deleted successfully"
MSG_EVENT_DELETED = "Calendar event deleted successfully"
