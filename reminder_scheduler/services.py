# File: services.py
"""Request handlers for reminders and calendar events.

Each handler takes the path, query and body values of one request and returns
a ServiceResponse carrying an HTTP-style status and a JSON-serializable body:
`{"success": True, "data": ...}` on success, `{"success": False, "error": msg}`
on failure. Transport (routing, auth, JSON encoding) is left to the caller.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import voluptuous as vol

from . import const, data_builders as db
from .managers.task_manager import TaskManager
from .store import StaleTaskError, TaskNotFoundError, TaskStore
from .type_defs import ServiceBody
from .utils.dt_utils import dt_now_utc

# Non-empty string (ids may arrive as numbers)
_REQUIRED_STRING = vol.All(str, vol.Length(min=1))
_REQUIRED_ID = vol.All(vol.Any(str, int), vol.Coerce(str), vol.Length(min=1))
_OPTIONAL_STRING = vol.Any(None, str)

# Recurrence fields are validated strictly by data_builders; the schema only
# checks their JSON types.
_RECURRENCE_COMMON = {
    vol.Optional(const.FIELD_INTERVAL): vol.Any(None, int, str),
    vol.Optional(const.FIELD_RECURRING_DAYS): vol.Any(None, list, str),
    vol.Optional(const.FIELD_CLAMP_BASIS): _OPTIONAL_STRING,
}

CREATE_REMINDER_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_USER_ID): _REQUIRED_ID,
        vol.Required(const.FIELD_TITLE): _REQUIRED_STRING,
        vol.Required(const.FIELD_DUE_DATE): _REQUIRED_STRING,
        vol.Optional(const.FIELD_DESCRIPTION): _OPTIONAL_STRING,
        vol.Optional(const.FIELD_REPEAT_TYPE): _OPTIONAL_STRING,
        vol.Optional(const.FIELD_REPEAT_UNTIL): _OPTIONAL_STRING,
        **_RECURRENCE_COMMON,
    },
    extra=vol.REMOVE_EXTRA,
)

UPDATE_REMINDER_SCHEMA = vol.Schema(
    {
        vol.Optional(const.FIELD_TITLE): str,
        vol.Optional(const.FIELD_DUE_DATE): str,
        vol.Optional(const.FIELD_DESCRIPTION): _OPTIONAL_STRING,
        vol.Optional(const.FIELD_REPEAT_TYPE): _OPTIONAL_STRING,
        vol.Optional(const.FIELD_REPEAT_UNTIL): _OPTIONAL_STRING,
        **_RECURRENCE_COMMON,
    },
    extra=vol.REMOVE_EXTRA,
)

CREATE_EVENT_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_USER_ID): _REQUIRED_ID,
        vol.Required(const.FIELD_TITLE): _REQUIRED_STRING,
        vol.Required(const.FIELD_DATE): _REQUIRED_STRING,
        vol.Optional(const.FIELD_TIME): _OPTIONAL_STRING,
        vol.Optional(const.FIELD_DESCRIPTION): _OPTIONAL_STRING,
        vol.Optional(const.FIELD_TYPE): _OPTIONAL_STRING,
        vol.Optional(const.FIELD_RECURRING): _OPTIONAL_STRING,
        vol.Optional(const.FIELD_RECURRING_END_DATE): _OPTIONAL_STRING,
        **_RECURRENCE_COMMON,
    },
    extra=vol.REMOVE_EXTRA,
)

UPDATE_EVENT_SCHEMA = vol.Schema(
    {
        vol.Optional(const.FIELD_TITLE): str,
        vol.Optional(const.FIELD_DATE): str,
        vol.Optional(const.FIELD_TIME): _OPTIONAL_STRING,
        vol.Optional(const.FIELD_DESCRIPTION): _OPTIONAL_STRING,
        vol.Optional(const.FIELD_TYPE): _OPTIONAL_STRING,
        vol.Optional(const.FIELD_COMPLETED): bool,
        vol.Optional(const.FIELD_RECURRING): _OPTIONAL_STRING,
        vol.Optional(const.FIELD_RECURRING_END_DATE): _OPTIONAL_STRING,
        **_RECURRENCE_COMMON,
    },
    extra=vol.REMOVE_EXTRA,
)

_REMINDER_REQUIRED = (const.FIELD_USER_ID, const.FIELD_TITLE, const.FIELD_DUE_DATE)
_EVENT_REQUIRED = (const.FIELD_USER_ID, const.FIELD_TITLE, const.FIELD_DATE)


@dataclass
class ServiceResponse:
    """Status code and JSON body of a handled request."""

    status: int
    body: ServiceBody


def _ok(data: Any, status: int = const.HTTP_OK) -> ServiceResponse:
    return ServiceResponse(status, {"success": True, "data": data})


def _error(status: int, message: str) -> ServiceResponse:
    return ServiceResponse(status, {"success": False, "error": message})


def parse_days(value: Any) -> int:
    """Parse the `days` query value; anything unusable falls back to the default."""
    if isinstance(value, bool):
        return const.DEFAULT_UPCOMING_DAYS
    try:
        days = int(value)
    except (TypeError, ValueError):
        return const.DEFAULT_UPCOMING_DAYS
    return days if days > 0 else const.DEFAULT_UPCOMING_DAYS


def parse_flag(value: Any) -> bool:
    """Parse a boolean query flag ("true" or True)."""
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return value is True


class ReminderService:
    """Handlers for the reminder and calendar event endpoints."""

    def __init__(
        self,
        store: TaskStore,
        clock: Callable[[], datetime] = dt_now_utc,
    ) -> None:
        """Initialize the service.

        Args:
            store: Task repository
            clock: Returns the current aware datetime
        """
        self.manager = TaskManager(store)
        self._clock = clock

    # =========================================================================
    # ERROR MAPPING
    # =========================================================================

    @staticmethod
    def _schema_error(
        err: vol.Invalid, required: tuple[str, ...], missing_key: str
    ) -> ServiceResponse:
        field = str(err.path[0]) if err.path else ""
        if not field or field in required:
            return _error(const.HTTP_BAD_REQUEST, const.ERROR_MESSAGES[missing_key])
        return _error(
            const.HTTP_BAD_REQUEST,
            const.ERROR_MESSAGES[const.TRANS_KEY_INVALID_FIELD].format(field=field),
        )

    def _run(self, action: Callable[[], ServiceResponse]) -> ServiceResponse:
        """Run a handler body and map domain errors to status codes."""
        try:
            return action()
        except db.EntityValidationError as err:
            const.LOGGER.debug("Rejected request: %s", err.message)
            return _error(const.HTTP_BAD_REQUEST, err.message)
        except TaskNotFoundError as err:
            return _error(const.HTTP_NOT_FOUND, str(err))
        except StaleTaskError as err:
            const.LOGGER.warning("WARNING: %s", err)
            return _error(const.HTTP_CONFLICT, str(err))

    # =========================================================================
    # SHARED HANDLERS
    # =========================================================================

    def _create(
        self,
        body: dict[str, Any],
        task_type: str,
    ) -> ServiceResponse:
        is_event = task_type == const.TASK_TYPE_EVENT
        schema = CREATE_EVENT_SCHEMA if is_event else CREATE_REMINDER_SCHEMA
        try:
            payload = schema(body or {})
        except vol.Invalid as err:
            return self._schema_error(
                err,
                _EVENT_REQUIRED if is_event else _REMINDER_REQUIRED,
                const.TRANS_KEY_MISSING_EVENT_FIELDS
                if is_event
                else const.TRANS_KEY_MISSING_REMINDER_FIELDS,
            )

        def action() -> ServiceResponse:
            mapper = db.map_event_payload if is_event else db.map_reminder_payload
            task = self.manager.create_task(mapper(payload), self._clock(), task_type)
            return _ok(task, const.HTTP_CREATED)

        return self._run(action)

    def _update(
        self,
        task_id: str,
        body: dict[str, Any],
        task_type: str,
    ) -> ServiceResponse:
        is_event = task_type == const.TASK_TYPE_EVENT
        schema = UPDATE_EVENT_SCHEMA if is_event else UPDATE_REMINDER_SCHEMA
        try:
            payload = schema(body or {})
        except vol.Invalid as err:
            return self._schema_error(err, (), const.TRANS_KEY_NO_FIELDS_TO_UPDATE)

        def action() -> ServiceResponse:
            mapper = db.map_event_payload if is_event else db.map_reminder_payload
            task = self.manager.update_task(
                task_id, mapper(payload), self._clock(), task_type
            )
            return _ok(task)

        return self._run(action)

    def _complete(self, task_id: str, task_type: str) -> ServiceResponse:
        def action() -> ServiceResponse:
            task, _effect = self.manager.complete_task(
                task_id, self._clock(), task_type
            )
            return _ok(task)

        return self._run(action)

    def _upcoming(self, user_id: str, days: Any, task_type: str) -> ServiceResponse:
        entries = self.manager.get_upcoming(
            str(user_id), self._clock(), parse_days(days), task_type
        )
        return _ok(entries)

    def _delete(self, task_id: str, task_type: str, message: str) -> ServiceResponse:
        try:
            self.manager.get_task(task_id, task_type)
        except TaskNotFoundError:
            return ServiceResponse(const.HTTP_OK, {"success": True, "message": message})
        self.manager.delete_task(task_id)
        return ServiceResponse(const.HTTP_OK, {"success": True, "message": message})

    # =========================================================================
    # REMINDERS
    # =========================================================================

    def create_reminder(self, body: dict[str, Any]) -> ServiceResponse:
        """POST /reminders."""
        return self._create(body, const.TASK_TYPE_REMINDER)

    def list_reminders(
        self, user_id: str, include_completed: Any = False
    ) -> ServiceResponse:
        """GET /reminders/user/:userId?includeCompleted=."""
        return _ok(
            self.manager.list_tasks(
                str(user_id), const.TASK_TYPE_REMINDER, parse_flag(include_completed)
            )
        )

    def upcoming_reminders(
        self, user_id: str, days: Any = const.DEFAULT_UPCOMING_DAYS
    ) -> ServiceResponse:
        """GET /reminders/upcoming/:userId?days=."""
        return self._upcoming(user_id, days, const.TASK_TYPE_REMINDER)

    def complete_reminder(self, reminder_id: str) -> ServiceResponse:
        """PATCH /reminders/:id/complete."""
        return self._complete(reminder_id, const.TASK_TYPE_REMINDER)

    def update_reminder(
        self, reminder_id: str, body: dict[str, Any]
    ) -> ServiceResponse:
        """PUT /reminders/:id."""
        return self._update(reminder_id, body, const.TASK_TYPE_REMINDER)

    def delete_reminder(self, reminder_id: str) -> ServiceResponse:
        """DELETE /reminders/:id. Succeeds even if the reminder is already gone."""
        return self._delete(
            reminder_id, const.TASK_TYPE_REMINDER, const.MSG_REMINDER_DELETED
        )

    # =========================================================================
    # CALENDAR EVENTS
    # =========================================================================

    def create_calendar_event(self, body: dict[str, Any]) -> ServiceResponse:
        """POST /calendar-events."""
        return self._create(body, const.TASK_TYPE_EVENT)

    def list_calendar_events(self, user_id: str) -> ServiceResponse:
        """GET /calendar-events/user/:userId, ordered by date then time."""
        return _ok(self.manager.list_tasks(str(user_id), const.TASK_TYPE_EVENT))

    def get_calendar_event(self, event_id: str) -> ServiceResponse:
        """GET /calendar-events/:id."""
        return self._run(
            lambda: _ok(self.manager.get_task(event_id, const.TASK_TYPE_EVENT))
        )

    def upcoming_calendar_events(
        self, user_id: str, days: Any = const.DEFAULT_UPCOMING_DAYS
    ) -> ServiceResponse:
        """GET /calendar-events/upcoming/:userId?days=."""
        return self._upcoming(user_id, days, const.TASK_TYPE_EVENT)

    def complete_calendar_event(self, event_id: str) -> ServiceResponse:
        """PATCH /calendar-events/:id/complete."""
        return self._complete(event_id, const.TASK_TYPE_EVENT)

    def update_calendar_event(
        self, event_id: str, body: dict[str, Any]
    ) -> ServiceResponse:
        """PUT /calendar-events/:id."""
        return self._update(event_id, body, const.TASK_TYPE_EVENT)

    def delete_calendar_event(self, event_id: str) -> ServiceResponse:
        """DELETE /calendar-events/:id."""
        return self._delete(event_id, const.TASK_TYPE_EVENT, const.MSG_EVENT_DELETED)
