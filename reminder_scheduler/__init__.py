"""Recurrence and scheduling engine for reminders and calendar events.

A stored task (a reminder or a calendar event with an optional repeat
pattern) expands into concrete occurrences. Upcoming windows are computed from
those occurrences, and completing a recurring task acknowledges one
occurrence at a time.
"""

from .data_builders import EntityValidationError
from .managers import TaskManager
from .services import ReminderService, ServiceResponse
from .store import InMemoryTaskStore, StaleTaskError, TaskNotFoundError, TaskStore

__all__ = [
    "EntityValidationError",
    "InMemoryTaskStore",
    "ReminderService",
    "ServiceResponse",
    "StaleTaskError",
    "TaskManager",
    "TaskNotFoundError",
    "TaskStore",
]
