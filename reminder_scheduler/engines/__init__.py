"""Engine modules for the reminder scheduler.

Contains specialized computation engines:
- schedule_engine: Recurrence calculation and RRULE generation
- task_engine: Completion state transitions and pending-occurrence logic
- upcoming_engine: Upcoming-window projection
"""

from .schedule_engine import RecurrenceEngine, calculate_next_occurrence
from .task_engine import TaskEngine, TransitionEffect
from .upcoming_engine import UpcomingEngine

__all__ = [
    "RecurrenceEngine",
    "TaskEngine",
    "TransitionEffect",
    "UpcomingEngine",
    "calculate_next_occurrence",
]
