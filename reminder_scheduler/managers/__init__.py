"""Managers for stateful task workflows."""

from .task_manager import TaskManager

__all__ = ["TaskManager"]
