"""Public exception surface for tasksift API consumers."""

from tasksift.core.exceptions import ConfigValidationError, TasksiftError

__all__ = ["ConfigValidationError", "TasksiftError"]
