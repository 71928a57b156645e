"""Public programmatic API surface for tasksift."""

from tasksift.api.client import TasksiftClient
from tasksift.api.exceptions import ConfigValidationError, TasksiftError

__all__ = ["ConfigValidationError", "TasksiftClient", "TasksiftError"]
