"""Core building blocks shared by tasksift components."""

from tasksift.core.exceptions import (
    ConfigValidationError,
    MalformedResponseError,
    TasksiftError,
)

__all__ = ["ConfigValidationError", "MalformedResponseError", "TasksiftError"]
