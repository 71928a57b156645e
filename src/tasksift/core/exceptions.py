"""Core exception types for tasksift."""

from __future__ import annotations

from typing import Iterable, List


class TasksiftError(Exception):
    """Base error for tasksift runtime failures."""


class ConfigValidationError(TasksiftError):
    """Raised when search configuration cannot be used as loaded.

    Every problem found is kept in ``issues`` so callers can show them all
    at once instead of fixing them one run at a time.
    """

    def __init__(self, issues: Iterable[str], *, source: str = "config") -> None:
        self.issues: List[str] = list(issues)
        self.source = source
        summary = "; ".join(self.issues) if self.issues else "invalid configuration"
        super().__init__(f"{source}: {summary}")


class MalformedResponseError(TasksiftError):
    """Raised when a language-model reply cannot be read as a query draft."""
