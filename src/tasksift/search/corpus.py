"""Corpus provider boundary and the bundled in-memory provider."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, List, Protocol, Union

from tasksift.core.exceptions import TasksiftError
from tasksift.search.types import PropertyFilters, TaskRecord

logger = logging.getLogger(__name__)


class CorpusProvider(Protocol):
    """Source of candidate tasks.

    Providers may use ``filters`` to narrow what they return, or ignore them.
    Candidates are always re-validated by the pipeline.
    """

    def fetch_candidates(self, filters: PropertyFilters) -> List[TaskRecord]:
        ...


class InMemoryCorpus:
    """Holds a fixed snapshot of tasks and returns all of them."""

    def __init__(self, tasks: Iterable[TaskRecord]):
        self._tasks = tuple(tasks)

    def __len__(self) -> int:
        return len(self._tasks)

    @property
    def tasks(self) -> tuple:
        return self._tasks

    def fetch_candidates(self, filters: PropertyFilters) -> List[TaskRecord]:
        return list(self._tasks)


def _task_rows(data: Any) -> list:
    if isinstance(data, dict):
        data = data.get("tasks", [])
    if not isinstance(data, list):
        raise TasksiftError("Task file must contain a list of tasks or a 'tasks' list")
    return data


def load_tasks_json(path: Union[str, Path]) -> InMemoryCorpus:
    """Load tasks from a JSON file holding a list (or ``{"tasks": [...]}``)."""
    file_path = Path(path).expanduser()
    try:
        data = json.loads(file_path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise TasksiftError(f"Task file not found: {file_path}") from exc
    except json.JSONDecodeError as exc:
        raise TasksiftError(f"Task file {file_path} is not valid JSON: {exc}") from exc

    tasks = []
    for index, row in enumerate(_task_rows(data)):
        if not isinstance(row, dict) or "id" not in row:
            logger.warning("skipping task entry %d in %s: no id", index, file_path)
            continue
        tasks.append(TaskRecord.from_dict(row))
    logger.info("loaded %d tasks from %s", len(tasks), file_path)
    return InMemoryCorpus(tasks)
