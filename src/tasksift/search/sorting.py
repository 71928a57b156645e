"""Deterministic ordering of scored and unscored tasks.

Scored tasks are ordered by final score, highest first. Scores closer than
``DEFAULT_EPSILON`` to the first score of their run are treated as tied and
ordered by the configured tie-break criteria. A comparison on task id always
comes last, so the order is total and never depends on input order.

Criteria directions:
    due_date      earliest first, tasks without a due date last
    priority      1 before 4, tasks without a priority last
    status        glossary sort position, unknown categories last
    created       newest first, tasks without a creation date last
    alphabetical  case-folded text, A to Z
"""

from __future__ import annotations

import datetime
import logging
from typing import Callable, Dict, Iterable, List, Sequence, Tuple

from tasksift.search.glossary import PropertyGlossary
from tasksift.search.types import ScoredTask, TaskRecord

logger = logging.getLogger(__name__)

DEFAULT_EPSILON = 1e-4
DEFAULT_TIE_BREAKERS = ("due_date", "priority", "status", "alphabetical")
MISSING_PRIORITY = 5

SortKey = Callable[[TaskRecord, PropertyGlossary], tuple]


def _due_date_key(task: TaskRecord, glossary: PropertyGlossary) -> tuple:
    return (task.due_date is None, task.due_date or datetime.date.max)


def _priority_key(task: TaskRecord, glossary: PropertyGlossary) -> tuple:
    return (task.priority is None, task.priority or MISSING_PRIORITY)


def _status_key(task: TaskRecord, glossary: PropertyGlossary) -> tuple:
    if task.status is None:
        return (glossary.effective_order(None),)
    key = glossary.resolve_status(task.status, from_task=True)
    return (glossary.effective_order(key),)


def _created_key(task: TaskRecord, glossary: PropertyGlossary) -> tuple:
    if task.created_date is None:
        return (True, 0)
    return (False, -task.created_date.toordinal())


def _alphabetical_key(task: TaskRecord, glossary: PropertyGlossary) -> tuple:
    return (task.text.casefold(),)


SORT_CRITERIA: Dict[str, SortKey] = {
    "due_date": _due_date_key,
    "priority": _priority_key,
    "status": _status_key,
    "created": _created_key,
    "alphabetical": _alphabetical_key,
}

CRITERION_ALIASES = {
    "duedate": "due_date",
    "due": "due_date",
    "created_date": "created",
    "createddate": "created",
    "alpha": "alphabetical",
    "text": "alphabetical",
}


def normalize_criteria(names: Iterable[str]) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
    """Canonicalize tie-break names; return (criteria, warnings).

    ``relevance`` is rejected since it is already part of the final score.
    Unknown names and repeats are dropped with a warning.
    """
    criteria: List[str] = []
    warnings: List[str] = []
    for name in names:
        raw = str(name).strip()
        lowered = raw.lower().replace("-", "_")
        canonical = CRITERION_ALIASES.get(lowered.replace("_", ""), lowered)
        if canonical == "relevance":
            warnings.append(
                "'relevance' cannot be a tie-breaker; it is already part of the final score."
            )
            continue
        if canonical not in SORT_CRITERIA:
            warnings.append(f"Unknown sort criterion '{raw}' ignored.")
            continue
        if canonical in criteria:
            continue
        criteria.append(canonical)
    return tuple(criteria), tuple(warnings)


def _tie_key(criteria: Sequence[str], glossary: PropertyGlossary) -> Callable[[TaskRecord], tuple]:
    getters = [SORT_CRITERIA[name] for name in criteria]

    def key(task: TaskRecord) -> tuple:
        parts: List[object] = []
        for getter in getters:
            parts.extend(getter(task, glossary))
        parts.append(task.id)
        return tuple(parts)

    return key


def sort_scored_tasks(
    scored: Iterable[ScoredTask],
    tie_breakers: Sequence[str],
    glossary: PropertyGlossary,
    *,
    epsilon: float = DEFAULT_EPSILON,
    presorted: bool = False,
) -> List[ScoredTask]:
    """Order scored tasks by final score, then tie-break criteria, then id.

    With ``presorted=True`` the input is trusted to be ordered by score
    already and only the tie groups are resolved.
    """
    criteria, warnings = normalize_criteria(tie_breakers)
    for warning in warnings:
        logger.warning(warning)
    tie_key = _tie_key(criteria, glossary)

    items = list(scored)
    if not presorted:
        items.sort(key=lambda item: -item.final_score)

    ordered: List[ScoredTask] = []
    group: List[ScoredTask] = []
    anchor = 0.0
    for item in items:
        if group and abs(anchor - item.final_score) <= epsilon:
            group.append(item)
            continue
        ordered.extend(sorted(group, key=lambda s: tie_key(s.task)))
        group = [item]
        anchor = item.final_score
    ordered.extend(sorted(group, key=lambda s: tie_key(s.task)))
    return ordered


def sort_tasks_multi_criteria(
    tasks: Iterable[TaskRecord],
    criteria: Sequence[str],
    glossary: PropertyGlossary,
) -> List[TaskRecord]:
    """Order unscored tasks by criteria alone, for browsing without a score."""
    normalized, warnings = normalize_criteria(criteria)
    for warning in warnings:
        logger.warning(warning)
    return sorted(tasks, key=_tie_key(normalized, glossary))
