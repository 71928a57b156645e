"""Re-validation of corpus candidates against a structured query.

Corpus providers may push filters down or ignore them entirely, so every
constraint is checked again here before scoring.
"""

from __future__ import annotations

import datetime
from typing import Iterable, List, Optional, Sequence

from tasksift.search.dates import matches_due_date
from tasksift.search.glossary import PropertyGlossary
from tasksift.search.types import (
    PriorityAny,
    PriorityFilter,
    PriorityLevels,
    PriorityUnset,
    StructuredQuery,
    TaskRecord,
)


def matches_keywords(text: str, keywords: Sequence[str]) -> bool:
    """True if any keyword occurs in ``text`` (case-insensitive). No keywords matches all."""
    if not keywords:
        return True
    lowered = text.lower()
    return any(keyword.lower() in lowered for keyword in keywords if keyword)


def matches_priority(priority: Optional[int], priority_filter: PriorityFilter) -> bool:
    if isinstance(priority_filter, PriorityAny):
        return priority is not None
    if isinstance(priority_filter, PriorityUnset):
        return priority is None
    if isinstance(priority_filter, PriorityLevels):
        return priority in priority_filter.levels
    return True


def matches_status(
    status: Optional[str], wanted: Sequence[str], glossary: PropertyGlossary
) -> bool:
    if not wanted:
        return True
    if status is None:
        return False
    key = glossary.resolve_status(status, from_task=True) or status
    return key in wanted


def matches_tags(tags: Sequence[str], wanted: Sequence[str]) -> bool:
    if not wanted:
        return True
    have = {tag.lower().lstrip("#") for tag in tags}
    return any(tag.lower().lstrip("#") in have for tag in wanted)


def matches_folder(task: TaskRecord, folder: Optional[str]) -> bool:
    if not folder:
        return True
    needle = folder.lower()
    return needle in task.folder.lower() or needle in task.location.lower()


def matches_filters(
    task: TaskRecord,
    query: StructuredQuery,
    glossary: PropertyGlossary,
    today: datetime.date,
) -> bool:
    """Check a candidate against every property filter and the keyword set."""
    if query.priority_filter is not None and not matches_priority(
        task.priority, query.priority_filter
    ):
        return False
    if query.due_date_filter is not None and not matches_due_date(
        task.due_date, query.due_date_filter, today
    ):
        return False
    if not matches_status(task.status, query.status_filter, glossary):
        return False
    if not matches_tags(task.tags, query.tags_filter):
        return False
    if not matches_folder(task, query.folder_filter):
        return False
    return matches_keywords(task.text, query.expanded_keywords)


def filter_candidates(
    tasks: Iterable[TaskRecord],
    query: StructuredQuery,
    glossary: PropertyGlossary,
    today: datetime.date,
) -> List[TaskRecord]:
    return [task for task in tasks if matches_filters(task, query, glossary, today)]
