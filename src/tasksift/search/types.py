"""Value types shared by the query-interpretation and ranking pipeline."""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Tuple, Union

from tasksift.search.failures import ParseOutcome, ServiceFailure


def _parse_date(value: Any) -> Optional[datetime.date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    try:
        return datetime.date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def _parse_priority(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        priority = int(value)
    except (TypeError, ValueError):
        return None
    return priority if 1 <= priority <= 4 else None


@dataclass(frozen=True)
class TaskRecord:
    """Read-only snapshot of one task handed over by a corpus provider."""

    id: str
    text: str
    location: str = ""
    priority: Optional[int] = None
    due_date: Optional[datetime.date] = None
    created_date: Optional[datetime.date] = None
    completed_date: Optional[datetime.date] = None
    status: Optional[str] = None
    tags: Tuple[str, ...] = ()
    folder: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TaskRecord":
        """Build a record from a loosely typed mapping (JSON, provider rows)."""
        raw_tags = data.get("tags") or ()
        if isinstance(raw_tags, str):
            raw_tags = raw_tags.split()
        tags = tuple(str(tag).lstrip("#") for tag in raw_tags if str(tag).strip("#"))
        status = data.get("status")
        return cls(
            id=str(data["id"]),
            text=str(data.get("text", "")),
            location=str(data.get("location", "")),
            priority=_parse_priority(data.get("priority")),
            due_date=_parse_date(data.get("due_date", data.get("due"))),
            created_date=_parse_date(data.get("created_date", data.get("created"))),
            completed_date=_parse_date(
                data.get("completed_date", data.get("completed"))
            ),
            status=str(status) if status not in (None, "") else None,
            tags=tags,
            folder=str(data.get("folder", "")),
        )


# --- Priority filter variants ---


@dataclass(frozen=True)
class PriorityLevels:
    """Match tasks whose priority is one of ``levels``."""

    levels: Tuple[int, ...]


@dataclass(frozen=True)
class PriorityAny:
    """Match any task that has a priority set."""


@dataclass(frozen=True)
class PriorityUnset:
    """Match tasks without a priority."""


PriorityFilter = Union[PriorityLevels, PriorityAny, PriorityUnset]


# --- Due-date filter variants ---

RANGE_OPERATORS = ("<", "<=", ">", ">=", "between")


@dataclass(frozen=True)
class DueDateKeyword:
    """Symbolic due-date value such as ``today``, ``overdue`` or ``week``."""

    keyword: str


@dataclass(frozen=True)
class DueDateExact:
    """Match tasks due on exactly ``day``."""

    day: datetime.date


@dataclass(frozen=True)
class DueDateRange:
    """Match tasks whose due date satisfies ``operator`` against ``reference``.

    ``between`` is inclusive on both ends and uses ``end`` as the upper bound.
    """

    operator: str
    reference: datetime.date
    end: Optional[datetime.date] = None

    def __post_init__(self) -> None:
        if self.operator not in RANGE_OPERATORS:
            raise ValueError(f"Unknown range operator: {self.operator!r}")
        if self.operator == "between" and self.end is None:
            raise ValueError("A 'between' range needs an end date")


DueDateFilter = Union[DueDateKeyword, DueDateExact, DueDateRange]


@dataclass(frozen=True)
class PropertyFilters:
    """Property constraints passed to a corpus provider for optional pushdown."""

    priority: Optional[PriorityFilter] = None
    due_date: Optional[DueDateFilter] = None
    status: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()
    folder: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return (
            self.priority is None
            and self.due_date is None
            and not self.status
            and not self.tags
            and not self.folder
        )


@dataclass(frozen=True)
class StructuredQuery:
    """Normalized form of one user query.

    ``expanded_keywords`` always starts with ``core_keywords``. Core terms
    missing from, or out of place in, a supplied expansion are moved to the
    front on construction.
    """

    core_keywords: Tuple[str, ...] = ()
    expanded_keywords: Tuple[str, ...] = ()
    priority_filter: Optional[PriorityFilter] = None
    due_date_filter: Optional[DueDateFilter] = None
    status_filter: Tuple[str, ...] = ()
    tags_filter: Tuple[str, ...] = ()
    folder_filter: Optional[str] = None
    is_vague: bool = False
    time_context: Optional[str] = None
    confidence: Optional[float] = None
    vagueness_ratio: float = 0.0

    def __post_init__(self) -> None:
        head = tuple(self.core_keywords)
        if self.expanded_keywords[: len(head)] == head:
            return
        head_lower = {kw.lower() for kw in head}
        tail = tuple(kw for kw in self.expanded_keywords if kw.lower() not in head_lower)
        object.__setattr__(self, "expanded_keywords", head + tail)

    def property_filters(self) -> PropertyFilters:
        return PropertyFilters(
            priority=self.priority_filter,
            due_date=self.due_date_filter,
            status=self.status_filter,
            tags=self.tags_filter,
            folder=self.folder_filter,
        )

    def has_constraints(self) -> bool:
        """True when the query carries any keyword or property filter."""
        return bool(self.core_keywords) or not self.property_filters().is_empty


# --- Scoring configuration ---


@dataclass(frozen=True)
class DueDateScores:
    overdue: float = 1.5
    within_week: float = 1.0
    within_month: float = 0.5
    later: float = 0.2
    none: float = 0.1


@dataclass(frozen=True)
class PriorityScores:
    levels: Tuple[float, ...] = (1.0, 0.75, 0.5, 0.2)
    none: float = 0.1

    def score(self, priority: Optional[int]) -> float:
        if priority is None or not 1 <= priority <= len(self.levels):
            return self.none
        return self.levels[priority - 1]


@dataclass(frozen=True)
class ScoringCoefficients:
    """User weights for the four scoring dimensions plus their sub-scores."""

    relevance: float = 20.0
    due_date: float = 4.0
    priority: float = 1.0
    status: float = 1.0
    core_weight: float = 0.2
    due_date_scores: DueDateScores = field(default_factory=DueDateScores)
    priority_scores: PriorityScores = field(default_factory=PriorityScores)


@dataclass(frozen=True)
class ActivationFlags:
    """Which scoring dimensions the current query actually constrains."""

    relevance: bool = False
    due_date: bool = False
    priority: bool = False
    status: bool = False

    @classmethod
    def for_query(cls, query: StructuredQuery) -> "ActivationFlags":
        return cls(
            relevance=bool(query.core_keywords),
            due_date=query.due_date_filter is not None,
            priority=query.priority_filter is not None,
            status=bool(query.status_filter),
        )

    @property
    def any_active(self) -> bool:
        return self.relevance or self.due_date or self.priority or self.status


@dataclass(frozen=True)
class ScoreBreakdown:
    """Raw component scores before coefficients, plus the activation used."""

    relevance: float
    due_date: float
    priority: float
    status: float
    activation: ActivationFlags


@dataclass(frozen=True)
class ScoredTask:
    task: TaskRecord
    final_score: float
    breakdown: ScoreBreakdown


# --- Parse results and output ---


@dataclass(frozen=True)
class ParseResult:
    """Structured query plus how it was obtained."""

    query: StructuredQuery
    outcome: ParseOutcome
    failure: Optional[ServiceFailure] = None
    ai_confidence: Optional[float] = None
    cancelled: bool = False

    @property
    def used_fallback(self) -> bool:
        return self.outcome in (
            ParseOutcome.SUCCEEDED_FALLBACK,
            ParseOutcome.SUCCEEDED_FALLBACK_LOW_CONFIDENCE,
        )


@dataclass(frozen=True)
class RankedTask:
    task_id: str
    final_score: float
    breakdown: ScoreBreakdown
    task: TaskRecord


@dataclass(frozen=True)
class QueryDiagnostics:
    used_fallback: bool
    outcome: ParseOutcome
    is_vague: bool
    confidence: Optional[float] = None
    time_context: Optional[str] = None
    failure: Optional[str] = None
    remediation: Optional[str] = None
    cancelled: bool = False


@dataclass(frozen=True)
class SearchResult:
    """Ranked tasks for one query plus diagnostics about how it was parsed."""

    ranked: Tuple[RankedTask, ...]
    query: StructuredQuery
    diagnostics: QueryDiagnostics
    total_matches: int = 0

    @property
    def no_filters_extracted(self) -> bool:
        """Neither parser produced a usable constraint and nothing was found."""
        return not self.query.has_constraints() and not self.ranked
