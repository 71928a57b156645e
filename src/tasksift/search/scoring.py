"""Multi-factor task scoring.

Each candidate gets four raw component scores:

- relevance: ``core_ratio * core_weight + all_ratio``, where ``core_ratio`` is
  the share of core keywords found in the task text and ``all_ratio`` the
  share of expanded keywords found (range 0 to 1 + core_weight).
- due date: urgency bucket (overdue, within a week, within a month, later, none).
- priority: level score, P1 highest.
- status: the category's configured score, neutral when unmapped.

The final score is the sum of ``component * coefficient`` over the
dimensions the query actually constrains. A dimension without a constraint
contributes nothing, whatever its coefficient.

Optional quality filters then drop tasks whose property score or raw
relevance falls short of the configured floor.
"""

from __future__ import annotations

import datetime
import logging
from typing import Iterable, List, Optional, Sequence

from tasksift.search.glossary import NEUTRAL_STATUS_SCORE, PropertyGlossary
from tasksift.search.types import (
    ActivationFlags,
    DueDateScores,
    ScoreBreakdown,
    ScoredTask,
    ScoringCoefficients,
    StructuredQuery,
    TaskRecord,
)

logger = logging.getLogger(__name__)

WITHIN_WEEK_DAYS = 7
WITHIN_MONTH_DAYS = 30


def _matched(text: str, keywords: Sequence[str]) -> int:
    return sum(1 for keyword in keywords if keyword and keyword.lower() in text)


def relevance_score(
    text: str,
    core_keywords: Sequence[str],
    expanded_keywords: Sequence[str],
    core_weight: float = 0.2,
) -> float:
    """Keyword relevance of ``text``. Matching is case-insensitive substring."""
    if not core_keywords and not expanded_keywords:
        return 0.0
    lowered = text.lower()
    core_ratio = _matched(lowered, core_keywords) / len(core_keywords) if core_keywords else 0.0
    all_ratio = (
        _matched(lowered, expanded_keywords) / len(expanded_keywords)
        if expanded_keywords
        else 0.0
    )
    return core_ratio * core_weight + all_ratio


def due_date_score(
    due: Optional[datetime.date], today: datetime.date, scores: DueDateScores
) -> float:
    if due is None:
        return scores.none
    days = (due - today).days
    if days < 0:
        return scores.overdue
    if days <= WITHIN_WEEK_DAYS:
        return scores.within_week
    if days <= WITHIN_MONTH_DAYS:
        return scores.within_month
    return scores.later


def priority_score(priority: Optional[int], coefficients: ScoringCoefficients) -> float:
    return coefficients.priority_scores.score(priority)


def status_score(status: Optional[str], glossary: PropertyGlossary) -> float:
    if status is None:
        return glossary.status_score(None)
    key = glossary.resolve_status(status, from_task=True) or status
    return glossary.status_score(key)


def score_task(
    task: TaskRecord,
    query: StructuredQuery,
    coefficients: ScoringCoefficients,
    glossary: PropertyGlossary,
    today: datetime.date,
    activation: Optional[ActivationFlags] = None,
) -> ScoredTask:
    """Score one task against a structured query."""
    activation = activation or ActivationFlags.for_query(query)
    breakdown = ScoreBreakdown(
        relevance=relevance_score(
            task.text, query.core_keywords, query.expanded_keywords, coefficients.core_weight
        ),
        due_date=due_date_score(task.due_date, today, coefficients.due_date_scores),
        priority=priority_score(task.priority, coefficients),
        status=status_score(task.status, glossary),
        activation=activation,
    )
    final = 0.0
    if activation.relevance:
        final += breakdown.relevance * coefficients.relevance
    if activation.due_date:
        final += breakdown.due_date * coefficients.due_date
    if activation.priority:
        final += breakdown.priority * coefficients.priority
    if activation.status:
        final += breakdown.status * coefficients.status
    return ScoredTask(task=task, final_score=final, breakdown=breakdown)


def score_tasks(
    tasks: Iterable[TaskRecord],
    query: StructuredQuery,
    coefficients: ScoringCoefficients,
    glossary: PropertyGlossary,
    today: Optional[datetime.date] = None,
) -> List[ScoredTask]:
    """Score every task. Input order is preserved; sorting is a separate step."""
    today = today or datetime.date.today()
    activation = ActivationFlags.for_query(query)
    if not activation.any_active:
        logger.debug("no active scoring dimension, all scores are zero")
    scored = []
    for task in tasks:
        result = score_task(task, query, coefficients, glossary, today, activation)
        logger.debug(
            "score %s=%.4f (relevance=%.3f due=%.2f priority=%.2f status=%.2f)",
            task.id,
            result.final_score,
            result.breakdown.relevance,
            result.breakdown.due_date,
            result.breakdown.priority,
            result.breakdown.status,
        )
        scored.append(result)
    return scored


def max_property_score(
    coefficients: ScoringCoefficients,
    glossary: PropertyGlossary,
    activation: ActivationFlags,
) -> float:
    """Best weighted due date, priority and status total over the active dimensions."""
    total = 0.0
    if activation.due_date:
        due = coefficients.due_date_scores
        best_due = max(due.overdue, due.within_week, due.within_month, due.later, due.none)
        total += best_due * coefficients.due_date
    if activation.priority:
        levels = coefficients.priority_scores
        total += max((*levels.levels, levels.none)) * coefficients.priority
    if activation.status:
        best_status = max(
            [category.score for category in glossary.statuses] + [NEUTRAL_STATUS_SCORE]
        )
        total += best_status * coefficients.status
    return total


def property_score(item: ScoredTask, coefficients: ScoringCoefficients) -> float:
    breakdown = item.breakdown
    activation = breakdown.activation
    total = 0.0
    if activation.due_date:
        total += breakdown.due_date * coefficients.due_date
    if activation.priority:
        total += breakdown.priority * coefficients.priority
    if activation.status:
        total += breakdown.status * coefficients.status
    return total


def apply_quality_filters(
    scored: Sequence[ScoredTask],
    coefficients: ScoringCoefficients,
    glossary: PropertyGlossary,
    *,
    quality_filter_strength: float = 0.0,
    minimum_relevance_score: float = 0.0,
) -> List[ScoredTask]:
    """Drop weak matches after scoring. Zero disables either filter.

    ``quality_filter_strength`` keeps tasks whose property score reaches that
    share of :func:`max_property_score`. It does nothing when the query
    constrains no property. ``minimum_relevance_score`` is compared with the
    raw relevance component and applies only to queries with core keywords.
    """
    kept = list(scored)
    if not kept:
        return kept
    activation = kept[0].breakdown.activation

    if quality_filter_strength > 0:
        ceiling = max_property_score(coefficients, glossary, activation)
        if ceiling > 0:
            threshold = quality_filter_strength * ceiling
            before = len(kept)
            kept = [item for item in kept if property_score(item, coefficients) >= threshold]
            logger.debug(
                "quality filter %.2f (threshold %.3f of %.3f) kept %d of %d",
                quality_filter_strength, threshold, ceiling, len(kept), before,
            )

    if minimum_relevance_score > 0 and activation.relevance:
        before = len(kept)
        kept = [item for item in kept if item.breakdown.relevance >= minimum_relevance_score]
        logger.debug(
            "minimum relevance %.2f kept %d of %d", minimum_relevance_score, len(kept), before
        )
    return kept
