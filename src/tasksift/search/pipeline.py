"""One query, end to end: parse, fetch, re-validate, score, sort, cap."""

from __future__ import annotations

import datetime
import logging
import threading
from typing import Optional

from tasksift.search.ai_parser import parse_with_ai
from tasksift.search.corpus import CorpusProvider
from tasksift.search.filters import filter_candidates
from tasksift.search.scoring import apply_quality_filters, score_tasks
from tasksift.search.service import LanguageAssistService
from tasksift.search.settings import SearchSettings
from tasksift.search.sorting import sort_scored_tasks, sort_tasks_multi_criteria
from tasksift.search.types import (
    ActivationFlags,
    ParseResult,
    QueryDiagnostics,
    RankedTask,
    SearchResult,
)

logger = logging.getLogger(__name__)


def build_diagnostics(parse: ParseResult) -> QueryDiagnostics:
    failure = parse.failure
    return QueryDiagnostics(
        used_fallback=parse.used_fallback,
        outcome=parse.outcome,
        is_vague=parse.query.is_vague,
        confidence=parse.ai_confidence,
        time_context=parse.query.time_context,
        failure=failure.code if failure else None,
        remediation=failure.remediation if failure else None,
        cancelled=parse.cancelled,
    )


def run_query(
    raw_query: str,
    *,
    settings: SearchSettings,
    corpus: CorpusProvider,
    service: Optional[LanguageAssistService] = None,
    today: Optional[datetime.date] = None,
    cancel_event: Optional[threading.Event] = None,
    for_summarizer: bool = False,
) -> SearchResult:
    """Answer one free-text query against the corpus.

    Args:
        raw_query: The user's question or shorthand query.
        settings: Validated search settings.
        corpus: Source of candidate tasks.
        service: Language assist service. Without one, rules parse the query.
        today: Reference day for dates. Defaults to the current date.
        cancel_event: Set it to abandon the language-model call.
        for_summarizer: Cap results at ``max_summarizer_results`` instead of
            ``max_direct_results``.
    """
    today = today or datetime.date.today()
    glossary = settings.glossary

    parse = parse_with_ai(
        raw_query, settings, service=service, today=today, cancel_event=cancel_event
    )
    query = parse.query

    candidates = corpus.fetch_candidates(query.property_filters())
    matched = filter_candidates(candidates, query, glossary, today)

    activation = ActivationFlags.for_query(query)
    if activation.any_active:
        scored = apply_quality_filters(
            score_tasks(matched, query, settings.coefficients, glossary, today),
            settings.coefficients,
            glossary,
            quality_filter_strength=settings.quality_filter_strength,
            minimum_relevance_score=settings.minimum_relevance_score,
        )
        ordered = sort_scored_tasks(scored, settings.tie_breakers, glossary)
    else:
        browse = sort_tasks_multi_criteria(matched, settings.tie_breakers, glossary)
        ordered = score_tasks(browse, query, settings.coefficients, glossary, today)

    cap = settings.max_summarizer_results if for_summarizer else settings.max_direct_results
    ranked = tuple(
        RankedTask(
            task_id=item.task.id,
            final_score=item.final_score,
            breakdown=item.breakdown,
            task=item.task,
        )
        for item in ordered[:cap]
    )

    diagnostics = build_diagnostics(parse)
    logger.info(
        "query %r: outcome=%s vague=%s candidates=%d matched=%d kept=%d returned=%d",
        raw_query,
        parse.outcome.value,
        query.is_vague,
        len(candidates),
        len(matched),
        len(ordered),
        len(ranked),
    )
    return SearchResult(
        ranked=ranked,
        query=query,
        diagnostics=diagnostics,
        total_matches=len(ordered),
    )
