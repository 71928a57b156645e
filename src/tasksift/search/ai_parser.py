"""AI-assisted query parsing with rule-based fallback.

The language assist service is asked once per query, with at most one retry
for transient failures. Anything that goes wrong (a classified failure, a
malformed draft, low confidence, cancellation) lands on the rule-based
parser, and the reason is kept on the :class:`ParseResult`.

Explicit shorthand in the query (``p1``, ``s:open``, ``d:today``, ``#tag``)
always wins over what the model proposes for the same property.
"""

from __future__ import annotations

import datetime
import logging
import threading
from typing import Optional, Tuple, Union

from tasksift.core.exceptions import MalformedResponseError
from tasksift.search.dates import (
    RELATIVE_TIME_KEYWORDS,
    parse_due_value,
    resolve_date_value,
)
from tasksift.search.expansion import expand_keywords
from tasksift.search.failures import (
    FailureCategory,
    ParseOutcome,
    ServiceFailure,
    failure_from_exception,
)
from tasksift.search.glossary import PropertyGlossary
from tasksift.search.rule_parser import (
    Extraction,
    build_context,
    extract_explicit,
    extract_properties,
    keywords_from_tokens,
    parse_with_rules,
)
from tasksift.search.service import LanguageAssistService, ServiceDraft, check_draft
from tasksift.search.settings import SearchSettings
from tasksift.search.types import (
    RANGE_OPERATORS,
    DueDateFilter,
    DueDateKeyword,
    DueDateRange,
    ParseResult,
    PriorityAny,
    PriorityFilter,
    PriorityLevels,
    PriorityUnset,
    StructuredQuery,
)
from tasksift.search.vagueness import classify_vagueness
from tasksift.search.vocabulary import filter_stop_words

logger = logging.getLogger(__name__)


def _rules(
    query: str,
    settings: SearchSettings,
    today: datetime.date,
    outcome: ParseOutcome,
    *,
    failure: Optional[ServiceFailure] = None,
    ai_confidence: Optional[float] = None,
    cancelled: bool = False,
) -> ParseResult:
    structured = parse_with_rules(
        query,
        settings.glossary,
        today=today,
        vagueness_threshold=settings.vagueness_threshold,
        stop_words=settings.stop_words,
    )
    return ParseResult(
        query=structured,
        outcome=outcome,
        failure=failure,
        ai_confidence=ai_confidence,
        cancelled=cancelled,
    )


def _malformed_fallback(
    query: str,
    settings: SearchSettings,
    today: datetime.date,
    exc: MalformedResponseError,
) -> ParseResult:
    failure = ServiceFailure(FailureCategory.MALFORMED_RESPONSE, str(exc))
    logger.warning(
        "AI query draft rejected (%s), using rule-based parser: %s", failure.code, exc
    )
    return _rules(query, settings, today, ParseOutcome.SUCCEEDED_FALLBACK, failure=failure)


def _is_pure_syntax(explicit: Extraction, stop_words: Tuple[str, ...]) -> bool:
    return bool(explicit.explicit_fields) and not filter_stop_words(explicit.tokens, stop_words)


def _as_service_result(value: object) -> Union[ServiceDraft, ServiceFailure]:
    """Coerce whatever a service returned into a draft or a failure."""
    if isinstance(value, (ServiceDraft, ServiceFailure)):
        return value
    if isinstance(value, FailureCategory):
        return ServiceFailure(value)
    return ServiceFailure(
        FailureCategory.MALFORMED_RESPONSE,
        f"language assist service returned {type(value).__name__}",
    )


def _call_service(
    query: str,
    settings: SearchSettings,
    service: LanguageAssistService,
    cancel_event: threading.Event,
):
    """Call the service, retrying once on a retryable failure."""
    attempts = 1 + settings.max_retries
    result = None
    for attempt in range(1, attempts + 1):
        try:
            result = _as_service_result(
                service.parse(query, settings.glossary, settings, settings.request_timeout)
            )
        except Exception as exc:
            result = failure_from_exception(exc)
            logger.debug("language assist service raised %r", exc)
        if isinstance(result, ServiceDraft) or cancel_event.is_set():
            return result
        if not result.category.retryable or attempt == attempts:
            return result
        wait = min(result.retry_after or 0.0, settings.max_retry_wait)
        logger.info(
            "language assist call failed (%s), retrying in %.1f s", result.code, wait
        )
        if cancel_event.wait(wait):
            return result
    return result


# --- draft conversion ---


def _convert_priority(value) -> Optional[PriorityFilter]:
    if value is None:
        return None
    if value == "any":
        return PriorityAny()
    if value == "none":
        return PriorityUnset()
    return PriorityLevels(tuple(value))


def _convert_due(draft: ServiceDraft, today: datetime.date) -> Optional[DueDateFilter]:
    spec = draft.due_date_range
    if spec is not None:
        if spec.operator not in RANGE_OPERATORS:
            raise MalformedResponseError(f"unknown range operator {spec.operator!r}")
        reference = resolve_date_value(spec.date, today)
        end = resolve_date_value(spec.end, today) if spec.end else None
        if reference is None or (spec.operator == "between" and end is None):
            raise MalformedResponseError(f"unreadable due_date_range {spec!r}")
        return DueDateRange(spec.operator, reference, end)
    if draft.due_date is None:
        return None
    parsed = parse_due_value(draft.due_date, today)
    if parsed is None:
        raise MalformedResponseError(f"unknown due date value {draft.due_date!r}")
    return parsed


def _convert_status(values: Tuple[str, ...], glossary: PropertyGlossary) -> Tuple[str, ...]:
    keys = []
    for value in values:
        key = glossary.resolve_status(value)
        if key is None:
            raise MalformedResponseError(
                f"status {value!r} is not a known category ({', '.join(glossary.status_keys)})"
            )
        if key not in keys:
            keys.append(key)
    return tuple(keys)


def _build_query(
    query: str,
    draft: ServiceDraft,
    explicit: Extraction,
    settings: SearchSettings,
    today: datetime.date,
) -> StructuredQuery:
    glossary = settings.glossary
    fields = explicit.explicit_fields

    priority = explicit.priority if "priority" in fields else _convert_priority(draft.priority)
    due = explicit.due_date if "due_date" in fields else _convert_due(draft, today)
    status = explicit.status if "status" in fields else _convert_status(draft.status, glossary)
    tags = explicit.tags if "tags" in fields else tuple(tag.lower() for tag in draft.tags)
    folder = explicit.folder if "folder" in fields else draft.folder

    time_word = None
    if (
        "due_date" not in fields
        and isinstance(due, DueDateKeyword)
        and due.keyword in RELATIVE_TIME_KEYWORDS
    ):
        time_word = due.keyword

    residual = extract_properties(query, build_context(glossary, today))
    vagueness = classify_vagueness(
        residual.tokens,
        due_date_filter=due,
        time_word=time_word,
        has_other_filters=bool(priority is not None or status or tags or folder),
        today=today,
        threshold=settings.vagueness_threshold,
        extra_stop_words=settings.stop_words,
    )

    core = tuple(keywords_from_tokens(draft.core_keywords, settings.stop_words))
    expansion = expand_keywords(
        core,
        draft.expansions,
        languages=settings.languages,
        expansions_per_language=settings.expansions_per_language,
        unattributed=draft.unattributed_keywords,
    )
    return StructuredQuery(
        core_keywords=core,
        expanded_keywords=expansion.expanded_keywords,
        priority_filter=priority,
        due_date_filter=vagueness.due_date_filter,
        status_filter=status,
        tags_filter=tags,
        folder_filter=folder,
        is_vague=vagueness.is_vague,
        time_context=vagueness.time_context,
        confidence=draft.confidence,
        vagueness_ratio=vagueness.ratio,
    )


def parse_with_ai(
    query: str,
    settings: SearchSettings,
    *,
    service: Optional[LanguageAssistService],
    today: Optional[datetime.date] = None,
    cancel_event: Optional[threading.Event] = None,
) -> ParseResult:
    """Parse ``query`` with the language assist service, falling back to rules.

    Never raises for service problems. The outcome tells which path produced
    the structured query:

    - ``succeeded-ai``: the model's draft was valid and confident enough.
    - ``succeeded-fallback``: the call failed or was cancelled.
    - ``succeeded-fallback-low-confidence``: the draft's confidence was below
      ``settings.confidence_threshold``.
    - ``succeeded-rules``: the model was not asked (AI disabled, no service,
      or the query is shorthand only).
    """
    today = today or datetime.date.today()
    cancel_event = cancel_event or threading.Event()

    if not settings.use_ai or service is None:
        return _rules(query, settings, today, ParseOutcome.SUCCEEDED_RULES)

    explicit = extract_explicit(query, build_context(settings.glossary, today))
    if _is_pure_syntax(explicit, settings.stop_words):
        logger.debug("query %r is shorthand only, skipping language model", query)
        return _rules(query, settings, today, ParseOutcome.SUCCEEDED_RULES)

    if cancel_event.is_set():
        return _rules(query, settings, today, ParseOutcome.SUCCEEDED_FALLBACK, cancelled=True)

    result = _call_service(query, settings, service, cancel_event)
    if cancel_event.is_set():
        logger.info("query parse cancelled, using rule-based parser")
        return _rules(query, settings, today, ParseOutcome.SUCCEEDED_FALLBACK, cancelled=True)

    if isinstance(result, ServiceFailure):
        logger.warning(
            "AI query parsing failed (%s), using rule-based parser: %s",
            result.code,
            result.detail,
        )
        return _rules(query, settings, today, ParseOutcome.SUCCEEDED_FALLBACK, failure=result)

    try:
        draft = check_draft(result)
    except MalformedResponseError as exc:
        return _malformed_fallback(query, settings, today, exc)

    if draft.confidence is not None and draft.confidence < settings.confidence_threshold:
        logger.info(
            "AI confidence %.2f below %.2f, using rule-based parser",
            draft.confidence,
            settings.confidence_threshold,
        )
        return _rules(
            query,
            settings,
            today,
            ParseOutcome.SUCCEEDED_FALLBACK_LOW_CONFIDENCE,
            ai_confidence=draft.confidence,
        )

    try:
        structured = _build_query(query, draft, explicit, settings, today)
    except MalformedResponseError as exc:
        return _malformed_fallback(query, settings, today, exc)

    logger.debug("AI parse %r -> %s", query, structured)
    return ParseResult(
        query=structured,
        outcome=ParseOutcome.SUCCEEDED_AI,
        ai_confidence=draft.confidence,
    )
