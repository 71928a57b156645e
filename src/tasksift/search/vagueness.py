"""Vague-query detection.

A query is vague when its remaining tokens (after property words have been
consumed) are dominated by filler: question words, generic verbs, modal
verbs, generic nouns and stop words. "What should I do today?" is the
canonical example. Its only real content is a time word, and turning that
into "due exactly today" would hide overdue work.

When a query is vague, a natural-language time word stops being a hard
filter. It is reported as ``time_context`` and replaced by a permissive range,
for example "due on or before today".

Examples:
    >>> import datetime
    >>> result = classify_vagueness(
    ...     ("what", "should", "i", "do"),
    ...     due_date_filter=DueDateKeyword("today"),
    ...     time_word="today",
    ...     has_other_filters=False,
    ...     today=datetime.date(2025, 3, 12),
    ... )
    >>> result.is_vague, result.time_context
    (True, 'today')
    >>> result.due_date_filter
    DueDateRange(operator='<=', reference=datetime.date(2025, 3, 12), end=None)
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from tasksift.search.dates import time_context_to_range
from tasksift.search.tokens import OPERATOR_TOKENS
from tasksift.search.types import DueDateFilter, DueDateKeyword
from tasksift.search.vocabulary import is_cjk, is_filler

logger = logging.getLogger(__name__)

DEFAULT_VAGUENESS_THRESHOLD = 0.7


@dataclass(frozen=True)
class VaguenessResult:
    """Outcome of vagueness classification.

    Attributes:
        is_vague: Whether the query counts as vague.
        ratio: Filler tokens divided by counted tokens (0.0 with no tokens).
        due_date_filter: The due-date filter to use from here on. It is either
            unchanged or converted to a permissive range.
        time_context: The relative time word, set only when vague.
        forced: True when a bare time word made the query vague even though
            the ratio alone did not.
    """

    is_vague: bool
    ratio: float
    due_date_filter: Optional[DueDateFilter]
    time_context: Optional[str] = None
    forced: bool = False


def _countable(tokens: Iterable[str]) -> list:
    return [
        token
        for token in tokens
        if token and token not in OPERATOR_TOKENS and (len(token) > 1 or is_cjk(token))
    ]


def vagueness_ratio(tokens: Sequence[str], extra_stop_words: Iterable[str] = ()) -> float:
    """Share of filler tokens. Single non-CJK characters are not counted."""
    extra = tuple(extra_stop_words)
    words = _countable(tokens)
    if not words:
        return 0.0
    generic = sum(1 for word in words if is_filler(word, extra))
    return generic / len(words)


def has_specific_tokens(tokens: Sequence[str], extra_stop_words: Iterable[str] = ()) -> bool:
    extra = tuple(extra_stop_words)
    return any(not is_filler(word, extra) for word in _countable(tokens))


def classify_vagueness(
    tokens: Sequence[str],
    *,
    due_date_filter: Optional[DueDateFilter],
    time_word: Optional[str],
    has_other_filters: bool,
    today: datetime.date,
    threshold: float = DEFAULT_VAGUENESS_THRESHOLD,
    extra_stop_words: Iterable[str] = (),
) -> VaguenessResult:
    """Decide vagueness and demote a natural-language time word to context.

    Args:
        tokens: Tokens left after property words were consumed.
        due_date_filter: Due-date filter extracted so far, if any.
        time_word: Canonical keyword of a relative time word that came from
            natural language (not from ``d:`` shorthand), if any.
        has_other_filters: Whether priority, status, tag or folder filters
            were extracted.
        today: Reference day for the permissive range.
        threshold: Ratio at or above which the query is vague.
        extra_stop_words: User stop words counted as filler.
    """
    extra = tuple(extra_stop_words)
    ratio = vagueness_ratio(tokens, extra)
    by_ratio = bool(_countable(tokens)) and ratio >= threshold
    forced = (
        time_word is not None
        and not by_ratio
        and not has_other_filters
        and not has_specific_tokens(tokens, extra)
    )
    is_vague = by_ratio or forced

    if not is_vague or time_word is None:
        return VaguenessResult(is_vague, ratio, due_date_filter, None, forced)

    converted: Optional[DueDateFilter] = due_date_filter
    if isinstance(due_date_filter, DueDateKeyword) and due_date_filter.keyword == time_word:
        converted = time_context_to_range(time_word, today)
    logger.debug(
        "vague query ratio=%.2f forced=%s time_context=%s filter=%s",
        ratio,
        forced,
        time_word,
        converted,
    )
    return VaguenessResult(True, ratio, converted, time_word, forced)
