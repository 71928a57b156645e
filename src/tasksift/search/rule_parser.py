"""Deterministic rule-based query parser.

The parser is a chain of small matchers. Each one looks at the immutable
token tuple, and either returns ``None`` or a :class:`MatchResult` that holds
the values it extracted and the tokens it left untouched. Explicit shorthand
matchers run first:

- priority: ``p1``..``p4``, ``p:1,2``, ``priority:any``, ``no priority``,
  priority emoji (``⏫`` ``🔼`` ``🔽`` ``⏬``)
- status: ``s:open,wip``, ``status:done`` (key, alias, name or raw marker)
- due date: ``d:today``, ``due:+3d``, ``due:2025-01-31``, ``due before: X``,
  ``due after: X``, ``od``, ``no date``, bare ISO dates
- tags and folders: ``#tag``, ``tag:x``, ``folder:Work``, ``in folder Work``
- connectors: ``&``, ``|``, ``!``, ``and``, ``or``

Natural-language matchers then recognize glossary vocabulary ("high
priority", "in progress", "this week"), but only for properties that no
explicit shorthand has set. What remains, minus stop words and generic
filler, becomes the core keywords.

The parser never raises. It is the fallback for every AI failure.
"""

from __future__ import annotations

import datetime
import logging
import re
from dataclasses import dataclass, field, replace
from functools import lru_cache
from typing import Callable, FrozenSet, List, Optional, Sequence, Tuple

from tasksift.search.dates import (
    parse_due_value,
    parse_iso_date,
    resolve_date_value,
)
from tasksift.search.glossary import PropertyGlossary
from tasksift.search.tokens import (
    OPERATOR_TOKENS,
    find_phrase,
    phrase_tokens,
    remove_span,
    tokenize,
)
from tasksift.search.types import (
    DueDateFilter,
    DueDateKeyword,
    DueDateRange,
    PriorityAny,
    PriorityFilter,
    PriorityLevels,
    PriorityUnset,
    StructuredQuery,
)
from tasksift.search.vagueness import DEFAULT_VAGUENESS_THRESHOLD, classify_vagueness
from tasksift.search.vocabulary import (
    PRIORITY_EMOJI,
    correct_typos,
    dedupe_keywords,
    filter_stop_words,
    is_generic_word,
)

logger = logging.getLogger(__name__)

LEGACY_PRIORITY_PATTERN = re.compile(r"^p([1-4])$", re.IGNORECASE)
PRIORITY_SHORTHAND_PATTERN = re.compile(r"^(?:p|priority):(.+)$", re.IGNORECASE)
STATUS_SHORTHAND_PATTERN = re.compile(r"^(?:s|status):(.+)$", re.IGNORECASE)
DUE_SHORTHAND_PATTERN = re.compile(r"^(?:d|due):(.+)$", re.IGNORECASE)
RANGE_SHORTHAND_PATTERN = re.compile(r"^(before|after):(.*)$", re.IGNORECASE)
TAG_SHORTHAND_PATTERN = re.compile(r"^tags?:(.+)$", re.IGNORECASE)
FOLDER_SHORTHAND_PATTERN = re.compile(r"^(?:folder|directory|dir):(.+)$", re.IGNORECASE)
HASHTAG_PATTERN = re.compile(r"^#([\w\-/]+)$", re.UNICODE)

WORD_CONNECTORS = frozenset({"and", "or", "not", "和", "或", "och", "eller"})
FOLDER_WORDS = frozenset({"folder", "directory", "文件夹", "目录", "mapp"})
FOLDER_PREPOSITIONS = frozenset({"in", "from", "under", "i", "från", "在"})


@dataclass(frozen=True)
class MatchResult:
    """Values one matcher extracted plus the tokens it did not consume."""

    remaining: Tuple[str, ...]
    priority: Optional[PriorityFilter] = None
    due_date: Optional[DueDateFilter] = None
    status: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()
    folder: Optional[str] = None
    time_word: Optional[str] = None


@dataclass(frozen=True)
class Extraction:
    """Accumulated state of the matcher chain over one query."""

    tokens: Tuple[str, ...]
    priority: Optional[PriorityFilter] = None
    due_date: Optional[DueDateFilter] = None
    status: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()
    folder: Optional[str] = None
    time_word: Optional[str] = None
    explicit_fields: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def has_properties(self) -> bool:
        return bool(
            self.priority is not None
            or self.due_date is not None
            or self.status
            or self.tags
            or self.folder
        )

    @property
    def has_non_date_filters(self) -> bool:
        return bool(self.priority is not None or self.status or self.tags or self.folder)


@dataclass(frozen=True)
class RuleContext:
    glossary: PropertyGlossary
    today: datetime.date
    lexicon: Tuple[str, ...]


Matcher = Callable[[Tuple[str, ...], RuleContext], Optional[MatchResult]]


# --- helpers ---


def _split_values(raw: str) -> List[str]:
    return [value.strip() for value in raw.split(",") if value.strip()]


def _merge_priority(
    current: Optional[PriorityFilter], new: Optional[PriorityFilter]
) -> Optional[PriorityFilter]:
    if new is None:
        return current
    if current is None:
        return new
    if isinstance(current, PriorityLevels) and isinstance(new, PriorityLevels):
        return PriorityLevels(tuple(sorted(set(current.levels) | set(new.levels))))
    if isinstance(current, PriorityLevels):
        return current
    if isinstance(new, PriorityLevels):
        return new
    return current


def _merge_tuple(current: Tuple[str, ...], new: Sequence[str]) -> Tuple[str, ...]:
    merged = list(current)
    for value in new:
        if value not in merged:
            merged.append(value)
    return tuple(merged)


@lru_cache(maxsize=32)
def _status_phrases(glossary: PropertyGlossary, lexicon: Tuple[str, ...]):
    phrases = [(phrase_tokens(p, lexicon), key) for p, key in glossary.status_phrases()]
    return tuple(sorted((p for p in phrases if p[0]), key=lambda p: -len(p[0])))


@lru_cache(maxsize=32)
def _due_phrases(glossary: PropertyGlossary, lexicon: Tuple[str, ...]):
    phrases = [(phrase_tokens(p, lexicon), kw) for p, kw in glossary.due_date_phrases()]
    return tuple(sorted((p for p in phrases if p[0]), key=lambda p: -len(p[0])))


@lru_cache(maxsize=32)
def _general_phrases(terms: Tuple[str, ...], lexicon: Tuple[str, ...]):
    phrases = [phrase_tokens(term, lexicon) for term in terms]
    return tuple(sorted((p for p in phrases if p), key=len, reverse=True))


def _consume_phrases(tokens: Tuple[str, ...], phrases) -> Tuple[Tuple[str, ...], int]:
    """Remove every occurrence of any phrase; return remainder and count removed."""
    removed = 0
    for phrase in phrases:
        index = find_phrase(tokens, phrase)
        while index is not None:
            tokens = remove_span(tokens, index, len(phrase))
            removed += 1
            index = find_phrase(tokens, phrase, index)
    return tokens, removed


# --- explicit shorthand matchers ---


def match_priority_shorthand(
    tokens: Tuple[str, ...], ctx: RuleContext
) -> Optional[MatchResult]:
    levels = set()
    sentinel: Optional[PriorityFilter] = None
    remaining: List[str] = []
    index = 0
    found = False
    while index < len(tokens):
        token = tokens[index]
        legacy = LEGACY_PRIORITY_PATTERN.match(token)
        unified = PRIORITY_SHORTHAND_PATTERN.match(token)
        if legacy:
            levels.add(int(legacy.group(1)))
            found = True
        elif token in PRIORITY_EMOJI:
            levels.add(PRIORITY_EMOJI[token])
            found = True
        elif unified:
            found = True
            for value in _split_values(unified.group(1)):
                lowered = value.lower()
                if lowered in ("all", "any"):
                    sentinel = sentinel or PriorityAny()
                elif lowered == "none":
                    sentinel = PriorityUnset()
                else:
                    level = ctx.glossary.priority_level(lowered)
                    if level is not None:
                        levels.add(level)
                    else:
                        logger.debug("ignoring unknown priority value %r", value)
        elif (
            token.lower() == "no"
            and index + 1 < len(tokens)
            and ctx.glossary.is_priority_term(tokens[index + 1])
        ):
            sentinel = PriorityUnset()
            found = True
            index += 2
            continue
        else:
            remaining.append(token)
        index += 1
    if not found:
        return None
    # Special values win over levels.
    priority: PriorityFilter = sentinel or PriorityLevels(tuple(sorted(levels)))
    if isinstance(priority, PriorityLevels) and not priority.levels:
        priority = PriorityAny()
    return MatchResult(tuple(remaining), priority=priority)


def match_status_shorthand(
    tokens: Tuple[str, ...], ctx: RuleContext
) -> Optional[MatchResult]:
    statuses: List[str] = []
    remaining: List[str] = []
    found = False
    for token in tokens:
        match = STATUS_SHORTHAND_PATTERN.match(token)
        if not match:
            remaining.append(token)
            continue
        found = True
        for value in _split_values(match.group(1)):
            key = ctx.glossary.resolve_status(value)
            if key is None:
                logger.warning(
                    "Status value %r could not be resolved. Available categories: %s",
                    value,
                    ", ".join(ctx.glossary.status_keys),
                )
            elif key not in statuses:
                statuses.append(key)
    if not found:
        return None
    return MatchResult(tuple(remaining), status=tuple(statuses))


def _range_value(
    tokens: Tuple[str, ...], index: int, inline: str, ctx: RuleContext
) -> Tuple[Optional[datetime.date], int]:
    """Resolve the value of ``before:``/``after:``; return (date, tokens used)."""
    if inline:
        return resolve_date_value(inline, ctx.today), 1
    if index + 1 < len(tokens):
        resolved = resolve_date_value(tokens[index + 1], ctx.today)
        if resolved is not None:
            return resolved, 2
    return None, 1


def match_due_shorthand(
    tokens: Tuple[str, ...], ctx: RuleContext
) -> Optional[MatchResult]:
    due: Optional[DueDateFilter] = None
    remaining: List[str] = []
    index = 0
    found = False
    while index < len(tokens):
        token = tokens[index]
        lowered = token.lower()
        unified = DUE_SHORTHAND_PATTERN.match(token)
        ranged = RANGE_SHORTHAND_PATTERN.match(token)
        if unified:
            values = _split_values(unified.group(1))
            parsed = parse_due_value(values[0], ctx.today) if values else None
            if parsed is None:
                remaining.append(token)
            else:
                due = due or parsed
                found = True
            index += 1
            continue
        if ranged:
            reference, used = _range_value(tokens, index, ranged.group(2).strip(), ctx)
            if reference is not None:
                operator = "<" if ranged.group(1).lower() == "before" else ">"
                due = due or DueDateRange(operator, reference)
                found = True
                # "due before:" / "date before:" - the leading word belongs to the range.
                if remaining and remaining[-1].lower() in ("due", "date"):
                    remaining.pop()
            else:
                remaining.append(token)
            index += used
            continue
        if lowered == "od":
            due = due or DueDateKeyword("overdue")
            found = True
        elif (
            lowered == "no"
            and index + 1 < len(tokens)
            and tokens[index + 1].lower() in ("date", "due", "deadline")
        ):
            due = due or DueDateKeyword("none")
            found = True
            index += 2
            continue
        elif parse_iso_date(token) is not None:
            due = due or parse_due_value(token, ctx.today)
            found = True
            if remaining and ctx.glossary.is_due_date_term(remaining[-1]):
                remaining.pop()
        else:
            remaining.append(token)
        index += 1
    if not found:
        return None
    return MatchResult(tuple(remaining), due_date=due)


def match_tags(tokens: Tuple[str, ...], ctx: RuleContext) -> Optional[MatchResult]:
    tags: List[str] = []
    remaining: List[str] = []
    index = 0
    while index < len(tokens):
        token = tokens[index]
        hashtag = HASHTAG_PATTERN.match(token)
        shorthand = TAG_SHORTHAND_PATTERN.match(token)
        if hashtag:
            tags.append(hashtag.group(1).lower())
        elif shorthand:
            tags.extend(v.lstrip("#").lower() for v in _split_values(shorthand.group(1)))
        elif index + 1 < len(tokens) and (
            token.lower() == "tagged"
            or (token.lower() == "tag" and remaining and remaining[-1].lower() == "with")
        ):
            tags.append(tokens[index + 1].lstrip("#").lower())
            if token.lower() == "tag":
                remaining.pop()
            index += 2
            continue
        else:
            remaining.append(token)
        index += 1
    if not tags:
        return None
    return MatchResult(tuple(remaining), tags=tuple(dict.fromkeys(tags)))


def match_folder(tokens: Tuple[str, ...], ctx: RuleContext) -> Optional[MatchResult]:
    for index, token in enumerate(tokens):
        shorthand = FOLDER_SHORTHAND_PATTERN.match(token)
        if shorthand:
            folder = shorthand.group(1).strip("\"'")
            return MatchResult(remove_span(tokens, index, 1), folder=folder)
        if token.lower() in FOLDER_WORDS and index + 1 < len(tokens):
            start = index
            if index > 0 and tokens[index - 1].lower() in FOLDER_PREPOSITIONS:
                start = index - 1
            folder = tokens[index + 1].strip("\"'")
            return MatchResult(
                remove_span(tokens, start, index + 2 - start), folder=folder
            )
    return None


def match_connectors(tokens: Tuple[str, ...], ctx: RuleContext) -> Optional[MatchResult]:
    remaining = tuple(
        token
        for token in tokens
        if token not in OPERATOR_TOKENS and token.lower() not in WORD_CONNECTORS
    )
    if len(remaining) == len(tokens):
        return None
    return MatchResult(remaining)


# --- natural-language matchers ---


def match_priority_terms(
    tokens: Tuple[str, ...], ctx: RuleContext
) -> Optional[MatchResult]:
    glossary = ctx.glossary
    for index, token in enumerate(tokens):
        if not glossary.is_priority_term(token):
            continue
        if index + 1 < len(tokens):
            level = glossary.priority_level(tokens[index + 1])
            if level is not None:
                return MatchResult(
                    remove_span(tokens, index, 2), priority=PriorityLevels((level,))
                )
        if index > 0:
            previous = tokens[index - 1]
            level = glossary.priority_level(previous) if not previous.isdigit() else None
            if level is not None:
                return MatchResult(
                    remove_span(tokens, index - 1, 2), priority=PriorityLevels((level,))
                )
        return MatchResult(remove_span(tokens, index, 1), priority=PriorityAny())
    return None


def match_status_terms(
    tokens: Tuple[str, ...], ctx: RuleContext
) -> Optional[MatchResult]:
    statuses: List[str] = []
    for phrase, key in _status_phrases(ctx.glossary, ctx.lexicon):
        index = find_phrase(tokens, phrase)
        while index is not None:
            tokens = remove_span(tokens, index, len(phrase))
            if key not in statuses:
                statuses.append(key)
            index = find_phrase(tokens, phrase, index)
    if not statuses:
        return None
    general = _general_phrases(ctx.glossary.status_general_terms, ctx.lexicon)
    tokens, _ = _consume_phrases(tokens, general)
    return MatchResult(tokens, status=tuple(statuses))


def match_due_terms(tokens: Tuple[str, ...], ctx: RuleContext) -> Optional[MatchResult]:
    keyword: Optional[str] = None
    for phrase, canonical in _due_phrases(ctx.glossary, ctx.lexicon):
        index = find_phrase(tokens, phrase)
        if index is None:
            continue
        tokens = remove_span(tokens, index, len(phrase))
        keyword = keyword or canonical
    general = _general_phrases(ctx.glossary.due_date_general_terms, ctx.lexicon)
    tokens, general_count = _consume_phrases(tokens, general)
    if keyword is not None:
        return MatchResult(tokens, due_date=DueDateKeyword(keyword), time_word=keyword)
    if general_count:
        return MatchResult(tokens, due_date=DueDateKeyword("any"))
    return None


EXPLICIT_MATCHERS: Tuple[Tuple[str, Matcher], ...] = (
    ("priority", match_priority_shorthand),
    ("status", match_status_shorthand),
    ("due_date", match_due_shorthand),
    ("tags", match_tags),
    ("folder", match_folder),
    ("connectors", match_connectors),
)

NATURAL_MATCHERS: Tuple[Tuple[str, Matcher], ...] = (
    ("priority", match_priority_terms),
    ("status", match_status_terms),
    ("due_date", match_due_terms),
)


def _apply(state: Extraction, field_name: str, result: MatchResult, explicit: bool) -> Extraction:
    updated = replace(
        state,
        tokens=result.remaining,
        priority=_merge_priority(state.priority, result.priority),
        due_date=state.due_date or result.due_date,
        status=_merge_tuple(state.status, result.status),
        tags=_merge_tuple(state.tags, result.tags),
        folder=state.folder or result.folder,
        time_word=state.time_word or result.time_word,
    )
    if explicit and field_name != "connectors":
        updated = replace(
            updated, explicit_fields=updated.explicit_fields | {field_name}
        )
    return updated


def _field_is_set(state: Extraction, field_name: str) -> bool:
    value = getattr(state, field_name, None)
    return bool(value) if isinstance(value, tuple) else value is not None


def build_context(
    glossary: PropertyGlossary, today: Optional[datetime.date] = None
) -> RuleContext:
    return RuleContext(
        glossary=glossary,
        today=today or datetime.date.today(),
        lexicon=glossary.cjk_lexicon(),
    )


def extract_explicit(query: str, ctx: RuleContext) -> Extraction:
    """Run only the shorthand matchers over the typo-corrected query."""
    state = Extraction(tokens=tokenize(correct_typos(query), ctx.lexicon))
    for field_name, matcher in EXPLICIT_MATCHERS:
        result = matcher(state.tokens, ctx)
        if result is not None:
            state = _apply(state, field_name, result, explicit=True)
    return state


def extract_properties(query: str, ctx: RuleContext) -> Extraction:
    """Run the full matcher chain: shorthand first, then glossary vocabulary."""
    state = extract_explicit(query, ctx)
    for field_name, matcher in NATURAL_MATCHERS:
        if _field_is_set(state, field_name):
            continue
        result = matcher(state.tokens, ctx)
        if result is not None:
            state = _apply(state, field_name, result, explicit=False)
    return state


def keywords_from_tokens(
    tokens: Sequence[str], extra_stop_words: Sequence[str] = ()
) -> List[str]:
    """Turn leftover tokens into deduplicated core keywords."""
    words = filter_stop_words(tokens, extra_stop_words)
    words = [word for word in words if not is_generic_word(word)]
    return dedupe_keywords(words)


def parse_with_rules(
    query: str,
    glossary: PropertyGlossary,
    *,
    today: Optional[datetime.date] = None,
    vagueness_threshold: float = DEFAULT_VAGUENESS_THRESHOLD,
    stop_words: Sequence[str] = (),
) -> StructuredQuery:
    """Parse a query with shorthand and glossary rules only. Never raises."""
    ctx = build_context(glossary, today)
    state = extract_properties(query, ctx)
    vagueness = classify_vagueness(
        state.tokens,
        due_date_filter=state.due_date,
        time_word=state.time_word,
        has_other_filters=state.has_non_date_filters,
        today=ctx.today,
        threshold=vagueness_threshold,
        extra_stop_words=stop_words,
    )
    keywords = tuple(keywords_from_tokens(state.tokens, stop_words))
    structured = StructuredQuery(
        core_keywords=keywords,
        expanded_keywords=keywords,
        priority_filter=state.priority,
        due_date_filter=vagueness.due_date_filter,
        status_filter=state.status,
        tags_filter=state.tags,
        folder_filter=state.folder,
        is_vague=vagueness.is_vague,
        time_context=vagueness.time_context,
        vagueness_ratio=vagueness.ratio,
    )
    logger.debug("rule parse %r -> %s", query, structured)
    return structured
