"""Property glossary: status categories, priority levels and date vocabulary.

The glossary is built once from configuration and passed explicitly to every
component. It is immutable; repairs return a new glossary.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Tuple

from tasksift.core.exceptions import ConfigValidationError
from tasksift.search.dates import normalize_keyword
from tasksift.search.vocabulary import is_cjk

logger = logging.getLogger(__name__)

# Fallback orders for built-in category keys without an explicit order.
DEFAULT_STATUS_ORDERS = {"open": 1, "in_progress": 2, "completed": 6, "cancelled": 7}
UNKNOWN_STATUS_ORDER = 999
NEUTRAL_STATUS_SCORE = 0.5
OTHER_STATUS_KEY = "other"
DEFAULT_REPAIR_GAP = 10


@dataclass(frozen=True)
class StatusCategory:
    key: str
    display_name: str
    symbols: Tuple[str, ...] = ()
    aliases: Tuple[str, ...] = ()
    score: float = NEUTRAL_STATUS_SCORE
    order: Optional[int] = None
    description: str = ""
    terms: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PropertyGlossary:
    statuses: Tuple[StatusCategory, ...] = ()
    status_general_terms: Tuple[str, ...] = ()
    priority_general_terms: Tuple[str, ...] = ()
    priority_levels: Tuple[Tuple[int, Tuple[str, ...]], ...] = ()
    due_date_general_terms: Tuple[str, ...] = ()
    due_date_terms: Tuple[Tuple[str, Tuple[str, ...]], ...] = ()
    _by_key: Dict[str, StatusCategory] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "_by_key", {category.key: category for category in self.statuses}
        )

    # --- status ---

    @property
    def status_keys(self) -> Tuple[str, ...]:
        return tuple(category.key for category in self.statuses)

    def category(self, key: Optional[str]) -> Optional[StatusCategory]:
        if key is None:
            return None
        return self._by_key.get(key)

    def resolve_status(self, value: str, *, from_task: bool = False) -> Optional[str]:
        """Resolve a key, alias, display name, term or raw marker to a category key.

        With ``from_task`` the value is a task's own checkbox marker, so blank
        markers such as ``" "`` resolve exactly before any text matching.
        """
        if value in self._by_key:
            return value
        if from_task:
            for category in self.statuses:
                if value in category.symbols:
                    return category.key
        lowered = value.strip().lower()
        for category in self.statuses:
            if lowered == category.key.lower() or lowered == category.display_name.lower():
                return category.key
        for category in self.statuses:
            if lowered in (alias.lower() for alias in category.aliases):
                return category.key
            if lowered in (term.lower() for term in category.terms):
                return category.key
        for category in self.statuses:
            if value in category.symbols and value.strip():
                return category.key
        return None

    def status_score(self, key: Optional[str]) -> float:
        """Configured relevance weight of a category, neutral when unmapped."""
        category = self.category(key)
        if category is not None:
            return category.score
        if key is not None:
            other = self.category(OTHER_STATUS_KEY)
            if other is not None:
                return other.score
        return NEUTRAL_STATUS_SCORE

    def effective_order(self, key: Optional[str]) -> int:
        """Sort position of a category: explicit, else built-in default, else last."""
        category = self.category(key)
        if category is None:
            return UNKNOWN_STATUS_ORDER
        if category.order is not None:
            return category.order
        return DEFAULT_STATUS_ORDERS.get(category.key, UNKNOWN_STATUS_ORDER)

    def status_phrases(self) -> List[Tuple[str, str]]:
        """(phrase, key) pairs recognized in natural-language queries."""
        phrases: List[Tuple[str, str]] = []
        for category in self.statuses:
            for phrase in (*category.aliases, *category.terms):
                if phrase.strip():
                    phrases.append((phrase.lower(), category.key))
        return phrases

    # --- priority ---

    def priority_level(self, term: str) -> Optional[int]:
        lowered = term.lower()
        for level, terms in self.priority_levels:
            if lowered == str(level) or lowered in (t.lower() for t in terms):
                return level
        return None

    def is_priority_term(self, term: str) -> bool:
        return term.lower() in (t.lower() for t in self.priority_general_terms)

    # --- due date ---

    def due_date_phrases(self) -> List[Tuple[str, str]]:
        """(phrase, canonical keyword) pairs for natural-language date words."""
        return [
            (term.lower(), keyword)
            for keyword, terms in self.due_date_terms
            for term in terms
            if term.strip()
        ]

    def is_due_date_term(self, term: str) -> bool:
        return term.lower() in (t.lower() for t in self.due_date_general_terms)

    # --- tokenizer support ---

    def cjk_lexicon(self) -> Tuple[str, ...]:
        """Every CJK term the glossary knows, used to segment unspaced text."""
        terms: List[str] = list(self.status_general_terms)
        terms.extend(self.priority_general_terms)
        terms.extend(self.due_date_general_terms)
        for category in self.statuses:
            terms.extend(category.aliases)
            terms.extend(category.terms)
        for _, level_terms in self.priority_levels:
            terms.extend(level_terms)
        for _, date_terms in self.due_date_terms:
            terms.extend(date_terms)
        return tuple(sorted({t for t in terms if is_cjk(t)}))

    def with_orders(self, orders: Mapping[str, int]) -> "PropertyGlossary":
        statuses = tuple(
            replace(category, order=orders.get(category.key, category.order))
            for category in self.statuses
        )
        return replace(self, statuses=statuses)


# --- building from configuration ---


def _as_terms(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(part.strip() for part in value.split(",") if part.strip())
    return tuple(str(item) for item in value)


def build_glossary(raw: Mapping[str, Any]) -> PropertyGlossary:
    """Build a glossary from the ``[glossary]`` configuration section.

    Raises:
        ConfigValidationError: a status score is outside [0, 1], an order is
            not an integer, or a priority level key is not 1-4.
    """
    issues: List[str] = []
    statuses: List[StatusCategory] = []
    for key, entry in (raw.get("status") or {}).items():
        entry = entry or {}
        score = entry.get("score", NEUTRAL_STATUS_SCORE)
        if not isinstance(score, (int, float)) or isinstance(score, bool) or not 0.0 <= score <= 1.0:
            issues.append(f"status '{key}' score must be between 0 and 1, got {score!r}")
            score = NEUTRAL_STATUS_SCORE
        order = entry.get("order")
        if order is not None and (not isinstance(order, int) or isinstance(order, bool)):
            issues.append(f"status '{key}' order must be an integer, got {order!r}")
            order = None
        statuses.append(
            StatusCategory(
                key=str(key),
                display_name=str(entry.get("display_name", key)),
                symbols=tuple(str(s) for s in entry.get("symbols", ())),
                aliases=_as_terms(entry.get("aliases")),
                score=float(score),
                order=order,
                description=str(entry.get("description", "")),
                terms=_as_terms(entry.get("terms")),
            )
        )

    priority = raw.get("priority") or {}
    levels: List[Tuple[int, Tuple[str, ...]]] = []
    for level_key, terms in (priority.get("levels") or {}).items():
        try:
            level = int(level_key)
        except (TypeError, ValueError):
            level = 0
        if not 1 <= level <= 4:
            issues.append(f"priority level {level_key!r} must be between 1 and 4")
            continue
        levels.append((level, _as_terms(terms)))
    levels.sort()

    due = dict(raw.get("due_date") or {})
    due_general = _as_terms(due.pop("general", ()))
    due_terms: List[Tuple[str, Tuple[str, ...]]] = []
    for keyword, terms in due.items():
        canonical = normalize_keyword(str(keyword))
        if canonical is None:
            issues.append(f"unknown due-date keyword {keyword!r} in glossary")
            continue
        due_terms.append((canonical, _as_terms(terms)))

    if issues:
        raise ConfigValidationError(issues, source="glossary")

    glossary = PropertyGlossary(
        statuses=tuple(statuses),
        status_general_terms=_as_terms((raw.get("status_terms") or {}).get("general")),
        priority_general_terms=_as_terms(priority.get("general")),
        priority_levels=tuple(levels),
        due_date_general_terms=due_general,
        due_date_terms=tuple(due_terms),
    )
    logger.debug(
        "built glossary statuses=%s priority_levels=%d due_keywords=%d",
        glossary.status_keys,
        len(levels),
        len(due_terms),
    )
    return glossary


# --- sort position validation and repair ---


@dataclass(frozen=True)
class SortConflict:
    order: int
    categories: Tuple[str, ...]


@dataclass(frozen=True)
class SortPositionReport:
    conflicts: Tuple[SortConflict, ...] = ()
    warnings: Tuple[str, ...] = ()

    @property
    def valid(self) -> bool:
        return not self.conflicts


@dataclass(frozen=True)
class OrderChange:
    key: str
    old: Optional[int]
    new: int


@dataclass(frozen=True)
class RepairReport:
    changes: Tuple[OrderChange, ...] = ()
    conflicts: Tuple[SortConflict, ...] = ()

    @property
    def changed(self) -> bool:
        return bool(self.changes)


def validate_sort_positions(glossary: PropertyGlossary) -> SortPositionReport:
    """Find explicit sort positions shared by more than one category."""
    by_order: Dict[int, List[str]] = {}
    for category in glossary.statuses:
        if category.order is not None:
            by_order.setdefault(category.order, []).append(category.key)

    conflicts: List[SortConflict] = []
    warnings: List[str] = []
    for order in sorted(by_order):
        keys = by_order[order]
        if len(keys) < 2:
            continue
        conflicts.append(SortConflict(order, tuple(keys)))
        names = ", ".join(glossary.category(key).display_name or key for key in keys)
        warnings.append(
            f"Order {order} is used by multiple categories: {names}. "
            "This may cause unpredictable sorting behavior when sorting by status."
        )
    return SortPositionReport(tuple(conflicts), tuple(warnings))


def auto_repair_sort_positions(
    glossary: PropertyGlossary, *, gap: int = DEFAULT_REPAIR_GAP
) -> Tuple[PropertyGlossary, RepairReport]:
    """Renumber every category as gap, 2*gap, ... keeping current relative order.

    Categories sharing a position keep their declaration order. A glossary
    without conflicts is returned unchanged with an empty report.
    """
    if gap <= 0:
        raise ValueError("gap must be positive")
    report = validate_sort_positions(glossary)
    if report.valid:
        return glossary, RepairReport()

    indexed = list(enumerate(glossary.statuses))
    indexed.sort(key=lambda pair: (glossary.effective_order(pair[1].key), pair[0]))

    orders: Dict[str, int] = {}
    changes: List[OrderChange] = []
    for position, (_, category) in enumerate(indexed, start=1):
        new_order = position * gap
        orders[category.key] = new_order
        if category.order != new_order:
            changes.append(OrderChange(category.key, category.order, new_order))

    for change in changes:
        logger.info(
            "status '%s' sort position %s -> %s", change.key, change.old, change.new
        )
    return glossary.with_orders(orders), RepairReport(tuple(changes), report.conflicts)
