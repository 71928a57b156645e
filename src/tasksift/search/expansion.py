"""Bounding and deduplication of semantic keyword expansions.

The language model proposes equivalents for each core keyword, optionally
grouped by language. This module only decides what to keep:

- at most ``expansions_per_language`` kept per language group, and at most
  ``expansions_per_language * len(languages)`` per core keyword. The bound
  applies to each keyword separately, not to the query as a whole.
- case-insensitive duplicates and trivial prefix/suffix variants of terms
  already kept for the same keyword are dropped.
- core keywords are never dropped and always lead the expanded list.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

from tasksift.search.vocabulary import is_cjk

logger = logging.getLogger(__name__)

DEFAULT_EXPANSIONS_PER_LANGUAGE = 5
# Length difference up to which a shared prefix/suffix counts as a trivial variant.
TRIVIAL_AFFIX_LENGTH = 3

Proposal = Union[Sequence[str], Mapping[str, Sequence[str]]]


@dataclass(frozen=True)
class KeywordExpansion:
    core: str
    expansions: Tuple[str, ...]
    dropped: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ExpansionResult:
    core_keywords: Tuple[str, ...]
    expanded_keywords: Tuple[str, ...]
    per_keyword: Tuple[KeywordExpansion, ...]
    max_per_keyword: int

    def expansions_for(self, core: str) -> Tuple[str, ...]:
        for entry in self.per_keyword:
            if entry.core == core:
                return entry.expansions
        return ()


def max_expansions_per_keyword(expansions_per_language: int, language_count: int) -> int:
    return max(0, expansions_per_language) * max(1, language_count)


def is_trivial_variant(candidate: str, kept: str) -> bool:
    """True if ``candidate`` adds nothing over ``kept``.

    CJK terms are trivial when one contains the other. Other terms are
    trivial when equal ignoring case, or when one is a prefix or suffix of
    the other differing by at most three characters ("bug"/"bugs").
    """
    cand = candidate.strip().lower()
    base = kept.strip().lower()
    if cand == base:
        return True
    cand_cjk, base_cjk = is_cjk(cand), is_cjk(base)
    if cand_cjk and base_cjk:
        return cand in base or base in cand
    if cand_cjk != base_cjk:
        return False
    shorter, longer = sorted((cand, base), key=len)
    if len(shorter) < 3 or len(longer) - len(shorter) > TRIVIAL_AFFIX_LENGTH:
        return False
    return longer.startswith(shorter) or longer.endswith(shorter)


def _language_groups(proposal: Optional[Proposal]) -> List[Tuple[Optional[str], List[str]]]:
    if proposal is None:
        return []
    if isinstance(proposal, Mapping):
        return [
            (str(language), [str(term) for term in terms or ()])
            for language, terms in proposal.items()
        ]
    if isinstance(proposal, str):
        return [(None, [proposal])]
    return [(None, [str(term) for term in proposal])]


def _expand_one(
    core: str,
    proposal: Optional[Proposal],
    extra: Sequence[str],
    *,
    expansions_per_language: int,
    max_total: int,
) -> KeywordExpansion:
    kept: List[str] = []
    dropped: List[str] = []

    def consider(term: str) -> bool:
        term = term.strip()
        if not term:
            return False
        if len(kept) >= max_total:
            dropped.append(term)
            return False
        if any(is_trivial_variant(term, existing) for existing in (core, *kept)):
            dropped.append(term)
            return False
        kept.append(term)
        return True

    for language, terms in _language_groups(proposal):
        per_language = 0
        for term in terms:
            if language is not None and per_language >= expansions_per_language:
                dropped.append(term)
                continue
            if consider(term):
                per_language += 1
    for term in extra:
        consider(term)
    return KeywordExpansion(core, tuple(kept), tuple(dropped))


def expand_keywords(
    core_keywords: Sequence[str],
    proposals: Optional[Mapping[str, Proposal]] = None,
    *,
    languages: Sequence[str],
    expansions_per_language: int = DEFAULT_EXPANSIONS_PER_LANGUAGE,
    unattributed: Sequence[str] = (),
) -> ExpansionResult:
    """Bound and deduplicate proposed expansions for each core keyword.

    Args:
        core_keywords: Deduplicated core keywords in query order.
        proposals: Map of core keyword to a flat list of equivalents or a
            ``{language: [equivalents]}`` map. Keys are matched case-insensitively.
        languages: Configured query languages. Their count sets the bound.
        expansions_per_language: Per-language cap for each keyword.
        unattributed: Equivalents the model returned without naming a core
            keyword. They are dealt out round-robin to keywords with room left.
    """
    proposals = proposals or {}
    lowered_proposals: Dict[str, Proposal] = {
        str(key).lower(): value for key, value in proposals.items()
    }
    max_total = max_expansions_per_keyword(expansions_per_language, len(languages))

    extras: Dict[str, List[str]] = {core: [] for core in core_keywords}
    core_lower = {core.lower() for core in core_keywords}
    pending = [term for term in unattributed if term.strip().lower() not in core_lower]
    if core_keywords:
        for index, term in enumerate(pending):
            extras[core_keywords[index % len(core_keywords)]].append(term)

    per_keyword = tuple(
        _expand_one(
            core,
            lowered_proposals.get(core.lower()),
            extras[core],
            expansions_per_language=expansions_per_language,
            max_total=max_total,
        )
        for core in core_keywords
    )

    expanded: List[str] = []
    seen = set()
    for term in (*core_keywords, *(t for entry in per_keyword for t in entry.expansions)):
        lowered = term.lower()
        if lowered not in seen:
            seen.add(lowered)
            expanded.append(term)

    for entry in per_keyword:
        if entry.dropped:
            logger.debug(
                "expansion for %r kept %d, dropped %s", entry.core, len(entry.expansions), entry.dropped
            )
    return ExpansionResult(
        core_keywords=tuple(core_keywords),
        expanded_keywords=tuple(expanded),
        per_keyword=per_keyword,
        max_per_keyword=max_total,
    )
