"""Immutable search settings built from the raw configuration dictionary."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Tuple

from tasksift.core.exceptions import ConfigValidationError
from tasksift.search.glossary import (
    PropertyGlossary,
    RepairReport,
    auto_repair_sort_positions,
    build_glossary,
    validate_sort_positions,
)
from tasksift.search.sorting import DEFAULT_TIE_BREAKERS, normalize_criteria
from tasksift.search.types import DueDateScores, PriorityScores, ScoringCoefficients

logger = logging.getLogger(__name__)

COEFFICIENT_KEYS = ("relevance", "due_date", "priority", "status")
DUE_DATE_SCORE_KEYS = ("overdue", "within_week", "within_month", "later", "none")


@dataclass(frozen=True)
class SearchSettings:
    """Everything one query needs besides the corpus and the language model."""

    glossary: PropertyGlossary
    coefficients: ScoringCoefficients = field(default_factory=ScoringCoefficients)
    languages: Tuple[str, ...] = ("English",)
    expansions_per_language: int = 5
    vagueness_threshold: float = 0.7
    confidence_threshold: float = 0.7
    quality_filter_strength: float = 0.0
    minimum_relevance_score: float = 0.0
    max_direct_results: int = 30
    max_summarizer_results: int = 100
    tie_breakers: Tuple[str, ...] = DEFAULT_TIE_BREAKERS
    request_timeout: float = 20.0
    max_retries: int = 1
    max_retry_wait: float = 5.0
    use_ai: bool = True
    stop_words: Tuple[str, ...] = ()
    config_warnings: Tuple[str, ...] = ()
    repair_report: Optional[RepairReport] = None

    @property
    def max_expansions_per_keyword(self) -> int:
        return self.expansions_per_language * max(1, len(self.languages))


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _number(
    section: Mapping[str, Any],
    key: str,
    default: float,
    issues: List[str],
    *,
    prefix: str,
    minimum: Optional[float] = None,
    maximum: Optional[float] = None,
    exclusive_minimum: bool = False,
) -> float:
    value = section.get(key, default)
    if not _is_number(value):
        issues.append(f"{prefix}.{key} must be a number, got {value!r}")
        return default
    if minimum is not None and (value <= minimum if exclusive_minimum else value < minimum):
        bound = "greater than" if exclusive_minimum else "at least"
        issues.append(f"{prefix}.{key} must be {bound} {minimum}, got {value!r}")
        return default
    if maximum is not None and value > maximum:
        issues.append(f"{prefix}.{key} must be at most {maximum}, got {value!r}")
        return default
    return float(value)


def _integer(
    section: Mapping[str, Any],
    key: str,
    default: int,
    issues: List[str],
    *,
    prefix: str,
    minimum: int = 0,
    maximum: Optional[int] = None,
) -> int:
    value = section.get(key, default)
    if not isinstance(value, int) or isinstance(value, bool):
        issues.append(f"{prefix}.{key} must be an integer, got {value!r}")
        return default
    if value < minimum or (maximum is not None and value > maximum):
        upper = f" and {maximum}" if maximum is not None else ""
        issues.append(f"{prefix}.{key} must be between {minimum}{upper}, got {value!r}")
        return default
    return value


def build_coefficients(scoring: Mapping[str, Any], issues: List[str]) -> ScoringCoefficients:
    """Read ``[scoring]``. Problems are appended to ``issues``."""
    defaults = ScoringCoefficients()
    weights: Dict[str, float] = {
        key: _number(
            scoring, key, getattr(defaults, key), issues,
            prefix="scoring", minimum=0, exclusive_minimum=True,
        )
        for key in COEFFICIENT_KEYS
    }
    core_weight = _number(
        scoring, "core_weight", defaults.core_weight, issues, prefix="scoring", minimum=0
    )

    raw_due = scoring.get("due_date_scores") or {}
    due_defaults = DueDateScores()
    due_scores = DueDateScores(
        **{
            key: _number(
                raw_due, key, getattr(due_defaults, key), issues,
                prefix="scoring.due_date_scores", minimum=0,
            )
            for key in DUE_DATE_SCORE_KEYS
        }
    )

    raw_priority = {str(k): v for k, v in (scoring.get("priority_scores") or {}).items()}
    priority_defaults = PriorityScores()
    levels = tuple(
        _number(
            raw_priority, str(level), priority_defaults.levels[level - 1], issues,
            prefix="scoring.priority_scores", minimum=0,
        )
        for level in range(1, 5)
    )
    priority_scores = PriorityScores(
        levels=levels,
        none=_number(
            raw_priority, "none", priority_defaults.none, issues,
            prefix="scoring.priority_scores", minimum=0,
        ),
    )
    return ScoringCoefficients(
        core_weight=core_weight,
        due_date_scores=due_scores,
        priority_scores=priority_scores,
        **weights,
    )


def build_search_settings(
    config: Mapping[str, Any], *, auto_repair: bool = False
) -> SearchSettings:
    """Validate the raw configuration and freeze it into ``SearchSettings``.

    Duplicate status sort positions are reported in ``config_warnings``. They
    are only renumbered when ``auto_repair`` is set, and the changes are kept
    in ``repair_report``.

    Raises:
        ConfigValidationError: with every problem found, when any value is
            unusable (non-positive coefficient, status score outside [0, 1],
            threshold outside [0, 1], and so on).
    """
    issues: List[str] = []
    search = config.get("search") or {}
    general = config.get("general") or {}

    glossary: Optional[PropertyGlossary] = None
    try:
        glossary = build_glossary(config.get("glossary") or {})
    except ConfigValidationError as exc:
        issues.extend(exc.issues)

    coefficients = build_coefficients(config.get("scoring") or {}, issues)

    languages = search.get("languages", ["English"])
    if isinstance(languages, str):
        languages = [languages]
    if not languages or not all(isinstance(lang, str) and lang.strip() for lang in languages):
        issues.append(f"search.languages must be a non-empty list of names, got {languages!r}")
        languages = ["English"]

    settings_kwargs = dict(
        languages=tuple(languages),
        expansions_per_language=_integer(
            search, "expansions_per_language", 5, issues, prefix="search"
        ),
        vagueness_threshold=_number(
            search, "vagueness_threshold", 0.7, issues, prefix="search", minimum=0, maximum=1
        ),
        confidence_threshold=_number(
            search, "confidence_threshold", 0.7, issues, prefix="search", minimum=0, maximum=1
        ),
        quality_filter_strength=_number(
            search, "quality_filter_strength", 0.0, issues, prefix="search", minimum=0, maximum=1
        ),
        minimum_relevance_score=_number(
            search, "minimum_relevance_score", 0.0, issues, prefix="search", minimum=0
        ),
        max_direct_results=_integer(
            search, "max_direct_results", 30, issues, prefix="search", minimum=1
        ),
        max_summarizer_results=_integer(
            search, "max_summarizer_results", 100, issues, prefix="search", minimum=1
        ),
        max_retries=_integer(
            search, "max_retries", 1, issues, prefix="search", minimum=0, maximum=1
        ),
        max_retry_wait=_number(search, "max_retry_wait", 5.0, issues, prefix="search", minimum=0),
        request_timeout=_number(
            general, "request_timeout", 20.0, issues,
            prefix="general", minimum=0, exclusive_minimum=True,
        ),
        use_ai=bool(search.get("use_ai", True)),
        stop_words=tuple(str(word).lower() for word in search.get("stop_words") or ()),
    )

    if issues:
        raise ConfigValidationError(issues, source="settings")

    warnings: List[str] = []
    tie_breakers, tie_warnings = normalize_criteria(
        search.get("tie_breakers", DEFAULT_TIE_BREAKERS)
    )
    warnings.extend(tie_warnings)

    report = validate_sort_positions(glossary)
    repair_report: Optional[RepairReport] = None
    if not report.valid:
        if auto_repair:
            glossary, repair_report = auto_repair_sort_positions(glossary)
            warnings.append(
                f"Status sort positions were repaired ({len(repair_report.changes)} changed)."
            )
        else:
            warnings.extend(report.warnings)

    for warning in warnings:
        logger.warning(warning)

    return SearchSettings(
        glossary=glossary,
        coefficients=coefficients,
        tie_breakers=tie_breakers,
        config_warnings=tuple(warnings),
        repair_report=repair_report,
        **settings_kwargs,
    )


def default_settings(**overrides: Any) -> SearchSettings:
    """Settings from the bundled defaults only, ignoring user files."""
    from tasksift.config.loader import load_bundled_config

    settings = build_search_settings(load_bundled_config())
    if overrides:
        settings = replace(settings, **overrides)
    return settings


def load_search_settings(*, auto_repair: bool = False) -> SearchSettings:
    """Settings from the merged user configuration."""
    from tasksift.config import get_config

    return build_search_settings(get_config(), auto_repair=auto_repair)
