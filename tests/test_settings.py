import copy

import pytest

from tasksift.config.loader import load_bundled_config
from tasksift.core.exceptions import ConfigValidationError
from tasksift.search.settings import (
    build_search_settings,
    default_settings,
    load_search_settings,
)
from tasksift.search.types import ScoringCoefficients


def _config(**sections):
    config = copy.deepcopy(load_bundled_config())
    for section, values in sections.items():
        config.setdefault(section, {}).update(values)
    return config


def test_default_settings_match_bundled_config():
    settings = default_settings()
    assert settings.coefficients == ScoringCoefficients()
    assert settings.languages == ("English", "中文")
    assert settings.max_expansions_per_keyword == 10
    assert settings.tie_breakers == ("due_date", "priority", "status", "alphabetical")
    assert settings.request_timeout == 20.0
    assert settings.quality_filter_strength == 0.0
    assert settings.minimum_relevance_score == 0.0
    assert settings.config_warnings == ()


def test_default_settings_overrides():
    assert default_settings(use_ai=False).use_ai is False


def test_non_positive_coefficient_is_rejected():
    with pytest.raises(ConfigValidationError) as exc_info:
        build_search_settings(_config(scoring={"relevance": 0, "priority": -1.0}))
    issues = exc_info.value.issues
    assert len(issues) == 2
    assert "scoring.relevance must be greater than 0" in issues[0]


def test_all_issues_are_reported_together():
    config = _config(
        search={"vagueness_threshold": 1.5, "max_direct_results": 0, "languages": []},
        scoring={"due_date_scores": {"overdue": -1}},
    )
    config["glossary"]["status"]["open"]["score"] = 2.0

    with pytest.raises(ConfigValidationError) as exc_info:
        build_search_settings(config)

    issues = exc_info.value.issues
    assert exc_info.value.source == "settings"
    assert len(issues) == 5
    assert any("status 'open' score" in issue for issue in issues)
    assert any("search.languages" in issue for issue in issues)


def test_quality_filter_settings_are_validated():
    settings = build_search_settings(
        _config(search={"quality_filter_strength": 0.5, "minimum_relevance_score": 0.8})
    )
    assert settings.quality_filter_strength == 0.5
    assert settings.minimum_relevance_score == 0.8

    with pytest.raises(ConfigValidationError) as exc_info:
        build_search_settings(
            _config(search={"quality_filter_strength": 1.5, "minimum_relevance_score": -1})
        )
    issues = exc_info.value.issues
    assert len(issues) == 2
    assert "search.quality_filter_strength must be at most 1" in issues[0]
    assert "search.minimum_relevance_score must be at least 0" in issues[1]


def test_tie_breaker_warnings_are_collected():
    settings = build_search_settings(
        _config(search={"tie_breakers": ["relevance", "priority", "size"]})
    )
    assert settings.tie_breakers == ("priority",)
    assert len(settings.config_warnings) == 2


def test_sort_conflicts_warn_without_repair():
    config = _config()
    config["glossary"]["status"]["in_progress"]["order"] = 1
    settings = build_search_settings(config)

    assert settings.repair_report is None
    assert any("Order 1 is used by multiple categories" in w for w in settings.config_warnings)
    assert settings.glossary.category("in_progress").order == 1


def test_sort_conflicts_repaired_on_request():
    config = _config()
    config["glossary"]["status"]["in_progress"]["order"] = 1
    settings = build_search_settings(config, auto_repair=True)

    orders = [category.order for category in settings.glossary.statuses]
    assert orders == [10, 20, 30, 40, 50]
    assert settings.repair_report.changed
    assert "repaired" in settings.config_warnings[0]


def test_load_search_settings_uses_user_configuration():
    settings = load_search_settings()
    assert settings.max_direct_results == 30
