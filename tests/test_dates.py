import datetime

import pytest

from tasksift.search.dates import (
    add_months,
    describe_time_context,
    keyword_span,
    matches_due_date,
    normalize_keyword,
    parse_due_value,
    parse_relative_date,
    resolve_date_value,
    time_context_to_range,
)
from tasksift.search.types import DueDateExact, DueDateKeyword, DueDateRange

TODAY = datetime.date(2025, 3, 12)


@pytest.mark.parametrize(
    "value, expected",
    [
        ("today", "today"),
        ("OD", "overdue"),
        ("this_week", "week"),
        ("next week", "next-week"),
        ("all", "any"),
        ("someday", None),
    ],
)
def test_normalize_keyword(value, expected):
    assert normalize_keyword(value) == expected


@pytest.mark.parametrize(
    "value, expected",
    [
        ("3d", datetime.date(2025, 3, 15)),
        ("+2w", datetime.date(2025, 3, 26)),
        ("-1d", datetime.date(2025, 3, 11)),
        ("1m", datetime.date(2025, 4, 12)),
        ("1y", datetime.date(2026, 3, 12)),
        ("soon", None),
    ],
)
def test_parse_relative_date(value, expected):
    assert parse_relative_date(value, TODAY) == expected


def test_add_months_clamps_to_month_end():
    assert add_months(datetime.date(2025, 1, 31), 1) == datetime.date(2025, 2, 28)
    assert add_months(datetime.date(2025, 11, 15), 3) == datetime.date(2026, 2, 15)


def test_week_spans_start_on_monday():
    span = keyword_span("week", TODAY)
    assert span.start == datetime.date(2025, 3, 10)
    assert span.end == datetime.date(2025, 3, 16)
    assert keyword_span("last-week", TODAY).start == datetime.date(2025, 3, 3)
    assert keyword_span("next-week", TODAY).end == datetime.date(2025, 3, 23)


def test_month_and_year_spans():
    assert keyword_span("next-month", TODAY).end == datetime.date(2025, 4, 30)
    assert keyword_span("last-month", TODAY).start == datetime.date(2025, 2, 1)
    assert keyword_span("last-year", TODAY).end == datetime.date(2024, 12, 31)


def test_parse_due_value_variants():
    assert parse_due_value("today", TODAY) == DueDateKeyword("today")
    assert parse_due_value("2025-04-01", TODAY) == DueDateExact(datetime.date(2025, 4, 1))
    assert parse_due_value("+3d", TODAY) == DueDateExact(datetime.date(2025, 3, 15))
    assert parse_due_value("whenever", TODAY) is None


def test_resolve_date_value_uses_period_end():
    assert resolve_date_value("week", TODAY) == datetime.date(2025, 3, 16)
    assert resolve_date_value("overdue", TODAY) == TODAY
    assert resolve_date_value("future", TODAY) == datetime.date(2025, 3, 13)
    assert resolve_date_value("any", TODAY) is None


def test_matches_due_date_keywords_and_ranges():
    yesterday = datetime.date(2025, 3, 11)
    assert matches_due_date(yesterday, DueDateKeyword("overdue"), TODAY)
    assert not matches_due_date(TODAY, DueDateKeyword("overdue"), TODAY)
    assert matches_due_date(None, DueDateKeyword("none"), TODAY)
    assert not matches_due_date(None, DueDateKeyword("any"), TODAY)
    assert not matches_due_date(None, DueDateRange("<=", TODAY), TODAY)
    assert matches_due_date(
        TODAY, DueDateRange("between", yesterday, TODAY), TODAY
    )
    assert not matches_due_date(TODAY, DueDateRange("<", TODAY), TODAY)


def test_range_requires_known_operator_and_between_end():
    with pytest.raises(ValueError):
        DueDateRange("~", TODAY)
    with pytest.raises(ValueError):
        DueDateRange("between", TODAY)


@pytest.mark.parametrize(
    "keyword, expected",
    [
        ("today", DueDateRange("<=", TODAY)),
        ("tomorrow", DueDateRange("<=", datetime.date(2025, 3, 13))),
        ("week", DueDateRange("<=", datetime.date(2025, 3, 16))),
        ("month", DueDateRange("<=", datetime.date(2025, 3, 31))),
        ("overdue", DueDateRange("<", TODAY)),
        ("future", DueDateRange(">", TODAY)),
        (
            "last-week",
            DueDateRange("between", datetime.date(2025, 3, 3), datetime.date(2025, 3, 9)),
        ),
        (
            "yesterday",
            DueDateRange("between", datetime.date(2025, 3, 11), datetime.date(2025, 3, 11)),
        ),
    ],
)
def test_time_context_to_range(keyword, expected):
    assert time_context_to_range(keyword, TODAY) == expected


def test_describe_time_context():
    assert describe_time_context("today") == "Tasks due today + overdue"
    assert describe_time_context(None) is None
