"""Date keywords, relative offsets and time-context ranges.

All functions take ``today`` explicitly so results never depend on the wall
clock inside a query. Weeks start on Monday.
"""

from __future__ import annotations

import calendar
import datetime
import re
from dataclasses import dataclass
from typing import Optional, Tuple

from tasksift.search.types import (
    DueDateExact,
    DueDateFilter,
    DueDateKeyword,
    DueDateRange,
)

RELATIVE_DATE_PATTERN = re.compile(r"^([+-]?)(\d+)([dwmy])$", re.IGNORECASE)
ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Keywords that denote a period relative to today.
RELATIVE_TIME_KEYWORDS = (
    "today",
    "tomorrow",
    "yesterday",
    "overdue",
    "future",
    "week",
    "last-week",
    "next-week",
    "month",
    "last-month",
    "next-month",
    "year",
    "last-year",
    "next-year",
)
PRESENCE_KEYWORDS = ("any", "none")
DUE_DATE_KEYWORDS = RELATIVE_TIME_KEYWORDS + PRESENCE_KEYWORDS

KEYWORD_ALIASES = {
    "all": "any",
    "od": "overdue",
    "this-week": "week",
    "thisweek": "week",
    "nextweek": "next-week",
    "lastweek": "last-week",
    "this-month": "month",
    "thismonth": "month",
    "nextmonth": "next-month",
    "lastmonth": "last-month",
    "this-year": "year",
    "nextyear": "next-year",
    "lastyear": "last-year",
}

TIME_CONTEXT_DESCRIPTIONS = {
    "today": "Tasks due today + overdue",
    "tomorrow": "Tasks due by tomorrow + overdue",
    "yesterday": "Tasks that were due yesterday",
    "overdue": "Tasks past their due date",
    "future": "Tasks due after today",
    "week": "Tasks due this week + overdue",
    "next-week": "Tasks due by the end of next week + overdue",
    "last-week": "Tasks that were due last week",
    "month": "Tasks due this month + overdue",
    "next-month": "Tasks due by the end of next month + overdue",
    "last-month": "Tasks that were due last month",
    "year": "Tasks due this year + overdue",
    "next-year": "Tasks due by the end of next year + overdue",
    "last-year": "Tasks that were due last year",
}


@dataclass(frozen=True)
class DateSpan:
    """Inclusive date interval. ``None`` on either side means unbounded."""

    start: Optional[datetime.date]
    end: Optional[datetime.date]

    def contains(self, day: datetime.date) -> bool:
        if self.start is not None and day < self.start:
            return False
        if self.end is not None and day > self.end:
            return False
        return True


def normalize_keyword(value: str) -> Optional[str]:
    """Return the canonical due-date keyword for ``value`` or ``None``."""
    lowered = value.strip().lower().replace("_", "-").replace(" ", "-")
    lowered = KEYWORD_ALIASES.get(lowered, lowered)
    return lowered if lowered in DUE_DATE_KEYWORDS else None


def add_months(day: datetime.date, months: int) -> datetime.date:
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return datetime.date(year, month, min(day.day, last_day))


def parse_relative_date(value: str, today: datetime.date) -> Optional[datetime.date]:
    """Resolve offsets such as ``3d``, ``+2w``, ``-1m`` or ``1y`` against today."""
    match = RELATIVE_DATE_PATTERN.match(value.strip())
    if not match:
        return None
    sign = -1 if match.group(1) == "-" else 1
    amount = int(match.group(2)) * sign
    unit = match.group(3).lower()
    try:
        if unit == "d":
            return today + datetime.timedelta(days=amount)
        if unit == "w":
            return today + datetime.timedelta(weeks=amount)
        if unit == "m":
            return add_months(today, amount)
        return add_months(today, amount * 12)
    except (OverflowError, ValueError):
        # Offsets past year 9999.
        return None


def parse_iso_date(value: str) -> Optional[datetime.date]:
    value = value.strip()
    if not ISO_DATE_PATTERN.match(value):
        return None
    try:
        return datetime.date.fromisoformat(value)
    except ValueError:
        return None


def _week_bounds(day: datetime.date) -> Tuple[datetime.date, datetime.date]:
    start = day - datetime.timedelta(days=day.weekday())
    return start, start + datetime.timedelta(days=6)


def _month_bounds(day: datetime.date) -> Tuple[datetime.date, datetime.date]:
    start = day.replace(day=1)
    return start, day.replace(day=calendar.monthrange(day.year, day.month)[1])


def _year_bounds(day: datetime.date) -> Tuple[datetime.date, datetime.date]:
    return datetime.date(day.year, 1, 1), datetime.date(day.year, 12, 31)


def keyword_span(keyword: str, today: datetime.date) -> Optional[DateSpan]:
    """Return the inclusive span a relative keyword covers, or ``None``."""
    one_day = datetime.timedelta(days=1)
    if keyword == "today":
        return DateSpan(today, today)
    if keyword == "tomorrow":
        return DateSpan(today + one_day, today + one_day)
    if keyword == "yesterday":
        return DateSpan(today - one_day, today - one_day)
    if keyword == "overdue":
        return DateSpan(None, today - one_day)
    if keyword == "future":
        return DateSpan(today + one_day, None)
    if keyword in ("week", "last-week", "next-week"):
        offset = {"week": 0, "last-week": -1, "next-week": 1}[keyword]
        return DateSpan(*_week_bounds(today + datetime.timedelta(weeks=offset)))
    if keyword in ("month", "last-month", "next-month"):
        offset = {"month": 0, "last-month": -1, "next-month": 1}[keyword]
        return DateSpan(*_month_bounds(add_months(today.replace(day=1), offset)))
    if keyword in ("year", "last-year", "next-year"):
        offset = {"year": 0, "last-year": -1, "next-year": 1}[keyword]
        return DateSpan(*_year_bounds(today.replace(year=today.year + offset, day=1)))
    return None


def resolve_date_value(value: str, today: datetime.date) -> Optional[datetime.date]:
    """Resolve an ISO date, relative offset or keyword to a single reference day.

    Period keywords resolve to their last day, ``overdue`` to today and
    ``future`` to tomorrow.
    """
    parsed = parse_iso_date(value) or parse_relative_date(value, today)
    if parsed is not None:
        return parsed
    keyword = normalize_keyword(value)
    if keyword is None or keyword in PRESENCE_KEYWORDS:
        return None
    span = keyword_span(keyword, today)
    if span is None:
        return None
    if keyword == "overdue":
        return today
    return span.end or span.start


def parse_due_value(value: str, today: datetime.date) -> Optional[DueDateFilter]:
    """Turn a shorthand due-date value (``today``, ``+3d``, ``2025-01-31``) into a filter."""
    keyword = normalize_keyword(value)
    if keyword is not None:
        return DueDateKeyword(keyword)
    parsed = parse_iso_date(value) or parse_relative_date(value, today)
    if parsed is not None:
        return DueDateExact(parsed)
    return None


def matches_due_date(
    due: Optional[datetime.date], date_filter: DueDateFilter, today: datetime.date
) -> bool:
    """Check one task due date against a due-date filter."""
    if isinstance(date_filter, DueDateKeyword):
        if date_filter.keyword == "any":
            return due is not None
        if date_filter.keyword == "none":
            return due is None
        if due is None:
            return False
        span = keyword_span(date_filter.keyword, today)
        return span is not None and span.contains(due)
    if due is None:
        return False
    if isinstance(date_filter, DueDateExact):
        return due == date_filter.day
    operator = date_filter.operator
    reference = date_filter.reference
    if operator == "<":
        return due < reference
    if operator == "<=":
        return due <= reference
    if operator == ">":
        return due > reference
    if operator == ">=":
        return due >= reference
    return reference <= due <= date_filter.end


def time_context_to_range(keyword: str, today: datetime.date) -> Optional[DueDateRange]:
    """Permissive range used when a time word is context rather than a filter.

    Current and future periods become "due on or before the end of the
    period", which keeps overdue tasks in view. Past periods become a closed
    range over that period.
    """
    span = keyword_span(keyword, today)
    if span is None:
        return None
    if keyword == "overdue":
        return DueDateRange("<", today)
    if keyword == "future":
        return DueDateRange(">", today)
    if keyword in ("yesterday", "last-week", "last-month", "last-year"):
        return DueDateRange("between", span.start, span.end)
    return DueDateRange("<=", span.end)


def describe_time_context(keyword: Optional[str]) -> Optional[str]:
    if keyword is None:
        return None
    return TIME_CONTEXT_DESCRIPTIONS.get(keyword, keyword)
