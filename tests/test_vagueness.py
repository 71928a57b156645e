import datetime

from tasksift.search.types import DueDateKeyword, DueDateRange
from tasksift.search.vagueness import (
    classify_vagueness,
    has_specific_tokens,
    vagueness_ratio,
)

TODAY = datetime.date(2025, 3, 12)


def test_ratio_ignores_single_latin_letters_and_operators():
    assert vagueness_ratio(("what", "should", "I", "do")) == 1.0
    assert vagueness_ratio(("fix", "login", "&", "bug")) == 0.0
    assert vagueness_ratio(()) == 0.0


def test_has_specific_tokens():
    assert has_specific_tokens(("what", "about", "invoices"))
    assert not has_specific_tokens(("what", "should", "i", "do"))


def test_generic_question_with_time_word_becomes_context():
    result = classify_vagueness(
        ("what", "should", "I", "do"),
        due_date_filter=DueDateKeyword("today"),
        time_word="today",
        has_other_filters=False,
        today=TODAY,
    )
    assert result.is_vague
    assert result.time_context == "today"
    assert result.due_date_filter == DueDateRange("<=", TODAY)


def test_bare_time_word_forces_vagueness():
    result = classify_vagueness(
        (),
        due_date_filter=DueDateKeyword("week"),
        time_word="week",
        has_other_filters=False,
        today=TODAY,
    )
    assert result.is_vague
    assert result.forced
    assert result.due_date_filter == DueDateRange("<=", datetime.date(2025, 3, 16))


def test_time_word_with_other_filters_stays_a_filter():
    result = classify_vagueness(
        (),
        due_date_filter=DueDateKeyword("today"),
        time_word="today",
        has_other_filters=True,
        today=TODAY,
    )
    assert not result.is_vague
    assert result.time_context is None
    assert result.due_date_filter == DueDateKeyword("today")


def test_specific_query_is_not_vague():
    result = classify_vagueness(
        ("fix", "login", "bug"),
        due_date_filter=DueDateKeyword("today"),
        time_word="today",
        has_other_filters=False,
        today=TODAY,
    )
    assert not result.is_vague
    assert result.due_date_filter == DueDateKeyword("today")


def test_shorthand_date_is_never_converted():
    result = classify_vagueness(
        ("what", "should", "i", "do"),
        due_date_filter=DueDateKeyword("today"),
        time_word=None,
        has_other_filters=False,
        today=TODAY,
    )
    assert result.is_vague
    assert result.time_context is None
    assert result.due_date_filter == DueDateKeyword("today")


def test_threshold_and_extra_stop_words():
    tokens = ("show", "kindly", "invoices")
    assert not classify_vagueness(
        tokens, due_date_filter=None, time_word=None, has_other_filters=False, today=TODAY
    ).is_vague
    assert classify_vagueness(
        tokens,
        due_date_filter=None,
        time_word=None,
        has_other_filters=False,
        today=TODAY,
        threshold=0.5,
        extra_stop_words=("kindly",),
    ).is_vague
