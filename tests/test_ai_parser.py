import datetime
import threading
import unittest
from unittest.mock import MagicMock

import requests

from tasksift.search.ai_parser import parse_with_ai
from tasksift.search.failures import FailureCategory, ParseOutcome, ServiceFailure
from tasksift.search.service import ServiceDraft
from tasksift.search.settings import default_settings
from tasksift.search.types import (
    DueDateKeyword,
    DueDateRange,
    PriorityLevels,
)

TODAY = datetime.date(2025, 3, 12)


def _service(*results):
    service = MagicMock()
    service.parse.side_effect = list(results)
    return service


class TestParseWithAi(unittest.TestCase):
    def setUp(self):
        self.settings = default_settings(max_retry_wait=0.0)

    def _parse(self, text, service, **kwargs):
        return parse_with_ai(text, self.settings, service=service, today=TODAY, **kwargs)

    def test_confident_draft_is_used(self):
        draft = ServiceDraft(
            core_keywords=("login",),
            expansions={"login": {"English": ("sign in", "log in", "signin")}},
            priority=(1,),
            due_date="today",
            confidence=0.9,
        )
        result = self._parse("urgent login issues today", _service(draft))

        self.assertEqual(result.outcome, ParseOutcome.SUCCEEDED_AI)
        self.assertFalse(result.used_fallback)
        self.assertEqual(result.ai_confidence, 0.9)
        query = result.query
        self.assertEqual(query.core_keywords, ("login",))
        self.assertEqual(query.expanded_keywords, ("login", "sign in", "log in", "signin"))
        self.assertEqual(query.priority_filter, PriorityLevels((1,)))
        self.assertEqual(query.due_date_filter, DueDateKeyword("today"))
        self.assertFalse(query.is_vague)

    def test_missing_confidence_is_accepted(self):
        result = self._parse("login bugs", _service(ServiceDraft(core_keywords=("login",))))
        self.assertEqual(result.outcome, ParseOutcome.SUCCEEDED_AI)
        self.assertIsNone(result.ai_confidence)

    def test_vague_question_from_model_becomes_time_context(self):
        draft = ServiceDraft(due_date="today", confidence=0.95)
        result = self._parse("what should I do today", _service(draft))

        self.assertEqual(result.outcome, ParseOutcome.SUCCEEDED_AI)
        self.assertTrue(result.query.is_vague)
        self.assertEqual(result.query.time_context, "today")
        self.assertEqual(result.query.due_date_filter, DueDateRange("<=", TODAY))

    def test_explicit_shorthand_overrides_model_properties(self):
        draft = ServiceDraft(
            core_keywords=("login", "bugs"), priority=(1,), status=("completed",), confidence=0.9
        )
        result = self._parse("p2 s:open login bugs", _service(draft))

        self.assertEqual(result.outcome, ParseOutcome.SUCCEEDED_AI)
        self.assertEqual(result.query.priority_filter, PriorityLevels((2,)))
        self.assertEqual(result.query.status_filter, ("open",))

    def test_shorthand_only_query_skips_the_model(self):
        service = _service()
        result = self._parse("p1 d:today #work", service)

        self.assertEqual(result.outcome, ParseOutcome.SUCCEEDED_RULES)
        service.parse.assert_not_called()
        self.assertEqual(result.query.tags_filter, ("work",))

    def test_disabled_ai_uses_rules(self):
        service = _service()
        self.settings = default_settings(use_ai=False)
        result = self._parse("login bugs", service)

        self.assertEqual(result.outcome, ParseOutcome.SUCCEEDED_RULES)
        self.assertFalse(result.used_fallback)
        service.parse.assert_not_called()

    def test_no_service_uses_rules(self):
        result = self._parse("login bugs", None)
        self.assertEqual(result.outcome, ParseOutcome.SUCCEEDED_RULES)
        self.assertEqual(result.query.core_keywords, ("login", "bugs"))

    def test_timeout_is_retried_once_then_falls_back(self):
        timeout = ServiceFailure(FailureCategory.TIMEOUT, "read timed out")
        service = _service(timeout, timeout)
        result = self._parse("login bugs", service)

        self.assertEqual(service.parse.call_count, 2)
        self.assertEqual(result.outcome, ParseOutcome.SUCCEEDED_FALLBACK)
        self.assertTrue(result.used_fallback)
        self.assertIs(result.failure.category, FailureCategory.TIMEOUT)
        self.assertEqual(result.query.core_keywords, ("login", "bugs"))

    def test_retry_can_recover(self):
        service = _service(
            ServiceFailure(FailureCategory.SERVER_ERROR, status_code=503),
            ServiceDraft(core_keywords=("login",), confidence=0.8),
        )
        result = self._parse("login bugs", service)

        self.assertEqual(service.parse.call_count, 2)
        self.assertEqual(result.outcome, ParseOutcome.SUCCEEDED_AI)

    def test_non_retryable_failure_is_not_retried(self):
        service = _service(ServiceFailure(FailureCategory.UNAUTHORIZED, status_code=401))
        result = self._parse("login bugs", service)

        self.assertEqual(service.parse.call_count, 1)
        self.assertEqual(result.failure.code, "unauthorized")
        self.assertIn("API key", result.failure.remediation)

    def test_no_retry_when_disabled(self):
        self.settings = default_settings(max_retries=0)
        service = _service(ServiceFailure(FailureCategory.TIMEOUT))
        self._parse("login bugs", service)
        self.assertEqual(service.parse.call_count, 1)

    def test_raised_exception_is_classified(self):
        service = _service(
            requests.exceptions.ConnectionError("refused"),
            requests.exceptions.ConnectionError("refused"),
        )
        result = self._parse("login bugs", service)

        self.assertEqual(service.parse.call_count, 2)
        self.assertIs(result.failure.category, FailureCategory.NETWORK_ERROR)

    def test_retry_after_wait_is_capped(self):
        self.settings = default_settings(max_retry_wait=2.0)
        event = MagicMock(spec=threading.Event)
        event.is_set.return_value = False
        event.wait.return_value = False
        service = _service(
            ServiceFailure(FailureCategory.RATE_LIMITED, status_code=429, retry_after=30.0),
            ServiceFailure(FailureCategory.RATE_LIMITED, status_code=429, retry_after=30.0),
        )
        result = self._parse("login bugs", service, cancel_event=event)

        event.wait.assert_called_once_with(2.0)
        self.assertIs(result.failure.category, FailureCategory.RATE_LIMITED)

    def test_low_confidence_falls_back(self):
        draft = ServiceDraft(core_keywords=("something",), confidence=0.4)
        result = self._parse("login bugs", _service(draft))

        self.assertEqual(result.outcome, ParseOutcome.SUCCEEDED_FALLBACK_LOW_CONFIDENCE)
        self.assertTrue(result.used_fallback)
        self.assertEqual(result.ai_confidence, 0.4)
        self.assertIsNone(result.failure)
        self.assertEqual(result.query.core_keywords, ("login", "bugs"))

    def test_unresolvable_draft_values_fall_back_as_malformed(self):
        for draft in (
            ServiceDraft(core_keywords=("login",), status=("blocked",), confidence=0.9),
            ServiceDraft(core_keywords=("login",), due_date="someday", confidence=0.9),
        ):
            result = self._parse("login bugs", _service(draft))
            self.assertEqual(result.outcome, ParseOutcome.SUCCEEDED_FALLBACK)
            self.assertIs(result.failure.category, FailureCategory.MALFORMED_RESPONSE)

    def test_cancelled_before_call(self):
        event = threading.Event()
        event.set()
        service = _service()
        result = self._parse("login bugs", service, cancel_event=event)

        self.assertTrue(result.cancelled)
        self.assertEqual(result.outcome, ParseOutcome.SUCCEEDED_FALLBACK)
        self.assertIsNone(result.failure)
        service.parse.assert_not_called()

    def test_cancelled_during_call(self):
        event = threading.Event()

        def cancel_and_answer(*args, **kwargs):
            event.set()
            return ServiceDraft(core_keywords=("ignored",), confidence=0.9)

        service = MagicMock()
        service.parse.side_effect = cancel_and_answer
        result = self._parse("login bugs", service, cancel_event=event)

        self.assertTrue(result.cancelled)
        self.assertEqual(result.query.core_keywords, ("login", "bugs"))

    def test_out_of_range_draft_from_any_service_falls_back(self):
        for draft in (
            ServiceDraft(core_keywords=("login",), priority=(9,), confidence=0.9),
            ServiceDraft(core_keywords=("login",), confidence=5.0),
            ServiceDraft(core_keywords=("login",), priority=(9,), confidence=5.0),
        ):
            result = self._parse("login bugs", _service(draft))
            self.assertEqual(result.outcome, ParseOutcome.SUCCEEDED_FALLBACK)
            self.assertIs(result.failure.category, FailureCategory.MALFORMED_RESPONSE)
            self.assertIsNone(result.ai_confidence)
            self.assertIsNone(result.query.priority_filter)

    def test_draft_priority_is_normalized(self):
        draft = ServiceDraft(core_keywords=("login",), priority=(2, 1, 2), confidence=0.9)
        result = self._parse("login bugs", _service(draft))
        self.assertEqual(result.outcome, ParseOutcome.SUCCEEDED_AI)
        self.assertEqual(result.query.priority_filter, PriorityLevels((1, 2)))

    def test_bare_failure_category_is_wrapped(self):
        service = MagicMock()
        service.parse.return_value = FailureCategory.TIMEOUT
        result = self._parse("login bugs", service)

        self.assertEqual(service.parse.call_count, 2)
        self.assertEqual(result.outcome, ParseOutcome.SUCCEEDED_FALLBACK)
        self.assertIs(result.failure.category, FailureCategory.TIMEOUT)

    def test_unexpected_service_return_is_malformed(self):
        for value in (None, {"core_keywords": ["login"]}, "login"):
            service = MagicMock()
            service.parse.return_value = value
            result = self._parse("login bugs", service)

            self.assertEqual(service.parse.call_count, 1)
            self.assertEqual(result.outcome, ParseOutcome.SUCCEEDED_FALLBACK)
            self.assertIs(result.failure.category, FailureCategory.MALFORMED_RESPONSE)
            self.assertEqual(result.query.core_keywords, ("login", "bugs"))
