import datetime
import unittest
from unittest.mock import patch

import pytest
import requests

from tasksift.core.exceptions import MalformedResponseError
from tasksift.search.failures import FailureCategory, ServiceFailure
from tasksift.search.service import (
    ChatCompletionService,
    DueDateRangeSpec,
    ServiceDraft,
    build_system_prompt,
    draft_from_payload,
)
from tasksift.search.settings import default_settings


def test_draft_from_snake_case_payload():
    draft = draft_from_payload(
        {
            "core_keywords": ["login", " "],
            "expansions": {"login": {"English": ["sign in"], "中文": ["登录"]}},
            "priority": [2, 1, 2],
            "due_date": " today ",
            "status": "open",
            "tags": ["#work"],
            "folder": "",
            "confidence": 0.8,
            "detected_language": "English",
        }
    )
    assert draft.core_keywords == ("login",)
    assert draft.expansions == {"login": {"English": ("sign in",), "中文": ("登录",)}}
    assert draft.priority == (1, 2)
    assert draft.due_date == "today"
    assert draft.status == ("open",)
    assert draft.tags == ("work",)
    assert draft.folder is None
    assert draft.confidence == 0.8


def test_draft_from_camel_case_payload():
    draft = draft_from_payload(
        {
            "coreKeywords": ["report"],
            "keywords": ["report", "summary"],
            "dueDateRange": {"operator": "<", "date": "2025-03-20"},
            "priority": "any",
            "aiUnderstanding": {"confidence": 0.95},
            "detectedLanguage": "English",
        }
    )
    assert draft.core_keywords == ("report",)
    assert draft.unattributed_keywords == ("summary",)
    assert draft.due_date_range == DueDateRangeSpec("<", "2025-03-20")
    assert draft.priority == "any"
    assert draft.confidence == 0.95
    assert draft.detected_language == "English"


def test_flat_keywords_become_core_when_core_is_missing():
    draft = draft_from_payload({"keywords": ["invoice"]})
    assert draft.core_keywords == ("invoice",)
    assert draft.unattributed_keywords == ()
    assert draft.confidence is None


@pytest.mark.parametrize(
    "payload",
    [
        ["not", "an", "object"],
        {"core_keywords": "ok", "priority": 7},
        {"priority": "urgent"},
        {"confidence": 1.5},
        {"confidence": "high"},
        {"status": [1, 2]},
        {"due_date": 5},
        {"due_date_range": {"operator": "<"}},
        {"expansions": ["a"]},
    ],
)
def test_malformed_payloads_raise(payload):
    with pytest.raises(MalformedResponseError):
        draft_from_payload(payload)


def test_build_system_prompt_fills_placeholders():
    settings = default_settings()
    prompt = build_system_prompt(
        "Today {TODAY}; {LANGUAGES}; {STATUS_CATEGORIES}; {EXPANSIONS_PER_LANGUAGE}/{MAX_EXPANSIONS}",
        settings.glossary,
        settings,
        datetime.date(2025, 3, 12),
    )
    assert prompt.startswith("Today 2025-03-12; English, 中文; open (Open;")
    assert prompt.endswith("; 5/10")


class TestChatCompletionService(unittest.TestCase):
    def setUp(self):
        self.settings = default_settings()
        self.service = ChatCompletionService(
            {"id": "test-model", "base_url": "https://llm.example"}, "Today is {TODAY}."
        )

    @patch("tasksift.search.service.get_llm_msg")
    def test_parse_returns_draft(self, mock_llm):
        mock_llm.return_value = {
            "content": '<think>hmm</think>```json\n{"core_keywords": ["bug"], "confidence": 0.9}\n```'
        }
        result = self.service.parse("bugs", self.settings.glossary, self.settings, 3.0)

        self.assertIsInstance(result, ServiceDraft)
        self.assertEqual(result.core_keywords, ("bug",))
        messages = mock_llm.call_args.args[1]
        self.assertEqual(messages[1], {"role": "user", "content": "bugs"})
        self.assertNotIn("{TODAY}", messages[0]["content"])
        self.assertEqual(mock_llm.call_args.kwargs["timeout"], 3.0)

    @patch("tasksift.search.service.get_llm_msg")
    def test_parse_maps_timeout_to_failure(self, mock_llm):
        mock_llm.side_effect = requests.exceptions.ReadTimeout("slow")
        result = self.service.parse("bugs", self.settings.glossary, self.settings, 3.0)

        self.assertIsInstance(result, ServiceFailure)
        self.assertIs(result.category, FailureCategory.TIMEOUT)

    @patch("tasksift.search.service.get_llm_msg")
    def test_parse_maps_non_json_reply_to_malformed(self, mock_llm):
        mock_llm.return_value = {"content": "Sorry, I cannot help with that."}
        result = self.service.parse("bugs", self.settings.glossary, self.settings, 3.0)

        self.assertIsInstance(result, ServiceFailure)
        self.assertIs(result.category, FailureCategory.MALFORMED_RESPONSE)

    def test_from_config_rejects_unknown_alias(self):
        with self.assertRaises(KeyError):
            ChatCompletionService.from_config("no-such-model")

    def test_from_config_uses_default_model(self):
        service = ChatCompletionService.from_config()
        self.assertEqual(service.model_config["alias"], "default")
        self.assertIn("{TODAY}", service.system_prompt)
