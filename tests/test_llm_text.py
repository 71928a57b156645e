import pytest

from tasksift.core.exceptions import MalformedResponseError
from tasksift.core.llm_text import extract_json_object, strip_reasoning_blocks


def test_strip_reasoning_blocks():
    text = "<think>the user wants bugs</think>\n{\"core_keywords\": [\"bug\"]}"
    assert strip_reasoning_blocks(text) == '{"core_keywords": ["bug"]}'
    assert strip_reasoning_blocks("") == ""


def test_extracts_fenced_json():
    text = 'Here you go:\n```json\n{"core_keywords": ["report"], "confidence": 0.9}\n```'
    assert extract_json_object(text) == {"core_keywords": ["report"], "confidence": 0.9}


def test_prefers_object_with_expected_keys():
    text = 'Example: {"shape": "demo"} Answer: {"priority": 1, "note": "use {braces}"}'
    assert extract_json_object(text, ["priority"]) == {"priority": 1, "note": "use {braces}"}


def test_falls_back_to_first_object():
    assert extract_json_object('prefix {"a": 1} suffix') == {"a": 1}


def test_reasoning_braces_do_not_confuse_extraction():
    text = '<reasoning>maybe {"priority": 4}</reasoning>{"priority": 2}'
    assert extract_json_object(text, ["priority"]) == {"priority": 2}


def test_raises_without_json():
    with pytest.raises(MalformedResponseError):
        extract_json_object("I could not understand the question.")
    with pytest.raises(MalformedResponseError):
        extract_json_object('["a", "b"]')
