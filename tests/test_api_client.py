import unittest
from unittest.mock import MagicMock, patch

import requests

from tasksift.core.api_client import (
    USER_AGENT,
    count_tokens,
    get_llm_msg,
    resolve_api_key,
)

MODEL_CONFIG = {
    "id": "test-model",
    "alias": "test-alias",
    "base_url": "https://llm.example/v1/chat/completions",
    "api_key": "secret",
    "parameters": {"temperature": 0.1, "top_p": None},
}


def _ok_response(content="{}"):
    response = MagicMock()
    response.status_code = 200
    response.json.return_value = {
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": 10, "completion_tokens": 5},
    }
    return response


class TestGetLlmMsg(unittest.TestCase):
    @patch("tasksift.core.api_client.requests.post")
    def test_returns_first_choice_message(self, mock_post):
        mock_post.return_value = _ok_response('{"core_keywords": []}')

        message = get_llm_msg(
            MODEL_CONFIG, [{"role": "user", "content": "Hello"}], timeout=7
        )

        self.assertEqual(message["content"], '{"core_keywords": []}')
        mock_post.assert_called_once()
        _, kwargs = mock_post.call_args
        self.assertEqual(kwargs["timeout"], 7)
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer secret")
        self.assertEqual(kwargs["headers"]["User-Agent"], USER_AGENT)
        payload = kwargs["json"]
        self.assertEqual(payload["model"], "test-model")
        self.assertEqual(payload["temperature"], 0.1)
        self.assertNotIn("top_p", payload)
        self.assertFalse(payload["stream"])

    @patch("tasksift.core.api_client.requests.post")
    def test_call_parameters_override_model_parameters(self, mock_post):
        mock_post.return_value = _ok_response()
        get_llm_msg(MODEL_CONFIG, [], timeout=5, parameters={"temperature": 0.7})
        self.assertEqual(mock_post.call_args.kwargs["json"]["temperature"], 0.7)

    @patch("tasksift.core.api_client.requests.post")
    def test_http_error_propagates_without_retry(self, mock_post):
        response = MagicMock()
        response.status_code = 429
        response.headers = {"Retry-After": "1"}
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(
            response=response
        )
        mock_post.return_value = response

        with self.assertRaises(requests.exceptions.HTTPError):
            get_llm_msg(MODEL_CONFIG, [{"role": "user", "content": "hi"}], timeout=5)
        self.assertEqual(mock_post.call_count, 1)

    @patch("tasksift.core.api_client.requests.post")
    def test_timeout_propagates(self, mock_post):
        mock_post.side_effect = requests.exceptions.ReadTimeout("slow")
        with self.assertRaises(requests.exceptions.Timeout):
            get_llm_msg(MODEL_CONFIG, [], timeout=1)


class TestApiKey(unittest.TestCase):
    def test_inline_key_wins(self):
        self.assertEqual(resolve_api_key({"api_key": "k", "api_key_env": "X"}), "k")

    @patch.dict("os.environ", {"TASKSIFT_TEST_KEY": "from-env"})
    def test_key_from_environment(self):
        self.assertEqual(resolve_api_key({"api_key_env": "TASKSIFT_TEST_KEY"}), "from-env")

    def test_missing_key(self):
        self.assertIsNone(resolve_api_key({"api_key_env": "TASKSIFT_MISSING_KEY"}))
        self.assertIsNone(resolve_api_key({}))


def test_count_tokens():
    messages = [{"role": "user", "content": "x" * 40}, {"role": "assistant", "content": None}]
    assert count_tokens(messages) == 10
