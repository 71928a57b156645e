"""OpenAI-compatible chat completion client."""

import json
import logging
import os
import time
from typing import Any, Dict, List, Mapping, Optional

import requests

from tasksift import __version__

logger = logging.getLogger(__name__)

USER_AGENT = f"tasksift/{__version__}"


def _describe_error_response(response: requests.Response) -> str:
    """One-line summary of a failed response for the debug log."""
    body = response.text or ""
    return (
        f"HTTP {response.status_code} from {response.url} "
        f"({response.headers.get('Content-Type', 'unknown')}): {body[:500]}"
    )


def count_tokens(messages: List[Dict[str, Any]]) -> int:
    """Rough token estimate at four characters per token."""
    sizes = (
        len(content) if isinstance(content, str) else len(json.dumps(content))
        for content in (message.get("content") for message in messages)
        if content is not None
    )
    return sum(sizes) // 4


def resolve_api_key(model_config: Mapping[str, Any]) -> Optional[str]:
    if model_config.get("api_key"):
        return model_config["api_key"]
    env_var = model_config.get("api_key_env")
    if not env_var:
        return None
    api_key = os.environ.get(env_var)
    if not api_key:
        logger.info(f"Warning: {env_var} not found in environment variables.")
    return api_key


def get_llm_msg(
    model_config: Mapping[str, Any],
    messages: List[Dict[str, Any]],
    *,
    timeout: float,
    parameters: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Send messages to the model and return the first choice's message.

    Makes exactly one request. Retries are the caller's decision, so HTTP
    and transport errors from ``requests`` propagate unchanged.
    """
    model_id = model_config["id"]
    url = model_config.get("base_url", "")
    headers = {
        "Content-Type": "application/json",
        "User-Agent": USER_AGENT,
    }
    api_key = resolve_api_key(model_config)
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"

    payload: Dict[str, Any] = {"model": model_id, "messages": messages}
    merged = dict(model_config.get("parameters") or {})
    merged.update(parameters or {})
    for key, value in merged.items():
        if value is not None:
            payload[key] = value
    payload["stream"] = False

    alias = model_config.get("alias", model_id)
    logger.info(f"Sending request to LLM: {model_id} ({alias})")
    logger.debug(f"[{alias}] Sent: {count_tokens(messages)} tokens to {url}")

    started = time.perf_counter()
    resp = requests.post(url, json=payload, headers=headers, timeout=timeout)
    try:
        resp.raise_for_status()
    except requests.exceptions.HTTPError:
        logger.debug(_describe_error_response(resp))
        raise
    resp_json = resp.json()
    response_message = resp_json["choices"][0]["message"]

    elapsed_ms = (time.perf_counter() - started) * 1000
    usage = resp_json.get("usage") or {}
    logger.debug(
        f"[{alias}] Response in {elapsed_ms:.0f} ms, "
        f"prompt_tokens={usage.get('prompt_tokens')} "
        f"completion_tokens={usage.get('completion_tokens')}"
    )
    return response_message
