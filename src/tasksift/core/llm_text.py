"""Helpers for reading JSON out of free-form model replies."""

import json
import logging
import re
from typing import Any, Dict, Iterable, List

from tasksift.core.exceptions import MalformedResponseError

logger = logging.getLogger(__name__)

REASONING_BLOCK_PATTERN = re.compile(
    r"<(think|reasoning|thought)>.*?</\1>", re.DOTALL | re.IGNORECASE
)
FENCED_JSON_PATTERN = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)
MARKDOWN_HEADING_PATTERN = re.compile(r"^#{1,6}\s+", re.MULTILINE)


def strip_reasoning_blocks(text: str) -> str:
    """Remove <think>, <reasoning> and <thought> blocks from model output."""
    if not text:
        return ""
    return REASONING_BLOCK_PATTERN.sub("", text).strip()


def _balanced_objects(text: str) -> List[str]:
    """Top-level ``{...}`` spans, ignoring braces inside JSON strings."""
    candidates: List[str] = []
    depth = 0
    start = -1
    in_string = False
    escaped = False
    for index, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"' and depth > 0:
            in_string = True
        elif char == "{":
            if depth == 0:
                start = index
            depth += 1
        elif char == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                candidates.append(text[start:index + 1])
    return candidates


def _load_object(candidate: str) -> Any:
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def extract_json_object(text: str, expected_keys: Iterable[str] = ()) -> Dict[str, Any]:
    """Pull the query JSON object out of a model reply.

    Tries, in order: a fenced ```json block, the first balanced object that
    has one of ``expected_keys``, the first balanced object at all, and the
    span between the first ``{`` and the last ``}``.

    Raises:
        MalformedResponseError: no JSON object could be read.
    """
    cleaned = strip_reasoning_blocks(text or "")
    if MARKDOWN_HEADING_PATTERN.search(cleaned):
        logger.warning("Model returned markdown analysis instead of plain JSON")

    fenced = FENCED_JSON_PATTERN.search(cleaned)
    if fenced:
        parsed = _load_object(fenced.group(1))
        if parsed is not None:
            return parsed

    keys = set(expected_keys)
    objects = [obj for obj in map(_load_object, _balanced_objects(cleaned)) if obj is not None]
    for obj in objects:
        if keys & obj.keys():
            return obj
    if objects:
        return objects[0]

    first, last = cleaned.find("{"), cleaned.rfind("}")
    if first != -1 and last > first:
        parsed = _load_object(cleaned[first:last + 1])
        if parsed is not None:
            return parsed

    logger.error("No JSON object in model reply (%d chars): %.200s", len(text or ""), text)
    raise MalformedResponseError("Model reply did not contain a JSON object")
