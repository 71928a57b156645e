"""Language assist service boundary and the bundled chat-completion service.

A service turns a raw query into a :class:`ServiceDraft`, the model's proposed
properties and keywords, or returns a :class:`ServiceFailure`. Converting a
draft into a structured query is the AI-assisted parser's job.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Protocol, Tuple, Union

import requests

from tasksift.core.api_client import get_llm_msg
from tasksift.core.exceptions import MalformedResponseError
from tasksift.core.llm_text import extract_json_object
from tasksift.search.failures import FailureCategory, ServiceFailure, failure_from_exception
from tasksift.search.glossary import PropertyGlossary

if TYPE_CHECKING:
    from tasksift.search.settings import SearchSettings

logger = logging.getLogger(__name__)

EXPECTED_KEYS = (
    "core_keywords",
    "coreKeywords",
    "keywords",
    "priority",
    "due_date",
    "dueDate",
    "status",
    "tags",
    "folder",
)

PrioritySpec = Union[str, Tuple[int, ...]]


@dataclass(frozen=True)
class DueDateRangeSpec:
    operator: str
    date: str
    end: Optional[str] = None


@dataclass(frozen=True)
class ServiceDraft:
    """Shape-checked model proposal. Values are not yet resolved or converted."""

    core_keywords: Tuple[str, ...] = ()
    expansions: Mapping[str, Any] = field(default_factory=dict)
    unattributed_keywords: Tuple[str, ...] = ()
    priority: Optional[PrioritySpec] = None
    due_date: Optional[str] = None
    due_date_range: Optional[DueDateRangeSpec] = None
    status: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()
    folder: Optional[str] = None
    confidence: Optional[float] = None
    detected_language: Optional[str] = None


class LanguageAssistService(Protocol):
    def parse(
        self,
        raw_query: str,
        glossary: PropertyGlossary,
        settings: "SearchSettings",
        timeout: float,
    ) -> Union[ServiceDraft, ServiceFailure]:
        ...


# --- payload validation ---


def _first(payload: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in payload:
            return payload[key]
    return None


def _string_list(value: Any, name: str) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,) if value.strip() else ()
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise MalformedResponseError(f"'{name}' must be a list of strings, got {value!r}")
    return tuple(item.strip() for item in value if item.strip())


def _priority(value: Any) -> Optional[PrioritySpec]:
    if value is None:
        return None
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("any", "all"):
            return "any"
        if lowered == "none":
            return "none"
        if lowered.isdigit():
            value = int(lowered)
        else:
            raise MalformedResponseError(f"unknown priority value {value!r}")
    values = value if isinstance(value, list) else [value]
    levels = []
    for item in values:
        if isinstance(item, bool) or not isinstance(item, int) or not 1 <= item <= 4:
            raise MalformedResponseError(f"priority must be 1-4, got {item!r}")
        levels.append(item)
    return tuple(sorted(set(levels))) or None


def _confidence(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedResponseError(f"confidence must be a number, got {value!r}")
    if not 0.0 <= value <= 1.0:
        raise MalformedResponseError(f"confidence must be within [0, 1], got {value!r}")
    return float(value)


def _due_range(value: Any) -> Optional[DueDateRangeSpec]:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise MalformedResponseError(f"due_date_range must be an object, got {value!r}")
    operator = value.get("operator")
    date = value.get("date") or value.get("start")
    end = value.get("end")
    if not isinstance(operator, str) or not isinstance(date, str):
        raise MalformedResponseError("due_date_range needs string 'operator' and 'date'")
    if end is not None and not isinstance(end, str):
        raise MalformedResponseError("due_date_range 'end' must be a string or null")
    return DueDateRangeSpec(operator.strip(), date.strip(), end.strip() if end else None)


def _expansions(value: Any) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise MalformedResponseError(f"'expansions' must be an object, got {value!r}")
    result: Dict[str, Any] = {}
    for core, proposal in value.items():
        if isinstance(proposal, Mapping):
            result[str(core)] = {
                str(language): _string_list(terms, f"expansions.{core}.{language}")
                for language, terms in proposal.items()
            }
        else:
            result[str(core)] = _string_list(proposal, f"expansions.{core}")
    return result


def draft_from_payload(payload: Any) -> ServiceDraft:
    """Shape-check a decoded model reply.

    Accepts snake_case keys and the camelCase variants some models prefer.

    Raises:
        MalformedResponseError: any field has the wrong shape.
    """
    if not isinstance(payload, Mapping):
        raise MalformedResponseError("model reply is not a JSON object")

    core = _string_list(_first(payload, "core_keywords", "coreKeywords"), "core_keywords")
    flat = _string_list(payload.get("keywords"), "keywords")
    if not core:
        core = flat
    expansions = _expansions(_first(payload, "expansions", "keywordExpansions"))
    core_lower = {keyword.lower() for keyword in core}
    unattributed = tuple(kw for kw in flat if kw.lower() not in core_lower)

    understanding = payload.get("aiUnderstanding")
    confidence = payload.get("confidence")
    if confidence is None and isinstance(understanding, Mapping):
        confidence = understanding.get("confidence")

    due_date = _first(payload, "due_date", "dueDate")
    if due_date is not None and not isinstance(due_date, str):
        raise MalformedResponseError(f"due_date must be a string, got {due_date!r}")
    folder = payload.get("folder")
    if folder is not None and not isinstance(folder, str):
        raise MalformedResponseError(f"folder must be a string, got {folder!r}")
    language = _first(payload, "detected_language", "detectedLanguage")

    return ServiceDraft(
        core_keywords=core,
        expansions=expansions,
        unattributed_keywords=unattributed,
        priority=_priority(payload.get("priority")),
        due_date=(due_date or "").strip() or None,
        due_date_range=_due_range(_first(payload, "due_date_range", "dueDateRange")),
        status=_string_list(payload.get("status"), "status"),
        tags=tuple(tag.lstrip("#") for tag in _string_list(payload.get("tags"), "tags")),
        folder=(folder or "").strip() or None,
        confidence=_confidence(confidence),
        detected_language=str(language) if language else None,
    )


def _as_list(value: Any) -> Any:
    return list(value) if isinstance(value, tuple) else value


def check_draft(draft: ServiceDraft) -> ServiceDraft:
    """Apply the payload rules to a draft built by any service.

    Priority levels must be 1-4 (or ``"any"``/``"none"``) and confidence, when
    present, must lie in [0, 1]. Returns the draft with priority normalized.

    Raises:
        MalformedResponseError: a value is out of bounds or has the wrong type.
    """
    return replace(
        draft,
        core_keywords=_string_list(_as_list(draft.core_keywords), "core_keywords"),
        priority=_priority(_as_list(draft.priority)),
        status=_string_list(_as_list(draft.status), "status"),
        tags=_string_list(_as_list(draft.tags), "tags"),
        confidence=_confidence(draft.confidence),
    )


# --- chat completion service ---


def _describe_statuses(glossary: PropertyGlossary) -> str:
    parts = []
    for category in glossary.statuses:
        aliases = ", ".join(category.aliases)
        parts.append(f"{category.key} ({category.display_name}; {aliases})")
    return "; ".join(parts)


def build_system_prompt(
    template: str,
    glossary: PropertyGlossary,
    settings: "SearchSettings",
    today: datetime.date,
) -> str:
    return (
        template.replace("{TODAY}", today.isoformat())
        .replace("{LANGUAGES}", ", ".join(settings.languages))
        .replace("{STATUS_CATEGORIES}", _describe_statuses(glossary))
        .replace("{EXPANSIONS_PER_LANGUAGE}", str(settings.expansions_per_language))
        .replace("{MAX_EXPANSIONS}", str(settings.max_expansions_per_keyword))
    )


class ChatCompletionService:
    """Language assist service backed by an OpenAI-compatible endpoint."""

    def __init__(self, model_config: Mapping[str, Any], system_prompt: str):
        self.model_config = dict(model_config)
        self.system_prompt = system_prompt

    @classmethod
    def from_config(cls, model_alias: Optional[str] = None) -> "ChatCompletionService":
        from tasksift.config import DEFAULT_MODEL, MODELS, QUERY_PARSER_PROMPT

        alias = model_alias or DEFAULT_MODEL
        if alias not in MODELS:
            raise KeyError(f"Unknown model alias '{alias}'. Check models.toml.")
        return cls(MODELS[alias], QUERY_PARSER_PROMPT)

    def parse(
        self,
        raw_query: str,
        glossary: PropertyGlossary,
        settings: "SearchSettings",
        timeout: float,
    ) -> Union[ServiceDraft, ServiceFailure]:
        prompt = build_system_prompt(
            self.system_prompt, glossary, settings, datetime.date.today()
        )
        messages = [
            {"role": "system", "content": prompt},
            {"role": "user", "content": raw_query},
        ]
        try:
            message = get_llm_msg(self.model_config, messages, timeout=timeout)
            content = message.get("content") or ""
            return draft_from_payload(extract_json_object(content, EXPECTED_KEYS))
        except MalformedResponseError as exc:
            return ServiceFailure(FailureCategory.MALFORMED_RESPONSE, str(exc))
        except (requests.exceptions.RequestException, ValueError, KeyError, IndexError, TypeError) as exc:
            failure = failure_from_exception(exc)
            logger.debug("language assist call failed: %s (%s)", failure.code, exc)
            return failure
