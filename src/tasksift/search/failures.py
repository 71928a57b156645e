"""Failure taxonomy for language-model calls and the parse outcomes it drives.

Provider failures never propagate as exceptions past the parser. They are
classified into :class:`FailureCategory`, carried as a :class:`ServiceFailure`
value, and turned into a fallback decision by the AI-assisted parser.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import requests


class FailureCategory(Enum):
    TIMEOUT = "timeout"
    BAD_REQUEST = "bad-request"
    UNAUTHORIZED = "unauthorized"
    RATE_LIMITED = "rate-limited"
    MODEL_NOT_FOUND = "model-not-found"
    SERVER_ERROR = "server-error"
    NETWORK_ERROR = "network-error"
    MALFORMED_RESPONSE = "malformed-response"

    @property
    def remediation(self) -> str:
        return _REMEDIATION[self]

    @property
    def retryable(self) -> bool:
        return self in _RETRYABLE


_REMEDIATION = {
    FailureCategory.TIMEOUT: (
        "The model did not answer in time. Raise request_timeout or pick a faster model."
    ),
    FailureCategory.BAD_REQUEST: (
        "The provider rejected the request. Check the model parameters in models.toml."
    ),
    FailureCategory.UNAUTHORIZED: (
        "Authentication failed. Check the API key or the api_key_env variable."
    ),
    FailureCategory.RATE_LIMITED: (
        "The provider is rate limiting requests. Wait a moment or use another model."
    ),
    FailureCategory.MODEL_NOT_FOUND: (
        "The model was not found. Check the model id and endpoint in models.toml."
    ),
    FailureCategory.SERVER_ERROR: (
        "The provider returned a server error. Try again later."
    ),
    FailureCategory.NETWORK_ERROR: (
        "Could not reach the provider. Check the endpoint URL and your connection."
    ),
    FailureCategory.MALFORMED_RESPONSE: (
        "The model reply was not valid query JSON. A stronger model may help."
    ),
}

_RETRYABLE = frozenset(
    {
        FailureCategory.TIMEOUT,
        FailureCategory.RATE_LIMITED,
        FailureCategory.SERVER_ERROR,
        FailureCategory.NETWORK_ERROR,
    }
)


class ParseOutcome(Enum):
    SUCCEEDED_AI = "succeeded-ai"
    SUCCEEDED_FALLBACK = "succeeded-fallback"
    SUCCEEDED_FALLBACK_LOW_CONFIDENCE = "succeeded-fallback-low-confidence"
    # The AI path was not attempted: disabled, no service, or pure shorthand.
    SUCCEEDED_RULES = "succeeded-rules"


@dataclass(frozen=True)
class ServiceFailure:
    """A classified language-model failure, returned instead of raised."""

    category: FailureCategory
    detail: str = ""
    status_code: Optional[int] = None
    retry_after: Optional[float] = None

    @property
    def code(self) -> str:
        return self.category.value

    @property
    def remediation(self) -> str:
        return self.category.remediation


def classify_status_code(status_code: int) -> FailureCategory:
    """Map an HTTP status code from the provider to a failure category."""
    if status_code in (401, 403):
        return FailureCategory.UNAUTHORIZED
    if status_code == 404:
        return FailureCategory.MODEL_NOT_FOUND
    if status_code == 408:
        return FailureCategory.TIMEOUT
    if status_code == 429:
        return FailureCategory.RATE_LIMITED
    if status_code >= 500:
        return FailureCategory.SERVER_ERROR
    return FailureCategory.BAD_REQUEST


def _retry_after_seconds(response: Optional[requests.Response]) -> Optional[float]:
    if response is None:
        return None
    raw = response.headers.get("Retry-After") if response.headers else None
    if not raw:
        return None
    try:
        return max(0.0, float(raw))
    except (TypeError, ValueError):
        return None


def failure_from_exception(exc: BaseException) -> ServiceFailure:
    """Classify an exception raised while calling or reading the provider."""
    # Checked first: requests' JSON errors also subclass RequestException.
    if isinstance(exc, (requests.exceptions.InvalidJSONError, json.JSONDecodeError)):
        return ServiceFailure(FailureCategory.MALFORMED_RESPONSE, str(exc))
    if isinstance(exc, requests.exceptions.Timeout):
        return ServiceFailure(FailureCategory.TIMEOUT, str(exc))
    if isinstance(exc, requests.exceptions.HTTPError):
        response = exc.response
        if response is not None:
            return ServiceFailure(
                classify_status_code(response.status_code),
                str(exc),
                status_code=response.status_code,
                retry_after=_retry_after_seconds(response),
            )
        return ServiceFailure(FailureCategory.SERVER_ERROR, str(exc))
    if isinstance(exc, requests.exceptions.RequestException):
        return ServiceFailure(FailureCategory.NETWORK_ERROR, str(exc))
    if isinstance(exc, (json.JSONDecodeError, ValueError, KeyError, IndexError, TypeError)):
        return ServiceFailure(FailureCategory.MALFORMED_RESPONSE, str(exc))
    return ServiceFailure(FailureCategory.NETWORK_ERROR, repr(exc))


def classify_exception(exc: BaseException) -> FailureCategory:
    return failure_from_exception(exc).category
