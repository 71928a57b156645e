"""Query interpretation, scoring and ranking of task records."""

from tasksift.search.ai_parser import parse_with_ai
from tasksift.search.corpus import CorpusProvider, InMemoryCorpus, load_tasks_json
from tasksift.search.failures import FailureCategory, ParseOutcome, ServiceFailure
from tasksift.search.glossary import (
    PropertyGlossary,
    StatusCategory,
    auto_repair_sort_positions,
    build_glossary,
    validate_sort_positions,
)
from tasksift.search.pipeline import run_query
from tasksift.search.rule_parser import parse_with_rules
from tasksift.search.service import ChatCompletionService, LanguageAssistService, ServiceDraft
from tasksift.search.settings import SearchSettings, build_search_settings, default_settings
from tasksift.search.types import SearchResult, StructuredQuery, TaskRecord

__all__ = [
    "ChatCompletionService",
    "CorpusProvider",
    "FailureCategory",
    "InMemoryCorpus",
    "LanguageAssistService",
    "ParseOutcome",
    "PropertyGlossary",
    "SearchResult",
    "SearchSettings",
    "ServiceDraft",
    "ServiceFailure",
    "StatusCategory",
    "StructuredQuery",
    "TaskRecord",
    "auto_repair_sort_positions",
    "build_glossary",
    "build_search_settings",
    "default_settings",
    "load_tasks_json",
    "parse_with_ai",
    "parse_with_rules",
    "run_query",
    "validate_sort_positions",
]
