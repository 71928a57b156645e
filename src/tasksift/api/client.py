"""Programmatic client for running task queries without the CLI."""

from __future__ import annotations

import datetime
import logging
import threading
from dataclasses import replace
from typing import Optional

from tasksift.search.ai_parser import parse_with_ai
from tasksift.search.corpus import CorpusProvider
from tasksift.search.glossary import SortPositionReport, validate_sort_positions
from tasksift.search.pipeline import run_query
from tasksift.search.service import ChatCompletionService, LanguageAssistService
from tasksift.search.settings import SearchSettings, load_search_settings
from tasksift.search.types import ParseResult, SearchResult

logger = logging.getLogger(__name__)


class TasksiftClient:
    """Library entry point: settings, a corpus and an optional language model."""

    def __init__(
        self,
        settings: SearchSettings,
        corpus: CorpusProvider,
        *,
        service: Optional[LanguageAssistService] = None,
    ) -> None:
        self.settings = settings
        self.corpus = corpus
        self.service = service

    @classmethod
    def from_config(
        cls,
        corpus: CorpusProvider,
        *,
        model_alias: Optional[str] = None,
        use_ai: Optional[bool] = None,
        auto_repair: bool = False,
    ) -> "TasksiftClient":
        """Build a client from the user's TOML configuration.

        Raises:
            ConfigValidationError: the configuration has unusable values.
            KeyError: ``model_alias`` is not defined in models.toml.
        """
        settings = load_search_settings(auto_repair=auto_repair)
        if use_ai is not None:
            settings = replace(settings, use_ai=use_ai)
        service = ChatCompletionService.from_config(model_alias) if settings.use_ai else None
        return cls(settings, corpus, service=service)

    def parse(
        self,
        text: str,
        *,
        today: Optional[datetime.date] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ParseResult:
        return parse_with_ai(
            text, self.settings, service=self.service, today=today, cancel_event=cancel_event
        )

    def query(
        self,
        text: str,
        *,
        today: Optional[datetime.date] = None,
        cancel_event: Optional[threading.Event] = None,
        for_summarizer: bool = False,
    ) -> SearchResult:
        return run_query(
            text,
            settings=self.settings,
            corpus=self.corpus,
            service=self.service,
            today=today,
            cancel_event=cancel_event,
            for_summarizer=for_summarizer,
        )

    def check_glossary(self) -> SortPositionReport:
        return validate_sort_positions(self.settings.glossary)
