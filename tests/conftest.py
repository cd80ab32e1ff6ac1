"""Shared pytest fixtures for the full Fluxreader test suite."""

from __future__ import annotations

from threading import Lock

import pytest

from fluxreader.models.datatypes import GrammarInfo, RichDetailResult


class RecordingTranslationService:
    """Deterministic translation service that records every backend call."""

    def __init__(self) -> None:
        """Initialize call logs and configurable failures."""

        self.segment_calls: list[tuple[str, str, str | None, str | None]] = []
        self.analyze_calls: list[tuple[str, str, str | None, str | None]] = []
        self.forgotten: list[str] = []
        self.failing_segments: set[str] = set()
        self.analyze_failures_remaining = 0
        self._lock = Lock()

    def translate_segment(
        self,
        text: str,
        target_language: str,
        context: str | None = None,
        source_language: str | None = None,
    ) -> str:
        """Record the call and return `<text>-><target>` or raise a configured failure."""

        with self._lock:
            self.segment_calls.append((text, target_language, context, source_language))
        if text in self.failing_segments:
            raise RuntimeError("backend down")
        return f"{text}->{target_language}"

    def rich_analyze(
        self,
        text: str,
        target_language: str,
        context: str | None = None,
        source_language: str | None = None,
    ) -> RichDetailResult:
        """Record the call and return a minimal analysis or raise a configured failure."""

        with self._lock:
            self.analyze_calls.append((text, target_language, context, source_language))
            if self.analyze_failures_remaining > 0:
                self.analyze_failures_remaining -= 1
                raise RuntimeError("analysis unavailable")
        return RichDetailResult(
            translation=f"{text}->{target_language}",
            segment=text,
            grammar=GrammarInfo(part_of_speech="noun", explanation="test"),
            kind="word",
        )

    def forget_segment(
        self,
        text: str,
        target_language: str,
        context: str | None = None,
        source_language: str | None = None,
    ) -> None:
        """Record cache invalidation requests."""

        self.forgotten.append(text)

    def list_models(self) -> list[str]:
        """Return one fixed model id."""

        return ["recording"]

    def health_check(self) -> bool:
        """Report the fake backend as reachable."""

        return True

    @property
    def segment_texts(self) -> list[str]:
        """Return translated texts in call order."""

        return [call[0] for call in self.segment_calls]


@pytest.fixture
def recording_service() -> RecordingTranslationService:
    """Provide a fresh recording translation service."""

    return RecordingTranslationService()
