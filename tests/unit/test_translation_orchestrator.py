"""Unit tests for debounced group translation, hover lookups, and rich-detail tabs."""

from __future__ import annotations

import asyncio
import io
from threading import Event, Lock

import pytest

from fluxreader.models.datatypes import GroupKey, TranslationStatus
from fluxreader.telemetry.logger import configure_logging
from fluxreader.text.tokenizer import tokenize
from fluxreader.translation.debounce import DebounceTimer
from fluxreader.translation.orchestrator import TranslationOrchestrator

_TOKENS = tokenize("uno dos tres")


def _orchestrator(service) -> TranslationOrchestrator:  # type: ignore[no-untyped-def]
    orchestrator = TranslationOrchestrator(
        service,
        selection_delay_seconds=0.02,
        hover_delay_seconds=0.01,
    )
    orchestrator.set_document(_TOKENS, "es", "en")
    return orchestrator


def test_debounce_timer_fires_only_latest_callback() -> None:
    """Rescheduling should cancel the earlier callback instead of queueing it."""

    fired: list[str] = []

    async def scenario() -> DebounceTimer:
        timer = DebounceTimer(0.01)
        timer.schedule(lambda: fired.append("first"))
        timer.schedule(lambda: fired.append("second"))
        assert timer.pending is True
        await asyncio.sleep(0.05)
        return timer

    timer = asyncio.run(scenario())

    assert fired == ["second"]
    assert timer.pending is False
    with pytest.raises(ValueError):
        DebounceTimer(-1)


def test_rapid_selection_changes_issue_one_batch(recording_service) -> None:  # type: ignore[no-untyped-def]
    """Only the settled selection should be translated after a burst of changes."""

    async def scenario() -> TranslationOrchestrator:
        orchestrator = _orchestrator(recording_service)
        for selection in ({0}, {0, 2}, {0, 2, 4}, {4}):
            orchestrator.on_selection_changed(selection, _TOKENS, "es", "en")
        await orchestrator.wait_idle()
        return orchestrator

    orchestrator = asyncio.run(scenario())

    assert recording_service.segment_texts == ["tres"]
    entry = orchestrator.translation_for(GroupKey(4, 4))
    assert entry is not None
    assert entry.status is TranslationStatus.RESOLVED
    assert entry.text == "tres->en"


def test_failed_group_becomes_error_marker_without_affecting_siblings(
    recording_service,
) -> None:  # type: ignore[no-untyped-def]
    """A failing group request should cache an error while sibling groups resolve."""

    recording_service.failing_segments.add("tres")

    async def scenario() -> TranslationOrchestrator:
        orchestrator = _orchestrator(recording_service)
        orchestrator.on_selection_changed({0, 4}, _TOKENS, "es", "en")
        await orchestrator.wait_idle()
        return orchestrator

    orchestrator = asyncio.run(scenario())

    ok = orchestrator.translation_for(GroupKey(0, 0))
    failed = orchestrator.translation_for(GroupKey(4, 4))
    assert ok is not None and ok.text == "uno->en"
    assert failed is not None and failed.status is TranslationStatus.ERROR
    assert failed.display_text == "Translation Error: backend down"


def test_group_requests_carry_line_context_and_languages(recording_service) -> None:  # type: ignore[no-untyped-def]
    """Group requests should send the stripped line around the group as context."""

    async def scenario() -> None:
        orchestrator = _orchestrator(recording_service)
        orchestrator.translate_indices({0, 1, 2})
        await orchestrator.wait_idle()

    asyncio.run(scenario())

    assert recording_service.segment_calls == [("uno dos", "en", "uno dos tres", "es")]


def test_identical_groups_are_not_refetched_unless_forced(recording_service) -> None:  # type: ignore[no-untyped-def]
    """Cached groups should be reused and forced requests should invalidate first."""

    async def scenario() -> TranslationOrchestrator:
        orchestrator = _orchestrator(recording_service)
        orchestrator.translate_indices({0})
        await orchestrator.wait_idle()
        orchestrator.translate_indices({0})
        await orchestrator.wait_idle()
        orchestrator.translate_indices({0}, force=True)
        await orchestrator.wait_idle()
        return orchestrator

    asyncio.run(scenario())

    assert recording_service.segment_texts == ["uno", "uno"]
    assert recording_service.forgotten == ["uno"]


def test_regenerate_selection_targets_containing_group(recording_service) -> None:  # type: ignore[no-untyped-def]
    """Regenerating by token index should re-fetch only the group holding it."""

    async def scenario() -> tuple[GroupKey | None, GroupKey | None]:
        orchestrator = _orchestrator(recording_service)
        orchestrator.on_selection_changed({0, 4}, _TOKENS, "es", "en")
        await orchestrator.wait_idle()
        hit = orchestrator.regenerate_selection(4)
        miss = orchestrator.regenerate_selection(2)
        await orchestrator.wait_idle()
        return hit, miss

    hit, miss = asyncio.run(scenario())

    assert hit == GroupKey(4, 4)
    assert miss is None
    assert sorted(recording_service.segment_texts) == ["tres", "tres", "uno"]


def test_clear_all_discards_in_flight_results(recording_service) -> None:  # type: ignore[no-untyped-def]
    """Results started before a reset should not repopulate the cache."""

    async def scenario() -> TranslationOrchestrator:
        orchestrator = _orchestrator(recording_service)
        orchestrator.translate_indices({0})
        orchestrator.clear_all()
        await orchestrator.wait_idle()
        return orchestrator

    orchestrator = asyncio.run(scenario())

    assert orchestrator.entries == {}
    assert orchestrator.generation == 1


def test_hover_result_for_previous_target_is_discarded(recording_service) -> None:  # type: ignore[no-untyped-def]
    """A hover fetch for token A should not apply after the hover moves to token B."""

    async def scenario() -> TranslationOrchestrator:
        orchestrator = _orchestrator(recording_service)
        orchestrator.on_hover(0, _TOKENS, 1, 500, "es", "en")
        orchestrator.regenerate_hover()
        orchestrator.on_hover(2, _TOKENS, 1, 500, "es", "en")
        await orchestrator.wait_idle()
        return orchestrator

    orchestrator = asyncio.run(scenario())

    assert recording_service.segment_texts == ["uno", "dos"]
    assert orchestrator.hovered_index == 2
    assert orchestrator.hover_translation is not None
    assert orchestrator.hover_translation.text == "dos->en"


def test_hover_uses_page_relative_index_and_skips_whitespace(recording_service) -> None:  # type: ignore[no-untyped-def]
    """Hover indices should be page-relative and whitespace should never be fetched."""

    tokens = tokenize("a b c d")

    async def scenario() -> TranslationOrchestrator:
        orchestrator = _orchestrator(recording_service)
        orchestrator.on_hover(1, tokens, 2, 2, "es", "en")
        await orchestrator.wait_idle()
        assert orchestrator.hovered_index == 3
        assert orchestrator.hover_translation is None
        orchestrator.on_hover(0, tokens, 2, 2, "es", "en")
        await orchestrator.wait_idle()
        return orchestrator

    orchestrator = asyncio.run(scenario())

    assert recording_service.segment_texts == ["b"]
    assert orchestrator.hovered_index == 2


def test_hover_reuses_resolved_single_token_translation(recording_service) -> None:  # type: ignore[no-untyped-def]
    """Hovering a token with a cached single-token translation should not refetch."""

    async def scenario() -> TranslationOrchestrator:
        orchestrator = _orchestrator(recording_service)
        orchestrator.translate_indices({2})
        await orchestrator.wait_idle()
        orchestrator.on_hover(2, _TOKENS, 1, 500, "es", "en")
        await orchestrator.wait_idle()
        return orchestrator

    orchestrator = asyncio.run(scenario())

    assert recording_service.segment_texts == ["dos"]
    assert orchestrator.hover_translation is not None
    assert orchestrator.hover_translation.text == "dos->en"


def test_rich_detail_tabs_open_close_and_activate_neighbours(recording_service) -> None:  # type: ignore[no-untyped-def]
    """Closing the active tab should activate its right neighbour, else its left one."""

    async def scenario() -> TranslationOrchestrator:
        orchestrator = _orchestrator(recording_service)
        first = orchestrator.fetch_rich_detail("uno", "uno dos tres", "es", "en")
        second = orchestrator.fetch_rich_detail("dos", "uno dos tres", "es", "en")
        third = orchestrator.fetch_rich_detail("tres", "uno dos tres", "es", "en")
        assert orchestrator.active_tab_id == third
        await orchestrator.wait_idle()

        orchestrator.set_active_tab(second)
        orchestrator.close_tab(second)
        assert orchestrator.active_tab_id == third
        orchestrator.close_tab(third)
        assert orchestrator.active_tab_id == first
        orchestrator.close_tab(first)
        assert orchestrator.active_tab_id is None
        return orchestrator

    orchestrator = asyncio.run(scenario())

    assert orchestrator.tabs == ()
    assert sorted(call[0] for call in recording_service.analyze_calls) == ["dos", "tres", "uno"]


def test_failed_tab_can_be_regenerated(recording_service) -> None:  # type: ignore[no-untyped-def]
    """A failing analysis should mark only its tab, and regenerate should replace it."""

    recording_service.analyze_failures_remaining = 1

    async def scenario() -> TranslationOrchestrator:
        orchestrator = _orchestrator(recording_service)
        tab_id = orchestrator.fetch_rich_detail("uno", "uno dos tres", "es", "en")
        await orchestrator.wait_idle()
        tab = orchestrator.active_tab
        assert tab is not None
        assert tab.status is TranslationStatus.ERROR
        assert tab.error == "analysis unavailable"

        orchestrator.regenerate(tab_id)
        assert tab.is_loading is True
        await orchestrator.wait_idle()
        return orchestrator

    orchestrator = asyncio.run(scenario())

    tab = orchestrator.active_tab
    assert tab is not None
    assert tab.status is TranslationStatus.RESOLVED
    assert tab.error is None
    assert tab.result is not None and tab.result.translation == "uno->en"


def test_tabs_survive_clear_all_and_reject_unknown_ids(recording_service) -> None:  # type: ignore[no-untyped-def]
    """Clearing translations should keep tabs, and unknown tab ids should raise."""

    async def scenario() -> TranslationOrchestrator:
        orchestrator = _orchestrator(recording_service)
        orchestrator.fetch_rich_detail("uno", "", "es", "en")
        orchestrator.clear_all()
        await orchestrator.wait_idle()
        return orchestrator

    orchestrator = asyncio.run(scenario())

    assert len(orchestrator.tabs) == 1
    assert orchestrator.tabs[0].status is TranslationStatus.RESOLVED
    assert recording_service.analyze_calls == [("uno", "en", None, "es")]
    with pytest.raises(KeyError):
        orchestrator.regenerate("missing")


def test_closed_tab_ignores_late_result(recording_service) -> None:  # type: ignore[no-untyped-def]
    """A result arriving after its tab closed should be dropped."""

    async def scenario() -> TranslationOrchestrator:
        orchestrator = _orchestrator(recording_service)
        tab_id = orchestrator.fetch_rich_detail("uno", "", "es", "en")
        orchestrator.close_tab(tab_id)
        await orchestrator.wait_idle()
        return orchestrator

    orchestrator = asyncio.run(scenario())

    assert orchestrator.tabs == ()
    assert orchestrator.active_tab_id is None


def test_toggle_translations_notifies(recording_service) -> None:  # type: ignore[no-untyped-def]
    """Toggling inline translations should flip the flag and notify listeners."""

    orchestrator = _orchestrator(recording_service)
    notified: list[bool] = []
    orchestrator.subscribe(lambda: notified.append(orchestrator.show_translations))

    assert orchestrator.toggle_translations() is False
    assert notified == [False]


class _OutOfOrderService:
    """Service double that holds `uno` until `tres` has been translated."""

    def __init__(self) -> None:
        """Initialize the gate and the completion log."""

        self.tres_served = Event()
        self.completed: list[str] = []
        self._lock = Lock()

    def translate_segment(
        self,
        text: str,
        target_language: str,
        context: str | None = None,
        source_language: str | None = None,
    ) -> str:
        """Block `uno` on the gate and release it once `tres` is done."""

        if text == "uno" and not self.tres_served.wait(timeout=2.0):
            raise RuntimeError("tres was never served")
        with self._lock:
            self.completed.append(text)
        if text == "tres":
            self.tres_served.set()
        return text.upper()

    def forget_segment(
        self,
        text: str,
        target_language: str,
        context: str | None = None,
        source_language: str | None = None,
    ) -> None:
        """Nothing is cached."""


def test_batch_groups_run_concurrently_and_apply_out_of_order() -> None:
    """Groups from one batch should each resolve to their own text whatever the finish order."""

    service = _OutOfOrderService()

    async def scenario() -> TranslationOrchestrator:
        orchestrator = _orchestrator(service)
        orchestrator.on_selection_changed({0, 4}, _TOKENS, "es", "en")
        await orchestrator.wait_idle()
        return orchestrator

    orchestrator = asyncio.run(scenario())

    assert service.completed == ["tres", "uno"]
    first = orchestrator.translation_for(GroupKey(0, 0))
    last = orchestrator.translation_for(GroupKey(4, 4))
    assert first is not None and first.status is TranslationStatus.RESOLVED
    assert first.text == "UNO"
    assert last is not None and last.status is TranslationStatus.RESOLVED
    assert last.text == "TRES"


def test_wait_idle_logs_listener_failures_from_request_tasks(recording_service) -> None:  # type: ignore[no-untyped-def]
    """A listener raising while a result is applied should be logged, not dropped."""

    sink = io.StringIO()
    configure_logging(sink=sink, level="DEBUG")

    async def scenario() -> TranslationOrchestrator:
        orchestrator = _orchestrator(recording_service)

        def _explode() -> None:
            entry = orchestrator.translation_for(GroupKey(0, 0))
            if entry is not None and entry.status is TranslationStatus.RESOLVED:
                raise RuntimeError("listener broke")

        orchestrator.subscribe(_explode)
        orchestrator.translate_indices({0})
        await orchestrator.wait_idle()
        return orchestrator

    try:
        orchestrator = asyncio.run(scenario())
    finally:
        configure_logging(level="WARNING")

    entry = orchestrator.translation_for(GroupKey(0, 0))
    assert entry is not None and entry.text == "uno->en"
    failures = [line for line in sink.getvalue().splitlines() if "request_task_failed" in line]
    assert len(failures) == 1
    assert "level=ERROR component=translation" in failures[0]
    assert "error_type=RuntimeError" in failures[0]
