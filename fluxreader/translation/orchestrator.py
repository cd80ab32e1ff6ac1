"""Translation request orchestration for selections, hover, and rich detail.

Responsibilities:
- Debounce selection changes into one concurrent batch of group requests.
- Debounce hover lookups per token and discard results for a stale hover target.
- Manage rich-detail tabs with regenerate and close semantics.
- Convert service failures into per-slot error markers.

All methods run on the asyncio event loop thread. Service calls are blocking
and are dispatched with `asyncio.to_thread`, so results resolve in any order.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Iterable, Sequence
from uuid import uuid4

from ..llm.translator import TranslationService
from ..models.datatypes import (
    GroupKey,
    RichDetailResult,
    RichDetailTab,
    TranslationEntry,
    TranslationStatus,
)
from ..selection.engine import derive_groups
from ..telemetry.logger import EventLogger
from ..text.tokenizer import is_whitespace, join_span, line_context
from .debounce import DebounceTimer

OrchestratorListener = Callable[[], None]

SELECTION_DEBOUNCE_SECONDS = 0.5
HOVER_DEBOUNCE_SECONDS = 0.3


def _error_message(exc: BaseException) -> str:
    message = str(exc).strip()
    return message or type(exc).__name__


class TranslationOrchestrator:
    """Own the group translation cache, hover slot, and rich-detail tabs.

    Attributes:
        show_translations: Whether inline group translations should be rendered.
    """

    def __init__(
        self,
        service: TranslationService,
        *,
        selection_delay_seconds: float = SELECTION_DEBOUNCE_SECONDS,
        hover_delay_seconds: float = HOVER_DEBOUNCE_SECONDS,
        logger: EventLogger | None = None,
    ) -> None:
        self._service = service
        self._logger = logger or EventLogger("translation")
        self._selection_timer = DebounceTimer(selection_delay_seconds)
        self._hover_timer = DebounceTimer(hover_delay_seconds)

        self._tokens: tuple[str, ...] = ()
        self._selection: frozenset[int] = frozenset()
        self._source_language = ""
        self._target_language = ""

        self._entries: dict[GroupKey, TranslationEntry] = {}
        self._identities: dict[GroupKey, tuple[str, str, str]] = {}
        self._generation = 0

        self._hover_index: int | None = None
        self._hover_entry: TranslationEntry | None = None

        self._tabs: list[RichDetailTab] = []
        self._active_tab_id: str | None = None
        self._tab_requests: dict[str, int] = {}

        self._tasks: set[asyncio.Task[Any]] = set()
        self._listeners: list[OrchestratorListener] = []
        self.show_translations = True

    @property
    def service(self) -> TranslationService:
        return self._service

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def entries(self) -> dict[GroupKey, TranslationEntry]:
        """Return a snapshot of the group translation cache."""

        return dict(self._entries)

    def translation_for(self, key: GroupKey) -> TranslationEntry | None:
        return self._entries.get(key)

    @property
    def hovered_index(self) -> int | None:
        return self._hover_index

    @property
    def hover_translation(self) -> TranslationEntry | None:
        return self._hover_entry

    @property
    def tabs(self) -> tuple[RichDetailTab, ...]:
        return tuple(self._tabs)

    @property
    def active_tab_id(self) -> str | None:
        return self._active_tab_id

    @property
    def active_tab(self) -> RichDetailTab | None:
        return self._find_tab(self._active_tab_id) if self._active_tab_id else None

    def subscribe(self, listener: OrchestratorListener) -> Callable[[], None]:
        """Register a change listener and return a callable that removes it."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def set_document(
        self,
        tokens: Sequence[str],
        source_language: str,
        target_language: str,
    ) -> None:
        """Adopt the token sequence and language pair later requests read."""

        self._tokens = tuple(tokens)
        self._source_language = source_language
        self._target_language = target_language

    def toggle_translations(self) -> bool:
        self.show_translations = not self.show_translations
        self._notify()
        return self.show_translations

    # Selection translations

    def on_selection_changed(
        self,
        selection: Iterable[int],
        tokens: Sequence[str],
        source_language: str,
        target_language: str,
    ) -> None:
        """Record the latest selection and restart the selection debounce timer."""

        self.set_document(tokens, source_language, target_language)
        self._selection = frozenset(selection)
        self._selection_timer.schedule(self._flush_selection)

    def _flush_selection(self) -> None:
        groups = derive_groups(self._selection, self._tokens)
        self._logger.debug("selection_settled", groups=len(groups), generation=self._generation)
        self._request_groups(groups, force=False)

    def translate_indices(self, indices: Iterable[int], force: bool = False) -> None:
        """Translate the groups formed by `indices` immediately, bypassing the debounce."""

        self._request_groups(derive_groups(indices, self._tokens), force=force)

    def regenerate_selection(self, index: int) -> GroupKey | None:
        """Force a re-fetch of the selected group that contains `index`."""

        for key in derive_groups(self._selection, self._tokens):
            if key.contains(index):
                self._request_groups((key,), force=True)
                return key
        return None

    def remove_translation(self, key: GroupKey) -> None:
        if self._entries.pop(key, None) is not None:
            self._identities.pop(key, None)
            self._notify()

    def _request_groups(self, groups: Iterable[GroupKey], *, force: bool) -> None:
        issued = 0
        for key in groups:
            text = join_span(self._tokens, key.start, key.end).strip()
            if not text:
                continue
            identity = (text, self._source_language, self._target_language)
            if not force and key in self._entries and self._identities.get(key) == identity:
                continue
            context = line_context(self._tokens, key.start).strip()
            if force:
                self._service.forget_segment(
                    text,
                    self._target_language,
                    context or None,
                    self._source_language or None,
                )
            entry = TranslationEntry(key=key, source_text=text, status=TranslationStatus.PENDING)
            self._entries[key] = entry
            self._identities[key] = identity
            self._spawn(
                self._translate_group(
                    entry,
                    context,
                    self._source_language,
                    self._target_language,
                    self._generation,
                )
            )
            issued += 1
        if issued:
            self._logger.info("group_batch", requests=issued, generation=self._generation)
            self._notify()

    async def _translate_group(
        self,
        entry: TranslationEntry,
        context: str,
        source_language: str,
        target_language: str,
        generation: int,
    ) -> None:
        try:
            text = await asyncio.to_thread(
                self._service.translate_segment,
                entry.source_text,
                target_language,
                context or None,
                source_language or None,
            )
        except Exception as exc:
            self._logger.failure(
                "group_translate_failed",
                error_type=type(exc).__name__,
                group=entry.key.label,
            )
            outcome = TranslationEntry(
                key=entry.key,
                source_text=entry.source_text,
                status=TranslationStatus.ERROR,
                error=_error_message(exc),
            )
        else:
            outcome = TranslationEntry(
                key=entry.key,
                source_text=entry.source_text,
                status=TranslationStatus.RESOLVED,
                text=text,
            )

        if generation != self._generation or self._entries.get(entry.key) is not entry:
            self._logger.debug("group_result_discarded", group=entry.key.label)
            return
        self._entries[entry.key] = outcome
        self._notify()

    # Hover translations

    def on_hover(
        self,
        index: int,
        tokens: Sequence[str],
        page: int,
        page_size: int,
        source_language: str,
        target_language: str,
    ) -> None:
        """Track the hovered token and debounce a single-token translation for it.

        `index` is relative to `page`; the absolute token index is derived from
        the 1-based page number and the page size.
        """

        absolute = (page - 1) * page_size + index
        if absolute == self._hover_index:
            return

        self.set_document(tokens, source_language, target_language)
        self._hover_timer.cancel()
        self._hover_index = absolute
        self._hover_entry = None

        if absolute < 0 or absolute >= len(self._tokens) or is_whitespace(self._tokens[absolute]):
            self._notify()
            return

        cached = self._entries.get(GroupKey.single(absolute))
        if cached is not None and cached.status is TranslationStatus.RESOLVED:
            self._hover_entry = cached
            self._notify()
            return

        self._notify()
        self._hover_timer.schedule(self._flush_hover)

    def clear_hover(self) -> None:
        self._hover_timer.cancel()
        if self._hover_index is None and self._hover_entry is None:
            return
        self._hover_index = None
        self._hover_entry = None
        self._notify()

    def regenerate_hover(self) -> None:
        """Re-fetch the translation of the hovered token without waiting."""

        self._hover_timer.cancel()
        self._flush_hover(force=True)

    def _flush_hover(self, force: bool = False) -> None:
        index = self._hover_index
        if index is None or index >= len(self._tokens) or is_whitespace(self._tokens[index]):
            return
        text = self._tokens[index].strip()
        key = GroupKey.single(index)
        context = line_context(self._tokens, index).strip()
        if force:
            self._service.forget_segment(
                text,
                self._target_language,
                context or None,
                self._source_language or None,
            )
        self._hover_entry = TranslationEntry(
            key=key, source_text=text, status=TranslationStatus.PENDING
        )
        self._notify()
        self._spawn(
            self._translate_hover(
                index,
                text,
                context,
                self._source_language,
                self._target_language,
                self._generation,
            )
        )

    async def _translate_hover(
        self,
        index: int,
        text: str,
        context: str,
        source_language: str,
        target_language: str,
        generation: int,
    ) -> None:
        key = GroupKey.single(index)
        try:
            translated = await asyncio.to_thread(
                self._service.translate_segment,
                text,
                target_language,
                context or None,
                source_language or None,
            )
        except Exception as exc:
            self._logger.failure(
                "hover_translate_failed", error_type=type(exc).__name__, token=index
            )
            outcome = TranslationEntry(
                key=key,
                source_text=text,
                status=TranslationStatus.ERROR,
                error=_error_message(exc),
            )
        else:
            outcome = TranslationEntry(
                key=key, source_text=text, status=TranslationStatus.RESOLVED, text=translated
            )

        if generation != self._generation or self._hover_index != index:
            self._logger.debug("hover_result_discarded", token=index)
            return
        self._hover_entry = outcome
        self._notify()

    # Rich-detail tabs

    def fetch_rich_detail(
        self,
        text: str,
        context: str,
        source_language: str,
        target_language: str,
    ) -> str:
        """Open a new loading tab for `text`, make it active, and return its id."""

        tab = RichDetailTab(
            tab_id=uuid4().hex,
            text=text,
            context=context,
            source_language=source_language,
            target_language=target_language,
        )
        self._tabs.append(tab)
        self._active_tab_id = tab.tab_id
        self._logger.info("tab_opened", tab=tab.tab_id, tabs=len(self._tabs))
        self._start_tab_request(tab)
        self._notify()
        return tab.tab_id

    def regenerate(self, tab_id: str) -> None:
        """Re-run the request of an existing tab, replacing its result.

        Raises:
            KeyError: If no open tab has `tab_id`.
        """

        tab = self._require_tab(tab_id)
        tab.status = TranslationStatus.PENDING
        tab.error = None
        self._start_tab_request(tab)
        self._notify()

    def set_active_tab(self, tab_id: str | None) -> None:
        if tab_id is not None:
            self._require_tab(tab_id)
        if tab_id != self._active_tab_id:
            self._active_tab_id = tab_id
            self._notify()

    def close_tab(self, tab_id: str) -> None:
        """Close one tab; closing the active tab activates its right, else left, neighbour."""

        position = next(
            (i for i, tab in enumerate(self._tabs) if tab.tab_id == tab_id), None
        )
        if position is None:
            return
        del self._tabs[position]
        self._tab_requests.pop(tab_id, None)
        if self._active_tab_id == tab_id:
            if position < len(self._tabs):
                self._active_tab_id = self._tabs[position].tab_id
            elif self._tabs:
                self._active_tab_id = self._tabs[position - 1].tab_id
            else:
                self._active_tab_id = None
        self._notify()

    def close_all_tabs(self) -> None:
        if not self._tabs:
            return
        self._tabs.clear()
        self._tab_requests.clear()
        self._active_tab_id = None
        self._notify()

    def _start_tab_request(self, tab: RichDetailTab) -> None:
        request_id = self._tab_requests.get(tab.tab_id, 0) + 1
        self._tab_requests[tab.tab_id] = request_id
        self._spawn(self._analyze_tab(tab, request_id))

    async def _analyze_tab(self, tab: RichDetailTab, request_id: int) -> None:
        result: RichDetailResult | None = None
        error: str | None = None
        try:
            result = await asyncio.to_thread(
                self._service.rich_analyze,
                tab.text,
                tab.target_language,
                tab.context or None,
                tab.source_language or None,
            )
        except Exception as exc:
            self._logger.failure(
                "rich_detail_failed", error_type=type(exc).__name__, tab=tab.tab_id
            )
            error = _error_message(exc)

        if self._tab_requests.get(tab.tab_id) != request_id:
            return
        if error is None:
            tab.status = TranslationStatus.RESOLVED
            tab.result = result
            tab.error = None
        else:
            tab.status = TranslationStatus.ERROR
            tab.error = error
        self._notify()

    def _find_tab(self, tab_id: str) -> RichDetailTab | None:
        return next((tab for tab in self._tabs if tab.tab_id == tab_id), None)

    def _require_tab(self, tab_id: str) -> RichDetailTab:
        tab = self._find_tab(tab_id)
        if tab is None:
            raise KeyError(f"Unknown rich-detail tab `{tab_id}`.")
        return tab

    # Lifecycle

    def clear_all(self) -> None:
        """Drop group translations and hover state; open tabs are kept."""

        self._selection_timer.cancel()
        self._hover_timer.cancel()
        self._generation += 1
        self._selection = frozenset()
        self._entries.clear()
        self._identities.clear()
        self._hover_index = None
        self._hover_entry = None
        self._logger.debug("cache_cleared", generation=self._generation)
        self._notify()

    async def wait_idle(self) -> None:
        """Wait until no debounce timer is pending and no request is in flight."""

        reported: set[asyncio.Task[Any]] = set()
        while True:
            tasks = [task for task in self._tasks if task not in reported]
            if tasks:
                results = await asyncio.gather(*tasks, return_exceptions=True)
                reported.update(tasks)
                for result in results:
                    if isinstance(result, Exception):
                        self._logger.failure(
                            "request_task_failed",
                            error_type=type(result).__name__,
                            detail=_error_message(result),
                        )
                continue
            remaining = max(
                self._selection_timer.seconds_remaining()
                if self._selection_timer.pending
                else -1.0,
                self._hover_timer.seconds_remaining() if self._hover_timer.pending else -1.0,
            )
            if remaining < 0:
                return
            await asyncio.sleep(remaining)

    def _spawn(self, coroutine: Any) -> None:
        task = asyncio.get_running_loop().create_task(coroutine)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()
