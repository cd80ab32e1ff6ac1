"""Reader session wiring tokens, selection, playback, and translation together.

Responsibilities:
- Own the token sequence and rebuild every derived structure atomically on change.
- Apply click, hover, more-info, play, and regenerate interactions.
- Keep pagination in step with playback.
- Forward component changes to session observers.

Interaction methods that can schedule translation work must be called from a
running asyncio event loop.
"""

from __future__ import annotations

from dataclasses import dataclass
from math import ceil
from typing import Callable

from .config import ReaderConfig
from .llm.translator import TranslationService
from .models.datatypes import GroupKey, SelectionMode, TranslationEntry, Voice
from .playback.engines import DryRunSpeechEngine, SpeechEngine
from .playback.synchronizer import PlaybackState, PlaybackSynchronizer
from .selection.engine import SelectionEngine
from .telemetry.logger import EventLogger
from .text.sentences import sentence_context
from .text.tokenizer import check_index, join_span, line_context, tokenize
from .translation.orchestrator import TranslationOrchestrator

SessionListener = Callable[[str], None]


@dataclass(frozen=True, slots=True)
class ResolvedTarget:
    """Text an interaction acts on, and the group it came from, if any."""

    text: str
    group: GroupKey | None = None


class ReaderSession:
    """Single owner of document text and the components derived from it."""

    def __init__(
        self,
        service: TranslationService,
        engine: SpeechEngine | None = None,
        *,
        config: ReaderConfig | None = None,
        logger: EventLogger | None = None,
    ) -> None:
        self.config = config or ReaderConfig()
        self._logger = logger or EventLogger("session")
        self.selection = SelectionEngine(logger=self._logger.child("selection"))
        self.playback = PlaybackSynchronizer(
            engine or DryRunSpeechEngine(),
            rate=self.config.speech_rate,
            logger=self._logger.child("playback"),
        )
        self.orchestrator = TranslationOrchestrator(
            service,
            selection_delay_seconds=self.config.selection_debounce_ms / 1000.0,
            hover_delay_seconds=self.config.hover_debounce_ms / 1000.0,
            logger=self._logger.child("translation"),
        )
        self._text = ""
        self._tokens: tuple[str, ...] = ()
        self.source_language = self.config.source_language
        self.target_language = self.config.target_language
        self.page = 1
        self._rebuilding = False
        self._listeners: list[SessionListener] = []

        self.selection.subscribe(self._on_selection_changed)
        self.playback.subscribe(self._on_playback_changed)
        self.orchestrator.subscribe(self._on_translations_changed)

    def load_voices(self) -> list[Voice]:
        """Load engine voices, preferring the configured voice over a source-language match."""

        voices = self.playback.load_voices()
        preferred = self.config.voice
        if not preferred:
            self.playback.set_voice_by_language(self.source_language)
        else:
            match = next(
                (voice for voice in voices if preferred in (voice.voice_id, voice.name)), None
            )
            if match is None:
                self._logger.warning("voice_not_found", voice=preferred)
            else:
                self.playback.set_voice(match)
        return voices

    @property
    def text(self) -> str:
        return self._text

    @property
    def tokens(self) -> tuple[str, ...]:
        return self._tokens

    @property
    def page_size(self) -> int:
        return self.config.page_size

    @property
    def total_pages(self) -> int:
        return max(1, ceil(len(self._tokens) / self.page_size))

    def page_tokens(self) -> tuple[str, ...]:
        """Return the tokens shown on the current page."""

        start = (self.page - 1) * self.page_size
        return self._tokens[start : start + self.page_size]

    def to_global(self, page_index: int) -> int:
        """Convert a page-relative token index into an absolute one."""

        return (self.page - 1) * self.page_size + page_index

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a listener receiving a change reason and return its remover.

        Reasons are `config`, `page`, `selection`, `playback`, and `translations`.
        """

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def set_config(self, text: str, source_language: str, target_language: str) -> bool:
        """Adopt new text or languages, rebuilding derived state before notifying.

        Returns:
            Whether anything changed.
        """

        if (
            text == self._text
            and source_language == self.source_language
            and target_language == self.target_language
        ):
            return False

        self._rebuilding = True
        try:
            tokens = tokenize(text)
            self.playback.set_tokens(tokens)
            if source_language != self.source_language and not self.config.voice:
                self.playback.set_voice_by_language(source_language)
            self.selection.reset(tokens)
            self.orchestrator.clear_all()
            self.orchestrator.set_document(tokens, source_language, target_language)
            self._text = text
            self._tokens = tokens
            self.source_language = source_language
            self.target_language = target_language
            self.page = 1
        finally:
            self._rebuilding = False

        self._logger.info(
            "config_applied",
            tokens=len(self._tokens),
            source=source_language,
            target=target_language,
        )
        self._notify("config")
        return True

    def set_mode(self, mode: SelectionMode) -> None:
        self.selection.mode = mode

    def set_page(self, page: int) -> int:
        """Move to `page`, clamped into the valid page range, and return it."""

        clamped = min(max(1, page), self.total_pages)
        if clamped != self.page:
            self.page = clamped
            self._notify("page")
        return clamped

    def sync_page_to_playback(self) -> int | None:
        """Follow the voiced token onto its page while playing."""

        target = self.playback.page_for(self.page_size)
        if target is not None and target != self.page:
            self.set_page(target)
        return target

    # Interactions

    def click(self, index: int, multi_select: bool = False) -> None:
        """Apply a token click using split, merge, then toggle rules."""

        check_index(index, self._tokens)
        group = self.selection.group_for(index)

        if group is not None and not multi_select and self._handle_group_click(index, group):
            return

        if group is None and not multi_select and self.selection.mode is SelectionMode.WORD:
            merged = self.selection.merge_adjacent(index)
            if merged is not None:
                self.orchestrator.translate_indices(self.selection.members(merged))
                return

        self.selection.toggle(index)

    def _handle_group_click(self, index: int, group: GroupKey) -> bool:
        if self.orchestrator.translation_for(group) is None:
            return False

        self.orchestrator.remove_translation(group)
        if self.selection.mode is SelectionMode.WORD:
            self.selection.toggle(index)
            remaining = self.selection.members(group)
            self._logger.debug("group_split", group=group.label, remaining=len(remaining))
            if remaining:
                self.orchestrator.translate_indices(remaining)
        else:
            self._logger.debug("group_toggled_off", group=group.label)
            self.selection.deselect(range(group.start, group.end + 1))
        return True

    def hover(self, page_index: int) -> None:
        """Report the hovered token by its page-relative index."""

        self.orchestrator.on_hover(
            page_index,
            self._tokens,
            self.page,
            self.page_size,
            self.source_language,
            self.target_language,
        )

    def resolve_target(self, index: int, force_single: bool = False) -> ResolvedTarget:
        """Return the clicked group text, or the single token when forced or ungrouped."""

        check_index(index, self._tokens)
        group = None if force_single else self.selection.group_for(index)
        if group is not None:
            return ResolvedTarget(join_span(self._tokens, group.start, group.end), group)
        return ResolvedTarget(self._tokens[index])

    def context_for(self, index: int) -> str:
        return line_context(self._tokens, index)

    def sentence_context_for(self, index: int) -> str:
        return sentence_context(self._tokens, index)

    def more_info(self, index: int, force_single: bool = False) -> str | None:
        """Open a rich-detail tab for the target at `index` and return its id."""

        target = self.resolve_target(index, force_single)
        if not target.text.strip():
            return None
        return self.orchestrator.fetch_rich_detail(
            target.text,
            self.sentence_context_for(index),
            self.source_language,
            self.target_language,
        )

    def regenerate(self, index: int, force_single: bool = False) -> None:
        """Re-fetch the translation shown for the token at `index`."""

        target = self.resolve_target(index, force_single)
        if target.group is not None:
            self.orchestrator.translate_indices(
                range(target.group.start, target.group.end + 1), force=True
            )
        elif self.orchestrator.translation_for(GroupKey.single(index)) is not None:
            self.orchestrator.translate_indices((index,), force=True)
        elif self.orchestrator.hovered_index == index:
            self.orchestrator.regenerate_hover()

    def play_from(self, index: int) -> None:
        self.playback.seek(index, self._tokens)

    def play_excerpt(self, index: int, force_single: bool = False) -> str:
        """Voice the target at `index` without moving the playback position."""

        target = self.resolve_target(index, force_single)
        if target.text.strip():
            self.playback.play_single(target.text)
        return target.text

    def group_translations(self) -> list[tuple[GroupKey, str, TranslationEntry | None]]:
        """Return each current group with its text and cached translation entry."""

        return [
            (
                key,
                join_span(self._tokens, key.start, key.end).strip(),
                self.orchestrator.translation_for(key),
            )
            for key in self.selection.groups()
        ]

    # Observers

    def _on_selection_changed(self, selection: frozenset[int]) -> None:
        if self._rebuilding:
            return
        self.orchestrator.on_selection_changed(
            selection, self._tokens, self.source_language, self.target_language
        )
        self._notify("selection")

    def _on_playback_changed(self, _state: PlaybackState) -> None:
        if self._rebuilding:
            return
        self.sync_page_to_playback()
        self._notify("playback")

    def _on_translations_changed(self) -> None:
        if self._rebuilding:
            return
        self._notify("translations")

    def _notify(self, reason: str) -> None:
        for listener in list(self._listeners):
            listener(reason)
