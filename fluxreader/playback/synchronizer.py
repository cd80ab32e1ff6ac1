"""Playback position tracking for spoken text.

Responsibilities:
- Keep cumulative character offsets aligned 1:1 with the token sequence.
- Map engine boundary callbacks back to the token currently voiced.
- Handle seek, pause/resume, rate changes, and auxiliary excerpt playback.
- Pick voices by language and keep the selection across voice reloads.
- Expose the page that pagination should follow while playing.
"""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, replace
from functools import partial
from itertools import accumulate
from typing import Callable, Sequence

from ..errors import StaleTokensError
from ..models.datatypes import Voice
from ..telemetry.logger import EventLogger
from ..text.tokenizer import check_index
from .engines import SpeechEngine


@dataclass(frozen=True, slots=True)
class PlaybackState:
    """Immutable snapshot of playback flags and position.

    Attributes:
        is_playing: Whether an utterance is actively being voiced.
        is_paused: Whether the current utterance is paused.
        current_word_index: Token index currently voiced, or `None`.
        voice: Selected voice, if any.
        rate: Speech rate multiplier.
    """

    is_playing: bool = False
    is_paused: bool = False
    current_word_index: int | None = None
    voice: Voice | None = None
    rate: float = 1.0


PlaybackListener = Callable[[PlaybackState], None]

LANGUAGE_CODES = {
    "spanish": "es",
    "english": "en",
    "french": "fr",
    "german": "de",
    "italian": "it",
    "japanese": "ja",
    "russian": "ru",
    "chinese": "zh",
    "portuguese": "pt",
    "korean": "ko",
}


def language_code(language: str) -> str | None:
    """Return the short code for a language name or code, or `None` when unknown."""

    normalized = language.strip().lower()
    if not normalized:
        return None
    if normalized in LANGUAGE_CODES:
        return LANGUAGE_CODES[normalized]
    if normalized in LANGUAGE_CODES.values():
        return normalized
    return None


def compute_offsets(tokens: Sequence[str]) -> tuple[int, ...]:
    """Return the start character offset of every token."""

    return tuple(accumulate((len(token) for token in tokens[:-1]), initial=0)) if tokens else ()


class PlaybackSynchronizer:
    """Track which token the speech engine is voicing."""

    def __init__(
        self,
        engine: SpeechEngine,
        rate: float = 1.0,
        voice: Voice | None = None,
        logger: EventLogger | None = None,
    ) -> None:
        self._engine = engine
        self._logger = logger or EventLogger("playback")
        self._tokens: tuple[str, ...] = ()
        self._offsets: tuple[int, ...] = ()
        self._base_offset = 0
        self._generation = 0
        self._state = PlaybackState(rate=rate, voice=voice)
        self._voices: tuple[Voice, ...] = ()
        self._interrupted = False
        self._listeners: list[PlaybackListener] = []

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def voices(self) -> tuple[Voice, ...]:
        return self._voices

    @property
    def offsets(self) -> tuple[int, ...]:
        return self._offsets

    @property
    def is_playing(self) -> bool:
        return self._state.is_playing

    @property
    def is_paused(self) -> bool:
        return self._state.is_paused

    @property
    def current_word_index(self) -> int | None:
        return self._state.current_word_index

    def subscribe(self, listener: PlaybackListener) -> Callable[[], None]:
        """Register a state listener and return a callable that removes it."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def set_tokens(self, tokens: Sequence[str]) -> None:
        """Adopt a new token sequence, stopping playback voiced from the old one."""

        if self._state.is_playing or self._state.is_paused:
            self._engine.stop()
        self._interrupted = False
        self._generation += 1
        self._tokens = tuple(tokens)
        self._offsets = compute_offsets(self._tokens)
        self._base_offset = 0
        self._update(is_playing=False, is_paused=False, current_word_index=None)

    def load_voices(self) -> list[Voice]:
        """Return engine voices, keeping the selected voice when it is still offered.

        The selection is re-matched by name because engines may hand out new
        voice objects on reload. Without a usable selection the engine default
        (or the first voice) is picked.
        """

        voices = self._engine.list_voices()
        self._voices = tuple(voices)
        if not voices:
            return voices
        current = self._state.voice
        if current is not None:
            same = next((voice for voice in voices if voice.name == current.name), None)
            if same is not None:
                self._update(voice=same)
                return voices
            self._logger.warning("voice_unavailable", voice=current.name)
        default = next((voice for voice in voices if voice.is_default), voices[0])
        self._update(voice=default)
        return voices

    def set_voice_by_language(self, language: str) -> Voice | None:
        """Select the first loaded voice speaking `language`.

        Args:
            language: Language name such as `Spanish`, or a short code such as `es`.

        Returns:
            The selected voice, or `None` when no loaded voice matches.
        """

        code = language_code(language)
        if code is None:
            return None
        match = next(
            (voice for voice in self._voices if voice.language.lower().startswith(code)), None
        )
        if match is None:
            self._logger.debug("voice_language_unmatched", language=code)
            return None
        self._update(voice=match)
        return match

    def set_voice(self, voice: Voice | None) -> None:
        self._update(voice=voice)

    def set_rate(self, rate: float) -> None:
        """Change the speech rate, restarting from the current token when playing."""

        if rate <= 0:
            raise ValueError("Speech rate must be positive.")
        self._update(rate=rate)
        current = self._state.current_word_index
        if self._state.is_playing and current is not None:
            self._logger.info("rate_restart", rate=rate, token=current)
            self.seek(current)

    def play(self) -> None:
        """Resume when paused, otherwise start from the current token or the beginning."""

        if self._state.is_paused:
            self.resume()
            return
        if not self._tokens:
            return
        current = self._state.current_word_index
        self.seek(current if current is not None else 0)

    def seek(self, index: int, tokens: Sequence[str] | None = None) -> None:
        """Stop any utterance and start voicing from the token at `index`.

        Args:
            index: Token index playback starts from.
            tokens: Optional caller view of the token sequence; it must be the
                sequence these offsets were built for.

        Raises:
            StaleTokensError: If `tokens` differs from the adopted sequence.
            TokenIndexError: If `index` is outside the token sequence.
        """

        self._require_current(tokens)
        check_index(index, self._tokens)

        self._engine.stop()
        self._generation += 1
        generation = self._generation
        self._interrupted = False
        self._base_offset = self._offsets[index]
        self._update(is_playing=True, is_paused=False, current_word_index=index)
        self._logger.debug("seek", token=index, offset=self._base_offset)
        self._engine.play(
            "".join(self._tokens[index:]),
            self._state.voice,
            self._state.rate,
            partial(self._handle_boundary, generation),
            partial(self._handle_end, generation),
        )

    def pause(self) -> None:
        if not self._state.is_playing:
            return
        self._interrupted = False
        self._engine.pause()
        self._update(is_playing=False, is_paused=True)

    def resume(self) -> None:
        """Continue a paused utterance, or restart from the tracked token after an excerpt."""

        if not self._state.is_paused:
            return
        current = self._state.current_word_index
        if self._interrupted and current is not None:
            self.seek(current)
            return
        self._engine.resume()
        self._update(is_playing=True, is_paused=False)

    def stop(self) -> None:
        self._engine.stop()
        self._generation += 1
        self._interrupted = False
        self._update(is_playing=False, is_paused=False, current_word_index=None)

    def play_single(self, text: str) -> None:
        """Voice an excerpt outside the position-tracking model.

        Main playback is stopped so audio never overlaps. The tracked token
        index is left untouched; when one exists playback counts as paused and
        `resume` restarts from it.
        """

        self._engine.stop()
        self._generation += 1
        self._interrupted = self._state.current_word_index is not None
        self._update(is_playing=False, is_paused=self._interrupted)
        self._engine.play(
            text,
            self._state.voice,
            self._state.rate,
            _ignore_boundary,
            _ignore_end,
        )

    def resolve_token_index(self, absolute_offset: int) -> int | None:
        """Return the last token whose start offset does not exceed `absolute_offset`."""

        position = bisect_right(self._offsets, absolute_offset) - 1
        if position < 0:
            return None
        return position

    def page_for(self, page_size: int) -> int | None:
        """Return the 1-based page holding the voiced token while playing, else `None`."""

        current = self._state.current_word_index
        if not self._state.is_playing or current is None:
            return None
        return current // page_size + 1

    def _handle_boundary(self, generation: int, relative_offset: int) -> None:
        if generation != self._generation:
            return
        index = self.resolve_token_index(self._base_offset + relative_offset)
        if index is not None and index != self._state.current_word_index:
            self._update(current_word_index=index)

    def _handle_end(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._generation += 1
        self._interrupted = False
        self._update(is_playing=False, is_paused=False, current_word_index=None)

    def _require_current(self, tokens: Sequence[str] | None) -> None:
        if len(self._offsets) != len(self._tokens):
            raise StaleTokensError("Token offsets are out of date; call `set_tokens` first.")
        if tokens is not None and tuple(tokens) != self._tokens:
            raise StaleTokensError(
                "Playback offsets were built for a different token sequence."
            )

    def _update(self, **changes: object) -> None:
        state = self._state
        next_state = replace(state, **changes)
        if next_state == state:
            return
        self._state = next_state
        for listener in list(self._listeners):
            listener(next_state)


def _ignore_boundary(_char_index: int) -> None:
    return None


def _ignore_end() -> None:
    return None
