"""Speech engine interfaces and a deterministic dry-run engine.

Responsibilities:
- Define the protocol consumed by the playback synchronizer.
- Provide a step-driven engine that reports word boundaries without audio output.
"""

from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Callable, Protocol

from ..models.datatypes import Voice

BoundaryCallback = Callable[[int], None]
EndCallback = Callable[[], None]

_WORD_PATTERN = re.compile(r"\S+")


class SpeechEngine(Protocol):
    """Protocol for speech synthesis engines with word-boundary callbacks."""

    def play(
        self,
        text: str,
        voice: Voice | None,
        rate: float,
        on_boundary: BoundaryCallback,
        on_end: EndCallback,
    ) -> None:
        """Start speaking `text`, reporting boundaries relative to its first character."""

    def pause(self) -> None:
        """Pause the current utterance."""

    def resume(self) -> None:
        """Resume a paused utterance."""

    def stop(self) -> None:
        """Cancel the current utterance without invoking its end callback."""

    def list_voices(self) -> list[Voice]:
        """Return voices offered by the engine."""


@dataclass(slots=True)
class _Utterance:
    text: str
    voice: Voice | None
    rate: float
    on_boundary: BoundaryCallback
    on_end: EndCallback
    boundaries: list[int]
    position: int = 0


class DryRunSpeechEngine:
    """Silent engine that emits one boundary per word when stepped."""

    def __init__(self, voices: list[Voice] | None = None) -> None:
        self._voices = list(voices) if voices is not None else [
            Voice(voice_id="dry-run", name="Dry run", language="", is_default=True)
        ]
        self._utterance: _Utterance | None = None
        self.paused = False
        self.spoken: list[tuple[str, float]] = []

    @property
    def is_active(self) -> bool:
        return self._utterance is not None

    def play(
        self,
        text: str,
        voice: Voice | None,
        rate: float,
        on_boundary: BoundaryCallback,
        on_end: EndCallback,
    ) -> None:
        self.stop()
        self.paused = False
        self.spoken.append((text, rate))
        self._utterance = _Utterance(
            text=text,
            voice=voice,
            rate=rate,
            on_boundary=on_boundary,
            on_end=on_end,
            boundaries=[match.start() for match in _WORD_PATTERN.finditer(text)],
        )

    def pause(self) -> None:
        self.paused = True

    def resume(self) -> None:
        self.paused = False

    def stop(self) -> None:
        self._utterance = None
        self.paused = False

    def list_voices(self) -> list[Voice]:
        return list(self._voices)

    def step(self) -> bool:
        """Emit the next word boundary, or finish the utterance.

        Returns:
            `True` while the utterance is still active after the step.
        """

        utterance = self._utterance
        if utterance is None or self.paused:
            return False
        if utterance.position < len(utterance.boundaries):
            boundary = utterance.boundaries[utterance.position]
            utterance.position += 1
            utterance.on_boundary(boundary)
            return self._utterance is utterance
        self._utterance = None
        utterance.on_end()
        return False

    def drain(self, max_steps: int | None = None) -> int:
        """Step until the utterance ends, pauses, or `max_steps` is reached."""

        steps = 0
        while max_steps is None or steps < max_steps:
            active = self.step()
            steps += 1
            if not active:
                break
        return steps
