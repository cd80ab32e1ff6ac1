"""Core datatypes shared across Fluxreader modules.

Responsibilities:
- Represent immutable records exchanged between reader components.
- Provide explicit typing for selection groups, translation cache entries,
  rich-detail sessions, and speech voices.

Key types:
- `SelectionMode`, `GroupKey`, `TranslationStatus`, `TranslationEntry`,
  `GrammarInfo`, `UsageExample`, `RichDetailResult`, `RichDetailTab`, `Voice`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class SelectionMode(str, Enum):
    """Granularity used when toggling a token."""

    WORD = "word"
    SENTENCE = "sentence"


@dataclass(frozen=True, slots=True, order=True)
class GroupKey:
    """Inclusive token-index bounds identifying one selection group.

    Attributes:
        start: First token index of the group.
        end: Last token index of the group.
    """

    start: int
    end: int

    @property
    def label(self) -> str:
        """Return the `start-end` form used in logs and CLI output."""

        return f"{self.start}-{self.end}"

    def contains(self, index: int) -> bool:
        """Return whether a token index lies inside the group bounds."""

        return self.start <= index <= self.end

    @classmethod
    def single(cls, index: int) -> GroupKey:
        """Return the key of a one-token group."""

        return cls(index, index)


class TranslationStatus(str, Enum):
    """Lifecycle state of one translation request slot."""

    PENDING = "pending"
    RESOLVED = "resolved"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class TranslationEntry:
    """Cached translation state for one group.

    Attributes:
        key: Group key owning this entry.
        source_text: Text that was sent for translation.
        status: Request lifecycle state.
        text: Translated text once resolved.
        error: Error marker once failed.
    """

    key: GroupKey
    source_text: str
    status: TranslationStatus
    text: str | None = None
    error: str | None = None

    @property
    def display_text(self) -> str:
        """Return the inline text shown in place of a translation."""

        if self.status is TranslationStatus.RESOLVED:
            return self.text or ""
        if self.status is TranslationStatus.ERROR:
            return f"Translation Error: {self.error or 'Unknown failure'}"
        return "..."


@dataclass(frozen=True, slots=True)
class GrammarInfo:
    """Grammar analysis attached to a rich-detail result."""

    part_of_speech: str = "unknown"
    explanation: str = ""
    tense: str | None = None
    gender: str | None = None
    number: str | None = None
    infinitive: str | None = None


@dataclass(frozen=True, slots=True)
class UsageExample:
    """One example sentence with its translation."""

    sentence: str
    translation: str = ""


@dataclass(frozen=True, slots=True)
class RichDetailResult:
    """Structured deep-analysis output for one text fragment."""

    translation: str
    segment: str
    grammar: GrammarInfo = field(default_factory=GrammarInfo)
    examples: tuple[UsageExample, ...] = field(default_factory=tuple)
    alternatives: tuple[str, ...] = field(default_factory=tuple)
    kind: str | None = None

    def as_dict(self) -> dict[str, object]:
        """Return a JSON-serializable mapping of the result."""

        grammar: dict[str, object] = {
            "partOfSpeech": self.grammar.part_of_speech,
            "explanation": self.grammar.explanation,
        }
        for name, value in (
            ("tense", self.grammar.tense),
            ("gender", self.grammar.gender),
            ("number", self.grammar.number),
            ("infinitive", self.grammar.infinitive),
        ):
            if value is not None:
                grammar[name] = value
        payload: dict[str, object] = {
            "translation": self.translation,
            "segment": self.segment,
            "grammar": grammar,
            "examples": [
                {"sentence": example.sentence, "translation": example.translation}
                for example in self.examples
            ],
            "alternatives": list(self.alternatives),
        }
        if self.kind is not None:
            payload["type"] = self.kind
        return payload


@dataclass(slots=True)
class RichDetailTab:
    """One open deep-analysis session.

    Attributes:
        tab_id: Generated unique identifier.
        text: Fragment being analyzed.
        context: Surrounding sentence or line sent along with the fragment.
        source_language: Source language at open time.
        target_language: Target language at open time.
        status: Request lifecycle state.
        result: Parsed result once resolved.
        error: Error message once failed.
    """

    tab_id: str
    text: str
    context: str
    source_language: str
    target_language: str
    status: TranslationStatus = TranslationStatus.PENDING
    result: RichDetailResult | None = None
    error: str | None = None

    @property
    def is_loading(self) -> bool:
        """Return whether a request for this tab is in flight."""

        return self.status is TranslationStatus.PENDING


@dataclass(frozen=True, slots=True)
class Voice:
    """Speech engine voice description.

    Attributes:
        voice_id: Engine-native voice identifier.
        name: Human-readable name.
        language: BCP-47 or short language code.
        is_default: Whether the engine marks this voice as its default.
    """

    voice_id: str
    name: str
    language: str = ""
    is_default: bool = False
