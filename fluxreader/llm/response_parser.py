"""Parsing helpers for raw model responses.

Responsibilities:
- Strip reasoning blocks that some local models emit before answering.
- Locate the JSON payload inside a free-form completion.
- Normalize loosely structured rich-detail payloads into `RichDetailResult`.
"""

from __future__ import annotations

import json
import re
from typing import Any

from ..errors import ProviderError
from ..models.datatypes import GrammarInfo, RichDetailResult, UsageExample

_THINK_BLOCK = re.compile(r"<think>.*?</think>", re.DOTALL)
_FENCED_JSON = re.compile(r"```json(.*?)```", re.DOTALL)
_TRANSLATION_FIELD = re.compile(r'"translation":\s*"([^"]+)"')
_SEGMENT_FIELD = re.compile(r'"segment":\s*"([^"]+)"')

PARTS_OF_SPEECH = frozenset(
    {
        "noun",
        "verb",
        "adjective",
        "adverb",
        "pronoun",
        "preposition",
        "conjunction",
        "interjection",
        "article",
        "particle",
        "numeral",
        "determiner",
    }
)


def clean_response(response: str) -> str:
    """Remove `<think>` blocks and surrounding whitespace."""

    return _THINK_BLOCK.sub("", response).strip()


def extract_json(response: str) -> dict[str, Any]:
    """Return the JSON object embedded in a completion.

    A fenced ```json block wins; otherwise the span between the first `{` and
    the last `}` is tried. When that does not decode, a minimal payload is
    recovered from the `translation`/`segment` fields if present.

    Raises:
        ProviderError: If no usable payload can be recovered.
    """

    candidate = clean_response(response)
    fenced = _FENCED_JSON.search(candidate)
    if fenced:
        candidate = fenced.group(1)
    else:
        start = candidate.find("{")
        end = candidate.rfind("}")
        if start != -1 and end != -1:
            candidate = candidate[start : end + 1]

    try:
        payload = json.loads(candidate.strip())
    except json.JSONDecodeError as exc:
        translation = _TRANSLATION_FIELD.search(response)
        if translation is None:
            raise ProviderError(
                "Failed to parse rich translation response.",
                failure_kind="malformed_response",
            ) from exc
        segment = _SEGMENT_FIELD.search(response)
        return {
            "type": "word",
            "translation": translation.group(1),
            "segment": segment.group(1) if segment else "",
            "grammar": {"partOfSpeech": "unknown"},
            "examples": [],
            "alternatives": [],
        }

    if not isinstance(payload, dict):
        raise ProviderError(
            "Rich translation response is not a JSON object.",
            failure_kind="malformed_response",
        )
    return payload


def normalize_part_of_speech(value: str) -> str:
    lower = value.strip().lower()
    if lower in PARTS_OF_SPEECH:
        return lower
    if "idiom" in lower or "expression" in lower:
        return "expression"
    return "unknown"


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _optional_text(value: Any) -> str | None:
    text = _text(value)
    return text or None


def _first_text(payload: dict[str, Any], *keys: str) -> str:
    for key in keys:
        text = _text(payload.get(key))
        if text:
            return text
    return ""


def _normalize_examples(raw: Any) -> tuple[UsageExample, ...]:
    if not isinstance(raw, list):
        return ()
    examples: list[UsageExample] = []
    for item in raw:
        if isinstance(item, str):
            sentence, translation = item.strip(), ""
        elif isinstance(item, dict):
            sentence = _first_text(item, "sentence", "example", "text", "source")
            translation = _first_text(item, "translation", "meaning")
        else:
            continue
        if sentence:
            examples.append(UsageExample(sentence=sentence, translation=translation))
    return tuple(examples)


def _normalize_grammar(raw: Any) -> GrammarInfo:
    if not isinstance(raw, dict):
        return GrammarInfo()
    part_of_speech = _text(raw.get("partOfSpeech") or raw.get("part_of_speech"))
    gender = _optional_text(raw.get("gender"))
    return GrammarInfo(
        part_of_speech=normalize_part_of_speech(part_of_speech) if part_of_speech else "unknown",
        explanation=_text(raw.get("explanation")),
        tense=_optional_text(raw.get("tense")),
        gender=gender.lower() if gender else None,
        number=_optional_text(raw.get("number")),
        infinitive=_optional_text(raw.get("infinitive")),
    )


def normalize_rich_detail(payload: dict[str, Any]) -> RichDetailResult:
    """Map a loosely structured payload onto `RichDetailResult`."""

    kind = _text(payload.get("type")).lower()
    alternatives = payload.get("alternatives")
    return RichDetailResult(
        translation=_text(payload.get("translation")),
        segment=_text(payload.get("segment")),
        grammar=_normalize_grammar(payload.get("grammar")),
        examples=_normalize_examples(payload.get("examples")),
        alternatives=tuple(
            item.strip()
            for item in (alternatives if isinstance(alternatives, list) else [])
            if isinstance(item, str) and item.strip()
        ),
        kind=kind if kind in {"word", "sentence"} else None,
    )


def parse_rich_detail(response: str) -> RichDetailResult:
    """Parse a raw completion into a normalized `RichDetailResult`."""

    return normalize_rich_detail(extract_json(response))
