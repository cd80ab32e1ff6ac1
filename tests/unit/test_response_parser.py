"""Unit tests for model response cleanup and rich-detail normalization."""

from __future__ import annotations

import pytest

from fluxreader.errors import ProviderError
from fluxreader.llm.response_parser import (
    clean_response,
    extract_json,
    normalize_part_of_speech,
    parse_rich_detail,
)


def test_clean_response_strips_think_blocks() -> None:
    """Reasoning blocks should be removed before the answer is used."""

    raw = "<think>\nconsidering options\n</think>\n  hello world  "

    assert clean_response(raw) == "hello world"


def test_extract_json_prefers_fenced_block() -> None:
    """A fenced JSON block should win over surrounding prose."""

    raw = 'Here you go {not json}\n```json\n{"translation": "house"}\n```\nDone.'

    assert extract_json(raw) == {"translation": "house"}


def test_extract_json_uses_outermost_braces() -> None:
    """Without a fence, the span between the first and last brace should decode."""

    raw = 'Sure! {"translation": "cat", "grammar": {"partOfSpeech": "noun"}} Hope it helps.'

    assert extract_json(raw)["grammar"] == {"partOfSpeech": "noun"}


def test_extract_json_recovers_translation_from_broken_payload() -> None:
    """A malformed payload should fall back to the `translation` and `segment` fields."""

    raw = '{"translation": "dog", "segment": "perro", "examples": [oops]}'

    payload = extract_json(raw)

    assert payload["translation"] == "dog"
    assert payload["segment"] == "perro"
    assert payload["grammar"] == {"partOfSpeech": "unknown"}


def test_extract_json_raises_when_nothing_is_recoverable() -> None:
    """Plain prose without any JSON should raise a malformed-response error."""

    with pytest.raises(ProviderError) as exc_info:
        extract_json("I cannot help with that.")

    assert exc_info.value.failure_kind == "malformed_response"


def test_extract_json_rejects_non_object_payloads() -> None:
    """A JSON array root should be rejected."""

    with pytest.raises(ProviderError):
        extract_json('```json\n["a", "b"]\n```')


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Noun", "noun"),
        (" verb ", "verb"),
        ("Idiomatic phrase", "expression"),
        ("fixed expression", "expression"),
        ("gerund", "unknown"),
    ],
)
def test_normalize_part_of_speech(raw: str, expected: str) -> None:
    """Parts of speech should map onto the supported vocabulary."""

    assert normalize_part_of_speech(raw) == expected


def test_parse_rich_detail_normalizes_loose_payload() -> None:
    """Loosely structured payloads should map onto a complete result."""

    raw = """
    <think>plan</think>
    ```json
    {
      "type": "Word",
      "translation": " went ",
      "segment": "fue",
      "grammar": {
        "partOfSpeech": "Verb",
        "tense": "preterite",
        "gender": "Masculine",
        "infinitive": "ir",
        "explanation": "Third person singular."
      },
      "examples": [
        {"sentence": "Fue al mercado.", "translation": "He went to the market."},
        "Fue increible.",
        {"text": ""},
        7
      ],
      "alternatives": ["was", "", 3]
    }
    ```
    """

    result = parse_rich_detail(raw)

    assert result.translation == "went"
    assert result.kind == "word"
    assert result.grammar.part_of_speech == "verb"
    assert result.grammar.gender == "masculine"
    assert result.grammar.number is None
    assert [example.sentence for example in result.examples] == [
        "Fue al mercado.",
        "Fue increible.",
    ]
    assert result.alternatives == ("was",)
    assert result.as_dict()["grammar"] == {
        "partOfSpeech": "verb",
        "explanation": "Third person singular.",
        "tense": "preterite",
        "gender": "masculine",
        "infinitive": "ir",
    }
    assert result.as_dict()["type"] == "word"


def test_parse_rich_detail_tolerates_missing_sections() -> None:
    """Missing grammar and examples should fall back to empty defaults."""

    result = parse_rich_detail('{"translation": "hi", "type": "phrase"}')

    assert result.grammar.part_of_speech == "unknown"
    assert result.examples == ()
    assert result.kind is None
    assert "type" not in result.as_dict()
