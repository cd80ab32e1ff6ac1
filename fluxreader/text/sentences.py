"""Sentence boundary resolution over token sequences.

Responsibilities:
- Resolve the inclusive token range of the sentence around a token.
- Treat common abbreviations as non-terminal despite their trailing period.
"""

from __future__ import annotations

import re
from typing import Sequence

from .tokenizer import check_index, has_newline, is_whitespace

ABBREVIATIONS = frozenset(
    {
        "mr.",
        "mrs.",
        "ms.",
        "dr.",
        "prof.",
        "sr.",
        "jr.",
        "vs.",
        "etc.",
        "fig.",
        "al.",
        "gen.",
        "rep.",
        "sen.",
        "gov.",
        "est.",
        "no.",
        "op.",
        "vol.",
        "pp.",
    }
)

_TERMINAL_PATTERN = re.compile(r"[.!?]['\"”’)]*$")
_TRAILING_CLOSERS = re.compile(r"['\"”’)]+$")


def is_sentence_end(token: str, abbreviations: frozenset[str] = ABBREVIATIONS) -> bool:
    """Return whether a content token terminates a sentence."""

    stripped = token.strip()
    if not stripped:
        return False
    if not _TERMINAL_PATTERN.search(stripped):
        return False
    cleaned = _TRAILING_CLOSERS.sub("", stripped.lower())
    return cleaned not in abbreviations


def sentence_range(
    index: int,
    tokens: Sequence[str],
    abbreviations: frozenset[str] = ABBREVIATIONS,
) -> tuple[int, int] | None:
    """Return inclusive `(start, end)` bounds of the sentence containing `index`.

    Returns `None` when the resolved range holds no content token, which is the
    case for all-whitespace input.

    Raises:
        TokenIndexError: If `index` is outside `tokens`.
    """

    check_index(index, tokens)

    start = 0
    cursor = index - 1
    while cursor >= 0:
        token = tokens[cursor]
        if has_newline(token):
            start = cursor + 1
            break
        if not is_whitespace(token) and is_sentence_end(token, abbreviations):
            start = cursor + 1
            break
        cursor -= 1

    end = len(tokens) - 1
    cursor = index
    while cursor < len(tokens):
        token = tokens[cursor]
        if has_newline(token):
            end = max(index, cursor - 1)
            break
        if not is_whitespace(token) and is_sentence_end(token, abbreviations):
            end = cursor
            break
        cursor += 1

    while start <= end and is_whitespace(tokens[start]):
        start += 1
    while end >= start and is_whitespace(tokens[end]):
        end -= 1

    if start > end:
        return None
    return start, end


def sentence_context(tokens: Sequence[str], index: int) -> str:
    """Return the sentence-like context around `index` for deep-analysis requests.

    The span stops at line breaks and at tokens ending with terminal punctuation,
    without abbreviation handling.
    """

    if index < 0 or index >= len(tokens):
        return ""

    start = index
    while (
        start > 0
        and not has_newline(tokens[start - 1])
        and not _TERMINAL_PATTERN.search(tokens[start - 1])
    ):
        start -= 1
    end = index
    while (
        end < len(tokens) - 1
        and not has_newline(tokens[end + 1])
        and not _TERMINAL_PATTERN.search(tokens[end])
    ):
        end += 1
    return "".join(tokens[start : end + 1])
