"""Whitespace-preserving tokenization.

Responsibilities:
- Split raw text into an addressable token sequence that reconstructs the text exactly.
- Classify tokens as content, plain whitespace, or newline-bearing whitespace.
- Derive per-token context such as the surrounding line.
"""

from __future__ import annotations

import re
from typing import Sequence

from ..errors import TokenIndexError

_WHITESPACE_SPLIT = re.compile(r"(\s+)")


def tokenize(text: str) -> tuple[str, ...]:
    """Split text into alternating content and whitespace-run tokens.

    The concatenation of the returned tokens always equals `text`, and no token
    is empty. Identical input always yields an identical sequence.
    """

    return tuple(part for part in _WHITESPACE_SPLIT.split(text) if part)


def is_whitespace(token: str) -> bool:
    """Return whether a token consists only of whitespace."""

    return not token.strip()


def has_newline(token: str) -> bool:
    """Return whether a whitespace token carries a line break."""

    return "\n" in token or "\r" in token


def check_index(index: int, tokens: Sequence[str]) -> None:
    """Raise `TokenIndexError` when `index` is not addressable in `tokens`."""

    if index < 0 or index >= len(tokens):
        raise TokenIndexError(index, len(tokens))


def line_context(tokens: Sequence[str], index: int) -> str:
    """Return the text of the line containing the token at `index`.

    Out-of-range indices yield an empty string.
    """

    if index < 0 or index >= len(tokens):
        return ""

    start = index
    while start > 0 and not has_newline(tokens[start - 1]):
        start -= 1
    end = index
    while end < len(tokens) - 1 and not has_newline(tokens[end + 1]):
        end += 1
    return "".join(tokens[start : end + 1])


def join_span(tokens: Sequence[str], start: int, end: int) -> str:
    """Return the text covered by the inclusive token span `start..end`."""

    return "".join(tokens[start : end + 1])
