"""Text segmentation components.

This package provides the whitespace-preserving tokenizer and the sentence
boundary resolver used by selection and playback.
"""

from .sentences import ABBREVIATIONS, is_sentence_end, sentence_context, sentence_range
from .tokenizer import has_newline, is_whitespace, join_span, line_context, tokenize

__all__ = [
    "ABBREVIATIONS",
    "has_newline",
    "is_sentence_end",
    "is_whitespace",
    "join_span",
    "line_context",
    "sentence_context",
    "sentence_range",
    "tokenize",
]
