"""Shared typed data models for Fluxreader.

This package contains dataclasses used across reader components to avoid
cross-module coupling and circular imports.
"""

from .datatypes import (
    GrammarInfo,
    GroupKey,
    RichDetailResult,
    RichDetailTab,
    SelectionMode,
    TranslationEntry,
    TranslationStatus,
    UsageExample,
    Voice,
)

__all__ = [
    "GrammarInfo",
    "GroupKey",
    "RichDetailResult",
    "RichDetailTab",
    "SelectionMode",
    "TranslationEntry",
    "TranslationStatus",
    "UsageExample",
    "Voice",
]
