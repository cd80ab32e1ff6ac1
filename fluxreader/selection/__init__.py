"""Selection state and grouping rules."""

from .engine import SelectionEngine, derive_groups

__all__ = ["SelectionEngine", "derive_groups"]
