"""Translation orchestration.

This package contains the debounce timer and the orchestrator that turns
selection, hover, and rich-detail events into translation service requests.
"""

from .debounce import DebounceTimer
from .orchestrator import TranslationOrchestrator

__all__ = ["DebounceTimer", "TranslationOrchestrator"]
