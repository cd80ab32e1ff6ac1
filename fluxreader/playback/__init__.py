"""Speech playback abstractions.

This package contains the speech engine protocol, a dry-run engine, and the
synchronizer that maps spoken character progress onto token indices.
"""

from .engines import DryRunSpeechEngine, SpeechEngine
from .synchronizer import PlaybackState, PlaybackSynchronizer, compute_offsets

__all__ = [
    "DryRunSpeechEngine",
    "PlaybackState",
    "PlaybackSynchronizer",
    "SpeechEngine",
    "compute_offsets",
]
