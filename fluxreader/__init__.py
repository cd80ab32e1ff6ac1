"""Top-level package for Fluxreader.

This package provides the segmentation, selection, and synchronization engine
behind an interactive reading aid. The main entry point is `ReaderSession`.
"""

from .session import ReaderSession

__all__ = ["ReaderSession", "__version__"]

__version__ = "0.4.2"
