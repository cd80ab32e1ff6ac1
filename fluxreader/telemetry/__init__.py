"""Telemetry helpers for structured event logging."""

from .logger import EventLogger, configure_logging

__all__ = ["EventLogger", "configure_logging"]
