"""Structured event logging utilities.

Responsibilities:
- Emit concise, deterministic component-level event lines through `loguru`.
- Keep secrets and free-form payloads out of log context values.
"""

from __future__ import annotations

import sys
from typing import TextIO

from loguru import logger as _loguru_logger


def _sanitize_context_value(value: object) -> str:
    """Convert context values into stable, shell-safe tokens."""

    raw = str(value).strip()
    if not raw:
        return "none"
    return "".join(
        character if character.isalnum() or character in {"-", "_", ".", ":", "/"} else "_"
        for character in raw
    )


def _format_context(context: dict[str, object]) -> str:
    """Serialize context key/value pairs in deterministic key order."""

    if not context:
        return ""
    tokens = [
        f"{key}={_sanitize_context_value(context[key])}"
        for key in sorted(context.keys())
    ]
    return " " + " ".join(tokens)


def configure_logging(sink: TextIO | None = None, level: str = "INFO") -> None:
    """Route `loguru` output to one sink with plain message formatting."""

    _loguru_logger.remove()
    _loguru_logger.add(sink or sys.stderr, format="{message}", level=level, colorize=False)


class EventLogger:
    """Emit deterministic event lines for reader components."""

    def __init__(self, component: str = "reader") -> None:
        self.component = component

    def child(self, component: str) -> EventLogger:
        """Return a logger bound to another component name."""

        return EventLogger(component)

    def _emit(self, level: str, event: str, **context: object) -> None:
        line = (
            f"[reader] level={level} component={self.component} "
            f"event={event}{_format_context(context)}"
        )
        _loguru_logger.log(level, line)

    def debug(self, event: str, **context: object) -> None:
        """Emit a debug-level event."""

        self._emit("DEBUG", event, **context)

    def info(self, event: str, **context: object) -> None:
        """Emit an info-level event."""

        self._emit("INFO", event, **context)

    def warning(self, event: str, **context: object) -> None:
        """Emit a warning-level event."""

        self._emit("WARNING", event, **context)

    def failure(self, event: str, error_type: str, **context: object) -> None:
        """Emit an error-level event without sensitive payload details."""

        self._emit("ERROR", event, error_type=error_type, **context)
