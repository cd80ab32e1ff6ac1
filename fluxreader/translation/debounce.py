"""Cancelable debounce timers on the running event loop.

Responsibilities:
- Hold at most one scheduled callback per timer.
- Cancel and replace the scheduled callback on every new trigger.
"""

from __future__ import annotations

import asyncio
from typing import Callable


class DebounceTimer:
    """One debounce slot backed by `loop.call_later`.

    Attributes:
        delay_seconds: Quiet period before the latest scheduled callback fires.
    """

    def __init__(self, delay_seconds: float) -> None:
        if delay_seconds < 0:
            raise ValueError("Debounce delay must not be negative.")
        self.delay_seconds = delay_seconds
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def seconds_remaining(self) -> float:
        """Return time left before the pending callback fires, or 0.0."""

        handle = self._handle
        if handle is None:
            return 0.0
        return max(0.0, handle.when() - asyncio.get_running_loop().time())

    def schedule(self, callback: Callable[[], None]) -> None:
        """Replace any pending callback with `callback`, fired after the delay.

        Must be called from a coroutine or callback running on the event loop.
        """

        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay_seconds, self._fire, callback)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self, callback: Callable[[], None]) -> None:
        self._handle = None
        callback()
