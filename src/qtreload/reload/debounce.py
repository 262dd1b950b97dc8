"""Per-key stability timers."""

import asyncio
import logging
from collections.abc import Callable, Hashable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class Debouncer(Generic[K, V]):
    """Fires a callback once a key has been quiet for a full window.

    Each key owns a single timer. ``touch`` starts the timer, or restarts it
    if it is already pending, and remembers the latest value; when the timer
    expires the callback receives the key and that value. Must be used from
    within a running event loop.
    """

    def __init__(self, window: float, callback: Callable[[K, V], None]):
        self.window = window
        self._callback = callback
        self._timers: dict[K, asyncio.TimerHandle] = {}
        self._values: dict[K, V] = {}

    def touch(self, key: K, value: V) -> None:
        """Record activity for ``key``, resetting its window."""
        timer = self._timers.pop(key, None)
        if timer is not None:
            timer.cancel()
        self._values[key] = value
        loop = asyncio.get_running_loop()
        self._timers[key] = loop.call_later(self.window, self._fire, key)

    def value(self, key: K) -> V | None:
        """The pending value for ``key``, if its timer is running."""
        return self._values.get(key)

    def cancel(self, key: K) -> bool:
        """Drop the pending timer for ``key``.

        Returns:
            True if a timer was pending.
        """
        timer = self._timers.pop(key, None)
        self._values.pop(key, None)
        if timer is None:
            return False
        timer.cancel()
        return True

    def cancel_all(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        self._values.clear()

    @property
    def pending(self) -> int:
        return len(self._timers)

    def _fire(self, key: K) -> None:
        self._timers.pop(key, None)
        value = self._values.pop(key)
        try:
            self._callback(key, value)
        except Exception as e:
            logger.error(f"Debounce callback failed for {key}: {e}")
