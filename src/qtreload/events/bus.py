"""Status bus: one-way notifications for UI collaborators."""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from qtreload.events.types import EventType, StatusEvent, StatusLevel

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    StatusLevel.INFO: logging.INFO,
    StatusLevel.WARNING: logging.WARNING,
    StatusLevel.ERROR: logging.ERROR,
}


class StatusBus:
    """Broadcasts status events to callbacks without ever blocking the sender.

    Plain callbacks (console printers, status bars) run inline. Coroutine
    callbacks are scheduled on the running loop, not awaited.
    """

    def __init__(self) -> None:
        self._callbacks: list[Callable[[StatusEvent], Any]] = []
        self._pending: set[asyncio.Task] = set()

    def add_callback(self, callback: Callable[[StatusEvent], Any]) -> None:
        """Add a callback to be called for every event."""
        self._callbacks.append(callback)

    def remove_callback(self, callback: Callable[[StatusEvent], Any]) -> None:
        """Remove a callback."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def publish(self, event: StatusEvent) -> None:
        """Deliver an event to every callback."""
        logger.log(_LOG_LEVELS[event.level], event.message)

        for callback in list(self._callbacks):
            try:
                result = callback(event)
                if asyncio.iscoroutine(result):
                    task = asyncio.ensure_future(result)
                    self._pending.add(task)
                    task.add_done_callback(self._pending.discard)
            except Exception as e:
                logger.error(f"Status callback error: {e}")

    def emit(
        self,
        event_type: EventType,
        message: str,
        level: StatusLevel = StatusLevel.INFO,
        **data: Any,
    ) -> StatusEvent:
        """Convenience method to create and publish an event.

        Args:
            event_type: The type of event.
            message: Human-readable status text.
            level: Severity of the message.
            **data: Extra payload (e.g. captured build output).

        Returns:
            The created event.
        """
        event = StatusEvent(type=event_type, message=message, level=level, data=data)
        self.publish(event)
        return event

