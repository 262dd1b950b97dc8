"""Status notifications for UI collaborators."""

from qtreload.events.bus import StatusBus
from qtreload.events.types import EventType, StatusEvent, StatusLevel

__all__ = ["EventType", "StatusBus", "StatusEvent", "StatusLevel"]
