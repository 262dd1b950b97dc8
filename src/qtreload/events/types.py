"""Status event definitions."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class StatusLevel(str, Enum):
    """Severity of a status message."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class EventType(str, Enum):
    """Types of status events."""

    # Watcher events
    RELOAD_ENABLED = "reload.enabled"
    RELOAD_DISABLED = "reload.disabled"
    FILE_DELETED = "file.deleted"
    WATCH_ERROR = "watch.error"

    # Reload decisions
    RELOAD_STARTED = "reload.started"
    MANUAL_RUN_REQUIRED = "reload.manual_run"
    MANUAL_REBUILD_RECOMMENDED = "reload.manual_rebuild"
    RELOAD_COMPLETED = "reload.completed"
    RELOAD_FAILED = "reload.failed"

    # Build events
    BUILD_STARTED = "build.started"
    BUILD_SUCCEEDED = "build.succeeded"
    BUILD_FAILED = "build.failed"

    # Application events
    APP_STARTED = "app.started"
    APP_STOPPED = "app.stopped"
    APP_EXITED = "app.exited"
    APP_CRASHED = "app.crashed"
    APP_SPAWN_FAILED = "app.spawn_failed"

    # Interpreted preview
    PREVIEW_RELOADED = "preview.reloaded"
    PREVIEW_FAILED = "preview.failed"


class StatusEvent(BaseModel):
    """A timestamped, human-readable status message."""

    type: EventType
    message: str
    level: StatusLevel = StatusLevel.INFO
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_failure(self) -> bool:
        """Whether this event reports a failure."""
        return self.level == StatusLevel.ERROR

    def render(self) -> str:
        """Format for a console or status line."""
        marker = "FAILED: " if self.is_failure else ""
        return f"[{self.timestamp:%H:%M:%S}] {marker}{self.message}"
