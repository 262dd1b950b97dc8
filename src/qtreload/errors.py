"""Error types raised at component boundaries.

Every error is recovered by the component that detects it (or by the
coordinator / CLI above it) and turned into a status notification. None of
them is meant to abort the host process.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from qtreload.build.interface import BuildFailure


class QtReloadError(Exception):
    """Base class for qtreload errors."""


class ConfigError(QtReloadError):
    """Raised when the settings file cannot be parsed or validated."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid configuration in {path}: {reason}")


class ToolNotFoundError(QtReloadError):
    """Raised when a configured build or run tool cannot be located."""

    def __init__(self, tool: str):
        self.tool = tool
        super().__init__(f"Tool not found: {tool}")


class BuildFailedError(QtReloadError):
    """Raised when a build step exits non-zero."""

    def __init__(self, failure: BuildFailure):
        self.failure = failure
        super().__init__(f"Build failed with exit code {failure.exit_code}")


class ProcessSpawnError(QtReloadError):
    """Raised when the application executable cannot be started."""

    def __init__(self, executable: Path | str, reason: str):
        self.executable = executable
        self.reason = reason
        super().__init__(f"Failed to start {executable}: {reason}")


class WatchError(QtReloadError):
    """Raised when the file notification subsystem fails."""
