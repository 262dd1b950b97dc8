"""Capabilities the hot-reload coordinator depends on.

The coordinator only talks to these narrow interfaces, so tests and other
hosts can substitute their own implementations.
"""

from abc import ABC, abstractmethod
from pathlib import Path

from qtreload.build.interface import BuildOutcome


class BuildController(ABC):
    """Build and application lifecycle operations."""

    @abstractmethod
    async def build(self) -> BuildOutcome:
        """Configure and compile the project."""
        ...

    @abstractmethod
    async def build_and_run(self) -> bool:
        """Build, then start the application if it is not already running.

        Returns:
            True if the application is running afterwards.
        """
        ...

    @abstractmethod
    async def restart(self) -> None:
        """Restart the application from the latest build output."""
        ...

    @abstractmethod
    def is_running(self) -> bool:
        """Whether the application is currently running."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Stop the application if it is running."""
        ...


class PreviewController(ABC):
    """Interpreted (QML) view presentation."""

    @abstractmethod
    async def reload_view(self, path: Path) -> None:
        """Re-present ``path`` without recompilation."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Close the preview if open."""
        ...
