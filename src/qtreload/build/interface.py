"""Build request and outcome value types."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Final

# Exit code reported when the tool could not be started at all
SPAWN_FAILED_EXIT_CODE: Final = -1


@dataclass(frozen=True)
class BuildRequest:
    """One external command invocation."""

    working_directory: Path
    tool_name: str
    arguments: tuple[str, ...] = ()

    @property
    def command_line(self) -> str:
        return " ".join([self.tool_name, *self.arguments])


@dataclass(frozen=True)
class BuildSuccess:
    """The command exited with code 0."""

    captured_output: str = ""
    finished_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class BuildFailure:
    """The command exited non-zero, was killed, or never started."""

    exit_code: int
    captured_output: str = ""
    spawn_error: str | None = None
    finished_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def ok(self) -> bool:
        return False

    @property
    def spawn_failed(self) -> bool:
        """Whether the process could not be created."""
        return self.spawn_error is not None


BuildOutcome = BuildSuccess | BuildFailure
