"""Build execution: requests, outcomes, the command executor and its output sink.

``BuildManager`` lives in ``qtreload.build.manager`` and is imported from
there directly, since it depends on the process supervisor.
"""

from qtreload.build.executor import CommandExecutor
from qtreload.build.interface import (
    SPAWN_FAILED_EXIT_CODE,
    BuildFailure,
    BuildOutcome,
    BuildRequest,
    BuildSuccess,
)
from qtreload.build.output_buffer import OutputBuffer, OutputLine, OutputSource

__all__ = [
    "SPAWN_FAILED_EXIT_CODE",
    "BuildFailure",
    "BuildOutcome",
    "BuildRequest",
    "BuildSuccess",
    "CommandExecutor",
    "OutputBuffer",
    "OutputLine",
    "OutputSource",
]
