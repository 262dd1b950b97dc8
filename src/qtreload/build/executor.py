"""One-shot execution of external build commands."""

import asyncio
import contextlib
import logging
import shlex

from qtreload.build.interface import (
    SPAWN_FAILED_EXIT_CODE,
    BuildFailure,
    BuildOutcome,
    BuildRequest,
    BuildSuccess,
)
from qtreload.build.output_buffer import OutputBuffer, OutputSource, iter_lines
from qtreload.platform import ToolchainProfile

logger = logging.getLogger(__name__)

SEPARATOR = "=" * 50


class CommandExecutor:
    """Runs one external command to completion, streaming its output.

    The executor never retries and never cancels a running command on its
    own. Callers are expected to serialize runs; starting a second command
    while one is current only logs a warning.
    """

    def __init__(self, output: OutputBuffer | None = None, channel: str = "build"):
        self.output = output or OutputBuffer()
        self.channel = channel
        self._current: asyncio.subprocess.Process | None = None

    @property
    def is_busy(self) -> bool:
        """Whether a command is currently running."""
        return self._current is not None

    def build_argv(self, request: BuildRequest, profile: ToolchainProfile) -> list[str]:
        """Construct the argv for a request on the given toolchain.

        Hosts that need path translation get the command wrapped in the
        profile's shell, with ``cd`` into the translated working directory.
        Elsewhere the tool is executed directly.
        """
        if not profile.uses_shell:
            return [request.tool_name, *request.arguments]

        cwd = profile.path_translator(str(request.working_directory))
        args = [shlex.quote(profile.translate_argument(arg)) for arg in request.arguments]
        command_line = " ".join([f'cd "{cwd}" &&', request.tool_name, *args])
        return [*profile.shell, command_line]

    async def _write(self, line: str, source: OutputSource = OutputSource.SYSTEM) -> None:
        await self.output.write(self.channel, line, source)

    async def _pump(
        self,
        stream: asyncio.StreamReader | None,
        source: OutputSource,
        captured: list[str],
    ) -> None:
        if stream is None:
            return
        async for line in iter_lines(stream):
            captured.append(line)
            await self._write(line, source)

    async def run(self, request: BuildRequest, profile: ToolchainProfile) -> BuildOutcome:
        """Run a request and wait for it to exit.

        Args:
            request: The command to execute.
            profile: Toolchain profile providing shell, translation and env.

        Returns:
            BuildSuccess on exit code 0, otherwise BuildFailure.
        """
        if self._current is not None:
            logger.warning(
                f"Starting {request.tool_name} while another command is still running"
            )

        argv = self.build_argv(request, profile)
        await self._write(f"Running: {request.command_line}")
        await self._write(f"Platform: {profile.os_kind.value}")
        await self._write(f"Working directory: {request.working_directory}")
        if profile.uses_shell:
            await self._write(f"Shell command: {argv[-1]}")
        await self._write(SEPARATOR)

        logger.info(f"Running: {request.command_line}")
        captured: list[str] = []

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                cwd=request.working_directory,
                env=dict(profile.environment),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            message = f"Error: {e.strerror or e}: {argv[0]}"
            if isinstance(e, FileNotFoundError):
                message = f"Error: tool not found: {argv[0]}"
            captured.append(message)
            await self._write(message)
            logger.error(f"Failed to start {argv[0]}: {e}")
            return BuildFailure(
                exit_code=SPAWN_FAILED_EXIT_CODE,
                captured_output="\n".join(captured),
                spawn_error=str(e),
            )

        self._current = process
        try:
            await asyncio.gather(
                self._pump(process.stdout, OutputSource.STDOUT, captured),
                self._pump(process.stderr, OutputSource.STDERR, captured),
            )
            exit_code = await process.wait()
        finally:
            if self._current is process:
                self._current = None

        await self._write(SEPARATOR)
        output = "\n".join(captured)

        if exit_code == 0:
            await self._write("Command completed successfully")
            return BuildSuccess(captured_output=output)

        await self._write(f"Command failed with exit code {exit_code}")
        logger.warning(f"{request.tool_name} exited with code {exit_code}")
        return BuildFailure(exit_code=exit_code, captured_output=output)

    async def terminate(self) -> None:
        """Kill the current command, if any. Used on shutdown."""
        process = self._current
        if process is None or process.returncode is not None:
            return
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        await process.wait()
