"""Supervision of the long-running application process.

The supervisor owns at most one process handle at a time. Each handle gets
its own exit-listener task; a listener only touches supervisor state while
its handle is still the current one, so a process that was replaced or
stopped cannot flip ``is_running`` for its successor.
"""

import asyncio
import contextlib
import itertools
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from qtreload.build.output_buffer import OutputBuffer, OutputSource, iter_lines
from qtreload.events import EventType, StatusBus, StatusLevel
from qtreload.platform import ToolchainProfile

logger = logging.getLogger(__name__)

# Pause between stopping and starting on restart. Some platforms release
# window handles and listening sockets asynchronously after exit.
DEFAULT_SETTLE_DELAY: Final = 1.0
DEFAULT_EXIT_TIMEOUT: Final = 5.0
# Lines of application output attached to a crash report.
CRASH_TAIL_LINES: Final = 20


@dataclass(eq=False)
class SupervisedProcess:
    """A single spawned process and its exit listener."""

    generation: int
    executable: Path
    process: asyncio.subprocess.Process
    listener: asyncio.Task | None = None

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def exited(self) -> bool:
        return self.process.returncode is not None

    def terminate(self) -> None:
        """Send a graceful termination signal if still alive."""
        if not self.exited:
            with contextlib.suppress(ProcessLookupError):
                self.process.terminate()

    async def wait_exited(self, timeout: float) -> bool:
        """Wait for exit, killing the process if it outlives ``timeout``.

        Returns:
            True if the process exited within the timeout.
        """
        try:
            await asyncio.wait_for(self.process.wait(), timeout=timeout)
            return True
        except TimeoutError:
            logger.warning(f"Process {self.pid} did not exit after {timeout}s, killing")
            with contextlib.suppress(ProcessLookupError):
                self.process.kill()
            await self.process.wait()
            return False


class ApplicationSupervisor:
    """Owns zero or one running application process.

    Responsibilities:
    - Start the application, replacing any previous instance
    - Stop it on request (idempotent)
    - Notice exits and crashes asynchronously and report them
    - Restart with a settle delay between teardown and spawn
    """

    def __init__(
        self,
        status: StatusBus,
        output: OutputBuffer | None = None,
        channel: str = "app",
        settle_delay: float = DEFAULT_SETTLE_DELAY,
        exit_timeout: float = DEFAULT_EXIT_TIMEOUT,
    ):
        self.status = status
        self.output = output or OutputBuffer()
        self.channel = channel
        self.settle_delay = settle_delay
        self.exit_timeout = exit_timeout

        self._current: SupervisedProcess | None = None
        self._retired: set[SupervisedProcess] = set()
        self._listeners: set[asyncio.Task] = set()
        self._generations = itertools.count(1)
        self._lock = asyncio.Lock()

    def is_running(self) -> bool:
        """Non-blocking query of the current state."""
        return self._current is not None

    @property
    def current(self) -> SupervisedProcess | None:
        return self._current

    async def start(
        self,
        executable: Path,
        cwd: Path,
        profile: ToolchainProfile,
        args: Sequence[str] = (),
    ) -> bool:
        """Start the application, terminating any running instance first.

        Args:
            executable: Binary to launch (native path, never translated).
            cwd: Working directory for the process.
            profile: Toolchain profile providing the environment.
            args: Extra command line arguments.

        Returns:
            True if the process was spawned.
        """
        async with self._lock:
            previous = self._release_locked()
            if previous is not None:
                logger.info(f"Replacing running process {previous.pid}")
                previous.terminate()

            try:
                process = await asyncio.create_subprocess_exec(
                    str(executable),
                    *args,
                    cwd=cwd,
                    env=dict(profile.environment),
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as e:
                self.status.emit(
                    EventType.APP_SPAWN_FAILED,
                    f"Failed to run {executable.name}: {e.strerror or e}",
                    StatusLevel.ERROR,
                    executable=str(executable),
                )
                return False

            supervised = SupervisedProcess(
                generation=next(self._generations),
                executable=executable,
                process=process,
            )
            supervised.listener = asyncio.create_task(
                self._listen(supervised), name=f"exit-listener-{supervised.generation}"
            )
            self._listeners.add(supervised.listener)
            supervised.listener.add_done_callback(self._listeners.discard)
            self._current = supervised

        logger.info(f"Started {executable} (pid {process.pid})")
        self.status.emit(
            EventType.APP_STARTED,
            f"{executable.name} started",
            pid=process.pid,
        )
        return True

    async def stop(self) -> None:
        """Terminate the running process, if any. Safe to call repeatedly."""
        async with self._lock:
            supervised = self._release_locked()
        if supervised is None:
            return
        supervised.terminate()
        self.status.emit(EventType.APP_STOPPED, f"{supervised.executable.name} stopped")

    async def restart(
        self,
        executable: Path,
        cwd: Path,
        profile: ToolchainProfile,
        args: Sequence[str] = (),
    ) -> bool:
        """Stop the application, let the OS settle, then start it again."""
        async with self._lock:
            previous = self._release_locked()

        if previous is not None:
            previous.terminate()
            await previous.wait_exited(self.exit_timeout)

        if self.settle_delay > 0:
            await asyncio.sleep(self.settle_delay)

        return await self.start(executable, cwd, profile, args)

    async def shutdown(self) -> None:
        """Stop the application and wait for every listener to finish."""
        await self.stop()
        for supervised in list(self._retired):
            await supervised.wait_exited(self.exit_timeout)
        if self._listeners:
            await asyncio.gather(*self._listeners, return_exceptions=True)

    def _release_locked(self) -> SupervisedProcess | None:
        """Detach the current handle. Caller must hold the lock."""
        supervised = self._current
        self._current = None
        if supervised is not None and not supervised.exited:
            self._retired.add(supervised)
        return supervised

    async def _drain(self, supervised: SupervisedProcess) -> None:
        async def pump(stream: asyncio.StreamReader | None, source: OutputSource) -> None:
            if stream is None:
                return
            async for line in iter_lines(stream):
                await self.output.write(self.channel, line, source)

        await asyncio.gather(
            pump(supervised.process.stdout, OutputSource.STDOUT),
            pump(supervised.process.stderr, OutputSource.STDERR),
        )

    async def _listen(self, supervised: SupervisedProcess) -> None:
        """Exit listener for one handle."""
        try:
            await self._drain(supervised)
        except Exception as e:
            logger.warning(f"Output drain for pid {supervised.pid} failed: {e}")
        exit_code = await supervised.process.wait()

        async with self._lock:
            self._retired.discard(supervised)
            is_current = self._current is supervised
            if is_current:
                self._current = None

        name = supervised.executable.name
        await self.output.write(self.channel, f"{name} exited with code {exit_code}", OutputSource.SYSTEM)

        if not is_current:
            logger.debug(f"Stale listener for pid {supervised.pid} finished (exit {exit_code})")
            return

        if exit_code == 0:
            self.status.emit(EventType.APP_EXITED, f"{name} closed", exit_code=exit_code)
            return

        tail = await self.output.get_recent(self.channel, limit=CRASH_TAIL_LINES + 1)
        self.status.emit(
            EventType.APP_CRASHED,
            f"{name} exited unexpectedly with code {exit_code}",
            StatusLevel.ERROR,
            exit_code=exit_code,
            output="\n".join(ln.line for ln in tail if ln.source != OutputSource.SYSTEM),
        )
