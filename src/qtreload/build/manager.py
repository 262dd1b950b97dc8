"""CMake/Ninja build and run management for one Qt project."""

import logging
from pathlib import Path

from qtreload.build.executor import CommandExecutor
from qtreload.build.interface import BuildOutcome, BuildRequest
from qtreload.build.output_buffer import OutputBuffer
from qtreload.config import ReloadSettings
from qtreload.errors import BuildFailedError, ProcessSpawnError, ToolNotFoundError
from qtreload.events import EventType, StatusBus, StatusLevel
from qtreload.platform import OsKind, ToolchainProfile, current_os_kind, executable_path, resolve
from qtreload.process.supervisor import ApplicationSupervisor
from qtreload.reload.interface import BuildController

logger = logging.getLogger(__name__)

# Qt packages whose CMake config directories are passed explicitly
QT_CMAKE_PACKAGES = ("Qt6", "Qt6Core", "Qt6Widgets", "Qt6Quick")


class BuildManager(BuildController):
    """Builds the project and supervises the resulting application.

    Flow:
    1. Configure with CMake into the build directory
    2. Compile with Ninja (or ``cmake --build`` for other generators)
    3. Launch ``<build>/<project name>[.exe]`` under the supervisor
    """

    def __init__(
        self,
        project_root: Path,
        status: StatusBus,
        settings: ReloadSettings | None = None,
        os_kind: OsKind | None = None,
        output: OutputBuffer | None = None,
        executor: CommandExecutor | None = None,
        supervisor: ApplicationSupervisor | None = None,
    ):
        self.project_root = project_root
        self.status = status
        self.settings = settings or ReloadSettings()
        self.os_kind = os_kind or current_os_kind()
        self.output = output or OutputBuffer()
        self.executor = executor or CommandExecutor(self.output)
        self.supervisor = supervisor or ApplicationSupervisor(
            status,
            output=self.output,
            settle_delay=self.settings.restart_settle_seconds,
            exit_timeout=self.settings.exit_timeout_seconds,
        )

    @property
    def build_dir(self) -> Path:
        return self.project_root / self.settings.build_dir

    def profile(self) -> ToolchainProfile:
        """Resolve a fresh toolchain profile from the current settings."""
        return resolve(self.os_kind, self.settings)

    def configure_request(self, profile: ToolchainProfile) -> BuildRequest:
        args = [
            "-S", str(self.project_root),
            "-B", str(self.build_dir),
            f"-DCMAKE_BUILD_TYPE={self.settings.build_configuration}",
            "-G", self.settings.generator,
        ]
        if profile.qt_path:
            args.append(f"-DCMAKE_PREFIX_PATH={profile.qt_path}")
            for package in QT_CMAKE_PACKAGES:
                args.append(f"-D{package}_DIR={profile.join_path(profile.qt_path, 'lib', 'cmake', package)}")
        return BuildRequest(self.project_root, profile.build_tool_path, tuple(args))

    def compile_request(self, profile: ToolchainProfile) -> BuildRequest:
        if self.settings.generator == "Ninja":
            return BuildRequest(self.project_root, profile.compile_tool_path, ("-C", str(self.build_dir)))
        return BuildRequest(self.project_root, profile.build_tool_path, ("--build", str(self.build_dir)))

    def executable(self, profile: ToolchainProfile) -> Path:
        return executable_path(self.project_root, self.build_dir, profile)

    def _check_tools(self, profile: ToolchainProfile, requests: list[BuildRequest]) -> None:
        # Under the MSYS2 shell the tools are looked up by the shell itself
        if profile.uses_shell:
            return
        for request in requests:
            if profile.locate(request.tool_name) is None:
                raise ToolNotFoundError(request.tool_name)

    async def build(self) -> BuildOutcome:
        """Configure and compile the project.

        Returns:
            The outcome of the last step run; a failed configure step
            skips compilation.

        Raises:
            ToolNotFoundError: If cmake or ninja cannot be located.
        """
        profile = self.profile()
        requests = [self.configure_request(profile), self.compile_request(profile)]
        self._check_tools(profile, requests)

        self.build_dir.mkdir(parents=True, exist_ok=True)
        await self.output.clear(self.executor.channel)
        self.status.emit(
            EventType.BUILD_STARTED,
            f"Building {self.project_root.name} ({self.settings.build_configuration})",
        )

        outcome: BuildOutcome | None = None
        for request in requests:
            outcome = await self.executor.run(request, profile)
            if not outcome.ok:
                self.status.emit(
                    EventType.BUILD_FAILED,
                    f"Build failed: {request.tool_name} exited with code {outcome.exit_code}",
                    StatusLevel.ERROR,
                    exit_code=outcome.exit_code,
                    output=outcome.captured_output,
                )
                return outcome

        self.status.emit(EventType.BUILD_SUCCEEDED, f"{self.project_root.name} built successfully")
        return outcome

    async def _launch(self, restart: bool) -> None:
        profile = self.profile()
        executable = self.executable(profile)
        if not executable.exists():
            raise ProcessSpawnError(executable, "executable not found")

        if restart:
            started = await self.supervisor.restart(executable, self.build_dir, profile)
        else:
            started = await self.supervisor.start(executable, self.build_dir, profile)
        if not started:
            raise ProcessSpawnError(executable, "process could not be started")

    async def build_and_run(self) -> bool:
        """Build the project and start the application.

        Raises:
            BuildFailedError: If the build fails.
            ProcessSpawnError: If the executable is missing or cannot start.
        """
        if self.is_running():
            self.status.emit(
                EventType.APP_STARTED,
                "Application is already running; hot reload will update it",
            )
            return True

        outcome = await self.build()
        if not outcome.ok:
            raise BuildFailedError(outcome)

        await self._launch(restart=False)
        return True

    async def restart(self) -> None:
        """Restart the application from the current build output.

        Raises:
            ProcessSpawnError: If the executable is missing or cannot start.
        """
        await self._launch(restart=True)

    def is_running(self) -> bool:
        return self.supervisor.is_running()

    async def stop(self) -> None:
        await self.supervisor.stop()

    async def shutdown(self) -> None:
        """Kill any running build and the application."""
        await self.executor.terminate()
        await self.supervisor.shutdown()
