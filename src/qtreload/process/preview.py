"""Interpreted QML preview through the Qt ``qml`` engine."""

import logging
from pathlib import Path

from qtreload.build.output_buffer import OutputBuffer
from qtreload.config import ReloadSettings
from qtreload.errors import ProcessSpawnError, ToolNotFoundError
from qtreload.events import StatusBus
from qtreload.platform import OsKind, current_os_kind, resolve
from qtreload.process.supervisor import ApplicationSupervisor
from qtreload.reload.interface import PreviewController

logger = logging.getLogger(__name__)


class QmlPreview(PreviewController):
    """Shows a QML file in a separate engine process.

    Reloading simply relaunches the engine on the changed file; QML is
    interpreted, so no build step is involved.
    """

    def __init__(
        self,
        status: StatusBus,
        settings: ReloadSettings | None = None,
        os_kind: OsKind | None = None,
        output: OutputBuffer | None = None,
    ):
        self.status = status
        self.settings = settings or ReloadSettings()
        self.os_kind = os_kind or current_os_kind()
        self.supervisor = ApplicationSupervisor(
            status,
            output=output,
            channel="preview",
            settle_delay=0,
            exit_timeout=self.settings.exit_timeout_seconds,
        )
        self.current_file: Path | None = None

    async def reload_view(self, path: Path) -> None:
        """Relaunch the QML engine on ``path``.

        Raises:
            ToolNotFoundError: If the configured engine is missing.
            ProcessSpawnError: If the engine could not be started.
        """
        profile = resolve(self.os_kind, self.settings)
        engine = profile.locate(profile.run_tool_path)
        if engine is None:
            raise ToolNotFoundError(profile.run_tool_path)

        self.current_file = path
        # The engine is launched directly, so the file keeps its native path
        started = await self.supervisor.start(Path(engine), path.parent, profile, [str(path)])
        if not started:
            raise ProcessSpawnError(engine, "QML engine failed to start")
        logger.info(f"Previewing {path}")

    async def stop(self) -> None:
        await self.supervisor.stop()
        self.current_file = None

    def is_open(self) -> bool:
        return self.supervisor.is_running()
