"""Hot-reload coordination.

Consumes settled change events and decides, per event, between:
- reloading the interpreted QML view (no build)
- rebuilding, then restarting the application if it is running
- only notifying (build descriptors, deletions)

Rebuilds are single-flight. While one is in progress, further rebuild
requests only set ``pending_retrigger``; when the action completes, one
follow-up rebuild runs and picks up every change made in the meantime.
"""

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from qtreload.config import ReloadSettings
from qtreload.events import EventType, StatusBus, StatusLevel
from qtreload.reload.classify import ExtensionClass
from qtreload.reload.interface import BuildController, PreviewController
from qtreload.reload.watcher import ChangeEvent, ChangeKind, ChangeWatcher

logger = logging.getLogger(__name__)


class ReloadPhase(str, Enum):
    IDLE = "idle"
    BUILDING_AND_RESTARTING = "building_and_restarting"
    BUILDING_ONLY = "building_only"


@dataclass(frozen=True)
class ReloadState:
    """Coordinator state; replaced wholesale on every transition."""

    phase: ReloadPhase = ReloadPhase.IDLE
    pending_retrigger: bool = False

    @property
    def busy(self) -> bool:
        return self.phase != ReloadPhase.IDLE


IDLE = ReloadState()

WatcherFactory = Callable[[Sequence[Path], StatusBus, ReloadSettings], ChangeWatcher]


def default_watcher_factory(
    roots: Sequence[Path], status: StatusBus, settings: ReloadSettings
) -> ChangeWatcher:
    return ChangeWatcher(
        roots,
        status,
        patterns=settings.watch_patterns,
        exclude_patterns=settings.exclude_patterns,
        stability_window=settings.stability_window,
        build_dirs=(settings.build_dir,),
    )


class HotReloadCoordinator:
    """Ties the watcher, the build controller and the preview together.

    All state transitions happen under a single lock. Build and restart
    steps run in a background action task, outside the lock, so change
    events keep arriving (and coalescing) while a build is in flight.
    """

    def __init__(
        self,
        project_root: Path,
        builder: BuildController,
        preview: PreviewController | None,
        status: StatusBus,
        settings: ReloadSettings | None = None,
        watcher_factory: WatcherFactory = default_watcher_factory,
    ):
        self.project_root = project_root
        self.builder = builder
        self.preview = preview
        self.status = status
        self.settings = settings or ReloadSettings()
        self._watcher_factory = watcher_factory

        self._state = IDLE
        self._enabled = self.settings.auto_reload
        self._lock = asyncio.Lock()
        self._watcher: ChangeWatcher | None = None
        self._consumer: asyncio.Task | None = None
        self._action: asyncio.Task | None = None
        self._build_count = 0

    @property
    def state(self) -> ReloadState:
        return self._state

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def watching(self) -> bool:
        return self._watcher is not None

    @property
    def build_count(self) -> int:
        """Number of rebuild actions started since construction."""
        return self._build_count

    # -- lifecycle ----------------------------------------------------------

    async def start(self) -> None:
        """Start watching the project. No-op while disabled."""
        async with self._lock:
            # A retrigger requested before a stop must not survive a restart
            self._state = ReloadState(phase=self._state.phase, pending_retrigger=False)
            if not self._enabled or self._watcher is not None:
                return
            watcher = self._watcher_factory([self.project_root], self.status, self.settings)
            self._watcher = watcher
            self._consumer = asyncio.create_task(self._consume(watcher), name="hot-reload-consumer")

        logger.info(f"Hot reload started for {self.project_root}")
        self.status.emit(EventType.RELOAD_ENABLED, "Hot reload active")

    async def stop(self) -> None:
        """Stop watching. An action already running completes without retrigger."""
        async with self._lock:
            watcher, self._watcher = self._watcher, None
            consumer, self._consumer = self._consumer, None
            self._state = ReloadState(phase=self._state.phase, pending_retrigger=False)

        if watcher is not None:
            await watcher.stop()
        if consumer is not None:
            consumer.cancel()
            await asyncio.gather(consumer, return_exceptions=True)

    async def toggle(self) -> bool:
        """Flip auto-reload on or off.

        Returns:
            The new enabled state.
        """
        async with self._lock:
            self._enabled = not self._enabled
            enabled = self._enabled

        if enabled:
            await self.start()
        else:
            await self.stop()
            self.status.emit(EventType.RELOAD_DISABLED, "Hot reload disabled")
        return enabled

    async def wait_idle(self) -> None:
        """Wait until no rebuild action is running."""
        while self._action is not None and not self._action.done():
            await asyncio.gather(self._action, return_exceptions=True)

    async def _consume(self, watcher: ChangeWatcher) -> None:
        async for event in watcher.watch():
            await self.handle_event(event)

    # -- decisions ----------------------------------------------------------

    async def handle_event(self, event: ChangeEvent) -> None:
        """Decide and start the action for one settled change."""
        if not self._enabled:
            return

        name = event.path.name

        if event.kind == ChangeKind.REMOVED:
            self.status.emit(EventType.FILE_DELETED, f"Deleted: {name}", path=str(event.path))
            return

        extension_class = event.extension_class
        if extension_class == ExtensionClass.QML_SOURCE:
            await self._reload_interpreted(event.path)
        elif extension_class.requires_rebuild:
            await self._request_rebuild(event)
        elif extension_class == ExtensionClass.BUILD_DESCRIPTOR:
            self.status.emit(
                EventType.MANUAL_REBUILD_RECOMMENDED,
                f"CMake updated: {name} (manual rebuild recommended)",
                StatusLevel.WARNING,
                path=str(event.path),
            )
        else:
            logger.debug(f"Ignoring change to {event.path}")

    async def _reload_interpreted(self, path: Path) -> None:
        """Re-present a QML file. Not subject to single-flight."""
        if self.preview is None:
            logger.debug(f"No preview attached, skipping {path}")
            return
        try:
            await self.preview.reload_view(path)
        except Exception as e:
            logger.error(f"QML reload failed for {path}: {e}")
            self.status.emit(
                EventType.PREVIEW_FAILED,
                f"QML reload failed: {e}",
                StatusLevel.ERROR,
                path=str(path),
            )
            return
        self.status.emit(EventType.PREVIEW_RELOADED, f"QML reloaded: {path.name}", path=str(path))

    async def _request_rebuild(self, event: ChangeEvent) -> None:
        async with self._lock:
            if self._state.busy:
                if not self._state.pending_retrigger:
                    logger.info(f"Rebuild in progress, queueing follow-up for {event.path.name}")
                self._state = ReloadState(phase=self._state.phase, pending_retrigger=True)
                return

            self._state = ReloadState(phase=self._choose_phase(), pending_retrigger=False)
            self._build_count += 1
            self._action = asyncio.create_task(self._run_action(event), name="hot-reload-action")

    def _choose_phase(self) -> ReloadPhase:
        if self.builder.is_running():
            return ReloadPhase.BUILDING_AND_RESTARTING
        return ReloadPhase.BUILDING_ONLY

    # -- actions ------------------------------------------------------------

    async def _run_action(self, event: ChangeEvent) -> None:
        """Run rebuild actions until no retrigger is pending."""
        phase = self._state.phase
        while True:
            await self._execute(phase, event)

            async with self._lock:
                if self._state.pending_retrigger and self._enabled:
                    phase = self._choose_phase()
                    self._state = ReloadState(phase=phase, pending_retrigger=False)
                    self._build_count += 1
                    continue
                self._state = IDLE
                return

    async def _execute(self, phase: ReloadPhase, event: ChangeEvent) -> None:
        """One build[+restart]. Never raises; failures are reported."""
        name = event.path.name
        try:
            if phase == ReloadPhase.BUILDING_AND_RESTARTING:
                self.status.emit(EventType.RELOAD_STARTED, f"Rebuilding for: {name}")

            outcome = await self.builder.build()
            if not outcome.ok:
                self.status.emit(
                    EventType.RELOAD_FAILED,
                    f"Hot reload failed: build exited with code {outcome.exit_code}",
                    StatusLevel.ERROR,
                    exit_code=outcome.exit_code,
                )
                return

            if phase == ReloadPhase.BUILDING_AND_RESTARTING:
                await self.builder.restart()
                self.status.emit(EventType.RELOAD_COMPLETED, f"Hot reload completed: {name}")
            else:
                self.status.emit(
                    EventType.MANUAL_RUN_REQUIRED,
                    f"Modified: {name} (run project to see changes)",
                    path=str(event.path),
                )
        except Exception as e:
            logger.exception(f"Hot reload action failed for {event.path}")
            self.status.emit(
                EventType.RELOAD_FAILED,
                f"Hot reload failed: {e}",
                StatusLevel.ERROR,
            )
