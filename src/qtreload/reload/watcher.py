"""File change watching for hot reload.

Watches a Qt project tree for:
- QML and JavaScript sources
- Designer forms, C/C++ sources and headers
- Qt resource files
- CMake / qmake project files

Notifications come from ``watchfiles``. Each path then goes through its
own stability window so that editors which save in several writes produce a
single settled event.
"""

import asyncio
import contextlib
import fnmatch
import logging
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Final

from watchfiles import Change, DefaultFilter, awatch

from qtreload.config import DEFAULT_WATCH_PATTERNS
from qtreload.errors import WatchError
from qtreload.events import EventType, StatusBus, StatusLevel
from qtreload.reload.classify import ExtensionClass, classify
from qtreload.reload.debounce import Debouncer

logger = logging.getLogger(__name__)

DEFAULT_STABILITY_WINDOW: Final = 0.3
# watchfiles groups raw notifications for this long before yielding them
NOTIFY_BATCH_MS: Final = 50
WATCH_RETRY_DELAY: Final = 2.0


class ChangeKind(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


@dataclass(frozen=True)
class ChangeEvent:
    """A settled change to one file."""

    path: Path
    kind: ChangeKind
    extension_class: ExtensionClass
    detected_at: datetime = field(default_factory=lambda: datetime.now(UTC), compare=False)


class ProjectFilter(DefaultFilter):
    """watchfiles filter keeping watched patterns outside build and hidden dirs."""

    def __init__(
        self,
        root: Path,
        patterns: Sequence[str],
        exclude_patterns: Sequence[str] = (),
        build_dirs: Sequence[str] = ("build",),
    ):
        super().__init__(ignore_dirs=(*DefaultFilter.ignore_dirs, *build_dirs))
        self.root = root
        self.patterns = list(patterns)
        self.exclude_patterns = list(exclude_patterns)
        self.build_dirs = set(build_dirs)

    def _relative(self, path: Path) -> Path:
        try:
            return path.relative_to(self.root)
        except ValueError:
            return path

    def _is_build_dir(self, part: str) -> bool:
        return part in self.build_dirs or part.startswith(("build-", "cmake-build-"))

    def _matches(self, rel: Path, patterns: Sequence[str]) -> bool:
        rel_str = rel.as_posix()
        return any(
            fnmatch.fnmatch(rel.name, pattern) or fnmatch.fnmatch(rel_str, pattern)
            for pattern in patterns
        )

    def __call__(self, change: Change, path: str) -> bool:
        if not super().__call__(change, path):
            return False
        rel = self._relative(Path(path))
        if any(part.startswith(".") for part in rel.parts):
            return False
        if any(self._is_build_dir(part) for part in rel.parts[:-1]):
            return False
        if self._matches(rel, self.exclude_patterns):
            return False
        return self._matches(rel, self.patterns)


class ChangeWatcher:
    """Emits one classified ChangeEvent per settled burst of file activity.

    Modifications and additions wait for the stability window; deletions
    are emitted straight away and cancel any pending window for the path.
    """

    def __init__(
        self,
        roots: Sequence[str | Path],
        status: StatusBus,
        patterns: Sequence[str] | None = None,
        exclude_patterns: Sequence[str] = (),
        stability_window: float = DEFAULT_STABILITY_WINDOW,
        build_dirs: Sequence[str] = ("build",),
        force_polling: bool | None = None,
    ):
        self.roots = [Path(r) for r in roots]
        self.status = status
        self.filter = ProjectFilter(
            self.roots[0] if self.roots else Path.cwd(),
            patterns or DEFAULT_WATCH_PATTERNS,
            exclude_patterns,
            build_dirs,
        )
        self.force_polling = force_polling

        self._debouncer: Debouncer[Path, ChangeKind] = Debouncer(stability_window, self._settled)
        self._queue: asyncio.Queue[ChangeEvent | None] = asyncio.Queue()
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task | None = None
        # Most recent notification failure; the watch loop resubscribes after it
        self.last_error: WatchError | None = None

    @property
    def is_watching(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def pending(self) -> int:
        """Paths currently waiting out their stability window."""
        return self._debouncer.pending

    async def watch(self) -> AsyncIterator[ChangeEvent]:
        """Start watching and yield settled events until ``stop`` is called."""
        if self._task is None:
            self._stop_event.clear()
            self._task = asyncio.create_task(self._run(), name="change-watcher")

        while True:
            event = await self._queue.get()
            if event is None:
                break
            yield event

    async def stop(self) -> None:
        """Cancel pending windows, close the watch handles and end ``watch``."""
        self._stop_event.set()
        self._debouncer.cancel_all()

        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        self._queue.put_nowait(None)

    def dispatch(self, change: Change, path: str | Path) -> None:
        """Feed one raw notification through the stability window."""
        file_path = Path(path)

        if change == Change.deleted:
            self._debouncer.cancel(file_path)
            self._emit(file_path, ChangeKind.REMOVED)
            return

        if change == Change.added or self._debouncer.value(file_path) == ChangeKind.ADDED:
            kind = ChangeKind.ADDED
        else:
            kind = ChangeKind.MODIFIED
        self._debouncer.touch(file_path, kind)

    def _settled(self, path: Path, kind: ChangeKind) -> None:
        self._emit(path, kind)

    def _emit(self, path: Path, kind: ChangeKind) -> None:
        event = ChangeEvent(path=path, kind=kind, extension_class=classify(path))
        logger.debug(f"File {kind.value}: {path} ({event.extension_class.value})")
        self._queue.put_nowait(event)

    def _existing_roots(self) -> list[Path]:
        existing = []
        for root in self.roots:
            if root.exists():
                existing.append(root)
            else:
                self.status.emit(
                    EventType.WATCH_ERROR,
                    f"Watch root does not exist: {root}",
                    StatusLevel.WARNING,
                )
        return existing

    async def _run(self) -> None:
        """Subscribe to notifications, resubscribing after failures."""
        while not self._stop_event.is_set():
            roots = self._existing_roots()
            if not roots:
                self._queue.put_nowait(None)
                return

            try:
                async for changes in awatch(
                    *roots,
                    watch_filter=self.filter,
                    debounce=NOTIFY_BATCH_MS,
                    stop_event=self._stop_event,
                    force_polling=self.force_polling,
                ):
                    for change, path in changes:
                        self.dispatch(change, path)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                error = WatchError(f"Hot reload error: {e}")
                error.__cause__ = e
                self.last_error = error
                logger.error(f"File watcher error: {e}")
                self.status.emit(EventType.WATCH_ERROR, str(error), StatusLevel.ERROR)
                with contextlib.suppress(TimeoutError):
                    await asyncio.wait_for(self._stop_event.wait(), timeout=WATCH_RETRY_DELAY)
            else:
                return
