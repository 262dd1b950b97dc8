"""Tests for project change watching."""

import asyncio
from pathlib import Path
from unittest.mock import patch

import pytest
from watchfiles import Change

from qtreload.config import DEFAULT_WATCH_PATTERNS
from qtreload.errors import WatchError
from qtreload.events import EventType, StatusBus, StatusEvent, StatusLevel
from qtreload.reload.classify import ExtensionClass
from qtreload.reload.watcher import ChangeEvent, ChangeKind, ChangeWatcher, ProjectFilter

WINDOW = 0.05


async def next_event(events, timeout: float = 2.0) -> ChangeEvent:
    return await asyncio.wait_for(events.__anext__(), timeout=timeout)


@pytest.fixture
async def watcher(status: StatusBus, tmp_path: Path):
    """Watcher on an empty project with a short stability window."""
    w = ChangeWatcher([tmp_path], status, stability_window=WINDOW)
    yield w
    await w.stop()


class TestProjectFilter:
    """Tests for ProjectFilter."""

    @pytest.fixture
    def project_filter(self, tmp_path: Path) -> ProjectFilter:
        return ProjectFilter(
            tmp_path,
            ["*.qml", "*.cpp", "*.h", "CMakeLists.txt"],
            exclude_patterns=["third_party/*"],
        )

    def test_accepts_watched_sources(self, project_filter: ProjectFilter, tmp_path: Path):
        assert project_filter(Change.modified, str(tmp_path / "main.cpp"))
        assert project_filter(Change.modified, str(tmp_path / "qml" / "Main.qml"))
        assert project_filter(Change.added, str(tmp_path / "src" / "widget.h"))
        assert project_filter(Change.modified, str(tmp_path / "CMakeLists.txt"))

    def test_rejects_unwatched_extensions(self, project_filter: ProjectFilter, tmp_path: Path):
        assert not project_filter(Change.modified, str(tmp_path / "README.md"))
        assert not project_filter(Change.modified, str(tmp_path / "main.o"))

    def test_rejects_build_directories(self, project_filter: ProjectFilter, tmp_path: Path):
        assert not project_filter(Change.modified, str(tmp_path / "build" / "moc_main.cpp"))
        assert not project_filter(Change.modified, str(tmp_path / "build-release" / "main.cpp"))
        assert not project_filter(Change.modified, str(tmp_path / "cmake-build-debug" / "a.cpp"))

    def test_rejects_hidden_paths(self, project_filter: ProjectFilter, tmp_path: Path):
        assert not project_filter(Change.modified, str(tmp_path / ".cache" / "main.cpp"))
        assert not project_filter(Change.modified, str(tmp_path / ".hidden.qml"))

    def test_exclude_patterns(self, project_filter: ProjectFilter, tmp_path: Path):
        assert not project_filter(Change.modified, str(tmp_path / "third_party" / "lib.cpp"))

    def test_default_patterns_cover_native_headers(self, tmp_path: Path):
        project_filter = ProjectFilter(tmp_path, DEFAULT_WATCH_PATTERNS)

        for name in ("widget.h", "widget.hh", "widget.hpp", "widget.hxx"):
            assert project_filter(Change.modified, str(tmp_path / "src" / name)), name

    def test_custom_build_dir(self, tmp_path: Path):
        project_filter = ProjectFilter(tmp_path, ["*.cpp"], build_dirs=("out",))

        assert not project_filter(Change.modified, str(tmp_path / "out" / "main.cpp"))
        assert project_filter(Change.modified, str(tmp_path / "build" / "main.cpp"))
        assert project_filter(Change.modified, str(tmp_path / "src" / "main.cpp"))


class TestDispatch:
    """Tests for stability windows, driven through dispatch."""

    async def test_burst_yields_one_event(self, watcher: ChangeWatcher, tmp_path: Path):
        """Several writes inside the window settle into a single event."""
        events = watcher.watch()
        path = tmp_path / "main.cpp"

        for _ in range(4):
            watcher.dispatch(Change.modified, path)
            await asyncio.sleep(WINDOW / 4)

        event = await next_event(events)
        assert event.path == path
        assert event.kind == ChangeKind.MODIFIED
        assert event.extension_class == ExtensionClass.NATIVE_SOURCE
        assert watcher.pending == 0
        with pytest.raises(TimeoutError):
            await next_event(events, timeout=WINDOW * 4)

    async def test_added_survives_following_modifications(self, watcher: ChangeWatcher, tmp_path: Path):
        events = watcher.watch()
        path = tmp_path / "NewView.qml"

        watcher.dispatch(Change.added, path)
        watcher.dispatch(Change.modified, path)

        event = await next_event(events)
        assert event.kind == ChangeKind.ADDED
        assert event.extension_class == ExtensionClass.QML_SOURCE

    async def test_paths_settle_independently(self, watcher: ChangeWatcher, tmp_path: Path):
        events = watcher.watch()

        watcher.dispatch(Change.modified, tmp_path / "a.cpp")
        watcher.dispatch(Change.modified, tmp_path / "b.h")

        received = {(await next_event(events)).path.name, (await next_event(events)).path.name}
        assert received == {"a.cpp", "b.h"}

    async def test_delete_is_immediate_and_cancels_pending(self, watcher: ChangeWatcher, tmp_path: Path):
        events = watcher.watch()
        path = tmp_path / "old.cpp"

        watcher.dispatch(Change.modified, path)
        watcher.dispatch(Change.deleted, path)

        event = await next_event(events, timeout=WINDOW / 2)
        assert event.kind == ChangeKind.REMOVED
        assert watcher.pending == 0
        with pytest.raises(TimeoutError):
            await next_event(events, timeout=WINDOW * 4)

    async def test_stop_ends_iteration(self, status: StatusBus, tmp_path: Path):
        watcher = ChangeWatcher([tmp_path], status, stability_window=WINDOW)
        received: list[ChangeEvent] = []

        async def consume() -> None:
            async for event in watcher.watch():
                received.append(event)

        consumer = asyncio.create_task(consume())
        await asyncio.sleep(0)
        watcher.dispatch(Change.modified, tmp_path / "pending.cpp")
        await watcher.stop()
        await asyncio.wait_for(consumer, timeout=2.0)

        assert received == []
        assert not watcher.is_watching


class TestRoots:
    """Tests for watch root handling."""

    async def test_missing_root_reported(
        self, status: StatusBus, collected: list[StatusEvent], tmp_path: Path
    ):
        """With nothing to watch, iteration ends instead of waiting forever."""
        watcher = ChangeWatcher([tmp_path / "gone"], status, stability_window=WINDOW)

        async def first_event() -> ChangeEvent | None:
            return await anext(watcher.watch(), None)

        assert await asyncio.wait_for(first_event(), timeout=2.0) is None
        assert not watcher.is_watching
        await watcher.stop()

        errors = [e for e in collected if e.type == EventType.WATCH_ERROR]
        assert len(errors) == 1
        assert errors[0].level == StatusLevel.WARNING
        assert "gone" in errors[0].message

    async def test_notification_failure_reported(
        self, status: StatusBus, collected: list[StatusEvent], tmp_path: Path
    ):
        """A failing subscription is reported and the watcher keeps running."""
        def broken_awatch(*args, **kwargs):
            raise OSError("inotify watch limit reached")

        watcher = ChangeWatcher([tmp_path], status, stability_window=WINDOW)

        async def first_event() -> ChangeEvent | None:
            return await anext(watcher.watch(), None)

        with patch("qtreload.reload.watcher.awatch", broken_awatch):
            consumer = asyncio.create_task(first_event())
            for _ in range(100):
                if collected:
                    break
                await asyncio.sleep(0.01)

            assert watcher.is_watching
            await watcher.stop()
            assert await asyncio.wait_for(consumer, timeout=2.0) is None

        assert isinstance(watcher.last_error, WatchError)
        assert isinstance(watcher.last_error.__cause__, OSError)
        assert collected[0].type == EventType.WATCH_ERROR
        assert collected[0].level == StatusLevel.ERROR
        assert "inotify watch limit reached" in collected[0].message


class TestFilesystem:
    """End-to-end tests against the real filesystem."""

    async def test_detects_file_write(self, status: StatusBus, tmp_path: Path):
        source = tmp_path / "main.cpp"
        source.write_text("int main() { return 0; }")
        (tmp_path / "build").mkdir()

        watcher = ChangeWatcher([tmp_path], status, stability_window=WINDOW, force_polling=True)
        received: asyncio.Queue[ChangeEvent] = asyncio.Queue()

        async def consume() -> None:
            async for event in watcher.watch():
                received.put_nowait(event)

        consumer = asyncio.create_task(consume())
        try:
            # Give the poller time to take its initial snapshot
            await asyncio.sleep(1.0)

            (tmp_path / "build" / "generated.cpp").write_text("// ignored")
            source.write_text("int main() { return 1; }")

            event = await asyncio.wait_for(received.get(), timeout=5.0)
            assert event.path.resolve() == source.resolve()
            assert event.extension_class == ExtensionClass.NATIVE_SOURCE
        finally:
            await watcher.stop()
            await asyncio.wait_for(consumer, timeout=2.0)
