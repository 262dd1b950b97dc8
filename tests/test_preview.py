"""Tests for the interpreted QML preview."""

import asyncio
import sys
from pathlib import Path

import pytest

from qtreload.config import ReloadSettings
from qtreload.errors import ToolNotFoundError
from qtreload.events import EventType, StatusBus, StatusEvent
from qtreload.platform import OsKind
from qtreload.process import QmlPreview


@pytest.fixture
def qml_file(tmp_path: Path) -> Path:
    """A view file the stand-in engine keeps open until terminated."""
    path = tmp_path / "Main.qml"
    # The stand-in engine is the Python interpreter, so the file is a script
    path.write_text("import time\ntime.sleep(30)\n")
    return path


@pytest.fixture
async def preview(status: StatusBus):
    settings = ReloadSettings(qml_engine=sys.executable)
    qml = QmlPreview(status, settings, os_kind=OsKind.LINUX)
    yield qml
    await qml.supervisor.shutdown()


class TestQmlPreview:
    """Tests for QmlPreview."""

    async def test_reload_view_opens_file(
        self, preview: QmlPreview, qml_file: Path, collected: list[StatusEvent]
    ):
        await preview.reload_view(qml_file)

        assert preview.is_open()
        assert preview.current_file == qml_file
        assert [e.type for e in collected] == [EventType.APP_STARTED]
        assert preview.supervisor.channel == "preview"

    async def test_reload_replaces_engine(self, preview: QmlPreview, qml_file: Path):
        await preview.reload_view(qml_file)
        first = preview.supervisor.current

        await preview.reload_view(qml_file)

        await asyncio.wait_for(first.listener, timeout=5.0)
        assert first.exited
        assert preview.supervisor.current is not first
        assert preview.is_open()

    async def test_stop(self, preview: QmlPreview, qml_file: Path):
        await preview.reload_view(qml_file)

        await preview.stop()

        assert not preview.is_open()
        assert preview.current_file is None

    async def test_missing_engine(self, status: StatusBus, qml_file: Path):
        settings = ReloadSettings(qml_engine="no-such-qml-engine")
        qml = QmlPreview(status, settings, os_kind=OsKind.LINUX)

        with pytest.raises(ToolNotFoundError) as exc_info:
            await qml.reload_view(qml_file)

        assert exc_info.value.tool == "no-such-qml-engine"
        assert not qml.is_open()
