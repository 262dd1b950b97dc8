"""Pytest configuration and fixtures."""

import sys

import pytest

from qtreload.config import ReloadSettings
from qtreload.events import StatusBus, StatusEvent
from qtreload.platform import OsKind, resolve


@pytest.fixture
def status() -> StatusBus:
    """Create a fresh status bus for each test."""
    return StatusBus()


@pytest.fixture
def collected(status: StatusBus) -> list[StatusEvent]:
    """Every event published on the ``status`` fixture, in order."""
    events: list[StatusEvent] = []
    status.add_callback(events.append)
    return events


@pytest.fixture
def posix_profile():
    """A direct-exec toolchain profile, independent of the host OS."""
    return resolve(OsKind.LINUX, ReloadSettings())


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="run live integration tests that use real cmake, ninja and Qt",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "live: mark test as requiring a real Qt toolchain (deselect with '-m \"not live\"')",
    )
    config.addinivalue_line(
        "markers",
        "posix: mark test as requiring a POSIX shell for helper executables",
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is specified, and POSIX-only tests on Windows."""
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    skip_posix = pytest.mark.skip(reason="requires a POSIX shell")
    for item in items:
        if "live" in item.keywords and not config.getoption("--run-live"):
            item.add_marker(skip_live)
        if "posix" in item.keywords and sys.platform == "win32":
            item.add_marker(skip_posix)
