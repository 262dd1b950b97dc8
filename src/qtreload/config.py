"""Settings for a watched Qt project.

Settings are read from ``qtreload.toml`` in the project root::

    [qtreload]
    qt_path = "/opt/Qt/6.7.0/gcc_64"
    build_configuration = "Release"
    exclude_patterns = ["third_party/*"]

A missing file yields the defaults. Unknown keys are rejected so that typos
do not silently fall back to defaults.
"""

import logging
from pathlib import Path
from typing import Final

import tomli
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from qtreload.errors import ConfigError

logger = logging.getLogger(__name__)

SETTINGS_FILE: Final = "qtreload.toml"
SETTINGS_TABLE: Final = "qtreload"

DEFAULT_WATCH_PATTERNS: Final = [
    "*.qml",
    "*.ui",
    "*.cpp",
    "*.cc",
    "*.cxx",
    "*.c",
    "*.h",
    "*.hh",
    "*.hpp",
    "*.hxx",
    "*.qrc",
    "*.js",
    "CMakeLists.txt",
    "*.cmake",
    "*.pro",
    "*.pri",
]


class ReloadSettings(BaseModel):
    """User configuration consumed by the toolchain resolver and the watcher."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    # Qt installation root; empty means "use platform defaults"
    qt_path: str = ""
    qml_engine: str = "qml"

    build_configuration: str = "Debug"
    build_dir: str = "build"
    generator: str = "Ninja"

    auto_reload: bool = True
    watch_patterns: list[str] = Field(default_factory=lambda: list(DEFAULT_WATCH_PATTERNS))
    exclude_patterns: list[str] = Field(default_factory=list)

    stability_window_ms: int = Field(default=300, ge=0)
    restart_settle_seconds: float = Field(default=1.0, ge=0)
    exit_timeout_seconds: float = Field(default=5.0, gt=0)

    @property
    def stability_window(self) -> float:
        """Stability window in seconds."""
        return self.stability_window_ms / 1000.0


def load_settings(project_root: Path, path: Path | None = None) -> ReloadSettings:
    """Load settings for a project.

    Args:
        project_root: Root of the watched project.
        path: Explicit settings file. Defaults to ``<root>/qtreload.toml``.

    Returns:
        Parsed settings, or defaults when the file does not exist.

    Raises:
        ConfigError: If the file is not valid TOML or fails validation.
    """
    settings_path = path or project_root / SETTINGS_FILE
    if not settings_path.exists():
        logger.debug(f"No settings file at {settings_path}, using defaults")
        return ReloadSettings()

    try:
        data = tomli.loads(settings_path.read_text(encoding="utf-8"))
    except (OSError, tomli.TOMLDecodeError) as e:
        raise ConfigError(settings_path, str(e)) from e

    table = data.get(SETTINGS_TABLE, {})
    if not isinstance(table, dict):
        raise ConfigError(settings_path, f"[{SETTINGS_TABLE}] must be a table")

    try:
        settings = ReloadSettings.model_validate(table)
    except ValidationError as e:
        raise ConfigError(settings_path, str(e)) from e

    logger.info(f"Loaded settings from {settings_path}")
    return settings
