"""Tests for project settings loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from qtreload.config import DEFAULT_WATCH_PATTERNS, SETTINGS_FILE, ReloadSettings, load_settings
from qtreload.errors import ConfigError


class TestReloadSettings:
    """Tests for the settings model."""

    def test_defaults(self):
        settings = ReloadSettings()

        assert settings.qt_path == ""
        assert settings.build_configuration == "Debug"
        assert settings.generator == "Ninja"
        assert settings.auto_reload is True
        assert settings.watch_patterns == DEFAULT_WATCH_PATTERNS
        assert settings.stability_window == pytest.approx(0.3)
        assert settings.restart_settle_seconds == 1.0

    def test_frozen(self):
        settings = ReloadSettings()
        with pytest.raises(ValidationError):
            settings.qt_path = "/opt/qt"  # type: ignore[misc]

    def test_rejects_unknown_keys(self):
        with pytest.raises(ValidationError):
            ReloadSettings(qtpath="/opt/qt")  # type: ignore[call-arg]

    def test_rejects_negative_window(self):
        with pytest.raises(ValidationError):
            ReloadSettings(stability_window_ms=-1)


class TestLoadSettings:
    """Tests for load_settings."""

    def test_missing_file_gives_defaults(self, tmp_path: Path):
        assert load_settings(tmp_path) == ReloadSettings()

    def test_reads_table(self, tmp_path: Path):
        (tmp_path / SETTINGS_FILE).write_text(
            '[qtreload]\n'
            'qt_path = "/opt/Qt/6.7.0/gcc_64"\n'
            'build_configuration = "Release"\n'
            'exclude_patterns = ["third_party/*"]\n'
            'stability_window_ms = 500\n'
        )

        settings = load_settings(tmp_path)

        assert settings.qt_path == "/opt/Qt/6.7.0/gcc_64"
        assert settings.build_configuration == "Release"
        assert settings.exclude_patterns == ["third_party/*"]
        assert settings.stability_window == pytest.approx(0.5)

    def test_file_without_table(self, tmp_path: Path):
        (tmp_path / SETTINGS_FILE).write_text('[other]\nkey = 1\n')
        assert load_settings(tmp_path) == ReloadSettings()

    def test_explicit_path(self, tmp_path: Path):
        custom = tmp_path / "custom.toml"
        custom.write_text('[qtreload]\nauto_reload = false\n')

        settings = load_settings(tmp_path, custom)
        assert settings.auto_reload is False

    def test_invalid_toml(self, tmp_path: Path):
        (tmp_path / SETTINGS_FILE).write_text("[qtreload\nqt_path = ")

        with pytest.raises(ConfigError) as exc_info:
            load_settings(tmp_path)
        assert exc_info.value.path == tmp_path / SETTINGS_FILE

    def test_invalid_value(self, tmp_path: Path):
        (tmp_path / SETTINGS_FILE).write_text('[qtreload]\nstability_window_ms = "soon"\n')

        with pytest.raises(ConfigError):
            load_settings(tmp_path)

    def test_table_must_be_table(self, tmp_path: Path):
        (tmp_path / SETTINGS_FILE).write_text('qtreload = "yes"\n')

        with pytest.raises(ConfigError, match="must be a table"):
            load_settings(tmp_path)
