"""Tests for changed-file classification."""

from pathlib import Path

import pytest

from qtreload.reload.classify import ExtensionClass, classify


class TestClassify:
    """Tests for classify."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Main.qml", ExtensionClass.QML_SOURCE),
            ("mainwindow.ui", ExtensionClass.UI_FORM),
            ("main.cpp", ExtensionClass.NATIVE_SOURCE),
            ("widget.h", ExtensionClass.NATIVE_SOURCE),
            ("widget.hpp", ExtensionClass.NATIVE_SOURCE),
            ("legacy.c", ExtensionClass.NATIVE_SOURCE),
            ("resources.qrc", ExtensionClass.RESOURCE_ARCHIVE),
            ("CMakeLists.txt", ExtensionClass.BUILD_DESCRIPTOR),
            ("Qt6Helpers.cmake", ExtensionClass.BUILD_DESCRIPTOR),
            ("app.pro", ExtensionClass.BUILD_DESCRIPTOR),
            ("common.pri", ExtensionClass.BUILD_DESCRIPTOR),
            ("README.md", ExtensionClass.OTHER),
            ("logic.js", ExtensionClass.OTHER),
        ],
    )
    def test_known_names(self, name: str, expected: ExtensionClass):
        """Each watched name maps to its class."""
        assert classify(name) == expected

    def test_case_insensitive(self):
        """Extensions and the CMake file name ignore case."""
        assert classify("MAIN.CPP") == ExtensionClass.NATIVE_SOURCE
        assert classify("View.QML") == ExtensionClass.QML_SOURCE
        assert classify("cmakelists.TXT") == ExtensionClass.BUILD_DESCRIPTOR

    def test_other_txt_is_not_descriptor(self):
        """Only CMakeLists.txt is a descriptor, not every .txt file."""
        assert classify("notes.txt") == ExtensionClass.OTHER

    def test_directory_is_ignored(self, tmp_path: Path):
        """Classification only looks at the file name."""
        assert classify(tmp_path / "qml" / "main.cpp") == ExtensionClass.NATIVE_SOURCE
        assert classify("src/main.qml/file.h") == ExtensionClass.NATIVE_SOURCE

    def test_no_extension(self):
        """Files without an extension are OTHER."""
        assert classify("Makefile") == ExtensionClass.OTHER

    def test_requires_rebuild(self):
        """Only compiled assets need a rebuild."""
        assert ExtensionClass.NATIVE_SOURCE.requires_rebuild
        assert ExtensionClass.UI_FORM.requires_rebuild
        assert ExtensionClass.RESOURCE_ARCHIVE.requires_rebuild
        assert not ExtensionClass.QML_SOURCE.requires_rebuild
        assert not ExtensionClass.BUILD_DESCRIPTOR.requires_rebuild
        assert not ExtensionClass.OTHER.requires_rebuild
