"""Classification of changed files by what reloading them requires."""

from enum import Enum
from pathlib import PurePath
from typing import Final


class ExtensionClass(str, Enum):
    """What kind of asset a changed file is."""

    QML_SOURCE = "qml_source"  # interpreted, reloadable without a build
    UI_FORM = "ui_form"  # Designer form, compiled by uic
    NATIVE_SOURCE = "native_source"  # C/C++ sources and headers
    RESOURCE_ARCHIVE = "resource_archive"  # .qrc, compiled by rcc
    BUILD_DESCRIPTOR = "build_descriptor"  # CMake / qmake project files
    OTHER = "other"

    @property
    def requires_rebuild(self) -> bool:
        """Whether a change to this class needs recompilation to be observed."""
        return self in _REBUILD_CLASSES


_REBUILD_CLASSES: Final = frozenset(
    {ExtensionClass.NATIVE_SOURCE, ExtensionClass.UI_FORM, ExtensionClass.RESOURCE_ARCHIVE}
)

BUILD_DESCRIPTOR_NAMES: Final = frozenset({"cmakelists.txt"})

EXTENSION_CLASSES: Final = {
    ".qml": ExtensionClass.QML_SOURCE,
    ".ui": ExtensionClass.UI_FORM,
    ".cpp": ExtensionClass.NATIVE_SOURCE,
    ".cc": ExtensionClass.NATIVE_SOURCE,
    ".cxx": ExtensionClass.NATIVE_SOURCE,
    ".c": ExtensionClass.NATIVE_SOURCE,
    ".h": ExtensionClass.NATIVE_SOURCE,
    ".hh": ExtensionClass.NATIVE_SOURCE,
    ".hpp": ExtensionClass.NATIVE_SOURCE,
    ".hxx": ExtensionClass.NATIVE_SOURCE,
    ".qrc": ExtensionClass.RESOURCE_ARCHIVE,
    ".cmake": ExtensionClass.BUILD_DESCRIPTOR,
    ".pro": ExtensionClass.BUILD_DESCRIPTOR,
    ".pri": ExtensionClass.BUILD_DESCRIPTOR,
}


def classify(path: str | PurePath) -> ExtensionClass:
    """Classify a path by file name and extension.

    Pure function of the name: the same name always yields the same class.
    """
    name = PurePath(path).name
    if name.lower() in BUILD_DESCRIPTOR_NAMES:
        return ExtensionClass.BUILD_DESCRIPTOR
    return EXTENSION_CLASSES.get(PurePath(name).suffix.lower(), ExtensionClass.OTHER)
