"""Hot reload: change watching, classification and coordination."""

from qtreload.reload.classify import ExtensionClass, classify
from qtreload.reload.coordinator import HotReloadCoordinator, ReloadPhase, ReloadState
from qtreload.reload.debounce import Debouncer
from qtreload.reload.interface import BuildController, PreviewController
from qtreload.reload.watcher import ChangeEvent, ChangeKind, ChangeWatcher, ProjectFilter

__all__ = [
    "BuildController",
    "ChangeEvent",
    "ChangeKind",
    "ChangeWatcher",
    "Debouncer",
    "ExtensionClass",
    "HotReloadCoordinator",
    "PreviewController",
    "ProjectFilter",
    "ReloadPhase",
    "ReloadState",
    "classify",
]
