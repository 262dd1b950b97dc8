"""Platform-aware toolchain resolution."""

from qtreload.platform.profile import (
    OsKind,
    ToolchainProfile,
    current_os_kind,
    executable_path,
    find_project_root,
    resolve,
    to_msys_path,
)

__all__ = [
    "OsKind",
    "ToolchainProfile",
    "current_os_kind",
    "executable_path",
    "find_project_root",
    "resolve",
    "to_msys_path",
]
