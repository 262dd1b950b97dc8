"""Toolchain profiles for each host platform.

A profile captures everything needed to invoke CMake, Ninja and the QML
engine on the current host: the shell wrapper (MSYS2 bash on Windows), the
path translation rule for that shell, and the merged process environment.

Profiles are pure values. ``resolve`` reads nothing but its arguments (and
``os.environ`` when no base environment is given), so callers can simply
resolve a fresh profile whenever settings may have changed.
"""

import os
import platform
import re
import shutil
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath, PureWindowsPath
from types import MappingProxyType
from typing import Final

from qtreload.config import ReloadSettings

MSYS_ROOT: Final = "C:\\msys64"
MSYS_DEFAULT_QT_PATH: Final = "C:\\msys64\\mingw64"
MSYS_BASH: Final = "C:\\msys64\\usr\\bin\\bash.exe"

_DRIVE_PATH = re.compile(r"^[A-Za-z]:[\\/]")
_DEFINE_ARG = re.compile(r"^(-D[^=]+=)(.*)$")


class OsKind(str, Enum):
    """Host operating system families with distinct toolchain rules."""

    WINDOWS = "windows"
    MACOS = "macos"
    LINUX = "linux"


def current_os_kind() -> OsKind:
    """Map the running interpreter's platform to an OsKind."""
    system = platform.system().lower()
    if system == "windows":
        return OsKind.WINDOWS
    if system == "darwin":
        return OsKind.MACOS
    return OsKind.LINUX


def identity_path(path: str) -> str:
    return path


def to_msys_path(path: str) -> str:
    """Convert a Windows path to MSYS2 syntax.

    ``C:\\Users\\x`` becomes ``/c/Users/x``. Paths without a drive letter only
    get their separators normalized.
    """
    msys_path = path.replace("\\", "/")
    if re.match(r"^[A-Za-z]:", msys_path):
        msys_path = f"/{msys_path[0].lower()}{msys_path[2:]}"
    return msys_path


@dataclass(frozen=True)
class ToolchainProfile:
    """Resolved toolchain invocation profile for one settings snapshot."""

    os_kind: OsKind
    shell: tuple[str, ...]
    path_translator: Callable[[str], str]
    build_tool_path: str
    compile_tool_path: str
    run_tool_path: str
    environment: Mapping[str, str]
    qt_path: str = ""

    @property
    def uses_shell(self) -> bool:
        """Whether commands must be routed through the translation shell."""
        return self.os_kind == OsKind.WINDOWS

    @property
    def executable_suffix(self) -> str:
        return ".exe" if self.os_kind == OsKind.WINDOWS else ""

    def translate_argument(self, arg: str) -> str:
        """Translate a path-like command line argument for the shell.

        Handles bare absolute paths and ``-DNAME=<path>`` definitions; other
        arguments pass through untouched.
        """
        define = _DEFINE_ARG.match(arg)
        if define and _DRIVE_PATH.match(define.group(2)):
            return define.group(1) + self.path_translator(define.group(2))
        if _DRIVE_PATH.match(arg):
            return self.path_translator(arg)
        return arg

    def join_path(self, *parts: str) -> str:
        """Join path segments using the host's path syntax."""
        flavour = PureWindowsPath if self.os_kind == OsKind.WINDOWS else PurePosixPath
        return str(flavour(*parts))

    def locate(self, tool: str) -> str | None:
        """Find a tool on this profile's PATH, or check an explicit path exists."""
        if "/" in tool or "\\" in tool:
            return tool if Path(tool).exists() else None
        return shutil.which(tool, path=self.environment.get("PATH"))


def _qt_variables(qt_path: str, join: Callable[..., str]) -> dict[str, str]:
    return {
        "CMAKE_PREFIX_PATH": qt_path,
        "Qt6_DIR": join(qt_path, "lib", "cmake", "Qt6"),
        "QT_QPA_PLATFORM_PLUGIN_PATH": join(qt_path, "plugins", "platforms"),
        "QML2_IMPORT_PATH": join(qt_path, "qml"),
    }


def resolve(
    os_kind: OsKind,
    settings: ReloadSettings | None = None,
    base_environment: Mapping[str, str] | None = None,
) -> ToolchainProfile:
    """Resolve the toolchain profile for a host and settings snapshot.

    Args:
        os_kind: Host platform family.
        settings: User settings; defaults apply when omitted.
        base_environment: Environment to extend. Defaults to ``os.environ``.

    Returns:
        An immutable ToolchainProfile.
    """
    settings = settings or ReloadSettings()
    base = dict(os.environ if base_environment is None else base_environment)
    base_path = base.get("PATH", "")

    if os_kind == OsKind.WINDOWS:
        qt_path = settings.qt_path or MSYS_DEFAULT_QT_PATH

        def join(*parts: str) -> str:
            return str(PureWindowsPath(*parts))

        env = {
            **base,
            "MSYSTEM": "MINGW64",
            "PATH": ";".join(
                [
                    join(MSYS_ROOT, "mingw64", "bin"),
                    join(MSYS_ROOT, "usr", "bin"),
                    join(qt_path, "bin"),
                    base_path,
                ]
            ),
            **_qt_variables(qt_path, join),
        }
        return ToolchainProfile(
            os_kind=os_kind,
            shell=(MSYS_BASH, "-l", "-c"),
            path_translator=to_msys_path,
            build_tool_path="cmake",
            compile_tool_path="ninja",
            run_tool_path=join(qt_path, "bin", f"{settings.qml_engine}.exe"),
            environment=MappingProxyType(env),
            qt_path=qt_path,
        )

    qt_path = settings.qt_path

    def join(*parts: str) -> str:
        return str(PurePosixPath(*parts))

    env = dict(base)
    if qt_path:
        env["PATH"] = f"{join(qt_path, 'bin')}:{base_path}" if base_path else join(qt_path, "bin")
        env.update(_qt_variables(qt_path, join))

    shell = ("/bin/zsh", "-c") if os_kind == OsKind.MACOS else ("/bin/bash", "-c")
    run_tool = join(qt_path, "bin", settings.qml_engine) if qt_path else settings.qml_engine

    return ToolchainProfile(
        os_kind=os_kind,
        shell=shell,
        path_translator=identity_path,
        build_tool_path="cmake",
        compile_tool_path="ninja",
        run_tool_path=run_tool,
        environment=MappingProxyType(env),
        qt_path=qt_path,
    )


def executable_path(project_root: Path, build_dir: Path, profile: ToolchainProfile) -> Path:
    """Derive the application binary produced by the build.

    The executable is named after the project directory, with ``.exe`` on
    Windows hosts.
    """
    return build_dir / f"{project_root.name}{profile.executable_suffix}"


def find_project_root(start: Path) -> Path | None:
    """Find the nearest ancestor holding ``CMakeLists.txt`` or a ``.pro`` file.

    Args:
        start: File or directory to search upwards from.

    Returns:
        The project root, or None if no ancestor qualifies.
    """
    current = start if start.is_dir() else start.parent
    for candidate in (current, *current.parents):
        if (candidate / "CMakeLists.txt").exists():
            return candidate
        if candidate.is_dir() and any(candidate.glob("*.pro")):
            return candidate
    return None
