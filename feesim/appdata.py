"""Per-platform location of an application's data directory."""

from __future__ import annotations

import os
import sys

try:
    import pwd
except ImportError:  # pragma: no cover - not available on Windows
    pwd = None


def _current_platform() -> str:
    if sys.platform.startswith("win"):
        return "windows"
    return sys.platform


def _home_dir() -> str:
    home = ""
    if pwd is not None:
        try:
            home = pwd.getpwuid(os.getuid()).pw_dir
        except KeyError:
            home = ""
    return home or os.environ.get("HOME", "")


def app_data_dir(app_name: str, roaming: bool = False, platform: str | None = None) -> str:
    """Return the directory an application should store its data in.

    POSIX systems get ``~/.appname``, macOS gets
    ``~/Library/Application Support/Appname``, Windows gets
    ``%LOCALAPPDATA%\\Appname`` (``%APPDATA%`` when roaming) and Plan 9 gets
    ``$home/appname``. An empty name or ``"."`` gives ``"."``, as does any
    case where no base directory can be found.
    """
    if app_name in ("", "."):
        return "."
    if app_name.startswith("."):
        app_name = app_name[1:]
    name_upper = app_name[0].upper() + app_name[1:]
    name_lower = app_name[0].lower() + app_name[1:]

    platform = platform or _current_platform()
    home = _home_dir()

    if platform == "windows":
        app_data = os.environ.get("LOCALAPPDATA", "")
        if roaming or not app_data:
            app_data = os.environ.get("APPDATA", "")
        if app_data:
            return os.path.join(app_data, name_upper)
    elif platform == "darwin":
        if home:
            return os.path.join(home, "Library", "Application Support", name_upper)
    elif platform == "plan9":
        if home:
            return os.path.join(home, name_lower)
    elif home:
        return os.path.join(home, "." + name_lower)

    return "."