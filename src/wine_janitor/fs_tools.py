"""!
@brief Filesystem utilities for Wine prefixes and leftover cleanup.
@details Translates Windows paths stored in the registry to host paths inside
a prefix, measures install footprints, and removes files and directory trees.
Removal helpers log and swallow ``OSError`` so a single failure never stops
the rest of a cleanup pass.
"""
from __future__ import annotations

import os
import shutil
import stat
from pathlib import Path
from typing import Mapping

from . import constants, logging_ext


def translate_path(prefix_root: Path | str, windows_path: str) -> Path:
    """!
    @brief Map a Windows path to the corresponding host path inside a prefix.
    @details Only the ``C:`` drive is understood; anything else is treated as
    relative to ``drive_c``. No expansion of environment variables and no
    existence check take place.
    @param prefix_root Root directory of the Wine prefix.
    @param windows_path Value as stored in the registry, optionally quoted.
    @returns ``<prefix_root>/drive_c/<path>``.
    """

    value = windows_path
    if value.startswith('"'):
        value = value[1:]
    if value.endswith('"'):
        value = value[:-1]
    if value[:2] in ("C:", "c:"):
        value = value[2:]
    value = value.replace("\\", "/")
    if value.startswith("/"):
        value = value[1:]
    return Path(f"{prefix_root}/{constants.DRIVE_C}/{value}")


def resolve_location(prefix_root: Path | str, raw: str) -> Path:
    """!
    @brief Resolve an ``InstallLocation`` value to a host path.
    @details Values containing a backslash are Windows paths and get
    translated; anything else is already host-native.
    """

    if "\\" in raw:
        return translate_path(prefix_root, raw)
    return Path(raw)


def disk_usage(path: Path) -> int:
    """!
    @brief Sum the sizes of all files beneath ``path`` without following links.
    @details Entries that vanish or cannot be read while walking are ignored.
    """

    try:
        info = path.lstat()
    except OSError:
        return 0
    if not stat.S_ISDIR(info.st_mode):
        return info.st_size

    total = 0
    for root, dirs, files in os.walk(path, onerror=lambda _exc: None):
        for name in files + [d for d in dirs if os.path.islink(os.path.join(root, d))]:
            try:
                total += os.lstat(os.path.join(root, name)).st_size
            except OSError:
                continue
    return total


def format_size(size: int | None) -> str:
    """!
    @brief Render ``size`` in ``du -h`` style; ``None`` renders as ``?``.
    """

    if size is None:
        return "?"
    value = float(size)
    for unit in ("B", "K", "M", "G", "T"):
        if value < 1024 or unit == "T":
            if unit == "B":
                return f"{int(value)}B"
            return f"{value:.1f}{unit}" if value < 10 else f"{value:.0f}{unit}"
        value /= 1024
    return f"{value:.0f}T"  # pragma: no cover - loop always returns


def _handle_readonly(function, path: str, exc_info) -> None:  # pragma: no cover - permission edge case
    """!
    @brief Grant the owner write access before retrying a failed removal.
    """

    if isinstance(exc_info[1], PermissionError):
        os.chmod(os.path.dirname(path) or path, stat.S_IRWXU)
        function(path)
    else:
        raise exc_info[1]


def remove_path(target: Path) -> bool:
    """!
    @brief Delete a file, symlink or directory tree.
    @returns ``True`` when ``target`` no longer exists afterwards.
    """

    human_logger = logging_ext.get_human_logger()
    machine_logger = logging_ext.get_machine_logger()

    if not target.exists() and not target.is_symlink():
        human_logger.debug("Skipping %s because it does not exist", target)
        return True

    machine_logger.info(
        "filesystem_remove",
        extra=logging_ext.build_event_extra("filesystem_remove", path=str(target)),
    )
    try:
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target, onerror=_handle_readonly)
        else:
            target.unlink()
    except OSError as exc:
        human_logger.warning("Failed to remove %s: %s", target, exc)
        machine_logger.warning(
            "filesystem_remove_error",
            extra=logging_ext.build_event_extra(
                "filesystem_remove_error", path=str(target), error=str(exc)
            ),
        )
        return False
    return True


def remove_if_empty(directory: Path) -> bool:
    """!
    @brief Remove ``directory`` only when it has no entries left.
    """

    try:
        directory.rmdir()
    except OSError:
        return False
    logging_ext.get_human_logger().info("Removed empty directory %s", directory)
    return True


def get_default_log_directory(env: Mapping[str, str] | None = None) -> Path:
    """!
    @brief Determine the default log directory.
    @details ``$WINE_JANITOR_LOGDIR`` wins, then ``$XDG_STATE_HOME``, then
    ``~/.local/state``.
    """

    environment = os.environ if env is None else env
    override = environment.get(constants.LOGDIR_ENV)
    if override:
        return Path(override).expanduser()
    state_home = environment.get("XDG_STATE_HOME")
    base = Path(state_home).expanduser() if state_home else Path.home() / ".local" / "state"
    return base / "wine-janitor" / "logs"
