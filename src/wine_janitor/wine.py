"""!
@brief Compatibility runner bound to one Wine prefix.
@details Wraps ``wine`` and ``wineserver`` invocations so every call carries
``WINEPREFIX`` and goes through :mod:`wine_janitor.exec_utils` for logging.
Uninstallers are run attached to the terminal because many of them show
dialogs or ask questions; their exit status is returned, never raised.
"""
from __future__ import annotations

import shlex
from pathlib import Path

from . import constants, exec_utils
from .capabilities import Capability


def _unquote_token(token: str) -> str:
    if len(token) >= 2 and token[0] == token[-1] == '"':
        return token[1:-1]
    return token


def split_arguments(arguments: str) -> list[str]:
    """!
    @brief Split a Windows command line into argument words.
    @details Windows command lines are not POSIX-quoted: backslashes are kept
    and a word wrapped entirely in double quotes loses only those quotes, so
    ``"C:\\Program Files\\x.msi"`` stays one argument. A malformed quote falls
    back to plain whitespace splitting.
    """

    if not arguments.strip():
        return []
    try:
        words = shlex.split(arguments, posix=False)
    except ValueError:
        return arguments.split()
    return [_unquote_token(word) for word in words]


class WineRunner:
    """!
    @brief Execute Windows programs against ``prefix``.
    """

    def __init__(self, prefix: Path, wine: Capability, wineserver: Capability) -> None:
        self.prefix = Path(prefix)
        self._wine = wine
        self._wineserver = wineserver

    @property
    def environment(self) -> dict[str, str]:
        return {constants.WINEPREFIX_ENV: str(self.prefix)}

    def run_verbatim(self, command_line: str) -> exec_utils.CommandResult:
        """!
        @brief Hand a runner-native command line (e.g. ``msiexec /x {GUID}``)
        to ``wine`` without translating any part of it.
        """

        return self._wine.run(
            split_arguments(command_line),
            event="wine_msiexec",
            human_message=f"Running: wine {command_line}",
            env_overrides=self.environment,
            capture=False,
        )

    def run_executable(self, executable: Path, arguments: str = "") -> exec_utils.CommandResult:
        """!
        @brief Run a host-side ``.exe`` path with ``arguments``.
        """

        return self._wine.run(
            [str(executable), *split_arguments(arguments)],
            event="wine_uninstaller",
            human_message=f"Running: wine '{executable}' {arguments}".rstrip(),
            env_overrides=self.environment,
            capture=False,
        )

    def start_unix(self, executable: str, arguments: str = "") -> exec_utils.CommandResult:
        """!
        @brief Launch ``executable`` through ``wine start /unix``.
        @details Used when the translated path does not exist on the host and
        Wine itself has to resolve the original Windows path.
        """

        return self._wine.run(
            ["start", "/unix", executable, *split_arguments(arguments)],
            event="wine_start",
            human_message=f"Running: wine start /unix '{executable}' {arguments}".rstrip(),
            env_overrides=self.environment,
            capture=False,
        )

    def shutdown_server(self) -> exec_utils.CommandResult:
        """!
        @brief Stop the prefix's ``wineserver`` best-effort.
        """

        return self._wineserver.run(
            ["-k"],
            event="wineserver_kill",
            env_overrides=self.environment,
        )
