"""!
@brief Removal of menu, desktop, icon and MIME leftovers.
@details Wine creates freedesktop menu entries, file associations, icons and
MIME packages for the programs it installs and leaves them behind when a
program is uninstalled. User-scope leftovers are removed without further
questions; system-scope leftovers are only listed until the operator agrees
to a single ``sudo`` escalation for the whole batch.

The locations are described by :data:`constants.ARTIFACT_CATALOGUE` and
resolved by :func:`match_catalogue`.
"""
from __future__ import annotations

import glob
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from . import confirm, constants, fs_tools, logging_ext
from .capabilities import ToolRegistry
from .constants import ArtifactScope
from .elevation import Escalator

Output = Callable[[str], None]


@dataclass(frozen=True)
class SystemArtifact:
    """!
    @brief A leftover file found for an application.
    @details ``matched_name`` records what selected the file: the application
    name or the generic Wine marker.
    """

    path: Path
    matched_name: str
    scope: ArtifactScope


def mentions(text: str, needle: str) -> bool:
    """!
    @brief Case-insensitive substring test; an empty needle never matches.
    """

    return bool(needle) and needle.lower() in text.lower()


def expand_pattern(template: str, home: Path) -> str:
    return template.format(home=str(home))


def match_catalogue(
    catalogue: Iterable[Tuple[ArtifactScope, str]],
    scope: ArtifactScope,
    home: Path,
    name: Optional[str] = None,
) -> List[SystemArtifact]:
    """!
    @brief Resolve the catalogue patterns of ``scope`` to existing files.
    @details Without ``name`` every match is returned. With ``name`` only
    files whose basename mentions the name or :data:`constants.GENERIC_MARKER`
    are kept. Results are de-duplicated in discovery order.
    """

    found: List[SystemArtifact] = []
    seen: set[str] = set()
    for entry_scope, template in catalogue:
        if entry_scope is not scope:
            continue
        for match in sorted(glob.glob(expand_pattern(template, home))):
            if match in seen:
                continue
            basename = Path(match).name
            if name is None:
                matched = constants.GENERIC_MARKER
            elif mentions(basename, name):
                matched = name
            elif mentions(basename, constants.GENERIC_MARKER):
                matched = constants.GENERIC_MARKER
            else:
                continue
            seen.add(match)
            found.append(SystemArtifact(Path(match), matched, scope))
    return found


class ArtifactCleaner:
    """!
    @brief Remove the leftovers of one application at user and system scope.
    """

    def __init__(
        self,
        *,
        home: Path,
        tools: ToolRegistry,
        escalator: Escalator,
        catalogue: Sequence[Tuple[ArtifactScope, str]] = constants.ARTIFACT_CATALOGUE,
        input_func: Optional[confirm.InputFunc] = None,
        output: Output = print,
    ) -> None:
        self.home = Path(home)
        self.tools = tools
        self.escalator = escalator
        self.catalogue = tuple(catalogue)
        self._input = input_func
        self._output = output

    def _path(self, template: str) -> Path:
        return Path(expand_pattern(template, self.home))

    def clean(self, name: str) -> None:
        """!
        @brief Run user-scope cleanup, then the gated system-scope cleanup.
        """

        self.clean_user(name)
        self.clean_system(name)

    # -- user scope -----------------------------------------------------

    def clean_user(self, name: str) -> List[Path]:
        """!
        @brief Remove per-user leftovers for ``name`` and refresh user caches.
        @returns Paths that were removed.
        """

        human_logger = logging_ext.get_human_logger()
        human_logger.info("Cleaning Wine menu entries, file associations and icons for %s", name)
        removed: List[Path] = []
        removed.extend(self._remove_program_menu_entries(name))
        for artifact in match_catalogue(self.catalogue, ArtifactScope.USER, self.home):
            if fs_tools.remove_path(artifact.path):
                removed.append(artifact.path)
        fs_tools.remove_if_empty(self._path(constants.WINE_MENU_CONTAINER))
        removed.extend(self._remove_desktop_shortcuts(name))
        self.refresh_user_caches()
        return removed

    def _remove_program_menu_entries(self, name: str) -> List[Path]:
        menu_dir = self._path(constants.WINE_PROGRAMS_MENU)
        if not menu_dir.is_dir():
            return []
        removed: List[Path] = []
        for entry in sorted(menu_dir.iterdir()):
            if not mentions(entry.name, name):
                continue
            self._output(f"Removing desktop entry: {entry}")
            if fs_tools.remove_path(entry):
                removed.append(entry)
        return removed

    def _remove_desktop_shortcuts(self, name: str) -> List[Path]:
        desktop = self._path(constants.DESKTOP_DIRECTORY)
        if not desktop.is_dir():
            return []
        removed: List[Path] = []
        for entry in sorted(desktop.iterdir()):
            if not entry.is_file():
                continue
            if entry.suffix == ".desktop" and self._desktop_file_mentions(entry, name):
                self._output(f"Removing desktop shortcut: {entry}")
            elif entry.suffix.lower() == ".lnk" and (
                mentions(entry.name, name) or mentions(entry.name, constants.GENERIC_MARKER)
            ):
                self._output(f"Removing Windows .lnk shortcut: {entry}")
            else:
                continue
            if fs_tools.remove_path(entry):
                removed.append(entry)
        return removed

    @staticmethod
    def _desktop_file_mentions(path: Path, name: str) -> bool:
        if mentions(path.name, name):
            return True
        try:
            return mentions(path.read_text(encoding="utf-8", errors="replace"), name)
        except OSError:
            return False

    def refresh_user_caches(self) -> None:
        """!
        @brief Rebuild desktop, MIME and icon caches when the tools exist.
        """

        self.tools.get(constants.UPDATE_DESKTOP_DATABASE).run(
            [str(self._path(constants.USER_APPLICATIONS_DIR))]
        )
        self.tools.get(constants.UPDATE_MIME_DATABASE).run([str(self._path(constants.USER_MIME_DIR))])
        icons = self._path(constants.USER_ICON_DIR)
        if icons.is_dir():
            self.tools.get(constants.GTK_UPDATE_ICON_CACHE).run(["-f", str(icons)])

    # -- system scope ---------------------------------------------------

    def find_system_artifacts(self, name: str) -> List[SystemArtifact]:
        return match_catalogue(self.catalogue, ArtifactScope.SYSTEM, self.home, name)

    def clean_system(self, name: str) -> List[Path]:
        """!
        @brief Offer removal of system-wide leftovers for ``name``.
        @details Nothing is deleted unless the operator confirms and ``sudo``
        authenticates. Individual failures are logged and skipped.
        @returns Paths that ``sudo rm`` reported as removed.
        """

        human_logger = logging_ext.get_human_logger()
        candidates = self.find_system_artifacts(name)
        if not candidates:
            return []

        self._output("")
        self._output("The following system-wide files were detected and require root to remove:")
        for artifact in candidates:
            self._output(f"  {artifact.path}")
        if not confirm.ask_yes_no("Remove these system files using sudo?", input_func=self._input):
            human_logger.info("Skipping system-wide cleanup.")
            return []
        if not self.escalator.authenticate():
            return []

        removed: List[Path] = []
        for artifact in candidates:
            result = self.escalator.run(["rm", "-rf", "--", str(artifact.path)], event="sudo_remove")
            if result.ok:
                removed.append(artifact.path)
            else:
                human_logger.warning("Failed to remove %s (continuing)", artifact.path)
        self.refresh_system_caches()
        return removed

    def refresh_system_caches(self) -> None:
        refreshes = (
            (constants.UPDATE_DESKTOP_DATABASE, [constants.SYSTEM_APPLICATIONS_DIR]),
            (constants.UPDATE_MIME_DATABASE, [constants.SYSTEM_MIME_DIR]),
            (constants.GTK_UPDATE_ICON_CACHE, ["-f", constants.SYSTEM_ICON_DIR]),
        )
        for tool_name, arguments in refreshes:
            tool = self.tools.get(tool_name)
            if not tool.available or not Path(arguments[-1]).is_dir():
                continue
            self.escalator.run([str(tool.path), *arguments], event=f"sudo_{tool_name.replace('-', '_')}")
