"""!
@brief Static data and enumerations for Wine Janitor.
@details Centralises the Wine prefix layout, recognised registry value names,
the leftover artifact catalogue, and the external tool names so the indexer,
inventory builder and cleaners work from a single source of truth.
"""
from __future__ import annotations

import enum
from typing import Tuple


class ArtifactScope(str, enum.Enum):
    """!
    @brief Ownership scope of a leftover artifact.
    @details ``SYSTEM`` artifacts live under ``/usr`` and can only be removed
    through privilege escalation after an explicit confirmation.
    """

    USER = "user"
    SYSTEM = "system"


DRIVE_C = "drive_c"

SYSTEM_REGISTRY_FILE = "system.reg"
USER_REGISTRY_FILE = "user.reg"

REGISTRY_FILES: Tuple[str, ...] = (SYSTEM_REGISTRY_FILE, USER_REGISTRY_FILE)
"""!
@brief Registry files in the order they are indexed.
"""

UNINSTALL_KEY_MARKER = "\\Uninstall\\"

DISPLAY_NAME = "DisplayName"
UNINSTALL_STRING = "UninstallString"
INSTALL_LOCATION = "InstallLocation"

RECOGNISED_VALUES: Tuple[str, ...] = (DISPLAY_NAME, UNINSTALL_STRING, INSTALL_LOCATION)

PROGRAM_ROOTS: Tuple[str, ...] = ("Program Files", "Program Files (x86)")
"""!
@brief Install roots under ``drive_c`` scanned when the registry yields nothing.
"""

NO_REGISTRY_IDENTITY = -1

NAME_DISPLAY_WIDTH = 40

MSI_KEYWORD = "msiexec"

GENERIC_MARKER = "wine"
"""!
@brief Substring identifying leftovers produced by Wine itself.
"""

WINE_BINARY = "wine"
WINESERVER_BINARY = "wineserver"
SUDO_BINARY = "sudo"

UPDATE_DESKTOP_DATABASE = "update-desktop-database"
UPDATE_MIME_DATABASE = "update-mime-database"
GTK_UPDATE_ICON_CACHE = "gtk-update-icon-cache"

PREREQUISITE_TOOLS: Tuple[str, ...] = (WINE_BINARY,)

WINE_PROGRAMS_MENU = "{home}/.local/share/applications/wine/Programs"
WINE_MENU_CONTAINER = "{home}/.local/share/applications/wine"
DESKTOP_DIRECTORY = "{home}/Desktop"

USER_APPLICATIONS_DIR = "{home}/.local/share/applications"
USER_MIME_DIR = "{home}/.local/share/mime"
USER_ICON_DIR = "{home}/.local/share/icons/hicolor"

SYSTEM_APPLICATIONS_DIR = "/usr/share/applications"
SYSTEM_MIME_DIR = "/usr/share/mime"
SYSTEM_ICON_DIR = "/usr/share/icons/hicolor"

ARTIFACT_CATALOGUE: Tuple[Tuple[ArtifactScope, str], ...] = (
    (ArtifactScope.USER, "{home}/.local/share/applications/wine-extension*"),
    (ArtifactScope.USER, "{home}/.local/share/applications/wine-*.desktop"),
    (ArtifactScope.USER, "{home}/.local/share/applications/wine-*.menu"),
    (ArtifactScope.USER, "{home}/.config/menus/wine-*.menu"),
    (ArtifactScope.USER, "{home}/.local/share/icons/hicolor/*/*/application-x-wine-extension*"),
    (ArtifactScope.USER, "{home}/.local/share/mime/packages/x-wine*"),
    (ArtifactScope.USER, "{home}/.local/share/mime/application/x-wine-extension*"),
    (ArtifactScope.SYSTEM, "/usr/share/applications/wine*"),
    (ArtifactScope.SYSTEM, "/usr/local/share/applications/wine*"),
    (ArtifactScope.SYSTEM, "/usr/share/applications/*wine*.desktop"),
    (ArtifactScope.SYSTEM, "/usr/local/share/applications/*wine*.desktop"),
    (ArtifactScope.SYSTEM, "/usr/share/icons/hicolor/*/*/application-x-wine-extension*"),
    (ArtifactScope.SYSTEM, "/usr/local/share/icons/hicolor/*/*/application-x-wine-extension*"),
    (ArtifactScope.SYSTEM, "/usr/share/mime/packages/x-wine*"),
    (ArtifactScope.SYSTEM, "/usr/local/share/mime/packages/x-wine*"),
)
"""!
@brief Leftover file patterns as ``(scope, template)`` pairs.
@details ``{home}`` is substituted with the user's home directory before
globbing. User-scope patterns are generic Wine files removed outright; the
system-scope patterns are filtered by application name or the generic marker.
"""

PREFIX_SEARCH_DEPTH = 4

WINEPREFIXES_DIR = "{home}/.local/share/wineprefixes"
DEFAULT_PREFIX = "{home}/.wine"

YES_ANSWERS: Tuple[str, ...] = ("y", "yes")
ABORT_TOKENS: Tuple[str, ...] = ("q",)

LOGDIR_ENV = "WINE_JANITOR_LOGDIR"
WINE_ENV = "WINE"
WINEPREFIX_ENV = "WINEPREFIX"
