"""!
@brief Prefix discovery and application inventory.
@details Locates Wine prefixes under the user's home directory and turns the
registry index of a prefix into :class:`ApplicationRecord` objects. When the
registry lists nothing, the top-level folders of ``Program Files`` stand in
for applications so they can still be removed by hand.
"""
from __future__ import annotations

import enum
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Sequence

from . import constants, fs_tools, logging_ext, registry_tools


class RemovalMethod(str, enum.Enum):
    UNINSTALL = "uninstall"
    MANUAL = "manual"


@dataclass(frozen=True)
class ApplicationRecord:
    """!
    @brief An installed application as presented to the operator.
    @details ``identity`` is the registry entry id, or
    :data:`constants.NO_REGISTRY_IDENTITY` for records synthesised from a
    directory scan. ``size`` is ``None`` when it cannot be determined.
    """

    identity: int
    name: str
    uninstall_string: str = ""
    install_location: str = ""
    size: Optional[int] = None

    @property
    def removal_method(self) -> RemovalMethod:
        if self.uninstall_string:
            return RemovalMethod.UNINSTALL
        return RemovalMethod.MANUAL

    @property
    def display_size(self) -> str:
        return fs_tools.format_size(self.size)


def compute_size(prefix: Path, install_location: str) -> Optional[int]:
    """!
    @brief Measure an install location, ``None`` when unknown.
    """

    if not install_location:
        return None
    try:
        target = fs_tools.resolve_location(prefix, install_location)
        if not target.exists():
            return None
        return fs_tools.disk_usage(target)
    except (OSError, ValueError) as exc:
        logging_ext.get_human_logger().debug("Unable to size %s: %s", install_location, exc)
        return None


def scan_program_directories(prefix: Path) -> List[ApplicationRecord]:
    """!
    @brief Synthesize records from folders under the ``Program Files`` roots.
    """

    records: List[ApplicationRecord] = []
    for root_name in constants.PROGRAM_ROOTS:
        root = Path(prefix) / constants.DRIVE_C / root_name
        if not root.is_dir():
            continue
        try:
            children = sorted(child for child in root.iterdir() if child.is_dir())
        except OSError as exc:
            logging_ext.get_human_logger().debug("Unable to list %s: %s", root, exc)
            continue
        for child in children:
            location = str(child.absolute())
            records.append(
                ApplicationRecord(
                    identity=constants.NO_REGISTRY_IDENTITY,
                    name=child.name,
                    install_location=location,
                    size=compute_size(prefix, location),
                )
            )
    return records


def build_inventory(
    prefix: Path, entries: Optional[Sequence[registry_tools.RegistryEntry]] = None
) -> List[ApplicationRecord]:
    """!
    @brief Build the application list for ``prefix``.
    @param entries Pre-parsed registry entries; parsed from the prefix when
    omitted.
    """

    machine_logger = logging_ext.get_machine_logger()
    if entries is None:
        entries = registry_tools.parse_prefix(prefix)

    records: List[ApplicationRecord] = []
    for entry in entries:
        name = entry.name.strip()
        if not name:
            continue
        records.append(
            ApplicationRecord(
                identity=entry.id,
                name=name,
                uninstall_string=entry.uninstall_string,
                install_location=entry.install_location,
                size=compute_size(prefix, entry.install_location),
            )
        )

    source = "registry"
    if not records:
        records = scan_program_directories(prefix)
        source = "directory_scan"

    machine_logger.info(
        "inventory",
        extra=logging_ext.build_event_extra(
            "inventory",
            prefix=str(prefix),
            source=source,
            applications=[
                {
                    "identity": record.identity,
                    "name": record.name,
                    "method": record.removal_method.value,
                    "size": record.size,
                }
                for record in records
            ],
        ),
    )
    return records


def _unique(paths: Iterable[Path]) -> List[Path]:
    seen: set[str] = set()
    ordered: List[Path] = []
    for path in paths:
        key = str(path)
        if key in seen:
            continue
        seen.add(key)
        ordered.append(path)
    return ordered


def _find_drive_c(home: Path, max_depth: int) -> List[Path]:
    found: List[Path] = []
    home_depth = len(home.parts)
    for root, dirs, _files in os.walk(home, onerror=lambda _exc: None):
        depth = len(Path(root).parts) - home_depth
        if constants.DRIVE_C in dirs:
            found.append(Path(root))
            dirs.remove(constants.DRIVE_C)
        if depth >= max_depth - 1:
            dirs[:] = []
        dirs.sort()
    return sorted(found)


def discover_prefixes(
    home: Optional[Path] = None, env: Optional[Mapping[str, str]] = None
) -> List[Path]:
    """!
    @brief List candidate Wine prefixes in preference order.
    @details ``$WINEPREFIX`` first, then ``~/.wine``, then every child of
    ``~/.local/share/wineprefixes``, then any directory holding a ``drive_c``
    folder within four levels of ``home``. Duplicates are dropped.
    """

    environment = os.environ if env is None else env
    home = Path(home) if home is not None else Path.home()
    candidates: List[Path] = []

    override = environment.get(constants.WINEPREFIX_ENV)
    if override and Path(override).is_dir():
        candidates.append(Path(override))

    default = Path(constants.DEFAULT_PREFIX.format(home=home))
    if default.is_dir():
        candidates.append(default)

    shared = Path(constants.WINEPREFIXES_DIR.format(home=home))
    if shared.is_dir():
        try:
            candidates.extend(sorted(child for child in shared.iterdir() if child.is_dir()))
        except OSError as exc:
            logging_ext.get_human_logger().debug("Unable to list %s: %s", shared, exc)

    candidates.extend(_find_drive_c(home, constants.PREFIX_SEARCH_DEPTH))
    return _unique(candidates)
