"""!
@brief Indexer for Wine's text registry files.
@details Wine serialises its registry as ``system.reg`` and ``user.reg``: a
sequence of ``[key]`` section headers followed by ``"Name"=value`` lines. This
module classifies each line, runs a two-state scanner over the stream and
collects the ``DisplayName``, ``UninstallString`` and ``InstallLocation``
values found under ``...\\Uninstall\\...`` keys.

Entries are accumulated by an :class:`EntryBuilder` that lives for exactly one
parse pass over all files, so identifiers never collide between files.
"""
from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from . import constants, logging_ext

_SECTION_RE = re.compile(r"^\[(?P<key>.*)\](?:\s+\d+)?\s*$")
_VALUE_RE = re.compile(r'^"(?P<name>[^"]+)"=(?P<value>.*)$')
_TYPED_STRING_RE = re.compile(r'^str(?:\(\d+\))?:(?P<quoted>".*")$')
_ESCAPE_RE = re.compile(r'\\(["\\])')


class LineKind(enum.Enum):
    SECTION_HEADER = "section"
    VALUE_ASSIGNMENT = "value"
    OTHER = "other"


class ScannerState(enum.Enum):
    IDLE = "idle"
    IN_UNINSTALL_SECTION = "uninstall"


@dataclass(frozen=True)
class RegistryLine:
    """!
    @brief A classified registry line.
    @details ``key`` is set for section headers; ``name`` and ``value`` for
    value assignments. ``value`` is the raw text after ``=``.
    """

    kind: LineKind
    key: str = ""
    name: str = ""
    value: str = ""


@dataclass(frozen=True)
class RegistryEntry:
    """!
    @brief One application registration found under an ``Uninstall`` key.
    """

    id: int
    name: str
    uninstall_string: str = ""
    install_location: str = ""
    source_file: str = ""


@dataclass
class _PartialEntry:
    values: dict = field(default_factory=dict)
    source_file: str = ""


class EntryBuilder:
    """!
    @brief Append-only accumulator of partially built registry entries.
    @details The current entry receives captured values until :meth:`flush`
    closes it. Entries without a display name are dropped when flushed or at
    :meth:`finish`.
    """

    def __init__(self) -> None:
        self._partials: List[_PartialEntry] = [_PartialEntry()]
        self._entries: List[RegistryEntry] = []

    @property
    def current(self) -> _PartialEntry:
        return self._partials[-1]

    def has_display_name(self) -> bool:
        return bool(self.current.values.get(constants.DISPLAY_NAME))

    def discard(self) -> None:
        """!
        @brief Drop values captured for the current entry without a display name.
        """

        self.current.values.clear()
        self.current.source_file = ""

    def capture(self, name: str, value: str, source_file: str) -> None:
        if name not in constants.RECOGNISED_VALUES:
            return
        self.current.values[name] = value
        self.current.source_file = source_file

    def flush(self) -> None:
        """!
        @brief Close the current entry and open the next index.
        """

        partial = self.current
        if partial.values.get(constants.DISPLAY_NAME):
            self._entries.append(
                RegistryEntry(
                    id=len(self._partials) - 1,
                    name=partial.values[constants.DISPLAY_NAME],
                    uninstall_string=partial.values.get(constants.UNINSTALL_STRING, ""),
                    install_location=partial.values.get(constants.INSTALL_LOCATION, ""),
                    source_file=partial.source_file,
                )
            )
            self._partials.append(_PartialEntry())

    def finish(self) -> List[RegistryEntry]:
        """!
        @brief Return entries sorted by name, ties in capture order.
        """

        return sorted(self._entries, key=lambda entry: entry.name)


def classify_line(line: str) -> RegistryLine:
    """!
    @brief Classify a raw registry line.
    """

    text = line.rstrip("\r\n")
    section = _SECTION_RE.match(text)
    if section:
        return RegistryLine(LineKind.SECTION_HEADER, key=section.group("key"))
    assignment = _VALUE_RE.match(text)
    if assignment:
        return RegistryLine(
            LineKind.VALUE_ASSIGNMENT,
            name=assignment.group("name"),
            value=assignment.group("value"),
        )
    return RegistryLine(LineKind.OTHER)


def unquote_value(raw: str) -> str:
    """!
    @brief Strip the quotes from a string value and undo ``.reg`` escaping.
    @details Unquoted values (``dword:...``, ``hex:...``) are returned as-is.
    """

    typed = _TYPED_STRING_RE.match(raw)
    if typed:
        raw = typed.group("quoted")
    if len(raw) >= 2 and raw.startswith('"') and raw.endswith('"'):
        return _ESCAPE_RE.sub(r"\1", raw[1:-1])
    return raw


def is_uninstall_key(key: str) -> bool:
    return constants.UNINSTALL_KEY_MARKER in key


def scan_lines(lines: Iterable[str], builder: EntryBuilder, source_file: str = "") -> None:
    """!
    @brief Feed one file's lines through the two-state scanner.
    @details Values are captured only while in an ``Uninstall`` section. An
    entry is flushed on any line seen in a non-``Uninstall`` section once a
    display name has been captured, and once more at end of input. Values
    captured without a display name are discarded at those same points so
    they never reach the next section or file.
    """

    state = ScannerState.IDLE
    for raw in lines:
        line = classify_line(raw)
        if line.kind is LineKind.SECTION_HEADER:
            if is_uninstall_key(line.key):
                state = ScannerState.IN_UNINSTALL_SECTION
            else:
                state = ScannerState.IDLE
            continue
        if line.kind is LineKind.VALUE_ASSIGNMENT and state is ScannerState.IN_UNINSTALL_SECTION:
            builder.capture(line.name, unquote_value(line.value), source_file)

        if state is ScannerState.IDLE:
            if builder.has_display_name():
                builder.flush()
            elif builder.current.values:
                builder.discard()

    if builder.has_display_name():
        builder.flush()
    else:
        builder.discard()


def _read_lines(path: Path) -> Optional[List[str]]:
    human_logger = logging_ext.get_human_logger()
    try:
        with path.open("r", encoding="utf-8", errors="replace") as handle:
            return handle.readlines()
    except OSError as exc:
        human_logger.debug("Skipping registry file %s: %s", path, exc)
        return None


def parse_registry_files(paths: Sequence[Path]) -> List[RegistryEntry]:
    """!
    @brief Index the application entries recorded in ``paths``.
    @details Files are read in the order given; missing or unreadable files
    are skipped. No entries is a valid result.
    """

    machine_logger = logging_ext.get_machine_logger()
    builder = EntryBuilder()
    for path in paths:
        lines = _read_lines(Path(path))
        if lines is None:
            continue
        scan_lines(lines, builder, str(path))
    entries = builder.finish()
    machine_logger.info(
        "registry_index",
        extra=logging_ext.build_event_extra(
            "registry_index",
            files=[str(path) for path in paths],
            entries=len(entries),
        ),
    )
    return entries


def registry_files(prefix: Path) -> List[Path]:
    """!
    @brief Registry files of ``prefix`` in indexing order (system, then user).
    """

    return [Path(prefix) / name for name in constants.REGISTRY_FILES]


def parse_prefix(prefix: Path) -> List[RegistryEntry]:
    return parse_registry_files(registry_files(prefix))
