"""!
@brief Plain console menus.
@details Renders the prefix and application menus and turns the operator's
answers into selections. Output goes through an injectable ``output``
callable (``print`` by default) so tests can capture it.
"""
from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from . import confirm, constants
from .detect import ApplicationRecord

Output = Callable[[str], None]

HEADER = textwrap.dedent(
    """
    =================== Wine Janitor ===================
    Scans Wine prefixes for installed Windows programs,
    runs their uninstallers when available, and removes
    leftover files and desktop entries.
    ----------------------------------------------------
    """
).strip("\n")


def print_header(output: Output = print) -> None:
    output(HEADER)


def show_prefix_menu(prefixes: Sequence[Path], output: Output = print) -> None:
    output("")
    output("Detected Wine prefixes:")
    for index, prefix in enumerate(prefixes, start=1):
        output(f"  {index}) {prefix}")
    output("")


def select_prefix(
    prefixes: Sequence[Path],
    *,
    input_func: Optional[confirm.InputFunc] = None,
    output: Output = print,
) -> Path:
    """!
    @brief Ask for a prefix number until a valid one is entered.
    @raises confirm.UserAbort On ``q``.
    """

    while True:
        answer = confirm.prompt_line(
            "Select prefix number to inspect (or 'q' to quit): ", input_func=input_func
        ).strip()
        if answer.isascii() and answer.isdigit() and 1 <= int(answer) <= len(prefixes):
            prefix = prefixes[int(answer) - 1]
            output("")
            output(f"Selected prefix: {prefix}")
            return prefix
        output("Invalid selection, try again.")


def format_application_table(prefix: Path, records: Sequence[ApplicationRecord]) -> List[str]:
    """!
    @brief Render the numbered application menu as lines of text.
    @details Names are cut to :data:`constants.NAME_DISPLAY_WIDTH` columns.
    """

    width = constants.NAME_DISPLAY_WIDTH
    lines = [
        "",
        f"Installed applications in prefix: {prefix}",
        f"{'#':>3} {'Name':<{width}} {'Size':<8} Method",
        "-" * 80,
    ]
    for index, record in enumerate(records, start=1):
        name = record.name[:width]
        lines.append(
            f"{index:>3} {name:<{width}} {record.display_size:<8} {record.removal_method.value}"
        )
    lines.append("")
    return lines


def parse_selection(raw: str, count: int) -> List[int]:
    """!
    @brief Convert whitespace-separated 1-based tokens into 0-based indexes.
    @details Non-numeric and out-of-range tokens are dropped. Repeated
    numbers are kept once, in the order first seen.
    """

    selected: List[int] = []
    for token in raw.split():
        if not (token.isascii() and token.isdigit()):
            continue
        number = int(token)
        if not 1 <= number <= count:
            continue
        if number - 1 not in selected:
            selected.append(number - 1)
    return selected


def select_applications(
    prefix: Path,
    records: Sequence[ApplicationRecord],
    *,
    input_func: Optional[confirm.InputFunc] = None,
    output: Output = print,
) -> List[ApplicationRecord]:
    """!
    @brief Show the application menu and read the operator's selection.
    @returns Selected records in the order entered; empty when nothing valid
    was given.
    @raises confirm.UserAbort On ``q``.
    """

    for line in format_application_table(prefix, records):
        output(line)
    answer = confirm.prompt_line(
        "Enter numbers to remove (space-separated), or 'q' to quit: ", input_func=input_func
    )
    return [records[index] for index in parse_selection(answer, len(records))]
