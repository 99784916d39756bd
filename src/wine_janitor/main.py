"""!
@brief Primary entry point for the Wine Janitor CLI.
@details Parses the argument surface, sets up logging, enforces the startup
guards, and then walks the operator through prefix selection, application
selection and removal.

Exit codes: ``0`` on success, on a user abort and when nothing was found;
``1`` when a prerequisite tool is missing, when running as root, or when no
Wine prefix exists.
"""
from __future__ import annotations

import argparse
import logging
import os
import pathlib
import sys
from typing import Iterable, List, Mapping, Optional

from . import (
    confirm,
    constants,
    detect,
    elevation,
    fs_tools,
    logging_ext,
    ui,
    uninstall,
    version,
)
from .artifacts import ArtifactCleaner
from .capabilities import ToolRegistry
from .wine import WineRunner

EXIT_OK = 0
EXIT_STARTUP_FAILURE = 1


class StartupError(Exception):
    """!
    @brief A condition that prevents the run from starting at all.
    """


def build_arg_parser() -> argparse.ArgumentParser:
    """!
    @brief Create the argument parser.
    @details Interaction happens through prompts; the options only influence
    logging.
    """

    parser = argparse.ArgumentParser(
        prog="wine-janitor",
        description=(
            "Scan Wine prefixes for installed Windows programs, run their "
            "uninstallers and remove leftover menu entries, icons and shortcuts."
        ),
    )
    metadata = version.build_info()
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"{metadata['version']} ({metadata['build']})",
    )
    parser.add_argument("--logdir", metavar="DIR", help="Directory for human/JSONL log output.")
    parser.add_argument("--quiet", action="store_true", help="Only report errors on the console.")
    parser.add_argument("--json", action="store_true", help="Mirror structured events to stdout.")
    return parser


def _resolve_log_directory(candidate: Optional[str]) -> pathlib.Path:
    if candidate:
        return pathlib.Path(candidate).expanduser().resolve()
    return fs_tools.get_default_log_directory()


def _bootstrap_logging(args: argparse.Namespace) -> tuple[logging.Logger, logging.Logger]:
    logdir = _resolve_log_directory(getattr(args, "logdir", None))
    human_logger, machine_logger = logging_ext.setup_logging(
        logdir,
        json_to_stdout=bool(getattr(args, "json", False)),
        console_level=logging.ERROR if getattr(args, "quiet", False) else logging.WARNING,
    )
    return human_logger, machine_logger


def build_tool_registry(env: Optional[Mapping[str, str]] = None) -> ToolRegistry:
    """!
    @brief Resolve external tools, honouring ``$WINE`` for the runner binary.
    """

    environment = os.environ if env is None else env
    overrides = {}
    if environment.get(constants.WINE_ENV):
        overrides[constants.WINE_BINARY] = environment[constants.WINE_ENV]
    return ToolRegistry(overrides=overrides)


def check_startup(tools: ToolRegistry) -> None:
    """!
    @brief Enforce the guards that must hold before anything is inspected.
    @raises StartupError On a privileged account or a missing prerequisite.
    """

    if elevation.is_privileged_user():
        raise StartupError("Do NOT run this tool as root. Exiting.")
    missing = tools.missing(constants.PREREQUISITE_TOOLS)
    if missing:
        raise StartupError(f"required command '{missing[0]}' not found.")


def _report_startup_error(exc: StartupError) -> int:
    logging_ext.get_human_logger().error("%s", exc)
    logging_ext.get_machine_logger().error(
        "startup_failed", extra=logging_ext.build_event_extra("startup_failed", reason=str(exc))
    )
    return EXIT_STARTUP_FAILURE


def run(
    tools: ToolRegistry,
    *,
    home: Optional[pathlib.Path] = None,
    input_func: Optional[confirm.InputFunc] = None,
    output=print,
) -> int:
    """!
    @brief Interactive session after the startup guards passed.
    """

    human_logger = logging_ext.get_human_logger()
    home = pathlib.Path(home) if home is not None else pathlib.Path.home()

    prefixes: List[pathlib.Path] = detect.discover_prefixes(home)
    if not prefixes:
        return _report_startup_error(
            StartupError("No Wine prefixes found under your home directory. Exiting.")
        )

    ui.show_prefix_menu(prefixes, output=output)
    prefix = ui.select_prefix(prefixes, input_func=input_func, output=output)

    records = detect.build_inventory(prefix)
    if not records:
        output("No installed applications detected in this prefix. Exiting.")
        return EXIT_OK

    runner = WineRunner(
        prefix,
        tools.get(constants.WINE_BINARY),
        tools.get(constants.WINESERVER_BINARY),
    )
    cleaner = ArtifactCleaner(
        home=home,
        tools=tools,
        escalator=elevation.Escalator(tools.get(constants.SUDO_BINARY)),
        input_func=input_func,
        output=output,
    )
    orchestrator = uninstall.RemovalOrchestrator(
        prefix=prefix,
        runner=runner,
        cleaner=cleaner,
        input_func=input_func,
        output=output,
    )
    results = uninstall.run_session(
        prefix, records, orchestrator, input_func=input_func, output=output
    )
    if results:
        output("Done. If desktop menu items linger, run:")
        output("  update-desktop-database ~/.local/share/applications || true")
    human_logger.info("Session finished with %d processed application(s)", len(results))
    return EXIT_OK


def main(argv: Optional[Iterable[str]] = None) -> int:
    """!
    @brief Entry point invoked by the console script and the shim.
    @returns Process exit code integer.
    """

    parser = build_arg_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    _bootstrap_logging(args)

    tools = build_tool_registry()
    try:
        check_startup(tools)
    except StartupError as exc:
        return _report_startup_error(exc)

    ui.print_header()
    try:
        return run(tools)
    except confirm.UserAbort:
        print("Aborted.")
        return EXIT_OK


if __name__ == "__main__":  # pragma: no cover - manual invocation
    sys.exit(main())
