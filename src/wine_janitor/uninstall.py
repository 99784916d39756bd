"""!
@brief Removal workflow for selected Wine applications.
@details Implements the per-application decision procedure: run the
registered uninstaller through Wine when there is one, otherwise offer to
delete the install directory. Either way the application's menu and desktop
leftovers are cleaned and ``wineserver`` is asked to shut down afterwards.

Each step is attempted once and failures are downgraded to warnings, so one
broken application never stops the rest of the batch. There is no rollback.
"""
from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from . import confirm, constants, fs_tools, logging_ext, ui
from .artifacts import ArtifactCleaner
from .detect import ApplicationRecord, RemovalMethod
from .exec_utils import CommandResult
from .wine import WineRunner

_QUOTED_EXECUTABLE_RE = re.compile(r'^\s*(?P<exe>"[^"]*")\s*(?P<args>.*)$', re.DOTALL)
_BARE_EXECUTABLE_RE = re.compile(
    r"^\s*(?P<exe>.+?\.exe)(?:\s+(?P<args>.*))?$", re.IGNORECASE | re.DOTALL
)


class UninstallKind(str, enum.Enum):
    MSI = "msi"
    EXECUTABLE = "executable"


class RemovalOutcome(str, enum.Enum):
    UNINSTALLED = "uninstalled"
    UNINSTALLER_FAILED = "uninstaller_failed"
    REMOVED = "removed"
    SKIPPED = "skipped"
    NOTHING_TO_DO = "nothing_to_do"
    FAILED = "failed"


@dataclass(frozen=True)
class UninstallCommand:
    """!
    @brief A classified ``UninstallString``.
    @details For :attr:`UninstallKind.MSI` only ``raw`` is meaningful. For
    executables ``executable`` keeps the original (untranslated) token,
    quotes included, and ``arguments`` the rest of the line.
    """

    kind: UninstallKind
    raw: str
    executable: str = ""
    arguments: str = ""


def split_command_line(command_line: str) -> Tuple[str, str]:
    """!
    @brief Split ``command_line`` into its executable token and argument string.
    @details A quoted leading path is taken verbatim up to its closing quote.
    An unquoted path may contain spaces, so the shortest prefix ending in
    ``.exe`` wins; without one the first whitespace-separated word is used.
    """

    quoted = _QUOTED_EXECUTABLE_RE.match(command_line)
    if quoted:
        return quoted.group("exe"), quoted.group("args").strip()
    bare = _BARE_EXECUTABLE_RE.match(command_line)
    if bare:
        return bare.group("exe"), (bare.group("args") or "").strip()
    parts = command_line.strip().split(None, 1)
    if not parts:
        return "", ""
    return parts[0], parts[1].strip() if len(parts) > 1 else ""


def classify_uninstall_string(uninstall_string: str) -> UninstallCommand:
    if constants.MSI_KEYWORD in uninstall_string.lower():
        return UninstallCommand(UninstallKind.MSI, uninstall_string)
    executable, arguments = split_command_line(uninstall_string)
    return UninstallCommand(UninstallKind.EXECUTABLE, uninstall_string, executable, arguments)


@dataclass
class RemovalPlan:
    """!
    @brief Ordered selection plus the aggregate confirmation.
    @details A plan can be consumed once; the workflow refuses an
    unconfirmed plan.
    """

    applications: Tuple[ApplicationRecord, ...]
    confirmed: bool = False
    _consumed: bool = field(default=False, init=False, repr=False)

    def consume(self) -> Tuple[ApplicationRecord, ...]:
        if self._consumed:
            raise RuntimeError("removal plan has already been executed")
        if not self.confirmed:
            raise RuntimeError("removal plan was not confirmed")
        self._consumed = True
        return self.applications


class RemovalOrchestrator:
    """!
    @brief Drive removal of applications from one prefix.
    """

    def __init__(
        self,
        *,
        prefix: Path,
        runner: WineRunner,
        cleaner: ArtifactCleaner,
        input_func: Optional[confirm.InputFunc] = None,
        output: Callable[[str], None] = print,
    ) -> None:
        self.prefix = Path(prefix)
        self.runner = runner
        self.cleaner = cleaner
        self._input = input_func
        self._output = output

    def _ask(self, question: str) -> bool:
        return confirm.ask_yes_no(question, input_func=self._input)

    def execute(self, plan: RemovalPlan) -> List[Tuple[ApplicationRecord, RemovalOutcome]]:
        """!
        @brief Process every application of a confirmed plan in order.
        """

        results: List[Tuple[ApplicationRecord, RemovalOutcome]] = []
        for record in plan.consume():
            results.append((record, self.process(record)))
        return results

    def process(self, record: ApplicationRecord) -> RemovalOutcome:
        """!
        @brief Run the decision procedure for one application.
        """

        human_logger = logging_ext.get_human_logger()
        machine_logger = logging_ext.get_machine_logger()
        self._output(f"Processing: {record.name}")

        try:
            if record.removal_method is RemovalMethod.UNINSTALL:
                outcome = self._run_uninstaller(record)
            else:
                outcome = self._remove_manually(record)
        except OSError as exc:
            human_logger.warning("Removal of %s failed: %s", record.name, exc)
            outcome = RemovalOutcome.FAILED

        try:
            self.cleaner.clean(record.name)
        except OSError as exc:
            human_logger.warning("Leftover cleanup for %s failed: %s", record.name, exc)

        try:
            self.runner.shutdown_server()
        except OSError as exc:
            human_logger.debug("wineserver shutdown failed: %s", exc)

        machine_logger.info(
            "application_processed",
            extra=logging_ext.build_event_extra(
                "application_processed",
                identity=record.identity,
                application=record.name,
                method=record.removal_method.value,
                outcome=outcome.value,
            ),
        )
        return outcome

    def _run_uninstaller(self, record: ApplicationRecord) -> RemovalOutcome:
        human_logger = logging_ext.get_human_logger()
        self._output(f"Uninstall command found: {record.uninstall_string}")
        if not self._ask(f"Run uninstaller for '{record.name}'?"):
            self._output(f"Skipping uninstaller for {record.name}")
            return RemovalOutcome.SKIPPED

        result = self.run_uninstall_command(classify_uninstall_string(record.uninstall_string))
        if result.ok:
            self._output(f"Uninstaller for {record.name} finished successfully.")
            return RemovalOutcome.UNINSTALLED
        human_logger.warning("Uninstaller exited with non-zero status (%s)", result.returncode)
        return RemovalOutcome.UNINSTALLER_FAILED

    def run_uninstall_command(self, command: UninstallCommand) -> CommandResult:
        """!
        @brief Execute a classified uninstall command through the runner.
        @details MSI command lines go to Wine untouched. Executables are run
        from their translated host path when it exists; otherwise Wine is
        asked to start the original Windows path itself.
        """

        if command.kind is UninstallKind.MSI:
            return self.runner.run_verbatim(command.raw)
        host_path = fs_tools.translate_path(self.prefix, command.executable)
        if command.executable and host_path.exists():
            return self.runner.run_executable(host_path, command.arguments)
        return self.runner.start_unix(command.executable.strip('"'), command.arguments)

    def _remove_manually(self, record: ApplicationRecord) -> RemovalOutcome:
        if not record.install_location:
            self._output(f"No uninstall information for {record.name}, nothing to do.")
            return RemovalOutcome.NOTHING_TO_DO

        target = fs_tools.resolve_location(self.prefix, record.install_location)
        self._output(f"No uninstaller found. Consider removing: {target}")
        if not self._ask(f"Delete directory '{target}' now?"):
            self._output(f"Skipped manual removal for {record.name}")
            return RemovalOutcome.SKIPPED
        if fs_tools.remove_path(target):
            return RemovalOutcome.REMOVED
        return RemovalOutcome.FAILED


def run_session(
    prefix: Path,
    records: Sequence[ApplicationRecord],
    orchestrator: RemovalOrchestrator,
    *,
    input_func: Optional[confirm.InputFunc] = None,
    output: Callable[[str], None] = print,
) -> List[Tuple[ApplicationRecord, RemovalOutcome]]:
    """!
    @brief Menu, selection, aggregate confirmation and removal for a prefix.
    @returns Per-application outcomes; empty when nothing was selected or the
    operator declined.
    @raises confirm.UserAbort When the operator quits at the menu.
    """

    human_logger = logging_ext.get_human_logger()
    selected = ui.select_applications(prefix, records, input_func=input_func, output=output)
    if not selected:
        output("No valid selections made. Exiting.")
        return []

    plan = RemovalPlan(tuple(selected))
    plan.confirmed = confirm.ask_yes_no(
        f"Confirm uninstall of {len(selected)} selected apps?", input_func=input_func
    )
    if not plan.confirmed:
        output("Aborted by user.")
        return []

    results = orchestrator.execute(plan)
    output("")
    output("Summary:")
    for record, outcome in results:
        output(f"  {record.name}: {outcome.value.replace('_', ' ')}")
    human_logger.info("Processed %d application(s) in %s", len(results), prefix)
    return results
