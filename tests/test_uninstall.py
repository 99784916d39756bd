"""!
@brief Validate the removal decision procedure.
@details Ensures :mod:`wine_janitor.uninstall` classifies uninstall strings,
routes them to the right runner entry point, handles manual removal and
always runs leftover cleanup and the ``wineserver`` shutdown.
"""

from __future__ import annotations

import pathlib
import sys
from typing import Iterator, List, Tuple

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from wine_janitor import detect, exec_utils, uninstall  # noqa: E402
from wine_janitor.capabilities import Capability  # noqa: E402
from wine_janitor.detect import ApplicationRecord  # noqa: E402
from wine_janitor.uninstall import RemovalOutcome, RemovalPlan, UninstallKind  # noqa: E402
from wine_janitor.wine import WineRunner  # noqa: E402


def _result(command: List[str], returncode: int = 0) -> exec_utils.CommandResult:
    return exec_utils.CommandResult(command=command, returncode=returncode, stdout="", stderr="", duration=0.1)


class _FakeRunner:
    """!
    @brief Runner stand-in recording every invocation.
    """

    def __init__(self, returncode: int = 0, shutdown_error: bool = False) -> None:
        self.calls: List[Tuple[str, tuple]] = []
        self.returncode = returncode
        self.shutdown_error = shutdown_error

    def run_verbatim(self, command_line):
        self.calls.append(("verbatim", (command_line,)))
        return _result(command_line.split(), self.returncode)

    def run_executable(self, executable, arguments=""):
        self.calls.append(("executable", (executable, arguments)))
        return _result([str(executable)], self.returncode)

    def start_unix(self, executable, arguments=""):
        self.calls.append(("start", (executable, arguments)))
        return _result(["start", executable], self.returncode)

    def shutdown_server(self):
        self.calls.append(("shutdown", ()))
        if self.shutdown_error:
            raise OSError("wineserver vanished")
        return _result(["wineserver", "-k"])


class _FakeCleaner:
    def __init__(self, error: bool = False) -> None:
        self.names: List[str] = []
        self.error = error

    def clean(self, name: str) -> None:
        self.names.append(name)
        if self.error:
            raise OSError("disk full")


def _answers(*values: str):
    iterator: Iterator[str] = iter(values)
    prompts: List[str] = []

    def _input(prompt: str) -> str:
        prompts.append(prompt)
        return next(iterator)

    _input.prompts = prompts  # type: ignore[attr-defined]
    return _input


def _orchestrator(prefix, runner, cleaner, input_func, output=None):
    lines: List[str] = []
    orchestrator = uninstall.RemovalOrchestrator(
        prefix=prefix,
        runner=runner,
        cleaner=cleaner,
        input_func=input_func,
        output=output or lines.append,
    )
    return orchestrator, lines


@pytest.mark.parametrize(
    ("command_line", "expected"),
    [
        ('"C:\\Program Files\\Foo\\uninst.exe" /S', ('"C:\\Program Files\\Foo\\uninst.exe"', "/S")),
        ("C:\\Program Files\\Foo\\uninst.exe", ("C:\\Program Files\\Foo\\uninst.exe", "")),
        ("C:\\Foo\\unins000.exe /SILENT /NORESTART", ("C:\\Foo\\unins000.exe", "/SILENT /NORESTART")),
        ("C:\\tools\\remove --all", ("C:\\tools\\remove", "--all")),
        ("   ", ("", "")),
    ],
)
def test_split_command_line(command_line: str, expected: Tuple[str, str]) -> None:
    """!
    @brief Executable tokens survive quoting and spaces in paths.
    """

    assert uninstall.split_command_line(command_line) == expected


def test_classify_uninstall_string_detects_msiexec() -> None:
    """!
    @brief ``msiexec`` in any case marks a runner-native command line.
    """

    command = uninstall.classify_uninstall_string("MsiExec.exe /X{1234-ABCD}")

    assert command.kind is UninstallKind.MSI
    assert command.raw == "MsiExec.exe /X{1234-ABCD}"
    assert uninstall.classify_uninstall_string("C:\\a\\b.exe").kind is UninstallKind.EXECUTABLE


def test_uninstaller_runs_translated_path_when_present(tmp_path) -> None:
    """!
    @brief Existing host executables are run directly with their arguments.
    """

    exe = tmp_path / "drive_c" / "Program Files" / "Foo" / "uninst.exe"
    exe.parent.mkdir(parents=True)
    exe.write_bytes(b"MZ")
    runner, cleaner = _FakeRunner(), _FakeCleaner()
    orchestrator, lines = _orchestrator(tmp_path, runner, cleaner, _answers("y"))
    record = ApplicationRecord(0, "Foo App", uninstall_string='"C:\\Program Files\\Foo\\uninst.exe" /S')

    outcome = orchestrator.process(record)

    assert outcome is RemovalOutcome.UNINSTALLED
    assert runner.calls[0] == ("executable", (exe, "/S"))
    assert runner.calls[-1] == ("shutdown", ())
    assert cleaner.names == ["Foo App"]


def test_uninstaller_falls_back_to_start_unix_with_original_token(tmp_path) -> None:
    """!
    @brief Missing host paths are handed back to Wine untranslated.
    """

    runner, cleaner = _FakeRunner(), _FakeCleaner()
    orchestrator, _ = _orchestrator(tmp_path, runner, cleaner, _answers("yes"))
    record = ApplicationRecord(0, "Bar", uninstall_string="C:\\Bar\\remove.exe /quiet")

    orchestrator.process(record)

    assert runner.calls[0] == ("start", ("C:\\Bar\\remove.exe", "/quiet"))


def test_msi_uninstall_passes_through_verbatim(tmp_path) -> None:
    """!
    @brief ``msiexec`` strings are not translated or split into a path.
    """

    runner, cleaner = _FakeRunner(), _FakeCleaner()
    orchestrator, _ = _orchestrator(tmp_path, runner, cleaner, _answers("y"))
    record = ApplicationRecord(0, "Msi App", uninstall_string="msiexec /x {GUID}")

    orchestrator.process(record)

    assert runner.calls[0] == ("verbatim", ("msiexec /x {GUID}",))


def test_uninstaller_failure_is_a_warning_and_cleanup_still_runs(tmp_path) -> None:
    """!
    @brief A non-zero exit does not stop leftover cleanup or shutdown.
    """

    runner, cleaner = _FakeRunner(returncode=3), _FakeCleaner()
    orchestrator, _ = _orchestrator(tmp_path, runner, cleaner, _answers("y"))
    record = ApplicationRecord(0, "Broken", uninstall_string="C:\\x\\u.exe")

    outcome = orchestrator.process(record)

    assert outcome is RemovalOutcome.UNINSTALLER_FAILED
    assert cleaner.names == ["Broken"]
    assert runner.calls[-1] == ("shutdown", ())


def test_declined_uninstaller_is_skipped_but_cleaned(tmp_path) -> None:
    """!
    @brief Declining the per-application prompt runs nothing destructive.
    """

    runner, cleaner = _FakeRunner(), _FakeCleaner()
    orchestrator, _ = _orchestrator(tmp_path, runner, cleaner, _answers("n"))
    record = ApplicationRecord(0, "Keep", uninstall_string="C:\\x\\u.exe")

    outcome = orchestrator.process(record)

    assert outcome is RemovalOutcome.SKIPPED
    assert [call[0] for call in runner.calls] == ["shutdown"]
    assert cleaner.names == ["Keep"]


def test_manual_removal_translates_windows_location(tmp_path) -> None:
    """!
    @brief Accepted manual removal deletes the translated directory.
    """

    target = tmp_path / "drive_c" / "Games" / "Baz"
    target.mkdir(parents=True)
    (target / "baz.exe").write_bytes(b"MZ")
    runner, cleaner = _FakeRunner(), _FakeCleaner()
    input_func = _answers("y")
    orchestrator, _ = _orchestrator(tmp_path, runner, cleaner, input_func)
    record = ApplicationRecord(-1, "Baz", install_location="C:\\Games\\Baz")

    outcome = orchestrator.process(record)

    assert outcome is RemovalOutcome.REMOVED
    assert not target.exists()
    assert str(target) in input_func.prompts[0]


def test_manual_removal_declined_keeps_directory(tmp_path) -> None:
    """!
    @brief Declining leaves host-native directories alone.
    """

    target = tmp_path / "native"
    target.mkdir()
    runner, cleaner = _FakeRunner(), _FakeCleaner()
    orchestrator, _ = _orchestrator(tmp_path, runner, cleaner, _answers("N"))
    record = ApplicationRecord(-1, "Native", install_location=str(target))

    outcome = orchestrator.process(record)

    assert outcome is RemovalOutcome.SKIPPED
    assert target.exists()
    assert cleaner.names == ["Native"]


def test_nothing_to_do_without_location(tmp_path) -> None:
    """!
    @brief No uninstaller and no location means no prompt and no action.
    """

    runner, cleaner = _FakeRunner(), _FakeCleaner()
    input_func = _answers()
    orchestrator, lines = _orchestrator(tmp_path, runner, cleaner, input_func)

    outcome = orchestrator.process(ApplicationRecord(3, "Empty"))

    assert outcome is RemovalOutcome.NOTHING_TO_DO
    assert input_func.prompts == []
    assert any("nothing to do" in line for line in lines)
    assert cleaner.names == ["Empty"]


def test_cleanup_and_shutdown_failures_do_not_propagate(tmp_path) -> None:
    """!
    @brief Best-effort steps swallow their own failures.
    """

    runner, cleaner = _FakeRunner(shutdown_error=True), _FakeCleaner(error=True)
    orchestrator, _ = _orchestrator(tmp_path, runner, cleaner, _answers("y"))

    outcome = orchestrator.process(ApplicationRecord(0, "Flaky", uninstall_string="C:\\f.exe"))

    assert outcome is RemovalOutcome.UNINSTALLED


def test_removal_plan_is_consumed_once() -> None:
    """!
    @brief Plans refuse a second execution and an unconfirmed execution.
    """

    record = ApplicationRecord(0, "Once")
    unconfirmed = RemovalPlan((record,))
    with pytest.raises(RuntimeError):
        unconfirmed.consume()

    plan = RemovalPlan((record,), confirmed=True)
    assert plan.consume() == (record,)
    with pytest.raises(RuntimeError):
        plan.consume()


def test_run_session_invalid_selection_takes_no_action(tmp_path) -> None:
    """!
    @brief Only invalid tokens end the session before any confirmation.
    """

    runner, cleaner = _FakeRunner(), _FakeCleaner()
    input_func = _answers("0 99 abc -1")
    orchestrator, _ = _orchestrator(tmp_path, runner, cleaner, input_func)
    lines: List[str] = []

    results = uninstall.run_session(
        tmp_path, [ApplicationRecord(0, "Foo", uninstall_string="C:\\f.exe")], orchestrator,
        input_func=input_func, output=lines.append,
    )

    assert results == []
    assert runner.calls == []
    assert cleaner.names == []
    assert len(input_func.prompts) == 1
    assert "No valid selections made. Exiting." in lines


def test_run_session_aggregate_decline(tmp_path) -> None:
    """!
    @brief Declining the aggregate confirmation aborts before any step.
    """

    runner, cleaner = _FakeRunner(), _FakeCleaner()
    input_func = _answers("1 2", "n")
    orchestrator, _ = _orchestrator(tmp_path, runner, cleaner, input_func)
    lines: List[str] = []
    records = [ApplicationRecord(0, "A", uninstall_string="C:\\a.exe"), ApplicationRecord(1, "B")]

    results = uninstall.run_session(tmp_path, records, orchestrator, input_func=input_func, output=lines.append)

    assert results == []
    assert "Confirm uninstall of 2 selected apps?" in input_func.prompts[1]
    assert "Aborted by user." in lines
    assert runner.calls == []


def test_run_session_processes_valid_tokens_in_order(tmp_path) -> None:
    """!
    @brief Valid tokens survive alongside invalid ones and run sequentially.
    """

    runner, cleaner = _FakeRunner(), _FakeCleaner()
    input_func = _answers("2 x 7 1 2", "y")
    orchestrator, _ = _orchestrator(tmp_path, runner, cleaner, input_func)
    records = [ApplicationRecord(0, "First"), ApplicationRecord(1, "Second")]

    results = uninstall.run_session(tmp_path, records, orchestrator, input_func=input_func, output=lambda _l: None)

    assert [(record.name, outcome) for record, outcome in results] == [
        ("Second", RemovalOutcome.NOTHING_TO_DO),
        ("First", RemovalOutcome.NOTHING_TO_DO),
    ]
    assert cleaner.names == ["Second", "First"]


def test_end_to_end_registry_to_uninstaller(tmp_path, monkeypatch) -> None:
    """!
    @brief A registry entry is parsed, selected and its uninstaller executed.
    """

    prefix = tmp_path / "prefix"
    exe = prefix / "drive_c" / "Program Files" / "Foo" / "uninst.exe"
    exe.parent.mkdir(parents=True)
    exe.write_bytes(b"MZ")
    (prefix / "system.reg").write_text(
        "[Software\\Microsoft\\Windows\\CurrentVersion\\Uninstall\\Foo]\n"
        '"DisplayName"="Foo App"\n'
        '"UninstallString"="C:\\Program Files\\Foo\\uninst.exe"\n',
        encoding="utf-8",
    )

    executed: List[List[str]] = []

    def fake_run_command(command, **kwargs):
        executed.append(list(command))
        assert kwargs["env_overrides"] == {"WINEPREFIX": str(prefix)}
        return _result(list(command), 0)

    monkeypatch.setattr(exec_utils, "run_command", fake_run_command)
    runner = WineRunner(prefix, Capability("wine", "/usr/bin/wine"), Capability("wineserver", None))
    cleaner = _FakeCleaner()
    input_func = _answers("1", "y", "y")
    orchestrator, lines = _orchestrator(prefix, runner, cleaner, input_func)

    records = detect.build_inventory(prefix)
    results = uninstall.run_session(prefix, records, orchestrator, input_func=input_func, output=lines.append)

    assert [record.name for record in records] == ["Foo App"]
    assert executed == [["/usr/bin/wine", str(exe)]]
    assert results[0][1] is RemovalOutcome.UNINSTALLED
    assert any("finished successfully" in line for line in lines)
