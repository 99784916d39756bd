"""!
@brief Subprocess execution helpers with sanitised environments.
@details Centralises invocation of :func:`subprocess.run` so the Wine runner,
the cache refresh utilities and ``sudo`` share the same logging and
environment handling. Every call emits ``<event>_plan`` followed by one of
``<event>_result``, ``<event>_missing`` or ``<event>_error`` on the machine
channel. Failures are reported through the returned :class:`CommandResult`,
never raised.
"""

from __future__ import annotations

import os
import subprocess
import time
from collections.abc import Mapping, MutableMapping, Sequence
from dataclasses import dataclass

from . import logging_ext

_SANITIZE_BLOCKLIST = {
    "PYTHONPATH",
    "PYTHONHOME",
    "PYTHONWARNINGS",
    "VIRTUAL_ENV",
    "PIP_REQUIRE_VIRTUALENV",
    "CONDA_PREFIX",
    "CONDA_DEFAULT_ENV",
    "PYENV_VERSION",
    "POETRY_ACTIVE",
    "__PYVENV_LAUNCHER__",
}


@dataclass
class CommandResult:
    """!
    @brief Outcome information from :func:`run_command`.
    @details ``unavailable`` is ``True`` when the tool was never spawned
    because it is not installed; see :mod:`wine_janitor.capabilities`.
    """

    command: Sequence[str]
    returncode: int
    stdout: str
    stderr: str
    duration: float
    unavailable: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.unavailable and self.error is None


def sanitize_environment(
    *,
    base_env: Mapping[str, str] | None = None,
    extra: Mapping[str, str] | None = None,
) -> MutableMapping[str, str]:
    """!
    @brief Produce a subprocess environment stripped of virtualenv artefacts.
    @details ``base_env`` defaults to :data:`os.environ`. Variables that leak
    the interpreter's own environment into children are dropped, then
    ``extra`` is applied.
    """

    source = os.environ if base_env is None else base_env
    environment: MutableMapping[str, str] = {
        str(k): str(v) for k, v in source.items() if v is not None
    }

    for key in _SANITIZE_BLOCKLIST:
        environment.pop(key, None)
    for key, value in (extra or {}).items():
        environment[str(key)] = str(value)

    return environment


def _result_payload(
    *,
    return_code: int,
    duration: float,
    stdout: str = "",
    stderr: str = "",
    error: str | None = None,
) -> dict[str, object]:
    return {
        "rc": return_code,
        "duration_ms": round(duration * 1000, 3),
        "stdout": stdout,
        "stderr": stderr,
        "error": error,
    }


def run_command(
    command: Sequence[str],
    *,
    event: str,
    human_message: str | None = None,
    env_overrides: Mapping[str, str] | None = None,
    capture: bool = True,
) -> CommandResult:
    """!
    @brief Execute ``command`` with consistent logging and environment hygiene.
    @param command Sequence of command arguments.
    @param event Base name for structured log events.
    @param human_message Optional message emitted to the human logger before
    execution.
    @param env_overrides Mapping applied after sanitisation.
    @param capture When ``False`` the child inherits the terminal so
    interactive uninstallers can talk to the operator.
    @returns :class:`CommandResult` describing the observed outcome.
    """

    human_logger = logging_ext.get_human_logger()
    machine_logger = logging_ext.get_machine_logger()

    command_list = [str(part) for part in command]
    call = {"command": list(command_list)}
    machine_logger.info(f"{event}_plan", extra=logging_ext.build_event_extra(f"{event}_plan", call=call))

    if human_message:
        human_logger.info(human_message)

    environment = sanitize_environment(extra=env_overrides)

    def _failure(suffix: str, return_code: int, duration: float, error: str) -> None:
        machine_logger.error(
            f"{event}_{suffix}",
            extra=logging_ext.build_event_extra(
                f"{event}_{suffix}",
                call=call,
                result=_result_payload(return_code=return_code, duration=duration, error=error),
            ),
        )

    start = time.monotonic()
    try:
        completed = subprocess.run(  # noqa: S603 - intentional command execution
            command_list,
            capture_output=capture,
            text=True,
            check=False,
            env=dict(environment),
        )
    except FileNotFoundError as exc:
        duration = time.monotonic() - start
        human_logger.error("Command not found: %s", command_list[0])
        _failure("missing", 127, duration, str(exc))
        return CommandResult(command_list, 127, "", "", duration, error=str(exc))
    except OSError as exc:
        duration = time.monotonic() - start
        human_logger.error("Failed to execute %s: %s", command_list[0], exc)
        _failure("error", 1, duration, str(exc))
        return CommandResult(command_list, 1, "", "", duration, error=str(exc))

    duration = time.monotonic() - start
    stdout = completed.stdout or ""
    stderr = completed.stderr or ""
    machine_logger.info(
        f"{event}_result",
        extra=logging_ext.build_event_extra(
            f"{event}_result",
            call=call,
            result=_result_payload(
                return_code=completed.returncode,
                duration=duration,
                stdout=stdout,
                stderr=stderr,
            ),
        ),
    )

    if completed.returncode != 0:
        human_logger.warning("Command %s exited with %s", command_list[0], completed.returncode)

    return CommandResult(command_list, completed.returncode, stdout, stderr, duration)
