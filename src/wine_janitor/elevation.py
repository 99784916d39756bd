"""!
@brief Privileged-account detection and ``sudo`` escalation helpers.
@details Wine prefixes belong to the invoking user, so the tool refuses to run
as root. Only the system-scope artifact cleanup needs elevated rights; it
authenticates once through ``sudo -v`` and then runs each command through
``sudo`` while the credential cache is warm.
"""
from __future__ import annotations

import os
from typing import Sequence

from . import constants, exec_utils, logging_ext
from .capabilities import Capability, unavailable_result


def is_privileged_user() -> bool:
    """!
    @brief Determine whether the current process runs under the root account.
    """

    geteuid = getattr(os, "geteuid", None)
    if geteuid is None:  # pragma: no cover - non-POSIX host
        return False
    try:
        return geteuid() == 0
    except OSError:
        return False


class Escalator:
    """!
    @brief Batch privilege escalation through ``sudo``.
    @details :meth:`authenticate` must succeed before :meth:`run` executes
    anything; an unauthenticated escalator refuses every command.
    """

    def __init__(self, sudo: Capability) -> None:
        self._sudo = sudo
        self._authenticated = False

    @property
    def available(self) -> bool:
        return self._sudo.available

    @property
    def authenticated(self) -> bool:
        return self._authenticated

    def authenticate(self) -> bool:
        """!
        @brief Prompt for credentials once for the whole batch.
        @returns ``True`` when ``sudo -v`` succeeded.
        """

        human_logger = logging_ext.get_human_logger()
        if not self._sudo.available:
            human_logger.warning("sudo is not available; skipping privileged cleanup.")
            return False
        result = self._sudo.run(["-v"], event="sudo_validate", capture=False)
        if not result.ok:
            human_logger.warning(
                "sudo authentication failed or was cancelled. Skipping privileged cleanup."
            )
            return False
        self._authenticated = True
        return True

    def run(self, command: Sequence[str], *, event: str) -> exec_utils.CommandResult:
        """!
        @brief Execute ``command`` under ``sudo``.
        """

        if not self._authenticated:
            return unavailable_result(constants.SUDO_BINARY, command)
        return self._sudo.run(list(command), event=event)


__all__ = ["Escalator", "is_privileged_user"]
