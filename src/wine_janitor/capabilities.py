"""!
@brief External tool capabilities.
@details The Wine runner, the cache refresh utilities and ``sudo`` are not
assumed to exist. Each is represented by a :class:`Capability` resolved once
against ``PATH`` (or an injected resolver in tests). Running an absent tool
produces a :class:`~wine_janitor.exec_utils.CommandResult` flagged
``unavailable`` instead of spawning a process.
"""
from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Optional, Sequence

from . import exec_utils, logging_ext

Resolver = Callable[[str], Optional[str]]


@dataclass
class Capability:
    """!
    @brief A named external executable that may or may not be installed.
    """

    name: str
    path: str | None = None

    @property
    def available(self) -> bool:
        return bool(self.path)

    def run(
        self,
        arguments: Sequence[str] = (),
        *,
        event: str | None = None,
        prefix: Sequence[str] = (),
        **kwargs: object,
    ) -> exec_utils.CommandResult:
        """!
        @brief Execute the tool with ``arguments``.
        @param prefix Words placed before the executable, e.g. ``["sudo"]``.
        @param kwargs Forwarded to :func:`exec_utils.run_command`.
        """

        event_name = event or self.name.replace("-", "_")
        if not self.available:
            logging_ext.get_human_logger().debug("%s is not installed; skipping", self.name)
            logging_ext.get_machine_logger().info(
                f"{event_name}_unavailable",
                extra=logging_ext.build_event_extra(f"{event_name}_unavailable", tool=self.name),
            )
            return unavailable_result(self.name, arguments)
        command = [*prefix, str(self.path), *arguments]
        return exec_utils.run_command(command, event=event_name, **kwargs)  # type: ignore[arg-type]


def unavailable_result(name: str, arguments: Sequence[str] = ()) -> exec_utils.CommandResult:
    """!
    @brief Typed outcome for a tool that is not present on the host.
    """

    return exec_utils.CommandResult(
        command=[name, *[str(arg) for arg in arguments]],
        returncode=127,
        stdout="",
        stderr="",
        duration=0.0,
        unavailable=True,
        error=f"{name} is not available",
    )


@dataclass
class ToolRegistry:
    """!
    @brief Lazily resolved set of capabilities keyed by tool name.
    @details ``overrides`` maps a tool name to an explicit executable path,
    which is how ``$WINE`` selects an alternative runner binary.
    """

    resolver: Resolver = shutil.which
    overrides: Mapping[str, str] = field(default_factory=dict)
    _cache: Dict[str, Capability] = field(default_factory=dict, init=False, repr=False)

    def get(self, name: str) -> Capability:
        cached = self._cache.get(name)
        if cached is not None:
            return cached
        candidate = self.overrides.get(name) or name
        capability = Capability(name=name, path=self.resolver(candidate))
        self._cache[name] = capability
        return capability

    def missing(self, names: Sequence[str]) -> list[str]:
        """!
        @brief Return the subset of ``names`` that cannot be resolved.
        """

        return [name for name in names if not self.get(name).available]
