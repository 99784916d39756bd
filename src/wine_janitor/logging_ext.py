"""!
@brief Structured logging helpers for Wine Janitor.
@details Implements a dual-stream pipeline: a human-readable text channel and
a JSONL telemetry channel, both written to rotating files. Warnings on the
human channel are mirrored to ``stderr`` so interactive operators see them.
Startup metadata sourced from :mod:`wine_janitor.version` is recorded so log
bundles from different runs can be told apart.
"""
from __future__ import annotations

import datetime as _dt
import json
import logging
import sys
import uuid
from logging import handlers
from pathlib import Path
from typing import Dict, Iterable, Tuple

from . import version

HUMAN_LOGGER_NAME = "wine_janitor.human"
"""!
@brief Logger name for human-readable output.
"""

MACHINE_LOGGER_NAME = "wine_janitor.machine"
"""!
@brief Logger name for JSONL telemetry output.
"""

_STANDARD_RECORD_KEYS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "message",
        "asctime",
        "channel",
    }
)


class _ChannelFilter(logging.Filter):
    """!
    @brief Inject a fixed ``channel`` attribute on log records.
    """

    def __init__(self, channel: str) -> None:
        super().__init__()
        self._channel = channel

    def filter(self, record: logging.LogRecord) -> bool:
        record.channel = self._channel
        return True


class _JsonLineFormatter(logging.Formatter):
    """!
    @brief Format ``LogRecord`` instances as single-line JSON objects.
    @details Standard metadata (timestamp, level, logger and message) is merged
    with any ``extra`` attributes provided by callers. Values that are not JSON
    serializable are coerced to their ``repr``.
    """

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - concise override
        moment = _dt.datetime.fromtimestamp(record.created, tz=_dt.timezone.utc)
        payload: Dict[str, object] = {
            "timestamp": moment.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "channel": getattr(record, "channel", "machine"),
        }
        payload.update(_extract_extras(record))
        try:
            return json.dumps(payload, ensure_ascii=False)
        except TypeError:
            sanitized = {key: _coerce_json(value) for key, value in payload.items()}
            return json.dumps(sanitized, ensure_ascii=False)


def _extract_extras(record: logging.LogRecord) -> Dict[str, object]:
    extras: Dict[str, object] = {}
    for key, value in record.__dict__.items():
        if key in _STANDARD_RECORD_KEYS:
            continue
        extras[key] = value
    return extras


def _coerce_json(value: object) -> object:
    try:
        json.dumps(value)
    except TypeError:
        return repr(value)
    return value


def _configure_logger(
    logger: logging.Logger, formatter: logging.Formatter, handlers_to_add: Iterable[logging.Handler]
) -> None:
    """!
    @brief Reset a logger and attach the supplied handlers.
    """

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for flt in list(logger.filters):
        logger.removeFilter(flt)
    for handler in handlers_to_add:
        if handler.formatter is None:
            handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.propagate = False


def build_event_extra(event: str, **payload: object) -> Dict[str, object]:
    """!
    @brief Build the ``extra`` mapping for a machine log event.
    @details Keeps the ``event`` key uniform so JSONL consumers can filter on
    it without knowing which module emitted the record.
    """

    extra: Dict[str, object] = {"event": event}
    extra.update(payload)
    return extra


def setup_logging(
    root_dir: Path,
    *,
    json_to_stdout: bool = False,
    level: int = logging.INFO,
    console_level: int = logging.WARNING,
) -> Tuple[logging.Logger, logging.Logger]:
    """!
    @brief Set up human and machine loggers.
    @details Returns the human-readable and structured event loggers. The log
    directory is created when missing and both streams rotate at 1 MiB.
    @param root_dir Directory receiving ``wine-janitor.log`` and
    ``wine-janitor.jsonl``.
    @param json_to_stdout Mirror machine events to ``stdout``.
    @param level Minimum level recorded in the log files.
    @param console_level Minimum human level mirrored to ``stderr``.
    """

    root_dir.mkdir(parents=True, exist_ok=True)

    human_logger = logging.getLogger(HUMAN_LOGGER_NAME)
    machine_logger = logging.getLogger(MACHINE_LOGGER_NAME)

    human_logger.setLevel(level)
    machine_logger.setLevel(level)

    human_formatter = logging.Formatter(
        "%(asctime)s %(levelname)-8s [%(channel)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    machine_formatter = _JsonLineFormatter()

    human_file = handlers.RotatingFileHandler(
        root_dir / "wine-janitor.log",
        maxBytes=1_048_576,
        backupCount=5,
        encoding="utf-8",
    )
    machine_file = handlers.RotatingFileHandler(
        root_dir / "wine-janitor.jsonl",
        maxBytes=1_048_576,
        backupCount=5,
        encoding="utf-8",
    )

    console = logging.StreamHandler(stream=sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))

    machine_handlers: list[logging.Handler] = [machine_file]
    if json_to_stdout:
        machine_handlers.append(logging.StreamHandler(stream=sys.stdout))

    _configure_logger(human_logger, human_formatter, [human_file, console])
    _configure_logger(machine_logger, machine_formatter, machine_handlers)

    human_logger.addFilter(_ChannelFilter("human"))
    machine_logger.addFilter(_ChannelFilter("machine"))

    _emit_run_metadata(human_logger, machine_logger, root_dir)

    return human_logger, machine_logger


def get_human_logger() -> logging.Logger:
    """!
    @brief Retrieve the configured human-readable logger.
    """

    return logging.getLogger(HUMAN_LOGGER_NAME)


def get_machine_logger() -> logging.Logger:
    """!
    @brief Retrieve the configured machine/JSON logger.
    """

    return logging.getLogger(MACHINE_LOGGER_NAME)


def _emit_run_metadata(
    human_logger: logging.Logger, machine_logger: logging.Logger, root_dir: Path
) -> None:
    moment = _dt.datetime.now(tz=_dt.timezone.utc)
    metadata: Dict[str, object] = {
        "run_id": uuid.uuid4().hex,
        "timestamp": moment.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        "version": version.__version__,
        "build": version.__build__,
        "python": sys.version.split()[0],
        "logdir": str(root_dir),
    }

    human_logger.info(
        "Wine Janitor %s (%s) starting, run %s",
        version.__version__,
        version.__build__,
        metadata["run_id"],
    )
    human_logger.info("Logs directory: %s", root_dir)

    machine_logger.info("run_start", extra=build_event_extra("run_start", run=metadata))
