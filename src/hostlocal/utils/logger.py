"""
Logging utilities for hostlocal, built on loguru.

Modules obtain a logger with ``get_logger(__name__)``. The plugin entry point
calls ``configure_logging`` once per process and wraps every CNI command in
``invocation_logger``, which attaches a file sink scoped to that single
invocation and detaches it again when the command finishes.
"""

from __future__ import annotations

import sys
import traceback
import uuid
from collections.abc import Iterator
from contextlib import contextmanager

from loguru import logger as _logger

from hostlocal.models.enums import LogLevel

LOG_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "
    "{extra[component]}:{line} | {message}"
)
INVOCATION_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "
    "{extra[command]} {extra[container_id]} | "
    "{extra[component]}:{line} | {message}"
)

_LEVEL_MAP = {
    LogLevel.FULL: "TRACE",
    LogLevel.DEBUG: "DEBUG",
    LogLevel.INFO: "INFO",
    LogLevel.WARNING: "WARNING",
}


def loguru_level(level: LogLevel | str) -> str:
    """Translate a LogLevel (or its value) into a loguru level name."""
    return _LEVEL_MAP[LogLevel(level)]


def get_logger(name: str):
    """Get a logger bound to a component name."""
    return _logger.bind(component=name)


def configure_logging(level: LogLevel = LogLevel.WARNING) -> None:
    """
    Reset loguru sinks and log to stderr at the given level.

    stdout is reserved for the CNI result, so the console sink always
    targets stderr.
    """
    _logger.remove()
    _logger.configure(extra={"component": "hostlocal"})
    _logger.add(sys.stderr, level=loguru_level(level), format=LOG_FORMAT)


@contextmanager
def invocation_logger(
    command: str,
    container_id: str,
    log_file: str = "",
    level: LogLevel = LogLevel.INFO,
) -> Iterator:
    """
    Scope a logging sink to a single plugin invocation.

    Every record emitted inside the block (from any module) carries the
    invocation id. When ``log_file`` is set, a file sink accepting only those
    records is added for the duration of the block; otherwise nothing is
    written anywhere beyond the process-wide sinks.

    Yields:
        A logger bound to the command and container id.
    """
    invocation_id = uuid.uuid4().hex[:12]
    sink_id = None

    if log_file:
        sink_id = _logger.add(
            log_file,
            level=loguru_level(level),
            format=INVOCATION_FORMAT,
            filter=lambda record: record["extra"].get("invocation") == invocation_id,
        )

    try:
        with _logger.contextualize(
            invocation=invocation_id, command=command, container_id=container_id
        ):
            yield _logger.bind(component="hostlocal.invocation")
    finally:
        if sink_id is not None:
            _logger.remove(sink_id)


def format_traceback(exc: BaseException) -> str:
    """Render an exception with its traceback as a single string."""
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
