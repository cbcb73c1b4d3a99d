"""
Logging for notegraph.

Everything logs under the ``notegraph`` logger. Library code only asks for
loggers; the CLI (or a host application) calls :func:`setup_logging` once.
Console output goes to stderr so CLI tables on stdout stay parseable.
"""

from __future__ import annotations

import logging
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Literal, Mapping

ROOT_LOGGER_NAME = "notegraph"

_loggers: dict[str, logging.Logger] = {}


def _short_name(name: str) -> str:
    if name.startswith(f"{ROOT_LOGGER_NAME}."):
        return name[len(ROOT_LOGGER_NAME) + 1:]
    return name


def _pairs(values: Mapping[str, Any]) -> str:
    return ", ".join(f"{key}={value}" for key, value in values.items())


class NoteGraphFormatter(logging.Formatter):
    """One line per record: time, level, module, message.

    ``graph.layout`` is shown instead of ``notegraph.graph.layout``. Levels
    are coloured only when ``use_colors`` is set, which ``setup_logging``
    does for terminals.
    """

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True, include_timestamp: bool = True):
        super().__init__()
        self.use_colors = use_colors
        self.include_timestamp = include_timestamp

    def format(self, record: logging.LogRecord) -> str:
        parts = []
        if self.include_timestamp:
            created = datetime.fromtimestamp(record.created, UTC)
            parts.append(f"[{created:%Y-%m-%d %H:%M:%S}]")

        level = f"{record.levelname:8}"
        if self.use_colors and record.levelname in self.LEVEL_COLORS:
            level = f"{self.LEVEL_COLORS[record.levelname]}{level}{self.RESET}"
        parts.append(level)
        parts.append(f"[{_short_name(record.name):20}]")
        parts.append(record.getMessage())

        if record.exc_info:
            parts.append(self.formatException(record.exc_info))
        return " ".join(parts)


def setup_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO",
    log_dir: str | Path | None = None,
    console_output: bool = True,
    file_output: bool = True,
    log_filename: str = "notegraph.log",
) -> None:
    """Install notegraph's handlers, replacing any from an earlier call.

    Args:
        level: Lowest level that is emitted
        log_dir: Where ``log_filename`` is written; no file without it
        console_output: Write to stderr
        file_output: Write to ``log_dir / log_filename``
        log_filename: Log file name

    Usage:
        setup_logging(level="DEBUG", log_dir="./logs")
    """
    threshold = getattr(logging, level)
    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    package_logger.setLevel(threshold)
    for handler in package_logger.handlers:
        handler.close()
    package_logger.handlers = []

    handlers: list[logging.Handler] = []
    if console_output:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(NoteGraphFormatter(use_colors=sys.stderr.isatty()))
        handlers.append(console)
    if file_output and log_dir is not None:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        log_file = logging.FileHandler(directory / log_filename, encoding="utf-8")
        log_file.setFormatter(NoteGraphFormatter(use_colors=False))
        handlers.append(log_file)

    for handler in handlers:
        handler.setLevel(threshold)
        package_logger.addHandler(handler)
    # The host's root logger keeps its own format
    package_logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``notegraph`` namespace.

    ``get_logger("graph.builder")`` and ``get_logger("notegraph.graph.builder")``
    return the same logger.
    """
    if name != ROOT_LOGGER_NAME and not name.startswith(f"{ROOT_LOGGER_NAME}."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    if name not in _loggers:
        _loggers[name] = logging.getLogger(name)
    return _loggers[name]


def log_operation(logger: logging.Logger, operation: str, details: Mapping[str, Any] | None = None) -> None:
    """INFO line such as ``Built graph: nodes=3, links=2``."""
    logger.info(f"{operation}: {_pairs(details)}" if details else operation)


def log_error(
    logger: logging.Logger,
    operation: str,
    error: Exception,
    context: Mapping[str, Any] | None = None,
) -> None:
    """ERROR line naming the failed operation, with the active traceback."""
    message = f"FAILED {operation}: {type(error).__name__}: {error}"
    if context:
        message = f"{message} | Context: {_pairs(context)}"
    logger.error(message, exc_info=True)
