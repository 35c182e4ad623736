# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Structured JSON logger for pairharvest.

Every log entry is one JSON line with a timestamp, level, source module and
message. Anything passed through `extra=` is merged into the same object, so
a failed pair shows up as:

  {"ts": "...", "level": "ERROR", "module": "pairharvest.pipeline.downloader",
   "msg": "Failed to download program pair", "pair": "yes", "error": "..."}

Handlers are attached once, to the `pairharvest` package logger. Module
loggers returned by `get_logger` propagate to it, which lets a single
`--log-level` switch control the whole package.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

PACKAGE_LOGGER_NAME = "pairharvest"

_STANDARD_ATTRS = frozenset({
    "name",
    "msg",
    "args",
    "created",
    "relativeCreated",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "pathname",
    "filename",
    "module",
    "levelno",
    "levelname",
    "processName",
    "process",
    "threadName",
    "thread",
    "message",
    "msecs",
    "taskName",
})


class JsonFormatter(logging.Formatter):
    """
    Formats log records as single-line JSON objects.

    Mandatory fields:
      ts     ISO 8601 UTC timestamp
      level  log level name
      module the logger name
      msg    the formatted message string

    Exception info, when present, is rendered into an `exc` field.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "ts": datetime.now(tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "msg": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                entry[key] = value

        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _resolve_log_level(level_name: str) -> int:
    """Turn a level name string into the corresponding logging constant."""
    upper = level_name.upper()
    if upper not in _VALID_LOG_LEVELS:
        raise ValueError(
            f"Invalid log level '{level_name}'. Must be one of: {', '.join(sorted(_VALID_LOG_LEVELS))}"
        )
    return getattr(logging, upper)


def configure_logging(
    log_level: Optional[str] = None,
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Attach the JSON handlers to the package logger and set its level.

    Safe to call repeatedly: the stdout handler is added once, a file handler
    is added once per distinct path, and the level is only changed when one
    is given.
    """
    package_logger = logging.getLogger(PACKAGE_LOGGER_NAME)

    if log_level is not None:
        level = _resolve_log_level(log_level)
    elif package_logger.level != logging.NOTSET:
        level = package_logger.level
    else:
        level = logging.INFO

    package_logger.setLevel(level)
    formatter = JsonFormatter()

    has_stream = any(
        type(handler) is logging.StreamHandler for handler in package_logger.handlers
    )
    if not has_stream:
        stdout_handler = logging.StreamHandler(stream=sys.stdout)
        stdout_handler.setFormatter(formatter)
        package_logger.addHandler(stdout_handler)

    if log_file is not None:
        target = str(log_file.resolve())
        already_attached = any(
            isinstance(handler, logging.FileHandler) and handler.baseFilename == target
            for handler in package_logger.handlers
        )
        if not already_attached:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
            file_handler.setFormatter(formatter)
            package_logger.addHandler(file_handler)

    for handler in package_logger.handlers:
        handler.setLevel(level)

    # Don't propagate to root logger, we handle all output ourselves.
    package_logger.propagate = False

    return package_logger


def get_logger(
    name: str,
    log_level: Optional[str] = None,
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Create a structured JSON logger.

    This is the only sanctioned way to get a logger in pairharvest. Modules
    call it once at the top with __name__.

    Args:
        name: Logger name, typically __name__ of the calling module.
        log_level: Optional level to apply to the whole package.
        log_file: Optional path to a log file mirrored alongside stdout.

    Returns:
        A logging.Logger whose records end up as JSON lines.
    """
    package_logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    if log_level is not None or log_file is not None or not package_logger.handlers:
        configure_logging(log_level, log_file)

    if name == PACKAGE_LOGGER_NAME or name.startswith(PACKAGE_LOGGER_NAME + "."):
        return logging.getLogger(name)

    # Foreign names are nested under the package so they share its handlers.
    return logging.getLogger(f"{PACKAGE_LOGGER_NAME}.{name}")
