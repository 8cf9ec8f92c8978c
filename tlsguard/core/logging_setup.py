"""
Logging Setup Module

This module provides:
1. A JSON-based logging formatter that emits each record as a single JSON line.
2. A RotatingFileHandler to enforce 5MB max file size, keeping 5 old log files.
3. Optional console output for interactive debugging.
4. A single function init_logging(...) to configure the root logger.
5. A get_logger(subsystem: str) helper to retrieve a subsystem-specific logger.
"""

import os
import sys
import json
import logging
from logging.handlers import RotatingFileHandler
from datetime import datetime, timezone
from typing import Optional

from tlsguard.core.constants import MAX_LOG_FILE_SIZE_MB, LOG_BACKUP_COUNT


class LoggingSetupError(Exception):
    """
    Raised when logging setup fails due to invalid paths or other errors.
    """
    pass


class JSONLogFormatter(logging.Formatter):
    """
    Formats log records as single-line JSON objects following the schema:
      {
        "timestamp": "UTC iso8601",
        "subsystem": "<string>",
        "event_code": "<string>",
        "message": "<string>",
        "schema_version": 1
      }
    """

    def format(self, record: logging.LogRecord) -> str:
        utc_dt = datetime.fromtimestamp(record.created, tz=timezone.utc).replace(microsecond=0, tzinfo=None)
        timestamp_str = utc_dt.isoformat() + "Z"

        log_dict = {
            "timestamp": timestamp_str,
            "subsystem": record.name,
            "event_code": record.levelname,
            "message": record.getMessage(),
            "schema_version": 1
        }
        if record.exc_info:
            log_dict["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_dict)


# Globals to track if we've already initialized logging
_LOGGING_INITIALIZED = False
_FILE_HANDLER: Optional[logging.Handler] = None
_CONSOLE_HANDLER: Optional[logging.Handler] = None


def init_logging(log_path: str,
                 debug_console: bool = False,
                 max_bytes: int = MAX_LOG_FILE_SIZE_MB * 1024 * 1024,
                 backup_count: int = LOG_BACKUP_COUNT) -> None:
    """
    Initializes the root logger with:
      - A rotating file handler pointed at `log_path`/tlsguard.log
      - Optionally a console handler on stdout
      - JSON formatting for all log records

    :param log_path: Directory path for log files. Created if missing.
    :param debug_console: If True, log records are mirrored to stdout.
    :param max_bytes: Max file size in bytes before rotating. Default 5 MB.
    :param backup_count: Number of old log files to keep. Default 5.

    :raises LoggingSetupError: If the log_path is invalid or we cannot create the log file.
    """
    global _LOGGING_INITIALIZED, _FILE_HANDLER, _CONSOLE_HANDLER

    if _LOGGING_INITIALIZED:
        return

    if not os.path.isdir(log_path):
        try:
            os.makedirs(log_path, exist_ok=True)
        except OSError as e:
            raise LoggingSetupError(f"Failed to create or access log path '{log_path}': {e}") from e

    logfile = os.path.join(log_path, "tlsguard.log")
    try:
        with open(logfile, mode="a", encoding="utf-8"):
            pass
    except OSError as e:
        raise LoggingSetupError(f"Cannot write to log file '{logfile}': {e}") from e

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)
    for h in list(root_logger.handlers):
        root_logger.removeHandler(h)

    # 1) File handler with rotation
    file_handler = RotatingFileHandler(
        filename=logfile,
        mode="a",
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8"
    )
    formatter = JSONLogFormatter()
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)
    _FILE_HANDLER = file_handler

    # 2) Console handler
    if debug_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)
        _CONSOLE_HANDLER = console_handler

    _LOGGING_INITIALIZED = True
    root_logger.info("Logging initialized. console_enabled=%s, log_path=%s", debug_console, logfile)


def shutdown_logging() -> None:
    """
    Detaches and closes the handlers installed by init_logging(), allowing a
    later init_logging() call to configure a fresh destination.
    """
    global _LOGGING_INITIALIZED, _FILE_HANDLER, _CONSOLE_HANDLER

    root_logger = logging.getLogger()
    for handler in (_FILE_HANDLER, _CONSOLE_HANDLER):
        if handler is not None:
            root_logger.removeHandler(handler)
            handler.close()
    _FILE_HANDLER = None
    _CONSOLE_HANDLER = None
    _LOGGING_INITIALIZED = False


def get_logger(subsystem: str) -> logging.Logger:
    """
    Returns a logger for a given subsystem name. Subsystem is typically
    a short string like 'session', 'hostname', 'socket_factory', etc.
    """
    return logging.getLogger(f"tlsguard.{subsystem}")
