"""Logging setup for applications embedding the engine."""
import logging
import logging.handlers
from pathlib import Path
from typing import List, Optional

from dictum.config import settings

# Libraries whose INFO output drowns out the engine's own messages
QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "urllib3")

LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUPS = 3

# Handlers added by setup_logging, replaced on every call
_installed: List[logging.Handler] = []


def _file_handler(path: str, formatter: logging.Formatter) -> logging.Handler:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )
    handler.setFormatter(formatter)
    return handler


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> logging.Logger:
    """Send engine logs to the console and, optionally, a rotating file.

    `level` and `log_file` override `settings.logging`. Handlers from an
    earlier call are swapped out, and handlers the host application put on
    the root logger are left alone. Returns the `dictum` logger.
    """
    level = (level or settings.logging.level).upper()
    log_file = log_file or settings.logging.file
    formatter = logging.Formatter(settings.logging.format)

    root_logger = logging.getLogger()
    while _installed:
        handler = _installed.pop()
        root_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    _installed.append(console_handler)
    if log_file:
        _installed.append(_file_handler(log_file, formatter))

    for handler in _installed:
        root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    engine_logger = logging.getLogger("dictum")
    engine_logger.info(f"Engine logging at {level}{f', writing to {log_file}' if log_file else ''}")
    return engine_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the specified name."""
    return logging.getLogger(name)
