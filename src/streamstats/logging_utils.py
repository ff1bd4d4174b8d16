"""Logging helpers for :mod:`streamstats`."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

__all__ = ["configure_logging", "get_logger", "get_log_file_path"]

_LOGGER_NAME = "streamstats"
_ENV_LEVEL = "STREAMSTATS_LOG_LEVEL"
_ENV_FILE = "STREAMSTATS_LOG_FILE"
_FORMATTER = logging.Formatter(
    fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)


@dataclass
class _LoggingState:
    """Handlers installed on the package logger by :func:`configure_logging`."""

    level: Optional[int] = None
    stream_handler: Optional[logging.Handler] = None
    file_handler: Optional[logging.FileHandler] = None

    @property
    def configured(self) -> bool:
        return self.stream_handler is not None


_state = _LoggingState()


def _level_from_name(value: str) -> int:
    """Map a level name or number to a logging level, defaulting to INFO."""

    name = value.strip().upper()
    if name.isdigit():
        number = int(name)
        return number if number <= logging.CRITICAL else logging.INFO
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def _swap_file_handler(logger: logging.Logger, destination: str) -> None:
    """Replace the file handler; an empty *destination* turns file output off."""

    if _state.file_handler is not None:
        logger.removeHandler(_state.file_handler)
        _state.file_handler.close()
        _state.file_handler = None
    if not destination:
        return

    path = Path(destination).expanduser()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding="utf8")
    except OSError:
        logger.warning("Failed to set up file logging at %s", path)
        return
    handler.setFormatter(_FORMATTER)
    logger.addHandler(handler)
    _state.file_handler = handler
    logger.debug("File logging enabled at %s", path)


def configure_logging(
    *,
    level: Optional[str] = None,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """Configure the package logger, or update an existing configuration.

    The first call installs a stream handler and, when a destination is
    given through ``log_file`` or ``STREAMSTATS_LOG_FILE``, a file handler.
    Later calls only adjust the level and swap the file destination when a
    new one is requested explicitly.
    """

    logger = logging.getLogger(_LOGGER_NAME)
    requested = level if level is not None else os.getenv(_ENV_LEVEL)

    if not _state.configured:
        logger.propagate = False
        _state.stream_handler = logging.StreamHandler()
        _state.stream_handler.setFormatter(_FORMATTER)
        logger.addHandler(_state.stream_handler)
        destination = log_file if log_file is not None else os.getenv(_ENV_FILE)
        if destination:
            _swap_file_handler(logger, destination)
    elif log_file is not None:
        _swap_file_handler(logger, log_file)

    if requested is not None:
        _state.level = _level_from_name(requested)
    elif _state.level is None:
        _state.level = logging.INFO

    logger.setLevel(_state.level)
    for handler in logger.handlers:
        handler.setLevel(_state.level)
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a module-specific logger."""

    base = configure_logging()
    if not name or name == base.name:
        return base
    if name.startswith(base.name + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{base.name}.{name}")


def get_log_file_path() -> Optional[Path]:
    """Return the active log file, if file logging is enabled."""

    if _state.file_handler is None:
        return None
    return Path(_state.file_handler.baseFilename)
