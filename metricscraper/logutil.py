"""Level-gated logging helpers shared by the scraper components."""

from __future__ import annotations

import enum
import logging


class Level(enum.IntEnum):
    """Verbosity levels, from most to least chatty."""

    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3
    FATAL = 4


class FatalError(RuntimeError):
    """Raised when a fatal message is logged and the program must stop."""


_logger = logging.getLogger("metricscraper")
_current_level = Level.INFO


def set_level(level: Level | int) -> None:
    """Set the process-wide log level."""
    global _current_level
    _current_level = Level(level)


def get_level() -> Level:
    """Return the process-wide log level."""
    return _current_level


def _render(message: str, args: tuple) -> str:
    return message % args if args else message


def debug_log(message: str, *args) -> bool:
    """Log at debug level; only emitted when the level is exactly DEBUG."""
    if _current_level == Level.DEBUG:
        _logger.debug(message, *args)
        return True
    return False


def info_log(message: str, *args) -> bool:
    """Log at info level when the current level is INFO or higher."""
    if _current_level >= Level.INFO:
        _logger.info(message, *args)
        return True
    return False


def warning_log(message: str, *args) -> bool:
    """Log a warning when the current level is WARNING or higher."""
    if _current_level >= Level.WARNING:
        _logger.warning(message, *args)
        return True
    return False


def error_log(message: str, *args) -> bool:
    """Log an error when the current level is ERROR or higher."""
    if _current_level >= Level.ERROR:
        _logger.error(message, *args)
        return True
    return False


def fatal_log(message: str, *args) -> bool:
    """Log and raise FatalError when the current level is FATAL.

    At any lower level the message is dropped and False is returned.
    """
    if _current_level >= Level.FATAL:
        text = _render(message, args)
        _logger.critical(text)
        raise FatalError(text)
    return False