"""Logging utilities for cgdescent.

All package loggers live under the ``cgdescent`` namespace and write to stderr.
The optimizer's diagnostic channels (see :class:`cgdescent.optimize.Display`)
are routed through these loggers.
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from typing import Iterator, Optional

_DEFAULT_LEVEL = logging.WARNING
_DEFAULT_FORMAT = "[%(levelname)s] %(name)s: %(message)s"

_loggers: dict[str, logging.Logger] = {}


def _coerce_level(level: int | str) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.WARNING)
    return level


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get or create a logger for the given module name.

    Args:
        name: Logger name (typically ``__name__``). If None, returns the
            package logger.

    Returns:
        Configured logger instance.

    Example:
        >>> from cgdescent.logging import get_logger
        >>> logger = get_logger(__name__)
        >>> logger.info("Starting line search")
    """
    if name is None:
        name = "cgdescent"
    if name == "cgdescent" or name.startswith("cgdescent."):
        logger_name = name
    else:
        logger_name = f"cgdescent.{name}"

    if logger_name in _loggers:
        return _loggers[logger_name]

    logger = logging.getLogger(logger_name)
    if not logger.handlers:
        logger.setLevel(_DEFAULT_LEVEL)
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(_DEFAULT_LEVEL)
        handler.setFormatter(logging.Formatter(_DEFAULT_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False

    _loggers[logger_name] = logger
    return logger


def set_log_level(level: int | str) -> None:
    """Set the logging level for all cgdescent loggers.

    Args:
        level: Logging level (``logging.DEBUG``, ``logging.INFO``, ...) or its
            name as a string.
    """
    global _DEFAULT_LEVEL
    level = _coerce_level(level)
    for logger in _loggers.values():
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setLevel(level)
    _DEFAULT_LEVEL = level


def configure_logging(
    level: int | str = logging.WARNING,
    format_string: Optional[str] = None,
    stream: Optional[object] = None,
) -> None:
    """Replace the handlers of every cgdescent logger.

    Args:
        level: Logging level (default: WARNING).
        format_string: Custom format string. If None, uses the default.
        stream: Output stream (default: ``sys.stderr``).
    """
    global _DEFAULT_LEVEL
    level = _coerce_level(level)
    if stream is None:
        stream = sys.stderr
    formatter = logging.Formatter(format_string or _DEFAULT_FORMAT)
    for logger in _loggers.values():
        logger.setLevel(level)
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
        handler = logging.StreamHandler(stream)
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    _DEFAULT_LEVEL = level


def log_channel(
    logger: logging.Logger, display: int, channel: int, msg: str, *args: object
) -> None:
    """Log ``msg`` at INFO when ``channel`` is enabled in ``display``, else at DEBUG."""
    level = logging.INFO if display & channel else logging.DEBUG
    logger.log(level, msg, *args)


@contextmanager
def channel_logging(enabled: bool) -> Iterator[None]:
    """Let INFO records through every cgdescent logger and handler while active.

    Levels already at INFO or below are left alone and everything is restored
    on exit. Does nothing when ``enabled`` is false.
    """
    if not enabled:
        yield
        return
    saved = []
    for logger in list(_loggers.values()):
        saved.append((logger, logger.level, [(h, h.level) for h in logger.handlers]))
        if logger.getEffectiveLevel() > logging.INFO:
            logger.setLevel(logging.INFO)
        for handler in logger.handlers:
            if handler.level > logging.INFO:
                handler.setLevel(logging.INFO)
    try:
        yield
    finally:
        for logger, level, handlers in saved:
            logger.setLevel(level)
            for handler, handler_level in handlers:
                handler.setLevel(handler_level)


__all__ = [
    "channel_logging",
    "configure_logging",
    "get_logger",
    "log_channel",
    "set_log_level",
]
