"""Logger construction helpers."""

from __future__ import annotations

import logging
import sys
from typing import TextIO

_FORMAT = "%(asctime)s level=%(levelname)s msg=%(message)s"


def debug_level() -> int:
    """The level used for debug output."""
    return logging.DEBUG


def is_debug_level(logger: logging.Logger) -> bool:
    """Whether the logger is set to debug output."""
    return logger.getEffectiveLevel() == debug_level()


def _make_logger(name: str, handler: logging.Handler) -> logging.Logger:
    # A fresh, unregistered logger so that every caller gets its own level.
    logger = logging.Logger(name, logging.INFO)
    handler.setFormatter(logging.Formatter(_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def new_logger(name: str = "elementalkit") -> logging.Logger:
    """A logger writing to standard error at info level."""
    return _make_logger(name, logging.StreamHandler(sys.stderr))


def new_null_logger() -> logging.Logger:
    """A logger that discards everything."""
    return _make_logger("elementalkit.null", logging.NullHandler())


def new_buffer_logger(buffer: TextIO) -> logging.Logger:
    """A logger writing into the given text buffer."""
    return _make_logger("elementalkit.buffer", logging.StreamHandler(buffer))