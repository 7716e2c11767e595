"""
Logging utilities for puppetgraph.

puppetgraph is used both as a library (embedded in editors and other
tooling) and through its own CLI. Library code only ever calls
:func:`get_logger`; handlers are installed exclusively by
:func:`setup_logging`, which the CLI calls once per invocation.
"""

from __future__ import annotations

import os
import sys
import copy
import logging
import threading
from typing import IO, Optional

from puppetgraph.constants import (
    LOG_DATE_FORMAT,
    LOG_DEFAULT_FORMAT,
    LOG_VERBOSE_FORMAT,
)

#: Root of the puppetgraph logger hierarchy.
LOGGER_NAMESPACE = "puppetgraph"

_logging_configured: bool = False
_lock = threading.Lock()


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the level name when writing to a terminal."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(
        self,
        fmt: str,
        *,
        datefmt: Optional[str] = None,
        use_color: bool = True,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        if not (self.use_color and _stream_supports_color()):
            return super().format(record)

        color = self.COLORS.get(record.levelname)
        if color is None:
            return super().format(record)

        # Other handlers may format the same record; leave it untouched
        colored = copy.copy(record)
        colored.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(colored)


def _stream_supports_color() -> bool:
    """Return True when ANSI colors should be written to stderr."""
    if os.environ.get("NO_COLOR") or os.environ.get("CI"):
        return False
    try:
        return sys.stderr.isatty()
    except (AttributeError, OSError):
        return False


def setup_logging(
    *,
    level: int = logging.INFO,
    verbose: bool = False,
    stream: Optional[IO[str]] = None,
) -> None:
    """Install a single stream handler on the puppetgraph root logger.

    Safe to call repeatedly: previous handlers are replaced, never stacked.

    Args:
        level: Logging level (e.g. ``logging.INFO``).
        verbose: Include timestamps and logger names in each line.
        stream: Output stream; defaults to ``sys.stderr``.
    """
    global _logging_configured

    with _lock:
        root_logger = logging.getLogger(LOGGER_NAMESPACE)
        root_logger.handlers.clear()
        root_logger.setLevel(level)

        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setLevel(level)
        handler.setFormatter(
            ColoredFormatter(
                LOG_VERBOSE_FORMAT if verbose else LOG_DEFAULT_FORMAT,
                datefmt=LOG_DATE_FORMAT,
                use_color=not os.environ.get("NO_COLOR"),
            )
        )

        root_logger.addHandler(handler)
        root_logger.propagate = False
        _logging_configured = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a logger inside the puppetgraph hierarchy.

    ``"metadata_cache"`` and ``"puppetgraph.metadata_cache"`` name the same
    logger.

    Args:
        name: Logger name relative to the ``puppetgraph`` namespace.

    Returns:
        The requested :class:`logging.Logger`.
    """
    if not name or name == LOGGER_NAMESPACE:
        qualified = LOGGER_NAMESPACE
    elif name.startswith(LOGGER_NAMESPACE + "."):
        qualified = name
    else:
        qualified = f"{LOGGER_NAMESPACE}.{name}"

    logger = logging.getLogger(qualified)

    # Stay silent when embedded in an application that configured nothing
    if not logger.handlers and (not logger.parent or not logger.parent.handlers):
        logger.addHandler(logging.NullHandler())

    return logger


def is_logging_configured() -> bool:
    """Return True once :func:`setup_logging` has run."""
    return _logging_configured


def disable_logging() -> None:
    """Remove puppetgraph's handlers and silence its output."""
    global _logging_configured

    with _lock:
        root_logger = logging.getLogger(LOGGER_NAMESPACE)
        root_logger.handlers.clear()
        root_logger.addHandler(logging.NullHandler())
        root_logger.setLevel(logging.NOTSET)
        _logging_configured = False
