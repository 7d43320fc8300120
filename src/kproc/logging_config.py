"""Logging configuration for kproc using rich handlers.

The library only creates module loggers under the ``kproc`` namespace.
Applications (and the ``kproc`` command) call :func:`setup_logging` to attach
handlers; :func:`set_debug` flips the namespace to ``DEBUG`` at runtime.
"""
from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler

from rich.logging import RichHandler

__all__ = ["setup_logging", "set_debug", "is_debug_enabled", "LOGGER_NAME"]

LOGGER_NAME = "kproc"

_debug_enabled = False


def setup_logging(
    level: int = logging.INFO,
    log_file: str | None = None,
    *,
    debug: bool | None = None,
) -> None:
    """Configure standard logging with RichHandler and optional file output.

    Parameters
    ----------
    level:
        Minimum logging severity. Defaults to ``logging.INFO``.
    log_file:
        Optional path to a log file. If ``None`` the environment variable
        ``KPROC_LOG_FILE`` is consulted. When set, a ``RotatingFileHandler``
        writes plain text logs alongside the console output.
    debug:
        Forwarded to :func:`set_debug` when not ``None``.
    """
    if log_file is None:
        log_file = os.getenv("KPROC_LOG_FILE")

    handlers: list[logging.Handler] = [
        RichHandler(rich_tracebacks=True, markup=False, show_path=False)
    ]

    if log_file:
        file_handler = RotatingFileHandler(log_file, maxBytes=5_000_000, backupCount=5)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=level,
        handlers=handlers,
        format="%(message)s",
        force=True,
    )
    if debug is not None:
        set_debug(debug)


def set_debug(enabled: bool) -> None:
    """Enable or disable debug output for every ``kproc`` logger."""

    global _debug_enabled
    _debug_enabled = bool(enabled)
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if _debug_enabled else logging.NOTSET)
    logger.info("Debug logging %s", "enabled" if _debug_enabled else "disabled")


def is_debug_enabled() -> bool:
    return _debug_enabled
