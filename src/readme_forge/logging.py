"""Structured logging for the command line.

Library modules only ask for ``structlog.get_logger(__name__)``; nothing is
configured on import. The command line calls `configure_logging` once per
invocation, which routes the ``readme_forge`` logger tree to exactly one
handler, stderr or a log file, as JSON lines.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from pathlib import Path

PACKAGE_LOGGER = "readme_forge"

_handler: logging.Handler | None = None


def _build_handler(filename: str | Path | None) -> logging.Handler:
    handler: logging.Handler
    if filename:
        handler = logging.FileHandler(str(filename), encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    return handler


def configure_logging(filename: str | Path | None = None, *, level: int = logging.INFO) -> logging.Handler:
    """Send readme_forge events to stderr or to `filename`.

    Calling it again replaces the handler installed by the previous call, so
    each log file only receives the events of the run that asked for it. The
    root logger is left alone.

    Args:
        filename: Optional path to a log file. If None, logs are written to stderr.
        level: Minimum level of emitted events.

    Returns:
        The handler now attached to the package logger.
    """
    global _handler  # noqa: PLW0603

    structlog.configure(
        processors=[
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    if _handler is not None:
        package_logger.removeHandler(_handler)
        _handler.close()
    _handler = _build_handler(filename)
    package_logger.addHandler(_handler)
    package_logger.setLevel(level)
    package_logger.propagate = False
    return _handler
