"""Diagnostic logging.

stdout carries the protocol, so every handler installed here writes to
stderr.
"""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "[sandbox-agent] %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | int = "INFO", stream=None) -> logging.Logger:
    """Attach a single stderr handler to the package logger."""
    logger = logging.getLogger("sandbox_agent")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    logger.propagate = False
    return logger
