"""
loguru sink setup for the quizflow CLI.

Library code only ever calls `logger`; hosts that embed the engine keep
whatever sinks they already have. The CLI calls configure_logging() once.
"""

from __future__ import annotations

import sys

from loguru import logger

LOG_FORMAT = "<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}"


def configure_logging(level: str = "INFO", fmt: str = LOG_FORMAT) -> int:
    """Replace loguru's default sink with a single stderr sink. Returns the sink id."""
    logger.remove()
    return logger.add(sys.stderr, level=level.upper(), format=fmt)
