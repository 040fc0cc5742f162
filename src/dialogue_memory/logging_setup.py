"""Opt-in loguru configuration. Importing the package never calls this."""

from __future__ import annotations

import sys
from typing import Any

from loguru import logger

DEFAULT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def configure_logging(level: str = "INFO", sink: Any = None) -> int:
    """Replace loguru's handlers with a single sink.

    Args:
        level: Minimum level to emit
        sink: Anything loguru accepts as a sink (defaults to stderr)

    Returns:
        The handler id, usable with ``logger.remove``
    """
    logger.remove()
    return logger.add(
        sink if sink is not None else sys.stderr,
        level=level.upper(),
        format=DEFAULT_FORMAT,
    )
