"""Package-wide logger for signalmatch."""

import logging
import os

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s - %(message)s"

logger = logging.getLogger("signalmatch")


def configure_logging(level: str | int | None = None) -> logging.Logger:
    """Attach a console handler and set the log level.

    Args:
        level: Level name or number. Falls back to ``LOG_LEVEL`` and then INFO.

    Returns:
        The configured package logger.
    """
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logging.basicConfig(level=level, format=LOG_FORMAT)
    logger.setLevel(level)
    return logger
