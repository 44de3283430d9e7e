"""Logging setup for the pulsedash server."""

import logging
import sys

LOG_FORMAT = "[%(asctime)s] [PULSEDASH] %(levelname)s %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str | int = logging.INFO) -> logging.Logger:
    """
    Configure root logging to stdout.

    Args:
        level: Level name ('DEBUG', 'INFO', ...) or numeric level.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    logger = logging.getLogger("pulsedash")
    logger.info("Logging initialized (level=%s)", logging.getLevelName(level))
    return logger
