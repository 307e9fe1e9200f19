"""
Aqua Assist - Logging Configuration
One stdout handler for the API and the bulk verification script.
"""

import logging
import sys
from typing import Iterable, Optional

from aquaassist.core.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Upstream clients log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine")


def setup_logging(
    level: Optional[str] = None,
    quiet: Iterable[str] = NOISY_LOGGERS
) -> logging.Logger:
    """
    Configure logging for the aquaassist package.

    Safe to call more than once: the stdout handler is only installed on
    the first call, later calls just adjust levels.

    Args:
        level: Level name, defaults to settings.log_level
        quiet: Third-party loggers raised to WARNING

    Returns:
        The "aquaassist" package logger
    """
    level_name = (level or settings.log_level).upper()
    numeric_level = logging.getLevelName(level_name)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level_name}")

    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    logger = logging.getLogger("aquaassist")
    logger.setLevel(numeric_level)

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger
