"""
Centralized logging setup for callsum.

Every module logs through ``logging.getLogger(__name__)``; this module only
decides where the ``callsum`` logger tree writes to.
"""

import logging
import sys
from pathlib import Path

PACKAGE_LOGGER = "callsum"

# Format: [2024-01-15 14:30:25] INFO - callsum.pipeline - message
LOG_FORMAT = "[%(asctime)s] %(levelname)s - %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: int | str = logging.INFO, log_file: Path | str | None = None) -> logging.Logger:
    """
    Configure the package logger.

    Args:
        level: Logging level (name or number)
        log_file: Optional file to append to; stderr when omitted

    Returns:
        The configured ``callsum`` logger.

    Note:
        Replaces handlers installed by a previous call, so calling this
        twice never duplicates output.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if log_file is not None:
        handler: logging.Handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)

    return logger

