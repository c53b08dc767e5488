"""Logging setup for applications embedding s3helpers."""

import sys
from typing import Optional

from loguru import logger

from s3helpers.core.config import load_settings

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss,SSS} - {name} - {level} - {message}"


def setup_logging(level: Optional[str] = None) -> None:
    """Replace loguru's default sink with a stderr sink.

    Args:
        level: Minimum level to emit; Settings.log_level when None
    """
    level = (level or load_settings().log_level).upper()
    logger.remove()
    logger.add(sys.stderr, level=level, format=LOG_FORMAT)
    logger.debug(f"Logging configured at level {level}")
