# File: translatable/core/logging_config.py
"""Logging setup shared by the command line and scripts."""

import logging
from typing import Optional

from translatable.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure root logging.

    Args:
        level: Log level name, defaults to the LOG_LEVEL setting
    """
    logging.basicConfig(
        level=getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO),
        format=LOG_FORMAT,
    )
