"""Loguru-based logging setup."""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

LOG_FILE_NAME = "linkvault.log"

_CONSOLE_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level:<7}</level> | {message}"
# Backup fan-out and Qt workers log from several threads at once.
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<7} | {thread.name} | {name}:{line} | {message}"


def setup_logger(log_dir: Path | None = None, level: str = "INFO") -> None:
    """Replace loguru's default sink with a console sink and, given a directory, a rotating file."""
    logger.remove()

    logger.add(sys.stderr, level=level.upper(), format=_CONSOLE_FORMAT, colorize=True)

    if log_dir:
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(log_dir / LOG_FILE_NAME),
            level="DEBUG",
            format=_FILE_FORMAT,
            rotation="5 MB",
            retention="7 days",
            encoding="utf-8",
        )
