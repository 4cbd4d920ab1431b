"""Loguru sinks for the command line and the persistent system log."""
from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

LOG_DIR_ENV = "FLIGHT_RESERVATION_LOG_DIR"
LOG_LEVEL_ENV = "FLIGHT_RESERVATION_LOG_LEVEL"
LOG_FILE = "system.log"

system_log_format = "[{time:YYYY-MM-DD HH:mm:ss}] {level} - {message}"
console_log_format = " | ".join(
    (
        "<lk>{time:HH:mm:ss}</>",
        "<lvl>{level:<8}</>",
        "{message}",
    )
)


def configure_logging(
    log_dir: Optional[Path | str] = None,
    *,
    level: Optional[str] = None,
    console: bool = True,
) -> Path:
    """Replace loguru's default handler with a console sink and a file sink.

    Returns the path of the system log file.
    """

    directory = Path(log_dir or os.environ.get(LOG_DIR_ENV, "./logs"))
    directory.mkdir(parents=True, exist_ok=True)
    level = (level or os.environ.get(LOG_LEVEL_ENV, "INFO")).upper()
    log_path = directory / LOG_FILE

    logger.remove()
    if console:
        logger.add(sys.stderr, format=console_log_format, level="WARNING")
    logger.add(
        log_path,
        format=system_log_format,
        level=level,
        encoding="utf-8",
        enqueue=True,
    )
    return log_path


def log(level: str, message: str) -> None:
    logger.log(level.upper(), message)


__all__ = ["configure_logging", "log", "system_log_format"]
