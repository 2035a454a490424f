"""Logging helpers to mirror console output into a persistent log file."""

from __future__ import annotations

import os
import sys
from datetime import datetime
from pathlib import Path

from loguru import logger

from utils.constants import LOGS_DIR

LOG_LEVEL_ENV = "CARD_BINDER_LOG_LEVEL"


def resolve_log_level(level: str | None = None) -> str:
    """Explicit level first, then the environment override, then INFO."""
    return (level or os.getenv(LOG_LEVEL_ENV) or "INFO").upper()


def configure_logging(logs_dir: Path | None = None, level: str | None = None) -> Path | None:
    """
    Configure loguru to emit to stderr and a rolling file in the given logs directory.

    Returns the file path in use when file logging is available, otherwise None.
    """
    level = resolve_log_level(level)
    logs_dir = logs_dir or LOGS_DIR
    logger.remove()
    logger.add(sys.stderr, level=level, backtrace=True, diagnose=True, enqueue=True)

    log_file: Path | None = None
    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
        log_file = logs_dir / f"card_binder_{datetime.now():%Y%m%d_%H%M%S}.log"
        logger.add(
            log_file,
            level=level,
            rotation="5 MB",
            retention=5,
            backtrace=True,
            diagnose=True,
            enqueue=True,
        )
    except Exception as exc:
        logger.warning(f"File logging disabled; unable to write to {logs_dir}: {exc}")
        log_file = None

    return log_file


__all__ = ["LOG_LEVEL_ENV", "configure_logging", "resolve_log_level"]
