"""Logging initialization using loguru."""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger


def init_logging(level: str = "INFO", log_dir: str | Path | None = None) -> None:
    """
    Send log records to stderr at the given level and, when log_dir is set,
    to a rotating file under that directory.
    """
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format="{time:HH:mm:ss} | {level: <8} | {message}")

    if log_dir is None:
        return
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    logger.add(
        str(log_path / "immisync_{time:YYYYMMDD}.log"),
        rotation="10 MB",
        retention="10 days",
        compression="zip",
        enqueue=True,
        backtrace=False,
        diagnose=False,
        level="DEBUG",
    )
