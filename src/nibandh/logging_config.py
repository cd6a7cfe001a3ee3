"""Logging configuration for nibandh."""

import sys
from pathlib import Path

from loguru import logger

LOG_FORMAT = "{level.icon} {message}"
FILE_LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{line} | {message}"


def configure_logging(*, verbose: bool = False, log_file: Path | None = None) -> None:
    """Configure loguru with appropriate level.

    With log_file, records also go to a rotated file. The MCP server uses
    this because its client usually hides stderr.
    """
    logger.remove()
    level = "DEBUG" if verbose else "INFO"
    logger.add(sys.stderr, level=level, format=LOG_FORMAT)
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            level=level,
            format=FILE_LOG_FORMAT,
            rotation="1 MB",
            retention=3,
            encoding="utf-8",
        )
