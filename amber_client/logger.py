"""Logging configuration for the Amber client using loguru."""

from __future__ import annotations

import os
import sys
import tempfile
from typing import Optional

from loguru import logger

_log_file_path: Optional[str] = None


def default_log_path() -> str:
    return os.path.join(tempfile.gettempdir(), "amber-client", "amber-client.log")


def setup_logger(
    log_file: Optional[str] = None,
    log_level: str = "INFO",
    rotation: str = "10 MB",
    retention: str = "7 days",
    console_output: bool = False,
) -> str:
    """
    Configure loguru with a file sink and an optional console sink.

    Args:
        log_file: Path to the log file (defaults to the temp-dir location)
        log_level: Minimum level (TRACE, DEBUG, INFO, WARNING, ERROR)
        rotation: Log rotation size
        retention: How long to keep old logs
        console_output: Whether to also log to stderr

    Returns:
        The log file path in use.
    """
    global _log_file_path

    if log_file is None:
        log_file = _log_file_path or default_log_path()
    _log_file_path = log_file

    logger.remove()

    if console_output:
        logger.add(
            sys.stderr,
            level=log_level,
            format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{extra[name]}</cyan> - <level>{message}</level>",
            colorize=True,
        )

    logger.add(
        log_file,
        level=log_level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[name]} | {name}:{function}:{line} - {message}",
        rotation=rotation,
        retention=retention,
        encoding="utf-8",
    )
    return log_file


def get_logger(name: Optional[str] = None):
    """Return the shared logger bound to a component name."""
    return logger.bind(name=name or "amber-client")


logger.configure(extra={"name": "amber-client"})
