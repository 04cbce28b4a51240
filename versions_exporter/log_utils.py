"""
Logging setup for the exporter process.
"""

from __future__ import annotations

import logging
import sys

LOG_LEVELS = {
    "panic": logging.CRITICAL,
    "fatal": logging.CRITICAL,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}

LOG_FORMAT = "%(asctime)s %(levelname)s %(filename)s:%(lineno)d %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def resolve_level(name: str | None) -> int:
    """Map a level name to a logging level; unknown names mean ERROR."""
    if not name:
        return logging.ERROR
    return LOG_LEVELS.get(name.strip().lower(), logging.ERROR)


def uvicorn_log_level(name: str | None) -> str:
    level = resolve_level(name)
    return logging.getLevelName(level).lower()


def setup_logging(level_name: str | None = "error", stream=None) -> logging.Logger:
    """
    Configure the root logger.

    Args:
        level_name: One of panic, fatal, error, warn, info, debug
        stream: Where records go, stdout by default

    Returns:
        The package logger
    """
    logging.basicConfig(
        level=resolve_level(level_name),
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=[logging.StreamHandler(stream or sys.stdout)],
        force=True,
    )
    if level_name and level_name.strip().lower() not in LOG_LEVELS:
        logging.getLogger(__name__).error("Unknown log level %r, using error", level_name)
    return logging.getLogger("versions_exporter")
