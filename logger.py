"""
logger.py

Responsibility: Configures Python's standard logging for the command-line
and daemon entry points.
Does NOT: decide what gets logged; modules log through logging.getLogger(__name__).
"""

from __future__ import annotations

import logging
import os
import sys

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

DEFAULT_LEVEL = os.getenv("GDDNS_LOG_LEVEL", "INFO")

# Third-party loggers that are chatty at INFO/DEBUG
_QUIET_LOGGERS = ("httpx", "httpcore", "watchdog", "apscheduler.executors.default")

_handler: logging.Handler | None = None


def configure_logging(level: str | None = None) -> None:
    """
    Installs a stderr handler on the root logger, replacing the one from a
    previous call. Handlers installed by anything else are left alone.

    Lines look like "[2024-01-31 12:00:00] [INFO] IP updated for home.example.com."

    Args:
        level: Level name ("DEBUG", "INFO", ...). Defaults to $GDDNS_LOG_LEVEL or INFO.

    Returns:
        None
    """
    level_name = (level or DEFAULT_LEVEL).upper()
    numeric_level = logging.getLevelName(level_name)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))

    global _handler
    root = logging.getLogger()
    if _handler is not None:
        root.removeHandler(_handler)
    _handler = handler
    root.addHandler(handler)
    root.setLevel(numeric_level)

    # Keep library noise down unless the user asked for DEBUG
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING if numeric_level > logging.DEBUG else numeric_level)
