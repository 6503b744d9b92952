"""Loguru setup shared by the service, API and CLI."""

from __future__ import annotations

import sys
from typing import Optional

from loguru import logger

from .config import get_settings

_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan> - <level>{message}</level>"
)

_configured_level: Optional[str] = None


def configure_logging(level: Optional[str] = None) -> None:
    """Replace loguru's default sink with one honouring the configured level."""

    global _configured_level
    resolved = (level or get_settings().log_level).upper()
    if resolved == _configured_level:
        return
    logger.remove()
    logger.configure(extra={"name": "weinkeller"})
    logger.add(sink=lambda msg: print(msg, end="", file=sys.stderr), level=resolved, format=_FORMAT)
    _configured_level = resolved


def get_logger(name: Optional[str] = None):
    """Return the application logger, bound to *name* when given."""

    configure_logging()
    if name:
        return logger.bind(name=name)
    return logger
