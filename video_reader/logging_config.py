from __future__ import annotations

import sys
from typing import Optional

from loguru import logger

from .config import LOG_LEVEL

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function} - {message}"


def configure_logging(level: Optional[str] = None) -> None:
    """Route all log output to stderr; stdout carries the MCP stdio transport."""
    logger.remove()
    logger.add(sys.stderr, level=(level or LOG_LEVEL).upper(), format=LOG_FORMAT, backtrace=False)
