"""Logging configuration for the site auditor.

Level and log file default to ``SITEAUDIT_LOG_LEVEL`` and
``SITEAUDIT_LOG_FILE``; command-line flags override them.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from siteaudit.config import settings

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Per-request chatter from the HTTP stack and the browser driver
QUIET_LOGGERS = ('httpx', 'httpcore', 'asyncio', 'playwright')


def resolve_level(level: Optional[str] = None) -> int:
    """Map a level name (or the configured default) to a logging level.

    Unknown names fall back to INFO.
    """
    name = (level or settings.LOG_LEVEL or "INFO").strip().upper()
    numeric_level = logging.getLevelName(name)
    return numeric_level if isinstance(numeric_level, int) else logging.INFO


def setup_logging(
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    format_string: str = LOG_FORMAT
) -> None:
    """Configure logging for an audit run.

    Args:
        level: Log level name; defaults to settings.LOG_LEVEL
        log_file: Extra log file; defaults to settings.LOG_FILE
        format_string: Log record format
    """
    numeric_level = resolve_level(level)
    log_file = log_file or settings.LOG_FILE

    # stderr keeps stdout free for JSON reports
    handlers = [logging.StreamHandler(sys.stderr)]

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))

    logging.basicConfig(
        level=numeric_level,
        format=format_string,
        handlers=handlers,
        force=True
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, numeric_level))
