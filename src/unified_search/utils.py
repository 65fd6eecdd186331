"""Utility functions for unified-search."""

import os
import sys
import unicodedata
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from loguru import logger


def setup_logging(
    log_level: str = "INFO",
    log_to_file: bool = False,
    log_to_stdout: bool = False,
    log_file_path: Optional[Path] = None,
) -> None:  # pragma: no cover
    """Configure loguru sinks.

    Args:
        log_level: Minimum level to emit
        log_to_file: Write to a rotating file under the data directory
        log_to_stdout: Write to stderr (kept off for CLI commands that print JSON)
        log_file_path: Override the log file location
    """
    logger.remove()

    if log_to_file:
        if log_file_path is None:
            config_dir = os.getenv("UNIFIED_SEARCH_CONFIG_DIR")
            base = Path(config_dir) if config_dir else Path.home() / ".unified-search"
            log_file_path = base / "unified-search.log"
        log_file_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(log_file_path),
            level=log_level,
            rotation="10 MB",
            retention="10 days",
            backtrace=True,
            diagnose=False,
            enqueue=True,
            colorize=False,
        )

    if log_to_stdout:
        logger.add(sys.stderr, level=log_level, backtrace=True, diagnose=False, colorize=True)


def ensure_timezone_aware(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def to_utc(dt: datetime) -> datetime:
    return ensure_timezone_aware(dt).astimezone(timezone.utc)


def fold_search_text(value: Optional[str]) -> Optional[str]:
    """Case fold and strip diacritics the way the FTS5 unicode61 tokenizer does.

    Registered as the ``search_fold`` SQL function on SQLite connections.
    """
    if value is None:
        return None
    decomposed = unicodedata.normalize("NFD", value.casefold())
    return "".join(char for char in decomposed if not unicodedata.combining(char))


def parse_db_timestamp(value: Union[datetime, str, None]) -> Optional[datetime]:
    """Convert a timestamp read through raw SQL into an aware datetime.

    Postgres drivers return datetimes. SQLite returns the stored text
    ("YYYY-MM-DD HH:MM:SS.ffffff"), which is always written in UTC.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_timezone_aware(value)
    return ensure_timezone_aware(datetime.fromisoformat(value))
