"""Tagged, levelled log messages."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

logger = logging.getLogger("securevault")


def format_message(level: str, tag: str, msg: str, *args: Any) -> str:
    """Return ``msg % args`` prefixed with a timestamp, level and optional tag."""
    tag_part = f" [{tag}]" if tag else ""
    body = msg % args if args else msg
    return f"{datetime.now():%Y-%m-%d %H:%M:%S} [{level}]{tag_part} {body}"


def info(tag: str, msg: str, *args: Any) -> None:
    logger.info(format_message("INFO", tag, msg, *args))


def warn(tag: str, msg: str, *args: Any) -> None:
    logger.warning(format_message("WARN", tag, msg, *args))


def error(tag: str, msg: str, *args: Any) -> None:
    logger.error(format_message("ERROR", tag, msg, *args))