"""
Common utilities for the cross-DEX arbitrage scanner.

Logging setup, timestamp helpers and duration formatting shared by the
engine, the CLI and the observability sinks.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"


def get_current_timestamp() -> float:
    """Get current Unix timestamp as float."""
    return time.time()


def timestamp_to_iso(timestamp: float) -> str:
    """Convert Unix timestamp to ISO 8601 string (UTC)."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


def format_duration(seconds: float) -> str:
    """Cycle durations for log lines: 250ms, 4.20s, 2.0m, 1.0h."""
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 60:
        return f"{seconds:.2f}s"
    if seconds < 3600:
        return f"{seconds / 60:.1f}m"
    return f"{seconds / 3600:.1f}h"


def short_address(address: Optional[str]) -> str:
    """Shorten a hex address for log lines (0x1234…abcd)."""
    if not address:
        return "-"
    if len(address) <= 12:
        return address
    return f"{address[:6]}…{address[-4:]}"


def get_logger(name: str, level: Union[str, int] = logging.INFO) -> logging.Logger:
    """
    Module logger with the scanner's line format.

    The stream handler is attached once per logger. A level configured
    beforehand (e.g. by ``logging_config.setup``) is left alone.

    Args:
        name: Logger name (typically __name__)
        level: Level applied when the logger has none

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)

    if logger.level == logging.NOTSET:
        logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
        logger.addHandler(handler)

    return logger
