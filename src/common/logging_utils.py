"""Logging helpers shared by the resolver components.

Keeps structured ``extra`` payloads consistent across modules and gates
expensive DEBUG traces behind a cheap level check.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

from constants import Constants

_CONFIGURED = False


def configure_logging(level: Optional[str] = None) -> None:
    """Install a single stream handler on the root logger.

    Safe to call more than once; later calls only adjust the level.

    Args:
        level: Level name such as "INFO" or "DEBUG". Defaults to INFO.
    """
    global _CONFIGURED  # pylint: disable=global-statement
    level_value = getattr(logging, str(level or "INFO").upper(), logging.INFO)
    root = logging.getLogger()
    if not _CONFIGURED:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(Constants.LOG_FORMAT))
        root.addHandler(handler)
        _CONFIGURED = True
    root.setLevel(level_value)


def extra_context(**fields: Any) -> Dict[str, Any]:
    """Build an ``extra`` mapping for structured log records.

    None values are dropped so handlers only see populated fields.
    """
    return {key: value for key, value in fields.items() if value is not None}


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True when DEBUG records would be emitted by ``logger``."""
    return logger.isEnabledFor(logging.DEBUG)


class Timer:
    """Context manager measuring wall-clock duration."""

    def __init__(self):
        self._start = 0.0
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        self._end = None
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._end = time.perf_counter()

    def duration_ms(self) -> float:
        """Elapsed milliseconds, measured up to now while still running."""
        end = self._end if self._end is not None else time.perf_counter()
        return round((end - self._start) * 1000.0, 3)
