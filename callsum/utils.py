"""
callsum Utilities - Shared helper functions.

Responsibilities:
- Timestamp formatting (UTC, ISO-8601)
- Time-derived, monotonic result identifiers

Invariants:
- All timestamps use ISO-8601 format
- Result ids from one generator strictly increase
"""

import threading
import time
from datetime import date, datetime, timezone


def now_iso() -> str:
    """
    Return current time as ISO-8601 in UTC.

    Returns:
        ISO-8601 formatted string, e.g., "2025-12-23T17:02:10.123456+00:00"
    """
    return datetime.now(timezone.utc).isoformat()


def today_iso() -> str:
    """Return today's local date as YYYY-MM-DD."""
    return date.today().isoformat()


class ResultIdGenerator:
    """
    Generate unique, time-derived ids (milliseconds since the epoch).

    Two ids requested within the same millisecond are bumped so the
    sequence stays strictly increasing.
    """

    def __init__(self):
        self._last = 0
        self._lock = threading.Lock()

    def __call__(self) -> str:
        with self._lock:
            candidate = time.time_ns() // 1_000_000
            if candidate <= self._last:
                candidate = self._last + 1
            self._last = candidate
            return str(candidate)


new_result_id = ResultIdGenerator()
