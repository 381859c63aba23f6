"""Time helpers with timezone-aware UTC defaults."""

from __future__ import annotations

import time
from datetime import UTC, datetime


def utc_now() -> datetime:
    """Return timezone-aware current UTC datetime."""
    return datetime.now(UTC)


def wall_clock() -> float:
    """Seconds since the epoch, the default clock for utilization accounting."""
    return time.time()
