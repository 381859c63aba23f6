"""Rolling utilization window for a single worker.

The window starts at a *horizon* and accumulates the seconds spent inside
requests plus the number of requests completed. Every derived figure is a
ratio over the time elapsed since the horizon. When a denominator is zero
(no time elapsed, no requests, or a window that was never reset) the
figure is ``0.0``; callers read that value right after a reset.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from workerstats.utils.time import wall_clock

logger = logging.getLogger("workerstats.window")


@dataclass(frozen=True)
class WindowStats:
    """Point-in-time view of a window, all figures computed against one clock read."""

    elapsed_seconds: float
    active_seconds: float
    idle_seconds: float
    request_count: int
    requests_per_second: float
    average_response_millis: float
    percent_active: float
    percent_idle: float


def _ratio(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return 0.0
    return numerator / denominator


class WindowAccumulator:
    def __init__(self, clock: Callable[[], float] = wall_clock) -> None:
        self._clock = clock
        self.horizon_start: Optional[float] = None
        self.active_seconds = 0.0
        self.request_count = 0

    def reset(self, now: Optional[float] = None) -> None:
        self.horizon_start = self._clock() if now is None else now
        self.active_seconds = 0.0
        self.request_count = 0

    def record_active(self, duration: float) -> None:
        if duration < 0:
            raise ValueError(f"duration must be >= 0, got {duration!r}")
        self.active_seconds += duration
        self.request_count += 1

    def elapsed_since_horizon(self, now: Optional[float] = None) -> float:
        if self.horizon_start is None:
            return 0.0
        return (self._clock() if now is None else now) - self.horizon_start

    def idle_seconds(self, now: Optional[float] = None) -> float:
        idle = self.elapsed_since_horizon(now) - self.active_seconds
        if idle < 0:
            # Active time can only outrun the wall clock if durations were inflated.
            logger.debug("negative idle time %.6fs since horizon", idle)
        return idle

    def percent_active(self, now: Optional[float] = None) -> float:
        return _ratio(self.active_seconds, self.elapsed_since_horizon(now)) * 100

    def percent_idle(self, now: Optional[float] = None) -> float:
        elapsed = self.elapsed_since_horizon(now)
        if elapsed == 0:
            return 0.0
        return (self.idle_seconds(now) / elapsed) * 100

    def requests_per_second(self, now: Optional[float] = None) -> float:
        return _ratio(self.request_count, self.elapsed_since_horizon(now))

    def average_response_millis(self) -> float:
        return _ratio(self.active_seconds, self.request_count) * 1000

    def is_stale(self, window: float, now: Optional[float] = None) -> bool:
        return self.elapsed_since_horizon(now) > window

    def snapshot(self, now: Optional[float] = None) -> WindowStats:
        if now is None:
            now = self._clock()
        return WindowStats(
            elapsed_seconds=self.elapsed_since_horizon(now),
            active_seconds=self.active_seconds,
            idle_seconds=self.idle_seconds(now),
            request_count=self.request_count,
            requests_per_second=self.requests_per_second(now),
            average_response_millis=self.average_response_millis(),
            percent_active=self.percent_active(now),
            percent_idle=self.percent_idle(now),
        )
