"""Worker identity and the procline published as the process title."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional, Protocol

from workerstats.observability.window import WindowStats

logger = logging.getLogger("workerstats.procline")

_WORKER_PATTERN = re.compile(r"(?:^|\s)worker\[(\d+)\]")


@dataclass(frozen=True)
class ProcessIdentity:
    domain: str
    revision: str
    worker_number: Optional[int] = None


@dataclass
class RunningTotals:
    """Requests seen since the worker started. Never reset by the window."""

    total_requests: int = 0


class TitlePublisher(Protocol):
    def set_title(self, title: str) -> None: ...


class ProcessTitle:
    """In-memory process title.

    The hosting application decides whether the string reaches the OS; this
    object only keeps the latest value so it can be read back.
    """

    def __init__(self, initial: str = "") -> None:
        self.title = initial

    def set_title(self, title: str) -> None:
        self.title = title
        logger.debug("procline: %s", title)

    def __str__(self) -> str:
        return self.title


def parse_worker_number(source: Optional[str]) -> Optional[int]:
    """Extract N from a ``... worker[N] ...`` process string."""
    if not source:
        return None
    match = _WORKER_PATTERN.search(source)
    if match is None:
        return None
    return int(match.group(1))


def format_procline(
    identity: ProcessIdentity,
    totals: RunningTotals,
    stats: WindowStats,
    program: str = "unicorn",
) -> str:
    return "%s %s[%s] worker[%02d]: %05d reqs, %.1f req/s, %dms avg, %.1f%% util" % (
        program,
        identity.domain,
        identity.revision,
        identity.worker_number or 0,
        totals.total_requests,
        stats.requests_per_second,
        int(stats.average_response_millis),
        stats.percent_active,
    )
