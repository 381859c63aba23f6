"""Process utilization tracking.

Tracks how much of its wall-clock time a worker spends inside requests, as
opposed to idle waiting for a connection. A request counts as active from
the moment it enters the middleware until the server closes the response
body, so streamed responses and slow clients are included.

NOTE The tracker is not thread safe. Run one instance per worker process
(or per single-threaded event loop) and never account for two requests on
the same instance at once; overlapping requests corrupt the active time and
request count. A response body that is never closed is never accounted for.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import MutableMapping
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

from workerstats.observability.body import DeferredCompletionBody
from workerstats.observability.gc_stats import GcTimer
from workerstats.observability.procline import (
    ProcessIdentity,
    ProcessTitle,
    RunningTotals,
    TitlePublisher,
    format_procline,
    parse_worker_number,
)
from workerstats.observability.sinks import MetricsPayload, MetricsSink
from workerstats.observability.status import classify
from workerstats.observability.window import WindowAccumulator, WindowStats
from workerstats.utils.host import process_command_line, short_hostname
from workerstats.utils.time import wall_clock

logger = logging.getLogger("workerstats.tracker")

TRACKED_METHODS = frozenset({"GET", "HEAD", "POST", "PUT", "DELETE"})

REQUEST_START_KEY = "process.request_start"
TOTAL_REQUESTS_KEY = "process.total_requests"

# Stripped so APM agents do not double count queueing time.
_QUEUE_START_HEADER = "HTTP_X_REQUEST_START"


class _Discover:
    def __repr__(self) -> str:
        return "<discover>"


DISCOVER_HOSTNAME: Any = _Discover()


@dataclass(frozen=True)
class RequestTiming:
    start: float
    method: Optional[str] = None


class ProcessUtilization:
    """WSGI middleware and accounting engine.

    app           - The next WSGI app in the pipeline.
    domain        - The domain name the app runs in, shown in the procline.
    revision      - Short SHA of the code this worker runs.
    window        - Seconds before the horizon resets.
    stats         - Optional metrics sink.
    stats_prefix  - Root of the metric namespace.
    hostname      - Appended to the namespace. Discovered when omitted,
                    excluded when None or empty.
    title         - Where the procline is published.
    worker_source - String the worker number is parsed from. Defaults to
                    the process command line.
    """

    def __init__(
        self,
        app: Optional[Callable[..., Iterable[Any]]],
        domain: str,
        revision: str,
        *,
        window: float = 100,
        stats: Optional[MetricsSink] = None,
        stats_prefix: str = "rack",
        hostname: Optional[str] = DISCOVER_HOSTNAME,
        title: Optional[TitlePublisher] = None,
        clock: Callable[[], float] = wall_clock,
        track_gc: bool = True,
        gc_timer: Optional[GcTimer] = None,
        worker_source: Optional[str] = None,
        program: str = "unicorn",
    ) -> None:
        self.app = app
        self.identity = ProcessIdentity(domain=domain, revision=revision)
        self.totals = RunningTotals()
        self.window_seconds = window
        self.window = WindowAccumulator(clock)
        self.title = title if title is not None else ProcessTitle()
        self.program = program
        self._clock = clock
        self._worker_source = worker_source

        if gc_timer is None and track_gc:
            gc_timer = GcTimer.shared()
        self.gc_timer = gc_timer
        self.track_gc = gc_timer is not None and gc_timer.available

        self.stats = stats
        self.stats_prefix: Optional[str] = None
        if stats is not None:
            prefix = [stats_prefix or "rack"]
            if hostname is DISCOVER_HOSTNAME:
                prefix.append(short_hostname())
            elif hostname:
                prefix.append(hostname)
            self.stats_prefix = ".".join(prefix)

    @property
    def worker_number(self) -> Optional[int]:
        return self.identity.worker_number

    def stats_snapshot(self) -> WindowStats:
        return self.window.snapshot()

    def procline(self, stats: Optional[WindowStats] = None) -> str:
        if stats is None:
            stats = self.window.snapshot()
        return format_procline(self.identity, self.totals, stats, self.program)

    def _first_request(self) -> None:
        self.window.reset()
        source = self._worker_source if self._worker_source is not None else process_command_line()
        self.identity = dataclasses.replace(self.identity, worker_number=parse_worker_number(source))

    def begin(
        self,
        context: Optional[MutableMapping[str, Any]] = None,
        method: Optional[str] = None,
    ) -> RequestTiming:
        """Start timing a request and annotate its context."""
        start = self._clock()
        if self.track_gc:
            self.gc_timer.clear()

        self.totals.total_requests += 1
        if self.totals.total_requests == 1:
            self._first_request()

        if context is not None:
            if method is None:
                method = context.get("REQUEST_METHOD")
            context[REQUEST_START_KEY] = start
            context[TOTAL_REQUESTS_KEY] = self.totals.total_requests
            context.pop(_QUEUE_START_HEADER, None)
        return RequestTiming(start=start, method=method)

    def complete(self, timing: RequestTiming, status: Any) -> None:
        """Fold a finished request into the window, publish and emit.

        Never raises. Each step is contained on its own and failures are
        logged as warnings, so a broken sink or title publisher does not stop
        the window from resetting.
        """
        try:
            now = self._clock()
            duration = max(0.0, now - timing.start)
            self.window.record_active(duration)
            stats = self.window.snapshot(now)
        except Exception as boom:
            logger.warning(f"ProcessUtilization.complete failed: {boom}", exc_info=boom)
            return

        logger.debug(
            "request accounted",
            extra={
                "worker_number": self.identity.worker_number,
                "method": timing.method,
                "status_code": status,
                "duration_ms": round(duration * 1000, 2),
            },
        )

        self._contain("publish procline", self._publish, stats)
        if self.stats is not None:
            self._contain("emit metrics", self._emit, timing, status, duration, stats)
        self._contain("reset window", self._reset_if_stale, now)

    def _contain(self, step: str, func: Callable[..., Any], *args: Any) -> None:
        try:
            func(*args)
        except Exception as boom:
            logger.warning(f"ProcessUtilization failed to {step}: {boom}", exc_info=boom)

    def _publish(self, stats: WindowStats) -> None:
        self.title.set_title(format_procline(self.identity, self.totals, stats, self.program))

    def _emit(self, timing: RequestTiming, status: Any, duration: float, stats: WindowStats) -> None:
        payload = self._payload(timing, status, duration, stats)
        self.stats.emit(self.stats_prefix, payload.as_dict())

    def _reset_if_stale(self, now: float) -> None:
        if self.window.is_stale(self.window_seconds, now):
            self.window.reset(now)

    def _payload(self, timing: RequestTiming, status: Any, duration: float, stats: WindowStats) -> MetricsPayload:
        response_time = duration * 1000
        method = timing.method.upper() if timing.method else None
        tracked = method in TRACKED_METHODS

        gc_time = gc_collections = None
        if self.track_gc and self.gc_timer.time > 0:
            gc_time = self.gc_timer.time * 1000
            gc_collections = self.gc_timer.collections

        return MetricsPayload(
            domain=self.identity.domain,
            revision=self.identity.revision,
            worker_number=self.identity.worker_number,
            total_requests=self.totals.total_requests,
            requests_per_second=stats.requests_per_second,
            average_response_time=stats.average_response_millis,
            percent_active=stats.percent_active,
            response_time=response_time,
            method=method if tracked else None,
            method_response_time=response_time if tracked else None,
            status_category=classify(status),
            gc_time=gc_time,
            gc_collections=gc_collections,
        )

    def __call__(self, environ: dict[str, Any], start_response: Callable[..., Any]) -> DeferredCompletionBody:
        if self.app is None:
            raise TypeError("ProcessUtilization was built without a WSGI app; use begin() and complete() directly")
        timing = self.begin(environ)
        response: dict[str, Any] = {}

        def _start_response(status, headers, exc_info=None):
            response["status"] = status
            if exc_info is None:
                return start_response(status, headers)
            return start_response(status, headers, exc_info)

        body = self.app(environ, _start_response)
        return DeferredCompletionBody(body, lambda: self.complete(timing, response.get("status")))
