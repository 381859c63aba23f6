"""Metrics payloads and the sinks that ship them.

A sink receives a named event (the metric namespace, e.g. ``rack.web01``)
and the payload of one completed request. Sinks are owned by the hosting
application and may be shared between trackers.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from threading import Lock
from typing import Any, Optional, Protocol

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram


@dataclass(frozen=True)
class MetricsPayload:
    domain: str
    revision: str
    worker_number: Optional[int]
    total_requests: int
    requests_per_second: float
    average_response_time: float
    percent_active: float
    response_time: float
    method: Optional[str] = None
    method_response_time: Optional[float] = None
    status_category: Optional[str] = None
    gc_time: Optional[float] = None
    gc_collections: Optional[int] = None

    def as_dict(self) -> dict[str, Any]:
        """Serialize, leaving out optional fields that were not measured."""
        data = asdict(self)
        for key in ("method", "method_response_time", "status_category", "gc_time", "gc_collections"):
            if data[key] is None:
                del data[key]
        return data


class MetricsSink(Protocol):
    def emit(self, event: str, payload: Mapping[str, Any]) -> None: ...


class RecordingSink:
    """Keeps the most recent events in memory."""

    def __init__(self, maxlen: int = 1000) -> None:
        self._lock = Lock()
        self.events: deque[tuple[str, dict[str, Any]]] = deque(maxlen=maxlen)

    def emit(self, event: str, payload: Mapping[str, Any]) -> None:
        with self._lock:
            self.events.append((event, dict(payload)))

    def last(self) -> Optional[tuple[str, dict[str, Any]]]:
        with self._lock:
            return self.events[-1] if self.events else None


class StatsdSink:
    """Translates payloads into StatsD calls.

    ``client`` is anything exposing ``timing(key, ms)``, ``increment(key)``
    and ``count(key, n)``. Keys are rooted at the event namespace.
    """

    def __init__(self, client: Any) -> None:
        self.client = client

    def emit(self, event: str, payload: Mapping[str, Any]) -> None:
        self.client.timing(f"{event}.response_time", payload["response_time"])
        method = payload.get("method")
        if method and payload.get("method_response_time") is not None:
            self.client.timing(f"{event}.response_time.{method.lower()}", payload["method_response_time"])
        category = payload.get("status_category")
        if category:
            self.client.increment(f"{event}.status_code.{category}")
        if payload.get("gc_time") is not None:
            self.client.timing(f"{event}.gc.time", payload["gc_time"])
            self.client.count(f"{event}.gc.collections", payload.get("gc_collections", 0))


class PrometheusSink:
    """Feeds payloads into prometheus_client collectors.

    The event namespace becomes the ``namespace`` label so one registry can
    serve several trackers.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        registry = REGISTRY if registry is None else registry
        self.response_time = Histogram(
            "workerstats_response_time_seconds",
            "Time from request start to response body release.",
            labelnames=["namespace", "method"],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
            registry=registry,
        )
        self.responses = Counter(
            "workerstats_responses_total",
            "Completed responses by status category.",
            labelnames=["namespace", "status"],
            registry=registry,
        )
        self.utilization = Gauge(
            "workerstats_utilization_percent",
            "Share of the current window spent serving requests.",
            labelnames=["namespace"],
            registry=registry,
        )
        self.throughput = Gauge(
            "workerstats_requests_per_second",
            "Requests per second over the current window.",
            labelnames=["namespace"],
            registry=registry,
        )
        self.gc_seconds = Counter(
            "workerstats_gc_seconds_total",
            "Garbage collection time spent inside requests.",
            labelnames=["namespace"],
            registry=registry,
        )

    def emit(self, event: str, payload: Mapping[str, Any]) -> None:
        method = payload.get("method") or "other"
        self.response_time.labels(namespace=event, method=method).observe(payload["response_time"] / 1000)
        self.responses.labels(namespace=event, status=payload.get("status_category") or "other").inc()
        self.utilization.labels(namespace=event).set(payload["percent_active"])
        self.throughput.labels(namespace=event).set(payload["requests_per_second"])
        if payload.get("gc_time") is not None:
            self.gc_seconds.labels(namespace=event).inc(payload["gc_time"] / 1000)
