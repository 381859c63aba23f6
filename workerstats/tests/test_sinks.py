"""Tests for metrics payloads and sinks."""

import pytest
from prometheus_client import CollectorRegistry

from workerstats.observability.sinks import MetricsPayload, PrometheusSink, RecordingSink, StatsdSink


def _payload(**overrides):
    values = dict(
        domain="example-app",
        revision="abc1234",
        worker_number=3,
        total_requests=10,
        requests_per_second=2.0,
        average_response_time=12.5,
        percent_active=40.0,
        response_time=50.0,
    )
    values.update(overrides)
    return MetricsPayload(**values)


class FakeStatsd:
    def __init__(self):
        self.calls = []

    def timing(self, key, value):
        self.calls.append(("timing", key, value))

    def increment(self, key):
        self.calls.append(("increment", key))

    def count(self, key, value):
        self.calls.append(("count", key, value))


def test_payload_omits_unmeasured_fields():
    data = _payload().as_dict()
    assert data["response_time"] == 50.0
    assert data["worker_number"] == 3
    for key in ("method", "method_response_time", "status_category", "gc_time", "gc_collections"):
        assert key not in data


def test_payload_keeps_measured_fields():
    data = _payload(method="GET", method_response_time=50.0, status_category="ok", gc_time=1.5, gc_collections=2).as_dict()
    assert data["method"] == "GET"
    assert data["status_category"] == "ok"
    assert data["gc_collections"] == 2


def test_statsd_minimal_payload():
    client = FakeStatsd()
    StatsdSink(client).emit("rack.web01", _payload().as_dict())
    assert client.calls == [("timing", "rack.web01.response_time", 50.0)]


def test_statsd_full_payload():
    client = FakeStatsd()
    payload = _payload(method="POST", method_response_time=50.0, status_category="missing", gc_time=2.0, gc_collections=1)
    StatsdSink(client).emit("rack", payload.as_dict())
    assert client.calls == [
        ("timing", "rack.response_time", 50.0),
        ("timing", "rack.response_time.post", 50.0),
        ("increment", "rack.status_code.missing"),
        ("timing", "rack.gc.time", 2.0),
        ("count", "rack.gc.collections", 1),
    ]


def test_prometheus_sink_records_samples():
    registry = CollectorRegistry()
    sink = PrometheusSink(registry)
    payload = _payload(method="GET", method_response_time=50.0, status_category="ok", gc_time=4.0, gc_collections=1)
    sink.emit("rack.web01", payload.as_dict())
    sink.emit("rack.web01", _payload().as_dict())

    def value(name, **labels):
        return registry.get_sample_value(name, labels)

    assert value("workerstats_response_time_seconds_count", namespace="rack.web01", method="GET") == 1
    assert value("workerstats_response_time_seconds_sum", namespace="rack.web01", method="GET") == pytest.approx(0.05)
    assert value("workerstats_response_time_seconds_count", namespace="rack.web01", method="other") == 1
    assert value("workerstats_responses_total", namespace="rack.web01", status="ok") == 1
    assert value("workerstats_responses_total", namespace="rack.web01", status="other") == 1
    assert value("workerstats_utilization_percent", namespace="rack.web01") == 40.0
    assert value("workerstats_requests_per_second", namespace="rack.web01") == 2.0
    assert value("workerstats_gc_seconds_total", namespace="rack.web01") == pytest.approx(0.004)


def test_recording_sink_is_bounded():
    sink = RecordingSink(maxlen=2)
    assert sink.last() is None
    for n in range(3):
        sink.emit("rack", {"n": n})
    assert [p["n"] for _, p in sink.events] == [1, 2]
    assert sink.last() == ("rack", {"n": 2})
