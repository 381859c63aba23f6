"""Tests for the FastAPI service wiring."""

import pytest
from httpx import ASGITransport, AsyncClient

from workerstats.config import Settings
from workerstats.main import build_sink, create_app
from workerstats.observability.sinks import RecordingSink


def _settings(**overrides):
    values = dict(
        APP_DOMAIN="example-app",
        APP_REVISION="abc1234",
        STATS_BACKEND="memory",
        STATS_HOSTNAME="",
        NODE_HOSTNAME="web01",
        TRACK_GC=False,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def app():
    return create_app(_settings())


@pytest.mark.asyncio
async def test_status_endpoint_and_headers(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        resp = await client.get("/status")

    assert resp.status_code == 200
    assert resp.text == "OK"
    assert resp.headers["X-Node"] == "web01"
    assert resp.headers["X-Revision"] == "abc1234"


@pytest.mark.asyncio
async def test_requests_reach_memory_sink(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        await client.get("/status")
        await client.get("/missing")

    sink = app.state.metrics_sink
    assert isinstance(sink, RecordingSink)
    assert [event for event, _ in sink.events] == ["rack", "rack"]
    assert sink.events[1][1]["status_category"] == "missing"


@pytest.mark.asyncio
async def test_utilization_endpoint(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        await client.get("/status")
        resp = await client.get("/utilization")

    data = resp.json()
    assert data["domain"] == "example-app"
    assert data["revision"] == "abc1234"
    assert data["total_requests"] == 2
    assert data["window"]["request_count"] == 1
    assert data["procline"].startswith("unicorn example-app[abc1234] worker[")


@pytest.mark.asyncio
async def test_prometheus_backend_exposes_metrics():
    app = create_app(_settings(STATS_BACKEND="prometheus", STATS_HOSTNAME="web01"))
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        await client.get("/status")
        resp = await client.get("/metrics")

    assert resp.status_code == 200
    assert 'workerstats_responses_total{namespace="rack.web01",status="ok"} 1.0' in resp.text


@pytest.mark.asyncio
async def test_metrics_route_absent_without_prometheus(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        resp = await client.get("/metrics")
    assert resp.status_code == 404


def test_build_sink_rejects_unknown_backend():
    with pytest.raises(ValueError):
        build_sink(_settings(STATS_BACKEND="carrier-pigeon"), None)


def test_build_sink_disabled():
    assert build_sink(_settings(STATS_BACKEND="none"), None) is None
