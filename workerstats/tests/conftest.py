"""Shared test fixtures for workerstats tests."""

import pytest

from workerstats.observability.procline import ProcessTitle
from workerstats.observability.sinks import RecordingSink
from workerstats.observability.tracker import ProcessUtilization


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeGcTimer:
    available = True

    def __init__(self):
        self.time = 0.0
        self.collections = 0

    def clear(self):
        self.time = 0.0
        self.collections = 0

    def uninstall(self):
        pass


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def title():
    return ProcessTitle()


@pytest.fixture
def make_tracker(clock, sink, title):
    """Build a WSGI tracker around `app` with deterministic collaborators."""

    def _make(app, **options):
        options.setdefault("stats", sink)
        options.setdefault("hostname", "web01")
        options.setdefault("title", title)
        options.setdefault("clock", clock)
        options.setdefault("track_gc", False)
        options.setdefault("worker_source", "unicorn example-app worker[3] -c config/unicorn.rb")
        return ProcessUtilization(app, "example-app", "abc1234", **options)

    return _make


def wsgi_environ(method: str = "GET", path: str = "/", **extra) -> dict:
    environ = {
        "REQUEST_METHOD": method,
        "PATH_INFO": path,
        "SERVER_NAME": "testserver",
        "SERVER_PORT": "80",
        "wsgi.url_scheme": "http",
    }
    environ.update(extra)
    return environ


class StartResponse:
    def __init__(self):
        self.status = None
        self.headers = None

    def __call__(self, status, headers, exc_info=None):
        self.status = status
        self.headers = headers
        return lambda data: None
