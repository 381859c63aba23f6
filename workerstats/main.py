"""workerstats — FastAPI application wiring the utilization middleware."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, Response
from prometheus_client import CollectorRegistry

from workerstats.api.status import build_status_router
from workerstats.api.utilization import router as utilization_router
from workerstats.config import Settings, settings
from workerstats.logging_config import setup_logging
from workerstats.middleware.asgi import ProcessUtilizationMiddleware
from workerstats.observability.sinks import MetricsSink, PrometheusSink, RecordingSink
from workerstats.observability.tracker import DISCOVER_HOSTNAME, ProcessUtilization
from workerstats.utils.host import short_hostname

logger = logging.getLogger("workerstats")


def _startup_checks(cfg: Settings) -> None:
    """Log what this worker will report and where."""
    if cfg.revision == "<none>":
        logger.warning("⚠  APP_REVISION is not set — procline and metrics will show <none>")
    if cfg.stats_enabled:
        logger.info(f"✓ Metrics backend: {cfg.stats_backend}")
    else:
        logger.info("○ No STATS_BACKEND — per-request metrics disabled")
    if cfg.stats_hostname == "":
        logger.info("○ Hostname excluded from metric namespace")


def build_sink(cfg: Settings, app: FastAPI) -> Optional[MetricsSink]:
    backend = cfg.stats_backend.lower()
    if not cfg.stats_enabled:
        return None
    if backend == "prometheus":
        registry = CollectorRegistry()
        app.state.metrics_registry = registry
        return PrometheusSink(registry)
    if backend == "memory":
        return RecordingSink()
    raise ValueError(f"unknown STATS_BACKEND {cfg.stats_backend!r}")


def create_app(cfg: Settings = settings) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup / shutdown lifecycle."""
        setup_logging(cfg.log_level)
        _startup_checks(cfg)
        logger.info(f"✦ workerstats started for {cfg.domain}[{cfg.revision}]")
        logger.info(f"  Utilization window: {cfg.window_seconds}s")

        yield

        logger.info("✦ workerstats shutting down")

    app = FastAPI(
        title="workerstats",
        description="Per-worker request utilization",
        version="0.1.0",
        lifespan=lifespan,
    )

    sink = build_sink(cfg, app)
    tracker = ProcessUtilization(
        None,
        cfg.domain,
        cfg.revision,
        window=cfg.window_seconds,
        stats=sink,
        stats_prefix=cfg.stats_prefix,
        hostname=DISCOVER_HOSTNAME if cfg.stats_hostname is None else cfg.stats_hostname,
        track_gc=cfg.track_gc,
        program=cfg.procline_program,
    )
    app.state.tracker = tracker
    app.state.metrics_sink = sink

    node = cfg.node_hostname or short_hostname()

    # Node + revision response headers
    @app.middleware("http")
    async def request_hostname(request: Request, call_next):
        response: Response = await call_next(request)
        response.headers["X-Node"] = node
        response.headers["X-Revision"] = cfg.revision
        return response

    # Outermost, so time spent in the other middlewares counts as active.
    app.add_middleware(ProcessUtilizationMiddleware, tracker=tracker)

    app.include_router(build_status_router(cfg.status_path, cfg.status_response))
    app.include_router(utilization_router)
    return app


app = create_app()
