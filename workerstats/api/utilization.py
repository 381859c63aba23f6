"""Utilization API — current window figures and procline for this worker."""

from __future__ import annotations

from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel

router = APIRouter(tags=["utilization"])


class WindowResponse(BaseModel):
    elapsed_seconds: float
    active_seconds: float
    idle_seconds: float
    request_count: int
    requests_per_second: float
    average_response_millis: float
    percent_active: float
    percent_idle: float


class UtilizationResponse(BaseModel):
    domain: str
    revision: str
    worker_number: Optional[int]
    total_requests: int
    procline: str
    window: WindowResponse


@router.get("/utilization", response_model=UtilizationResponse)
async def utilization(request: Request):
    tracker = request.app.state.tracker
    stats = tracker.stats_snapshot()
    return UtilizationResponse(
        domain=tracker.identity.domain,
        revision=tracker.identity.revision,
        worker_number=tracker.worker_number,
        total_requests=tracker.totals.total_requests,
        procline=tracker.procline(stats),
        window=WindowResponse(**asdict(stats)),
    )


@router.get("/metrics")
async def prometheus_metrics(request: Request):
    registry = getattr(request.app.state, "metrics_registry", None)
    if registry is None:
        return Response(status_code=404)
    return Response(generate_latest(registry), media_type=CONTENT_TYPE_LATEST)
