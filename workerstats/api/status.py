"""Status API — canned response for load balancers and monitors."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse


def build_status_router(path: str = "/status", response: str = "OK") -> APIRouter:
    router = APIRouter(tags=["status"])

    @router.get(path, response_class=PlainTextResponse)
    async def request_status() -> str:
        return response

    return router
