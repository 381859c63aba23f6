"""ASGI adapter for the utilization tracker.

ASGI has no body ``close()``; the end of a response is the last
``http.response.body`` message. Accounting fires right after that message
has been handed to the server, or when the app returns or raises having
started a response it never finished. An app that fails before starting a
response is not accounted for.
"""

from __future__ import annotations

from typing import Any, Optional

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from workerstats.observability.body import OneShot
from workerstats.observability.tracker import ProcessUtilization


class ProcessUtilizationMiddleware:
    def __init__(self, app: ASGIApp, tracker: Optional[ProcessUtilization] = None, **options: Any) -> None:
        self.app = app
        if tracker is None:
            tracker = ProcessUtilization(None, options.pop("domain"), options.pop("revision"), **options)
        self.tracker = tracker

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        tracker = self.tracker
        timing = tracker.begin(method=scope.get("method"))
        state = scope.setdefault("state", {})
        state["process_request_start"] = timing.start
        state["process_total_requests"] = tracker.totals.total_requests

        status: list[int] = []
        done = OneShot(lambda: tracker.complete(timing, status[0]))

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                status.append(message["status"])
            await send(message)
            if message["type"] == "http.response.body" and not message.get("more_body", False):
                done.fire()

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            # A started response is over once the app returns or raises.
            if status:
                done.fire()
