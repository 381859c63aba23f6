#!/usr/bin/env python3
"""Smoke test for a running workerstats service.

Drives a handful of requests and checks that the worker accounted for them.
"""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass

import httpx

BASE_URL = "http://127.0.0.1:8000"
TIMEOUT = 10.0
REQUESTS = 20


@dataclass
class SmokeState:
    total_before: int = 0
    total_after: int = 0


def expect(condition: bool, message: str) -> None:
    if not condition:
        raise AssertionError(message)


def get(client: httpx.Client, path: str, expected: int = 200, **kwargs):
    resp = client.get(f"{BASE_URL}{path}", **kwargs)
    expect(resp.status_code == expected, f"GET {path} -> {resp.status_code} != {expected}; body={resp.text[:500]}")
    return resp


def main() -> int:
    state = SmokeState()
    with httpx.Client(timeout=TIMEOUT) as client:
        # 1) Status + node headers
        status = get(client, "/status")
        expect(status.text == "OK", f"unexpected status body {status.text!r}")
        expect("X-Node" in status.headers, "missing X-Node header")
        expect("X-Revision" in status.headers, "missing X-Revision header")

        # 2) Baseline
        state.total_before = int(get(client, "/utilization").json()["total_requests"])

        # 3) Traffic, including misses
        for n in range(REQUESTS):
            get(client, "/status" if n % 4 else "/nope", expected=200 if n % 4 else 404)

        # 4) Accounting
        utilization = get(client, "/utilization").json()
        state.total_after = int(utilization["total_requests"])
        # Uvicorn with several workers spreads requests, so only check growth.
        expect(state.total_after > state.total_before, "total_requests did not grow")
        expect(utilization["procline"].count("reqs") == 1, "procline malformed")
        expect(utilization["window"]["percent_active"] >= 0, "negative utilization")

    print(json.dumps({"ok": True, "message": "workerstats smoke passed", "procline": utilization["procline"]}))
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except Exception as exc:  # noqa: BLE001
        print(json.dumps({"ok": False, "error": str(exc)}))
        sys.exit(1)
