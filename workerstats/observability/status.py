"""HTTP status code to metric category mapping."""

from __future__ import annotations

from typing import Optional

STATUS_CATEGORIES: dict[int, str] = {
    200: "ok",
    201: "created",
    202: "accepted",
    301: "moved_permanently",
    302: "found",
    303: "see_other",
    304: "not_modified",
    305: "use_proxy",
    307: "temporary_redirect",
    400: "bad_request",
    401: "unauthorized",
    402: "payment_required",
    403: "forbidden",
    404: "missing",
    410: "gone",
    422: "invalid",
    500: "error",
    502: "bad_gateway",
    503: "node_down",
    504: "gateway_timeout",
}


def classify(code: object) -> Optional[str]:
    """Return the category for a known status code, else None.

    Accepts ints and WSGI status lines such as ``"404 Not Found"``.
    """
    if isinstance(code, bool):
        return None
    if isinstance(code, str):
        head = code.strip().split(" ", 1)[0]
        if not head.isdigit():
            return None
        code = int(head)
    if not isinstance(code, int):
        return None
    return STATUS_CATEGORIES.get(code)
