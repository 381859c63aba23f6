"""Small WSGI middlewares that usually sit next to the utilization tracker."""

from __future__ import annotations

from typing import Any, Callable, Iterable, Optional

from workerstats.utils.host import short_hostname

STATUS_PATH = "/status"


class RequestStatus:
    """Answers ``GET <status_path>`` for load balancers and monitors.

    ``callback_or_response`` is either a callable producing the body or a
    value whose string form is the body::

        RequestStatus(app, "OK")
        RequestStatus(app, lambda: json.dumps(live_counters()), "/ping")
    """

    def __init__(self, app: Callable[..., Iterable[Any]], callback_or_response: Any, status_path: Optional[str] = None) -> None:
        self.app = app
        self.status_path = status_path or STATUS_PATH
        self.callback = callback_or_response

    def _body(self) -> bytes:
        value = self.callback() if callable(self.callback) else self.callback
        if isinstance(value, bytes):
            return value
        return str(value).encode("utf-8")

    def __call__(self, environ: dict[str, Any], start_response: Callable[..., Any]) -> Iterable[Any]:
        if environ.get("REQUEST_METHOD") == "GET" and environ.get("PATH_INFO") == self.status_path:
            body = self._body()
            start_response(
                "200 OK",
                [("Content-Type", "text/plain; charset=utf-8"), ("Content-Length", str(len(body)))],
            )
            return [body]
        return self.app(environ, start_response)


class RequestHostname:
    """Adds ``X-Node`` and ``X-Revision`` so a response can be traced to the
    machine and code that produced it."""

    def __init__(self, app: Callable[..., Iterable[Any]], host: Optional[str] = None, revision: Optional[str] = None) -> None:
        self.app = app
        self.host = host or short_hostname()
        self.revision = revision or "<none>"

    def __call__(self, environ: dict[str, Any], start_response: Callable[..., Any]) -> Iterable[Any]:
        def _start_response(status, headers, exc_info=None):
            headers = [(k, v) for k, v in headers if k.lower() not in ("x-node", "x-revision")]
            headers.append(("X-Node", self.host))
            headers.append(("X-Revision", self.revision))
            if exc_info is None:
                return start_response(status, headers)
            return start_response(status, headers, exc_info)

        return self.app(environ, _start_response)
