"""Response body wrapper that signals when the transport is done with it.

WSGI servers call ``close()`` on the returned iterable once the response has
been written, whether it was fully iterated, aborted or never read. That call
is the only reliable end-of-response signal, so accounting hangs off it.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Any, Callable

OPEN = "open"
CLOSING = "closing"
CLOSED = "closed"


class OneShot:
    """Runs a callback at most once, however many times it is fired."""

    def __init__(self, callback: Callable[[], Any]) -> None:
        self._callback = callback
        self.fired = False

    def fire(self) -> None:
        if self.fired:
            return
        self.fired = True
        self._callback()


class DeferredCompletionBody:
    """Proxies a response body and fires ``on_complete`` once on close.

    ``str``/``bytes`` payloads and non-iterable values are exposed as a
    single chunk. The callback receives no body content.
    """

    def __init__(self, body: Any, on_complete: Callable[[], Any]) -> None:
        self._body = body
        self._done = OneShot(on_complete)
        self.state = OPEN

    @property
    def closed(self) -> bool:
        return self.state == CLOSED

    def __iter__(self) -> Iterator[Any]:
        body = self._body
        if isinstance(body, (str, bytes, bytearray)) or not isinstance(body, Iterable):
            return iter((body,))
        return iter(body)

    def close(self) -> None:
        if self.state != OPEN:
            return
        self.state = CLOSING
        try:
            release = getattr(self._body, "close", None)
            if callable(release):
                release()
        finally:
            try:
                self._done.fire()
            finally:
                self.state = CLOSED
