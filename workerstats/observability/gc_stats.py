"""Garbage collector cost per request.

CPython reports every collection through ``gc.callbacks``; interpreters
without that hook have no GC timing capability and ``GcTimer.available``
is False.
"""

from __future__ import annotations

import gc
import time
from typing import Any, Optional

_shared: Optional["GcTimer"] = None


class GcTimer:
    """Accumulates collection time and count between ``clear()`` calls.

    Trackers share the process-wide instance from ``shared()`` so only one
    hook is ever registered in ``gc.callbacks``.
    """

    @classmethod
    def shared(cls) -> "GcTimer":
        global _shared
        if _shared is None:
            _shared = cls().install()
        return _shared

    def __init__(self) -> None:
        self.available = hasattr(gc, "callbacks")
        self.installed = False
        self.time = 0.0
        self.collections = 0
        self._started_at: float | None = None

    def install(self) -> "GcTimer":
        if self.available and not self.installed:
            gc.callbacks.append(self._on_gc)
            self.installed = True
        return self

    def uninstall(self) -> None:
        if self.installed:
            try:
                gc.callbacks.remove(self._on_gc)
            except ValueError:
                pass
            self.installed = False

    def clear(self) -> None:
        self.time = 0.0
        self.collections = 0

    def _on_gc(self, phase: str, info: dict[str, Any]) -> None:
        if phase == "start":
            self._started_at = time.perf_counter()
        elif phase == "stop" and self._started_at is not None:
            self.time += time.perf_counter() - self._started_at
            self.collections += 1
            self._started_at = None
