from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional


@dataclass
class ScopeMonitor:
    """
    Counts tensor scopes so callers can check that detections never overlap.
    """

    opened: int = 0
    closed: int = 0
    active: int = 0
    peak_active: int = 0
    released: int = 0

    def on_open(self) -> None:
        self.opened += 1
        self.active += 1
        self.peak_active = max(self.peak_active, self.active)

    def on_close(self, released: int) -> None:
        self.closed += 1
        self.active -= 1
        self.released += released


class TensorScope:
    """
    Holds the intermediate arrays of one detection call and drops them on exit.

    Usage:
        with TensorScope() as scope:
            blob = scope.track(preprocess(...).blob)
            ...

    Everything tracked is released when the block exits, including on errors.
    The scope only drops its own references: an array is freed then only if
    the caller no longer holds it.
    """

    def __init__(self, monitor: Optional[ScopeMonitor] = None):
        self.monitor = monitor
        self._tracked: List[Any] = []
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def tracked_count(self) -> int:
        return len(self._tracked)

    def track(self, value: Any) -> Any:
        if not self._open:
            raise RuntimeError("TensorScope is not open.")
        self._tracked.append(value)
        return value

    def release(self) -> int:
        count = len(self._tracked)
        self._tracked.clear()
        return count

    def __enter__(self) -> "TensorScope":
        if self._open:
            raise RuntimeError("TensorScope is already open.")
        self._open = True
        if self.monitor is not None:
            self.monitor.on_open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        released = self.release()
        self._open = False
        if self.monitor is not None:
            self.monitor.on_close(released)
