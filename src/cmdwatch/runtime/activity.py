"""In-memory output sink that remembers when it was last written to."""

from __future__ import annotations

import threading
import time

__all__ = ["ActivityBuffer"]


class ActivityBuffer:
    """A byte buffer that tracks the time of its most recent write.

    The buffer and the timestamp are updated under one lock, so the output
    relay and the supervisor can use it concurrently. Timestamps come from
    ``time.monotonic()``; ``last_activity()`` is None until the first write.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._buf = bytearray()
        self._last_activity: float | None = None

    def write(self, data: bytes | bytearray | memoryview) -> int:
        with self._lock:
            self._last_activity = time.monotonic()
            self._buf += data
            return len(data)

    def last_activity(self) -> float | None:
        with self._lock:
            return self._last_activity

    def getvalue(self) -> bytes:
        with self._lock:
            return bytes(self._buf)

    def __len__(self) -> int:
        with self._lock:
            return len(self._buf)
