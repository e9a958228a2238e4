"""Fixed-window request rate limiting keyed by client."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

from fastapi import Request

DEFAULT_MAX_REQUESTS = 30
DEFAULT_WINDOW = 60  # seconds


class FixedWindowRateLimiter:
    """Allow at most *max_requests* per *window* seconds for each key."""

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window: float = DEFAULT_WINDOW,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window = window
        self._clock = clock
        # key -> (count, window reset time)
        self._windows: dict[str, tuple[int, float]] = {}
        self._lock = threading.Lock()

    def allow(self, key: str) -> bool:
        """Count one request for *key* and return whether it is allowed."""
        now = self._clock()
        with self._lock:
            record = self._windows.get(key)
            if record is None or now > record[1]:
                self._windows[key] = (1, now + self.window)
                return True
            count, reset_at = record
            if count >= self.max_requests:
                return False
            self._windows[key] = (count + 1, reset_at)
            return True

    def prune(self) -> int:
        """Drop finished windows and return how many were removed."""
        now = self._clock()
        with self._lock:
            stale = [key for key, (_, reset_at) in self._windows.items() if now > reset_at]
            for key in stale:
                del self._windows[key]
        return len(stale)


def client_ip(request: Request) -> str:
    """Best-effort client address: first forwarded hop, real IP, then socket peer."""
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first.startswith("::ffff:"):
            first = first[len("::ffff:") :]
        if first:
            return first
    real_ip = request.headers.get("X-Real-IP", "").strip()
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"
