"""Per-user session monitors for the web application."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import Callable

from agency_portal.session.config import PRODUCTION, SessionTimeoutConfig
from agency_portal.session.monitor import Phase, SessionMonitor
from agency_portal.session.provider import SessionProvider

logger = logging.getLogger(__name__)

TICK_INTERVAL = 1.0  # seconds


class SessionRegistry:
    """Own one :class:`SessionMonitor` per signed-in user."""

    def __init__(
        self,
        provider_factory: Callable[[str], SessionProvider],
        config: SessionTimeoutConfig = PRODUCTION,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self._provider_factory = provider_factory
        self._clock = clock
        self._monitors: dict[str, SessionMonitor] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._monitors)

    def mount(self, user_id: str) -> SessionMonitor:
        """Return the user's live monitor, starting a fresh one if needed.

        A monitor that has expired or been closed is replaced.
        """
        with self._lock:
            current = self._monitors.get(user_id)
            if current is not None and not current.closed and current.phase in (
                Phase.active,
                Phase.warning,
            ):
                return current
            monitor = SessionMonitor(
                self._provider_factory(user_id), self.config, clock=self._clock
            )
            monitor.mount()
            self._monitors[user_id] = monitor
        if current is not None:
            current.close()
        logger.debug("Mounted session monitor for %s", user_id)
        return monitor

    def get(self, user_id: str) -> SessionMonitor:
        """Return the user's monitor; raise ``LookupError`` if none is mounted."""
        monitor = self._monitors.get(user_id)
        if monitor is None:
            raise LookupError(f"No session monitor for {user_id}")
        return monitor

    def unmount(self, user_id: str) -> bool:
        """Stop and forget the user's monitor.  Returns whether one existed."""
        with self._lock:
            monitor = self._monitors.pop(user_id, None)
        if monitor is None:
            return False
        monitor.close()
        return True

    def tick_all(self, now: float | None = None) -> list[str]:
        """Advance every monitor and return the users that expired on this tick."""
        now = self._clock() if now is None else now
        with self._lock:
            monitors = list(self._monitors.items())
        expired: list[str] = []
        for user_id, monitor in monitors:
            before = monitor.phase
            if monitor.advance(now) is Phase.expired and before is not Phase.expired:
                expired.append(user_id)
        if expired:
            logger.info("Expired %d idle session(s)", len(expired))
        return expired

    def close(self) -> None:
        """Stop every monitor."""
        with self._lock:
            monitors = list(self._monitors.values())
            self._monitors.clear()
        for monitor in monitors:
            monitor.close()

    async def run(self, interval: float = TICK_INTERVAL) -> None:
        """Tick all monitors every *interval* seconds until cancelled."""
        while True:
            await asyncio.sleep(interval)
            try:
                self.tick_all()
            except Exception:
                logger.exception("Session tick failed")
