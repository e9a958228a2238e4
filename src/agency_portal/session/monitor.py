"""Session lifetime monitor – inactivity warning and forced logout.

The monitor is a small state machine::

    Active ──(idle for inactivity_timeout - warning_before_logout)──▶ Warning
    Warning ──(keep-alive or user activity before the deadline)────▶ Active
    Warning ──(warning deadline reached)───────────────────────────▶ Expired

Every mutation goes through :meth:`SessionMonitor.advance` first, so a timer
tick and a user event that arrive at nearly the same time are applied in the
order they reach the monitor, each against an up-to-date phase.  ``Expired``
is terminal; a fresh mount creates a new monitor.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

from agency_portal.session.config import PRODUCTION, SessionTimeoutConfig
from agency_portal.session.provider import SessionProvider

logger = logging.getLogger(__name__)

ACTIVITY_EVENTS = frozenset(
    {
        "mousemove",
        "mousedown",
        "pointerdown",
        "keydown",
        "keypress",
        "touchstart",
        "scroll",
        "click",
        "focus",
        "visibilitychange",
    }
)


class Phase(StrEnum):
    """Monitor phases, in the order they occur within one idle cycle."""

    active = "active"
    warning = "warning"
    expired = "expired"


def format_time_remaining(seconds: float) -> str:
    """Format a duration as ``m:ss`` (``185.4`` → ``"3:05"``)."""
    seconds = max(0.0, seconds)
    minutes = int(seconds // 60)
    return f"{minutes}:{int(seconds % 60):02d}"


@dataclass(frozen=True)
class SessionTimeoutView:
    """Snapshot of the monitor for the host view."""

    phase: Phase | None
    show_warning: bool
    time_remaining_seconds: float
    is_authenticated: bool
    is_loading: bool
    redirect_to: str | None = None

    @property
    def time_remaining(self) -> str:
        return format_time_remaining(self.time_remaining_seconds)

    def to_dict(self) -> dict:
        return {
            "phase": self.phase.value if self.phase is not None else None,
            "showWarning": self.show_warning,
            "timeRemaining": self.time_remaining,
            "timeRemainingSeconds": round(self.time_remaining_seconds, 3),
            "isAuthenticated": self.is_authenticated,
            "isLoading": self.is_loading,
            "redirectTo": self.redirect_to,
        }


class SessionMonitor:
    """Track inactivity for one authenticated session.

    *provider* is the external session capability (status, sign-out,
    heartbeat) and *clock* a monotonic time source in seconds.  Every public
    method accepts an explicit *now*; when omitted the clock is read.
    *on_expired* is called with the redirect target after a forced or
    manual logout.
    """

    def __init__(
        self,
        provider: SessionProvider,
        config: SessionTimeoutConfig = PRODUCTION,
        *,
        clock: Callable[[], float] = time.monotonic,
        on_expired: Callable[[str], None] | None = None,
    ) -> None:
        self.provider = provider
        self.config = config
        self._clock = clock
        self._on_expired = on_expired
        self._lock = threading.Lock()
        self._closed = False

        self.phase: Phase | None = None
        self.last_activity_at: float | None = None
        self.warning_deadline: float | None = None
        self.last_heartbeat_at: float | None = None
        self.redirect_to: str | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def mount(self, now: float | None = None) -> bool:
        """Start monitoring if the provider reports an authenticated session.

        Returns ``False`` (and stays inert) otherwise.
        """
        now = self._now(now)
        with self._lock:
            if self._closed or self.phase is not None:
                return self.phase is not None
            if self.provider.status() != "authenticated":
                logger.debug("Session not authenticated; monitor stays inert")
                return False
            self.phase = Phase.active
            self.last_activity_at = now
            self.last_heartbeat_at = now
            return True

    def close(self) -> None:
        """Stop the monitor; later events are ignored."""
        with self._lock:
            self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def is_authenticated(self) -> bool:
        return self.provider.status() == "authenticated"

    @property
    def is_loading(self) -> bool:
        return self.provider.status() == "loading"

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def advance(self, now: float | None = None) -> Phase | None:
        """Apply every transition that is due at *now* and return the phase."""
        now = self._now(now)
        with self._lock:
            self._advance(now)
            return self.phase

    def record_activity(self, now: float | None = None, event: str = "mousemove") -> bool:
        """Register a user interaction.

        Returns ``True`` if it refreshed the activity timestamp.  Bursts
        closer together than ``activity_debounce`` count once, and activity
        after expiry does nothing.
        """
        if event not in ACTIVITY_EVENTS:
            raise ValueError(f"Unknown activity event: {event!r}")
        now = self._now(now)
        with self._lock:
            self._advance(now)
            if not self._live:
                return False
            assert self.last_activity_at is not None
            if now - self.last_activity_at < self.config.activity_debounce:
                return False
            self._renew(now)
            return True

    def keep_session_active(self, now: float | None = None) -> bool:
        """Dismiss the warning and start a new inactivity window at *now*."""
        now = self._now(now)
        with self._lock:
            self._advance(now)
            if not self._live:
                return False
            self._renew(now)
            return True

    def logout_now(self) -> None:
        """Sign out immediately."""
        with self._lock:
            if self._closed or self.phase is Phase.expired:
                return
            logger.info("Manual logout requested")
            self._expire()

    def view(self, now: float | None = None) -> SessionTimeoutView:
        """Return the current state for display, after advancing to *now*."""
        now = self._now(now)
        with self._lock:
            self._advance(now)
            remaining = 0.0
            if self.phase is Phase.warning and self.warning_deadline is not None:
                remaining = max(0.0, self.warning_deadline - now)
            status = self.provider.status()
            return SessionTimeoutView(
                phase=self.phase,
                show_warning=self.phase is Phase.warning,
                time_remaining_seconds=remaining,
                is_authenticated=status == "authenticated",
                is_loading=status == "loading",
                redirect_to=self.redirect_to,
            )

    # ------------------------------------------------------------------
    # Internals (caller holds the lock)
    # ------------------------------------------------------------------

    def _now(self, now: float | None) -> float:
        return self._clock() if now is None else now

    @property
    def _live(self) -> bool:
        return not self._closed and self.phase in (Phase.active, Phase.warning)

    def _advance(self, now: float) -> None:
        if not self._live:
            return
        assert self.last_activity_at is not None
        if self.phase is Phase.active and now - self.last_activity_at >= self.config.warning_after:
            self.phase = Phase.warning
            self.warning_deadline = self.last_activity_at + self.config.inactivity_timeout
            logger.info(
                "Session idle; logging out in %s",
                format_time_remaining(self.warning_deadline - now),
            )
        if (
            self.phase is Phase.warning
            and self.warning_deadline is not None
            and now >= self.warning_deadline
        ):
            logger.info("Session expired after inactivity")
            self._expire()

    def _renew(self, now: float) -> None:
        if self.phase is Phase.warning:
            logger.debug("Session renewed during warning")
        self.phase = Phase.active
        self.last_activity_at = now
        self.warning_deadline = None
        if (
            self.last_heartbeat_at is None
            or now - self.last_heartbeat_at >= self.config.heartbeat_interval
        ):
            self.last_heartbeat_at = now
            try:
                self.provider.heartbeat()
            except Exception:
                logger.warning("Session heartbeat failed", exc_info=True)

    def _expire(self) -> None:
        self.phase = Phase.expired
        try:
            self.provider.sign_out()
        except Exception:
            # The user is still sent to the public entry point.
            logger.warning("Sign-out failed; redirecting anyway", exc_info=True)
        self.redirect_to = self.config.logout_redirect
        if self._on_expired is not None:
            self._on_expired(self.redirect_to)
