"""Session provider interface consumed by the lifetime monitor."""

from __future__ import annotations

import logging
import threading
from typing import Literal, Protocol

logger = logging.getLogger(__name__)

SessionStatus = Literal["authenticated", "unauthenticated", "loading"]


class SessionProvider(Protocol):
    """What the monitor needs from the identity/session provider."""

    def status(self) -> SessionStatus: ...

    def sign_out(self) -> None: ...

    def heartbeat(self) -> None: ...


class LocalSessionProvider:
    """In-process session used in mock auth mode.

    Authenticated from construction until :meth:`sign_out` is called.
    """

    def __init__(self, user_id: str, status: SessionStatus = "authenticated") -> None:
        self.user_id = user_id
        self._status: SessionStatus = status
        self.heartbeats = 0
        self.sign_outs = 0
        self._lock = threading.Lock()

    def status(self) -> SessionStatus:
        return self._status

    def sign_out(self) -> None:
        with self._lock:
            self.sign_outs += 1
            self._status = "unauthenticated"
        logger.info("Signed out %s", self.user_id)

    def heartbeat(self) -> None:
        with self._lock:
            if self._status != "authenticated":
                raise RuntimeError(f"Session for {self.user_id} is no longer active")
            self.heartbeats += 1
        logger.debug("Heartbeat for %s", self.user_id)


class ProxySessionProvider:
    """Session held by the authenticating reverse proxy (header auth mode).

    The proxy owns the session cookie, so signing out here only stops
    trusting the principal; the monitor then redirects the browser to the
    proxy's sign-out endpoint, which ends the real session.
    """

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        self._signed_out = False

    def status(self) -> SessionStatus:
        return "unauthenticated" if self._signed_out else "authenticated"

    def sign_out(self) -> None:
        self._signed_out = True
        logger.info("Handing %s to the auth proxy for sign-out", self.user_id)

    def heartbeat(self) -> None:
        # The proxy refreshes its cookie on every proxied request.
        if self._signed_out:
            raise RuntimeError(f"Session for {self.user_id} is no longer active")
