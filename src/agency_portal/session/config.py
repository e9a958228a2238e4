"""Session timeout configuration and per-environment profiles."""

from __future__ import annotations

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class SessionTimeoutConfig:
    """Timing for the session lifetime monitor, in seconds.

    Values are not validated; zero or negative durations are a caller bug.
    """

    inactivity_timeout: float = 20 * 60
    warning_before_logout: float = 3 * 60
    heartbeat_interval: float = 10 * 60
    activity_debounce: float = 0.3
    logout_redirect: str = "/login"

    @property
    def warning_after(self) -> float:
        """Idle time after which the warning is shown."""
        return self.inactivity_timeout - self.warning_before_logout


PRODUCTION = SessionTimeoutConfig()

# Short timings keep manual testing fast.
DEVELOPMENT = SessionTimeoutConfig(
    inactivity_timeout=2 * 60,
    warning_before_logout=30,
    heartbeat_interval=60,
)

PROFILES: dict[str, SessionTimeoutConfig] = {
    "production": PRODUCTION,
    "development": DEVELOPMENT,
}


def profile_config(profile: str = "production", **overrides: float | str) -> SessionTimeoutConfig:
    """Return the named profile with *overrides* applied.

    Raises ``KeyError`` for an unknown profile name.
    """
    base = PROFILES[profile]
    return replace(base, **overrides) if overrides else base  # type: ignore[arg-type]
