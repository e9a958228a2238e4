"""Tests for the session lifetime monitor."""

import logging
from unittest.mock import MagicMock

import pytest

from agency_portal.session import (
    DEVELOPMENT,
    PRODUCTION,
    LocalSessionProvider,
    Phase,
    SessionMonitor,
    SessionTimeoutConfig,
    format_time_remaining,
    profile_config,
)

FAST = SessionTimeoutConfig(
    inactivity_timeout=2.0,
    warning_before_logout=0.5,
    heartbeat_interval=60.0,
    activity_debounce=0.3,
)


def _mounted(config: SessionTimeoutConfig = FAST, provider=None):
    provider = provider or LocalSessionProvider("user-1")
    monitor = SessionMonitor(provider, config, clock=lambda: 0.0)
    assert monitor.mount(now=0.0)
    return monitor, provider


# ---------------------------------------------------------------------------
# Idle cycle
# ---------------------------------------------------------------------------


class TestIdleCycle:
    """No activity: Active → Warning → Expired."""

    def test_starts_active(self) -> None:
        monitor, _ = _mounted()
        assert monitor.phase is Phase.active
        assert monitor.last_activity_at == 0.0
        view = monitor.view(now=0.1)
        assert view.show_warning is False
        assert view.time_remaining == "0:00"

    def test_warning_then_expiry(self) -> None:
        monitor, provider = _mounted()

        assert monitor.advance(now=1.49) is Phase.active
        view = monitor.view(now=1.5)
        assert view.phase is Phase.warning
        assert view.show_warning is True
        assert view.time_remaining_seconds == pytest.approx(0.5)
        assert provider.sign_outs == 0

        assert monitor.advance(now=1.99) is Phase.warning
        assert monitor.advance(now=2.0) is Phase.expired
        assert provider.sign_outs == 1
        assert monitor.redirect_to == "/login"

    def test_sign_out_invoked_exactly_once(self) -> None:
        monitor, provider = _mounted()
        for t in (2.0, 2.5, 3.0, 10.0):
            monitor.advance(now=t)
        monitor.view(now=11.0)
        assert provider.sign_outs == 1

    def test_late_tick_expires_directly(self) -> None:
        monitor, provider = _mounted()
        assert monitor.advance(now=30.0) is Phase.expired
        assert provider.sign_outs == 1

    def test_countdown_shrinks(self) -> None:
        config = SessionTimeoutConfig(inactivity_timeout=600, warning_before_logout=180)
        monitor, _ = _mounted(config)
        assert monitor.view(now=420).time_remaining == "3:00"
        assert monitor.view(now=455).time_remaining == "2:25"
        assert monitor.view(now=599.5).time_remaining == "0:00"

    def test_on_expired_callback(self) -> None:
        targets: list[str] = []
        monitor = SessionMonitor(
            LocalSessionProvider("u"),
            FAST,
            clock=lambda: 0.0,
            on_expired=targets.append,
        )
        monitor.mount(now=0.0)
        monitor.advance(now=2.0)
        assert targets == ["/login"]


# ---------------------------------------------------------------------------
# Renewal
# ---------------------------------------------------------------------------


class TestKeepSessionActive:
    def test_returns_to_active_with_new_window(self) -> None:
        monitor, provider = _mounted()
        monitor.advance(now=1.6)
        assert monitor.phase is Phase.warning

        assert monitor.keep_session_active(now=1.6) is True
        assert monitor.phase is Phase.active
        assert monitor.last_activity_at == 1.6
        assert monitor.view(now=1.6).show_warning is False

        assert monitor.advance(now=1.6 + 1.49) is Phase.active
        assert monitor.advance(now=1.6 + 1.51) is Phase.warning
        assert monitor.advance(now=1.6 + 2.01) is Phase.expired
        assert provider.sign_outs == 1

    def test_too_late_after_deadline(self) -> None:
        monitor, provider = _mounted()
        assert monitor.keep_session_active(now=2.1) is False
        assert monitor.phase is Phase.expired
        assert provider.sign_outs == 1

    def test_activity_during_warning_renews(self) -> None:
        monitor, _ = _mounted()
        monitor.advance(now=1.7)
        assert monitor.record_activity(now=1.8, event="keydown") is True
        assert monitor.phase is Phase.active
        assert monitor.warning_deadline is None


class TestActivityThrottling:
    def test_burst_updates_at_most_once_per_window(self) -> None:
        monitor, _ = _mounted()
        accepted: list[float] = []
        for i in range(21):
            t = 0.5 + i * 0.05
            if monitor.record_activity(now=t, event="mousemove"):
                accepted.append(t)

        assert accepted[0] == 0.5
        assert len(accepted) <= 4
        gaps = [b - a for a, b in zip(accepted, accepted[1:], strict=False)]
        assert all(gap >= 0.3 - 1e-9 for gap in gaps)

    def test_activity_within_debounce_of_mount_is_ignored(self) -> None:
        monitor, _ = _mounted()
        assert monitor.record_activity(now=0.1) is False
        assert monitor.last_activity_at == 0.0

    def test_post_expiry_activity_is_noop(self) -> None:
        monitor, _ = _mounted()
        monitor.advance(now=2.0)
        for t in (2.1, 2.5, 3.0):
            assert monitor.record_activity(now=t, event="click") is False
        assert monitor.phase is Phase.expired

    def test_activity_after_deadline_does_not_revive(self) -> None:
        monitor, provider = _mounted()
        assert monitor.record_activity(now=2.2, event="scroll") is False
        assert monitor.phase is Phase.expired
        assert provider.sign_outs == 1

    def test_unknown_event_rejected(self) -> None:
        monitor, _ = _mounted()
        with pytest.raises(ValueError, match="Unknown activity event"):
            monitor.record_activity(now=1.0, event="resize")


class TestHeartbeat:
    def test_spaced_by_interval(self) -> None:
        config = SessionTimeoutConfig(
            inactivity_timeout=100, warning_before_logout=10, heartbeat_interval=1.0
        )
        monitor, provider = _mounted(config)
        monitor.record_activity(now=0.5)
        assert provider.heartbeats == 0
        monitor.record_activity(now=1.2)
        assert provider.heartbeats == 1
        monitor.keep_session_active(now=1.6)
        assert provider.heartbeats == 1
        monitor.keep_session_active(now=2.3)
        assert provider.heartbeats == 2

    def test_failure_is_logged_and_renewal_kept(self, caplog) -> None:
        provider = MagicMock()
        provider.status.return_value = "authenticated"
        provider.heartbeat.side_effect = RuntimeError("provider down")
        config = SessionTimeoutConfig(
            inactivity_timeout=100, warning_before_logout=10, heartbeat_interval=1.0
        )
        monitor, _ = _mounted(config, provider)

        with caplog.at_level(logging.WARNING, logger="agency_portal.session.monitor"):
            assert monitor.keep_session_active(now=5.0) is True
        assert monitor.phase is Phase.active
        assert "heartbeat failed" in caplog.text


# ---------------------------------------------------------------------------
# Logout and failure semantics
# ---------------------------------------------------------------------------


class TestLogout:
    def test_logout_now(self) -> None:
        monitor, provider = _mounted()
        monitor.logout_now()
        assert monitor.phase is Phase.expired
        assert monitor.redirect_to == "/login"
        assert provider.sign_outs == 1
        monitor.logout_now()
        assert provider.sign_outs == 1

    def test_sign_out_failure_still_redirects(self, caplog) -> None:
        provider = MagicMock()
        provider.status.return_value = "authenticated"
        provider.sign_out.side_effect = ConnectionError("identity provider unreachable")
        monitor, _ = _mounted(provider=provider)

        with caplog.at_level(logging.WARNING, logger="agency_portal.session.monitor"):
            assert monitor.advance(now=2.0) is Phase.expired

        assert monitor.redirect_to == "/login"
        provider.sign_out.assert_called_once()
        assert "Sign-out failed" in caplog.text

    def test_custom_redirect(self) -> None:
        config = SessionTimeoutConfig(
            inactivity_timeout=2.0, warning_before_logout=0.5, logout_redirect="/es/login"
        )
        monitor, _ = _mounted(config)
        monitor.advance(now=5.0)
        assert monitor.view(now=5.0).redirect_to == "/es/login"


class TestLifecycle:
    def test_unauthenticated_monitor_is_inert(self) -> None:
        provider = LocalSessionProvider("anon", status="unauthenticated")
        monitor = SessionMonitor(provider, FAST, clock=lambda: 0.0)
        assert monitor.mount(now=0.0) is False
        assert monitor.phase is None
        assert monitor.advance(now=100.0) is None
        assert monitor.record_activity(now=1.0) is False
        view = monitor.view(now=100.0)
        assert view.is_authenticated is False
        assert view.show_warning is False
        assert provider.sign_outs == 0

    def test_loading_status(self) -> None:
        monitor = SessionMonitor(LocalSessionProvider("u", status="loading"), FAST)
        assert monitor.mount() is False
        assert monitor.is_loading is True
        assert monitor.view().is_loading is True

    def test_closed_monitor_ignores_events(self) -> None:
        monitor, provider = _mounted()
        monitor.close()
        assert monitor.advance(now=10.0) is Phase.active
        assert monitor.keep_session_active(now=10.0) is False
        assert provider.sign_outs == 0

    def test_mount_is_idempotent(self) -> None:
        monitor, _ = _mounted()
        assert monitor.mount(now=5.0) is True
        assert monitor.last_activity_at == 0.0

    def test_uses_clock_when_now_omitted(self, clock) -> None:
        monitor = SessionMonitor(LocalSessionProvider("u"), FAST, clock=clock)
        monitor.mount()
        clock.advance(1.5)
        assert monitor.advance() is Phase.warning
        clock.advance(0.5)
        assert monitor.advance() is Phase.expired


class TestView:
    def test_to_dict(self) -> None:
        monitor, _ = _mounted()
        data = monitor.view(now=1.75).to_dict()
        assert data == {
            "phase": "warning",
            "showWarning": True,
            "timeRemaining": "0:00",
            "timeRemainingSeconds": 0.25,
            "isAuthenticated": True,
            "isLoading": False,
            "redirectTo": None,
        }

    @pytest.mark.parametrize(
        ("seconds", "expected"),
        [(0, "0:00"), (59.99, "0:59"), (60, "1:00"), (185.4, "3:05"), (-3, "0:00")],
    )
    def test_format_time_remaining(self, seconds, expected) -> None:
        assert format_time_remaining(seconds) == expected


class TestProfiles:
    def test_production_defaults(self) -> None:
        assert PRODUCTION.inactivity_timeout == 20 * 60
        assert PRODUCTION.warning_before_logout == 3 * 60
        assert PRODUCTION.heartbeat_interval == 10 * 60
        assert PRODUCTION.warning_after == 17 * 60

    def test_development_is_shorter(self) -> None:
        assert DEVELOPMENT.inactivity_timeout < PRODUCTION.inactivity_timeout
        assert profile_config("development") is DEVELOPMENT

    def test_overrides(self) -> None:
        config = profile_config("production", warning_before_logout=60)
        assert config.warning_before_logout == 60
        assert config.inactivity_timeout == PRODUCTION.inactivity_timeout

    def test_unknown_profile(self) -> None:
        with pytest.raises(KeyError):
            profile_config("staging")
