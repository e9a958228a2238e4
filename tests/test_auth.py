"""Tests for authentication and settings."""

import pytest


class TestGetCurrentUserMock:
    """get_current_user() returns FakeUser in mock mode."""

    @pytest.mark.anyio
    async def test_returns_fake_user_dict(self):
        from fastapi import Request

        from agency_portal.auth.security import get_current_user

        scope = {
            "type": "http",
            "method": "GET",
            "path": "/",
            "query_string": b"",
            "headers": [],
        }
        request = Request(scope)
        result = await get_current_user(request)
        assert result["id"] == "local-dev-user"
        assert result["email"] == "dev@localhost"


class TestSettingsValidation:
    """PortalSettings validates cross-field constraints."""

    def test_header_mode_requires_header_name(self):
        from agency_portal.settings import PortalSettings

        with pytest.raises(Exception, match="AUTH_PRINCIPAL_HEADER"):
            PortalSettings(auth_mode="header", auth_principal_header="", _env_file=None)

    def test_mock_mode_needs_no_header(self):
        from agency_portal.settings import PortalSettings

        s = PortalSettings(auth_mode="mock", auth_principal_header="", _env_file=None)
        assert s.auth_mode == "mock"

    def test_warning_must_be_shorter_than_inactivity(self):
        from agency_portal.settings import PortalSettings

        with pytest.raises(Exception, match="SESSION_WARNING_BEFORE_LOGOUT"):
            PortalSettings(
                auth_mode="mock",
                session_inactivity_timeout=60,
                session_warning_before_logout=60,
                _env_file=None,
            )

    def test_session_profile_and_overrides(self):
        from agency_portal.settings import PortalSettings

        s = PortalSettings(
            auth_mode="mock",
            session_profile="development",
            session_heartbeat_interval=15,
            _env_file=None,
        )
        config = s.session_config()
        assert config.inactivity_timeout == 120
        assert config.warning_before_logout == 30
        assert config.heartbeat_interval == 15

    def test_header_mode_redirects_to_proxy_sign_out(self):
        from agency_portal.settings import PortalSettings

        s = PortalSettings(
            auth_mode="header",
            auth_sign_out_url="https://auth.example.test/oauth2/sign_out",
            _env_file=None,
        )
        assert s.session_config().logout_redirect == "https://auth.example.test/oauth2/sign_out"

    def test_mock_mode_keeps_login_redirect(self):
        from agency_portal.settings import PortalSettings

        s = PortalSettings(auth_mode="mock", _env_file=None)
        assert s.session_config().logout_redirect == "/login"
