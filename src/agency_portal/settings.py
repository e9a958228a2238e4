"""Portal settings loaded from environment variables."""

import logging
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings

from agency_portal.session.config import SessionTimeoutConfig, profile_config

logger = logging.getLogger(__name__)


class PortalSettings(BaseSettings):
    """Configuration for the agency portal.

    Values are read from environment variables (case-insensitive) and
    optionally from a ``.env`` file in the working directory.
    """

    auth_mode: Literal["header", "mock"] = "header"
    # Header set by the authenticating reverse proxy in front of the app.
    auth_principal_header: str = "X-Auth-Request-Email"
    # Where the browser is sent after a forced or manual logout in header mode.
    auth_sign_out_url: str = "/oauth2/sign_out"

    dataforseo_base_url: str = "https://api.dataforseo.com"
    dataforseo_login: str = ""
    dataforseo_password: str = ""
    # Overrides both the volatile and the reference-data TTL when set.
    dataforseo_cache_ttl: float | None = None

    google_places_api_key: str = ""

    cache_max_entries: int | None = 1024
    cache_single_flight: bool = True

    places_rate_limit: int = 30
    places_rate_window: float = 60

    session_profile: Literal["development", "production"] = "production"
    session_inactivity_timeout: float | None = None
    session_warning_before_logout: float | None = None
    session_heartbeat_interval: float | None = None

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _validate(self) -> "PortalSettings":
        if self.auth_mode == "header" and not self.auth_principal_header:
            raise ValueError(
                "AUTH_MODE=header requires AUTH_PRINCIPAL_HEADER to be set. "
                "Set AUTH_MODE=mock for local development without a proxy."
            )
        config = self.session_config()
        if config.warning_before_logout >= config.inactivity_timeout:
            raise ValueError(
                "SESSION_WARNING_BEFORE_LOGOUT must be shorter than "
                "SESSION_INACTIVITY_TIMEOUT."
            )
        return self

    def session_config(self) -> SessionTimeoutConfig:
        """Return the session timeout profile with any explicit overrides applied."""
        overrides: dict[str, float | str] = {}
        if self.auth_mode == "header":
            overrides["logout_redirect"] = self.auth_sign_out_url
        if self.session_inactivity_timeout is not None:
            overrides["inactivity_timeout"] = self.session_inactivity_timeout
        if self.session_warning_before_logout is not None:
            overrides["warning_before_logout"] = self.session_warning_before_logout
        if self.session_heartbeat_interval is not None:
            overrides["heartbeat_interval"] = self.session_heartbeat_interval
        return profile_config(self.session_profile, **overrides)


settings = PortalSettings()
