"""Credentials for the SEO data provider."""

from __future__ import annotations

import base64

from agency_portal.settings import settings
from agency_portal.upstream._http import UpstreamConfigError


def _basic_auth(login: str, password: str) -> str:
    token = base64.b64encode(f"{login}:{password}".encode()).decode("ascii")
    return f"Basic {token}"


def _get_headers() -> dict[str, str]:
    """Return DataForSEO request headers using the configured credentials."""
    if not settings.dataforseo_login or not settings.dataforseo_password:
        raise UpstreamConfigError(
            "DATAFORSEO_LOGIN and DATAFORSEO_PASSWORD must be set to call DataForSEO."
        )
    return {
        "Authorization": _basic_auth(settings.dataforseo_login, settings.dataforseo_password),
        "Content-Type": "application/json",
    }


def _base_url() -> str:
    return settings.dataforseo_base_url.rstrip("/")
