"""Shared test fixtures for agency-portal tests."""

from __future__ import annotations

import logging
import os

os.environ.setdefault("AUTH_MODE", "mock")

from unittest.mock import MagicMock  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from agency_portal.app import app  # noqa: E402
from agency_portal.settings import settings  # noqa: E402


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def client():
    """Create a FastAPI test client; the lifespan builds fresh caches."""
    with TestClient(app) as c:
        yield c


@pytest.fixture(autouse=True)
def _provider_credentials(monkeypatch):
    """Give every test fake provider credentials."""
    monkeypatch.setattr(settings, "dataforseo_login", "agency")
    monkeypatch.setattr(settings, "dataforseo_password", "s3cret")
    monkeypatch.setattr(settings, "dataforseo_base_url", "https://dfs.example.test")
    monkeypatch.setattr(settings, "google_places_api_key", "places-key")


@pytest.fixture(autouse=True)
def _propagate_app_logs(monkeypatch):
    """Let ``caplog`` see records from the ``agency_portal`` logger tree."""
    monkeypatch.setattr(logging.getLogger("agency_portal"), "propagate", True)


@pytest.fixture()
def make_response():
    """Build a mock ``requests.Response``."""

    def _make(payload: object, status_code: int = 200) -> MagicMock:
        resp = MagicMock()
        resp.ok = status_code < 400
        resp.status_code = status_code
        resp.url = "https://upstream.example.test"
        resp.json.return_value = payload
        return resp

    return _make
