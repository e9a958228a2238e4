"""Upstream error types and response handling."""

from __future__ import annotations

import logging

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30  # seconds


class UpstreamError(Exception):
    """A data provider answered with a non-success status."""

    def __init__(self, status_code: int, message: str, payload: object = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.payload = payload


class UpstreamConfigError(RuntimeError):
    """Credentials or endpoints for a data provider are missing."""


def _json_or_raise(resp: requests.Response, default_message: str = "Upstream error") -> dict:
    """Return the decoded JSON body, raising :class:`UpstreamError` on failure statuses.

    A success status with a body that is not JSON is reported as ``502`` so it
    never reaches a cache.
    """
    try:
        data = resp.json()
    except ValueError:
        if resp.ok:
            logger.warning("Upstream %s returned a non-JSON body", resp.url)
            raise UpstreamError(502, "Invalid upstream response") from None
        data = {}
    if not resp.ok:
        message = default_message
        if isinstance(data, dict) and data.get("message"):
            message = str(data["message"])
        logger.warning("Upstream %s returned %s: %s", resp.url, resp.status_code, message)
        raise UpstreamError(resp.status_code, message, data)
    return data
