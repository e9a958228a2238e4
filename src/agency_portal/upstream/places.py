"""Google Places autocomplete."""

from __future__ import annotations

import logging
import time
import uuid

import requests

from agency_portal.settings import settings
from agency_portal.upstream._http import UpstreamConfigError, _json_or_raise

logger = logging.getLogger(__name__)

PLACES_AUTOCOMPLETE_URL = "https://places.googleapis.com/v1/places:autocomplete"
MIN_INPUT_LENGTH = 3
DEFAULT_BIAS_RADIUS = 50_000.0  # metres
PLACES_TIMEOUT = 10  # seconds


def _session_token() -> str:
    """Group the keystrokes of one search into a single billing session."""
    return f"session_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def _prediction(suggestion: dict) -> dict:
    p = suggestion.get("placePrediction") or {}
    fmt = p.get("structuredFormat") or {}
    return {
        "placeId": p.get("placeId"),
        "mainText": (fmt.get("mainText") or {}).get("text"),
        "secondaryText": (fmt.get("secondaryText") or {}).get("text"),
        "description": (p.get("text") or {}).get("text"),
        "types": p.get("types", []),
    }


def places_autocomplete(
    text: str,
    lang: str = "es",
    *,
    latitude: float | None = None,
    longitude: float | None = None,
    radius_meters: float = DEFAULT_BIAS_RADIUS,
) -> dict:
    """Return establishment suggestions for *text*.

    Inputs shorter than ``MIN_INPUT_LENGTH`` return no predictions without
    calling Google.  When both coordinates are given the results are biased
    to a circle around them.  ``requests.Timeout`` propagates to the caller.
    """
    if not text or len(text) < MIN_INPUT_LENGTH:
        return {
            "predictions": [],
            "message": f"Input must be at least {MIN_INPUT_LENGTH} characters long",
        }

    api_key = settings.google_places_api_key
    if not api_key:
        raise UpstreamConfigError("GOOGLE_PLACES_API_KEY is not configured")

    start = time.monotonic()
    token = _session_token()
    body: dict[str, object] = {
        "input": text,
        "languageCode": lang,
        "includedPrimaryTypes": ["establishment"],
        "sessionToken": token,
    }
    has_bias = latitude is not None and longitude is not None
    if has_bias:
        body["locationBias"] = {
            "circle": {
                "center": {"latitude": latitude, "longitude": longitude},
                "radius": radius_meters,
            }
        }

    resp = requests.post(
        PLACES_AUTOCOMPLETE_URL,
        json=body,
        headers={"Content-Type": "application/json", "X-Goog-Api-Key": api_key},
        timeout=PLACES_TIMEOUT,
    )
    data = _json_or_raise(resp, "Google API error")

    predictions = [_prediction(s) for s in data.get("suggestions", []) if "placePrediction" in s]
    return {
        "predictions": predictions,
        "metadata": {
            "responseTime": int((time.monotonic() - start) * 1000),
            "totalResults": len(predictions),
            "hasLocationBias": has_bias,
            "sessionToken": token,
        },
    }
