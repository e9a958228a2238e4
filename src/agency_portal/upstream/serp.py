"""DataForSEO Google SERP endpoints – location lookup, Maps and organic search."""

from __future__ import annotations

import logging

import requests

from agency_portal.cache import CacheResult, ResponseCache, make_key
from agency_portal.upstream._auth import _base_url, _get_headers
from agency_portal.upstream._http import DEFAULT_TIMEOUT, _json_or_raise

logger = logging.getLogger(__name__)

MAPS_SEARCH_DEPTH = 100


def search_locations(
    q: str,
    country_code: str | None = None,
    *,
    cache: ResponseCache,
) -> CacheResult:
    """Look up SERP locations matching *q*, optionally within *country_code*.

    Results are cached under ``locations:{q}:{country_code}``.
    """
    if not q:
        raise ValueError("Missing 'q'")

    def _fetch() -> dict:
        params = {"q": q}
        if country_code:
            params["country_code"] = country_code
        resp = requests.get(
            f"{_base_url()}/v3/serp/google/locations",
            params=params,
            headers=_get_headers(),
            timeout=DEFAULT_TIMEOUT,
        )
        return _json_or_raise(resp)

    return cache.get_or_fetch(make_key("locations", q, country_code), _fetch)


def maps_search(
    keyword: str,
    language_code: str = "es",
    location_code: int | None = None,
    location_name: str | None = None,
    *,
    cache: ResponseCache,
) -> CacheResult:
    """Run a live Google Maps search for *keyword* around one location.

    Either *location_code* or *location_name* is required.
    """
    if not keyword:
        raise ValueError("Missing 'keyword'")
    if not location_code and not location_name:
        raise ValueError("Provide 'location_code' or 'location_name'")

    def _fetch() -> dict:
        task: dict[str, object] = {"keyword": keyword}
        if location_code:
            task["location_code"] = location_code
        if location_name:
            task["location_name"] = location_name
        task.update(
            language_code=language_code,
            device="desktop",
            os="windows",
            depth=MAPS_SEARCH_DEPTH,
        )
        resp = requests.post(
            f"{_base_url()}/v3/serp/google/maps/live/advanced",
            json=[task],
            headers=_get_headers(),
            timeout=DEFAULT_TIMEOUT,
        )
        return _json_or_raise(resp)

    key = make_key("maps", keyword, language_code, location_code, location_name)
    return cache.get_or_fetch(key, _fetch)


ORGANIC_MAX_KEYWORD_LENGTH = 100
ORGANIC_DEPTH_RANGE = (10, 700)
ORGANIC_CRAWL_PAGES_RANGE = (1, 7)
PEOPLE_ALSO_ASK_DEPTH_RANGE = (1, 4)
DEVICES = ("desktop", "mobile")


def _check_range(name: str, value: int, bounds: tuple[int, int]) -> None:
    low, high = bounds
    if not low <= value <= high:
        raise ValueError(f"{name} must be between {low} and {high}")


def organic_search(
    keyword: str,
    location_name: str = "United States",
    language_code: str = "en",
    *,
    depth: int = 10,
    device: str = "desktop",
    max_crawl_pages: int = 1,
    people_also_ask_click_depth: int | None = None,
    cache: ResponseCache,
) -> CacheResult:
    """Run a live Google organic search for *keyword*."""
    if not keyword:
        raise ValueError("Missing 'keyword'")
    if len(keyword) > ORGANIC_MAX_KEYWORD_LENGTH:
        raise ValueError(f"Keyword too long. Max length: {ORGANIC_MAX_KEYWORD_LENGTH}")
    if device not in DEVICES:
        raise ValueError(f"Unsupported device. Supported: {', '.join(DEVICES)}")
    _check_range("Depth", depth, ORGANIC_DEPTH_RANGE)
    _check_range("Max crawl pages", max_crawl_pages, ORGANIC_CRAWL_PAGES_RANGE)
    if people_also_ask_click_depth is not None:
        _check_range(
            "People also ask click depth", people_also_ask_click_depth, PEOPLE_ALSO_ASK_DEPTH_RANGE
        )

    def _fetch() -> dict:
        task: dict[str, object] = {
            "keyword": keyword,
            "location_name": location_name,
            "language_code": language_code,
            "depth": depth,
            "device": device,
            "max_crawl_pages": max_crawl_pages,
        }
        if people_also_ask_click_depth is not None:
            task["people_also_ask_click_depth"] = people_also_ask_click_depth
        resp = requests.post(
            f"{_base_url()}/v3/serp/google/organic/live/advanced",
            json=[task],
            headers=_get_headers(),
            timeout=DEFAULT_TIMEOUT,
        )
        return _json_or_raise(resp)

    key = make_key(
        "organic",
        keyword,
        location_name,
        language_code,
        depth,
        device,
        max_crawl_pages,
        people_also_ask_click_depth,
    )
    return cache.get_or_fetch(key, _fetch)
