"""DataForSEO keyword research – Google Ads search volume and Labs endpoints."""

from __future__ import annotations

import json
import re

import requests

from agency_portal.cache import CacheResult, ResponseCache, make_key
from agency_portal.upstream._auth import _base_url, _get_headers
from agency_portal.upstream._http import DEFAULT_TIMEOUT, _json_or_raise

DEFAULT_LOCATION = "United States"
DEFAULT_LANGUAGE = "en"

SEARCH_VOLUME_MAX_KEYWORDS = 1000
SEARCH_VOLUME_MAX_KEYWORD_LENGTH = 80
KEYWORD_IDEAS_MAX_KEYWORDS = 200
KEYWORD_IDEAS_MAX_KEYWORD_LENGTH = 100
LABS_DEFAULT_LIMIT = 10
LABS_MAX_LIMIT = 1000

_LABEL = r"[a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
_DOMAIN_RE = re.compile("^" + _LABEL + r"(\." + _LABEL + ")*$")


def _check_keywords(keywords: list[str], max_count: int, max_length: int) -> list[str]:
    """Return the stripped keywords, raising ``ValueError`` on a bad list."""
    if not keywords or not isinstance(keywords, list):
        raise ValueError("Missing 'keywords'")
    if len(keywords) > max_count:
        raise ValueError(f"Maximum {max_count} keywords allowed per request")
    cleaned = []
    for i, keyword in enumerate(keywords):
        if not isinstance(keyword, str) or not keyword.strip():
            raise ValueError(f"Keyword at index {i} must be a non-empty string")
        if len(keyword) > max_length:
            raise ValueError(f"Keyword {keyword!r} too long. Max length: {max_length}")
        cleaned.append(keyword.strip())
    return cleaned


def _post(path: str, task: dict) -> dict:
    resp = requests.post(
        f"{_base_url()}{path}",
        json=[task],
        headers=_get_headers(),
        timeout=DEFAULT_TIMEOUT,
    )
    return _json_or_raise(resp)


def search_volume(
    keywords: list[str],
    location_name: str | None = None,
    language_code: str | None = None,
    *,
    cache: ResponseCache,
) -> CacheResult:
    """Return Google Ads search volume for *keywords*.

    Keywords are lower-cased before the lookup so that casing variants share
    one cache entry.
    """
    normalized = [
        k.lower()
        for k in _check_keywords(
            keywords, SEARCH_VOLUME_MAX_KEYWORDS, SEARCH_VOLUME_MAX_KEYWORD_LENGTH
        )
    ]
    location = location_name or DEFAULT_LOCATION
    language = language_code or DEFAULT_LANGUAGE

    def _fetch() -> dict:
        return _post(
            "/v3/keywords_data/google_ads/search_volume/live",
            {"keywords": normalized, "location_name": location, "language_code": language},
        )

    key = make_key("volume", ",".join(normalized), location, language)
    return cache.get_or_fetch(key, _fetch)


def keyword_ideas(
    keywords: list[str],
    location_name: str = DEFAULT_LOCATION,
    language_code: str = DEFAULT_LANGUAGE,
    *,
    limit: int = LABS_DEFAULT_LIMIT,
    offset: int = 0,
    filters: list | None = None,
    order_by: list[str] | None = None,
    include_clickstream_data: bool = False,
    cache: ResponseCache,
) -> CacheResult:
    """Return keyword ideas related to the seed *keywords*.

    *limit* is clamped to ``1..LABS_MAX_LIMIT``.  The seed order does not
    affect the cache key.
    """
    seeds = _check_keywords(keywords, KEYWORD_IDEAS_MAX_KEYWORDS, KEYWORD_IDEAS_MAX_KEYWORD_LENGTH)
    limit = min(max(limit or LABS_DEFAULT_LIMIT, 1), LABS_MAX_LIMIT)
    order = order_by or ["relevance,desc"]

    def _fetch() -> dict:
        return _post(
            "/v3/dataforseo_labs/google/keyword_ideas/live",
            {
                "keywords": seeds,
                "location_name": location_name,
                "language_code": language_code,
                "limit": limit,
                "offset": offset,
                "filters": filters or [],
                "order_by": order,
                "include_clickstream_data": include_clickstream_data,
            },
        )

    key = make_key(
        "keyword_ideas",
        ",".join(sorted(seeds)),
        location_name,
        language_code,
        limit,
        offset,
        json.dumps(filters or [], sort_keys=True),
        ",".join(order),
        include_clickstream_data,
    )
    return cache.get_or_fetch(key, _fetch)


def normalize_domain(target: str) -> str:
    """Strip the scheme and a leading ``www.`` from *target* and lower-case it."""
    domain = target.strip().lower()
    domain = re.sub(r"^https?://", "", domain)
    return re.sub(r"^www\.", "", domain).rstrip("/")


def ranked_keywords(
    target: str,
    location_name: str = DEFAULT_LOCATION,
    language_code: str = DEFAULT_LANGUAGE,
    *,
    limit: int = LABS_DEFAULT_LIMIT,
    offset: int = 0,
    filters: list | None = None,
    order_by: list[str] | None = None,
    include_subdomains: bool = False,
    include_clickstream_data: bool = False,
    cache: ResponseCache,
) -> CacheResult:
    """Return the keywords the *target* domain ranks for."""
    if not target or not isinstance(target, str):
        raise ValueError("Missing 'target'")
    domain = normalize_domain(target)
    if not 3 <= len(domain) <= 255 or not _DOMAIN_RE.match(domain):
        raise ValueError(f"Invalid target domain: {target!r}")
    if not 1 <= limit <= LABS_MAX_LIMIT:
        raise ValueError(f"Limit must be between 1 and {LABS_MAX_LIMIT}")
    if offset < 0:
        raise ValueError("Offset must be a non-negative integer")
    order = order_by or ["search_volume,desc"]

    def _fetch() -> dict:
        return _post(
            "/v3/dataforseo_labs/google/ranked_keywords/live",
            {
                "target": domain,
                "location_name": location_name,
                "language_code": language_code,
                "limit": limit,
                "offset": offset,
                "filters": filters or [],
                "order_by": order,
                "include_subdomains": include_subdomains,
                "include_clickstream_data": include_clickstream_data,
            },
        )

    key = make_key(
        "ranked",
        domain,
        location_name,
        language_code,
        limit,
        offset,
        json.dumps(filters or [], sort_keys=True),
        ",".join(order),
        include_subdomains,
        include_clickstream_data,
    )
    return cache.get_or_fetch(key, _fetch)
