"""DataForSEO On-Page endpoints – instant page analysis and Lighthouse audits."""

from __future__ import annotations

import requests

from agency_portal.cache import CacheResult, ResponseCache, make_key
from agency_portal.upstream._auth import _base_url, _get_headers
from agency_portal.upstream._http import DEFAULT_TIMEOUT, _json_or_raise

# Collects the rendered document URL alongside the standard page checks.
_CUSTOM_JS = "meta = {}; meta.url = document.URL; meta;"


def instant_pages(url: str, *, cache: ResponseCache) -> CacheResult:
    """Analyse a single page with JavaScript and browser rendering enabled."""
    if not url or not isinstance(url, str):
        raise ValueError("Missing 'url' in request body")

    def _fetch() -> dict:
        task = {
            "url": url,
            "enable_javascript": True,
            "enable_browser_rendering": True,
            "enable_cookies": True,
            "enable_xhr": True,
            "load_resources": True,
            "custom_js": _CUSTOM_JS,
        }
        resp = requests.post(
            f"{_base_url()}/v3/on_page/instant_pages",
            json=[task],
            headers=_get_headers(),
            timeout=DEFAULT_TIMEOUT,
        )
        return _json_or_raise(resp)

    return cache.get_or_fetch(make_key("instant", url), _fetch)


def lighthouse(
    url: str,
    *,
    for_mobile: bool = False,
    categories: list[str] | None = None,
    audits: list[str] | None = None,
    language_name: str | None = None,
    language_code: str | None = None,
    version: str | None = None,
    tag: str | None = None,
    cache: ResponseCache,
) -> CacheResult:
    """Run a live Lighthouse audit of *url*.

    Optional arguments are only sent when given, and every one of them is part
    of the cache key.
    """
    if not url or not isinstance(url, str):
        raise ValueError("Missing 'url' in request body")

    def _fetch() -> dict:
        task: dict[str, object] = {"url": url, "for_mobile": for_mobile}
        optional = {
            "categories": categories,
            "audits": audits,
            "language_name": language_name,
            "language_code": language_code,
            "version": version,
            "tag": tag,
        }
        task.update({k: v for k, v in optional.items() if v})
        resp = requests.post(
            f"{_base_url()}/v3/on_page/lighthouse/live/json",
            json=[task],
            headers=_get_headers(),
            timeout=DEFAULT_TIMEOUT,
        )
        return _json_or_raise(resp)

    key = make_key(
        "lh",
        url,
        str(for_mobile).lower(),
        ",".join(categories or []),
        ",".join(audits or []),
        language_name,
        language_code,
        version,
        tag,
    )
    return cache.get_or_fetch(key, _fetch)
