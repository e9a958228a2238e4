"""Per-application caches for upstream responses."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, fields

from agency_portal.cache import ResponseCache

# Page analysis and map results go stale quickly; locations rarely change.
VOLATILE_CACHE_TTL = 5 * 60  # 5 minutes
ORGANIC_CACHE_TTL = 10 * 60  # 10 minutes
SEARCH_VOLUME_CACHE_TTL = 60 * 60  # 1 hour
LABS_CACHE_TTL = 2 * 60 * 60  # 2 hours
REFERENCE_CACHE_TTL = 24 * 60 * 60  # 24 hours


@dataclass
class UpstreamCaches:
    """The caches used by the proxy routes of one application instance."""

    locations: ResponseCache
    maps: ResponseCache
    organic: ResponseCache
    instant_pages: ResponseCache
    lighthouse: ResponseCache
    search_volume: ResponseCache
    keyword_ideas: ResponseCache
    ranked_keywords: ResponseCache

    @classmethod
    def build(
        cls,
        *,
        ttl_override: float | None = None,
        max_entries: int | None = 1024,
        single_flight: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> UpstreamCaches:
        """Create fresh caches, optionally forcing one TTL for all of them."""

        def _make(name: str, ttl: float) -> ResponseCache:
            return ResponseCache(
                ttl if ttl_override is None else ttl_override,
                max_entries=max_entries,
                single_flight=single_flight,
                clock=clock,
                name=name,
            )

        return cls(
            locations=_make("locations", REFERENCE_CACHE_TTL),
            maps=_make("maps", VOLATILE_CACHE_TTL),
            organic=_make("organic", ORGANIC_CACHE_TTL),
            instant_pages=_make("instant_pages", VOLATILE_CACHE_TTL),
            lighthouse=_make("lighthouse", VOLATILE_CACHE_TTL),
            search_volume=_make("search_volume", SEARCH_VOLUME_CACHE_TTL),
            keyword_ideas=_make("keyword_ideas", LABS_CACHE_TTL),
            ranked_keywords=_make("ranked_keywords", LABS_CACHE_TTL),
        )

    def stats(self) -> dict[str, dict[str, float | int | None]]:
        """Return entry counts and TTLs keyed by cache name."""
        result: dict[str, dict[str, float | int | None]] = {}
        for f in fields(self):
            cache: ResponseCache = getattr(self, f.name)
            result[f.name] = {
                "entries": len(cache),
                "ttlSeconds": cache.default_ttl,
                "maxEntries": cache.max_entries,
            }
        return result

    def clear(self) -> None:
        for f in fields(self):
            getattr(self, f.name).clear()
