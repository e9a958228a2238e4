"""Thin clients for the third-party data providers behind the dashboard.

Every public function returns plain Python objects (dicts / lists or a
:class:`~agency_portal.cache.CacheResult`) – no framework ``Response``
wrappers – and raises :class:`UpstreamError` when a provider rejects a call.
"""

import requests as requests  # noqa: F401  # re-export for mock patching

from agency_portal.upstream._cache import (  # noqa: F401
    LABS_CACHE_TTL,
    ORGANIC_CACHE_TTL,
    REFERENCE_CACHE_TTL,
    SEARCH_VOLUME_CACHE_TTL,
    VOLATILE_CACHE_TTL,
    UpstreamCaches,
)
from agency_portal.upstream._http import (  # noqa: F401
    UpstreamConfigError,
    UpstreamError,
)
from agency_portal.upstream.keywords import (  # noqa: F401
    keyword_ideas,
    normalize_domain,
    ranked_keywords,
    search_volume,
)
from agency_portal.upstream.onpage import instant_pages, lighthouse  # noqa: F401
from agency_portal.upstream.places import places_autocomplete  # noqa: F401
from agency_portal.upstream.serp import (  # noqa: F401
    maps_search,
    organic_search,
    search_locations,
)
