"""Agency Portal – FastAPI web application.

Backend for the agency's customer dashboard: cached proxies to the SEO data
provider, rate-limited place autocomplete, and per-user session lifetime
monitoring (inactivity warning and forced logout).
"""

import asyncio
import contextlib
import logging
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from functools import partial
from typing import Annotated, Literal

import requests
from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from agency_portal import __version__, upstream
from agency_portal.auth.security import get_current_user
from agency_portal.cache import CacheResult
from agency_portal.rate_limit import FixedWindowRateLimiter, client_ip
from agency_portal.session import (
    LocalSessionProvider,
    ProxySessionProvider,
    SessionProvider,
    SessionRegistry,
)
from agency_portal.settings import settings

_RATE_LIMIT_PRUNE_INTERVAL = 60  # seconds


# ---------------------------------------------------------------------------
# Lifespan – per-app caches, rate limiter and session monitors
# ---------------------------------------------------------------------------


async def _prune_rate_limits(limiter: FixedWindowRateLimiter) -> None:
    while True:
        await asyncio.sleep(_RATE_LIMIT_PRUNE_INTERVAL)
        limiter.prune()


def _session_provider_factory() -> Callable[[str], SessionProvider]:
    """In-process sessions for mock auth; the auth proxy's session otherwise."""
    if settings.auth_mode == "mock":
        return LocalSessionProvider
    return ProxySessionProvider


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Build the app-owned state and run the background session ticker."""
    app.state.caches = upstream.UpstreamCaches.build(
        ttl_override=settings.dataforseo_cache_ttl,
        max_entries=settings.cache_max_entries,
        single_flight=settings.cache_single_flight,
    )
    app.state.places_limiter = FixedWindowRateLimiter(
        settings.places_rate_limit, settings.places_rate_window
    )
    app.state.sessions = SessionRegistry(
        _session_provider_factory(), settings.session_config()
    )

    tasks = [
        asyncio.create_task(app.state.sessions.run()),
        asyncio.create_task(_prune_rate_limits(app.state.places_limiter)),
    ]
    try:
        yield
    finally:
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        app.state.sessions.close()


app = FastAPI(
    title="Agency Portal API",
    version=__version__,
    description=(
        "Backend API for the agency customer dashboard. "
        "Proxies SEO data (SERP locations, Maps and organic search, on-page "
        "analysis, Lighthouse audits, keyword research) with response caching, "
        "Google Places autocomplete with rate limiting, and session inactivity "
        "monitoring."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=_lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Colored logging (reuse uvicorn's formatter)
# ---------------------------------------------------------------------------


def _setup_logging(level: int = logging.WARNING) -> None:
    """Configure the root ``agency_portal`` logger with uvicorn-style colours."""
    from uvicorn.logging import DefaultFormatter

    handler = logging.StreamHandler()
    handler.setFormatter(
        DefaultFormatter(fmt="%(levelprefix)s %(name)s - %(message)s", use_colors=True)
    )
    app_logger = logging.getLogger("agency_portal")
    app_logger.handlers = [handler]
    app_logger.setLevel(level)
    app_logger.propagate = False

    # Silence noisy third-party loggers
    logging.getLogger("urllib3").setLevel(logging.WARNING)


_setup_logging()
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@app.exception_handler(RequestValidationError)
async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Answer malformed query strings and bodies with 400 ``{"error": ...}``."""
    problems = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ()) if part not in ("body", "query"))
        problems.append(f"{field}: {err.get('msg')}" if field else str(err.get("msg")))
    return JSONResponse({"error": "Invalid request: " + "; ".join(problems)}, status_code=400)


def _cached_response(result: CacheResult) -> JSONResponse:
    """Wrap a cache lookup in the ``{ok, data, cache}`` envelope."""
    return JSONResponse(
        {"ok": True, "data": result.value, "cache": result.status},
        headers={"X-Cache": result.status},
    )


def _upstream_error_response(exc: upstream.UpstreamError) -> JSONResponse:
    return JSONResponse({"error": exc.message, "data": exc.payload}, status_code=exc.status_code)


def _proxy(call: Callable[[], CacheResult], failure: str) -> JSONResponse:
    """Run a cached upstream call and map its errors to JSON responses."""
    try:
        result = call()
    except ValueError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
    except upstream.UpstreamError as exc:
        return _upstream_error_response(exc)
    except Exception as exc:
        logger.exception(failure)
        return JSONResponse({"ok": False, "error": str(exc)}, status_code=500)
    return _cached_response(result)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"], summary="Liveness check")
async def health() -> JSONResponse:
    """Return service status and version.  Does not require authentication."""
    return JSONResponse({"status": "ok", "version": __version__})


# ---------------------------------------------------------------------------
# SEO data proxies
# ---------------------------------------------------------------------------


class MapsSearchRequest(BaseModel):
    """Request body for the Maps search proxy."""

    keyword: str | None = None
    language_code: str = "es"
    location_code: int | None = None
    location_name: str | None = None


class OrganicSearchRequest(BaseModel):
    """Request body for the organic SERP proxy."""

    keyword: str | None = None
    location_name: str = "United States"
    language_code: str = "en"
    depth: int = 10
    device: Literal["desktop", "mobile"] = "desktop"
    max_crawl_pages: int = 1
    people_also_ask_click_depth: int | None = None


class InstantPagesRequest(BaseModel):
    """Request body for the instant page analysis proxy."""

    url: str | None = None


class LighthouseRequest(BaseModel):
    """Request body for the Lighthouse audit proxy."""

    url: str | None = None
    for_mobile: bool = False
    categories: list[str] | None = None
    audits: list[str] | None = None
    language_name: str | None = None
    language_code: str | None = None
    version: str | None = None
    tag: str | None = None


class SearchVolumeRequest(BaseModel):
    """Request body for the Google Ads search volume proxy."""

    keywords: list[str] | None = None
    location_name: str | None = None
    language_code: str | None = None


class KeywordIdeasRequest(BaseModel):
    """Request body for the keyword ideas proxy."""

    keywords: list[str] | None = None
    location_name: str = "United States"
    language_code: str = "en"
    limit: int = 10
    offset: int = 0
    filters: list | None = None
    order_by: list[str] | None = None
    include_clickstream_data: bool = False


class RankedKeywordsRequest(BaseModel):
    """Request body for the ranked keywords proxy."""

    target: str | None = None
    location_name: str = "United States"
    language_code: str = "en"
    limit: int = 10
    offset: int = 0
    filters: list | None = None
    order_by: list[str] | None = None
    include_subdomains: bool = False
    include_clickstream_data: bool = False


@app.get("/api/serp/google/locations", tags=["SEO"], summary="Search SERP locations")
def serp_locations(
    request: Request,
    q: str | None = Query(None, description="Location name to search for."),
    country_code: str | None = Query(None, description="Optional ISO country code (e.g. ES)."),
) -> JSONResponse:
    """Return SERP locations matching *q*.  Cached for 24 hours."""
    return _proxy(
        partial(
            upstream.search_locations,
            q or "",
            country_code,
            cache=request.app.state.caches.locations,
        ),
        "Failed to search SERP locations",
    )


@app.post(
    "/api/serp/google/maps/live/advanced",
    tags=["SEO"],
    summary="Live Google Maps search",
)
def serp_maps(request: Request, body: MapsSearchRequest) -> JSONResponse:
    """Return Google Maps results for a keyword and location.  Cached for 5 minutes."""
    return _proxy(
        partial(
            upstream.maps_search,
            body.keyword or "",
            body.language_code,
            body.location_code,
            body.location_name,
            cache=request.app.state.caches.maps,
        ),
        "Failed to run Maps search",
    )


@app.post(
    "/api/serp/google/organic/live/advanced",
    tags=["SEO"],
    summary="Live Google organic search",
)
def serp_organic(request: Request, body: OrganicSearchRequest) -> JSONResponse:
    """Return organic Google results for a keyword.  Cached for 10 minutes."""
    return _proxy(
        partial(
            upstream.organic_search,
            body.keyword or "",
            body.location_name,
            body.language_code,
            depth=body.depth,
            device=body.device,
            max_crawl_pages=body.max_crawl_pages,
            people_also_ask_click_depth=body.people_also_ask_click_depth,
            cache=request.app.state.caches.organic,
        ),
        "Failed to run organic search",
    )


@app.post("/api/onpage/instant-pages", tags=["SEO"], summary="Analyse a single page")
def onpage_instant_pages(request: Request, body: InstantPagesRequest) -> JSONResponse:
    """Return the on-page analysis of ``url``.  Cached for 5 minutes."""
    return _proxy(
        partial(
            upstream.instant_pages, body.url or "", cache=request.app.state.caches.instant_pages
        ),
        "Failed to analyse page",
    )


@app.post("/api/onpage/lighthouse/live/json", tags=["SEO"], summary="Lighthouse audit")
def onpage_lighthouse(request: Request, body: LighthouseRequest) -> JSONResponse:
    """Return a live Lighthouse report for ``url``.  Cached for 5 minutes."""
    return _proxy(
        partial(
            upstream.lighthouse,
            body.url or "",
            for_mobile=body.for_mobile,
            categories=body.categories,
            audits=body.audits,
            language_name=body.language_name,
            language_code=body.language_code,
            version=body.version,
            tag=body.tag,
            cache=request.app.state.caches.lighthouse,
        ),
        "Failed to run Lighthouse audit",
    )


@app.post("/api/keywords/search-volume", tags=["Keywords"], summary="Keyword search volume")
def keywords_search_volume(request: Request, body: SearchVolumeRequest) -> JSONResponse:
    """Return Google Ads search volume for up to 1000 keywords.  Cached for 1 hour."""
    return _proxy(
        partial(
            upstream.search_volume,
            body.keywords or [],
            body.location_name,
            body.language_code,
            cache=request.app.state.caches.search_volume,
        ),
        "Failed to fetch search volume",
    )


@app.post("/api/labs/keyword-ideas", tags=["Keywords"], summary="Keyword ideas")
def labs_keyword_ideas(request: Request, body: KeywordIdeasRequest) -> JSONResponse:
    """Return keyword ideas for up to 200 seed keywords.  Cached for 2 hours."""
    return _proxy(
        partial(
            upstream.keyword_ideas,
            body.keywords or [],
            body.location_name,
            body.language_code,
            limit=body.limit,
            offset=body.offset,
            filters=body.filters,
            order_by=body.order_by,
            include_clickstream_data=body.include_clickstream_data,
            cache=request.app.state.caches.keyword_ideas,
        ),
        "Failed to fetch keyword ideas",
    )


@app.post("/api/labs/ranked-keywords", tags=["Keywords"], summary="Ranked keywords")
def labs_ranked_keywords(request: Request, body: RankedKeywordsRequest) -> JSONResponse:
    """Return the keywords a domain ranks for.  Cached for 2 hours."""
    return _proxy(
        partial(
            upstream.ranked_keywords,
            body.target or "",
            body.location_name,
            body.language_code,
            limit=body.limit,
            offset=body.offset,
            filters=body.filters,
            order_by=body.order_by,
            include_subdomains=body.include_subdomains,
            include_clickstream_data=body.include_clickstream_data,
            cache=request.app.state.caches.ranked_keywords,
        ),
        "Failed to fetch ranked keywords",
    )


@app.get("/api/cache/stats", tags=["SEO"], summary="Upstream cache statistics")
async def cache_stats(request: Request) -> JSONResponse:
    """Return the number of live-or-stale entries held by each upstream cache."""
    return JSONResponse(request.app.state.caches.stats())


# ---------------------------------------------------------------------------
# Places autocomplete
# ---------------------------------------------------------------------------


@app.get("/api/places", tags=["Places"], summary="Establishment autocomplete")
def places(
    request: Request,
    input: str | None = Query(  # noqa: A002
        None, description="Text typed so far (min. 3 characters)."
    ),
    lang: str = Query("es", description="Language code for the suggestions."),
    lat: float | None = Query(None, description="Latitude for location bias."),
    lng: float | None = Query(None, description="Longitude for location bias."),
) -> JSONResponse:
    """Return place suggestions, limited per client IP."""
    if not request.app.state.places_limiter.allow(client_ip(request)):
        return JSONResponse(
            {
                "error": "Rate limit exceeded",
                "message": "Too many requests. Please try again later.",
            },
            status_code=429,
        )
    try:
        result = upstream.places_autocomplete(input or "", lang, latitude=lat, longitude=lng)
    except upstream.UpstreamConfigError:
        logger.error("Google Places API key missing")
        return JSONResponse({"error": "Configuration error"}, status_code=500)
    except upstream.UpstreamError as exc:
        return JSONResponse(
            {
                "error": exc.message,
                "details": exc.payload,
                "message": "Unable to fetch suggestions at this time",
            },
            status_code=exc.status_code,
        )
    except requests.Timeout:
        return JSONResponse(
            {
                "error": "Request timeout",
                "message": "The request took too long. Please try again.",
            },
            status_code=408,
        )
    except Exception:
        logger.exception("Places autocomplete failed")
        return JSONResponse(
            {"error": "Server error", "message": "Something went wrong. Please try again later."},
            status_code=500,
        )
    return JSONResponse(result)


# ---------------------------------------------------------------------------
# Session lifetime
# ---------------------------------------------------------------------------

CurrentUser = Annotated[dict, Depends(get_current_user)]


class ActivityRequest(BaseModel):
    """A user interaction observed by the browser."""

    event: str = "mousemove"


def _registry(request: Request) -> SessionRegistry:
    registry: SessionRegistry = request.app.state.sessions
    return registry


@app.post("/api/session/start", tags=["Session"], summary="Start session monitoring")
async def session_start(request: Request, user: CurrentUser) -> JSONResponse:
    """Mount a monitor for the current user, or return the live one."""
    monitor = _registry(request).mount(user["id"])
    return JSONResponse(monitor.view().to_dict())


@app.get("/api/session", tags=["Session"], summary="Session timeout state")
async def session_state(request: Request, user: CurrentUser) -> JSONResponse:
    """Return whether to show the warning and how long remains."""
    try:
        monitor = _registry(request).get(user["id"])
    except LookupError as exc:
        return JSONResponse({"error": str(exc)}, status_code=404)
    return JSONResponse(monitor.view().to_dict())


@app.post("/api/session/activity", tags=["Session"], summary="Report user activity")
async def session_activity(
    request: Request, user: CurrentUser, body: ActivityRequest | None = None
) -> JSONResponse:
    """Refresh the inactivity timer.  Bursts are throttled; ignored after expiry."""
    event = body.event if body is not None else "mousemove"
    try:
        monitor = _registry(request).get(user["id"])
        refreshed = monitor.record_activity(event=event)
    except LookupError as exc:
        return JSONResponse({"error": str(exc)}, status_code=404)
    except ValueError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
    return JSONResponse({"refreshed": refreshed, **monitor.view().to_dict()})


@app.post("/api/session/keep-alive", tags=["Session"], summary="Keep the session active")
async def session_keep_alive(request: Request, user: CurrentUser) -> JSONResponse:
    """Dismiss the warning and restart the inactivity window."""
    try:
        monitor = _registry(request).get(user["id"])
    except LookupError as exc:
        return JSONResponse({"error": str(exc)}, status_code=404)
    renewed = monitor.keep_session_active()
    return JSONResponse({"renewed": renewed, **monitor.view().to_dict()})


@app.post("/api/session/logout", tags=["Session"], summary="Log out now")
async def session_logout(request: Request, user: CurrentUser) -> JSONResponse:
    """Sign the user out and return where to send them."""
    try:
        monitor = _registry(request).get(user["id"])
    except LookupError as exc:
        return JSONResponse({"error": str(exc)}, status_code=404)
    monitor.logout_now()
    return JSONResponse(monitor.view().to_dict())


@app.delete("/api/session", tags=["Session"], summary="Stop session monitoring")
async def session_stop(request: Request, user: CurrentUser) -> JSONResponse:
    """Unmount the current user's monitor."""
    return JSONResponse({"unmounted": _registry(request).unmount(user["id"])})
