"""In-memory TTL cache for upstream API responses.

A :class:`ResponseCache` sits in front of outbound calls to slow or
rate-limited data providers so that the same logical request is not sent
upstream twice within its time-to-live.  Entries expire lazily: a stale
entry is dropped the next time its key is looked up.  There is no
background sweep.

Caches are plain objects owned by whoever needs them (the web application
builds one set per app instance) rather than module-level globals.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

_MISSING = object()


@dataclass(frozen=True)
class CacheResult:
    """Value returned by :meth:`ResponseCache.get_or_fetch` with its hit status."""

    value: Any
    hit: bool

    @property
    def status(self) -> str:
        """``"HIT"`` or ``"MISS"``, as reported in the ``X-Cache`` header."""
        return "HIT" if self.hit else "MISS"


class _Flight:
    """An upstream call in progress for one key."""

    __slots__ = ("done", "failed", "value")

    def __init__(self) -> None:
        self.done = threading.Event()
        self.failed = False
        self.value: Any = None


def make_key(namespace: str, *parts: object) -> str:
    """Build a deterministic cache key such as ``maps:pizza:es:2724:``.

    ``None`` parts render as an empty string so optional parameters keep
    their position in the key.
    """
    rendered = ["" if part is None else str(part) for part in parts]
    return ":".join([namespace, *rendered])


class ResponseCache:
    """Key/value store with per-entry expiry and optional LRU bound.

    Parameters
    ----------
    default_ttl:
        Time-to-live in seconds used when :meth:`set` gets no *ttl*.
    max_entries:
        Upper bound on live entries.  The least recently used entry is
        evicted when it is exceeded.  ``None`` means unbounded.
    single_flight:
        When true, concurrent :meth:`get_or_fetch` misses for the same key
        share one upstream call.
    clock:
        Monotonic time source in seconds.
    """

    def __init__(
        self,
        default_ttl: float = 300,
        *,
        max_entries: int | None = 1024,
        single_flight: bool = True,
        clock: Callable[[], float] = time.monotonic,
        name: str = "cache",
    ) -> None:
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self.single_flight = single_flight
        self.name = name
        self._clock = clock
        self._entries: OrderedDict[Hashable, tuple[float, Any]] = OrderedDict()
        self._flights: dict[Hashable, _Flight] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return self._lookup(key) is not _MISSING

    # ------------------------------------------------------------------
    # Basic operations
    # ------------------------------------------------------------------

    def _lookup(self, key: Hashable) -> Any:
        with self._lock:
            return self._lookup_locked(key)

    def _lookup_locked(self, key: Hashable) -> Any:
        """Return the live value for *key* or ``_MISSING`` (caller holds lock)."""
        entry = self._entries.get(key)
        if entry is None:
            return _MISSING
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return _MISSING
        self._entries.move_to_end(key)
        return value

    def get(self, key: Hashable, default: Any = None) -> Any:
        """Return the cached value, or *default* if missing or expired.

        Reading never extends an entry's lifetime.
        """
        value = self._lookup(key)
        return default if value is _MISSING else value

    def set(self, key: Hashable, value: Any, ttl: float | None = None) -> None:
        """Store *value* under *key*, replacing any existing entry."""
        lifetime = self.default_ttl if ttl is None else ttl
        with self._lock:
            self._entries[key] = (self._clock() + lifetime, value)
            self._entries.move_to_end(key)
            if self.max_entries is not None:
                while len(self._entries) > self.max_entries:
                    evicted, _ = self._entries.popitem(last=False)
                    logger.debug("%s: evicted %s", self.name, evicted)

    def delete(self, key: Hashable) -> None:
        """Forget *key* if present."""
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        """Drop every entry."""
        with self._lock:
            self._entries.clear()

    # ------------------------------------------------------------------
    # Read-through
    # ------------------------------------------------------------------

    def get_or_fetch(
        self,
        key: Hashable,
        fetch: Callable[[], Any],
        ttl: float | None = None,
    ) -> CacheResult:
        """Return the cached value for *key*, calling *fetch* on a miss.

        The fetched value is stored before it is returned.  If *fetch*
        raises, nothing is stored and the exception propagates.  With
        ``single_flight`` enabled, callers that miss while another caller
        is already fetching the same key wait for that call and reuse its
        result; if it failed they fetch again themselves.
        """
        with self._lock:
            value = self._lookup_locked(key)
            if value is not _MISSING:
                return CacheResult(value, hit=True)
            flight = self._flights.get(key) if self.single_flight else None
            leader = flight is None
            if leader:
                flight = _Flight()
                if self.single_flight:
                    self._flights[key] = flight

        assert flight is not None
        if not leader:
            flight.done.wait()
            if not flight.failed:
                return CacheResult(flight.value, hit=True)
            return self.get_or_fetch(key, fetch, ttl)

        try:
            value = fetch()
        except BaseException:
            flight.failed = True
            raise
        else:
            self.set(key, value, ttl)
            flight.value = value
        finally:
            if self.single_flight:
                with self._lock:
                    self._flights.pop(key, None)
            flight.done.set()
        return CacheResult(value, hit=False)
