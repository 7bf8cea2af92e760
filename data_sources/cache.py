"""
Caching system for viewport amenity queries
TTL + LRU cache keyed by (vertical, quantized bounds) with request coalescing
"""

import asyncio
import os
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple

from dotenv import load_dotenv

from amenities.models import Amenity, BoundingBox, Vertical
from amenities.normalizer import normalize_elements
from logging_config import get_logger, log_error, log_performance
from . import async_osm_api
from . import telemetry
from .error_handling import GeodataFetchError

logger = get_logger(__name__)

load_dotenv()

CACHE_TTL_SECONDS = float(os.getenv("AMENITY_CACHE_TTL_SECONDS", "300"))
CACHE_MAX_ENTRIES = int(os.getenv("AMENITY_CACHE_MAX_ENTRIES", "128"))
CACHE_PRECISION = int(os.getenv("AMENITY_CACHE_PRECISION", "3"))

CacheKey = Tuple[Vertical, BoundingBox]
Fetcher = Callable[[Vertical, BoundingBox], Awaitable[List[Dict[str, Any]]]]


@dataclass
class CacheEntry:
    key: CacheKey
    amenities: Tuple[Amenity, ...]
    fetched_at: float


async def _overpass_fetcher(vertical: Vertical, bbox: BoundingBox) -> List[Dict[str, Any]]:
    return await async_osm_api.fetch_elements(vertical, bbox)


def _consume_exception(future: asyncio.Future) -> None:
    # A failure nobody awaited (every caller moved on) is already logged
    if not future.cancelled():
        future.exception()


class BoundsQueryCache:
    """
    Viewport query cache.

    At most one upstream fetch runs per key; concurrent callers for the same
    key share its result or its failure. A failed fetch leaves nothing behind,
    so the next query for that key fetches again.
    """

    def __init__(self, fetcher: Optional[Fetcher] = None,
                 ttl_seconds: Optional[float] = None,
                 max_entries: Optional[int] = None,
                 precision: Optional[int] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.fetcher = fetcher or _overpass_fetcher
        self.ttl_seconds = CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self.max_entries = CACHE_MAX_ENTRIES if max_entries is None else max_entries
        self.precision = CACHE_PRECISION if precision is None else precision
        self.clock = clock

        if self.max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        if self.ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")

        self._entries: "OrderedDict[CacheKey, CacheEntry]" = OrderedDict()
        self._in_flight: Dict[CacheKey, asyncio.Future] = {}
        self._tasks: Set[asyncio.Task] = set()

        self.hits = 0
        self.misses = 0
        self.coalesced = 0
        self.fetches = 0
        self.failures = 0
        self.evictions = 0

    def cache_key(self, vertical: Vertical, bbox: BoundingBox) -> CacheKey:
        return Vertical.parse(vertical), bbox.quantize(self.precision)

    def _is_live(self, entry: CacheEntry) -> bool:
        return self.clock() - entry.fetched_at < self.ttl_seconds

    async def query(self, vertical: Vertical, bbox: BoundingBox) -> List[Amenity]:
        """
        Amenities for a vertical inside a viewport.

        Raises:
            GeodataFetchError: the upstream fetch for this key failed
        """
        key = self.cache_key(vertical, bbox)

        entry = self._entries.get(key)
        if entry is not None:
            if self._is_live(entry):
                self._entries.move_to_end(key)
                self.hits += 1
                telemetry.record_cache_event("hit")
                return list(entry.amenities)
            del self._entries[key]
            telemetry.record_cache_event("expired")

        pending = self._in_flight.get(key)
        if pending is not None:
            self.coalesced += 1
            telemetry.record_cache_event("coalesced")
            # shield: a cancelled caller must not cancel the shared fetch
            return list(await asyncio.shield(pending))

        self.misses += 1
        telemetry.record_cache_event("miss")
        future = asyncio.get_running_loop().create_future()
        future.add_done_callback(_consume_exception)
        self._in_flight[key] = future

        task = asyncio.ensure_future(self._fetch(key, future))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        return list(await asyncio.shield(future))

    async def _fetch(self, key: CacheKey, future: asyncio.Future) -> None:
        vertical, bbox = key
        self.fetches += 1
        start = time.time()
        try:
            elements = await self.fetcher(vertical, bbox)
            result = normalize_elements(elements, vertical)
        except asyncio.CancelledError:
            self._in_flight.pop(key, None)
            if not future.done():
                future.set_exception(GeodataFetchError(vertical, bbox, None))
            raise
        except Exception as e:
            self._in_flight.pop(key, None)
            self.failures += 1
            telemetry.record_error("geodata_fetch")
            log_error(logger, "geodata_fetch", f"Amenity fetch failed: {e}",
                      vertical=vertical.value, bbox=bbox.to_overpass())
            if not future.done():
                future.set_exception(GeodataFetchError(vertical, bbox, e))
            return

        self._in_flight.pop(key, None)
        amenities = tuple(result.amenities)
        self._store(key, amenities)
        log_performance(logger, f"{vertical.value}_fetch", time.time() - start,
                        vertical=vertical.value, bbox=bbox.to_overpass(),
                        cache_event="store", skipped=result.skipped)
        if not future.done():
            future.set_result(amenities)

    def _store(self, key: CacheKey, amenities: Tuple[Amenity, ...]) -> None:
        self._entries[key] = CacheEntry(key=key, amenities=amenities, fetched_at=self.clock())
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            self.evictions += 1
            telemetry.record_cache_event("evicted")
            logger.debug(f"Evicted {evicted[0].value} entry for {evicted[1].to_overpass()}")

    def sweep_expired(self) -> int:
        """Drop expired entries now instead of on next access. Returns how many were removed."""
        expired = [key for key, entry in self._entries.items() if not self._is_live(entry)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Cleaned up {len(expired)} expired cache entries")
        return len(expired)

    def clear(self) -> None:
        """Forget every stored entry. In-flight fetches still store their result."""
        self._entries.clear()
        logger.info("Cleared amenity cache")

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._entries

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        return {
            "entries": len(self._entries),
            "in_flight": len(self._in_flight),
            "hits": self.hits,
            "misses": self.misses,
            "coalesced": self.coalesced,
            "fetches": self.fetches,
            "failures": self.failures,
            "evictions": self.evictions,
            "ttl_seconds": self.ttl_seconds,
            "max_entries": self.max_entries,
        }


_default_cache: Optional[BoundsQueryCache] = None


def get_default_cache() -> BoundsQueryCache:
    """Process-wide cache backed by the Overpass client."""
    global _default_cache
    if _default_cache is None:
        _default_cache = BoundsQueryCache()
    return _default_cache
