"""
Search Geocode Adapter
Debounced search-as-you-type over the geocoder, with script-based language detection

Every call to search() supersedes the previous one. A query only reaches the
geocoder after the debounce window passes without a newer call, and results
are only published by the handle of the latest query.
"""

import asyncio
import os
from typing import Awaitable, Callable, List, Optional, Sequence, Set, Tuple

from dotenv import load_dotenv

from data_sources import async_geocoding
from data_sources import telemetry
from logging_config import get_logger
from .models import SearchResult

logger = get_logger(__name__)

load_dotenv()

SEARCH_DEBOUNCE_SECONDS = float(os.getenv("SEARCH_DEBOUNCE_SECONDS", "0.3"))
MIN_QUERY_LENGTH = 2

# Checked in order; the first language with any character in its ranges wins.
# Kana and the shared CJK block come before the Chinese-only blocks, so a
# Kanji-only name such as 東京 resolves to Japanese.
SCRIPT_RANGES: Tuple[Tuple[str, Tuple[Tuple[int, int], ...]], ...] = (
    ("ja", ((0x3040, 0x309F), (0x30A0, 0x30FF))),
    ("ja", ((0x4E00, 0x9FAF),)),
    ("zh", ((0x3400, 0x4DBF), (0x9FB0, 0x9FFF), (0xF900, 0xFAFF))),
    ("ko", ((0xAC00, 0xD7AF), (0x1100, 0x11FF), (0x3130, 0x318F))),
    ("ar", ((0x0600, 0x06FF), (0x0750, 0x077F))),
    ("ru", ((0x0400, 0x04FF),)),
)

Geocoder = Callable[[str, Optional[str]], Awaitable[Sequence[SearchResult]]]


def detect_language(text: str) -> Optional[str]:
    """Language implied by the script of `text`, or None for Latin/unknown scripts."""
    if not text:
        return None
    codepoints = [ord(ch) for ch in text]
    for language, ranges in SCRIPT_RANGES:
        for low, high in ranges:
            if any(low <= cp <= high for cp in codepoints):
                return language
    return None


async def _nominatim(query: str, language: Optional[str]) -> Sequence[SearchResult]:
    return await async_geocoding.geocode(query, language)


class SearchHandle:
    """One search() call. Only the newest handle is valid."""

    def __init__(self, adapter: "SearchGeocodeAdapter", query: str, generation: int):
        self.query = query
        self._adapter = adapter
        self._generation = generation
        self._future = asyncio.get_running_loop().create_future()
        self.dispatched = False

    @property
    def valid(self) -> bool:
        return self._adapter.generation == self._generation

    def _finish(self, results: List[SearchResult]) -> None:
        if not self._future.done():
            self._future.set_result(results)

    async def results(self) -> List[SearchResult]:
        """Results published for this query; [] if it was superseded."""
        return await asyncio.shield(self._future)

    def __repr__(self):
        return f"SearchHandle({self.query!r}, valid={self.valid})"


class SearchGeocodeAdapter:
    """
    Debounced, last-writer-wins forward geocoding.

    Args:
        geocoder: async (query, language_hint) -> results; defaults to Nominatim
        debounce_seconds: idle window before a query is sent
        language: initial language hint
        on_results: optional callback receiving each published result list
    """

    def __init__(self, geocoder: Optional[Geocoder] = None,
                 debounce_seconds: Optional[float] = None,
                 language: str = "en",
                 on_results: Optional[Callable[[List[SearchResult]], None]] = None):
        self.geocoder = geocoder or _nominatim
        self.debounce_seconds = SEARCH_DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds
        self.language = language
        self.on_results = on_results
        self.results: List[SearchResult] = []
        self.generation = 0
        self._pending: Optional[asyncio.Task] = None
        self._pending_handle: Optional[SearchHandle] = None
        self._tasks: Set[asyncio.Task] = set()

    def search(self, query: str) -> SearchHandle:
        """Supersede any previous query with this one. Must be called inside the event loop."""
        self.generation += 1
        self._cancel_debounce()

        handle = SearchHandle(self, query, self.generation)
        if len(query.strip()) < MIN_QUERY_LENGTH:
            self._publish([])
            handle._finish([])
            return handle

        self._pending_handle = handle
        self._pending = asyncio.ensure_future(self._run(handle))
        self._tasks.add(self._pending)
        self._pending.add_done_callback(self._tasks.discard)
        return handle

    def cancel(self) -> None:
        """Drop the pending query, if any, without starting a new one."""
        self.generation += 1
        self._cancel_debounce()

    def _cancel_debounce(self) -> None:
        handle = self._pending_handle
        if handle is None:
            return
        # An in-flight geocode is left to finish; its handle is already stale
        if not handle.dispatched and self._pending is not None:
            self._pending.cancel()
        handle._finish([])
        self._pending = None
        self._pending_handle = None

    async def _run(self, handle: SearchHandle) -> None:
        await asyncio.sleep(self.debounce_seconds)
        if not handle.valid:
            handle._finish([])
            return
        handle.dispatched = True

        detected = detect_language(handle.query)
        if detected:
            self.language = detected

        try:
            results = list(await self.geocoder(handle.query.strip(), self.language))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            telemetry.record_error("geocode")
            logger.warning(f"Location search failed for {handle.query!r}: {e}",
                           extra={"query": handle.query, "language": self.language,
                                  "error_type": type(e).__name__})
            results = []

        if not handle.valid:
            logger.debug(f"Discarding superseded results for {handle.query!r}")
            handle._finish([])
            return

        if detected is None and results:
            from_result = detect_language(results[0].display_name)
            if from_result:
                self.language = from_result

        self._publish(results)
        handle._finish(results)
        if self._pending_handle is handle:
            self._pending = None
            self._pending_handle = None

    def _publish(self, results: List[SearchResult]) -> None:
        self.results = results
        if self.on_results is not None:
            self.on_results(results)
