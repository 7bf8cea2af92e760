"""
Async Geocoding API Client
Forward place search using Nominatim (OpenStreetMap)
"""

import os
import time
from typing import Any, Dict, List, Optional

import aiohttp
from dotenv import load_dotenv

from amenities.models import SearchResult
from logging_config import get_logger
from . import telemetry
from .error_handling import APIError, GeocodeError, handle_api_timeout, with_retry

logger = get_logger(__name__)

load_dotenv()

NOMINATIM_URL = os.getenv("NOMINATIM_URL", "https://nominatim.openstreetmap.org/search")
NOMINATIM_USER_AGENT = os.getenv("NOMINATIM_USER_AGENT", "WannaMap/1.0")

RESULT_LIMIT = 5

# Languages Nominatim is asked to localize display names into
SUPPORTED_LANGUAGES = frozenset({
    "en", "es", "fr", "ru", "id", "ms", "ar", "zh", "ja", "ko", "de", "hi", "mn",
})

# Global session for connection reuse
_session = None


async def get_session():
    """Get or create aiohttp session for connection reuse."""
    global _session
    if _session is None or _session.closed:
        connector = aiohttp.TCPConnector(limit=50, limit_per_host=10)
        timeout = aiohttp.ClientTimeout(total=15, connect=5, sock_read=10)
        _session = aiohttp.ClientSession(
            connector=connector,
            timeout=timeout,
            headers={"User-Agent": NOMINATIM_USER_AGENT}
        )
    return _session


async def close_session():
    """Close the global session."""
    global _session
    if _session and not _session.closed:
        await _session.close()
        _session = None


def accept_language(language_hint: Optional[str]) -> str:
    """Map a UI language code to Nominatim's accept-language, falling back to English."""
    if language_hint and language_hint.lower() in SUPPORTED_LANGUAGES:
        return language_hint.lower()
    return "en"


def _parse_results(data) -> List[SearchResult]:
    results = []
    for item in data or []:
        try:
            results.append(SearchResult(
                display_name=item["display_name"],
                lat=float(item["lat"]),
                lng=float(item["lon"]),
            ))
        except (KeyError, TypeError, ValueError):
            logger.debug(f"Skipping malformed Nominatim result: {item!r}")
    return results


@with_retry(query_type="geocoding")
@handle_api_timeout(timeout_seconds=10)
async def _search(params: Dict[str, Any]) -> Any:
    start = time.time()
    try:
        session = await get_session()
        async with session.get(NOMINATIM_URL, params=params) as response:
            if response.status != 200:
                telemetry.record_upstream_call("nominatim", "search", time.time() - start,
                                               False, response.status)
                raise APIError(f"Search request failed with status: {response.status}",
                               "nominatim", response.status)
            data = await response.json()
    except aiohttp.ClientError as e:
        telemetry.record_upstream_call("nominatim", "search", time.time() - start, False)
        raise APIError(f"Search request failed: {e}", "nominatim") from e

    telemetry.record_upstream_call("nominatim", "search", time.time() - start, True, 200)
    return data


async def geocode(query: str, language_hint: Optional[str] = None) -> List[SearchResult]:
    """
    Async forward geocode a free-text place query.

    Args:
        query: Place name or address
        language_hint: UI language code used for accept-language

    Returns:
        Up to five SearchResult hits, best first

    Raises:
        GeocodeError: Nominatim unreachable, timed out or answered with a non-200 status
    """
    params = {
        "q": query,
        "format": "json",
        "limit": RESULT_LIMIT,
        "addressdetails": 1,
        "accept-language": accept_language(language_hint),
    }

    try:
        data = await _search(params)
    except APIError as e:
        raise GeocodeError(f"Geocoding {query!r} failed: {e}") from e

    return _parse_results(data)
