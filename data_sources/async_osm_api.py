"""
Async OpenStreetMap API Client
Fetches raw amenity elements for one vertical inside a bounding box from Overpass
"""

import os
import time
from typing import Any, Dict, List, Tuple

import aiohttp
from dotenv import load_dotenv

from amenities.models import BoundingBox, Vertical
from logging_config import get_logger, log_api_call
from . import telemetry
from .error_handling import APIError, handle_api_timeout, with_retry

logger = get_logger(__name__)

load_dotenv()

OVERPASS_URL = os.getenv("OVERPASS_URL", "https://overpass-api.de/api/interpreter")
OVERPASS_BACKUP_URL = os.getenv("OVERPASS_BACKUP_URL", "https://overpass.kumi.systems/api/interpreter")
OVERPASS_TIMEOUT_SECONDS = float(os.getenv("OVERPASS_TIMEOUT_SECONDS", "30"))

# Server-side query timeout; keep below OVERPASS_TIMEOUT_SECONDS
QUERY_TIMEOUT = 25

# Tag filters per vertical. Each entry becomes one nwr statement in the union.
OVERPASS_SELECTORS: Dict[Vertical, Tuple[str, ...]] = {
    Vertical.RESTROOM: (
        '["amenity"="toilets"]',
    ),
    Vertical.DOG_PARK: (
        '["leisure"="dog_park"]',
    ),
    Vertical.SHOWER: (
        '["amenity"="shower"]',
    ),
    Vertical.FITNESS_STATION: (
        '["leisure"="fitness_station"]',
        '["amenity"="exercise_equipment"]',
        '["fitness_station"="yes"]',
        '["exercise"="yes"]',
    ),
    Vertical.OUTDOOR_GYM: (
        '["leisure"="fitness_centre"]["location"="outdoor"]',
        '["leisure"="fitness_centre"]["outdoor"="yes"]',
        '["sport"="fitness"]["location"="outdoor"]',
        '["sport"="fitness"]["outdoor"="yes"]',
        '["amenity"="exercise_equipment"]',
        '["amenity"="outdoor_fitness"]',
    ),
    Vertical.SWIMMING_POOL: (
        '["leisure"="swimming_pool"]["access"~"^(public|yes)$"]',
        '["amenity"="swimming_pool"]["access"~"^(public|yes)$"]',
    ),
    Vertical.GYM: (
        '["leisure"="fitness_centre"]["location"!="outdoor"]',
        '["leisure"="fitness_centre"][!"location"]',
    ),
    Vertical.PLAYGROUND: (
        '["leisure"="playground"]',
    ),
    Vertical.PRAYER_ROOM: (
        '["amenity"="place_of_worship"]',
        '["amenity"="prayer_room"]',
    ),
    Vertical.SKATE_PARK: (
        '["leisure"="playground"]["playground"~"skatepark|skateboard"]',
        '["sport"="skateboard"]',
        '["amenity"="skate_park"]',
    ),
    Vertical.BMX: (
        '["sport"="bmx"]',
        '["leisure"="track"]["sport"="bmx"]',
    ),
    Vertical.ROLLER_SPORTS: (
        '["sport"~"roller_skating|inline_skates"]',
    ),
}

# Global session for connection reuse
_session = None


async def get_session():
    """Get or create aiohttp session for connection reuse."""
    global _session
    if _session is None or _session.closed:
        connector = aiohttp.TCPConnector(limit=100, limit_per_host=30)
        timeout = aiohttp.ClientTimeout(total=OVERPASS_TIMEOUT_SECONDS + 5, connect=10)
        _session = aiohttp.ClientSession(
            connector=connector,
            timeout=timeout,
            headers={"User-Agent": "WannaMap/1.0"}
        )
    return _session


async def close_session():
    """Close the global session."""
    global _session
    if _session and not _session.closed:
        await _session.close()
        _session = None


def overpass_urls() -> List[str]:
    """Endpoints in the order they are tried."""
    urls = [OVERPASS_URL]
    if OVERPASS_BACKUP_URL and OVERPASS_BACKUP_URL != OVERPASS_URL:
        urls.append(OVERPASS_BACKUP_URL)
    return urls


def build_query(vertical: Vertical, bbox: BoundingBox) -> str:
    """
    Build the Overpass QL union for a vertical inside a bounding box.

    Args:
        vertical: Amenity vertical
        bbox: Query bounds (already quantized by the caller if desired)

    Returns:
        Overpass QL string ending in `out center;` so ways and relations carry a centroid
    """
    vertical = Vertical.parse(vertical)
    bounds = bbox.to_overpass()
    statements = "\n".join(
        f"  nwr{selector}({bounds});" for selector in OVERPASS_SELECTORS[vertical]
    )
    return f"[out:json][timeout:{QUERY_TIMEOUT}];\n(\n{statements}\n);\nout center;"


@handle_api_timeout(timeout_seconds=OVERPASS_TIMEOUT_SECONDS)
async def _post_query(url: str, query: str) -> List[Dict[str, Any]]:
    start = time.time()
    status = None
    try:
        session = await get_session()
        async with session.post(url, data={"data": query}) as resp:
            status = resp.status
            if resp.status != 200:
                raise APIError(f"Overpass returned HTTP {resp.status}", "overpass", resp.status)
            # Overpass sometimes answers with text/plain
            data = await resp.json(content_type=None)
    except aiohttp.ClientError as e:
        telemetry.record_upstream_call("overpass", "interpreter", time.time() - start, False, status)
        raise APIError(f"Overpass request failed: {e}", "overpass") from e
    except APIError:
        telemetry.record_upstream_call("overpass", "interpreter", time.time() - start, False, status)
        raise

    elapsed = time.time() - start
    elements = data.get("elements") if isinstance(data, dict) else None
    if not isinstance(elements, list):
        telemetry.record_upstream_call("overpass", "interpreter", elapsed, False, status)
        raise APIError("Overpass response has no elements list", "overpass", 502)

    telemetry.record_upstream_call("overpass", "interpreter", elapsed, True, status)
    log_api_call(logger, "overpass", url, response_time=round(elapsed, 3))
    return elements


@with_retry(query_type="amenities")
async def fetch_elements(vertical: Vertical, bbox: BoundingBox) -> List[Dict[str, Any]]:
    """
    Fetch raw Overpass elements for a vertical inside a bounding box.

    Each configured endpoint is tried in order; the first successful
    response wins. The call as a whole is retried per the "amenities"
    retry profile.

    Raises:
        APIError: every endpoint failed
    """
    vertical = Vertical.parse(vertical)
    query = build_query(vertical, bbox)
    last_error = None

    for url in overpass_urls():
        try:
            elements = await _post_query(url, query)
            logger.debug(f"Overpass returned {len(elements)} {vertical.value} elements",
                         extra={"vertical": vertical.value, "bbox": bbox.to_overpass(),
                                "endpoint": url})
            return elements
        except APIError as e:
            last_error = e
            logger.warning(f"Overpass endpoint {url} failed: {e}",
                           extra={"vertical": vertical.value, "endpoint": url,
                                  "api_name": "overpass", "error_type": type(e).__name__})

    raise last_error
