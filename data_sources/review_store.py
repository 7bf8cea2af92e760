"""
Review Store API Client
Reads and submits restroom reviews against the external review service
"""

import os
import time
from typing import Any, Dict, List

import aiohttp
from dotenv import load_dotenv

from amenities.models import Review
from amenities.reviews import parse_review, parse_reviews
from logging_config import get_logger
from . import telemetry
from .error_handling import APIError, ReviewStoreError, handle_api_timeout, with_retry

logger = get_logger(__name__)

load_dotenv()

REVIEW_API_BASE_URL = os.getenv("REVIEW_API_BASE_URL", "http://localhost:5000")

# Global session for connection reuse
_session = None


async def get_session():
    """Get or create aiohttp session for connection reuse."""
    global _session
    if _session is None or _session.closed:
        timeout = aiohttp.ClientTimeout(total=15, connect=5)
        _session = aiohttp.ClientSession(timeout=timeout)
    return _session


async def close_session():
    """Close the global session."""
    global _session
    if _session and not _session.closed:
        await _session.close()
        _session = None


def _url(path: str) -> str:
    return f"{REVIEW_API_BASE_URL.rstrip('/')}{path}"


@with_retry(query_type="reviews")
@handle_api_timeout(timeout_seconds=15)
async def _get_json(path: str) -> Any:
    start = time.time()
    try:
        session = await get_session()
        async with session.get(_url(path)) as resp:
            if resp.status != 200:
                telemetry.record_upstream_call("review_store", path, time.time() - start, False, resp.status)
                raise APIError(f"Review store returned HTTP {resp.status}", "review_store", resp.status)
            data = await resp.json()
    except aiohttp.ClientError as e:
        telemetry.record_upstream_call("review_store", path, time.time() - start, False)
        raise APIError(f"Review store request failed: {e}", "review_store") from e

    telemetry.record_upstream_call("review_store", path, time.time() - start, True, 200)
    return data


async def get_reviews(amenity_id: Any) -> List[Review]:
    """
    Fetch the reviews for one amenity.

    Raises:
        ReviewStoreError: the store is unreachable or answered with an error
    """
    try:
        data = await _get_json(f"/api/amenities/{amenity_id}/reviews")
    except APIError as e:
        raise ReviewStoreError(f"Could not load reviews for {amenity_id}: {e}") from e

    # The endpoint wraps reviews with its own averageRating/totalReviews
    payloads = data.get("reviews", []) if isinstance(data, dict) else data
    if not isinstance(payloads, list):
        raise ReviewStoreError(f"Unexpected reviews payload for {amenity_id}")
    return parse_reviews(payloads)


async def post_review(form: Dict[str, str]) -> Review:
    """
    Submit a review built with amenities.reviews.review_form.

    Not retried: a repeated POST could store the review twice.
    """
    start = time.time()
    try:
        session = await get_session()
        async with session.post(_url("/api/reviews"), data=form) as resp:
            if resp.status != 200:
                telemetry.record_upstream_call("review_store", "/api/reviews", time.time() - start,
                                               False, resp.status)
                raise ReviewStoreError(f"Review submission rejected with HTTP {resp.status}")
            payload = await resp.json()
    except aiohttp.ClientError as e:
        telemetry.record_upstream_call("review_store", "/api/reviews", time.time() - start, False)
        raise ReviewStoreError(f"Review submission failed: {e}") from e

    telemetry.record_upstream_call("review_store", "/api/reviews", time.time() - start, True, 200)
    try:
        return parse_review(payload)
    except ValueError as e:
        raise ReviewStoreError(f"Review store returned a malformed review: {e}") from e
