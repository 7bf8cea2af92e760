"""
Centralized Retry Configuration for upstream API calls
Provides configurable retry profiles for the Overpass, Nominatim and review store clients.
"""

from dataclasses import dataclass
from typing import Optional, Dict
from enum import Enum


class RetryProfile(Enum):
    """Retry behavior profiles for different query types."""
    GEODATA = "geodata"        # Overpass amenity queries - moderate retries
    INTERACTIVE = "interactive"  # Search-as-you-type geocoding - fail fast
    STANDARD = "standard"       # Review store and anything unlisted


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_attempts: int = 3
    base_wait: float = 1.0
    fail_fast: bool = False  # If True, give up after 2 attempts on rate limit
    max_wait: float = 10.0  # Maximum wait time between retries
    exponential_backoff: bool = True
    retry_on_timeout: bool = True
    retry_on_429: bool = True

    def __post_init__(self):
        """Validate configuration."""
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_wait < 0:
            raise ValueError("base_wait must be >= 0")
        if self.max_wait < self.base_wait:
            raise ValueError("max_wait must be >= base_wait")

    def wait_for_attempt(self, attempt: int) -> float:
        """Seconds to sleep after the given zero-based failed attempt."""
        if self.exponential_backoff:
            wait = self.base_wait * (2 ** attempt)
        else:
            wait = self.base_wait
        return min(wait, self.max_wait)

    def should_retry(self, exc: BaseException, attempt: int) -> bool:
        """Decide whether a failure on the given zero-based attempt is retried."""
        if attempt + 1 >= self.max_attempts:
            return False
        status = getattr(exc, "status_code", None)
        if status == 408:
            return self.retry_on_timeout
        if status == 429:
            if not self.retry_on_429:
                return False
            return not (self.fail_fast and attempt >= 1)
        # 4xx other than 408/429 will not improve on retry
        if status is not None and 400 <= status < 500:
            return False
        return True


RETRY_PROFILES: Dict[RetryProfile, RetryConfig] = {
    RetryProfile.GEODATA: RetryConfig(
        max_attempts=2,  # Backup Overpass endpoint is tried inside each attempt
        base_wait=1.0,
        fail_fast=True,
        max_wait=4.0,
        exponential_backoff=True,
        retry_on_timeout=True,
        retry_on_429=True,
    ),
    RetryProfile.INTERACTIVE: RetryConfig(
        max_attempts=2,  # One quick retry on a 5xx or dropped connection
        base_wait=0.25,
        fail_fast=True,
        max_wait=0.25,
        exponential_backoff=False,
        retry_on_timeout=False,
        retry_on_429=False,
    ),
    RetryProfile.STANDARD: RetryConfig(
        max_attempts=3,
        base_wait=0.5,
        fail_fast=False,
        max_wait=4.0,
        exponential_backoff=True,
        retry_on_timeout=True,
        retry_on_429=True,
    ),
}


QUERY_TYPE_PROFILES: Dict[str, RetryProfile] = {
    "amenities": RetryProfile.GEODATA,
    "geocoding": RetryProfile.INTERACTIVE,
    "reviews": RetryProfile.STANDARD,
}


def get_retry_config(query_type: str, profile: Optional[RetryProfile] = None) -> RetryConfig:
    """
    Get retry configuration for a query type.

    Args:
        query_type: Type of query (e.g., "amenities", "geocoding", "reviews")
        profile: Optional override profile (if None, uses query_type mapping)

    Returns:
        RetryConfig for the query type
    """
    if profile is not None:
        return RETRY_PROFILES[profile]

    profile = QUERY_TYPE_PROFILES.get(query_type, RetryProfile.STANDARD)
    return RETRY_PROFILES[profile]

