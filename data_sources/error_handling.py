"""
Error handling for the amenity engine
Exception taxonomy plus retry and timeout decorators for upstream API calls
"""

import asyncio
from typing import Any, Optional, Callable
from functools import wraps

from logging_config import get_logger
from .retry_config import RetryConfig, get_retry_config

logger = get_logger(__name__)


class WannaMapError(Exception):
    """Base exception for engine errors."""
    pass


class APIError(WannaMapError):
    """Exception for API-related errors."""
    def __init__(self, message: str, api_name: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.api_name = api_name
        self.status_code = status_code


class GeodataFetchError(WannaMapError):
    """Upstream geodata could not be loaded for a (vertical, bbox) query.

    Retried lazily: the next cache miss for the same key issues a new fetch.
    """
    def __init__(self, vertical: Any, bbox: Any, cause: Optional[BaseException] = None):
        vertical_name = getattr(vertical, "value", vertical)
        super().__init__(f"Failed to load {vertical_name} amenities for bounds {bbox}: {cause}")
        self.vertical = vertical
        self.bbox = bbox
        self.cause = cause


class GeocodeError(WannaMapError):
    """Forward geocoding failed. Never surfaced past the search adapter."""
    pass


class ReviewStoreError(WannaMapError):
    """The review store could not be reached or returned bad data."""
    pass


class InvalidFilterFlag(WannaMapError, KeyError):
    """A filter flag name is not defined for the vertical(s) in question."""
    def __init__(self, flag: str, scope: Any = None):
        scope_name = getattr(scope, "value", scope)
        message = f"Unknown filter flag {flag!r}"
        if scope_name is not None:
            message += f" for {scope_name}"
        super().__init__(message)
        self.flag = flag
        self.scope = scope

    def __str__(self) -> str:
        return self.args[0]


def with_retry(query_type: str = "amenities", config: Optional[RetryConfig] = None,
               retry_on: tuple = (APIError,)):
    """
    Decorator to retry failed async API calls with exponential backoff.

    Args:
        query_type: Query type used to look up the retry profile
        config: Explicit retry config (overrides the profile lookup)
        retry_on: Exception types that trigger a retry
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            cfg = config or get_retry_config(query_type)
            last_exception = None

            for attempt in range(cfg.max_attempts):
                try:
                    return await func(*args, **kwargs)
                except retry_on as e:
                    last_exception = e
                    if not cfg.should_retry(e, attempt):
                        break
                    wait = cfg.wait_for_attempt(attempt)
                    logger.warning(f"Attempt {attempt + 1} failed for {func.__name__}: {e}. "
                                   f"Retrying in {wait:.1f}s...")
                    await asyncio.sleep(wait)

            logger.error(f"All attempts failed for {func.__name__}: {last_exception}")
            raise last_exception
        return wrapper
    return decorator


def handle_api_timeout(timeout_seconds: float = 30):
    """
    Decorator to handle API timeouts gracefully.
    Uses asyncio.wait_for so a hung upstream call cannot block the caller forever.

    Args:
        timeout_seconds: Timeout in seconds
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            try:
                return await asyncio.wait_for(func(*args, **kwargs), timeout=timeout_seconds)
            except asyncio.TimeoutError:
                logger.warning(f"Function {func.__name__} timed out after {timeout_seconds}s")
                raise APIError(f"Request timed out after {timeout_seconds} seconds", func.__name__, 408)

        return async_wrapper
    return decorator
