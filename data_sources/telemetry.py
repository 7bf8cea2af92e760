"""
Telemetry and Analytics System
Tracks upstream fetch performance, cache behavior and normalization drops
"""

import time
import threading
from collections import Counter, defaultdict
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

from logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class UpstreamCall:
    """Metrics for a single upstream API call."""
    timestamp: float
    api_name: str
    operation: str
    response_time: float
    success: bool
    status_code: Optional[int] = None


@dataclass
class ApiStats:
    """Aggregated statistics for one upstream API."""
    api_name: str
    call_count: int = 0
    failure_count: int = 0
    avg_response_time: float = 0.0
    max_response_time: float = 0.0


class TelemetryCollector:
    """Collects and summarizes telemetry for the amenity engine."""

    def __init__(self, max_calls: int = 10000):
        self.max_calls = max_calls
        self.calls: List[UpstreamCall] = []
        self.lock = threading.Lock()
        self.start_time = time.time()

        self.api_stats: Dict[str, ApiStats] = {}
        self.cache_events: Counter = Counter()
        self.normalization_skips: Dict[str, int] = defaultdict(int)
        self.errors: Counter = Counter()

    def record_call(self, call: UpstreamCall) -> None:
        """Record metrics for a single upstream call."""
        with self.lock:
            self.calls.append(call)
            if len(self.calls) > self.max_calls:
                self.calls = self.calls[-self.max_calls:]
            self._update_api_stats(call)

    def _update_api_stats(self, call: UpstreamCall) -> None:
        stats = self.api_stats.get(call.api_name)
        if stats is None:
            stats = self.api_stats[call.api_name] = ApiStats(api_name=call.api_name)

        stats.call_count += 1
        if not call.success:
            stats.failure_count += 1
        # Running mean over all calls for this API
        stats.avg_response_time += (call.response_time - stats.avg_response_time) / stats.call_count
        stats.max_response_time = max(stats.max_response_time, call.response_time)

    def record_cache_event(self, event: str) -> None:
        with self.lock:
            self.cache_events[event] += 1

    def record_normalization_skips(self, vertical: str, count: int) -> None:
        with self.lock:
            self.normalization_skips[vertical] += count

    def record_error(self, error_type: str) -> None:
        """Record an error occurrence."""
        with self.lock:
            self.errors[error_type] += 1

    def get_overall_stats(self) -> Dict[str, Any]:
        """Get overall engine statistics."""
        with self.lock:
            total_calls = sum(s.call_count for s in self.api_stats.values())
            total_failures = sum(s.failure_count for s in self.api_stats.values())
            uptime_hours = (time.time() - self.start_time) / 3600

            return {
                "system_metrics": {
                    "total_upstream_calls": total_calls,
                    "uptime_hours": round(uptime_hours, 2),
                    "failure_rate": round(total_failures / total_calls * 100, 2) if total_calls else 0.0,
                },
                "api_stats": {k: asdict(v) for k, v in self.api_stats.items()},
                "cache_events": dict(self.cache_events),
                "normalization_skips": dict(self.normalization_skips),
                "errors": dict(self.errors),
            }

    def reset(self) -> None:
        with self.lock:
            self.calls = []
            self.api_stats = {}
            self.cache_events = Counter()
            self.normalization_skips = defaultdict(int)
            self.errors = Counter()
            self.start_time = time.time()


# Global telemetry collector instance
telemetry_collector = TelemetryCollector()


def record_upstream_call(api_name: str, operation: str, response_time: float,
                         success: bool, status_code: Optional[int] = None) -> None:
    """Record metrics for an upstream API call."""
    telemetry_collector.record_call(UpstreamCall(
        timestamp=time.time(),
        api_name=api_name,
        operation=operation,
        response_time=response_time,
        success=success,
        status_code=status_code,
    ))


def record_cache_event(event: str) -> None:
    telemetry_collector.record_cache_event(event)


def record_normalization_skips(vertical: str, count: int) -> None:
    telemetry_collector.record_normalization_skips(vertical, count)


def record_error(error_type: str) -> None:
    """Record an error occurrence."""
    telemetry_collector.record_error(error_type)


def get_telemetry_stats() -> Dict[str, Any]:
    """Get current telemetry statistics."""
    return telemetry_collector.get_overall_stats()


def reset_telemetry() -> None:
    telemetry_collector.reset()
