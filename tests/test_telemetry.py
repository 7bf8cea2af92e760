import json
import logging

from data_sources import telemetry
from logging_config import JSONFormatter, get_logger, log_api_call, log_error, log_performance


def test_upstream_call_stats():
    telemetry.record_upstream_call("overpass", "interpreter", 1.0, True, 200)
    telemetry.record_upstream_call("overpass", "interpreter", 3.0, False, 504)

    stats = telemetry.get_telemetry_stats()
    overpass = stats["api_stats"]["overpass"]
    assert overpass["call_count"] == 2
    assert overpass["failure_count"] == 1
    assert overpass["avg_response_time"] == 2.0
    assert overpass["max_response_time"] == 3.0
    assert stats["system_metrics"]["failure_rate"] == 50.0


def test_counters():
    telemetry.record_cache_event("hit")
    telemetry.record_cache_event("hit")
    telemetry.record_normalization_skips("playground", 3)
    telemetry.record_error("geocode")

    stats = telemetry.get_telemetry_stats()
    assert stats["cache_events"] == {"hit": 2}
    assert stats["normalization_skips"] == {"playground": 3}
    assert stats["errors"] == {"geocode": 1}


def test_empty_stats():
    stats = telemetry.get_telemetry_stats()
    assert stats["system_metrics"]["total_upstream_calls"] == 0
    assert stats["system_metrics"]["failure_rate"] == 0.0


def test_logger_namespace():
    assert get_logger("data_sources.cache").name == "wannamap.data_sources.cache"


def test_json_formatter_includes_structured_fields():
    record = logging.LogRecord("wannamap.test", logging.WARNING, __file__, 10,
                               "Overpass endpoint failed", None, None)
    record.vertical = "restroom"
    record.api_name = "overpass"

    payload = json.loads(JSONFormatter().format(record))
    assert payload["level"] == "WARNING"
    assert payload["message"] == "Overpass endpoint failed"
    assert payload["vertical"] == "restroom"
    assert payload["api_name"] == "overpass"
    assert "bbox" not in payload


def test_log_helpers_attach_structured_fields(caplog):
    logger = get_logger("tests.logging")
    with caplog.at_level(logging.INFO, logger="wannamap"):
        log_api_call(logger, "overpass", "https://overpass.example/api", response_time=0.42)
        log_error(logger, "geodata_fetch", "Amenity fetch failed", vertical="gym")
        log_performance(logger, "gym_fetch", 1.23456, skipped=2)

    api, error, perf = caplog.records
    assert (api.api_name, api.endpoint, api.response_time) == ("overpass", "https://overpass.example/api", 0.42)
    assert error.levelname == "ERROR"
    assert (error.error_type, error.vertical) == ("geodata_fetch", "gym")
    assert perf.duration == 1.235
    assert perf.skipped == 2
    assert perf.getMessage() == "Performance: gym_fetch took 1.23s"
