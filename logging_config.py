"""
Logging configuration for the WannaMap amenity engine
Provides structured logging for production monitoring
"""

import logging
import json
import sys
from datetime import datetime, timezone


# Extra fields copied from `extra=` into the JSON payload when present
_STRUCTURED_FIELDS = (
    "vertical",
    "bbox",
    "query",
    "language",
    "response_time",
    "error_type",
    "api_name",
    "endpoint",
    "cache_event",
    "skipped",
    "duration",
    "operation",
)


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for field in _STRUCTURED_FIELDS:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging(level: str = "INFO", json_format: bool = True) -> None:
    """
    Set up logging configuration for the application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Whether to use JSON formatting for structured logs
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    if json_format:
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Third-party noise
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    logging.getLogger("wannamap").setLevel(numeric_level)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(f"wannamap.{name}")


def log_api_call(logger: logging.Logger, api_name: str, endpoint: str, **fields) -> None:
    """Record a successful upstream call. `fields` land in the JSON payload."""
    logger.info(f"API call to {api_name}: {endpoint}",
                extra={"api_name": api_name, "endpoint": endpoint, **fields})


def log_error(logger: logging.Logger, error_type: str, message: str, **fields) -> None:
    """
    Log a failure tagged with an error category.

    Args:
        logger: Logger instance
        error_type: Category such as "geodata_fetch" or "geocode"
        message: Human readable message
        **fields: Structured context, e.g. vertical and bbox
    """
    logger.error(message, extra={"error_type": error_type, **fields})


def log_performance(logger: logging.Logger, operation: str, duration: float, **fields) -> None:
    logger.info(f"Performance: {operation} took {duration:.2f}s",
                extra={"operation": operation, "duration": round(duration, 3), **fields})
