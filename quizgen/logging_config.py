"""
Centralized logging configuration with structured logging support.
"""
import json
import logging
import logging.config
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Context variable for request ID correlation across async tasks.
# The HTTP edge sets it per request so every log line of one generate()
# call can be correlated.
request_id_context: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

NOISY_LOGGERS = ("httpx", "httpcore", "openai", "anthropic", "google", "urllib3")


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for production logging.

    Produces structured log entries with consistent fields for log aggregation.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        log_entry: Dict[str, Any] = {
            "timestamp": timestamp.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = request_id_context.get()
        if request_id:
            log_entry["request_id"] = request_id

        # Extra structured fields passed via ``extra=``
        for attr in ("provider", "duration_ms", "outcome", "status_code"):
            if hasattr(record, attr):
                log_entry[attr] = getattr(record, attr)

        if record.levelno >= logging.ERROR:
            log_entry["source"] = f"{record.pathname}:{record.lineno}"

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging(
    level: str = "INFO", json_output: bool = False, stream: Any = None
) -> None:
    """
    Configure application-wide logging.

    Args:
        level: Log level name (DEBUG, INFO, ...); unknown names fall back to INFO
        json_output: Emit JSON lines (production) instead of plain text
        stream: Output stream, defaults to stderr so CLI stdout stays clean JSON
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging_config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "json": {
                "()": JSONFormatter,
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "json" if json_output else "default",
                "stream": stream or sys.stderr,
            },
        },
        "root": {
            "level": log_level,
            "handlers": ["console"],
        },
        "loggers": {
            "quizgen": {
                "level": log_level,
                "handlers": ["console"],
                "propagate": False,
            },
            **{
                name: {"level": logging.WARNING, "propagate": True}
                for name in NOISY_LOGGERS
            },
        },
    }

    logging.config.dictConfig(logging_config)
