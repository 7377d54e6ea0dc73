"""
Structured logging configuration.

JSON-formatted logs in production, plain text during development. Services
attach context through extra={"extra_fields": {...}}; credentials that end
up in that context (passwords, access tokens, signed upload URLs) are
redacted before the record is written.
"""
import logging
import sys
import json
from datetime import datetime, timezone
from typing import Any, Dict
from core.config import settings

REDACTED = "[redacted]"

SENSITIVE_KEYS = frozenset(
    {
        "password",
        "new_password",
        "access_token",
        "refresh_token",
        "token",
        "authorization",
        "signed_url",
        "api_key",
    }
)

# Loggers that report each outgoing HTTP call made by the Supabase and Anthropic clients
CHATTY_LOGGERS = ("httpx", "httpcore", "hpack")


def redact(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of `fields` with credential values masked, recursing into dicts."""
    clean: Dict[str, Any] = {}
    for key, value in fields.items():
        if key.lower() in SENSITIVE_KEYS and value is not None:
            clean[key] = REDACTED
        elif isinstance(value, dict):
            clean[key] = redact(value)
        else:
            clean[key] = value
    return clean


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "environment": settings.ENVIRONMENT,
        }

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Add extra fields if present
        if hasattr(record, "extra_fields"):
            log_data.update(redact(record.extra_fields))

        # Rows and ids can carry datetimes
        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable lines for development, with extra fields appended as key=value."""

    def __init__(self):
        super().__init__("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = getattr(record, "extra_fields", None)
        if fields:
            line += " | " + " ".join(f"{k}={v}" for k, v in redact(fields).items())
        return line


def setup_logging():
    """
    Configure application-wide logging.

    Uses JSON format in production, text format in development.
    """
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    # Create formatter
    if settings.LOG_FORMAT == "json" or settings.ENVIRONMENT == "production":
        formatter = JSONFormatter()
    else:
        formatter = TextFormatter()

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers
    root_logger.handlers.clear()

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Set levels for noisy libraries
    for name in CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger
