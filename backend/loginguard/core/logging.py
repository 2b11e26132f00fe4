"""
Logging setup for loginguard.

Production output is one JSON object per line, carrying the request ID and
with credentials and email addresses masked before rendering.
"""
import logging
import re
import sys
from typing import Any

import structlog

from loginguard.core.config import Settings, settings as default_settings

EMAIL_PATTERN = re.compile(r"([A-Za-z0-9._%+-])[A-Za-z0-9._%+-]*@([A-Za-z0-9.-]+\.[A-Za-z]{2,})")

# Fields to redact completely
SENSITIVE_FIELDS = (
    "password",
    "token",
    "api_key",
    "secret",
    "session_id",
    "authorization",
    "cookie",
)


def setup_logging(settings: Settings | None = None) -> None:
    """Install log handlers for *settings*: plain text in development, JSON otherwise."""
    settings = settings or default_settings
    log_level = getattr(logging, settings.LOG_LEVEL)

    if settings.DEBUG or settings.ENVIRONMENT == "development":
        configure_development_logging(log_level)
    else:
        configure_production_logging(log_level)


def configure_development_logging(level: int) -> None:
    """Human-readable lines on stdout."""
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        stream=sys.stdout,
        force=True,
    )

    # Silence per-request access logs
    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)


def configure_production_logging(level: int) -> None:
    """Configure logging for production (JSON format).

    Both structlog loggers and plain ``logging`` loggers are rendered by the
    same processor chain, so redaction applies to every record.
    """
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.ExtraAdder(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            # Sensitive data redaction
            redact_sensitive_data,
            structlog.processors.JSONRenderer(),
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)


def redact_sensitive_data(
    logger: logging.Logger | None,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """structlog processor masking secrets anywhere in the event, nested dicts included."""
    return _redact_mapping(event_dict)


def _redact_mapping(data: dict[str, Any]) -> dict[str, Any]:
    redacted = data.copy()

    for key, value in redacted.items():
        if isinstance(key, str) and any(sensitive in key.lower() for sensitive in SENSITIVE_FIELDS):
            redacted[key] = "***REDACTED***"
        elif isinstance(value, dict):
            redacted[key] = _redact_mapping(value)
        elif isinstance(value, str):
            redacted[key] = redact_string(value)

    return redacted


def redact_string(value: str) -> str:
    """Mask email addresses inside *value* and truncate token-like strings.

    ``bob@example.com`` becomes ``b***@example.com``, keeping enough to
    correlate lockouts for one account without logging the address.
    """
    if "@" in value:
        value = EMAIL_PATTERN.sub(r"\1***@\2", value)

    # Bare tokens: keep a prefix and suffix only
    if len(value) > 20 and value.replace('_', '').replace('-', '').isalnum():
        return f"{value[:8]}...{value[-4:]}"

    return value
