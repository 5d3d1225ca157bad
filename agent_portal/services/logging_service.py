"""Structured logging for the auth service.

Log lines must never carry anything that authenticates an agent: passwords
and their hashes, bearer and reset tokens, cookies, or session ids (a
session id is as good as the session cookie it travels in).
"""

import logging
import sys
from typing import Any, Dict

import structlog

REDACTED = "REDACTED"

SENSITIVE_KEY_FRAGMENTS = (
    "password",
    "secret",
    "authorization",
    "token",
    "cookie",
    "session_id",
)


def _is_sensitive(key: Any) -> bool:
    key_lower = str(key).lower()
    return any(fragment in key_lower for fragment in SENSITIVE_KEY_FRAGMENTS)


def _redact_value(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            k: REDACTED if _is_sensitive(k) else _redact_value(v)
            for k, v in value.items()
        }
    return value


def redact_sensitive(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Mask credential-bearing keys, including inside nested dicts.

    Audit detail payloads are logged as dicts, so a session id nested under
    ``details`` is masked the same way as a top-level one.
    """
    for key in list(event_dict.keys()):
        if _is_sensitive(key):
            event_dict[key] = REDACTED
        else:
            event_dict[key] = _redact_value(event_dict[key])

    return event_dict


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structlog for JSON output with correlation ID support.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            redact_sensitive,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a configured logger, optionally bound to a component name."""
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger_name=name)
    return logger
