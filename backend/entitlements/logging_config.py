"""structlog configuration for the entitlement client."""

import logging
import sys
from typing import Any

import structlog

# Event keys whose values must never reach a log sink
_SENSITIVE_KEYS = frozenset({"token", "auth_token", "authorization", "access_token"})
_REDACTED = "[redacted]"


def redact_credentials(_logger: Any, _method_name: str, event_dict: dict) -> dict:
    """structlog processor masking bearer tokens passed as log fields."""
    for key in event_dict.keys() & _SENSITIVE_KEYS:
        event_dict[key] = _REDACTED
    return event_dict


def setup_logging(debug: bool = False) -> None:
    """
    Configure structlog and stdlib logging.

    In debug mode: colored, human-readable console output.
    In production mode: JSON output for log aggregation.

    Args:
        debug: If True, use ConsoleRenderer; otherwise use JSONRenderer.
    """
    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_credentials,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    renderer = structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer()

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if debug else logging.INFO
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    # httpx logs every request line at INFO, including full URLs
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=logging.DEBUG if debug else logging.INFO,
    )
    logging.getLogger("httpx").setLevel(logging.DEBUG if debug else logging.WARNING)
