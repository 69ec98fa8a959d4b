"""Structured logging utilities for ThrottleGuard.

All modules log through structlog with key/value context. JSON output is the
default (one event per line, suitable for log shippers); set JSON_LOGS=false
for the coloured console renderer during local development.

Every event carries ``service="throttleguard"``. Limiter components log
through get_policy_logger(), so each event names the policy it concerns
without every call site repeating ``policy=...``.
"""

import logging
import sys
import time

import structlog
from structlog.types import EventDict, Processor

SERVICE_NAME = "throttleguard"


def add_timestamp(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add epoch timestamp to log entries."""
    event_dict["timestamp"] = time.time()
    return event_dict


def add_service(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = True
) -> None:
    """Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, output JSON format. If False, use console format.
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_service,
        add_timestamp,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = SERVICE_NAME) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def get_policy_logger(name: str, policy: str) -> structlog.stdlib.BoundLogger:
    """Logger with ``policy`` bound, for components owned by one throttle policy.

    Args:
        name:   Logger name (typically module name)
        policy: Throttle policy name, added to every event
    """
    return get_logger(name).bind(policy=policy)


# Sensible defaults until throttleguard.main reconfigures from the environment.
configure_logging()
