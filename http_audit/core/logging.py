"""
Structured JSON logging via structlog.

Every log entry includes: timestamp, level, event, logger_name,
and any bound context (audit_id, path, broker host).

Usage:
    logger = get_logger(__name__)
    logger.info("audit.published", audit_id="…", topic="jms.topic.auditing.event")
    logger.warning("broker.connect_failed", hosts="a,b", error=str(e))
    logger.error("audit.publish_failed", audit_id="…", error=str(e))
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, WrappedLogger

from http_audit.core.config import settings

MASK = "******"


def add_severity_field(
    logger: WrappedLogger, method: str, event_dict: EventDict
) -> EventDict:
    """Map structlog levels to GCP/Datadog severity strings."""
    level_map = {
        "debug": "DEBUG",
        "info": "INFO",
        "warning": "WARNING",
        "error": "ERROR",
        "critical": "CRITICAL",
    }
    event_dict["severity"] = level_map.get(method, "INFO")
    return event_dict


def mask_secrets(
    logger: WrappedLogger, method: str, event_dict: EventDict
) -> EventDict:
    """Never let a broker or keystore password reach the log stream."""
    for key, value in event_dict.items():
        if "password" in key.lower() and value is not None:
            event_dict[key] = MASK
    return event_dict


def setup_logging() -> None:
    """Configure structlog for JSON (production) or console (dev) output."""
    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        add_severity_field,
        mask_secrets,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.ExceptionRenderer(),
    ]

    if settings.LOG_FORMAT == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(settings.LOG_LEVEL)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    # stomp.py logs every frame at INFO
    for noisy in ("uvicorn.access", "stomp.py"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a structlog logger with the module name bound as `logger_name`."""
    return structlog.get_logger(logger_name=name)
