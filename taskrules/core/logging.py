"""Structured logging configuration using structlog."""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from taskrules.core.config import get_settings

# Broker client libraries log every frame at INFO
NOISY_LOGGERS = ("aio_pika", "aiormq")


def service_fields(component: str) -> Processor:
    """Build a processor stamping service, version and component on each event.

    Fields already bound on the event are left untouched.

    Args:
        component: Process role (``api``, ``worker`` or ``scan``)

    Returns:
        structlog processor
    """
    settings = get_settings()
    fields = {
        "service": settings.app_name,
        "version": settings.app_version,
        "component": component,
    }

    def add_service_fields(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        for key, value in fields.items():
            event_dict.setdefault(key, value)
        return event_dict

    return add_service_fields


def setup_logging(component: str = "api") -> None:
    """Configure structured logging for one TaskRules process.

    Args:
        component: Process role, added to every log line
    """
    settings = get_settings()
    level = getattr(logging, settings.log_level)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        service_fields(component),
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if settings.debug:
        processors: list[Processor] = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=True),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    # Route stdlib loggers (aio-pika, uvicorn) to the same stream
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    if not settings.debug:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str | None = None, **initial_values: Any) -> structlog.stdlib.BoundLogger:
    """Get a logger, optionally bound to task or rule identifiers.

    Args:
        name: Logger name (module ``__name__``)
        **initial_values: Context bound to every event, e.g. ``rule_id``

    Returns:
        Bound logger instance
    """
    logger = structlog.get_logger(name)
    if initial_values:
        logger = logger.bind(**initial_values)
    return logger
