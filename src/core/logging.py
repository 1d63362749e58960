"""Logfire wiring and owner-scoped event logging.

Modules log through ``logging.getLogger(__name__)``; ``configure_logfire`` attaches
a Logfire handler to the root logger so those records reach the same place as
the request and service spans.

Anything that reads or writes one user's data is logged with ``log_event``,
which always puts ``user_id`` on the record next to the ids of the records
touched:

    log_event(logger, "Completed task", user_id=user_id, task_id=task_id)
"""

import logging

import logfire
from fastapi import FastAPI

from src.core.config import settings


SERVICE_NAME = "taskdeck"
SERVICE_VERSION = "0.1.0"

logger = logging.getLogger(__name__)


def configure_logfire() -> None:
    """Configure Logfire and route standard logging through it.

    Nothing is exported unless ``LOGFIRE_TOKEN`` is set. Safe to call more than
    once; the root handler is only added the first time.
    """
    logfire.configure(
        token=settings.logfire_token,
        service_name=SERVICE_NAME,
        service_version=SERVICE_VERSION,
        environment=settings.environment,
        send_to_logfire="if-token-present",
    )

    root = logging.getLogger()
    if not any(isinstance(handler, logfire.LogfireLoggingHandler) for handler in root.handlers):
        root.addHandler(logfire.LogfireLoggingHandler())
    root.setLevel(settings.log_level.upper())

    logger.info("Logfire configured", extra={"environment": settings.environment})


def instrument_fastapi(app: FastAPI) -> None:
    """Trace every API request except health checks."""
    logfire.instrument_fastapi(app, excluded_urls="/health")
    logger.info("FastAPI instrumentation configured")


def span(name: str, **attributes: object) -> logfire.LogfireSpan:
    """Open a span for one service operation, named ``<module>.<operation>``."""
    return logfire.span(name, **attributes)


def log_event(
    log: logging.Logger,
    message: str,
    *,
    user_id: str | None,
    level: int = logging.INFO,
    **resource_ids: object,
) -> None:
    """Log an event about one user's data.

    Args:
        log: Logger of the calling module
        message: Short past-tense description ("Deleted task")
        user_id: Acting user, ``None`` when the caller is not yet identified
        level: Standard logging level
        **resource_ids: Ids and small facts about the touched records (task_id, count, ...)
    """
    log.log(level, message, extra={"user_id": user_id, **resource_ids})
