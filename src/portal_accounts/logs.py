"""structlog setup.

Learn: Modules call structlog.get_logger() at import time and log
dotted event names with keyword context. configure_logging() runs once
in the app factory and decides the output format: colored console lines
in development, one JSON object per line everywhere else.
merge_contextvars pulls in the request_id bound by RequestIdMiddleware.
"""

import logging

import structlog

from portal_accounts.config import Settings


def configure_logging(settings: Settings) -> None:
    level = logging.DEBUG if settings.debug else logging.INFO

    renderer = (
        structlog.dev.ConsoleRenderer()
        if settings.is_development
        else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )
