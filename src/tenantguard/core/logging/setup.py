"""structlog configuration shared by the API, the worker and the CLI."""

import logging

import structlog

from tenantguard.config import settings


def configure_logging(json_logs: bool | None = None, log_level: str | None = None) -> None:
    """Configure structlog processors and renderer.

    Args:
        json_logs: Render JSON lines instead of console output.
            Defaults to True in production.
        log_level: Minimum level name. Defaults to the configured level.
    """
    if json_logs is None:
        json_logs = settings.is_production
    level = logging.getLevelNamesMapping().get(
        (log_level or settings.log_level).upper(), logging.INFO
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            (
                structlog.processors.JSONRenderer()
                if json_logs
                else structlog.dev.ConsoleRenderer()
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
