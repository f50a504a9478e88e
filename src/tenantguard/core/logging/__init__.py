"""Logging module with structured logging and request tracking."""

from tenantguard.core.logging.middleware import RequestLoggingMiddleware
from tenantguard.core.logging.setup import configure_logging


__all__ = [
    "RequestLoggingMiddleware",
    "configure_logging",
]
