"""Shared helpers for the job layer."""

from arq.connections import RedisSettings

from tenantguard.config import settings


def get_redis_settings() -> RedisSettings:
    """Get Redis settings for ARQ from app configuration.

    Returns:
        ARQ RedisSettings instance
    """
    return RedisSettings.from_dsn(str(settings.redis_url))
