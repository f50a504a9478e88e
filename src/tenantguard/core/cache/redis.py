"""Redis client configuration and connection management.

Provides an async Redis client with connection pooling, used to cache
tenant directory lookups for a short TTL.
"""

import json
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from tenantguard.config import settings
from tenantguard.core.constants import TENANT_CACHE_PREFIX


class RedisPoolHolder:
    """Holder for the shared Redis connection pool."""

    pool: ConnectionPool | None = None


def _get_pool() -> ConnectionPool:
    """Get or create the Redis connection pool."""
    if RedisPoolHolder.pool is None:
        RedisPoolHolder.pool = ConnectionPool.from_url(
            str(settings.redis_url),
            max_connections=50,
            decode_responses=True,
        )
    return RedisPoolHolder.pool


@asynccontextmanager
async def redis_client() -> AsyncGenerator[redis.Redis, None]:  # type: ignore[type-arg]
    """Context manager for a pooled Redis client.

    Usage:
        async with redis_client() as client:
            await client.set("key", "value")
    """
    client = redis.Redis(connection_pool=_get_pool())
    try:
        yield client
    finally:
        await client.aclose()


async def close_redis_pool() -> None:
    """Close the Redis connection pool.

    Call this during application shutdown.
    """
    if RedisPoolHolder.pool is not None:
        await RedisPoolHolder.pool.disconnect()
        RedisPoolHolder.pool = None


class RedisCache:
    """Small typed cache interface over Redis."""

    def __init__(self, prefix: str = TENANT_CACHE_PREFIX) -> None:
        """Initialize cache with a key prefix.

        Args:
            prefix: Prefix for all keys (e.g., "tenantguard:")
        """
        self.prefix = prefix

    def _key(self, key: str) -> str:
        """Generate prefixed key."""
        return f"{self.prefix}{key}" if self.prefix else key

    async def get(self, key: str) -> str | None:
        """Get a value from cache.

        Args:
            key: Cache key

        Returns:
            Cached value or None if not found
        """
        async with redis_client() as client:
            return await client.get(self._key(key))

    async def set(
        self,
        key: str,
        value: str,
        ttl_seconds: int | None = None,
    ) -> None:
        """Set a value in cache.

        Args:
            key: Cache key
            value: Value to cache
            ttl_seconds: Optional TTL in seconds
        """
        async with redis_client() as client:
            if ttl_seconds:
                await client.setex(self._key(key), ttl_seconds, value)
            else:
                await client.set(self._key(key), value)

    async def delete(self, *keys: str) -> int:
        """Delete keys from cache.

        Args:
            *keys: Cache keys

        Returns:
            Number of keys that existed and were deleted
        """
        if not keys:
            return 0
        async with redis_client() as client:
            return await client.delete(*(self._key(key) for key in keys))

    async def set_json(
        self,
        key: str,
        value: dict[str, Any],
        ttl_seconds: int | None = None,
    ) -> None:
        """Set a JSON value in cache."""
        await self.set(key, json.dumps(value, default=str), ttl_seconds)

    async def get_json(self, key: str) -> dict[str, Any] | None:
        """Get a JSON value from cache."""
        data = await self.get(key)
        if data:
            return json.loads(data)
        return None
