"""Cache module for Redis-backed caching of tenant directory lookups."""

from tenantguard.core.cache.redis import RedisCache, close_redis_pool, redis_client


__all__ = [
    "RedisCache",
    "close_redis_pool",
    "redis_client",
]
