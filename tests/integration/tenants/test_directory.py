"""Integration tests for tenant directory lookups and caching."""

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from tenantguard.core.cache.redis import RedisCache
from tenantguard.modules.tenants.directory import TenantDirectory


pytestmark = pytest.mark.integration


class MemoryCache(RedisCache):
    """RedisCache over a dict."""

    def __init__(self) -> None:
        super().__init__()
        self.store: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self.store.get(self._key(key))

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        self.store[self._key(key)] = value

    async def delete(self, *keys: str) -> int:
        return sum(self.store.pop(self._key(key), None) is not None for key in keys)


class UnreachableCache(RedisCache):
    """RedisCache whose server is down."""

    async def get(self, key: str) -> str | None:
        raise RedisConnectionError("connection refused")

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        raise RedisConnectionError("connection refused")


class TestLookups:
    """Tests for the lookup methods."""

    async def test_identifier_forms(self, directory, acme):
        """UUIDs, numeric keys and slugs all find the tenant."""
        by_uuid = await directory.get_by_identifier(str(acme.uuid))
        by_id = await directory.get_by_identifier(str(acme.id))
        by_slug = await directory.get_by_identifier(" ACME ")

        assert by_uuid.id == by_id.id == by_slug.id == acme.id

    async def test_unknown_identifier(self, directory):
        """Unknown identifiers find nothing."""
        assert await directory.get_by_identifier("nobody") is None
        assert await directory.get_by_verified_domain("nobody.example.com") is None

    async def test_admin_activity(self, db, directory, super_admin):
        """Only existing, active super admins count as active."""
        assert await directory.is_admin_active(super_admin.id) is True
        assert await directory.is_admin_active(9999) is False

        super_admin.is_active = False
        await db.commit()

        assert await directory.is_admin_active(super_admin.id) is False


class TestCaching:
    """Tests for the Redis-backed lookup cache."""

    async def test_lookup_is_cached_until_invalidated(self, session_factory, manager, acme):
        """Transitions invalidate cached entries."""
        cache = MemoryCache()
        directory = TenantDirectory(session_factory, cache=cache)
        manager.directory = directory

        assert (await directory.get_by_slug("acme")).is_active
        assert "tenantguard:tenant:slug:acme" in cache.store

        await manager.suspend_tenant(acme.id)

        assert cache.store == {}
        assert (await directory.get_by_slug("acme")).is_active is False

    async def test_fresh_lookup_bypasses_cache(self, session_factory, acme):
        """fresh=True always reads the database."""
        cache = MemoryCache()
        directory = TenantDirectory(session_factory, cache=cache)
        record = await directory.get_by_id(acme.id)
        stale = record.model_copy(update={"name": "Stale Name"})
        cache.store[f"tenantguard:tenant:id:{acme.id}"] = stale.model_dump_json()

        assert (await directory.get_by_id(acme.id)).name == "Stale Name"
        assert (await directory.get_by_id(acme.id, fresh=True)).name == "Acme Corp"

    async def test_cache_failure_falls_back_to_database(self, session_factory, acme):
        """An unreachable cache does not break lookups."""
        directory = TenantDirectory(session_factory, cache=UnreachableCache())

        record = await directory.get_by_slug("acme")

        assert record is not None
        assert record.id == acme.id
