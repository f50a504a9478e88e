"""Read-side tenant directory.

``TenantDirectory`` answers the lookups that context resolution and the
job carrier depend on. Each lookup runs in its own short session, since
resolution happens before the request's unit of work exists, and returns
an immutable ``TenantRecord``.

Lookups by id and slug can be cached in Redis for a short TTL. The
lifecycle manager invalidates the cached entries on every status change,
and the carrier always bypasses the cache when it re-checks liveness.
Cache failures fall back to the database; database failures propagate so
that callers fail closed.
"""

from collections.abc import Awaitable, Callable
from uuid import UUID

import structlog
from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tenantguard.config import settings
from tenantguard.core.cache.redis import RedisCache
from tenantguard.modules.admins.models import SuperAdmin
from tenantguard.modules.tenants.models import Tenant, TenantDomain
from tenantguard.modules.tenants.repos import TenantRepository
from tenantguard.modules.tenants.schemas import TenantRecord
from tenantguard.modules.tenants.settings import SettingValue


logger = structlog.get_logger()


def _id_key(tenant_id: int) -> str:
    return f"tenant:id:{tenant_id}"


def _slug_key(slug: str) -> str:
    return f"tenant:slug:{slug}"


def _as_uuid(value: str) -> UUID | None:
    try:
        return UUID(value)
    except ValueError:
        return None


class TenantDirectory:
    """Lookups over the tenant directory.

    Attributes:
        session_factory: Factory for short-lived lookup sessions
        cache: Optional Redis cache for id/slug lookups
        cache_ttl_seconds: TTL of cached entries
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cache: RedisCache | None = None,
        cache_ttl_seconds: int | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.cache = cache
        self.cache_ttl_seconds = cache_ttl_seconds or settings.tenant_cache_ttl_seconds

    @classmethod
    def from_settings(
        cls, session_factory: async_sessionmaker[AsyncSession]
    ) -> "TenantDirectory":
        """Build a directory, with the Redis cache when it is enabled."""
        cache = RedisCache() if settings.tenant_cache_enabled else None
        return cls(session_factory, cache=cache)

    # ============================================================
    # Cache plumbing
    # ============================================================

    async def _cache_get(self, key: str) -> TenantRecord | None:
        if self.cache is None:
            return None
        try:
            data = await self.cache.get_json(key)
        except RedisError as e:
            logger.warning("tenant_cache_read_failed", key=key, error=str(e))
            return None
        return TenantRecord.model_validate(data) if data else None

    async def _cache_put(self, record: TenantRecord) -> None:
        if self.cache is None:
            return
        payload = record.model_dump(mode="json")
        try:
            await self.cache.set_json(_id_key(record.id), payload, self.cache_ttl_seconds)
            await self.cache.set_json(
                _slug_key(record.slug), payload, self.cache_ttl_seconds
            )
        except RedisError as e:
            logger.warning("tenant_cache_write_failed", tenant_id=record.id, error=str(e))

    async def _lookup(
        self,
        key: str,
        loader: Callable[[], Awaitable[TenantRecord | None]],
        *,
        fresh: bool = False,
    ) -> TenantRecord | None:
        if not fresh:
            cached = await self._cache_get(key)
            if cached is not None:
                return cached
        record = await loader()
        if record is not None:
            await self._cache_put(record)
        return record

    async def _load_one(self, *criteria: object) -> TenantRecord | None:
        async with self.session_factory() as session:
            result = await session.execute(select(Tenant).where(*criteria))
            tenant = result.scalar_one_or_none()
            return TenantRecord.model_validate(tenant) if tenant is not None else None

    async def invalidate(self, tenant: TenantRecord | Tenant) -> None:
        """Drop cached entries for a tenant after a lifecycle transition."""
        if self.cache is None:
            return
        try:
            await self.cache.delete(_id_key(tenant.id), _slug_key(tenant.slug))
        except RedisError as e:
            logger.warning("tenant_cache_invalidate_failed", tenant_id=tenant.id, error=str(e))

    # ============================================================
    # Lookups
    # ============================================================

    async def get_by_id(self, tenant_id: int, *, fresh: bool = False) -> TenantRecord | None:
        """Look up a tenant by integer key.

        Args:
            tenant_id: Tenant key
            fresh: Bypass the cache

        Returns:
            The tenant record, or None if it does not exist
        """
        return await self._lookup(
            _id_key(tenant_id),
            lambda: self._load_one(Tenant.id == tenant_id),
            fresh=fresh,
        )

    async def get_by_slug(self, slug: str) -> TenantRecord | None:
        """Look up a tenant by slug."""
        slug = slug.lower()
        return await self._lookup(
            _slug_key(slug),
            lambda: self._load_one(Tenant.slug == slug),
        )

    async def get_by_uuid(self, tenant_uuid: UUID) -> TenantRecord | None:
        """Look up a tenant by external UUID."""
        return await self._load_one(Tenant.uuid == tenant_uuid)

    async def get_by_identifier(self, identifier: str) -> TenantRecord | None:
        """Look up a tenant by UUID, numeric key or slug.

        Args:
            identifier: Value from a header or query parameter

        Returns:
            The tenant record, or None if nothing matches
        """
        identifier = identifier.strip()
        tenant_uuid = _as_uuid(identifier)
        if tenant_uuid is not None:
            return await self.get_by_uuid(tenant_uuid)
        if identifier.isdigit():
            return await self.get_by_id(int(identifier))
        return await self.get_by_slug(identifier)

    async def get_by_verified_domain(self, host: str) -> TenantRecord | None:
        """Look up the tenant owning a verified domain."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(Tenant)
                .join(TenantDomain, TenantDomain.tenant_id == Tenant.id)
                .where(TenantDomain.domain == host.lower(), TenantDomain.is_verified.is_(True))
            )
            tenant = result.scalar_one_or_none()
            return TenantRecord.model_validate(tenant) if tenant is not None else None

    async def get_settings(self, tenant_id: int, group: str) -> dict[str, SettingValue]:
        """Return one group of a tenant's typed settings."""
        async with self.session_factory() as session:
            grouped = await TenantRepository(session).get_settings(tenant_id, group)
        return grouped.get(group, {})

    async def is_admin_active(self, admin_id: int) -> bool:
        """Check that a super admin exists and is active."""
        async with self.session_factory() as session:
            admin = await session.get(SuperAdmin, admin_id)
            return admin is not None and admin.is_active
