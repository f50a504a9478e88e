"""Tenant repository for directory writes and administrative reads."""

from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.core.database.base import utcnow
from tenantguard.modules.admins.models import SuperAdmin
from tenantguard.modules.tenants.models import (
    ImpersonationGrant,
    SettingKind,
    Tenant,
    TenantActivityLog,
    TenantDomain,
    TenantSetting,
    TenantStatus,
)
from tenantguard.modules.tenants.settings import SettingValue, load_setting


class TenantRepository:
    """Repository for the tenant directory tables.

    Used by the lifecycle manager inside its unit of work. Directory rows
    are not tenant-owned, so none of these queries are tenant scoped.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # ============================================================
    # Tenants
    # ============================================================

    async def add(self, tenant: Tenant) -> Tenant:
        """Persist a new tenant and populate its key."""
        self.session.add(tenant)
        await self.session.flush()
        return tenant

    async def get_by_id(self, tenant_id: int) -> Tenant | None:
        """Get a tenant by its integer key."""
        return await self.session.get(Tenant, tenant_id)

    async def slug_exists(self, slug: str) -> bool:
        """Check whether a slug is already taken."""
        result = await self.session.execute(select(Tenant.id).where(Tenant.slug == slug))
        return result.first() is not None

    async def list_all(self, status: TenantStatus | None = None) -> list[Tenant]:
        """List tenants ordered by key, optionally filtered by status."""
        stmt = select(Tenant).order_by(Tenant.id)
        if status is not None:
            stmt = stmt.where(Tenant.status == status)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def delete(self, tenant: Tenant) -> None:
        """Delete a tenant row."""
        await self.session.delete(tenant)
        await self.session.flush()

    # ============================================================
    # Domains
    # ============================================================

    async def add_domain(
        self,
        tenant_id: int,
        domain: str,
        *,
        is_primary: bool = False,
        is_verified: bool = False,
    ) -> TenantDomain:
        """Register a host name for a tenant."""
        record = TenantDomain(
            tenant_id=tenant_id,
            domain=domain.lower(),
            is_primary=is_primary,
            is_verified=is_verified,
            verified_at=utcnow() if is_verified else None,
        )
        self.session.add(record)
        await self.session.flush()
        return record

    # ============================================================
    # Settings
    # ============================================================

    async def get_settings(
        self, tenant_id: int, group: str | None = None
    ) -> dict[str, dict[str, SettingValue]]:
        """Return typed settings grouped by concern."""
        stmt = select(TenantSetting).where(TenantSetting.tenant_id == tenant_id)
        if group is not None:
            stmt = stmt.where(TenantSetting.group == group)
        result = await self.session.execute(stmt)

        grouped: dict[str, dict[str, SettingValue]] = {}
        for row in result.scalars():
            grouped.setdefault(row.group, {})[row.key] = load_setting(row.kind, row.value)
        return grouped

    async def set_setting(
        self, tenant_id: int, group: str, key: str, value: SettingValue
    ) -> TenantSetting:
        """Insert or replace one typed setting."""
        result = await self.session.execute(
            select(TenantSetting).where(
                TenantSetting.tenant_id == tenant_id,
                TenantSetting.group == group,
                TenantSetting.key == key,
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            row = TenantSetting(tenant_id=tenant_id, group=group, key=key)
            self.session.add(row)
        row.kind = SettingKind(value.kind)
        row.value = value.value
        await self.session.flush()
        return row

    # ============================================================
    # Activity log
    # ============================================================

    async def log_activity(
        self,
        tenant_id: int,
        action: str,
        *,
        description: str | None = None,
        admin_id: int | None = None,
        user_id: UUID | None = None,
        metadata: dict[str, Any] | None = None,
        impersonated: bool = False,
    ) -> TenantActivityLog:
        """Append an entry to the tenant's activity log."""
        entry = TenantActivityLog(
            tenant_id=tenant_id,
            action=action,
            description=description,
            admin_id=admin_id,
            user_id=user_id,
            metadata_=metadata or {},
            impersonated=impersonated,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def list_activity(self, tenant_id: int) -> list[TenantActivityLog]:
        """List a tenant's activity, oldest first."""
        result = await self.session.execute(
            select(TenantActivityLog)
            .where(TenantActivityLog.tenant_id == tenant_id)
            .order_by(TenantActivityLog.id)
        )
        return list(result.scalars().all())

    # ============================================================
    # Super admins and impersonation grants
    # ============================================================

    async def get_admin(self, admin_id: int) -> SuperAdmin | None:
        """Get a super admin by key."""
        return await self.session.get(SuperAdmin, admin_id)

    async def add_grant(self, grant: ImpersonationGrant) -> ImpersonationGrant:
        """Persist a new impersonation grant."""
        self.session.add(grant)
        await self.session.flush()
        return grant

    async def consume_grant(self, jti: str, admin_id: int, tenant_id: int) -> int | None:
        """Mark a live, unused grant as consumed.

        The check and the write are one conditional UPDATE, so of two
        concurrent redemptions of the same grant at most one succeeds.

        Returns:
            The consumed grant's key, or None if no such grant was redeemable
        """
        now = utcnow()
        result = await self.session.execute(
            update(ImpersonationGrant)
            .where(
                ImpersonationGrant.jti == jti,
                ImpersonationGrant.admin_id == admin_id,
                ImpersonationGrant.tenant_id == tenant_id,
                ImpersonationGrant.consumed_at.is_(None),
                ImpersonationGrant.expires_at > now,
            )
            .values(consumed_at=now)
            .returning(ImpersonationGrant.id)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none()
