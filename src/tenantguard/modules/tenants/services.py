"""Tenant lifecycle management.

``TenantLifecycleManager`` provisions, transitions and removes tenants,
and issues and redeems impersonation grants. Every operation runs in the
caller's session as one transaction: it commits on success and rolls
back on any failure, so a tenant is never left half-provisioned.
"""

import secrets
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any

import structlog
from pydantic import BaseModel
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.config import settings
from tenantguard.core.auth.backend import (
    create_impersonation_token,
    create_session_token,
    decode_impersonation_token,
    hash_password,
)
from tenantguard.core.constants import IMPERSONATION_JTI_LENGTH, MAX_SLUG_SUFFIX_ATTEMPTS
from tenantguard.core.database.base import Base, tenant_owned_models, utcnow
from tenantguard.core.errors import (
    ConflictError,
    ForbiddenError,
    ImpersonationError,
    InactiveTenantError,
    TenantNotFoundError,
    ValidationError,
)
from tenantguard.core.tenancy.context import TenantContext, acting_as
from tenantguard.core.utils.text import generate_slug, suffixed_slug
from tenantguard.modules.tenants.directory import TenantDirectory
from tenantguard.modules.tenants.models import (
    ImpersonationGrant,
    Tenant,
    TenantActivityLog,
    TenantDomain,
    TenantSetting,
    TenantStatus,
)
from tenantguard.modules.tenants.repos import TenantRepository
from tenantguard.modules.tenants.schemas import IssuedImpersonation, TenantCreate
from tenantguard.modules.tenants.settings import DEFAULT_SETTINGS, SettingValue, infer_setting
from tenantguard.modules.users.models import User
from tenantguard.modules.users.repos import UserRepository


logger = structlog.get_logger()

# Directory rows removed together with a tenant
_DIRECTORY_MODELS: tuple[type[Base], ...] = (
    ImpersonationGrant,
    TenantActivityLog,
    TenantSetting,
    TenantDomain,
)


class TenantLifecycleManager:
    """Service for tenant provisioning and lifecycle transitions.

    Attributes:
        session: Unit-of-work session owned by the caller
        directory: Tenant directory whose cache is invalidated on transitions
    """

    def __init__(self, session: AsyncSession, directory: TenantDirectory | None = None) -> None:
        self.session = session
        self.directory = directory
        self.repo = TenantRepository(session)

    @asynccontextmanager
    async def _transaction(self, operation: str, **fields: Any) -> AsyncIterator[None]:
        try:
            yield
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            logger.warning("tenant_operation_failed", operation=operation, **fields)
            raise

    async def _get_tenant(self, tenant_id: int) -> Tenant:
        tenant = await self.repo.get_by_id(tenant_id)
        if tenant is None:
            raise TenantNotFoundError(resource="tenant", resource_id=str(tenant_id))
        return tenant

    async def _invalidate(self, tenant: Tenant) -> None:
        if self.directory is not None:
            await self.directory.invalidate(tenant)

    # ============================================================
    # Provisioning
    # ============================================================

    async def _claim_slug(self, data: TenantCreate) -> str:
        if data.slug is not None:
            slug = generate_slug(data.slug)
            if not slug:
                raise ValidationError(
                    "Invalid slug",
                    errors=[{"field": "slug", "message": "Slug has no usable characters"}],
                )
            if await self.repo.slug_exists(slug):
                raise ConflictError(
                    "Slug already taken",
                    error_code="slug_taken",
                    details={"slug": slug},
                )
            return slug

        base = generate_slug(data.name) or "tenant"
        if not await self.repo.slug_exists(base):
            return base
        for suffix in range(1, MAX_SLUG_SUFFIX_ATTEMPTS + 1):
            candidate = suffixed_slug(base, suffix)
            if not await self.repo.slug_exists(candidate):
                return candidate
        raise ConflictError(
            "Could not derive a unique slug",
            error_code="slug_taken",
            details={"slug": base},
        )

    async def _provision_settings(
        self, tenant: Tenant, custom: Mapping[str, Mapping[str, Any]]
    ) -> None:
        groups: dict[str, dict[str, Any]] = {
            group: dict(values) for group, values in DEFAULT_SETTINGS.items()
        }
        groups["email"] = {
            "from_address": tenant.email or settings.mail_from_address,
            "from_name": tenant.name,
        }
        for group, values in custom.items():
            groups.setdefault(group, {}).update(values)

        for group, values in groups.items():
            for key, value in values.items():
                await self.repo.set_setting(tenant.id, group, key, infer_setting(value))

    async def create_tenant(self, data: TenantCreate, *, admin_id: int | None = None) -> Tenant:
        """Provision a tenant with its domain, settings and first administrator.

        Args:
            data: Tenant creation data
            admin_id: Super admin performing the operation, for the activity log

        Returns:
            The created tenant

        Raises:
            ConflictError: If an explicit slug is already taken
            ValidationError: If the slug or a setting value is invalid
        """
        async with self._transaction("create_tenant", name=data.name):
            slug = await self._claim_slug(data)
            try:
                tenant = await self.repo.add(
                    Tenant(
                        name=data.name,
                        slug=slug,
                        email=data.email,
                        phone=data.phone,
                        trial_ends_at=data.trial_ends_at,
                        status=TenantStatus.ACTIVE,
                    )
                )
            except IntegrityError as e:
                raise ConflictError(
                    "Slug already taken",
                    error_code="slug_taken",
                    details={"slug": slug},
                ) from e

            await self.repo.add_domain(
                tenant.id,
                f"{slug}.{settings.app_domain}",
                is_primary=True,
                is_verified=True,
            )
            await self._provision_settings(tenant, data.settings)

            admin_user: User | None = None
            if data.admin is not None:
                with acting_as(tenant):
                    admin_user = await UserRepository(self.session).create(
                        email=str(data.admin.email).lower(),
                        full_name=data.admin.full_name,
                        password_hash=(
                            hash_password(data.admin.password) if data.admin.password else None
                        ),
                        is_admin=True,
                    )

            await self.repo.log_activity(
                tenant.id,
                "tenant.created",
                description=f"Tenant {tenant.name} created",
                admin_id=admin_id,
                user_id=admin_user.id if admin_user is not None else None,
                metadata={"slug": slug},
            )

        logger.info("tenant_created", tenant_id=tenant.id, slug=tenant.slug)
        return tenant

    # ============================================================
    # Status transitions
    # ============================================================

    async def _transition(
        self,
        tenant_id: int,
        target: TenantStatus,
        allowed: frozenset[TenantStatus],
        action: str,
        *,
        bump_session: bool,
        admin_id: int | None,
        reason: str | None,
    ) -> Tenant:
        async with self._transaction(action, tenant_id=tenant_id):
            tenant = await self._get_tenant(tenant_id)
            previous = tenant.status
            if previous not in allowed:
                raise ConflictError(
                    f"Cannot change tenant status from {previous} to {target}",
                    error_code="invalid_status_transition",
                    details={"from": str(previous), "to": str(target)},
                )
            tenant.status = target
            if bump_session:
                tenant.session_version += 1
            await self.repo.log_activity(
                tenant.id,
                action,
                description=reason,
                admin_id=admin_id,
                metadata={"from": str(previous), "to": str(target)},
            )

        await self._invalidate(tenant)
        logger.info(
            "tenant_status_changed",
            tenant_id=tenant.id,
            from_status=str(previous),
            to_status=str(target),
        )
        return tenant

    async def suspend_tenant(
        self, tenant_id: int, *, admin_id: int | None = None, reason: str | None = None
    ) -> Tenant:
        """Suspend an active tenant and invalidate its sessions."""
        return await self._transition(
            tenant_id,
            TenantStatus.SUSPENDED,
            frozenset({TenantStatus.ACTIVE}),
            "tenant.suspended",
            bump_session=True,
            admin_id=admin_id,
            reason=reason,
        )

    async def activate_tenant(
        self, tenant_id: int, *, admin_id: int | None = None, reason: str | None = None
    ) -> Tenant:
        """Reactivate a suspended or inactive tenant."""
        return await self._transition(
            tenant_id,
            TenantStatus.ACTIVE,
            frozenset({TenantStatus.SUSPENDED, TenantStatus.INACTIVE}),
            "tenant.activated",
            bump_session=False,
            admin_id=admin_id,
            reason=reason,
        )

    async def deactivate_tenant(
        self, tenant_id: int, *, admin_id: int | None = None, reason: str | None = None
    ) -> Tenant:
        """Deactivate a tenant and invalidate its sessions."""
        return await self._transition(
            tenant_id,
            TenantStatus.INACTIVE,
            frozenset({TenantStatus.ACTIVE, TenantStatus.SUSPENDED}),
            "tenant.deactivated",
            bump_session=True,
            admin_id=admin_id,
            reason=reason,
        )

    # ============================================================
    # Removal
    # ============================================================

    async def _owned_row_counts(self, tenant_id: int) -> dict[str, int]:
        counts: dict[str, int] = {}
        with acting_as(tenant_id):
            for model in tenant_owned_models():
                result = await self.session.execute(
                    select(func.count())
                    .select_from(model)
                    .where(model.tenant_id == tenant_id)
                )
                count = result.scalar_one()
                if count:
                    counts[model.__tablename__] = count
        return counts

    async def delete_tenant(self, tenant_id: int, *, cascade: bool = False) -> dict[str, int]:
        """Delete a tenant and its directory rows.

        Args:
            tenant_id: The tenant key
            cascade: Also delete every tenant-owned row

        Returns:
            Number of deleted tenant-owned rows per table

        Raises:
            TenantNotFoundError: If the tenant does not exist
            ConflictError: If the tenant still owns rows and cascade is False
        """
        async with self._transaction("delete_tenant", tenant_id=tenant_id):
            tenant = await self._get_tenant(tenant_id)
            counts = await self._owned_row_counts(tenant.id)
            if counts and not cascade:
                raise ConflictError(
                    "Tenant still owns data",
                    error_code="tenant_not_empty",
                    details={"rows": counts},
                )

            owned = {model.__table__: model for model in tenant_owned_models()}
            with acting_as(tenant.id):
                # Children before parents
                for table in reversed(Base.metadata.sorted_tables):
                    model = owned.get(table)
                    if model is not None:
                        await self.session.execute(
                            delete(model)
                            .where(model.tenant_id == tenant.id)
                            .execution_options(synchronize_session=False)
                        )

            for directory_model in _DIRECTORY_MODELS:
                await self.session.execute(
                    delete(directory_model).where(directory_model.tenant_id == tenant.id)
                )
            await self.repo.delete(tenant)

        await self._invalidate(tenant)
        logger.info("tenant_deleted", tenant_id=tenant_id, cascade=cascade, rows=counts)
        return counts

    # ============================================================
    # Settings
    # ============================================================

    async def update_settings(
        self,
        tenant_id: int,
        group: str,
        values: Mapping[str, Any],
        *,
        admin_id: int | None = None,
    ) -> dict[str, SettingValue]:
        """Insert or replace settings of one group.

        Values may be plain Python values (their kind is inferred) or
        typed setting values.

        Returns:
            The group's settings after the update
        """
        async with self._transaction("update_settings", tenant_id=tenant_id, group=group):
            tenant = await self._get_tenant(tenant_id)
            for key, value in values.items():
                typed = value if isinstance(value, BaseModel) else infer_setting(value)
                await self.repo.set_setting(tenant.id, group, key, typed)
            await self.repo.log_activity(
                tenant.id,
                "settings.updated",
                admin_id=admin_id,
                metadata={"group": group, "keys": sorted(values)},
            )
            grouped = await self.repo.get_settings(tenant.id, group)

        return grouped.get(group, {})

    # ============================================================
    # Impersonation
    # ============================================================

    async def issue_impersonation(
        self, admin_id: int, tenant_id: int, *, reason: str | None = None
    ) -> IssuedImpersonation:
        """Issue a one-time impersonation grant.

        Raises:
            ForbiddenError: If the super admin is missing or inactive
            TenantNotFoundError: If the tenant does not exist
            InactiveTenantError: If the tenant is not active
        """
        async with self._transaction("issue_impersonation", tenant_id=tenant_id):
            admin = await self.repo.get_admin(admin_id)
            if admin is None or not admin.is_active:
                raise ForbiddenError(
                    "Super admin is not active",
                    error_code="admin_inactive",
                    details={"admin_id": admin_id},
                )
            tenant = await self._get_tenant(tenant_id)
            if not tenant.is_active:
                raise InactiveTenantError(tenant_id=tenant.id, status=str(tenant.status))

            expires_at = utcnow() + timedelta(minutes=settings.impersonation_ttl_minutes)
            grant = await self.repo.add_grant(
                ImpersonationGrant(
                    jti=secrets.token_urlsafe(IMPERSONATION_JTI_LENGTH),
                    admin_id=admin.id,
                    tenant_id=tenant.id,
                    reason=reason,
                    expires_at=expires_at,
                )
            )
            await self.repo.log_activity(
                tenant.id,
                "impersonation.started",
                description=reason,
                admin_id=admin.id,
                metadata={"grant_id": grant.id},
                impersonated=True,
            )

        logger.warning(
            "impersonation_started",
            tenant_id=tenant.id,
            impersonator_id=admin.id,
            grant_id=grant.id,
        )
        return IssuedImpersonation(
            grant_id=grant.id,
            token=create_impersonation_token(grant.jti, admin.id, tenant.id, expires_at),
            tenant_id=tenant.id,
            admin_id=admin.id,
            expires_at=expires_at,
        )

    async def redeem_impersonation(self, token: str) -> TenantContext:
        """Consume an impersonation grant.

        Returns:
            The impersonated tenant context

        Raises:
            ImpersonationError: If the token or grant is invalid, expired or used,
                or the super admin is no longer active
            InactiveTenantError: If the tenant is no longer active
        """
        claims = decode_impersonation_token(token)
        if claims is None:
            raise ImpersonationError()

        async with self._transaction("redeem_impersonation", tenant_id=claims.tenant_id):
            # Consumed first; a failed check below rolls the consumption back
            grant_id = await self.repo.consume_grant(
                claims.jti, claims.admin_id, claims.tenant_id
            )
            if grant_id is None:
                raise ImpersonationError()

            admin = await self.repo.get_admin(claims.admin_id)
            if admin is None or not admin.is_active:
                raise ImpersonationError("Super admin is not active")

            tenant = await self.repo.get_by_id(claims.tenant_id)
            if tenant is None:
                raise ImpersonationError()
            if not tenant.is_active:
                raise InactiveTenantError(tenant_id=tenant.id, status=str(tenant.status))

            await self.repo.log_activity(
                tenant.id,
                "impersonation.redeemed",
                admin_id=admin.id,
                metadata={"grant_id": grant_id},
                impersonated=True,
            )

        logger.warning("impersonation_redeemed", tenant_id=tenant.id, impersonator_id=admin.id)
        return TenantContext.for_tenant(
            tenant, source="impersonation", impersonator_id=admin.id
        )

    async def issue_session_token(self, context: TenantContext) -> str:
        """Sign a session binding for a tenant context.

        Raises:
            TenantNotFoundError: If the tenant does not exist
        """
        if context.tenant_id is None:
            raise TenantNotFoundError()
        tenant = await self._get_tenant(context.tenant_id)
        return create_session_token(
            tenant.id, tenant.session_version, impersonator_id=context.impersonator_id
        )

    async def list_tenants(self, status: TenantStatus | None = None) -> list[Tenant]:
        """List tenants, optionally filtered by status."""
        return await self.repo.list_all(status)
