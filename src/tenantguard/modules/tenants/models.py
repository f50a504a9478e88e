"""Tenant directory models.

These tables describe tenants themselves and are not tenant-owned in the
``TenantMixin`` sense: they are read by context resolution before any
tenant is active and are maintained by the lifecycle manager.
"""

from datetime import datetime
from enum import StrEnum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from tenantguard.core.constants import (
    MAX_ACTION_LENGTH,
    MAX_DESCRIPTION_LENGTH,
    MAX_DOMAIN_LENGTH,
    MAX_EMAIL_LENGTH,
    MAX_NAME_LENGTH,
    MAX_PHONE_LENGTH,
    MAX_SETTING_GROUP_LENGTH,
    MAX_SETTING_KEY_LENGTH,
    MAX_SLUG_LENGTH,
)
from tenantguard.core.database.base import Base, TimestampMixin, as_utc, utcnow


class TenantStatus(StrEnum):
    """Lifecycle status of a tenant."""

    ACTIVE = "active"
    SUSPENDED = "suspended"
    INACTIVE = "inactive"


class SettingKind(StrEnum):
    """Declared value kind of a tenant setting."""

    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    STRUCTURED = "structured"


def _enum_values(enum_cls: type[StrEnum]) -> list[str]:
    return [member.value for member in enum_cls]


class Tenant(Base, TimestampMixin):
    """A customer organization sharing the application.

    Attributes:
        id: Integer surrogate key referenced by every tenant-owned row
        uuid: Externally shareable identifier
        name: Display name
        slug: Globally unique URL-safe identifier, immutable once domains exist
        email: Contact email
        phone: Contact phone
        status: Lifecycle status (active, suspended, inactive)
        trial_ends_at: Optional end of the trial period
        session_version: Bumped to invalidate every live session of the tenant
    """

    __tablename__ = "tenants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    uuid: Mapped[UUID] = mapped_column(unique=True, default=uuid4, nullable=False)
    name: Mapped[str] = mapped_column(String(MAX_NAME_LENGTH), nullable=False)
    slug: Mapped[str] = mapped_column(
        String(MAX_SLUG_LENGTH),
        unique=True,
        index=True,
        nullable=False,
    )
    email: Mapped[str | None] = mapped_column(String(MAX_EMAIL_LENGTH), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(MAX_PHONE_LENGTH), nullable=True)
    status: Mapped[TenantStatus] = mapped_column(
        Enum(
            TenantStatus,
            name="tenant_status",
            native_enum=False,
            values_callable=_enum_values,
            length=20,
        ),
        default=TenantStatus.ACTIVE,
        index=True,
        nullable=False,
    )
    trial_ends_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    session_version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    @property
    def is_active(self) -> bool:
        """Whether the tenant may be resolved."""
        return self.status == TenantStatus.ACTIVE

    @property
    def is_in_trial(self) -> bool:
        """Whether a trial is configured and has not ended yet."""
        return self.trial_ends_at is not None and as_utc(self.trial_ends_at) > utcnow()

    @property
    def is_trial_expired(self) -> bool:
        """Whether a trial was configured and has ended."""
        return self.trial_ends_at is not None and as_utc(self.trial_ends_at) <= utcnow()


class TenantDomain(Base, TimestampMixin):
    """A host name that identifies a tenant (subdomain or custom domain)."""

    __tablename__ = "tenant_domains"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    domain: Mapped[str] = mapped_column(
        String(MAX_DOMAIN_LENGTH),
        unique=True,
        nullable=False,
    )
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    verified_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )


class TenantSetting(Base, TimestampMixin):
    """One typed setting of a tenant, grouped by concern.

    The stored ``value`` is native JSON matching ``kind``; see
    ``tenantguard.modules.tenants.settings.SettingValue``.
    """

    __tablename__ = "tenant_settings"
    __table_args__ = (
        UniqueConstraint(
            "tenant_id",
            "group",
            "key",
            name="uq_tenant_settings_tenant_group_key",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    group: Mapped[str] = mapped_column(String(MAX_SETTING_GROUP_LENGTH), nullable=False)
    key: Mapped[str] = mapped_column(String(MAX_SETTING_KEY_LENGTH), nullable=False)
    kind: Mapped[SettingKind] = mapped_column(
        Enum(
            SettingKind,
            name="setting_kind",
            native_enum=False,
            values_callable=_enum_values,
            length=20,
        ),
        nullable=False,
    )
    value: Mapped[Any] = mapped_column(JSON, nullable=True)


class TenantActivityLog(Base):
    """Append-only log of administrative activity on a tenant."""

    __tablename__ = "tenant_activity_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    user_id: Mapped[UUID | None] = mapped_column(nullable=True)
    admin_id: Mapped[int | None] = mapped_column(
        ForeignKey("super_admins.id", ondelete="SET NULL"),
        nullable=True,
    )
    action: Mapped[str] = mapped_column(String(MAX_ACTION_LENGTH), index=True, nullable=False)
    description: Mapped[str | None] = mapped_column(
        String(MAX_DESCRIPTION_LENGTH),
        nullable=True,
    )
    metadata_: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        JSON,
        default=dict,
        nullable=False,
    )
    impersonated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        index=True,
        nullable=False,
    )


class ImpersonationGrant(Base):
    """A one-time, time-boxed grant for a super admin to act inside a tenant."""

    __tablename__ = "impersonation_grants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    jti: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    admin_id: Mapped[int] = mapped_column(
        ForeignKey("super_admins.id", ondelete="CASCADE"),
        nullable=False,
    )
    tenant_id: Mapped[int] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    issued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    consumed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
