"""Pydantic schemas for tenants."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from tenantguard.core.constants import (
    MAX_NAME_LENGTH,
    MAX_PASSWORD_LENGTH,
    MAX_SLUG_LENGTH,
    MIN_PASSWORD_LENGTH,
)
from tenantguard.modules.tenants.models import TenantStatus


class TenantRecord(BaseModel):
    """Immutable snapshot of a directory row.

    This is what resolution, caching and the job carrier pass around;
    it never holds a live ORM object or session.
    """

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: int
    uuid: UUID
    name: str
    slug: str
    status: TenantStatus
    session_version: int = 1
    trial_ends_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        """Whether the tenant may be resolved."""
        return self.status == TenantStatus.ACTIVE


class TenantAdminCreate(BaseModel):
    """Initial administrator provisioned together with a tenant."""

    email: EmailStr
    full_name: str = Field(min_length=1, max_length=MAX_NAME_LENGTH)
    password: str | None = Field(
        default=None,
        min_length=MIN_PASSWORD_LENGTH,
        max_length=MAX_PASSWORD_LENGTH,
    )


class TenantCreate(BaseModel):
    """Schema for creating a tenant."""

    name: str = Field(min_length=1, max_length=MAX_NAME_LENGTH)
    slug: str | None = Field(default=None, max_length=MAX_SLUG_LENGTH)
    email: EmailStr | None = None
    phone: str | None = None
    trial_ends_at: datetime | None = None
    admin: TenantAdminCreate | None = None
    settings: dict[str, dict[str, Any]] = Field(default_factory=dict)


class TenantRead(BaseModel):
    """Schema for reading tenant data."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    uuid: UUID
    name: str
    slug: str
    email: str | None
    status: TenantStatus
    trial_ends_at: datetime | None
    created_at: datetime


class TenantContextRead(BaseModel):
    """The tenant bound to the current request."""

    tenant_id: int
    tenant_uuid: UUID | None
    slug: str | None
    source: str | None
    impersonated: bool


class ImpersonationRedeem(BaseModel):
    """Request body for redeeming an impersonation grant."""

    token: str = Field(min_length=1)


class IssuedImpersonation(BaseModel):
    """A freshly issued impersonation grant and its signed token."""

    grant_id: int
    token: str
    tenant_id: int
    admin_id: int
    expires_at: datetime
