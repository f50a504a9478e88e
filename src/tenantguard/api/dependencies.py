"""Shared API dependencies."""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.core.database import get_db
from tenantguard.core.errors import BadRequestError
from tenantguard.core.tenancy.context import TenantContext
from tenantguard.modules.tenants.directory import TenantDirectory


# Type alias for database session dependency
DBSession = Annotated[AsyncSession, Depends(get_db)]


def get_tenant_context(request: Request) -> TenantContext | None:
    """Get the tenant resolved for this request, if any."""
    return getattr(request.state, "tenant_context", None)


def require_tenant_context(request: Request) -> TenantContext:
    """Get the tenant resolved for this request.

    Raises:
        BadRequestError: If the request did not identify a tenant
    """
    context = get_tenant_context(request)
    if context is None:
        raise BadRequestError(
            "This endpoint requires a tenant",
            error_code="tenant_required",
        )
    return context


def get_tenant_directory(request: Request) -> TenantDirectory:
    """Get the tenant directory created by the application factory."""
    return request.app.state.tenant_directory


CurrentContext = Annotated[TenantContext | None, Depends(get_tenant_context)]
RequiredContext = Annotated[TenantContext, Depends(require_tenant_context)]
Directory = Annotated[TenantDirectory, Depends(get_tenant_directory)]
