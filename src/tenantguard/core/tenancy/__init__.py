"""Tenant context, resolution, job propagation and scope auditing.

Only the context primitives are re-exported here; the resolver, carrier
and monitor are imported from their modules because they depend on the
tenant directory and the database layer.
"""

from tenantguard.core.tenancy.context import (
    TenantContext,
    acting_as,
    activate,
    current_tenant_id,
    deactivate,
    get_current_context,
    is_unscoped,
    require_tenant_id,
    run_as,
    run_unscoped,
    tenant_context,
    unscoped,
)


__all__ = [
    "TenantContext",
    "acting_as",
    "activate",
    "current_tenant_id",
    "deactivate",
    "get_current_context",
    "is_unscoped",
    "require_tenant_id",
    "run_as",
    "run_unscoped",
    "tenant_context",
    "unscoped",
]
