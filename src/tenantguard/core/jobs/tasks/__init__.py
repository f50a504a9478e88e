"""Background job tasks.

This package contains all background job implementations.
Each task module should define async functions that can be
registered in the worker.
"""

from tenantguard.core.jobs.tasks.export import export_tenant_data
from tenantguard.core.jobs.tasks.maintenance import purge_expired_impersonation_grants


__all__ = [
    "export_tenant_data",
    "purge_expired_impersonation_grants",
]
