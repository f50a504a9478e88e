"""Background job processing with ARQ.

Provides Redis-based async background job processing with:
- Tenant context captured at enqueue time and restored in the worker
- Job scheduling and retries
- Cron job support
"""

from tenantguard.core.jobs.registry import (
    enqueue,
    enqueue_for_tenant,
    get_arq_pool,
    init_arq_pool,
)
from tenantguard.core.jobs.tenant import tenant_aware


__all__ = [
    "enqueue",
    "enqueue_for_tenant",
    "get_arq_pool",
    "init_arq_pool",
    "tenant_aware",
]
