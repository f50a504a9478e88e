"""Maintenance tasks for expired data.

Background jobs that remove expired rows from the shared tenant
directory tables.
"""

from typing import Any

import structlog
from sqlalchemy import delete

from tenantguard.core.database.base import utcnow
from tenantguard.modules.tenants.models import ImpersonationGrant


log = structlog.get_logger()


async def purge_expired_impersonation_grants(ctx: dict[str, Any]) -> dict[str, int]:
    """Delete impersonation grants whose lifetime has ended.

    Scheduled hourly. Grants are directory rows, so this job runs
    without a tenant.

    Args:
        ctx: Worker context containing the database session factory

    Returns:
        Dict with the number of deleted grants
    """
    session_factory = ctx["db_session_factory"]

    async with session_factory() as session:
        result = await session.execute(
            delete(ImpersonationGrant).where(ImpersonationGrant.expires_at < utcnow())
        )
        deleted = result.rowcount
        await session.commit()

    log.info("impersonation_grants_purged", grants_deleted=deleted)
    return {"grants_deleted": deleted}
