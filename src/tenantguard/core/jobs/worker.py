"""ARQ worker configuration.

Defines the worker settings including registered jobs,
cron schedules, and startup/shutdown hooks.
"""

from typing import Any, ClassVar

import structlog
from arq import cron

import tenantguard.models  # noqa: F401  (register every mapper)
from tenantguard.config import settings
from tenantguard.core.cache import close_redis_pool
from tenantguard.core.database.session import build_engine, build_session_factory
from tenantguard.core.jobs.tasks.export import export_tenant_data
from tenantguard.core.jobs.tasks.maintenance import purge_expired_impersonation_grants
from tenantguard.core.jobs.utils import get_redis_settings
from tenantguard.core.logging import configure_logging
from tenantguard.core.tenancy.carrier import AsyncContextCarrier
from tenantguard.core.tenancy.monitor import build_monitor
from tenantguard.modules.tenants.directory import TenantDirectory


async def startup(ctx: dict[str, Any]) -> None:
    """Initialize resources for the worker.

    Called once when the worker starts. Sets up the database engine,
    the tenant directory and carrier used by tenant-aware jobs, and the
    scope audit monitor.

    Args:
        ctx: Worker context dict (shared across all jobs)
    """
    configure_logging()
    log = structlog.get_logger()
    log.info("worker_startup", environment=settings.environment)

    engine = build_engine(pool_size=5, max_overflow=10)
    session_factory = build_session_factory(engine)
    directory = TenantDirectory.from_settings(session_factory)

    ctx["db_engine"] = engine
    ctx["db_session_factory"] = session_factory
    ctx["tenant_directory"] = directory
    ctx["carrier"] = AsyncContextCarrier(directory)
    ctx["audit_monitor"] = build_monitor(engine)

    log.info("worker_startup_complete")


async def shutdown(ctx: dict[str, Any]) -> None:
    """Cleanup resources when the worker stops.

    Args:
        ctx: Worker context dict
    """
    log = structlog.get_logger()
    log.info("worker_shutdown")

    monitor = ctx.get("audit_monitor")
    if monitor is not None:
        monitor.uninstall()

    engine = ctx.get("db_engine")
    if engine:
        await engine.dispose()
        log.info("database_engine_disposed")

    await close_redis_pool()
    log.info("worker_shutdown_complete")


class WorkerSettings:
    """ARQ worker settings.

    Run the worker with:
        arq tenantguard.core.jobs.worker.WorkerSettings
    """

    functions: ClassVar[list[Any]] = [
        export_tenant_data,
        purge_expired_impersonation_grants,
    ]

    cron_jobs: ClassVar[list[Any]] = [
        cron(purge_expired_impersonation_grants, minute=0),
    ]

    on_startup = startup
    on_shutdown = shutdown

    redis_settings = get_redis_settings()

    max_jobs = 10
    job_timeout = 300
    keep_result = 3600
    retry_jobs = True
    max_tries = 3
