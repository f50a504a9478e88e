"""Job registry and enqueueing utilities.

Provides a centralized way to enqueue background jobs from
anywhere in the application. Jobs that operate on tenant data are
enqueued with ``enqueue_for_tenant``, which ships the active tenant
in the payload so the worker can restore it.
"""

from datetime import timedelta
from typing import Any

from arq import ArqRedis, create_pool

from tenantguard.core.jobs.utils import get_redis_settings
from tenantguard.core.tenancy.carrier import capture


TENANT_TOKEN_KWARG = "tenant_token"


class ArqPoolHolder:
    """Holder for the ARQ connection pool.

    Uses a class attribute to manage module-level state without
    global statements.
    """

    pool: ArqRedis | None = None


async def init_arq_pool() -> ArqRedis:
    """Initialize the ARQ connection pool.

    Should be called during application startup.

    Returns:
        ARQ Redis pool
    """
    if ArqPoolHolder.pool is None:
        ArqPoolHolder.pool = await create_pool(get_redis_settings())
    return ArqPoolHolder.pool


async def get_arq_pool() -> ArqRedis:
    """Get the ARQ connection pool.

    Raises:
        RuntimeError: If pool not initialized
    """
    if ArqPoolHolder.pool is None:
        raise RuntimeError(
            "ARQ pool not initialized. Call init_arq_pool() during startup."
        )
    return ArqPoolHolder.pool


async def close_arq_pool() -> None:
    """Close the ARQ connection pool.

    Should be called during application shutdown.
    """
    if ArqPoolHolder.pool is not None:
        await ArqPoolHolder.pool.close()
        ArqPoolHolder.pool = None


async def enqueue(
    job_name: str,
    *args: Any,
    _defer_by: timedelta | None = None,
    _defer_until: Any | None = None,
    _job_id: str | None = None,
    _queue_name: str | None = None,
    **kwargs: Any,
) -> Any:
    """Enqueue a background job.

    Args:
        job_name: Name of the job function to run
        *args: Positional arguments for the job
        _defer_by: Delay execution by this duration
        _defer_until: Execute at this specific time
        _job_id: Custom job ID (for deduplication)
        _queue_name: Custom queue name
        **kwargs: Keyword arguments for the job

    Returns:
        Job instance

    Example:
        await enqueue("purge_expired_impersonation_grants")
    """
    pool = await get_arq_pool()
    return await pool.enqueue_job(
        job_name,
        *args,
        _defer_by=_defer_by,
        _defer_until=_defer_until,
        _job_id=_job_id,
        _queue_name=_queue_name,
        **kwargs,
    )


async def enqueue_for_tenant(job_name: str, *args: Any, **kwargs: Any) -> Any:
    """Enqueue a job that must run as the active tenant.

    Args:
        job_name: Name of a ``tenant_aware`` job function
        *args: Positional arguments for the job
        **kwargs: Keyword arguments for the job (and ``_``-prefixed enqueue options)

    Returns:
        Job instance

    Raises:
        NoActiveContextError: If no tenant is active

    Example:
        await enqueue_for_tenant("export_tenant_data")
    """
    token = capture()
    kwargs[TENANT_TOKEN_KWARG] = token.model_dump(mode="json")
    return await enqueue(job_name, *args, **kwargs)
