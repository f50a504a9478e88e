"""Tenant-aware job decorator."""

import functools
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog

from tenantguard.core.errors import CarrierRestoreError
from tenantguard.core.tenancy.carrier import AsyncContextCarrier


T = TypeVar("T")

log = structlog.get_logger()


def tenant_aware(
    func: Callable[..., Awaitable[T]],
) -> Callable[..., Awaitable[T]]:
    """Run an arq job as the tenant captured when it was enqueued.

    The ``tenant_token`` keyword is consumed by the decorator. The tenant is
    restored through ``ctx["carrier"]`` before the job body runs and released
    afterwards, whether the body succeeds or raises. Restore failures are
    raised to arq, which applies its retry policy; the body never runs
    without a tenant.

    Example:
        @tenant_aware
        async def rebuild_search_index(ctx: dict[str, Any]) -> None:
            ...
    """

    @functools.wraps(func)
    async def wrapper(
        ctx: dict[str, Any],
        *args: Any,
        tenant_token: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> T:
        if tenant_token is None:
            raise CarrierRestoreError(
                "Job was enqueued without a tenant token",
                details={"job": func.__name__},
            )
        carrier: AsyncContextCarrier = ctx["carrier"]
        guard = await carrier.restore(tenant_token)
        try:
            log.info("tenant_job_started", job=func.__name__)
            return await func(ctx, *args, **kwargs)
        finally:
            guard.release()

    return wrapper
