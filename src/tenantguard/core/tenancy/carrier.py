"""Tenant context propagation into background jobs.

A job must run as the tenant that enqueued it and nothing else. The
enqueuing side calls ``capture()`` and ships the resulting token in the
job payload; the worker side calls ``AsyncContextCarrier.restore()`` which
re-reads the tenant (bypassing any cache), refuses tenants that vanished or
were suspended in the meantime, installs the tenant context, runtime and
logging keys, and hands back a ``TenantGuard``. Releasing the guard always
restores the worker to exactly the state it was in before, so a later job
on the same worker never observes the previous job's tenant.

Usage:
    token = capture()
    ...
    async with await carrier.restore(token):
        await export_leads()
"""

from contextvars import Token
from datetime import datetime
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import SQLAlchemyError

from tenantguard.core.database.base import utcnow
from tenantguard.core.errors import (
    CarrierRestoreError,
    InactiveTenantError,
    NoActiveContextError,
)
from tenantguard.core.tenancy.context import (
    TenantContext,
    activate,
    deactivate,
    get_current_context,
)
from tenantguard.core.tenancy.runtime import (
    TenantRuntime,
    build_runtime,
    install_runtime,
    reset_runtime,
)
from tenantguard.modules.tenants.directory import TenantDirectory


logger = structlog.get_logger()

EMAIL_SETTINGS_GROUP = "email"


class TenantToken(BaseModel):
    """Serializable capture of the enqueuing tenant."""

    model_config = ConfigDict(frozen=True)

    tenant_id: int
    impersonator_id: int | None = None
    captured_at: datetime = Field(default_factory=utcnow)


def capture() -> TenantToken:
    """Capture the active tenant for a job payload.

    Raises:
        NoActiveContextError: If no tenant is active
    """
    context = get_current_context()
    if context is None or context.tenant_id is None:
        raise NoActiveContextError("Cannot enqueue tenant work without an active tenant")
    return TenantToken(tenant_id=context.tenant_id, impersonator_id=context.impersonator_id)


class TenantGuard:
    """Scope of a restored tenant; release it to restore the previous state."""

    def __init__(
        self,
        context: TenantContext,
        runtime: TenantRuntime,
        context_token: Token[TenantContext | None],
        runtime_token: Token[TenantRuntime | None],
    ) -> None:
        self.context = context
        self.runtime = runtime
        self._context_token = context_token
        self._runtime_token = runtime_token
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """Restore the context, runtime and log keys. Idempotent."""
        if self._released:
            return
        self._released = True
        reset_runtime(self._runtime_token)
        deactivate(self._context_token)
        structlog.contextvars.unbind_contextvars("tenant_id", "impersonator_id")
        logger.debug("tenant_context_released", tenant_id=self.context.tenant_id)

    def __enter__(self) -> "TenantGuard":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()

    async def __aenter__(self) -> "TenantGuard":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.release()


class AsyncContextCarrier:
    """Restores captured tenant contexts inside workers.

    Attributes:
        directory: Tenant lookups used to re-check the captured tenant
    """

    def __init__(self, directory: TenantDirectory) -> None:
        self.directory = directory

    async def restore(self, token: TenantToken | dict[str, Any]) -> TenantGuard:
        """Re-establish the captured tenant.

        Args:
            token: A TenantToken or its JSON form from a job payload

        Returns:
            Guard to release when the job is done

        Raises:
            CarrierRestoreError: If the token is malformed, the tenant no longer
                exists, or the directory cannot be read
            InactiveTenantError: If the tenant is no longer active
        """
        if not isinstance(token, TenantToken):
            try:
                token = TenantToken.model_validate(token)
            except ValueError as e:
                raise CarrierRestoreError(
                    "Malformed tenant token", details={"error": str(e)}
                ) from e

        try:
            tenant = await self.directory.get_by_id(token.tenant_id, fresh=True)
            email_settings = (
                await self.directory.get_settings(tenant.id, EMAIL_SETTINGS_GROUP)
                if tenant is not None
                else {}
            )
        except SQLAlchemyError as e:
            logger.error(
                "tenant_context_restore_failed",
                tenant_id=token.tenant_id,
                error=str(e),
            )
            raise CarrierRestoreError(details={"tenant_id": token.tenant_id}) from e

        if tenant is None:
            raise CarrierRestoreError(
                "Captured tenant no longer exists",
                details={"tenant_id": token.tenant_id},
            )
        if not tenant.is_active:
            raise InactiveTenantError(tenant_id=tenant.id, status=str(tenant.status))

        context = TenantContext.for_tenant(
            tenant, source="carrier", impersonator_id=token.impersonator_id
        )
        runtime = build_runtime(tenant.id, email_settings)

        context_token = activate(context)
        runtime_token = install_runtime(runtime)
        structlog.contextvars.bind_contextvars(tenant_id=tenant.id)
        if token.impersonator_id is not None:
            structlog.contextvars.bind_contextvars(impersonator_id=token.impersonator_id)

        logger.debug("tenant_context_restored", tenant_id=tenant.id)
        return TenantGuard(context, runtime, context_token, runtime_token)
