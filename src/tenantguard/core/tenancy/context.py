"""Execution-scoped tenant context.

The active tenant for the current unit of work (one request, one job
execution) is held in a ``ContextVar``. asyncio copies the context when a
task is created, so concurrent requests and jobs never observe each
other's tenant, and the administrative bypass flag lives in the same
variable so it cannot leak between tasks either.

Every substitution of the context (``tenant_context``, ``unscoped``,
``acting_as`` and their ``run_*`` counterparts) restores the previous
value with ``ContextVar.reset`` in a ``finally`` block.

Usage:
    with tenant_context(TenantContext.for_tenant(tenant)):
        leads = await LeadRepository(session).list_all()

    everything = await run_unscoped(repo.list_all)
"""

import inspect
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, replace
from typing import Any, TypeVar
from uuid import UUID

from tenantguard.core.errors import InactiveTenantError, NoActiveContextError


T = TypeVar("T")

ACTIVE_STATUS = "active"


@dataclass(frozen=True, slots=True)
class TenantContext:
    """The tenant bound to the current unit of work.

    Attributes:
        tenant_id: Integer key of the active tenant, or None
        tenant_uuid: External identifier of the active tenant
        slug: Slug of the active tenant
        unscoped: Administrative bypass; tenant predicates are suspended
        impersonator_id: Super admin operating this tenant for support
        source: Name of the strategy (or component) that produced the context
    """

    tenant_id: int | None
    tenant_uuid: UUID | None = None
    slug: str | None = None
    unscoped: bool = False
    impersonator_id: int | None = None
    source: str | None = None

    @classmethod
    def for_tenant(
        cls,
        tenant: Any,
        *,
        source: str | None = None,
        impersonator_id: int | None = None,
    ) -> "TenantContext":
        """Build a context from a tenant record or ORM object."""
        return cls(
            tenant_id=tenant.id,
            tenant_uuid=getattr(tenant, "uuid", None),
            slug=getattr(tenant, "slug", None),
            impersonator_id=impersonator_id,
            source=source,
        )

    @property
    def is_impersonated(self) -> bool:
        """Whether a super admin is acting inside this tenant."""
        return self.impersonator_id is not None


_current: ContextVar[TenantContext | None] = ContextVar("tenant_context", default=None)


def get_current_context() -> TenantContext | None:
    """Return the context of the current unit of work, if any."""
    return _current.get()


def current_tenant_id() -> int | None:
    """Return the active tenant id, or None when no tenant is bound."""
    context = _current.get()
    return context.tenant_id if context is not None else None


def is_unscoped() -> bool:
    """Return True while an administrative bypass block is running."""
    context = _current.get()
    return context is not None and context.unscoped


def require_tenant_id() -> int:
    """Return the active tenant id.

    Raises:
        NoActiveContextError: If no tenant is bound to the unit of work
    """
    tenant_id = current_tenant_id()
    if tenant_id is None:
        raise NoActiveContextError()
    return tenant_id


def activate(context: TenantContext | None) -> Token[TenantContext | None]:
    """Bind a context and return the token needed to restore the previous one."""
    return _current.set(context)


def deactivate(token: Token[TenantContext | None]) -> None:
    """Restore the context that was active before ``activate``."""
    _current.reset(token)


@contextmanager
def tenant_context(context: TenantContext | None) -> Iterator[TenantContext | None]:
    """Bind ``context`` for the duration of the block."""
    token = activate(context)
    try:
        yield context
    finally:
        deactivate(token)


@contextmanager
def unscoped() -> Iterator[TenantContext]:
    """Suspend tenant predicates for the duration of the block.

    The ambient tenant (if any) is kept so that records created inside
    the block are still stamped with it.
    """
    ambient = _current.get()
    if ambient is None:
        context = TenantContext(tenant_id=None, unscoped=True, source="unscoped")
    else:
        context = replace(ambient, unscoped=True)
    with tenant_context(context):
        yield context


def _context_for(tenant: Any) -> TenantContext:
    if isinstance(tenant, TenantContext):
        return replace(tenant, unscoped=False)
    if isinstance(tenant, int):
        return TenantContext(tenant_id=tenant, source="run_as")
    status = getattr(tenant, "status", ACTIVE_STATUS)
    if status != ACTIVE_STATUS:
        raise InactiveTenantError(tenant_id=tenant.id, status=str(status))
    return TenantContext.for_tenant(tenant, source="run_as")


@contextmanager
def acting_as(tenant: Any) -> Iterator[TenantContext]:
    """Run the block as ``tenant``, replacing any ambient context.

    Tenant records and ORM objects are checked for liveness. A bare id is
    the administrative path and is bound as given: the caller owns the
    status check, as lifecycle operations on suspended tenants need it.

    Args:
        tenant: A tenant id, a tenant record/ORM object, or a TenantContext

    Raises:
        InactiveTenantError: If a tenant object is given whose status is not active
    """
    context = _context_for(tenant)
    with tenant_context(context):
        yield context


async def _call(callback: Callable[..., T | Awaitable[T]], *args: Any, **kwargs: Any) -> T:
    result = callback(*args, **kwargs)
    if inspect.isawaitable(result):
        return await result
    return result


async def run_unscoped(
    callback: Callable[..., T | Awaitable[T]], *args: Any, **kwargs: Any
) -> T:
    """Run ``callback`` with tenant predicates suspended.

    Args:
        callback: Sync or async callable
        *args: Positional arguments for the callback
        **kwargs: Keyword arguments for the callback

    Returns:
        The callback's result (awaited if it is awaitable)
    """
    with unscoped():
        return await _call(callback, *args, **kwargs)


async def run_as(
    tenant: Any, callback: Callable[..., T | Awaitable[T]], *args: Any, **kwargs: Any
) -> T:
    """Run ``callback`` as ``tenant`` and restore the ambient context afterwards.

    The ambient context is restored exactly, including when the callback raises.
    Liveness is checked as in ``acting_as``: tenant objects must be active,
    bare ids are trusted.

    Args:
        tenant: A tenant id, a tenant record/ORM object, or a TenantContext
        callback: Sync or async callable
        *args: Positional arguments for the callback
        **kwargs: Keyword arguments for the callback

    Returns:
        The callback's result (awaited if it is awaitable)
    """
    with acting_as(tenant):
        return await _call(callback, *args, **kwargs)
