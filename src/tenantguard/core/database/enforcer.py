"""Tenant scope enforcement at the ORM session layer.

Two session events are installed process-wide on SQLAlchemy's ``Session``
class, so every session (request, job, CLI, test) carries them:

- ``do_orm_execute`` adds a ``with_loader_criteria`` option on
  ``TenantMixin`` to every ORM SELECT/UPDATE/DELETE. The criteria reach
  joined entities, aliases, counts and relationship loads.
- ``before_flush`` stamps new tenant-owned rows from the active context
  and rejects any change of ``tenant_id`` on rows that already exist.

Administrative blocks (``unscoped()``/``acting_as()``) change what these
events see for the duration of the block only; see
``tenantguard.core.tenancy.context``.
"""

from typing import Any

import structlog
from sqlalchemy import event, inspect
from sqlalchemy.orm import ORMExecuteState, Session, with_loader_criteria

from tenantguard.core.database.base import TenantMixin, is_tenant_owned
from tenantguard.core.errors import ImmutableFieldError, NoActiveContextError
from tenantguard.core.tenancy.context import TenantContext, get_current_context


logger = structlog.get_logger()


# ============================================================
# Reads, bulk updates and bulk deletes
# ============================================================


def _touches_tenant_owned(execute_state: ORMExecuteState) -> bool:
    return any(is_tenant_owned(mapper.class_) for mapper in execute_state.all_mappers)


def scope_orm_execute(execute_state: ORMExecuteState) -> None:
    """Inject the active tenant predicate into an ORM statement.

    Raises:
        NoActiveContextError: If the statement targets a tenant-owned entity
            while no tenant is bound and no bypass is active
    """
    if not (
        execute_state.is_select or execute_state.is_update or execute_state.is_delete
    ):
        return
    # Loader criteria already propagate into lazy and column loads
    if execute_state.is_column_load or execute_state.is_relationship_load:
        return

    context = get_current_context()
    if context is not None and context.unscoped:
        return
    if context is None or context.tenant_id is None:
        if _touches_tenant_owned(execute_state):
            raise NoActiveContextError(
                "Tenant-owned data queried without an active tenant context",
                details={
                    "entities": [m.class_.__name__ for m in execute_state.all_mappers]
                },
            )
        return

    tenant_id = context.tenant_id
    execute_state.statement = execute_state.statement.options(
        with_loader_criteria(
            TenantMixin,
            lambda cls: cls.tenant_id == tenant_id,
            include_aliases=True,
        )
    )


# ============================================================
# Writes
# ============================================================


def _stamp_new_rows(session: Session, context: TenantContext | None) -> list[Any]:
    created = [obj for obj in session.new if is_tenant_owned(obj)]
    for obj in created:
        if obj.tenant_id is not None:
            # Explicit administrative target wins over the ambient context
            continue
        if context is None or context.tenant_id is None:
            raise NoActiveContextError(
                "Cannot create a tenant-owned record without an active tenant",
                details={"model": type(obj).__name__},
            )
        obj.tenant_id = context.tenant_id
    return created


def _reject_rebinding(session: Session) -> list[Any]:
    updated = [
        obj
        for obj in session.dirty
        if is_tenant_owned(obj) and session.is_modified(obj)
    ]
    for obj in updated:
        history = inspect(obj).attrs.tenant_id.history
        if history.has_changes():
            original = history.deleted[0] if history.deleted else None
            raise ImmutableFieldError(
                "tenant_id cannot be changed once a record is persisted",
                details={
                    "model": type(obj).__name__,
                    "original_tenant_id": original,
                },
            )
    return updated


def _record_impersonated_write(
    session: Session,
    context: TenantContext,
    created: list[Any],
    updated: list[Any],
    deleted: list[Any],
) -> None:
    # Imported here because the tenants module depends on this package
    from tenantguard.modules.tenants.models import TenantActivityLog

    tables = sorted({obj.__tablename__ for obj in (*created, *updated, *deleted)})
    logger.warning(
        "impersonated_write",
        tenant_id=context.tenant_id,
        impersonator_id=context.impersonator_id,
        tables=tables,
        created=len(created),
        updated=len(updated),
        deleted=len(deleted),
    )
    session.add(
        TenantActivityLog(
            tenant_id=context.tenant_id,
            admin_id=context.impersonator_id,
            action="impersonation.write",
            description=f"Support write to {', '.join(tables)}",
            metadata_={
                "tables": tables,
                "created": len(created),
                "updated": len(updated),
                "deleted": len(deleted),
            },
            impersonated=True,
        )
    )


def enforce_on_flush(session: Session, _flush_context: Any, _instances: Any) -> None:
    """Stamp new tenant-owned rows and refuse tenant reassignment.

    Raises:
        NoActiveContextError: If a new row has no tenant and none is active
        ImmutableFieldError: If a persisted row's tenant_id was changed
    """
    context = get_current_context()
    created = _stamp_new_rows(session, context)
    updated = _reject_rebinding(session)

    if context is not None and context.is_impersonated:
        deleted = [obj for obj in session.deleted if is_tenant_owned(obj)]
        if created or updated or deleted:
            _record_impersonated_write(session, context, created, updated, deleted)


def install_scope_enforcer() -> None:
    """Attach the enforcement events to every ORM session. Idempotent."""
    if not event.contains(Session, "do_orm_execute", scope_orm_execute):
        event.listen(Session, "do_orm_execute", scope_orm_execute)
    if not event.contains(Session, "before_flush", enforce_on_flush):
        event.listen(Session, "before_flush", enforce_on_flush)

