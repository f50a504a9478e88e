"""Database layer - session management, base models, mixins and tenant scoping.

Importing this package installs the scope enforcer on every ORM session.
"""

from tenantguard.core.database.base import (
    Base,
    TenantMixin,
    TimestampMixin,
    UUIDMixin,
    is_tenant_owned,
    tenant_owned_models,
)
from tenantguard.core.database.enforcer import install_scope_enforcer
from tenantguard.core.database.repository import (
    Join,
    Page,
    ScopedRepository,
    tenant_predicates,
)
from tenantguard.core.database.session import (
    async_engine,
    async_session_factory,
    build_engine,
    build_session_factory,
    get_db,
)


install_scope_enforcer()


__all__ = [
    "Base",
    "Join",
    "Page",
    "ScopedRepository",
    "TenantMixin",
    "TimestampMixin",
    "UUIDMixin",
    "async_engine",
    "async_session_factory",
    "build_engine",
    "build_session_factory",
    "get_db",
    "install_scope_enforcer",
    "is_tenant_owned",
    "tenant_owned_models",
    "tenant_predicates",
]
