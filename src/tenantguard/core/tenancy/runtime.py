"""Per-tenant runtime resources.

Background work that writes files or sends mail must do so on behalf of
exactly one tenant. When the carrier restores a tenant it also installs a
``TenantRuntime`` describing where that tenant's files live and which mail
identity it sends from, and removes it again on release.
"""

from contextvars import ContextVar, Token
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from tenantguard.config import settings
from tenantguard.core.errors import NoActiveContextError


@dataclass(frozen=True, slots=True)
class MailChannel:
    """Outgoing mail identity of a tenant."""

    from_address: str
    from_name: str
    host: str | None = None
    port: int | None = None


@dataclass(frozen=True, slots=True)
class TenantRuntime:
    """Resources bound to the active tenant.

    Attributes:
        tenant_id: Tenant the resources belong to
        storage_root: Directory for the tenant's files
        mail: Mail channel configured for the tenant
    """

    tenant_id: int
    storage_root: Path
    mail: MailChannel


_runtime: ContextVar[TenantRuntime | None] = ContextVar("tenant_runtime", default=None)


def get_runtime() -> TenantRuntime:
    """Return the runtime of the active tenant.

    Raises:
        NoActiveContextError: If no tenant runtime is installed
    """
    runtime = _runtime.get()
    if runtime is None:
        raise NoActiveContextError("No tenant runtime is active")
    return runtime


def current_runtime() -> TenantRuntime | None:
    """Return the installed runtime, if any."""
    return _runtime.get()


def tenant_storage_root(tenant_id: int, base: Path | None = None) -> Path:
    """Return the storage directory of a tenant."""
    return (base or settings.storage_root) / "tenants" / str(tenant_id)


def build_runtime(
    tenant_id: int,
    email_settings: dict[str, Any] | None = None,
    storage_base: Path | None = None,
) -> TenantRuntime:
    """Build a tenant runtime from its ``email`` settings group.

    Values missing from the tenant's settings fall back to the
    application-wide mail identity.

    Args:
        tenant_id: The tenant key
        email_settings: Typed settings of the tenant's ``email`` group
        storage_base: Override of the configured storage root

    Returns:
        The runtime for the tenant
    """
    values = {
        key: getattr(setting, "value", setting)
        for key, setting in (email_settings or {}).items()
    }
    port = values.get("port")
    mail = MailChannel(
        from_address=values.get("from_address") or settings.mail_from_address,
        from_name=values.get("from_name") or settings.mail_from_name,
        host=values.get("host") or None,
        port=int(port) if port else None,
    )
    return TenantRuntime(
        tenant_id=tenant_id,
        storage_root=tenant_storage_root(tenant_id, storage_base),
        mail=mail,
    )


def install_runtime(runtime: TenantRuntime | None) -> Token[TenantRuntime | None]:
    """Install a runtime and return the token needed to remove it."""
    return _runtime.set(runtime)


def reset_runtime(token: Token[TenantRuntime | None]) -> None:
    """Restore the runtime that was installed before ``install_runtime``."""
    _runtime.reset(token)
