"""TenantGuard administrative CLI.

Manages the tenant lifecycle from the command line:

    tenantguard create "Acme Corp" --email ops@acme.example.com
    tenantguard suspend 3 --reason "unpaid invoice"
    tenantguard delete 3 --cascade
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import Any, TypeVar

import typer
from rich.console import Console
from rich.table import Table
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import tenantguard.models  # noqa: F401  (register every mapper)
from tenantguard import __version__
from tenantguard.core.database import async_session_factory
from tenantguard.core.database.base import utcnow
from tenantguard.core.errors import AppException
from tenantguard.core.logging import configure_logging
from tenantguard.modules.tenants.directory import TenantDirectory
from tenantguard.modules.tenants.models import Tenant, TenantStatus
from tenantguard.modules.tenants.schemas import TenantAdminCreate, TenantCreate
from tenantguard.modules.tenants.services import TenantLifecycleManager


T = TypeVar("T")

console = Console()

app = typer.Typer(
    name="tenantguard",
    help="Manage tenants of a TenantGuard deployment.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _session_factory() -> async_sessionmaker[AsyncSession]:
    return async_session_factory


def _run(operation: Callable[[TenantLifecycleManager], Awaitable[T]]) -> T:
    """Run ``operation`` against a fresh lifecycle manager.

    Application errors are reported and turned into exit code 1.
    """
    factory = _session_factory()

    async def runner() -> T:
        async with factory() as session:
            manager = TenantLifecycleManager(session, TenantDirectory.from_settings(factory))
            return await operation(manager)

    try:
        return asyncio.run(runner())
    except AppException as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1) from e


def _status_style(status: Any) -> str:
    colors = {
        TenantStatus.ACTIVE: "green",
        TenantStatus.SUSPENDED: "yellow",
        TenantStatus.INACTIVE: "red",
    }
    color = colors.get(status, "white")
    return f"[{color}]{status}[/{color}]"


def _trial_label(tenant: Tenant) -> str:
    if tenant.is_in_trial:
        return "[green]in trial[/green]"
    if tenant.is_trial_expired:
        return "[red]expired[/red]"
    return ""


@app.command()
def create(
    name: str = typer.Argument(..., help="Display name of the tenant"),
    slug: str | None = typer.Option(None, "--slug", "-s", help="Explicit slug"),
    email: str | None = typer.Option(None, "--email", "-e", help="Contact email"),
    admin_email: str | None = typer.Option(
        None, "--admin-email", help="Create a tenant administrator with this email"
    ),
    admin_name: str = typer.Option("Administrator", "--admin-name"),
    trial_days: int | None = typer.Option(
        None, "--trial-days", min=1, help="Start a trial ending this many days from now"
    ),
) -> None:
    """Create a tenant with its primary domain and default settings."""
    admin = (
        TenantAdminCreate(email=admin_email, full_name=admin_name) if admin_email else None
    )
    trial_ends_at = utcnow() + timedelta(days=trial_days) if trial_days else None
    data = TenantCreate(
        name=name, slug=slug, email=email, trial_ends_at=trial_ends_at, admin=admin
    )
    tenant = _run(lambda manager: manager.create_tenant(data))
    console.print(
        f"[green]Created[/green] tenant [bold cyan]{tenant.slug}[/bold cyan] (id {tenant.id})"
    )


@app.command()
def suspend(
    tenant_id: int = typer.Argument(..., help="Tenant id"),
    reason: str | None = typer.Option(None, "--reason", "-r"),
) -> None:
    """Suspend an active tenant."""
    tenant = _run(lambda manager: manager.suspend_tenant(tenant_id, reason=reason))
    console.print(f"Tenant {tenant.id} is now {_status_style(tenant.status)}")


@app.command()
def activate(
    tenant_id: int = typer.Argument(..., help="Tenant id"),
    reason: str | None = typer.Option(None, "--reason", "-r"),
) -> None:
    """Reactivate a suspended or inactive tenant."""
    tenant = _run(lambda manager: manager.activate_tenant(tenant_id, reason=reason))
    console.print(f"Tenant {tenant.id} is now {_status_style(tenant.status)}")


@app.command()
def deactivate(
    tenant_id: int = typer.Argument(..., help="Tenant id"),
    reason: str | None = typer.Option(None, "--reason", "-r"),
) -> None:
    """Deactivate a tenant."""
    tenant = _run(lambda manager: manager.deactivate_tenant(tenant_id, reason=reason))
    console.print(f"Tenant {tenant.id} is now {_status_style(tenant.status)}")


@app.command()
def delete(
    tenant_id: int = typer.Argument(..., help="Tenant id"),
    cascade: bool = typer.Option(
        False, "--cascade", help="Also delete every record the tenant owns"
    ),
) -> None:
    """Delete a tenant.

    Without --cascade the tenant must own no records.
    """
    counts = _run(lambda manager: manager.delete_tenant(tenant_id, cascade=cascade))
    removed = sum(counts.values())
    console.print(f"[green]Deleted[/green] tenant {tenant_id} ({removed} owned records)")


@app.command()
def impersonate(
    admin_id: int = typer.Argument(..., help="Super admin id"),
    tenant_id: int = typer.Argument(..., help="Tenant id"),
    reason: str | None = typer.Option(None, "--reason", "-r"),
) -> None:
    """Issue a one-time impersonation token."""
    issued = _run(
        lambda manager: manager.issue_impersonation(admin_id, tenant_id, reason=reason)
    )
    console.print(
        f"[yellow]Impersonation grant {issued.grant_id}[/yellow] "
        f"expires {issued.expires_at:%Y-%m-%d %H:%M} UTC"
    )
    console.print(issued.token)


@app.command(name="list")
def list_tenants(
    status: TenantStatus | None = typer.Option(
        None, "--status", help="Only show tenants with this status"
    ),
) -> None:
    """List tenants."""
    tenants = _run(lambda manager: manager.list_tenants(status))

    if not tenants:
        console.print("[yellow]No tenants found.[/yellow]")
        return

    table = Table(title="Tenants", show_header=True)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Slug", no_wrap=True)
    table.add_column("Name")
    table.add_column("Status", no_wrap=True)
    table.add_column("Trial", no_wrap=True)

    for tenant in tenants:
        table.add_row(
            str(tenant.id),
            tenant.slug,
            tenant.name,
            _status_style(tenant.status),
            _trial_label(tenant),
        )

    console.print()
    console.print(table)
    console.print()


@app.callback(invoke_without_command=True)
def version_callback(
    version: bool = typer.Option(
        False, "--version", "-v", help="Show version and exit."
    ),
) -> None:
    """TenantGuard CLI - manage tenants."""
    configure_logging()
    if version:
        console.print(f"[bold cyan]tenantguard[/bold cyan] version {__version__}")
        raise typer.Exit()


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
