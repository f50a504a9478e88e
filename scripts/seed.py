#!/usr/bin/env python
"""
Generate demo/seed data for development.
"""

import argparse
import asyncio
import sys

from sqlalchemy import select


# Add src to path for imports
sys.path.insert(0, "src")

import tenantguard.models  # noqa: E402, F401
from tenantguard.core.database import async_session_factory  # noqa: E402
from tenantguard.core.tenancy import acting_as  # noqa: E402
from tenantguard.modules.admins.models import SuperAdmin  # noqa: E402
from tenantguard.modules.crm.repos import LeadRepository  # noqa: E402
from tenantguard.modules.tenants.directory import TenantDirectory  # noqa: E402
from tenantguard.modules.tenants.models import Tenant  # noqa: E402
from tenantguard.modules.tenants.schemas import TenantAdminCreate, TenantCreate  # noqa: E402
from tenantguard.modules.tenants.services import TenantLifecycleManager  # noqa: E402


async def _ensure_tenant(data: TenantCreate) -> Tenant:
    async with async_session_factory() as session:
        result = await session.execute(select(Tenant).where(Tenant.slug == data.slug))
        existing = result.scalar_one_or_none()
        if existing:
            print(f"Tenant already exists: {existing.name}")
            return existing

        manager = TenantLifecycleManager(
            session, TenantDirectory.from_settings(async_session_factory)
        )
        tenant = await manager.create_tenant(data)
        print(f"Created tenant: {tenant.name} ({tenant.slug}, id {tenant.id})")
        return tenant


async def seed_default() -> None:
    """Create default seed data."""
    await _ensure_tenant(TenantCreate(name="Default Organization", slug="default"))


async def seed_demo() -> None:
    """Create demo data with multiple tenants, leads and a super admin."""
    tenants_data = [
        {"name": "Acme Corporation", "slug": "acme", "email": "ops@acme.example.com"},
        {"name": "Beta Industries", "slug": "beta", "email": "ops@beta.example.com"},
    ]

    for data in tenants_data:
        tenant = await _ensure_tenant(
            TenantCreate(
                **data,
                admin=TenantAdminCreate(email=data["email"], full_name="Administrator"),
            )
        )
        async with async_session_factory() as session:
            with acting_as(tenant):
                repo = LeadRepository(session)
                if await repo.count() == 0:
                    for n in range(1, 4):
                        await repo.create({"title": f"{tenant.name} lead {n}"})
                    await session.commit()
                    print(f"Created 3 leads for {tenant.slug}")

    async with async_session_factory() as session:
        result = await session.execute(
            select(SuperAdmin).where(SuperAdmin.email == "support@example.com")
        )
        if result.scalar_one_or_none() is None:
            session.add(SuperAdmin(email="support@example.com", full_name="Support"))
            await session.commit()
            print("Created super admin: support@example.com")


async def main(scenario: str) -> None:
    """Run the seeding based on scenario."""
    if scenario == "default":
        await seed_default()
    elif scenario == "demo":
        await seed_demo()
    else:
        print(f"Unknown scenario: {scenario}")
        print("Available scenarios: default, demo")
        sys.exit(1)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed database with demo data")
    parser.add_argument(
        "--scenario",
        "-s",
        default="default",
        help="Seed scenario to run (default, demo)",
    )
    args = parser.parse_args()

    asyncio.run(main(args.scenario))
