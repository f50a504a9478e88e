"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Import all models to ensure they're registered with Base.metadata
import tenantguard.models  # noqa: F401
from tenantguard.core.database import Base, build_session_factory, get_db
from tenantguard.core.tenancy.monitor import MemoryFindingSink, ScopeAuditMonitor
from tenantguard.main import create_app
from tenantguard.modules.admins.models import SuperAdmin
from tenantguard.modules.tenants.directory import TenantDirectory
from tenantguard.modules.tenants.models import Tenant
from tenantguard.modules.tenants.schemas import TenantCreate
from tenantguard.modules.tenants.services import TenantLifecycleManager


def sqlite_url(path: Path) -> str:
    """Build an aiosqlite URL for a database file."""
    return f"sqlite+aiosqlite:///{path}"


@pytest.fixture
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Create a file-backed SQLite engine with the full schema."""
    engine = create_async_engine(sqlite_url(tmp_path / "test.db"), poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return build_session_factory(engine)


@pytest.fixture
async def db(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def directory(session_factory: async_sessionmaker[AsyncSession]) -> TenantDirectory:
    """Tenant directory over the test database, without cache."""
    return TenantDirectory(session_factory)


@pytest.fixture
def manager(db: AsyncSession, directory: TenantDirectory) -> TenantLifecycleManager:
    """Lifecycle manager working in the test session."""
    return TenantLifecycleManager(db, directory)


# ============================================================
# Tenant Fixtures
# ============================================================


@pytest.fixture
async def acme(manager: TenantLifecycleManager) -> Tenant:
    """Create the Acme tenant.

    Returns:
        A committed, active Tenant
    """
    return await manager.create_tenant(
        TenantCreate(name="Acme Corp", slug="acme", email="ops@acme.example.com")
    )


@pytest.fixture
async def beta(manager: TenantLifecycleManager) -> Tenant:
    """Create the Beta tenant.

    Returns:
        A committed, active Tenant
    """
    return await manager.create_tenant(TenantCreate(name="Beta Industries", slug="beta"))


@pytest.fixture
async def super_admin(db: AsyncSession) -> SuperAdmin:
    """Create an active super admin."""
    admin = SuperAdmin(email="support@example.com", full_name="Support")
    db.add(admin)
    await db.commit()
    return admin


# ============================================================
# Application Fixtures
# ============================================================


@pytest.fixture
def audit_sink() -> MemoryFindingSink:
    """In-memory sink for scope audit findings."""
    return MemoryFindingSink()


@pytest.fixture
async def app(
    session_factory: async_sessionmaker[AsyncSession],
    directory: TenantDirectory,
    engine: AsyncEngine,
    audit_sink: MemoryFindingSink,
) -> AsyncGenerator[FastAPI, None]:
    """Create test application instance over the test database."""
    monitor = ScopeAuditMonitor(sinks=[audit_sink], fatal=False)
    monitor.install(engine)
    application = create_app(directory=directory, monitor=monitor)

    # Override database dependency
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    application.dependency_overrides[get_db] = override_get_db

    yield application

    application.dependency_overrides.clear()
    monitor.uninstall()


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Provide async HTTP client for API testing."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
