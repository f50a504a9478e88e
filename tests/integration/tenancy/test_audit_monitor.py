"""Integration tests for the scope audit monitor on a live engine."""

import pytest
from sqlalchemy import text

from tenantguard.core.tenancy import acting_as
from tenantguard.core.tenancy.monitor import MemoryFindingSink, ScopeAuditMonitor
from tenantguard.modules.crm.repos import LeadRepository


pytestmark = pytest.mark.integration


@pytest.fixture
def installed_monitor(engine):
    """Monitor observing the test engine."""
    sink = MemoryFindingSink()
    monitor = ScopeAuditMonitor(sinks=[sink], fatal=False)
    monitor.install(engine)
    yield monitor, sink
    monitor.uninstall()


class TestLiveMonitoring:
    """Tests for statements executed through the engine."""

    async def test_repository_statements_are_clean(self, db, acme, installed_monitor):
        """Scoped ORM statements produce no findings."""
        _, sink = installed_monitor

        with acting_as(acme):
            repo = LeadRepository(db)
            lead = await repo.create({"title": "Acme lead"})
            await db.commit()
            await repo.get(lead.id)
            await repo.paginate(page=1, page_size=5)

        assert list(sink.findings) == []

    async def test_raw_sql_is_reported(self, engine, acme, installed_monitor):
        """Raw SQL missing the tenant predicate is reported, not blocked."""
        _, sink = installed_monitor

        with acting_as(acme):
            async with engine.connect() as conn:
                result = await conn.execute(text("SELECT id FROM leads"))
                rows = result.all()

        assert rows == []
        assert [finding.table for finding in sink.findings] == ["leads"]
        assert sink.findings[0].expected_tenant_id == acme.id

    async def test_uninstall_stops_reporting(self, engine, acme, installed_monitor):
        """An uninstalled monitor no longer observes the engine."""
        monitor, sink = installed_monitor
        monitor.uninstall()

        with acting_as(acme):
            async with engine.connect() as conn:
                await conn.execute(text("SELECT id FROM leads"))

        assert len(sink) == 0
