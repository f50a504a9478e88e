"""Unit tests for the scope audit monitor."""

import pytest

from tenantguard.core.errors import TenantScopeViolationError
from tenantguard.core.tenancy.context import acting_as, unscoped
from tenantguard.core.tenancy.monitor import MemoryFindingSink, ScopeAuditMonitor


@pytest.fixture
def sink() -> MemoryFindingSink:
    return MemoryFindingSink()


@pytest.fixture
def monitor(sink: MemoryFindingSink) -> ScopeAuditMonitor:
    return ScopeAuditMonitor(tables=["leads", "tags"], sinks=[sink], fatal=False, trace_depth=3)


class TestInspect:
    """Tests for statement inspection."""

    def test_scoped_select_has_no_findings(self, monitor):
        """A select bound to the active tenant is clean."""
        statement = "SELECT leads.id FROM leads WHERE leads.tenant_id = ?"

        assert monitor.inspect(statement, (1,), 1) == []

    def test_missing_predicate(self, monitor):
        """A select without a tenant predicate is flagged."""
        findings = monitor.inspect("SELECT * FROM leads", (), 1)

        assert len(findings) == 1
        assert findings[0].table == "leads"
        assert findings[0].expected_tenant_id == 1
        assert findings[0].observed_predicate is None

    def test_predicate_for_other_tenant(self, monitor):
        """A predicate bound to a different tenant is flagged with what was seen."""
        findings = monitor.inspect("SELECT * FROM leads WHERE leads.tenant_id = 2", (), 1)

        assert len(findings) == 1
        assert findings[0].observed_predicate == "leads.tenant_id = 2"

    def test_bound_parameter_for_other_tenant(self, monitor):
        """A bound tenant predicate must carry the active tenant's key."""
        findings = monitor.inspect(
            "SELECT * FROM leads WHERE leads.tenant_id = :tenant", {"tenant": 2}, 1
        )

        assert [finding.table for finding in findings] == ["leads"]

    def test_join_checks_each_table(self, monitor):
        """Every joined tenant-owned table needs its own predicate."""
        statement = (
            "SELECT leads.id FROM leads JOIN tags ON tags.id = leads.id "
            "WHERE leads.tenant_id = ?"
        )

        findings = monitor.inspect(statement, (1,), 1)

        assert [finding.table for finding in findings] == ["tags"]

    def test_alias_predicate(self, monitor):
        """Predicates written against a table alias are recognized."""
        statement = "SELECT l.id FROM leads AS l WHERE l.tenant_id = $1"

        assert monitor.inspect(statement, [1], 1) == []

    def test_only_the_predicate_bind_counts(self, monitor):
        """Another parameter equal to the active tenant does not scope the statement."""
        statement = "SELECT * FROM leads WHERE leads.tenant_id = ? LIMIT ?"

        findings = monitor.inspect(statement, (2, 1), 1)

        assert [finding.table for finding in findings] == ["leads"]

    def test_positional_bind_after_other_parameters(self, monitor):
        """The tenant predicate's own positional parameter is the one compared."""
        statement = "UPDATE leads SET title=? WHERE leads.id = ? AND leads.tenant_id = ?"

        assert monitor.inspect(statement, ("x", 1, 3), 3) == []
        assert len(monitor.inspect(statement, ("x", 3, 1), 3)) == 1

    def test_executemany_checks_every_row(self, monitor):
        """Every parameter set of a batch must bind the active tenant."""
        statement = "DELETE FROM leads WHERE leads.tenant_id = :tenant AND leads.id = :id"

        clean = [{"tenant": 1, "id": 10}, {"tenant": 1, "id": 11}]
        mixed = [{"tenant": 1, "id": 10}, {"tenant": 2, "id": 11}]

        assert monitor.inspect(statement, clean, 1) == []
        assert len(monitor.inspect(statement, mixed, 1)) == 1

    def test_unwatched_tables_are_ignored(self, monitor):
        """Statements over tables that are not tenant-owned are clean."""
        assert monitor.inspect("SELECT * FROM tenants", (), 1) == []

    def test_insert_without_tenant_column(self, monitor):
        """An insert that does not set tenant_id is flagged."""
        findings = monitor.inspect("INSERT INTO leads (id, title) VALUES (?, ?)", (1, "x"), 1)

        assert [finding.table for finding in findings] == ["leads"]

    def test_insert_with_tenant_column(self, monitor):
        """An insert stamping the active tenant is clean."""
        statement = "INSERT INTO leads (tenant_id, title) VALUES (?, ?)"

        assert monitor.inspect(statement, (1, "x"), 1) == []

    def test_unscoped_marker_is_exempt(self, monitor):
        """Statements marked unscoped are not inspected."""
        assert monitor.inspect("SELECT * FROM leads /* unscoped */", (), 1) == []

    def test_non_dml_is_ignored(self, monitor):
        """Schema statements are not inspected."""
        assert monitor.inspect("CREATE INDEX ix ON leads (title)", (), 1) == []


class TestCheck:
    """Tests for checking statements against the active context."""

    def test_reports_to_sinks(self, monitor, sink):
        """Findings under an active tenant go to every sink."""
        with acting_as(1):
            findings = monitor.check("SELECT * FROM leads")

        assert len(findings) == 1
        assert list(sink.findings) == findings
        assert len(findings[0].trace) <= 3

    def test_no_context_is_not_checked(self, monitor, sink):
        """Without a tenant there is nothing to compare against."""
        assert monitor.check("SELECT * FROM leads") == []
        assert len(sink) == 0

    def test_unscoped_is_not_checked(self, monitor, sink):
        """An administrative bypass is never reported."""
        with acting_as(1), unscoped():
            assert monitor.check("SELECT * FROM leads") == []
        assert len(sink) == 0

    def test_fatal_mode_raises(self, sink):
        """Fatal mode raises after reporting."""
        monitor = ScopeAuditMonitor(tables=["leads"], sinks=[sink], fatal=True)

        with acting_as(1):
            with pytest.raises(TenantScopeViolationError) as exc_info:
                monitor.check("SELECT * FROM leads")

        assert exc_info.value.details["tables"] == ["leads"]
        assert len(sink) == 1

    def test_memory_sink_is_bounded(self):
        """The memory sink keeps only the most recent findings."""
        sink = MemoryFindingSink(maxlen=2)
        monitor = ScopeAuditMonitor(tables=["leads"], sinks=[sink], fatal=False)

        with acting_as(1):
            for _ in range(3):
                monitor.check("SELECT * FROM leads")

        assert len(sink) == 2

    def test_failing_sink_does_not_interrupt(self, sink):
        """A sink that raises is logged; the statement and other sinks proceed."""

        class BrokenSink:
            def emit(self, finding):
                raise ConnectionError("collector unreachable")

        monitor = ScopeAuditMonitor(tables=["leads"], sinks=[BrokenSink(), sink], fatal=False)

        with acting_as(1):
            findings = monitor.check("SELECT * FROM leads")

        assert len(findings) == 1
        assert len(sink) == 1
