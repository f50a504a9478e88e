"""Runtime audit of executed SQL for missing tenant predicates.

``ScopeAuditMonitor`` listens to ``before_cursor_execute`` and checks every
statement that touches a tenant-owned table for an equality predicate on
that table's ``tenant_id`` bound to the active tenant. Matching is done on
the SQL text, so it is a best-effort diagnostic: it catches raw SQL and
Core statements that slipped past the ORM enforcement, but it is not what
keeps tenants apart. That guarantee comes from the session events and the
scoped repositories.

Findings go to sinks (a structlog channel by default). The monitor never
alters the statement and, unless ``fatal`` is set, never alters control
flow. Statements carrying the ``/* unscoped */`` comment are exempt.

Usage:
    monitor = ScopeAuditMonitor(sinks=[LogFindingSink()])
    monitor.install(engine)
"""

import re
import traceback
from collections import deque
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any, Protocol

import structlog
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import event

from tenantguard.config import settings
from tenantguard.core.constants import (
    AUDIT_MEMORY_SINK_SIZE,
    AUDIT_STATEMENT_MAX_LENGTH,
    UNSCOPED_STATEMENT_MARKER,
)
from tenantguard.core.database.base import tenant_owned_models, utcnow
from tenantguard.core.errors import TenantScopeViolationError
from tenantguard.core.tenancy.context import get_current_context


logger = structlog.get_logger()

SECURITY_CHANNEL = "tenant_security"

# Positional, named and numbered paramstyles, or an inlined integer
_BIND = r"(?:\?|%s|%\(\w+\)s|\$\d+|:\w+|\d+)"
_SQL_KEYWORDS = frozenset(
    {
        "where", "on", "join", "inner", "left", "right", "full", "outer", "cross",
        "set", "values", "order", "group", "limit", "offset", "having", "union",
        "returning", "using", "natural", "select", "for", "default", "window",
    }
)
_TABLE_REF = re.compile(
    r"\b(FROM|JOIN|UPDATE|INTO)\s+"
    r'(?:"?\w+"?\.)?"?(?P<table>\w+)"?'
    rf'(?:\s+(?:AS\s+)?(?!(?:{"|".join(sorted(_SQL_KEYWORDS))})\b)"?(?P<alias>\w+)"?)?',
    re.IGNORECASE,
)
_INSERT_COLUMNS = re.compile(r"\bINSERT\s+INTO\s+[\w.\"]+\s*\((?P<columns>[^)]*)\)", re.IGNORECASE)


class AuditFinding(BaseModel):
    """A statement that touched a tenant-owned table without the active tenant predicate.

    Attributes:
        occurred_at: When the statement was executed
        table: The tenant-owned table lacking the predicate
        expected_tenant_id: The tenant that was active
        observed_predicate: The tenant predicate found in the statement, if any
        statement: The statement text, truncated
        trace: Application frames that issued the statement, innermost last
    """

    model_config = ConfigDict(frozen=True)

    occurred_at: datetime = Field(default_factory=utcnow)
    table: str
    expected_tenant_id: int
    observed_predicate: str | None = None
    statement: str
    trace: list[str] = Field(default_factory=list)


# ============================================================
# Sinks
# ============================================================


class FindingSink(Protocol):
    """Destination for audit findings."""

    def emit(self, finding: AuditFinding) -> None: ...


class LogFindingSink:
    """Writes findings as warnings on the tenant security log channel."""

    def __init__(self) -> None:
        self.logger = structlog.get_logger().bind(channel=SECURITY_CHANNEL)

    def emit(self, finding: AuditFinding) -> None:
        self.logger.warning(
            "tenant_scope_violation",
            table=finding.table,
            expected_tenant_id=finding.expected_tenant_id,
            observed_predicate=finding.observed_predicate,
            statement=finding.statement,
            trace=finding.trace,
        )


class MemoryFindingSink:
    """Keeps the most recent findings in memory."""

    def __init__(self, maxlen: int = AUDIT_MEMORY_SINK_SIZE) -> None:
        self.findings: deque[AuditFinding] = deque(maxlen=maxlen)

    def emit(self, finding: AuditFinding) -> None:
        self.findings.append(finding)

    def clear(self) -> None:
        self.findings.clear()

    def __len__(self) -> int:
        return len(self.findings)


# ============================================================
# Statement inspection
# ============================================================


def _flatten_parameters(parameters: Any) -> list[Any]:
    if parameters is None:
        return []
    if isinstance(parameters, dict):
        return list(parameters.values())
    if isinstance(parameters, list | tuple):
        values: list[Any] = []
        for item in parameters:
            if isinstance(item, dict | list | tuple):
                values.extend(_flatten_parameters(item))
            else:
                values.append(item)
        return values
    return [parameters]


def _binds_tenant(parameters: Any, tenant_id: int) -> bool:
    return any(
        not isinstance(value, bool) and value == tenant_id
        for value in _flatten_parameters(parameters)
    )


def _predicate_pattern(reference: str | None) -> re.Pattern[str]:
    column = r'(?<![\w."])"?tenant_id"?' if reference is None else (
        rf'(?<![\w"])"?{re.escape(reference)}"?\."?tenant_id"?'
    )
    return re.compile(
        rf"(?:{column}\s*=\s*(?P<left>{_BIND})|(?P<right>{_BIND})\s*=\s*{column})",
        re.IGNORECASE,
    )


_UNRESOLVED = object()


def _parameter_rows(parameters: Any) -> list[Any]:
    # executemany passes a list of parameter sets
    if isinstance(parameters, list) and parameters and all(
        isinstance(row, dict | list | tuple) for row in parameters
    ):
        return parameters
    return [parameters]


def _bound_value(bind: str, position: int, statement: str, row: Any) -> Any:
    if bind.startswith("$"):
        index = int(bind[1:]) - 1
    elif bind in ("?", "%s"):
        index = statement.count(bind, 0, position)
    else:
        name = bind[1:] if bind.startswith(":") else bind[2:-2]
        if isinstance(row, dict) and name in row:
            return row[name]
        return _UNRESOLVED
    if isinstance(row, list | tuple) and 0 <= index < len(row):
        return row[index]
    return _UNRESOLVED


def _predicate_binds_tenant(
    match: re.Match[str], statement: str, parameters: Any, tenant_id: int
) -> bool:
    group = "left" if match.group("left") is not None else "right"
    bind = match.group(group)
    if bind.isdigit():
        return int(bind) == tenant_id
    values = [
        _bound_value(bind, match.start(group), statement, row)
        for row in _parameter_rows(parameters)
    ]
    if any(value is _UNRESOLVED for value in values):
        return _binds_tenant(parameters, tenant_id)
    return all(not isinstance(value, bool) and value == tenant_id for value in values)


class ScopeAuditMonitor:
    """Flags executed statements that are not scoped to the active tenant.

    Attributes:
        tables: Names of the tenant-owned tables to watch
        sinks: Destinations for findings
        fatal: Raise TenantScopeViolationError instead of only reporting
        trace_depth: Number of application frames kept per finding
    """

    def __init__(
        self,
        tables: Iterable[str] | None = None,
        sinks: Sequence[FindingSink] | None = None,
        fatal: bool | None = None,
        trace_depth: int | None = None,
    ) -> None:
        if tables is None:
            tables = (model.__tablename__ for model in tenant_owned_models())
        self.tables = frozenset(table.lower() for table in tables)
        self.sinks = list(sinks) if sinks is not None else [LogFindingSink()]
        self.fatal = settings.audit_monitor_fatal if fatal is None else fatal
        self.trace_depth = settings.audit_trace_depth if trace_depth is None else trace_depth
        self._engine: Any = None

    # ------------------------------------------------------------
    # Engine wiring
    # ------------------------------------------------------------

    def install(self, engine: Any) -> None:
        """Start observing an engine (sync or async)."""
        target = getattr(engine, "sync_engine", engine)
        if not event.contains(target, "before_cursor_execute", self._before_cursor_execute):
            event.listen(target, "before_cursor_execute", self._before_cursor_execute)
        self._engine = target

    def uninstall(self) -> None:
        """Stop observing the installed engine."""
        if self._engine is not None and event.contains(
            self._engine, "before_cursor_execute", self._before_cursor_execute
        ):
            event.remove(self._engine, "before_cursor_execute", self._before_cursor_execute)
        self._engine = None

    def _before_cursor_execute(
        self,
        _conn: Any,
        _cursor: Any,
        statement: str,
        parameters: Any,
        _context: Any,
        _executemany: bool,
    ) -> None:
        self.check(statement, parameters)

    # ------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------

    def check(self, statement: str, parameters: Any = None) -> list[AuditFinding]:
        """Inspect a statement against the active context and report findings.

        Raises:
            TenantScopeViolationError: In fatal mode, when a finding was produced
        """
        context = get_current_context()
        if context is None or context.unscoped or context.tenant_id is None:
            return []

        findings = self.inspect(statement, parameters, context.tenant_id)
        for finding in findings:
            for sink in self.sinks:
                try:
                    sink.emit(finding)
                except Exception:
                    logger.exception(
                        "audit_sink_failed",
                        sink=type(sink).__name__,
                        table=finding.table,
                    )
        if findings and self.fatal:
            raise TenantScopeViolationError(
                details={"tables": sorted({finding.table for finding in findings})}
            )
        return findings

    def inspect(
        self, statement: str, parameters: Any, tenant_id: int
    ) -> list[AuditFinding]:
        """Return findings for a statement; pure, no side effects.

        Args:
            statement: SQL text as sent to the driver
            parameters: Driver parameters (tuple, dict or a list of either)
            tenant_id: The tenant that is expected to scope the statement

        Returns:
            One finding per tenant-owned table lacking the tenant predicate
        """
        if UNSCOPED_STATEMENT_MARKER in statement:
            return []
        verb = statement.lstrip().split(None, 1)[0].upper() if statement.strip() else ""
        if verb not in {"SELECT", "WITH", "UPDATE", "DELETE", "INSERT"}:
            return []

        references = self._table_references(statement)
        if not references:
            return []

        findings: list[AuditFinding] = []
        if verb == "INSERT":
            insert_table = next(
                (table for keyword, table, _ in references if keyword == "INTO"), None
            )
            if insert_table is not None and not self._insert_is_scoped(
                statement, parameters, tenant_id
            ):
                findings.append(self._finding(statement, insert_table, tenant_id, None))
            references = [ref for ref in references if ref[0] != "INTO"]

        single_table = len(references) == 1
        for _, table, reference in references:
            match = _predicate_pattern(reference).search(statement)
            if match is None and single_table:
                match = _predicate_pattern(None).search(statement)
            if match is not None and _predicate_binds_tenant(
                match, statement, parameters, tenant_id
            ):
                continue
            observed = match.group(0) if match is not None else None
            findings.append(self._finding(statement, table, tenant_id, observed))
        return findings

    def _table_references(self, statement: str) -> list[tuple[str, str, str]]:
        references = []
        for match in _TABLE_REF.finditer(statement):
            table = match.group("table").lower()
            if table not in self.tables:
                continue
            alias = match.group("alias")
            if alias is None or alias.lower() in _SQL_KEYWORDS:
                alias = table
            references.append((match.group(1).upper(), table, alias))
        return references

    def _insert_is_scoped(self, statement: str, parameters: Any, tenant_id: int) -> bool:
        match = _INSERT_COLUMNS.search(statement)
        if match is None:
            return False
        columns = [column.strip().strip('"').lower() for column in match.group("columns").split(",")]
        return "tenant_id" in columns and _binds_tenant(parameters, tenant_id)

    def _finding(
        self, statement: str, table: str, tenant_id: int, observed: str | None
    ) -> AuditFinding:
        return AuditFinding(
            table=table,
            expected_tenant_id=tenant_id,
            observed_predicate=observed,
            statement=statement[:AUDIT_STATEMENT_MAX_LENGTH],
            trace=self._trace(),
        )

    def _trace(self) -> list[str]:
        if self.trace_depth <= 0:
            return []
        frames = [
            f"{frame.filename}:{frame.lineno} in {frame.name}"
            for frame in traceback.extract_stack()[:-1]
            if "site-packages" not in frame.filename
            and "sqlalchemy" not in frame.filename
            and not frame.filename.endswith("monitor.py")
        ]
        return frames[-self.trace_depth :]


def build_monitor(engine: Any | None = None) -> ScopeAuditMonitor | None:
    """Create (and optionally install) the monitor when it is enabled."""
    if not settings.audit_monitor_enabled:
        return None
    monitor = ScopeAuditMonitor()
    if engine is not None:
        monitor.install(engine)
    return monitor
