"""Tenant data export.

Writes every tenant-owned table of the active tenant to one JSON file
under the tenant's storage root.
"""

import json
from typing import Any

import structlog
from sqlalchemy import inspect as sa_inspect

from tenantguard.core.database.base import tenant_owned_models, utcnow
from tenantguard.core.database.repository import ScopedRepository
from tenantguard.core.jobs.tenant import tenant_aware
from tenantguard.core.tenancy.runtime import get_runtime


log = structlog.get_logger()


def _row_to_dict(record: Any) -> dict[str, Any]:
    return {
        attr.key: getattr(record, attr.key)
        for attr in sa_inspect(type(record)).column_attrs
    }


@tenant_aware
async def export_tenant_data(ctx: dict[str, Any]) -> dict[str, Any]:
    """Export the active tenant's records to its storage root.

    Args:
        ctx: Worker context containing the database session factory

    Returns:
        Dict with the export path and the row count per table
    """
    runtime = get_runtime()
    session_factory = ctx["db_session_factory"]

    tables: dict[str, list[dict[str, Any]]] = {}
    async with session_factory() as session:
        for model in tenant_owned_models():
            records = await ScopedRepository(session, model).list_all()
            tables[model.__tablename__] = [_row_to_dict(record) for record in records]

    exported_at = utcnow()
    export_dir = runtime.storage_root / "exports"
    export_dir.mkdir(parents=True, exist_ok=True)
    path = export_dir / f"export-{exported_at:%Y%m%dT%H%M%S%f}.json"
    path.write_text(
        json.dumps(
            {
                "tenant_id": runtime.tenant_id,
                "exported_at": exported_at.isoformat(),
                "tables": tables,
            },
            default=str,
            indent=2,
        )
    )

    counts = {table: len(rows) for table, rows in tables.items()}
    log.info("tenant_export_complete", path=str(path), rows=counts)
    return {"path": str(path), "rows": counts}
