"""Lead endpoints.

Every route runs inside the tenant bound by the tenant context middleware;
the repository scopes each statement to that tenant.
"""

from uuid import UUID

from fastapi import APIRouter, Query, status

from tenantguard.api.dependencies import DBSession, RequiredContext
from tenantguard.core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from tenantguard.modules.crm.models import Lead
from tenantguard.modules.crm.repos import LeadRepository
from tenantguard.modules.crm.schemas import LeadCreate, LeadPage, LeadRead


router = APIRouter(prefix="/leads", tags=["leads"])


@router.get("", response_model=LeadPage, summary="List the tenant's leads")
async def list_leads(
    db: DBSession,
    _context: RequiredContext,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
) -> LeadPage:
    """List leads of the current tenant, newest first."""
    result = await LeadRepository(db).paginate(
        page=page,
        page_size=page_size,
        order_by=Lead.created_at.desc(),
    )
    return LeadPage(
        items=[LeadRead.model_validate(lead) for lead in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        pages=result.pages,
    )


@router.post(
    "",
    response_model=LeadRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a lead",
)
async def create_lead(db: DBSession, _context: RequiredContext, data: LeadCreate) -> LeadRead:
    """Create a lead owned by the current tenant."""
    lead = await LeadRepository(db).create(data.model_dump())
    return LeadRead.model_validate(lead)


@router.get("/{lead_id}", response_model=LeadRead, summary="Get a lead")
async def get_lead(db: DBSession, _context: RequiredContext, lead_id: UUID) -> LeadRead:
    """Get one lead; leads of other tenants are reported as not found."""
    return LeadRead.model_validate(await LeadRepository(db).get(lead_id))
