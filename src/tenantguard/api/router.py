"""Root API router with health, tenant context and impersonation endpoints."""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from tenantguard.api.dependencies import CurrentContext, DBSession, Directory
from tenantguard.config import settings
from tenantguard.core.errors import NotFoundError
from tenantguard.modules.crm.routes import router as leads_router
from tenantguard.modules.tenants.schemas import ImpersonationRedeem, TenantContextRead
from tenantguard.modules.tenants.services import TenantLifecycleManager


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: str


class ReadinessResponse(BaseModel):
    """Readiness check response schema."""

    status: str
    checks: dict[str, str]


# Create root API router
api_router = APIRouter()

# Health check endpoints (no /api/v1 prefix)
health_router = APIRouter(tags=["health"])


@health_router.get(
    "/health/live",
    response_model=HealthResponse,
    summary="Liveness probe",
    description="Kubernetes liveness probe. Returns 200 if the process is running.",
)
async def liveness() -> HealthResponse:
    """Liveness probe endpoint."""
    return HealthResponse(status="alive")


@health_router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    summary="Readiness probe",
    description="Kubernetes readiness probe. Checks database connectivity.",
)
async def readiness(db: DBSession) -> JSONResponse:
    """Readiness probe endpoint."""
    checks: dict[str, str] = {}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except SQLAlchemyError as e:
        checks["database"] = str(e)

    all_ok = all(v == "ok" for v in checks.values())

    return JSONResponse(
        status_code=status.HTTP_200_OK
        if all_ok
        else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if all_ok else "degraded",
            "checks": checks,
        },
    )


# Create versioned API router
v1_router = APIRouter(prefix="/api/v1")


@v1_router.get(
    "/context",
    response_model=TenantContextRead,
    tags=["tenancy"],
    summary="Current tenant",
    description="Returns the tenant resolved for this request.",
)
async def current_context(context: CurrentContext) -> TenantContextRead:
    """Describe the tenant bound to the request."""
    if context is None or context.tenant_id is None:
        raise NotFoundError(
            "No tenant was resolved for this request",
            error_code="no_tenant_context",
        )
    return TenantContextRead(
        tenant_id=context.tenant_id,
        tenant_uuid=context.tenant_uuid,
        slug=context.slug,
        source=context.source,
        impersonated=context.is_impersonated,
    )


@v1_router.post(
    "/impersonation/redeem",
    response_model=TenantContextRead,
    tags=["tenancy"],
    summary="Redeem an impersonation grant",
    description="Consumes a one-time grant and binds the impersonated tenant to a session cookie.",
)
async def redeem_impersonation(
    data: ImpersonationRedeem, db: DBSession, directory: Directory
) -> JSONResponse:
    """Exchange an impersonation token for an impersonated session."""
    manager = TenantLifecycleManager(db, directory)
    context = await manager.redeem_impersonation(data.token)
    session_token = await manager.issue_session_token(context)

    body = TenantContextRead(
        tenant_id=context.tenant_id,
        tenant_uuid=context.tenant_uuid,
        slug=context.slug,
        source=context.source,
        impersonated=True,
    )
    response = JSONResponse(content=body.model_dump(mode="json"))
    response.set_cookie(
        settings.session_cookie_name,
        session_token,
        max_age=settings.session_ttl_hours * 3600,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    return response


v1_router.include_router(leads_router)

# Include routers in main api_router
api_router.include_router(health_router)
api_router.include_router(v1_router)
