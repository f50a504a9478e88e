"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.exceptions import RedisError

import tenantguard.models  # noqa: F401  (register every mapper)
from tenantguard.api import api_router
from tenantguard.config import settings
from tenantguard.core.auth.middleware import RequestIdMiddleware, TenantContextMiddleware
from tenantguard.core.cache.redis import close_redis_pool
from tenantguard.core.database import async_engine, async_session_factory
from tenantguard.core.errors import register_exception_handlers
from tenantguard.core.jobs.registry import close_arq_pool, init_arq_pool
from tenantguard.core.logging import RequestLoggingMiddleware, configure_logging
from tenantguard.core.tenancy.monitor import ScopeAuditMonitor, build_monitor
from tenantguard.core.tenancy.resolver import ContextResolver
from tenantguard.modules.tenants.directory import TenantDirectory


logger = structlog.get_logger()


def _lifespan(monitor: ScopeAuditMonitor | None):  # noqa: ANN202
    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler.

        Handles startup and shutdown events.
        """
        logger.info(
            "application_startup",
            app_name=settings.app_name,
            environment=settings.environment,
        )

        # Initialize ARQ pool for background jobs
        try:
            await init_arq_pool()
            logger.info("arq_pool_initialized")
        except (RedisError, OSError) as e:
            logger.warning("arq_pool_init_failed", error=str(e))

        yield

        logger.info("application_shutdown")

        if monitor is not None:
            monitor.uninstall()

        await close_arq_pool()
        logger.info("arq_pool_closed")

        await close_redis_pool()
        logger.info("redis_pool_closed")

    return lifespan


def create_app(
    directory: TenantDirectory | None = None,
    resolver: ContextResolver | None = None,
    monitor: ScopeAuditMonitor | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        directory: Tenant directory; defaults to one over the configured database
        resolver: Tenant resolver; defaults to the standard strategy chain
        monitor: Scope audit monitor; defaults to one installed on the
            configured engine when enabled

    Returns:
        Configured FastAPI application instance.
    """
    configure_logging()

    directory = directory or TenantDirectory.from_settings(async_session_factory)
    resolver = resolver or ContextResolver(directory)
    if monitor is None:
        monitor = build_monitor(async_engine)

    app = FastAPI(
        title=settings.app_name,
        description="Multi-tenant data isolation for a shared business application",
        version="0.1.0",
        debug=settings.debug,
        lifespan=_lifespan(monitor),
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        openapi_url="/openapi.json" if not settings.is_production else None,
    )
    app.state.tenant_directory = directory
    app.state.tenant_resolver = resolver
    app.state.audit_monitor = monitor

    cors_origins = settings.cors_origins
    if settings.is_development and not cors_origins:
        cors_origins = ["http://localhost:3000", "http://localhost:5173"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID", settings.tenant_header],
        expose_headers=["X-Request-ID", "X-Impersonating"],
    )

    # Middleware added last runs first: request ID, then logging, then tenant
    app.add_middleware(TenantContextMiddleware, resolver=resolver)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    # Register exception handlers for RFC 7807 error responses
    register_exception_handlers(app)

    app.include_router(api_router)

    return app
