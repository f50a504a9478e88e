"""Tenant context and request tracing middleware.

This module provides middleware for:
- Resolving the request's tenant once and binding it for the request
- Request tracing with unique IDs
"""

import uuid
from typing import TYPE_CHECKING

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from tenantguard.core.errors import problem_response
from tenantguard.core.tenancy.context import activate, deactivate
from tenantguard.core.tenancy.resolver import ContextResolver, resolve_request


if TYPE_CHECKING:
    from starlette.types import ASGIApp


logger = structlog.get_logger()

IMPERSONATION_HEADER = "X-Impersonating"


class TenantContextMiddleware(BaseHTTPMiddleware):
    """Middleware that binds the resolved tenant to the request.

    The resolver runs once per request. A rejection (inactive tenant,
    unknown tenant, unavailable directory) is answered with a Problem
    Details response before any route runs. A resolved tenant is bound to
    the execution context for the rest of the request and exposed as
    ``request.state.tenant_context``.

    Attributes:
        resolver: Tenant resolver
        exclude_paths: Paths that never carry a tenant
    """

    def __init__(
        self,
        app: "ASGIApp",
        resolver: ContextResolver,
        exclude_paths: list[str] | None = None,
    ) -> None:
        super().__init__(app)
        self.resolver = resolver
        self.exclude_paths = exclude_paths or [
            "/health",
            "/docs",
            "/redoc",
            "/openapi.json",
            "/api/v1/impersonation/redeem",
        ]

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """Resolve the tenant and run the request inside its context.

        Args:
            request: The incoming request
            call_next: The next middleware/handler

        Returns:
            The handler's response, or a rejection response
        """
        request.state.tenant_context = None
        if any(request.url.path.startswith(path) for path in self.exclude_paths):
            return await call_next(request)

        resolution = await resolve_request(request, self.resolver)
        error = resolution.error()
        if error is not None:
            return problem_response(request, error)

        context = resolution.to_context()
        if context is None:
            return await call_next(request)

        request.state.tenant_context = context
        structlog.contextvars.bind_contextvars(tenant_id=context.tenant_id)
        if context.is_impersonated:
            structlog.contextvars.bind_contextvars(impersonator_id=context.impersonator_id)
            logger.warning(
                "impersonation_request",
                method=request.method,
                path=request.url.path,
            )

        token = activate(context)
        try:
            response = await call_next(request)
        finally:
            deactivate(token)

        if context.is_impersonated:
            response.headers[IMPERSONATION_HEADER] = "true"
        return response


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Middleware that adds a unique request ID to each request.

    The request ID is added to:
    - request.state.request_id
    - Response header X-Request-ID
    - Structlog context
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """Process the request and add request ID.

        Args:
            request: The incoming request
            call_next: The next middleware/handler

        Returns:
            The response with X-Request-ID header
        """
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        request.state.request_id = request_id
        request.state.trace_id = request_id  # Alias for error handler

        structlog.contextvars.bind_contextvars(request_id=request_id)

        response = await call_next(request)

        response.headers["X-Request-ID"] = request_id

        structlog.contextvars.unbind_contextvars(
            "request_id", "tenant_id", "impersonator_id"
        )

        return response
