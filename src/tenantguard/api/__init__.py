"""HTTP API: health probes, tenant context and impersonation endpoints."""

from tenantguard.api.router import api_router


__all__ = ["api_router"]
