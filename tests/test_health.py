"""Tests for health check endpoints."""

import pytest
from httpx import AsyncClient

from tenantguard.config import settings


@pytest.mark.asyncio
async def test_liveness_endpoint(client: AsyncClient):
    """Test that liveness endpoint returns 200."""
    response = await client.get("/health/live")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "alive"


@pytest.mark.asyncio
async def test_readiness_endpoint(client: AsyncClient):
    """Test that readiness endpoint returns 200 with healthy checks."""
    response = await client.get("/health/ready")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["checks"]["database"] == "ok"


@pytest.mark.asyncio
async def test_readiness_ignores_tenant_header(client: AsyncClient):
    """Probes answer even when the request names an unknown tenant."""
    response = await client.get("/health/ready", headers={settings.tenant_header: "nobody"})

    assert response.status_code == 200
