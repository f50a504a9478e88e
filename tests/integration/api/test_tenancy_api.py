"""Integration tests for tenant resolution and isolation over HTTP."""

import pytest
from factories.tenant import LeadCreateFactory
from httpx import AsyncClient

from tenantguard.config import settings
from tenantguard.core.auth.backend import create_service_token


pytestmark = pytest.mark.integration


def tenant_header(slug: str) -> dict[str, str]:
    """Headers of a service-to-service call naming the tenant."""
    return {
        settings.tenant_header: slug,
        "Authorization": f"Bearer {create_service_token('billing')}",
    }


def session_cookie(set_cookie: str) -> dict[str, str]:
    """Turn a Set-Cookie header into the Cookie header a browser would send."""
    return {"Cookie": set_cookie.split(";", 1)[0]}


class TestContextResolution:
    """Tests for resolving the request tenant."""

    async def test_header_resolves_tenant(self, client: AsyncClient, acme):
        """The tenant header binds the request to that tenant."""
        response = await client.get("/api/v1/context", headers=tenant_header("acme"))

        assert response.status_code == 200
        data = response.json()
        assert data["tenant_id"] == acme.id
        assert data["slug"] == "acme"
        assert data["source"] == "header"
        assert data["impersonated"] is False

    async def test_verified_domain_resolves_tenant(self, client: AsyncClient, acme):
        """The tenant's provisioned domain identifies it."""
        response = await client.get(
            "/api/v1/context", headers={"Host": f"acme.{settings.app_domain}"}
        )

        assert response.status_code == 200
        assert response.json()["source"] == "domain"

    async def test_unknown_tenant_is_rejected(self, client: AsyncClient, acme):
        """A named tenant that does not exist is a 404, not a silent fallback."""
        response = await client.get("/api/v1/context", headers=tenant_header("nobody"))

        assert response.status_code == 404
        assert response.json()["type"].endswith("/tenant_not_found")

    async def test_suspended_tenant_is_rejected(self, client: AsyncClient, manager, acme):
        """Requests for a suspended tenant are refused with its status."""
        await manager.suspend_tenant(acme.id)

        response = await client.get("/api/v1/leads", headers=tenant_header("acme"))

        assert response.status_code == 403
        data = response.json()
        assert data["tenant_status"] == "suspended"
        assert data["trace_id"] == response.headers["x-request-id"]

    async def test_no_tenant(self, client: AsyncClient):
        """A request naming no tenant has no context."""
        response = await client.get("/api/v1/context")

        assert response.status_code == 404
        assert response.json()["type"].endswith("/no_tenant_context")

    async def test_health_is_not_resolved(self, client: AsyncClient):
        """Health probes never resolve a tenant."""
        response = await client.get("/health/live", headers=tenant_header("nobody"))

        assert response.status_code == 200
        assert response.json()["status"] == "alive"


class TestLeadIsolation:
    """Tests for tenant isolation of the lead endpoints."""

    async def test_leads_stay_inside_their_tenant(
        self, client: AsyncClient, acme, beta, audit_sink
    ):
        """Another tenant neither lists nor fetches a lead."""
        created = await client.post(
            "/api/v1/leads",
            headers=tenant_header("acme"),
            json={"title": "Website redesign", "contact_email": "pat@example.com"},
        )
        assert created.status_code == 201
        lead_id = created.json()["id"]

        own = await client.get(f"/api/v1/leads/{lead_id}", headers=tenant_header("acme"))
        foreign = await client.get(f"/api/v1/leads/{lead_id}", headers=tenant_header("beta"))
        beta_list = await client.get("/api/v1/leads", headers=tenant_header("beta"))

        assert own.status_code == 200
        assert own.json()["title"] == "Website redesign"
        assert foreign.status_code == 404
        assert beta_list.json()["total"] == 0
        assert list(audit_sink.findings) == []

    async def test_list_is_paginated(self, client: AsyncClient, acme):
        """Lead listing pages through the tenant's rows."""
        for payload in LeadCreateFactory.batch(3):
            created = await client.post(
                "/api/v1/leads",
                headers=tenant_header("acme"),
                json=payload.model_dump(mode="json"),
            )
            assert created.status_code == 201

        response = await client.get(
            "/api/v1/leads", headers=tenant_header("acme"), params={"page": 2, "page_size": 2}
        )

        data = response.json()
        assert data["total"] == 3
        assert data["pages"] == 2
        assert len(data["items"]) == 1

    async def test_anonymous_header_does_not_bind_tenant(self, client: AsyncClient, acme):
        """Without a service token the tenant header is ignored."""
        response = await client.post(
            "/api/v1/leads",
            headers={settings.tenant_header: "acme"},
            json={"title": "Forged"},
        )

        assert response.status_code == 400
        assert response.json()["type"].endswith("/tenant_required")

    async def test_lead_routes_require_a_tenant(self, client: AsyncClient):
        """Tenant-owned endpoints refuse requests without a tenant."""
        response = await client.post("/api/v1/leads", json={"title": "Orphan"})

        assert response.status_code == 400
        assert response.json()["type"].endswith("/tenant_required")


class TestImpersonation:
    """Tests for impersonated sessions."""

    async def test_redeemed_grant_binds_session(
        self, client: AsyncClient, manager, acme, super_admin
    ):
        """A redeemed grant yields a session cookie for the tenant."""
        issued = await manager.issue_impersonation(super_admin.id, acme.id, reason="ticket 7")

        redeemed = await client.post(
            "/api/v1/impersonation/redeem", json={"token": issued.token}
        )
        assert redeemed.status_code == 200
        assert redeemed.json()["impersonated"] is True
        cookie = session_cookie(redeemed.headers["set-cookie"])

        response = await client.get("/api/v1/context", headers=cookie)

        assert response.status_code == 200
        assert response.json()["tenant_id"] == acme.id
        assert response.json()["impersonated"] is True
        assert response.headers["x-impersonating"] == "true"

    async def test_grant_cannot_be_replayed(self, client: AsyncClient, manager, acme, super_admin):
        """A second redemption of the same grant fails."""
        issued = await manager.issue_impersonation(super_admin.id, acme.id)

        first = await client.post("/api/v1/impersonation/redeem", json={"token": issued.token})
        second = await client.post("/api/v1/impersonation/redeem", json={"token": issued.token})

        assert first.status_code == 200
        assert second.status_code == 401

    async def test_suspension_invalidates_session(
        self, client: AsyncClient, manager, acme, super_admin
    ):
        """A session issued before a suspension no longer binds the tenant."""
        issued = await manager.issue_impersonation(super_admin.id, acme.id)
        redeemed = await client.post(
            "/api/v1/impersonation/redeem", json={"token": issued.token}
        )
        cookie = session_cookie(redeemed.headers["set-cookie"])

        await manager.suspend_tenant(acme.id)
        await manager.activate_tenant(acme.id)
        response = await client.get("/api/v1/context", headers=cookie)

        assert response.status_code == 404
