"""Unit tests for request tenant resolution."""

import asyncio
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from tenantguard.core.auth.schemas import SessionBinding
from tenantguard.core.database.base import utcnow
from tenantguard.core.errors import (
    InactiveTenantError,
    TenantNotFoundError,
    TenantResolutionError,
)
from tenantguard.core.tenancy.resolver import (
    REASON_INACTIVE,
    REASON_NOT_FOUND,
    REASON_UNAVAILABLE,
    ContextResolver,
    HeaderStrategy,
    QueryStrategy,
    RequestInfo,
    SessionStrategy,
    SubdomainStrategy,
    extract_subdomain,
    normalize_host,
)
from tenantguard.modules.tenants.models import TenantStatus
from tenantguard.modules.tenants.schemas import TenantRecord


def make_record(
    tenant_id: int,
    slug: str,
    status: TenantStatus = TenantStatus.ACTIVE,
    session_version: int = 1,
) -> TenantRecord:
    """Build a tenant record."""
    return TenantRecord(
        id=tenant_id,
        uuid=uuid4(),
        name=slug.title(),
        slug=slug,
        status=status,
        session_version=session_version,
    )


class StubDirectory:
    """In-memory tenant lookups."""

    def __init__(self, *records: TenantRecord, domains: dict[str, int] | None = None):
        self.by_id = {record.id: record for record in records}
        self.domains = domains or {}
        self.inactive_admins: set[int] = set()

    async def get_by_id(self, tenant_id, *, fresh=False):
        return self.by_id.get(tenant_id)

    async def get_by_slug(self, slug):
        return next((r for r in self.by_id.values() if r.slug == slug), None)

    async def get_by_identifier(self, identifier):
        if identifier.isdigit():
            return await self.get_by_id(int(identifier))
        return await self.get_by_slug(identifier)

    async def get_by_verified_domain(self, host):
        tenant_id = self.domains.get(host)
        return self.by_id.get(tenant_id) if tenant_id is not None else None

    async def is_admin_active(self, admin_id):
        return admin_id not in self.inactive_admins


def service_request(tenant: str, **kwargs) -> RequestInfo:
    """A request from an authenticated service naming a tenant by header."""
    return RequestInfo(service_principal="billing", headers={"x-tenant-id": tenant}, **kwargs)


def session_binding(tenant_id: int, version: int = 1, impersonator_id=None) -> SessionBinding:
    """Build a decoded session binding."""
    return SessionBinding(
        tenant_id=tenant_id,
        session_version=version,
        impersonator_id=impersonator_id,
        exp=utcnow(),
    )


@pytest.fixture
def acme() -> TenantRecord:
    return make_record(1, "acme")


@pytest.fixture
def beta() -> TenantRecord:
    return make_record(2, "beta")


@pytest.fixture
def stub(acme: TenantRecord, beta: TenantRecord) -> StubDirectory:
    return StubDirectory(acme, beta, domains={"crm.acme-corp.com": 1})


class TestHostParsing:
    """Tests for host normalization and subdomain extraction."""

    def test_normalize_host_strips_port_and_case(self):
        """Ports are removed and hosts lower-cased."""
        assert normalize_host("Acme.Example.com:8443") == "acme.example.com"
        assert normalize_host(None) is None

    def test_extract_single_level_subdomain(self):
        """Only one label in front of the app domain names a tenant."""
        assert extract_subdomain("acme.example.com", "example.com") == "acme"
        assert extract_subdomain("www.acme.example.com", "example.com") == "acme"
        assert extract_subdomain("a.b.example.com", "example.com") is None
        assert extract_subdomain("example.com", "example.com") is None
        assert extract_subdomain("www.example.com", "example.com") is None
        assert extract_subdomain("acme.other.com", "example.com") is None


class TestResolutionOrder:
    """Tests for the strategy chain."""

    async def test_principal_wins_over_header(self, stub, acme):
        """The authenticated principal's tenant takes precedence."""
        info = RequestInfo(principal_tenant_id=1, headers={"x-tenant-id": "beta"})

        resolution = await ContextResolver(stub).resolve(info)

        assert resolution.is_resolved
        assert resolution.tenant == acme
        assert resolution.strategy == "principal"

    async def test_verified_domain(self, stub, acme):
        """A verified custom domain resolves its tenant."""
        resolution = await ContextResolver(stub).resolve(RequestInfo(host="crm.acme-corp.com"))

        assert resolution.tenant == acme
        assert resolution.strategy == "domain"

    async def test_unknown_host_falls_through_to_header(self, stub, beta):
        """A host that is no known domain makes no claim."""
        info = service_request("beta", host="unknown.test")

        resolution = await ContextResolver(stub).resolve(info)

        assert resolution.tenant == beta
        assert resolution.strategy == "header"

    async def test_subdomain(self, stub, beta):
        """The app-domain subdomain names the tenant by slug."""
        resolver = ContextResolver(
            stub, strategies=[SubdomainStrategy(app_domain="example.com")]
        )

        resolution = await resolver.resolve(RequestInfo(host="beta.example.com"))

        assert resolution.tenant == beta

    async def test_no_identifier_resolves_to_none(self, stub):
        """A request naming no tenant resolves to no tenant."""
        resolution = await ContextResolver(stub).resolve(RequestInfo(host="test"))

        assert resolution.kind == "none"
        assert resolution.to_context() is None
        assert resolution.error() is None

    async def test_to_context_carries_strategy(self, stub):
        """The context names the strategy that resolved it."""
        resolution = await ContextResolver(stub).resolve(
            service_request("1")
        )

        context = resolution.to_context()
        assert context is not None
        assert context.tenant_id == 1
        assert context.source == "header"


class TestRejections:
    """Tests for rejected resolutions."""

    async def test_unknown_identifier_is_not_found(self, stub):
        """A header naming no tenant is rejected, not ignored."""
        resolution = await ContextResolver(stub).resolve(
            service_request("nobody")
        )

        assert resolution.is_rejected
        assert resolution.reason == REASON_NOT_FOUND
        assert isinstance(resolution.error(), TenantNotFoundError)

    async def test_inactive_tenant_is_rejected(self):
        """A suspended tenant is rejected with its status."""
        suspended = make_record(3, "gamma", status=TenantStatus.SUSPENDED)
        resolver = ContextResolver(StubDirectory(suspended))

        resolution = await resolver.resolve(service_request("gamma"))

        assert resolution.reason == REASON_INACTIVE
        error = resolution.error()
        assert isinstance(error, InactiveTenantError)
        assert error.details["tenant_status"] == "suspended"
        with pytest.raises(InactiveTenantError):
            resolution.raise_for_rejection()

    async def test_timeout_is_unavailable(self, acme):
        """A slow directory rejects the request instead of dropping the tenant."""

        class SlowDirectory(StubDirectory):
            async def get_by_identifier(self, identifier):
                await asyncio.sleep(1)
                return None

        resolver = ContextResolver(SlowDirectory(acme), timeout=0.01)

        resolution = await resolver.resolve(service_request("acme"))

        assert resolution.reason == REASON_UNAVAILABLE
        assert isinstance(resolution.error(), TenantResolutionError)

    async def test_directory_failure_is_unavailable(self, acme):
        """Database errors during lookup reject the request."""

        class BrokenDirectory(StubDirectory):
            async def get_by_identifier(self, identifier):
                raise OperationalError("SELECT 1", {}, Exception("connection refused"))

        resolver = ContextResolver(BrokenDirectory(acme))

        resolution = await resolver.resolve(service_request("acme"))

        assert resolution.reason == REASON_UNAVAILABLE


class TestSessionStrategy:
    """Tests for the session cookie binding."""

    async def test_current_binding_resolves(self, stub, acme):
        """A binding with the current session version resolves."""
        claim = await SessionStrategy().claim(RequestInfo(session=session_binding(1)), stub)

        assert claim is not None
        assert claim.tenant == acme

    async def test_stale_binding_makes_no_claim(self):
        """A binding from before a session version bump is ignored."""
        directory = StubDirectory(make_record(1, "acme", session_version=2))

        claim = await SessionStrategy().claim(
            RequestInfo(session=session_binding(1, version=1)), directory
        )

        assert claim is None

    async def test_inactive_tenant_is_still_claimed(self):
        """An inactive tenant is claimed so the request is rejected."""
        directory = StubDirectory(make_record(1, "acme", status=TenantStatus.INACTIVE))

        resolution = await ContextResolver(directory, strategies=[SessionStrategy()]).resolve(
            RequestInfo(session=session_binding(1))
        )

        assert resolution.reason == REASON_INACTIVE

    async def test_impersonation_binding(self, stub):
        """An impersonation binding carries the admin into the context."""
        resolution = await ContextResolver(stub, strategies=[SessionStrategy()]).resolve(
            RequestInfo(session=session_binding(1, impersonator_id=42))
        )

        context = resolution.to_context()
        assert context is not None
        assert context.impersonator_id == 42
        assert context.is_impersonated

    async def test_inactive_admin_drops_impersonation(self, stub):
        """An impersonation binding of a deactivated admin makes no claim."""
        stub.inactive_admins.add(42)

        claim = await SessionStrategy().claim(
            RequestInfo(session=session_binding(1, impersonator_id=42)), stub
        )

        assert claim is None


class TestQueryStrategy:
    """Tests for the development query parameter."""

    async def test_disabled_outside_development(self, stub):
        """The query parameter is ignored when disabled."""
        claim = await QueryStrategy(enabled=False).claim(
            RequestInfo(query={"tenant": "acme"}), stub
        )

        assert claim is None

    async def test_enabled(self, stub, acme):
        """The query parameter names a tenant when enabled."""
        claim = await QueryStrategy(enabled=True).claim(
            RequestInfo(query={"tenant": "acme"}), stub
        )

        assert claim is not None
        assert claim.tenant == acme

    async def test_custom_header_name(self, stub, beta):
        """Header names are matched case-insensitively."""
        claim = await HeaderStrategy(header="X-Org").claim(
            RequestInfo(service_principal="billing", headers={"x-org": "beta"}), stub
        )

        assert claim is not None
        assert claim.tenant == beta


class TestHeaderStrategy:
    """Tests for the service-to-service tenant header."""

    async def test_header_without_service_credential_is_ignored(self, stub):
        """An anonymous request cannot pick its tenant by header."""
        resolution = await ContextResolver(stub).resolve(
            RequestInfo(headers={"x-tenant-id": "acme"})
        )

        assert resolution.kind == "none"

    async def test_header_falls_through_to_session(self, stub, beta):
        """An ignored header leaves the session binding in charge."""
        info = RequestInfo(headers={"x-tenant-id": "acme"}, session=session_binding(2))

        resolution = await ContextResolver(stub).resolve(info)

        assert resolution.tenant == beta
        assert resolution.strategy == "session"

    async def test_service_requirement_can_be_disabled(self, stub, acme):
        """Deployments behind a trusted gateway may accept the bare header."""
        claim = await HeaderStrategy(require_service=False).claim(
            RequestInfo(headers={"x-tenant-id": "acme"}), stub
        )

        assert claim is not None
        assert claim.tenant == acme
