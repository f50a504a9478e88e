"""Request tenant resolution.

``ContextResolver`` turns the parts of an incoming request that can name a
tenant into exactly one ``Resolution``: a resolved tenant, no tenant, or a
rejection. Strategies are consulted in a fixed order and the first one that
makes a claim wins:

1. principal: the ``tenant_id`` claim of the bearer access token
2. domain: a verified custom domain equal to the request host
3. subdomain: ``<slug>.<app_domain>``
4. header: ``X-Tenant-ID`` (uuid, slug or numeric id), for callers
   authenticated with a service token
5. session: the signed session cookie binding
6. query: ``?tenant=`` (development only)

A claim for an identifier that does not exist is rejected as not found, and
a claim for a tenant that is not active is rejected as inactive. Timeouts
and directory failures are rejected as unavailable, never downgraded to
"no tenant".
"""

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal, Protocol

import structlog
from sqlalchemy.exc import SQLAlchemyError

from tenantguard.config import settings
from tenantguard.core.auth.backend import (
    decode_service_token,
    decode_session_token,
    decode_token,
)
from tenantguard.core.auth.schemas import SessionBinding
from tenantguard.core.errors import (
    AppException,
    InactiveTenantError,
    TenantNotFoundError,
    TenantResolutionError,
)
from tenantguard.core.tenancy.context import TenantContext


if TYPE_CHECKING:
    from starlette.requests import Request

    from tenantguard.modules.tenants.schemas import TenantRecord


logger = structlog.get_logger()

REASON_INACTIVE = "tenant_inactive"
REASON_NOT_FOUND = "tenant_not_found"
REASON_UNAVAILABLE = "resolution_unavailable"


class TenantLookup(Protocol):
    """The directory lookups resolution depends on."""

    async def get_by_id(self, tenant_id: int, *, fresh: bool = False) -> "TenantRecord | None": ...

    async def get_by_slug(self, slug: str) -> "TenantRecord | None": ...

    async def get_by_identifier(self, identifier: str) -> "TenantRecord | None": ...

    async def get_by_verified_domain(self, host: str) -> "TenantRecord | None": ...

    async def is_admin_active(self, admin_id: int) -> bool: ...


@dataclass(frozen=True, slots=True)
class RequestInfo:
    """The tenant-bearing parts of a request.

    Attributes:
        host: Request host, without port, lower-cased
        headers: Request headers with lower-cased names
        principal_tenant_id: Tenant claim of the authenticated principal
        service_principal: Name of the authenticated calling service
        session: Decoded session binding, if the cookie was valid
        query: Query parameters
    """

    host: str | None = None
    headers: Mapping[str, str] = field(default_factory=dict)
    principal_tenant_id: int | None = None
    service_principal: str | None = None
    session: SessionBinding | None = None
    query: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Claim:
    """A strategy's claim; ``tenant`` is None when the identifier matched nothing."""

    tenant: "TenantRecord | None"
    identifier: str
    impersonator_id: int | None = None


@dataclass(frozen=True, slots=True)
class Resolution:
    """Outcome of resolving one request.

    Attributes:
        kind: "resolved", "none" or "reject"
        tenant: The resolved tenant (also set for inactive rejections)
        reason: Rejection reason
        strategy: Name of the strategy that made the claim
        impersonator_id: Super admin operating the session, if any
    """

    kind: Literal["resolved", "none", "reject"]
    tenant: "TenantRecord | None" = None
    reason: str | None = None
    strategy: str | None = None
    impersonator_id: int | None = None

    @classmethod
    def resolved(
        cls, tenant: "TenantRecord", strategy: str, impersonator_id: int | None = None
    ) -> "Resolution":
        return cls("resolved", tenant=tenant, strategy=strategy, impersonator_id=impersonator_id)

    @classmethod
    def none(cls) -> "Resolution":
        return cls("none")

    @classmethod
    def reject(
        cls,
        reason: str,
        strategy: str | None = None,
        tenant: "TenantRecord | None" = None,
    ) -> "Resolution":
        return cls("reject", tenant=tenant, reason=reason, strategy=strategy)

    @property
    def is_resolved(self) -> bool:
        return self.kind == "resolved"

    @property
    def is_rejected(self) -> bool:
        return self.kind == "reject"

    def to_context(self) -> TenantContext | None:
        """Build the tenant context for a resolved request."""
        if self.tenant is None or not self.is_resolved:
            return None
        return TenantContext.for_tenant(
            self.tenant, source=self.strategy, impersonator_id=self.impersonator_id
        )

    def error(self) -> AppException | None:
        """Return the application error matching a rejection, if any.

        Inactive tenants give InactiveTenantError, unknown identifiers give
        TenantNotFoundError, and timeouts or directory failures give
        TenantResolutionError.
        """
        if not self.is_rejected:
            return None
        if self.reason == REASON_INACTIVE:
            tenant = self.tenant
            return InactiveTenantError(
                tenant_id=tenant.id if tenant else None,
                status=str(tenant.status) if tenant else None,
            )
        if self.reason == REASON_NOT_FOUND:
            return TenantNotFoundError()
        return TenantResolutionError()

    def raise_for_rejection(self) -> None:
        """Raise the error matching a rejection; no-op otherwise."""
        error = self.error()
        if error is not None:
            raise error


# ============================================================
# Strategies
# ============================================================


def normalize_host(host: str | None) -> str | None:
    """Lower-case a host and strip its port."""
    if not host:
        return None
    return host.strip().lower().split(":", 1)[0] or None


def extract_subdomain(host: str | None, app_domain: str) -> str | None:
    """Return the single-level subdomain of ``app_domain`` in ``host``.

    ``www.`` is ignored, so ``www.acme.example.com`` and ``acme.example.com``
    both give ``acme``. Deeper subdomains and the bare domain give None.
    """
    host = normalize_host(host)
    app_domain = app_domain.lower()
    suffix = f".{app_domain}"
    if host is None or not host.endswith(suffix):
        return None
    subdomain = host[: -len(suffix)]
    if subdomain.startswith("www."):
        subdomain = subdomain[4:]
    if not subdomain or subdomain == "www" or "." in subdomain:
        return None
    return subdomain


class ResolutionStrategy:
    """Base class for a step of the resolution chain."""

    name: str = "strategy"

    async def claim(self, info: RequestInfo, directory: TenantLookup) -> Claim | None:
        """Return a claim, or None when this strategy has nothing to say."""
        raise NotImplementedError


class PrincipalStrategy(ResolutionStrategy):
    """The tenant bound to the authenticated principal."""

    name = "principal"

    async def claim(self, info: RequestInfo, directory: TenantLookup) -> Claim | None:
        if info.principal_tenant_id is None:
            return None
        tenant = await directory.get_by_id(info.principal_tenant_id)
        return Claim(tenant, str(info.principal_tenant_id))


class DomainStrategy(ResolutionStrategy):
    """A verified custom domain; unknown hosts make no claim."""

    name = "domain"

    async def claim(self, info: RequestInfo, directory: TenantLookup) -> Claim | None:
        host = normalize_host(info.host)
        if host is None:
            return None
        tenant = await directory.get_by_verified_domain(host)
        if tenant is None:
            return None
        return Claim(tenant, host)


class SubdomainStrategy(ResolutionStrategy):
    """``<slug>.<app_domain>``."""

    name = "subdomain"

    def __init__(self, app_domain: str | None = None) -> None:
        self.app_domain = app_domain or settings.app_domain

    async def claim(self, info: RequestInfo, directory: TenantLookup) -> Claim | None:
        slug = extract_subdomain(info.host, self.app_domain)
        if slug is None:
            return None
        return Claim(await directory.get_by_slug(slug), slug)


class HeaderStrategy(ResolutionStrategy):
    """Explicit tenant header, matched by uuid, slug or numeric id.

    The header is a service-to-service channel: unless disabled, it is
    ignored on requests that carry no valid service token.
    """

    name = "header"

    def __init__(self, header: str | None = None, require_service: bool | None = None) -> None:
        self.header = (header or settings.tenant_header).lower()
        self.require_service = (
            settings.tenant_header_requires_service if require_service is None else require_service
        )

    async def claim(self, info: RequestInfo, directory: TenantLookup) -> Claim | None:
        value = info.headers.get(self.header, "").strip()
        if not value:
            return None
        if self.require_service and info.service_principal is None:
            logger.info("tenant_header_ignored", reason="no_service_credential")
            return None
        return Claim(await directory.get_by_identifier(value), value)


class SessionStrategy(ResolutionStrategy):
    """The tenant bound to the signed session cookie.

    A binding whose session version no longer matches an active tenant
    has been invalidated and makes no claim. An inactive tenant is still
    claimed so that the request is rejected as inactive.
    """

    name = "session"

    async def claim(self, info: RequestInfo, directory: TenantLookup) -> Claim | None:
        binding = info.session
        if binding is None:
            return None
        tenant = await directory.get_by_id(binding.tenant_id)
        if tenant is None:
            return Claim(None, str(binding.tenant_id))
        if not tenant.is_active:
            return Claim(tenant, str(binding.tenant_id))
        if tenant.session_version != binding.session_version:
            logger.info(
                "session_binding_stale",
                tenant_id=tenant.id,
                session_version=binding.session_version,
            )
            return None
        if binding.impersonator_id is not None and not await directory.is_admin_active(
            binding.impersonator_id
        ):
            logger.warning(
                "impersonation_admin_inactive",
                tenant_id=tenant.id,
                impersonator_id=binding.impersonator_id,
            )
            return None
        return Claim(tenant, str(binding.tenant_id), binding.impersonator_id)


class QueryStrategy(ResolutionStrategy):
    """``?tenant=`` for local development; disabled elsewhere."""

    name = "query"

    def __init__(self, param: str | None = None, enabled: bool | None = None) -> None:
        self.param = param or settings.tenant_query_param
        self.enabled = settings.is_development if enabled is None else enabled

    async def claim(self, info: RequestInfo, directory: TenantLookup) -> Claim | None:
        if not self.enabled:
            return None
        value = info.query.get(self.param, "").strip()
        if not value:
            return None
        return Claim(await directory.get_by_identifier(value), value)


def default_strategies() -> list[ResolutionStrategy]:
    """The resolution chain in priority order."""
    return [
        PrincipalStrategy(),
        DomainStrategy(),
        SubdomainStrategy(),
        HeaderStrategy(),
        SessionStrategy(),
        QueryStrategy(),
    ]


# ============================================================
# Resolver
# ============================================================


class ContextResolver:
    """Resolves a request to at most one tenant.

    Attributes:
        directory: Tenant lookups
        strategies: Ordered resolution chain
        timeout: Upper bound on the whole chain, in seconds
    """

    def __init__(
        self,
        directory: TenantLookup,
        strategies: list[ResolutionStrategy] | None = None,
        timeout: float | None = None,
    ) -> None:
        self.directory = directory
        self.strategies = strategies if strategies is not None else default_strategies()
        self.timeout = timeout or settings.tenant_resolution_timeout_seconds

    async def resolve(self, info: RequestInfo) -> Resolution:
        """Resolve the tenant of a request.

        Args:
            info: The tenant-bearing parts of the request

        Returns:
            Exactly one of resolved, none or reject
        """
        try:
            async with asyncio.timeout(self.timeout):
                resolution = await self._run_chain(info)
        except TimeoutError:
            logger.warning("tenant_resolution_timeout", timeout_seconds=self.timeout)
            return Resolution.reject(REASON_UNAVAILABLE)
        except (SQLAlchemyError, OSError) as e:
            logger.error(
                "tenant_resolution_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            return Resolution.reject(REASON_UNAVAILABLE)

        if resolution.is_rejected:
            logger.info(
                "tenant_resolution_rejected",
                reason=resolution.reason,
                strategy=resolution.strategy,
            )
        return resolution

    async def _run_chain(self, info: RequestInfo) -> Resolution:
        for strategy in self.strategies:
            claim = await strategy.claim(info, self.directory)
            if claim is None:
                continue
            if claim.tenant is None:
                return Resolution.reject(REASON_NOT_FOUND, strategy=strategy.name)
            if not claim.tenant.is_active:
                return Resolution.reject(
                    REASON_INACTIVE, strategy=strategy.name, tenant=claim.tenant
                )
            return Resolution.resolved(claim.tenant, strategy.name, claim.impersonator_id)
        return Resolution.none()


# ============================================================
# Request integration
# ============================================================


def build_request_info(request: "Request") -> RequestInfo:
    """Extract the tenant-bearing parts of a Starlette request."""
    principal_tenant_id = None
    service_principal = None
    auth_header = request.headers.get("authorization")
    if auth_header and auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1]
        token_data = decode_token(token)
        if token_data is not None:
            principal_tenant_id = token_data.tenant_id
        else:
            service_principal = decode_service_token(token)

    session = None
    cookie = request.cookies.get(settings.session_cookie_name)
    if cookie:
        session = decode_session_token(cookie)

    return RequestInfo(
        host=normalize_host(request.headers.get("host") or request.url.hostname),
        headers={key.lower(): value for key, value in request.headers.items()},
        principal_tenant_id=principal_tenant_id,
        service_principal=service_principal,
        session=session,
        query=dict(request.query_params),
    )


async def resolve_request(request: "Request", resolver: ContextResolver) -> Resolution:
    """Resolve a request once; later calls return the stored result."""
    resolution = getattr(request.state, "tenant_resolution", None)
    if resolution is None:
        resolution = await resolver.resolve(build_request_info(request))
        request.state.tenant_resolution = resolution
    return resolution
