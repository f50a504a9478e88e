"""Error handling module with RFC 7807 Problem Details."""

from tenantguard.core.errors.exceptions import (
    AppException,
    BadRequestError,
    CarrierRestoreError,
    ConflictError,
    ForbiddenError,
    ImmutableFieldError,
    ImpersonationError,
    InactiveTenantError,
    NoActiveContextError,
    NotFoundError,
    ScopedNotFoundError,
    ServiceUnavailableError,
    TenantNotFoundError,
    TenantResolutionError,
    TenantScopeViolationError,
    UnauthorizedError,
    ValidationError,
)
from tenantguard.core.errors.handlers import (
    FieldError,
    ProblemDetail,
    problem_response,
    register_exception_handlers,
)


__all__ = [
    "AppException",
    "BadRequestError",
    "CarrierRestoreError",
    "ConflictError",
    "FieldError",
    "ForbiddenError",
    "ImmutableFieldError",
    "ImpersonationError",
    "InactiveTenantError",
    "NoActiveContextError",
    "NotFoundError",
    "ProblemDetail",
    "ScopedNotFoundError",
    "ServiceUnavailableError",
    "TenantNotFoundError",
    "TenantResolutionError",
    "TenantScopeViolationError",
    "UnauthorizedError",
    "ValidationError",
    "problem_response",
    "register_exception_handlers",
]
