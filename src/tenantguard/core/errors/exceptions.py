"""Domain exceptions for the application.

These exceptions represent business-logic errors and are automatically
converted to RFC 7807 Problem Details responses by the exception handlers.

The tenancy exceptions at the bottom of this module form the isolation
taxonomy: they are raised by context resolution, scoping enforcement,
and the job carrier, and are never downgraded to "proceed unscoped".
"""

from typing import Any


class AppException(Exception):
    """Base exception for all application errors.

    All domain exceptions should inherit from this class.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code for clients
        status_code: HTTP status code for the response
        details: Additional error details
    """

    message: str = "An unexpected error occurred"
    error_code: str = "internal_error"
    status_code: int = 500

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(AppException):
    """Raised when a requested resource is not found.

    Example:
        raise NotFoundError("Lead not found", resource="lead", resource_id=str(lead_id))
    """

    message = "Resource not found"
    error_code = "not_found"
    status_code = 404

    def __init__(
        self,
        message: str | None = None,
        resource: str | None = None,
        resource_id: str | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {})
        if resource:
            details["resource"] = resource
        if resource_id:
            details["resource_id"] = resource_id
        super().__init__(message=message, details=details, **kwargs)


class ConflictError(AppException):
    """Raised when there's a conflict with existing data.

    Example:
        raise ConflictError("Slug already taken", details={"slug": slug})
    """

    message = "Resource conflict"
    error_code = "conflict"
    status_code = 409


class ValidationError(AppException):
    """Raised when request data fails validation.

    Example:
        raise ValidationError(
            "Invalid input data",
            errors=[{"field": "email", "message": "Invalid email format"}]
        )
    """

    message = "Validation error"
    error_code = "validation_error"
    status_code = 422

    def __init__(
        self,
        message: str | None = None,
        errors: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {})
        if errors:
            details["errors"] = errors
        super().__init__(message=message, details=details, **kwargs)


class UnauthorizedError(AppException):
    """Raised when authentication is required but not provided or invalid."""

    message = "Authentication required"
    error_code = "unauthorized"
    status_code = 401


class ForbiddenError(AppException):
    """Raised when the caller lacks permission to access a resource."""

    message = "Access forbidden"
    error_code = "forbidden"
    status_code = 403


class BadRequestError(AppException):
    """Raised for general client errors."""

    message = "Bad request"
    error_code = "bad_request"
    status_code = 400


class ServiceUnavailableError(AppException):
    """Raised when a required service is unavailable.

    Example:
        raise ServiceUnavailableError("Database connection failed")
    """

    message = "Service temporarily unavailable"
    error_code = "service_unavailable"
    status_code = 503


# ============================================================
# Tenancy
# ============================================================


class NoActiveContextError(AppException):
    """Raised when tenant-owned data is touched with no active tenant.

    This is a configuration error: a write (or a scoped read) was attempted
    outside of any resolved tenant context and without an explicit target
    tenant. It is never defaulted to an arbitrary tenant.

    Example:
        raise NoActiveContextError(details={"model": "Lead"})
    """

    message = "No active tenant context"
    error_code = "no_active_tenant_context"
    status_code = 500


class InactiveTenantError(ForbiddenError):
    """Raised when the resolved tenant exists but is suspended or inactive."""

    message = "Tenant is not active"
    error_code = "tenant_inactive"

    def __init__(
        self,
        message: str | None = None,
        tenant_id: int | None = None,
        status: str | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {})
        if tenant_id is not None:
            details["tenant_id"] = tenant_id
        if status:
            details["tenant_status"] = status
        super().__init__(message=message, details=details, **kwargs)


class ImmutableFieldError(ConflictError):
    """Raised when a persisted record's tenant binding is being changed."""

    message = "Field cannot be changed after creation"
    error_code = "immutable_field"

    def __init__(
        self,
        message: str | None = None,
        field: str = "tenant_id",
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {})
        details["field"] = field
        super().__init__(message=message, details=details, **kwargs)


class ScopedNotFoundError(NotFoundError):
    """Raised when a record is absent or belongs to a different tenant.

    Both cases produce the same error so that callers cannot probe
    for the existence of other tenants' records.
    """


class TenantNotFoundError(NotFoundError):
    """Raised when a tenant identifier does not match any tenant."""

    message = "Tenant not found"
    error_code = "tenant_not_found"


class TenantResolutionError(ServiceUnavailableError):
    """Raised when tenant resolution timed out or the directory was unavailable."""

    message = "Tenant could not be resolved"
    error_code = "tenant_resolution_failed"


class CarrierRestoreError(AppException):
    """Raised when a job's tenant context cannot be reconstructed."""

    message = "Tenant context could not be restored"
    error_code = "tenant_context_restore_failed"
    status_code = 500


class ImpersonationError(UnauthorizedError):
    """Raised when an impersonation grant is invalid, expired or already used."""

    message = "Impersonation grant is invalid"
    error_code = "impersonation_invalid"


class TenantScopeViolationError(AppException):
    """Raised by the scope audit monitor when running in fatal mode."""

    message = "Statement is missing the active tenant predicate"
    error_code = "tenant_scope_violation"
    status_code = 500
