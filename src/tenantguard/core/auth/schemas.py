"""Authentication schemas for token handling."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class TokenData(BaseModel):
    """Data extracted from an access token.

    Attributes:
        user_id: The user's UUID
        tenant_id: Key of the tenant the user belongs to
        exp: Token expiration time
        type: Token type
        jti: Unique token ID
    """

    user_id: UUID
    tenant_id: int
    exp: datetime
    type: str = "access"
    jti: str | None = None


class SessionBinding(BaseModel):
    """Tenant binding carried by the signed session cookie.

    Attributes:
        tenant_id: Key of the bound tenant
        session_version: Tenant session version at issue time
        impersonator_id: Super admin operating the session, if any
        exp: Expiration time
    """

    tenant_id: int
    session_version: int
    impersonator_id: int | None = None
    exp: datetime


class ImpersonationClaims(BaseModel):
    """Claims of a signed impersonation grant token."""

    jti: str
    admin_id: int
    tenant_id: int
    exp: datetime
