"""Authentication module for JWT, session binding and password handling."""

from tenantguard.core.auth.backend import (
    create_access_token,
    create_impersonation_token,
    create_session_token,
    decode_impersonation_token,
    decode_session_token,
    decode_token,
    hash_password,
    verify_password,
)
from tenantguard.core.auth.schemas import ImpersonationClaims, SessionBinding, TokenData


__all__ = [
    # Schemas
    "ImpersonationClaims",
    "SessionBinding",
    "TokenData",
    # Token utilities
    "create_access_token",
    "create_impersonation_token",
    "create_session_token",
    "decode_impersonation_token",
    "decode_session_token",
    "decode_token",
    # Password utilities
    "hash_password",
    "verify_password",
]
