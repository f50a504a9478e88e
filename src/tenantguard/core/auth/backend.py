"""Authentication backend for JWT and password handling.

This module provides core authentication utilities including:
- Password hashing with bcrypt
- Access tokens carrying the user's tenant binding
- Signed session tokens used as the session tenant binding
- Impersonation grant tokens
- Service tokens authorizing the explicit tenant header
"""

import secrets
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from jose import JWTError, jwt
from passlib.context import CryptContext

from tenantguard.config import settings
from tenantguard.core.auth.schemas import ImpersonationClaims, SessionBinding, TokenData
from tenantguard.core.constants import ACCESS_TOKEN_JTI_LENGTH, BCRYPT_ROUNDS


TOKEN_TYPE_ACCESS = "access"
TOKEN_TYPE_SESSION = "session"
TOKEN_TYPE_IMPERSONATION = "impersonation"
TOKEN_TYPE_SERVICE = "service"


pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=BCRYPT_ROUNDS,
)


# ============================================================
# Password Utilities
# ============================================================


def hash_password(password: str) -> str:
    """Hash a password using bcrypt.

    Args:
        password: Plain text password

    Returns:
        Bcrypt hash of the password
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


# ============================================================
# JWT Token Utilities
# ============================================================


def _encode(claims: dict[str, Any]) -> str:
    return jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)


def _decode(token: str, expected_type: str) -> dict[str, Any] | None:
    """Decode a token and check its type.

    Returns:
        The claims, or None if the token is invalid, expired or of another type
    """
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None
    if payload.get("type") != expected_type or payload.get("exp") is None:
        return None
    return payload


def create_access_token(
    user_id: UUID,
    tenant_id: int,
    expires_delta: timedelta | None = None,
    additional_claims: dict[str, Any] | None = None,
) -> str:
    """Create a short-lived JWT access token.

    Args:
        user_id: The user's UUID
        tenant_id: Key of the user's tenant
        expires_delta: Optional custom expiration time
        additional_claims: Optional extra claims to include

    Returns:
        Encoded JWT access token
    """
    now = datetime.now(UTC)
    expire = now + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))

    to_encode: dict[str, Any] = {
        "sub": str(user_id),
        "tenant_id": tenant_id,
        "exp": expire,
        "type": TOKEN_TYPE_ACCESS,
        "iat": now,
        "jti": secrets.token_urlsafe(ACCESS_TOKEN_JTI_LENGTH),
    }

    if additional_claims:
        to_encode.update(additional_claims)

    return _encode(to_encode)


def decode_token(token: str) -> TokenData | None:
    """Decode and validate an access token.

    Args:
        token: The JWT token to decode

    Returns:
        TokenData if valid, None if invalid or expired
    """
    payload = _decode(token, TOKEN_TYPE_ACCESS)
    if payload is None:
        return None

    user_id = payload.get("sub")
    tenant_id = payload.get("tenant_id")
    if not user_id or tenant_id is None:
        return None

    try:
        return TokenData(
            user_id=UUID(user_id),
            tenant_id=int(tenant_id),
            exp=datetime.fromtimestamp(payload["exp"], tz=UTC),
            jti=payload.get("jti"),
        )
    except (TypeError, ValueError):
        return None


def create_session_token(
    tenant_id: int,
    session_version: int,
    impersonator_id: int | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Create the signed session tenant binding.

    Args:
        tenant_id: Key of the bound tenant
        session_version: Current session version of the tenant
        impersonator_id: Super admin operating the session, if any
        expires_delta: Optional custom lifetime

    Returns:
        Encoded session token
    """
    now = datetime.now(UTC)
    expire = now + (expires_delta or timedelta(hours=settings.session_ttl_hours))
    claims: dict[str, Any] = {
        "type": TOKEN_TYPE_SESSION,
        "tenant_id": tenant_id,
        "sv": session_version,
        "iat": now,
        "exp": expire,
    }
    if impersonator_id is not None:
        claims["imp"] = impersonator_id
    return _encode(claims)


def decode_session_token(token: str) -> SessionBinding | None:
    """Decode a session token; None if invalid, expired or malformed."""
    payload = _decode(token, TOKEN_TYPE_SESSION)
    if payload is None:
        return None
    try:
        return SessionBinding(
            tenant_id=payload["tenant_id"],
            session_version=payload["sv"],
            impersonator_id=payload.get("imp"),
            exp=datetime.fromtimestamp(payload["exp"], tz=UTC),
        )
    except (KeyError, ValueError):
        return None


def create_impersonation_token(
    jti: str, admin_id: int, tenant_id: int, expires_at: datetime
) -> str:
    """Create the signed token of an impersonation grant."""
    return _encode(
        {
            "type": TOKEN_TYPE_IMPERSONATION,
            "jti": jti,
            "sub": str(admin_id),
            "tenant_id": tenant_id,
            "iat": datetime.now(UTC),
            "exp": expires_at,
        }
    )


def decode_impersonation_token(token: str) -> ImpersonationClaims | None:
    """Decode an impersonation token; None if invalid, expired or malformed."""
    payload = _decode(token, TOKEN_TYPE_IMPERSONATION)
    if payload is None:
        return None
    try:
        return ImpersonationClaims(
            jti=payload["jti"],
            admin_id=int(payload["sub"]),
            tenant_id=payload["tenant_id"],
            exp=datetime.fromtimestamp(payload["exp"], tz=UTC),
        )
    except (KeyError, ValueError):
        return None


def create_service_token(service: str, expires_delta: timedelta | None = None) -> str:
    """Create a bearer token for a trusted internal service.

    Service tokens carry no tenant. They authorize the caller to name the
    tenant explicitly with the tenant header.

    Args:
        service: Name of the calling service
        expires_delta: Optional custom lifetime

    Returns:
        Encoded service token
    """
    now = datetime.now(UTC)
    expire = now + (expires_delta or timedelta(minutes=settings.service_token_expire_minutes))
    return _encode(
        {
            "type": TOKEN_TYPE_SERVICE,
            "sub": service,
            "iat": now,
            "exp": expire,
        }
    )


def decode_service_token(token: str) -> str | None:
    """Return the service named by a valid service token, or None."""
    payload = _decode(token, TOKEN_TYPE_SERVICE)
    if payload is None:
        return None
    service = payload.get("sub")
    return service if isinstance(service, str) and service else None
