"""User database models."""

from sqlalchemy import Boolean, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from tenantguard.core.constants import MAX_EMAIL_LENGTH, MAX_NAME_LENGTH
from tenantguard.core.database.base import Base, TenantMixin, TimestampMixin, UUIDMixin


class User(Base, UUIDMixin, TimestampMixin, TenantMixin):
    """A member of one tenant.

    Users are tenant-owned: the same email may exist in several tenants,
    and a user is only visible inside its own tenant.

    Attributes:
        email: Email address, unique within the tenant
        password_hash: Bcrypt-hashed password
        full_name: User's full name
        is_active: Whether the user can log in
        is_admin: Whether the user administers the tenant
    """

    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("tenant_id", "email", name="uq_users_tenant_email"),
    )

    email: Mapped[str] = mapped_column(
        String(MAX_EMAIL_LENGTH),
        nullable=False,
        index=True,
    )
    password_hash: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    full_name: Mapped[str] = mapped_column(
        String(MAX_NAME_LENGTH),
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )
    is_admin: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
