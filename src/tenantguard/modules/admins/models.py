"""Super admin model.

Super admins are platform operators. They are global (not tenant-owned)
and reach tenant data only through impersonation or explicit
administrative blocks.
"""

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from tenantguard.core.constants import MAX_EMAIL_LENGTH, MAX_NAME_LENGTH
from tenantguard.core.database.base import Base, TimestampMixin


class SuperAdmin(Base, TimestampMixin):
    """Platform administrator allowed to impersonate tenants."""

    __tablename__ = "super_admins"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(
        String(MAX_EMAIL_LENGTH),
        unique=True,
        index=True,
        nullable=False,
    )
    full_name: Mapped[str] = mapped_column(String(MAX_NAME_LENGTH), nullable=False)
    password_hash: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
