"""SQLAlchemy declarative base and common mixins."""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import DateTime, ForeignKey, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from the database."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class UUIDMixin:
    """Mixin that adds a UUID primary key."""

    id: Mapped[UUID] = mapped_column(
        primary_key=True,
        default=uuid4,
        index=True,
    )


class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamps.

    Values are produced client-side so that flushed objects never hold
    expired attributes that would need a lazy refresh.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )


class TenantMixin:
    """Mixin that marks a model as tenant-owned.

    ``tenant_id`` references the integer tenant key and is part of the
    primary key, so every unit-of-work UPDATE and DELETE is emitted with
    the tenant predicate and composite foreign keys keep references
    inside one tenant. The value is stamped from the active tenant
    context on insert and can never change afterwards; see
    ``tenantguard.core.database.enforcer``.

    Example:
        class Lead(Base, UUIDMixin, TenantMixin, TimestampMixin):
            __tablename__ = "leads"
            title: Mapped[str] = mapped_column(String(255))
    """

    tenant_id: Mapped[int] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )


def is_tenant_owned(model: Any) -> bool:
    """Check whether a mapped class (or instance) carries the tenant capability."""
    cls = model if isinstance(model, type) else type(model)
    return issubclass(cls, TenantMixin)


def tenant_owned_models() -> list[type[Base]]:
    """Return every mapped class that carries the tenant capability."""
    return sorted(
        (
            mapper.class_
            for mapper in Base.registry.mappers
            if is_tenant_owned(mapper.class_)
        ),
        key=lambda cls: cls.__tablename__,
    )
