"""CRM entities that live inside a tenant.

``Person``, ``Lead``, ``Tag`` and the ``LeadTag`` association are
tenant-owned. References between them use composite foreign keys that
include ``tenant_id``, so a lead can only point at a person or tag of its
own tenant. ``Country`` is shared reference data and is deliberately not
tenant-owned.
"""

from uuid import UUID

from sqlalchemy import ForeignKeyConstraint, String
from sqlalchemy.orm import Mapped, mapped_column

from tenantguard.core.constants import MAX_EMAIL_LENGTH, MAX_NAME_LENGTH
from tenantguard.core.database.base import Base, TenantMixin, TimestampMixin, UUIDMixin


class Person(Base, UUIDMixin, TimestampMixin, TenantMixin):
    """A contact person."""

    __tablename__ = "people"

    full_name: Mapped[str] = mapped_column(String(MAX_NAME_LENGTH), nullable=False)
    email: Mapped[str | None] = mapped_column(
        String(MAX_EMAIL_LENGTH),
        index=True,
        nullable=True,
    )


class Lead(Base, UUIDMixin, TimestampMixin, TenantMixin):
    """A sales lead, optionally linked to a person of the same tenant."""

    __tablename__ = "leads"
    __table_args__ = (
        ForeignKeyConstraint(
            ["person_id", "tenant_id"],
            ["people.id", "people.tenant_id"],
            name="fk_leads_person_same_tenant",
        ),
    )

    title: Mapped[str] = mapped_column(String(MAX_NAME_LENGTH), nullable=False)
    contact_email: Mapped[str | None] = mapped_column(
        String(MAX_EMAIL_LENGTH),
        index=True,
        nullable=True,
    )
    status: Mapped[str] = mapped_column(String(20), default="new", nullable=False)
    person_id: Mapped[UUID | None] = mapped_column(nullable=True)


class Tag(Base, UUIDMixin, TimestampMixin, TenantMixin):
    """A label that can be attached to leads."""

    __tablename__ = "tags"

    name: Mapped[str] = mapped_column(String(100), nullable=False)


class LeadTag(Base, TenantMixin):
    """Association between a lead and a tag.

    The row has no surrogate key; ``tenant_id`` is part of its primary key
    together with both references.
    """

    __tablename__ = "lead_tags"
    __table_args__ = (
        ForeignKeyConstraint(
            ["lead_id", "tenant_id"],
            ["leads.id", "leads.tenant_id"],
            ondelete="CASCADE",
            name="fk_lead_tags_lead_same_tenant",
        ),
        ForeignKeyConstraint(
            ["tag_id", "tenant_id"],
            ["tags.id", "tags.tenant_id"],
            ondelete="CASCADE",
            name="fk_lead_tags_tag_same_tenant",
        ),
    )

    lead_id: Mapped[UUID] = mapped_column(primary_key=True)
    tag_id: Mapped[UUID] = mapped_column(primary_key=True)


class Country(Base):
    """Global reference data shared by every tenant."""

    __tablename__ = "countries"

    code: Mapped[str] = mapped_column(String(2), primary_key=True)
    name: Mapped[str] = mapped_column(String(MAX_NAME_LENGTH), nullable=False)
