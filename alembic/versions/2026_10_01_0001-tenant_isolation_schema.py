"""tenant_isolation_schema

Revision ID: 7a1c0e4b9d21
Revises:
Create Date: 2026-10-01 00:01:00.000000

This migration adds:
- Tenant directory tables (tenants, domains, settings, activity log)
- Super admins and impersonation grants
- Tenant-owned tables with (id, tenant_id) primary keys
- Composite foreign keys that keep references inside one tenant
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "7a1c0e4b9d21"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def _tenant_key() -> sa.Column:
    return sa.Column("tenant_id", sa.Integer(), nullable=False)


def _tenant_fk() -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE")


def _has_index(table: str, name: str) -> bool:
    inspector = sa.inspect(op.get_bind())
    return any(index["name"] == name for index in inspector.get_indexes(table))


def upgrade() -> None:
    """Upgrade database schema."""
    # Tenant directory
    op.create_table(
        "tenants",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("uuid", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=63), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("trial_ends_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("session_version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("uuid"),
    )
    op.create_index(op.f("ix_tenants_slug"), "tenants", ["slug"], unique=True)
    op.create_index(op.f("ix_tenants_status"), "tenants", ["status"], unique=False)

    op.create_table(
        "super_admins",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_super_admins_email"), "super_admins", ["email"], unique=True)

    op.create_table(
        "tenant_domains",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        _tenant_key(),
        sa.Column("domain", sa.String(length=255), nullable=False),
        sa.Column("is_primary", sa.Boolean(), nullable=False),
        sa.Column("is_verified", sa.Boolean(), nullable=False),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        _tenant_fk(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("domain"),
    )
    op.create_index(
        op.f("ix_tenant_domains_tenant_id"), "tenant_domains", ["tenant_id"], unique=False
    )

    op.create_table(
        "tenant_settings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        _tenant_key(),
        sa.Column("group", sa.String(length=50), nullable=False),
        sa.Column("key", sa.String(length=100), nullable=False),
        sa.Column("kind", sa.String(length=20), nullable=False),
        sa.Column("value", sa.JSON(), nullable=True),
        *_timestamps(),
        _tenant_fk(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "tenant_id", "group", "key", name="uq_tenant_settings_tenant_group_key"
        ),
    )
    op.create_index(
        op.f("ix_tenant_settings_tenant_id"), "tenant_settings", ["tenant_id"], unique=False
    )

    op.create_table(
        "tenant_activity_logs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        _tenant_key(),
        sa.Column("user_id", sa.Uuid(), nullable=True),
        sa.Column("admin_id", sa.Integer(), nullable=True),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("impersonated", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        _tenant_fk(),
        sa.ForeignKeyConstraint(["admin_id"], ["super_admins.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_tenant_activity_logs_tenant_id"),
        "tenant_activity_logs",
        ["tenant_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_tenant_activity_logs_action"),
        "tenant_activity_logs",
        ["action"],
        unique=False,
    )
    op.create_index(
        op.f("ix_tenant_activity_logs_created_at"),
        "tenant_activity_logs",
        ["created_at"],
        unique=False,
    )

    op.create_table(
        "impersonation_grants",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("jti", sa.String(length=64), nullable=False),
        sa.Column("admin_id", sa.Integer(), nullable=False),
        _tenant_key(),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("consumed_at", sa.DateTime(timezone=True), nullable=True),
        _tenant_fk(),
        sa.ForeignKeyConstraint(["admin_id"], ["super_admins.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_impersonation_grants_jti"), "impersonation_grants", ["jti"], unique=True
    )
    op.create_index(
        op.f("ix_impersonation_grants_tenant_id"),
        "impersonation_grants",
        ["tenant_id"],
        unique=False,
    )

    # Shared reference data (not tenant-owned)
    op.create_table(
        "countries",
        sa.Column("code", sa.String(length=2), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.PrimaryKeyConstraint("code"),
    )

    # Tenant-owned tables: tenant_id is part of every primary key
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        _tenant_key(),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=True),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_admin", sa.Boolean(), nullable=False),
        *_timestamps(),
        _tenant_fk(),
        sa.PrimaryKeyConstraint("id", "tenant_id"),
        sa.UniqueConstraint("tenant_id", "email", name="uq_users_tenant_email"),
    )

    op.create_table(
        "people",
        sa.Column("id", sa.Uuid(), nullable=False),
        _tenant_key(),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        *_timestamps(),
        _tenant_fk(),
        sa.PrimaryKeyConstraint("id", "tenant_id"),
    )

    op.create_table(
        "leads",
        sa.Column("id", sa.Uuid(), nullable=False),
        _tenant_key(),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("contact_email", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("person_id", sa.Uuid(), nullable=True),
        *_timestamps(),
        _tenant_fk(),
        sa.ForeignKeyConstraint(
            ["person_id", "tenant_id"],
            ["people.id", "people.tenant_id"],
            name="fk_leads_person_same_tenant",
        ),
        sa.PrimaryKeyConstraint("id", "tenant_id"),
    )

    op.create_table(
        "tags",
        sa.Column("id", sa.Uuid(), nullable=False),
        _tenant_key(),
        sa.Column("name", sa.String(length=100), nullable=False),
        *_timestamps(),
        _tenant_fk(),
        sa.PrimaryKeyConstraint("id", "tenant_id"),
    )

    op.create_table(
        "lead_tags",
        _tenant_key(),
        sa.Column("lead_id", sa.Uuid(), nullable=False),
        sa.Column("tag_id", sa.Uuid(), nullable=False),
        _tenant_fk(),
        sa.ForeignKeyConstraint(
            ["lead_id", "tenant_id"],
            ["leads.id", "leads.tenant_id"],
            ondelete="CASCADE",
            name="fk_lead_tags_lead_same_tenant",
        ),
        sa.ForeignKeyConstraint(
            ["tag_id", "tenant_id"],
            ["tags.id", "tags.tenant_id"],
            ondelete="CASCADE",
            name="fk_lead_tags_tag_same_tenant",
        ),
        sa.PrimaryKeyConstraint("tenant_id", "lead_id", "tag_id"),
    )

    for table in ("users", "people", "leads", "tags", "lead_tags"):
        op.create_index(op.f(f"ix_{table}_tenant_id"), table, ["tenant_id"], unique=False)
    op.create_index(op.f("ix_users_id"), "users", ["id"], unique=False)
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=False)
    op.create_index(op.f("ix_people_id"), "people", ["id"], unique=False)
    op.create_index(op.f("ix_people_email"), "people", ["email"], unique=False)
    op.create_index(op.f("ix_leads_id"), "leads", ["id"], unique=False)
    op.create_index(op.f("ix_leads_contact_email"), "leads", ["contact_email"], unique=False)
    op.create_index(op.f("ix_tags_id"), "tags", ["id"], unique=False)

    # Tenant-first composite indexes for scoped listings
    if not _has_index("leads", "ix_leads_tenant_created"):
        op.create_index("ix_leads_tenant_created", "leads", ["tenant_id", "created_at"])
    if not _has_index("tags", "ix_tags_tenant_name"):
        op.create_index("ix_tags_tenant_name", "tags", ["tenant_id", "name"])


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index("ix_tags_tenant_name", table_name="tags")
    op.drop_index("ix_leads_tenant_created", table_name="leads")

    for table in ("lead_tags", "tags", "leads", "people", "users"):
        op.drop_table(table)

    op.drop_table("countries")
    op.drop_table("impersonation_grants")
    op.drop_table("tenant_activity_logs")
    op.drop_table("tenant_settings")
    op.drop_table("tenant_domains")
    op.drop_table("super_admins")
    op.drop_table("tenants")
