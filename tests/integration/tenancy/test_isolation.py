"""Integration tests for tenant isolation through the scoped repositories."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.core.errors import NoActiveContextError, ScopedNotFoundError, ValidationError
from tenantguard.core.tenancy import acting_as, unscoped
from tenantguard.modules.crm.repos import LeadRepository, PersonRepository, TagRepository
from tenantguard.modules.tenants.models import Tenant
from tenantguard.modules.users.repos import UserRepository


pytestmark = pytest.mark.integration


async def create_lead(db: AsyncSession, tenant: Tenant, title: str, **attrs):
    """Create and commit a lead for a tenant."""
    with acting_as(tenant):
        lead = await LeadRepository(db).create({"title": title, **attrs})
        await db.commit()
    return lead


class TestScopedReads:
    """Tests for reads restricted to the active tenant."""

    async def test_create_stamps_active_tenant(self, db, acme):
        """New records belong to the active tenant."""
        lead = await create_lead(db, acme, "Website redesign")

        assert lead.tenant_id == acme.id

    async def test_other_tenants_records_are_invisible(self, db, acme, beta):
        """Another tenant's record looks exactly like a missing one."""
        lead = await create_lead(db, acme, "Acme lead")

        with acting_as(beta):
            repo = LeadRepository(db)
            assert await repo.find(lead.id) is None
            assert await repo.list_all() == []
            assert await repo.count() == 0
            with pytest.raises(ScopedNotFoundError):
                await repo.get(lead.id)

    async def test_update_and_delete_of_foreign_record(self, db, acme, beta):
        """Writes cannot reach another tenant's records."""
        lead = await create_lead(db, acme, "Acme lead")

        with acting_as(beta):
            repo = LeadRepository(db)
            with pytest.raises(ScopedNotFoundError):
                await repo.update(lead.id, {"title": "Hijacked"})
            with pytest.raises(ScopedNotFoundError):
                await repo.delete(lead.id)

        with acting_as(acme):
            assert (await LeadRepository(db).get(lead.id)).title == "Acme lead"

    async def test_same_email_in_two_tenants(self, db, acme, beta):
        """User emails are unique per tenant, not globally."""
        for tenant in (acme, beta):
            with acting_as(tenant):
                await UserRepository(db).create(email="sam@example.com", full_name="Sam")
                await db.commit()

        with acting_as(beta):
            user = await UserRepository(db).get_by_email("Sam@Example.com")

        assert user is not None
        assert user.tenant_id == beta.id

    async def test_unscoped_sees_every_tenant(self, db, acme, beta):
        """An administrative bypass reads across tenants."""
        await create_lead(db, acme, "Acme lead")
        await create_lead(db, beta, "Beta lead")

        with unscoped():
            leads = await LeadRepository(db).list_all()

        assert {lead.tenant_id for lead in leads} == {acme.id, beta.id}

    async def test_repository_requires_a_tenant(self, db, acme):
        """Scoped reads fail closed without a tenant."""
        with pytest.raises(NoActiveContextError):
            await LeadRepository(db).list_all()

    async def test_unknown_filter_attribute(self, db, acme):
        """Filtering on an attribute the model lacks is rejected."""
        with acting_as(acme):
            with pytest.raises(ValidationError):
                await LeadRepository(db).find_by(owner="nobody")


class TestScopedJoins:
    """Tests for joins between tenant-owned models."""

    async def test_contact_join_stays_inside_tenant(self, db, acme, beta):
        """A join key that matches across tenants never pairs rows."""
        with acting_as(acme):
            await PersonRepository(db).create(full_name="Pat", email="pat@example.com")
            await db.commit()
        await create_lead(db, acme, "Acme deal", contact_email="pat@example.com")
        await create_lead(db, beta, "Beta deal", contact_email="pat@example.com")

        with acting_as(acme):
            acme_pairs = await LeadRepository(db).with_contacts()
        with acting_as(beta):
            beta_pairs = await LeadRepository(db).with_contacts()

        assert [(lead.title, person.full_name) for lead, person in acme_pairs] == [
            ("Acme deal", "Pat")
        ]
        assert beta_pairs == []

    async def test_tag_join_stays_inside_tenant(self, db, acme, beta):
        """Tags with the same name in another tenant do not match."""
        acme_lead = await create_lead(db, acme, "Acme deal")
        await create_lead(db, beta, "Beta deal")
        with acting_as(acme):
            tag = await TagRepository(db).create(name="hot")
            await LeadRepository(db).tag(acme_lead, tag)
            await db.commit()
        with acting_as(beta):
            await TagRepository(db).create(name="hot")
            await db.commit()

        with acting_as(acme):
            acme_hot = await LeadRepository(db).tagged_with("hot")
        with acting_as(beta):
            beta_hot = await LeadRepository(db).tagged_with("hot")

        assert [lead.title for lead in acme_hot] == ["Acme deal"]
        assert beta_hot == []


class TestPagination:
    """Tests for paginated reads."""

    async def test_pages_count_only_active_tenant(self, db, acme, beta):
        """Totals and pages ignore other tenants' rows."""
        for n in range(5):
            await create_lead(db, acme, f"Acme {n}")
        await create_lead(db, beta, "Beta 0")

        with acting_as(acme):
            repo = LeadRepository(db)
            first = await repo.paginate(page=1, page_size=2)
            last = await repo.paginate(page=3, page_size=2)

        assert first.total == 5
        assert first.pages == 3
        assert len(first.items) == 2
        assert first.has_next is True
        assert len(last.items) == 1
        assert last.has_next is False


class TestBulkWrites:
    """Tests for bulk deletes."""

    async def test_delete_where_is_scoped(self, db, acme, beta):
        """A bulk delete only removes the active tenant's rows."""
        await create_lead(db, acme, "duplicate")
        await create_lead(db, beta, "duplicate")

        with acting_as(acme):
            deleted = await LeadRepository(db).delete_where(title="duplicate")
            await db.commit()

        with unscoped():
            remaining = await LeadRepository(db).list_all()

        assert deleted == 1
        assert [lead.tenant_id for lead in remaining] == [beta.id]
