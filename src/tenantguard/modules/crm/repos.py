"""Repositories for CRM entities."""

from tenantguard.core.database import Join, ScopedRepository
from tenantguard.modules.crm.models import Lead, LeadTag, Person, Tag


class PersonRepository(ScopedRepository[Person]):
    """Repository for contact people."""

    model = Person


class TagRepository(ScopedRepository[Tag]):
    """Repository for tags."""

    model = Tag


class LeadRepository(ScopedRepository[Lead]):
    """Repository for leads, including tag and contact joins."""

    model = Lead

    async def tag(self, lead: Lead, tag: Tag) -> LeadTag:
        """Attach a tag to a lead of the active tenant."""
        link = LeadTag(lead_id=lead.id, tag_id=tag.id)
        self.session.add(link)
        await self.session.flush()
        return link

    async def tagged_with(self, tag_name: str) -> list[Lead]:
        """List leads carrying a tag with the given name."""
        return await self.find_by(
            Tag.name == tag_name,
            joins=(
                Join(LeadTag, LeadTag.lead_id == Lead.id),
                Join(Tag, Tag.id == LeadTag.tag_id),
            ),
            order_by=Lead.title,
        )

    async def with_contacts(self) -> list[tuple[Lead, Person]]:
        """List leads paired with the person sharing their contact email."""
        return await self.list_joined(
            Person,
            Person.email == Lead.contact_email,
            order_by=Lead.title,
        )
