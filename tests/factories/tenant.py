"""Factories for tenant and lead payloads."""

from uuid import uuid4

from polyfactory import Use
from polyfactory.factories.pydantic_factory import ModelFactory

from tenantguard.modules.crm.schemas import LeadCreate
from tenantguard.modules.tenants.schemas import TenantCreate


class TenantCreateFactory(ModelFactory[TenantCreate]):
    """Factory for generating tenant creation payloads."""

    __model__ = TenantCreate

    slug = None
    phone = None
    trial_ends_at = None
    admin = None
    settings = Use(dict)

    @classmethod
    def name(cls) -> str:
        """Generate a unique company name."""
        return f"{cls.__faker__.company()} {uuid4().hex[:6]}"

    @classmethod
    def email(cls) -> str:
        """Generate a contact email."""
        return f"contact-{uuid4().hex[:8]}@example.com"


class LeadCreateFactory(ModelFactory[LeadCreate]):
    """Factory for generating lead payloads."""

    __model__ = LeadCreate

    @classmethod
    def title(cls) -> str:
        """Generate a lead title."""
        return cls.__faker__.catch_phrase()

    @classmethod
    def contact_email(cls) -> str:
        """Generate a contact email."""
        return f"{cls.__faker__.user_name()}@example.com"
