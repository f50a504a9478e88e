"""Import every model so that ``Base.metadata`` describes the full schema.

Used by the application factory, the worker, migrations and tests.
"""

from tenantguard.core.database.base import Base
from tenantguard.modules.admins.models import SuperAdmin
from tenantguard.modules.crm.models import Country, Lead, LeadTag, Person, Tag
from tenantguard.modules.tenants.models import (
    ImpersonationGrant,
    Tenant,
    TenantActivityLog,
    TenantDomain,
    TenantSetting,
)
from tenantguard.modules.users.models import User


__all__ = [
    "Base",
    "Country",
    "ImpersonationGrant",
    "Lead",
    "LeadTag",
    "Person",
    "SuperAdmin",
    "Tag",
    "Tenant",
    "TenantActivityLog",
    "TenantDomain",
    "TenantSetting",
    "User",
]
