"""Pydantic schemas for CRM entities."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from tenantguard.core.constants import MAX_NAME_LENGTH


class LeadCreate(BaseModel):
    """Schema for creating a lead."""

    title: str = Field(min_length=1, max_length=MAX_NAME_LENGTH)
    contact_email: EmailStr | None = None


class LeadRead(BaseModel):
    """Schema for reading a lead."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    contact_email: str | None
    status: str
    created_at: datetime


class LeadPage(BaseModel):
    """One page of leads."""

    items: list[LeadRead]
    total: int
    page: int
    page_size: int
    pages: int
