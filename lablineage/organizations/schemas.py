"""Pydantic schemas for organizations."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from lablineage.db.models import OrganizationType


class ContactInfo(BaseModel):
    """Versioned contact details of an organization."""

    schema_version: Literal[1] = 1
    contact_name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    city: str | None = None
    country: str | None = None
    website: str | None = None

    model_config = ConfigDict(extra="forbid")


class OrganizationCreate(BaseModel):
    """Schema for creating an organization."""

    name: str = Field(..., min_length=1, max_length=255)
    type: OrganizationType
    contact: ContactInfo | None = None
    is_partner: bool = False


class OrganizationUpdate(BaseModel):
    """Schema for updating an organization. Only supplied fields change."""

    name: str | None = Field(None, min_length=1, max_length=255)
    type: OrganizationType | None = None
    contact: ContactInfo | None = None
    is_partner: bool | None = None


class OrganizationResponse(BaseModel):
    """Schema for organization response."""

    id: str
    workspace_id: str
    name: str
    type: OrganizationType
    contact: ContactInfo | None = None
    is_partner: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PartnerResponse(BaseModel):
    """Schema for a partner organization listed across workspaces."""

    id: str
    workspace_id: str
    workspace_name: str
    name: str
    type: OrganizationType
