"""Pydantic schemas for access grants."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from lablineage.db.models import AccessLevel, ObjectType


class GrantCreate(BaseModel):
    """Schema for granting access to an object."""

    user_id: str
    object_type: ObjectType
    object_id: str
    access_level: AccessLevel


class GrantUpdate(BaseModel):
    """Schema for changing the level of an existing grant."""

    access_level: AccessLevel


class GrantResponse(BaseModel):
    """Schema for access grant response."""

    id: str
    user_id: str
    user_email: str | None = None
    user_name: str | None = None
    object_type: ObjectType
    object_id: str
    access_level: AccessLevel
    granted_by_id: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
