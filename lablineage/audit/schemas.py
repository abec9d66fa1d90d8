"""Pydantic schemas for the audit trail."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from lablineage.db.models import ObjectType


class AuditEntryResponse(BaseModel):
    """Schema for audit entry response."""

    id: str
    object_type: ObjectType
    object_id: str
    action: str
    actor_id: str | None = None
    actor_workspace_id: str
    details: dict | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
