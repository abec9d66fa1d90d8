"""Pydantic schemas for workspaces."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from lablineage.db.models import UserRole


class WorkspaceSummary(BaseModel):
    """Current workspace with resource counts."""

    id: str
    name: str
    slug: str
    parent_workspace_id: str | None = None
    user_count: int
    organization_count: int
    project_count: int
    sample_count: int
    batch_count: int
    pending_incoming_requests: int
    created_at: datetime


class MemberResponse(BaseModel):
    """A user of the workspace."""

    id: str
    email: str
    full_name: str
    role: UserRole
    is_active: bool

    model_config = ConfigDict(from_attributes=True)
