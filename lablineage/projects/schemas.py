"""Pydantic schemas for projects."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from lablineage.db.models import ProjectStatus, WorkflowMode


class ProjectCreate(BaseModel):
    """Schema for creating a project.

    Exactly one of client_org_id and external_client_name must be given.
    """

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    client_org_id: str | None = None
    external_client_name: str | None = Field(None, max_length=255)
    executing_org_id: str
    workflow_mode: WorkflowMode = WorkflowMode.ANALYSIS_FIRST
    status: ProjectStatus = ProjectStatus.ACTIVE
    external_reference: str | None = Field(None, max_length=255)


class ProjectUpdate(BaseModel):
    """Schema for updating a project. Only supplied, non-null fields change."""

    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    client_org_id: str | None = None
    external_client_name: str | None = Field(None, max_length=255)
    executing_org_id: str | None = None
    workflow_mode: WorkflowMode | None = None
    status: ProjectStatus | None = None
    external_reference: str | None = Field(None, max_length=255)


class ProjectResponse(BaseModel):
    """Schema for project response with organization names resolved."""

    id: str
    workspace_id: str
    name: str
    description: str | None = None
    client_org_id: str | None = None
    client_org_name: str | None = None
    external_client_name: str | None = None
    executing_org_id: str
    executing_org_name: str
    workflow_mode: WorkflowMode
    status: ProjectStatus
    external_reference: str | None = None
    created_by_id: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
