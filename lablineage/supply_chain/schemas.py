"""Pydantic schemas for cross-workspace collaboration requests."""

from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from lablineage.db.models import HandoffPriority, HandoffStatus, HandoffWorkflow


class MaterialItem(BaseModel):
    """One unit of material handed over."""

    name: str = Field(..., min_length=1, max_length=255)
    sample_id: str | None = None  # Originating sample, when the material is tracked here
    sample_type: str | None = Field(None, max_length=100)
    quantity: float | None = None
    unit: str | None = None
    notes: str | None = None

    model_config = ConfigDict(extra="forbid")


class MaterialData(BaseModel):
    """Versioned description of the material in a request."""

    schema_version: Literal[1] = 1
    description: str | None = None
    items: list[MaterialItem] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class CollaborationRequestCreate(BaseModel):
    """Schema for sending a collaboration request to another workspace."""

    from_org_id: str
    to_org_id: str
    from_project_id: str
    workflow_type: HandoffWorkflow
    priority: HandoffPriority = HandoffPriority.MEDIUM
    material_data: MaterialData | None = None
    requirements: str | None = None
    due_date: date | None = None
    notes: str | None = None


class CollaborationRespond(BaseModel):
    """Schema for accepting or rejecting a request."""

    response_notes: str | None = None
    assigned_to_id: str | None = None


class CollaborationComplete(BaseModel):
    """Schema for completing a request with its results."""

    results: dict[str, Any] | None = None
    response_notes: str | None = None


class CollaborationRequestResponse(BaseModel):
    """Schema for collaboration request response."""

    id: str
    direction: Literal["incoming", "outgoing"]
    from_org_id: str
    from_org_name: str
    to_org_id: str
    to_org_name: str
    from_project_id: str
    from_project_name: str
    from_workspace_id: str
    to_workspace_id: str
    workflow_type: HandoffWorkflow
    status: HandoffStatus
    priority: HandoffPriority
    material_data: MaterialData | None = None
    requirements: str | None = None
    due_date: date | None = None
    notes: str | None = None
    response_notes: str | None = None
    results: dict[str, Any] | None = None
    receiving_project_id: str | None = None
    created_by_id: str | None = None
    assigned_to_id: str | None = None
    responded_by_id: str | None = None
    responded_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
