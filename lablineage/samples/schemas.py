"""Pydantic schemas for samples."""

from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

AttributeValue = str | int | float | bool | None


class SampleMetadata(BaseModel):
    """Versioned descriptive metadata of a sample."""

    schema_version: Literal[1] = 1
    collected_at: date | None = None
    collected_by: str | None = None
    location: str | None = None
    storage: str | None = None
    attributes: dict[str, AttributeValue] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")


class SampleCreate(BaseModel):
    """Schema for creating a sample."""

    project_id: str
    trial_id: str | None = None
    name: str = Field(..., min_length=1, max_length=255)
    sample_type: str | None = Field(None, max_length=100)
    metadata: SampleMetadata | None = None
    parameters: dict[str, Any] | None = None
    external_reference: str | None = Field(None, max_length=255)


class SampleUpdate(BaseModel):
    """Schema for updating a sample. Only supplied fields change."""

    trial_id: str | None = None
    name: str | None = Field(None, min_length=1, max_length=255)
    sample_type: str | None = Field(None, max_length=100)
    metadata: SampleMetadata | None = None
    parameters: dict[str, Any] | None = None
    external_reference: str | None = Field(None, max_length=255)


class SampleResponse(BaseModel):
    """Schema for sample response."""

    id: str
    workspace_id: str
    project_id: str
    trial_id: str | None = None
    name: str
    sample_type: str | None = None
    metadata: SampleMetadata | None = None
    parameters: dict[str, Any] | None = None
    external_reference: str | None = None
    derived_count: int = 0
    created_at: datetime
    updated_at: datetime
