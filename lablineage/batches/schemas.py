"""Pydantic schemas for batches."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from lablineage.db.models import BatchStatus, ExecutionMode


class BatchItemCreate(BaseModel):
    """A sample to place in a batch, optionally pinned to a derived sample."""

    sample_id: str
    derived_sample_id: str | None = None


class BatchCreate(BaseModel):
    """Schema for creating a batch with its items."""

    batch_code: str = Field(..., min_length=1, max_length=100)
    description: str | None = None
    execution_mode: ExecutionMode = ExecutionMode.PLATFORM
    executed_by_org_id: str | None = None
    external_reference: str | None = Field(None, max_length=255)
    items: list[BatchItemCreate] = Field(default_factory=list)


class BatchUpdate(BaseModel):
    """Schema for updating a non-terminal batch. Only supplied fields change."""

    description: str | None = None
    execution_mode: ExecutionMode | None = None
    executed_by_org_id: str | None = None
    external_reference: str | None = Field(None, max_length=255)


class BatchTransition(BaseModel):
    """Schema for moving a batch to another status."""

    status: BatchStatus


class AnnotationCreate(BaseModel):
    """Schema for appending an annotation to a batch."""

    text: str = Field(..., min_length=1, max_length=2000)


class Annotation(BaseModel):
    """A stored batch annotation."""

    text: str
    author_id: str
    created_at: datetime


class BatchItemResponse(BaseModel):
    """Schema for batch item response."""

    id: str
    sample_id: str
    sample_name: str
    derived_sample_id: str | None = None
    sequence: int

    model_config = ConfigDict(from_attributes=True)


class BatchResponse(BaseModel):
    """Schema for batch response."""

    id: str
    workspace_id: str
    batch_code: str
    description: str | None = None
    status: BatchStatus
    execution_mode: ExecutionMode
    executed_by_org_id: str | None = None
    executed_by_org_name: str | None = None
    external_reference: str | None = None
    items: list[BatchItemResponse] = Field(default_factory=list)
    annotations: list[Annotation] = Field(default_factory=list)
    analysis_count: int = 0
    sent_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
