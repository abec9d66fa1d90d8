"""Pydantic schemas for analyses and analysis types."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from lablineage.db.models import AnalysisStatus


class AnalysisTypeCreate(BaseModel):
    """Schema for creating an analysis type."""

    name: str = Field(..., min_length=1, max_length=100)
    category: str | None = Field(None, max_length=100)
    description: str | None = None


class AnalysisTypeResponse(BaseModel):
    """Schema for analysis type response."""

    id: str
    name: str
    category: str | None = None
    description: str | None = None
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class AnalysisCreate(BaseModel):
    """Schema for recording an analysis.

    With supersedes_id the new analysis takes over authority from that one.
    """

    batch_id: str
    sample_id: str
    analysis_type_id: str
    status: AnalysisStatus = AnalysisStatus.PENDING
    results: dict[str, Any] | None = None
    notes: str | None = None
    is_authoritative: bool = True
    supersedes_id: str | None = None


class AnalysisStatusUpdate(BaseModel):
    """Schema for moving an analysis forward, optionally attaching results."""

    status: AnalysisStatus
    results: dict[str, Any] | None = None
    notes: str | None = None


class AnalysisResponse(BaseModel):
    """Schema for analysis response."""

    id: str
    workspace_id: str
    batch_id: str
    sample_id: str
    analysis_type_id: str
    analysis_type_name: str
    status: AnalysisStatus
    results: dict[str, Any] | None = None
    notes: str | None = None
    is_authoritative: bool
    supersedes_id: str | None = None
    uploaded_by_id: str | None = None
    created_at: datetime
    updated_at: datetime
