"""Pydantic schemas for derived samples and their supersession chains."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from lablineage.samples.schemas import AttributeValue


class DerivationDetails(BaseModel):
    """Versioned description of how a derived sample was produced."""

    schema_version: Literal[1] = 1
    protocol: str | None = None
    quantity: float | None = None
    unit: str | None = None
    notes: str | None = None
    attributes: dict[str, AttributeValue] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")


class DerivedSampleCreate(BaseModel):
    """Schema for creating a derived sample or a new revision of one.

    With supersedes_id, the new record replaces that revision of the lineage.
    """

    parent_sample_id: str
    parent_derived_id: str | None = None
    supersedes_id: str | None = None
    name: str = Field(..., min_length=1, max_length=255)
    derivation_method: str | None = Field(None, max_length=100)
    details: DerivationDetails | None = None


class DerivedSampleResponse(BaseModel):
    """Schema for derived sample response."""

    id: str
    workspace_id: str
    parent_sample_id: str
    parent_derived_id: str | None = None
    depth: int
    name: str
    derivation_method: str | None = None
    details: DerivationDetails | None = None
    supersedes_id: str | None = None
    superseded_by_id: str | None = None
    superseded_at: datetime | None = None
    is_current: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
