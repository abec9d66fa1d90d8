"""Pydantic schemas for trials and per-project parameter templates."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from lablineage.db.models import TrialStatus

ColumnType = Literal["text", "number", "integer", "boolean", "date"]


class TrialCreate(BaseModel):
    """Schema for creating a trial."""

    name: str = Field(..., min_length=1, max_length=255)
    objective: str | None = None
    notes: str | None = None
    status: TrialStatus = TrialStatus.PLANNED


class TrialUpdate(BaseModel):
    """Schema for updating a trial. Only supplied fields change."""

    name: str | None = Field(None, min_length=1, max_length=255)
    objective: str | None = None
    notes: str | None = None
    status: TrialStatus | None = None


class TrialResponse(BaseModel):
    """Schema for trial response."""

    id: str
    project_id: str
    workspace_id: str
    name: str
    objective: str | None = None
    notes: str | None = None
    status: TrialStatus
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ParameterColumn(BaseModel):
    """One typed column of a parameter template."""

    key: str = Field(..., min_length=1, max_length=100, pattern=r"^[A-Za-z_][A-Za-z0-9_]*$")
    label: str | None = None
    type: ColumnType = "text"
    required: bool = False
    unit: str | None = None

    model_config = ConfigDict(extra="forbid")


class ParameterTemplate(BaseModel):
    """Versioned, ordered list of parameter columns for a project's samples."""

    schema_version: Literal[1] = 1
    columns: list[ParameterColumn]

    model_config = ConfigDict(extra="forbid")

    @field_validator("columns")
    @classmethod
    def unique_keys(cls, columns: list[ParameterColumn]) -> list[ParameterColumn]:
        keys = [c.key for c in columns]
        if len(keys) != len(set(keys)):
            raise ValueError("Column keys must be unique")
        return columns


class ParameterTemplateResponse(ParameterTemplate):
    """Stored template with its overwrite counter."""

    project_id: str
    version: int
    updated_at: datetime
