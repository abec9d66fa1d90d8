"""API router for samples."""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from lablineage.dependencies import CurrentCaller, DbSession
from lablineage.responses import (
    DataEnvelope,
    ListEnvelope,
    MessageEnvelope,
    data_response,
    list_response,
)
from lablineage.samples.schemas import SampleCreate, SampleResponse, SampleUpdate
from lablineage.samples.service import SampleService

router = APIRouter()


def get_sample_service(db: DbSession, caller: CurrentCaller) -> SampleService:
    """Get sample service dependency."""
    return SampleService(db, caller)


SampleServiceDep = Annotated[SampleService, Depends(get_sample_service)]


@router.get("", response_model=ListEnvelope[SampleResponse])
async def list_samples(
    service: SampleServiceDep,
    project_id: str | None = None,
    trial_id: str | None = None,
):
    """List samples in the current workspace."""
    samples = service.list_samples(project_id=project_id, trial_id=trial_id)
    return list_response([service._sample_to_response(s) for s in samples])


@router.post(
    "",
    response_model=DataEnvelope[SampleResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_sample(data: SampleCreate, service: SampleServiceDep):
    """Create a sample."""
    sample = service.create_sample(data)
    return data_response(service._sample_to_response(sample), "Sample created")


@router.get("/{sample_id}", response_model=DataEnvelope[SampleResponse])
async def get_sample(sample_id: str, service: SampleServiceDep):
    """Get a sample by ID."""
    sample = service.get_sample(sample_id)
    return data_response(service._sample_to_response(sample))


@router.put("/{sample_id}", response_model=DataEnvelope[SampleResponse])
async def update_sample(sample_id: str, data: SampleUpdate, service: SampleServiceDep):
    """Update a sample."""
    sample = service.update_sample(sample_id, data)
    return data_response(service._sample_to_response(sample), "Sample updated")


@router.delete("/{sample_id}", response_model=MessageEnvelope)
async def delete_sample(sample_id: str, service: SampleServiceDep):
    """Soft delete a sample."""
    service.delete_sample(sample_id)
    return {"success": True, "message": "Sample deleted"}
