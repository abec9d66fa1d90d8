"""API router for derived samples."""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from lablineage.dependencies import CurrentCaller, DbSession
from lablineage.lineage.schemas import DerivedSampleCreate, DerivedSampleResponse
from lablineage.lineage.service import DerivedSampleService
from lablineage.responses import (
    DataEnvelope,
    ListEnvelope,
    MessageEnvelope,
    data_response,
    list_response,
)

router = APIRouter()


def get_derived_sample_service(db: DbSession, caller: CurrentCaller) -> DerivedSampleService:
    """Get derived sample service dependency."""
    return DerivedSampleService(db, caller)


DerivedServiceDep = Annotated[DerivedSampleService, Depends(get_derived_sample_service)]


@router.get("", response_model=ListEnvelope[DerivedSampleResponse])
async def list_derived_samples(
    parent_sample_id: str,
    service: DerivedServiceDep,
    current_only: bool = False,
):
    """List derived samples of a sample."""
    records = service.list_derived_samples(parent_sample_id, current_only=current_only)
    return list_response([service._derived_to_response(r) for r in records])


@router.post(
    "",
    response_model=DataEnvelope[DerivedSampleResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_derived_sample(data: DerivedSampleCreate, service: DerivedServiceDep):
    """Create a derived sample or a new revision of one."""
    derived = service.create_derived_sample(data)
    return data_response(service._derived_to_response(derived), "Derived sample created")


@router.get("/{derived_id}", response_model=DataEnvelope[DerivedSampleResponse])
async def get_derived_sample(derived_id: str, service: DerivedServiceDep):
    """Get a derived sample by ID."""
    derived = service.get_derived_sample(derived_id)
    return data_response(service._derived_to_response(derived))


@router.get("/{derived_id}/chain", response_model=ListEnvelope[DerivedSampleResponse])
async def get_supersession_chain(derived_id: str, service: DerivedServiceDep):
    """Get a derived sample and the revisions it replaced, newest first."""
    chain = service.get_supersession_chain(derived_id)
    return list_response([service._derived_to_response(r) for r in chain])


@router.get("/{derived_id}/head", response_model=DataEnvelope[DerivedSampleResponse])
async def get_lineage_head(derived_id: str, service: DerivedServiceDep):
    """Get the current revision of a derived sample's lineage."""
    head = service.get_lineage_head(derived_id)
    return data_response(service._derived_to_response(head))


@router.delete("/{derived_id}", response_model=MessageEnvelope)
async def delete_derived_sample(derived_id: str, service: DerivedServiceDep):
    """Soft delete the current revision of a derived sample."""
    service.delete_derived_sample(derived_id)
    return {"success": True, "message": "Derived sample deleted"}
