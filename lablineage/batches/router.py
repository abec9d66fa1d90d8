"""API router for batches."""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from lablineage.batches.schemas import (
    AnnotationCreate,
    BatchCreate,
    BatchResponse,
    BatchTransition,
    BatchUpdate,
)
from lablineage.batches.service import BatchService
from lablineage.db.models import BatchStatus
from lablineage.dependencies import CurrentCaller, DbSession
from lablineage.responses import (
    DataEnvelope,
    ListEnvelope,
    MessageEnvelope,
    data_response,
    list_response,
)

router = APIRouter()


def get_batch_service(db: DbSession, caller: CurrentCaller) -> BatchService:
    """Get batch service dependency."""
    return BatchService(db, caller)


BatchServiceDep = Annotated[BatchService, Depends(get_batch_service)]


@router.get("", response_model=ListEnvelope[BatchResponse])
async def list_batches(service: BatchServiceDep, status: BatchStatus | None = None):
    """List batches in the current workspace."""
    batches = service.list_batches(status=status)
    return list_response([service._batch_to_response(b) for b in batches])


@router.post(
    "",
    response_model=DataEnvelope[BatchResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_batch(data: BatchCreate, service: BatchServiceDep):
    """Create a batch with its items."""
    batch = service.create_batch(data)
    return data_response(service._batch_to_response(batch), "Batch created")


@router.get("/{batch_id}", response_model=DataEnvelope[BatchResponse])
async def get_batch(batch_id: str, service: BatchServiceDep):
    """Get a batch by ID."""
    batch = service.get_batch(batch_id)
    return data_response(service._batch_to_response(batch))


@router.put("/{batch_id}", response_model=DataEnvelope[BatchResponse])
async def update_batch(batch_id: str, data: BatchUpdate, service: BatchServiceDep):
    """Update an open batch."""
    batch = service.update_batch(batch_id, data)
    return data_response(service._batch_to_response(batch), "Batch updated")


@router.post("/{batch_id}/transition", response_model=DataEnvelope[BatchResponse])
async def transition_batch(batch_id: str, data: BatchTransition, service: BatchServiceDep):
    """Move a batch to another status."""
    batch = service.transition_batch(batch_id, data.status)
    return data_response(
        service._batch_to_response(batch), f"Batch moved to {batch.status.value}"
    )


@router.post("/{batch_id}/annotations", response_model=DataEnvelope[BatchResponse])
async def add_annotation(batch_id: str, data: AnnotationCreate, service: BatchServiceDep):
    """Append an annotation to a batch."""
    batch = service.add_annotation(batch_id, data)
    return data_response(service._batch_to_response(batch), "Annotation added")


@router.delete("/{batch_id}", response_model=MessageEnvelope)
async def delete_batch(batch_id: str, service: BatchServiceDep):
    """Soft delete a batch."""
    service.delete_batch(batch_id)
    return {"success": True, "message": "Batch deleted"}
