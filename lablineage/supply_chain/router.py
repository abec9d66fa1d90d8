"""API router for cross-workspace collaboration requests."""

from typing import Annotated, Literal

from fastapi import APIRouter, Depends, status

from lablineage.db.models import HandoffPriority, HandoffStatus, HandoffWorkflow
from lablineage.dependencies import CurrentCaller, DbSession
from lablineage.responses import DataEnvelope, ListEnvelope, data_response, list_response
from lablineage.supply_chain.schemas import (
    CollaborationComplete,
    CollaborationRequestCreate,
    CollaborationRequestResponse,
    CollaborationRespond,
)
from lablineage.supply_chain.service import CollaborationService

router = APIRouter()


def get_collaboration_service(db: DbSession, caller: CurrentCaller) -> CollaborationService:
    """Get collaboration service dependency."""
    return CollaborationService(db, caller)


CollaborationServiceDep = Annotated[CollaborationService, Depends(get_collaboration_service)]


@router.get(
    "/collaboration-requests",
    response_model=ListEnvelope[CollaborationRequestResponse],
)
async def list_requests(
    service: CollaborationServiceDep,
    direction: Literal["incoming", "outgoing"] | None = None,
    status: HandoffStatus | None = None,
    workflow_type: HandoffWorkflow | None = None,
    priority: HandoffPriority | None = None,
):
    """List requests sent or received by the current workspace."""
    requests = service.list_requests(
        direction=direction, status=status, workflow_type=workflow_type, priority=priority
    )
    return list_response([service._request_to_response(r) for r in requests])


@router.post(
    "/collaboration-requests",
    response_model=DataEnvelope[CollaborationRequestResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_request(data: CollaborationRequestCreate, service: CollaborationServiceDep):
    """Send a collaboration request to another workspace."""
    request = service.create_request(data)
    return data_response(service._request_to_response(request), "Collaboration request sent")


@router.get(
    "/collaboration-requests/{request_id}",
    response_model=DataEnvelope[CollaborationRequestResponse],
)
async def get_request(request_id: str, service: CollaborationServiceDep):
    """Get a collaboration request by ID."""
    request = service.get_request(request_id)
    return data_response(service._request_to_response(request))


@router.post(
    "/collaboration-requests/{request_id}/accept",
    response_model=DataEnvelope[CollaborationRequestResponse],
)
async def accept_request(
    request_id: str, data: CollaborationRespond, service: CollaborationServiceDep
):
    """Accept a pending request."""
    request = service.accept_request(request_id, data)
    return data_response(service._request_to_response(request), "Request accepted")


@router.post(
    "/collaboration-requests/{request_id}/reject",
    response_model=DataEnvelope[CollaborationRequestResponse],
)
async def reject_request(
    request_id: str, data: CollaborationRespond, service: CollaborationServiceDep
):
    """Reject a pending request."""
    request = service.reject_request(request_id, data)
    return data_response(service._request_to_response(request), "Request rejected")


@router.post(
    "/collaboration-requests/{request_id}/start",
    response_model=DataEnvelope[CollaborationRequestResponse],
)
async def start_request(request_id: str, service: CollaborationServiceDep):
    """Mark an accepted request as in progress."""
    request = service.start_request(request_id)
    return data_response(service._request_to_response(request), "Request in progress")


@router.post(
    "/collaboration-requests/{request_id}/complete",
    response_model=DataEnvelope[CollaborationRequestResponse],
)
async def complete_request(
    request_id: str, data: CollaborationComplete, service: CollaborationServiceDep
):
    """Complete an in-progress request with its results."""
    request = service.complete_request(request_id, data)
    return data_response(service._request_to_response(request), "Request completed")
