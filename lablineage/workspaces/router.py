"""API router for the current workspace."""

from typing import Annotated

from fastapi import APIRouter, Depends

from lablineage.dependencies import CurrentCaller, DbSession
from lablineage.responses import DataEnvelope, ListEnvelope, data_response, list_response
from lablineage.workspaces.schemas import MemberResponse, WorkspaceSummary
from lablineage.workspaces.service import WorkspaceService

router = APIRouter()


def get_workspace_service(db: DbSession, caller: CurrentCaller) -> WorkspaceService:
    """Get workspace service dependency."""
    return WorkspaceService(db, caller)


WorkspaceServiceDep = Annotated[WorkspaceService, Depends(get_workspace_service)]


@router.get("/current", response_model=DataEnvelope[WorkspaceSummary])
async def get_current_workspace(service: WorkspaceServiceDep):
    """Get the caller's workspace with resource counts."""
    return data_response(service.get_summary())


@router.get("/current/users", response_model=ListEnvelope[MemberResponse])
async def list_members(service: WorkspaceServiceDep):
    """List users of the caller's workspace."""
    return list_response([MemberResponse.model_validate(u) for u in service.list_members()])
