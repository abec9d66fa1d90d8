"""API router for projects."""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from lablineage.db.models import ProjectStatus
from lablineage.dependencies import CurrentCaller, DbSession
from lablineage.projects.schemas import ProjectCreate, ProjectResponse, ProjectUpdate
from lablineage.projects.service import ProjectService
from lablineage.responses import (
    DataEnvelope,
    ListEnvelope,
    MessageEnvelope,
    data_response,
    list_response,
)

router = APIRouter()


def get_project_service(db: DbSession, caller: CurrentCaller) -> ProjectService:
    """Get project service dependency."""
    return ProjectService(db, caller)


ProjectServiceDep = Annotated[ProjectService, Depends(get_project_service)]


@router.get("", response_model=ListEnvelope[ProjectResponse])
async def list_projects(
    service: ProjectServiceDep,
    status: ProjectStatus | None = None,
    client_org_id: str | None = None,
):
    """List projects in the current workspace."""
    projects = service.list_projects(status=status, client_org_id=client_org_id)
    return list_response([service._project_to_response(p) for p in projects])


@router.post(
    "",
    response_model=DataEnvelope[ProjectResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_project(data: ProjectCreate, service: ProjectServiceDep):
    """Create a project."""
    project = service.create_project(data)
    return data_response(service._project_to_response(project), "Project created")


@router.get("/{project_id}", response_model=DataEnvelope[ProjectResponse])
async def get_project(project_id: str, service: ProjectServiceDep):
    """Get a project by ID."""
    project = service.get_project(project_id)
    return data_response(service._project_to_response(project))


@router.put("/{project_id}", response_model=DataEnvelope[ProjectResponse])
async def update_project(project_id: str, data: ProjectUpdate, service: ProjectServiceDep):
    """Update a project."""
    project = service.update_project(project_id, data)
    return data_response(service._project_to_response(project), "Project updated")


@router.delete("/{project_id}", response_model=MessageEnvelope)
async def delete_project(project_id: str, service: ProjectServiceDep):
    """Soft delete a project."""
    service.delete_project(project_id)
    return {"success": True, "message": "Project deleted"}
