"""API router for trials, mounted under /api/projects/{project_id}/trials."""

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
from lablineage.trials.schemas import (
    ParameterTemplate,
    ParameterTemplateResponse,
    TrialCreate,
    TrialResponse,
    TrialUpdate,
)
from lablineage.trials.service import TrialService

router = APIRouter()


def get_trial_service(db: DbSession, caller: CurrentCaller) -> TrialService:
    """Get trial service dependency."""
    return TrialService(db, caller)


TrialServiceDep = Annotated[TrialService, Depends(get_trial_service)]


@router.get("", response_model=ListEnvelope[TrialResponse])
async def list_trials(project_id: str, service: TrialServiceDep):
    """List trials of a project."""
    trials = service.list_trials(project_id)
    return list_response([service._trial_to_response(t) for t in trials])


@router.post(
    "",
    response_model=DataEnvelope[TrialResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_trial(project_id: str, data: TrialCreate, service: TrialServiceDep):
    """Create a trial."""
    trial = service.create_trial(project_id, data)
    return data_response(service._trial_to_response(trial), "Trial created")


@router.get(
    "/parameter-template",
    response_model=DataEnvelope[ParameterTemplateResponse | None],
)
async def get_parameter_template(project_id: str, service: TrialServiceDep):
    """Get the project's parameter template (null when none is defined)."""
    template = service.get_parameter_template(project_id)
    return data_response(service._template_to_response(template) if template else None)


@router.put("/parameter-template", response_model=DataEnvelope[ParameterTemplateResponse])
async def put_parameter_template(
    project_id: str, data: ParameterTemplate, service: TrialServiceDep
):
    """Replace the project's parameter template."""
    template = service.put_parameter_template(project_id, data)
    return data_response(service._template_to_response(template), "Parameter template saved")


@router.get("/{trial_id}", response_model=DataEnvelope[TrialResponse])
async def get_trial(project_id: str, trial_id: str, service: TrialServiceDep):
    """Get a trial by ID."""
    trial = service.get_trial(project_id, trial_id)
    return data_response(service._trial_to_response(trial))


@router.put("/{trial_id}", response_model=DataEnvelope[TrialResponse])
async def update_trial(
    project_id: str, trial_id: str, data: TrialUpdate, service: TrialServiceDep
):
    """Update a trial."""
    trial = service.update_trial(project_id, trial_id, data)
    return data_response(service._trial_to_response(trial), "Trial updated")


@router.delete("/{trial_id}", response_model=MessageEnvelope)
async def delete_trial(project_id: str, trial_id: str, service: TrialServiceDep):
    """Soft delete a trial."""
    service.delete_trial(project_id, trial_id)
    return {"success": True, "message": "Trial deleted"}
