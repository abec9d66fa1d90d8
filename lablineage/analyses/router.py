"""API routers for analyses and the analysis type catalog."""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from lablineage.analyses.schemas import (
    AnalysisCreate,
    AnalysisResponse,
    AnalysisStatusUpdate,
    AnalysisTypeCreate,
    AnalysisTypeResponse,
)
from lablineage.analyses.service import AnalysisService, AnalysisTypeService
from lablineage.dependencies import CurrentCaller, DbSession
from lablineage.responses import DataEnvelope, ListEnvelope, data_response, list_response

router = APIRouter()
types_router = APIRouter()


def get_analysis_service(db: DbSession, caller: CurrentCaller) -> AnalysisService:
    """Get analysis service dependency."""
    return AnalysisService(db, caller)


def get_analysis_type_service(db: DbSession, caller: CurrentCaller) -> AnalysisTypeService:
    """Get analysis type service dependency."""
    return AnalysisTypeService(db, caller)


AnalysisServiceDep = Annotated[AnalysisService, Depends(get_analysis_service)]
AnalysisTypeServiceDep = Annotated[AnalysisTypeService, Depends(get_analysis_type_service)]


@router.get("", response_model=ListEnvelope[AnalysisResponse])
async def list_analyses(
    service: AnalysisServiceDep,
    batch_id: str | None = None,
    sample_id: str | None = None,
    analysis_type_id: str | None = None,
    authoritative_only: bool = False,
):
    """List analyses in the current workspace."""
    analyses = service.list_analyses(
        batch_id=batch_id,
        sample_id=sample_id,
        analysis_type_id=analysis_type_id,
        authoritative_only=authoritative_only,
    )
    return list_response([service._analysis_to_response(a) for a in analyses])


@router.post(
    "",
    response_model=DataEnvelope[AnalysisResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_analysis(data: AnalysisCreate, service: AnalysisServiceDep):
    """Record an analysis, optionally superseding the current authoritative one."""
    analysis = service.create_analysis(data)
    return data_response(service._analysis_to_response(analysis), "Analysis recorded")


@router.get("/authoritative", response_model=DataEnvelope[AnalysisResponse | None])
async def get_authoritative(
    sample_id: str, analysis_type_id: str, service: AnalysisServiceDep
):
    """Get the authoritative analysis for a sample and type (null when none)."""
    analysis = service.get_authoritative(sample_id, analysis_type_id)
    return data_response(service._analysis_to_response(analysis) if analysis else None)


@router.get("/{analysis_id}", response_model=DataEnvelope[AnalysisResponse])
async def get_analysis(analysis_id: str, service: AnalysisServiceDep):
    """Get an analysis by ID."""
    analysis = service.get_analysis(analysis_id)
    return data_response(service._analysis_to_response(analysis))


@router.put("/{analysis_id}/status", response_model=DataEnvelope[AnalysisResponse])
async def update_analysis_status(
    analysis_id: str, data: AnalysisStatusUpdate, service: AnalysisServiceDep
):
    """Move an analysis forward."""
    analysis = service.update_status(analysis_id, data)
    return data_response(service._analysis_to_response(analysis), "Analysis updated")


@types_router.get("", response_model=ListEnvelope[AnalysisTypeResponse])
async def list_analysis_types(
    service: AnalysisTypeServiceDep,
    category: str | None = None,
    include_inactive: bool = False,
):
    """List analysis types."""
    types = service.list_types(category=category, include_inactive=include_inactive)
    return list_response([AnalysisTypeResponse.model_validate(t) for t in types])


@types_router.post(
    "",
    response_model=DataEnvelope[AnalysisTypeResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_analysis_type(data: AnalysisTypeCreate, service: AnalysisTypeServiceDep):
    """Add an analysis type (workspace admins only)."""
    analysis_type = service.create_type(data)
    return data_response(AnalysisTypeResponse.model_validate(analysis_type), "Analysis type created")
