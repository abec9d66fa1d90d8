"""API router for organizations."""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from lablineage.db.models import OrganizationType
from lablineage.dependencies import CurrentCaller, DbSession
from lablineage.errors import NotFoundError
from lablineage.organizations.schemas import (
    OrganizationCreate,
    OrganizationResponse,
    OrganizationUpdate,
    PartnerResponse,
)
from lablineage.organizations.service import OrganizationService
from lablineage.responses import (
    DataEnvelope,
    ListEnvelope,
    MessageEnvelope,
    data_response,
    list_response,
)

router = APIRouter()


def get_organization_service(db: DbSession, caller: CurrentCaller) -> OrganizationService:
    """Get organization service dependency."""
    return OrganizationService(db, caller)


OrgService = Annotated[OrganizationService, Depends(get_organization_service)]


@router.get("", response_model=ListEnvelope[OrganizationResponse])
async def list_organizations(service: OrgService, type: OrganizationType | None = None):
    """List organizations in the current workspace."""
    orgs = service.list_organizations(org_type=type)
    return list_response([service._org_to_response(o) for o in orgs])


@router.post(
    "",
    response_model=DataEnvelope[OrganizationResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_organization(data: OrganizationCreate, service: OrgService):
    """Create an organization (workspace admins only)."""
    org = service.create_organization(data)
    return data_response(service._org_to_response(org), "Organization created")


@router.get("/partners", response_model=ListEnvelope[PartnerResponse])
async def list_partners(service: OrgService):
    """List partner organizations in other workspaces."""
    return list_response(service.list_partners())


@router.get("/{org_id}", response_model=DataEnvelope[OrganizationResponse])
async def get_organization(org_id: str, service: OrgService):
    """Get an organization by ID."""
    org = service.get_organization(org_id)
    if org is None:
        raise NotFoundError("Organization not found")
    return data_response(service._org_to_response(org))


@router.put("/{org_id}", response_model=DataEnvelope[OrganizationResponse])
async def update_organization(org_id: str, data: OrganizationUpdate, service: OrgService):
    """Update an organization."""
    org = service.update_organization(org_id, data)
    return data_response(service._org_to_response(org), "Organization updated")


@router.delete("/{org_id}", response_model=MessageEnvelope)
async def delete_organization(org_id: str, service: OrgService):
    """Soft delete an organization."""
    service.delete_organization(org_id)
    return {"success": True, "message": "Organization deleted"}
