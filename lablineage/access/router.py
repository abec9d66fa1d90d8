"""API router for access grants."""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from lablineage.access.authorization import Capability, require_capability
from lablineage.access.schemas import GrantCreate, GrantResponse, GrantUpdate
from lablineage.access.service import AccessGrantService
from lablineage.db.models import ObjectType
from lablineage.dependencies import CurrentCaller, DbSession
from lablineage.responses import (
    DataEnvelope,
    ListEnvelope,
    MessageEnvelope,
    data_response,
    list_response,
)

router = APIRouter()


def get_access_service(db: DbSession, caller: CurrentCaller) -> AccessGrantService:
    """Get access grant service dependency."""
    return AccessGrantService(db, caller)


AccessService = Annotated[AccessGrantService, Depends(get_access_service)]


@router.post(
    "/grant",
    response_model=DataEnvelope[GrantResponse],
    status_code=status.HTTP_201_CREATED,
)
async def grant_access(data: GrantCreate, service: AccessService):
    """Grant a user access to an object. Requires full capability on the object."""
    require_capability(
        service.db, service.caller, data.object_type, data.object_id, Capability.FULL
    )
    grant = service.grant_access(data.user_id, data.object_type, data.object_id, data.access_level)
    return data_response(service._grant_to_response(grant), "Access granted")


@router.get("/{object_type}/{object_id}", response_model=ListEnvelope[GrantResponse])
async def list_grants(object_type: ObjectType, object_id: str, service: AccessService):
    """List the grants on an object."""
    require_capability(service.db, service.caller, object_type, object_id, Capability.VIEW)
    grants = service.list_grants(object_type, object_id)
    items = [service._grant_to_response(g) for g in grants]
    return list_response(items)


@router.put(
    "/{user_id}/{object_type}/{object_id}",
    response_model=DataEnvelope[GrantResponse],
)
async def update_access_level(
    user_id: str,
    object_type: ObjectType,
    object_id: str,
    data: GrantUpdate,
    service: AccessService,
):
    """Change the level of a grant."""
    require_capability(service.db, service.caller, object_type, object_id, Capability.FULL)
    grant = service.update_access_level(user_id, object_type, object_id, data.access_level)
    return data_response(service._grant_to_response(grant), "Access level updated")


@router.delete("/{user_id}/{object_type}/{object_id}", response_model=MessageEnvelope)
async def revoke_access(
    user_id: str,
    object_type: ObjectType,
    object_id: str,
    service: AccessService,
):
    """Revoke a grant."""
    require_capability(service.db, service.caller, object_type, object_id, Capability.FULL)
    service.revoke_access(user_id, object_type, object_id)
    return {"success": True, "message": "Access revoked"}
