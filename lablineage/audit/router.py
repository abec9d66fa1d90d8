"""API router for the audit trail."""

from typing import Annotated

from fastapi import APIRouter, Depends

from lablineage.audit.schemas import AuditEntryResponse
from lablineage.audit.service import AuditService
from lablineage.db.models import ObjectType
from lablineage.dependencies import CurrentCaller, DbSession
from lablineage.responses import ListEnvelope, list_response

router = APIRouter()


def get_audit_service(db: DbSession, caller: CurrentCaller) -> AuditService:
    """Get audit service dependency."""
    return AuditService(db, caller)


AuditServiceDep = Annotated[AuditService, Depends(get_audit_service)]


@router.get("/{object_type}/{object_id}", response_model=ListEnvelope[AuditEntryResponse])
async def list_audit_entries(object_type: ObjectType, object_id: str, service: AuditServiceDep):
    """List the audit trail of an object."""
    entries = service.list_entries(object_type, object_id)
    return list_response([AuditEntryResponse.model_validate(e) for e in entries])
