"""Organization service layer."""

import logging

from sqlalchemy.orm import Session, joinedload

from lablineage.db.models import LifecycleState, Organization, OrganizationType
from lablineage.errors import InvalidDataError, NotFoundError, PermissionDeniedError
from lablineage.organizations.schemas import (
    ContactInfo,
    OrganizationCreate,
    OrganizationResponse,
    OrganizationUpdate,
    PartnerResponse,
)
from lablineage.tenancy import CallerContext, active, scoped

logger = logging.getLogger(__name__)


class OrganizationService:
    """Service class for organization operations within one workspace."""

    def __init__(self, db: Session, caller: CallerContext):
        """Initialize organization service.

        Args:
            db: Database session.
            caller: Calling user context.
        """
        self.db = db
        self.caller = caller

    def _org_to_response(self, org: Organization) -> OrganizationResponse:
        """Convert organization model to response schema."""
        return OrganizationResponse(
            id=org.id,
            workspace_id=org.workspace_id,
            name=org.name,
            type=org.type,
            contact=ContactInfo.model_validate(org.contact) if org.contact else None,
            is_partner=org.is_partner,
            created_at=org.created_at,
            updated_at=org.updated_at,
        )

    def _query(self):
        return scoped(self.db.query(Organization), Organization, self.caller.workspace_id)

    def create_organization(self, data: OrganizationCreate) -> Organization:
        """Create an organization in the caller's workspace.

        Args:
            data: Organization creation data.

        Returns:
            Organization: Created organization.

        Raises:
            PermissionDeniedError: If the caller is not a workspace admin.
        """
        if not self.caller.is_admin:
            raise PermissionDeniedError("Only workspace admins can create organizations")

        org = Organization(
            workspace_id=self.caller.workspace_id,
            name=data.name,
            type=data.type,
            contact=data.contact.model_dump() if data.contact else None,
            is_partner=data.is_partner,
        )
        self.db.add(org)
        self.db.commit()
        self.db.refresh(org)

        logger.info(f"Created organization {org.id} in workspace {org.workspace_id}")
        return org

    def list_organizations(self, org_type: OrganizationType | None = None) -> list[Organization]:
        """List live organizations of the workspace, sorted by name."""
        query = self._query()
        if org_type:
            query = query.filter(Organization.type == org_type)
        return query.order_by(Organization.name).all()

    def get_organization(self, org_id: str) -> Organization | None:
        """Get an organization by ID, scoped to the workspace."""
        return self._query().filter(Organization.id == org_id).first()

    def update_organization(self, org_id: str, data: OrganizationUpdate) -> Organization:
        """Update the supplied fields of an organization.

        Raises:
            NotFoundError: If the organization is not visible.
            InvalidDataError: If no field was supplied.
        """
        org = self.get_organization(org_id)
        if org is None:
            raise NotFoundError("Organization not found")

        update_data = data.model_dump(exclude_unset=True, exclude_none=True)
        if not update_data:
            raise InvalidDataError("No fields to update")

        if "contact" in update_data:
            update_data["contact"] = data.contact.model_dump()

        for field, value in update_data.items():
            setattr(org, field, value)

        self.db.commit()
        self.db.refresh(org)
        return org

    def delete_organization(self, org_id: str) -> None:
        """Soft delete an organization.

        Raises:
            NotFoundError: If the organization is absent or already deleted.
        """
        org = self.get_organization(org_id)
        if org is None:
            raise NotFoundError("Organization not found")

        org.mark_deleted()
        self.db.commit()
        logger.info(f"Deleted organization {org_id}")

    def list_partners(self) -> list[PartnerResponse]:
        """List partner organizations of every workspace.

        Returns:
            list[PartnerResponse]: Partners, excluding the caller's own workspace.
        """
        orgs = (
            active(self.db.query(Organization), Organization)
            .options(joinedload(Organization.workspace))
            .filter(
                Organization.is_partner.is_(True),
                Organization.workspace_id != self.caller.workspace_id,
            )
            .order_by(Organization.name)
            .all()
        )
        return [
            PartnerResponse(
                id=org.id,
                workspace_id=org.workspace_id,
                workspace_name=org.workspace.name,
                name=org.name,
                type=org.type,
            )
            for org in orgs
            if org.workspace.lifecycle == LifecycleState.ACTIVE
        ]
