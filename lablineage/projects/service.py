"""Project service layer."""

import logging

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from lablineage.access.authorization import (
    Capability,
    require_capability,
    require_workspace_capability,
)
from lablineage.db.models import ObjectType, Organization, Project, ProjectStatus
from lablineage.errors import InvalidProjectDataError
from lablineage.projects.schemas import ProjectCreate, ProjectResponse, ProjectUpdate
from lablineage.tenancy import CallerContext, scoped

logger = logging.getLogger(__name__)


class ProjectService:
    """Service class for project operations."""

    def __init__(self, db: Session, caller: CallerContext):
        """Initialize project service.

        Args:
            db: Database session.
            caller: Calling user context.
        """
        self.db = db
        self.caller = caller

    def _project_to_response(self, project: Project) -> ProjectResponse:
        """Convert project model to response schema."""
        return ProjectResponse(
            id=project.id,
            workspace_id=project.workspace_id,
            name=project.name,
            description=project.description,
            client_org_id=project.client_org_id,
            client_org_name=project.client_org.name if project.client_org else None,
            external_client_name=project.external_client_name,
            executing_org_id=project.executing_org_id,
            executing_org_name=project.executing_org.name,
            workflow_mode=project.workflow_mode,
            status=project.status,
            external_reference=project.external_reference,
            created_by_id=project.created_by_id,
            created_at=project.created_at,
            updated_at=project.updated_at,
        )

    def _with_orgs(self, project_id: str) -> Project | None:
        return (
            self.db.query(Project)
            .options(joinedload(Project.client_org), joinedload(Project.executing_org))
            .filter(Project.id == project_id)
            .first()
        )

    def _check_orgs(self, workspace_id: str, org_ids: set[str]) -> None:
        """Verify every organization exists, is live and belongs to the workspace.

        Raises:
            InvalidProjectDataError: If any organization fails the check.
        """
        found = (
            scoped(self.db.query(func.count(Organization.id)), Organization, workspace_id)
            .filter(Organization.id.in_(org_ids))
            .scalar()
        )
        if found != len(org_ids):
            raise InvalidProjectDataError(
                "Client and executing organizations must exist in this workspace"
            )

    def create_project(self, data: ProjectCreate) -> Project:
        """Create a project.

        The organization check runs first; the insert and the re-fetch with
        organization names run in one transaction.

        Args:
            data: Project creation data.

        Returns:
            Project: Created project with organizations loaded.

        Raises:
            InvalidProjectDataError: If the client is ambiguous or an organization
                is missing or belongs to another workspace.
        """
        require_workspace_capability(self.caller, Capability.EDIT)
        if bool(data.client_org_id) == bool(data.external_client_name):
            raise InvalidProjectDataError(
                "Provide exactly one of client_org_id or external_client_name"
            )

        org_ids = {data.executing_org_id}
        if data.client_org_id:
            org_ids.add(data.client_org_id)
        self._check_orgs(self.caller.workspace_id, org_ids)

        try:
            project = Project(
                workspace_id=self.caller.workspace_id,
                name=data.name,
                description=data.description,
                client_org_id=data.client_org_id,
                external_client_name=data.external_client_name,
                executing_org_id=data.executing_org_id,
                workflow_mode=data.workflow_mode,
                status=data.status,
                external_reference=data.external_reference,
                created_by_id=self.caller.user_id,
            )
            self.db.add(project)
            self.db.flush()
            project = self._with_orgs(project.id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Created project {project.id} in workspace {project.workspace_id}")
        return project

    def list_projects(
        self,
        status: ProjectStatus | None = None,
        client_org_id: str | None = None,
    ) -> list[Project]:
        """List live projects of the workspace, newest first."""
        query = scoped(
            self.db.query(Project).options(
                joinedload(Project.client_org), joinedload(Project.executing_org)
            ),
            Project,
            self.caller.workspace_id,
        )
        if status:
            query = query.filter(Project.status == status)
        if client_org_id:
            query = query.filter(Project.client_org_id == client_org_id)
        return query.order_by(Project.created_at.desc()).all()

    def count_projects(self) -> int:
        """Count live projects of the workspace."""
        return scoped(
            self.db.query(func.count(Project.id)), Project, self.caller.workspace_id
        ).scalar()

    def get_project(self, project_id: str) -> Project:
        """Get a project visible to the caller, including through a grant.

        Raises:
            NotFoundError: If the project is absent, deleted, or not visible.
        """
        require_capability(self.db, self.caller, ObjectType.PROJECT, project_id, Capability.VIEW)
        return self._with_orgs(project_id)

    def update_project(self, project_id: str, data: ProjectUpdate) -> Project:
        """Update the supplied fields of a project.

        Raises:
            NotFoundError: If the project is not visible.
            InvalidProjectDataError: If nothing was supplied or organizations are invalid.
        """
        project = require_capability(
            self.db, self.caller, ObjectType.PROJECT, project_id, Capability.EDIT
        )

        update_data = data.model_dump(exclude_unset=True, exclude_none=True)
        if not update_data:
            raise InvalidProjectDataError("No fields to update")

        if "client_org_id" in update_data and "external_client_name" in update_data:
            raise InvalidProjectDataError(
                "Provide exactly one of client_org_id or external_client_name"
            )

        org_ids = {
            update_data[key] for key in ("client_org_id", "executing_org_id") if key in update_data
        }
        if org_ids:
            self._check_orgs(project.workspace_id, org_ids)

        # Switching the client kind clears the other field
        if "client_org_id" in update_data:
            project.external_client_name = None
        if "external_client_name" in update_data:
            project.client_org_id = None

        for field, value in update_data.items():
            setattr(project, field, value)

        self.db.commit()
        return self._with_orgs(project_id)

    def delete_project(self, project_id: str) -> None:
        """Soft delete a project.

        Raises:
            NotFoundError: If the project is absent, already deleted, or foreign.
        """
        project = require_capability(
            self.db, self.caller, ObjectType.PROJECT, project_id, Capability.EDIT
        )
        project.mark_deleted()
        self.db.commit()
        logger.info(f"Deleted project {project_id}")
