"""Workspace service layer."""

from sqlalchemy import func
from sqlalchemy.orm import Session

from lablineage.db.models import (
    Batch,
    HandoffStatus,
    Organization,
    Project,
    Sample,
    SupplyChainRequest,
    User,
    Workspace,
)
from lablineage.errors import NotFoundError
from lablineage.tenancy import CallerContext, active, scoped
from lablineage.workspaces.schemas import WorkspaceSummary


class WorkspaceService:
    """Service class for the caller's workspace."""

    def __init__(self, db: Session, caller: CallerContext):
        """Initialize workspace service.

        Args:
            db: Database session.
            caller: Calling user context.
        """
        self.db = db
        self.caller = caller

    def _count(self, model) -> int:
        return scoped(
            self.db.query(func.count(model.id)), model, self.caller.workspace_id
        ).scalar()

    def get_summary(self) -> WorkspaceSummary:
        """Summarize the caller's workspace.

        Raises:
            NotFoundError: If the workspace is deleted.
        """
        workspace = (
            active(self.db.query(Workspace), Workspace)
            .filter(Workspace.id == self.caller.workspace_id)
            .first()
        )
        if workspace is None:
            raise NotFoundError("Workspace not found")

        user_count = (
            self.db.query(func.count(User.id))
            .filter(User.workspace_id == workspace.id, User.is_active.is_(True))
            .scalar()
        )
        pending_incoming = (
            self.db.query(func.count(SupplyChainRequest.id))
            .filter(
                SupplyChainRequest.to_workspace_id == workspace.id,
                SupplyChainRequest.status == HandoffStatus.PENDING,
            )
            .scalar()
        )

        return WorkspaceSummary(
            id=workspace.id,
            name=workspace.name,
            slug=workspace.slug,
            parent_workspace_id=workspace.parent_workspace_id,
            user_count=user_count,
            organization_count=self._count(Organization),
            project_count=self._count(Project),
            sample_count=self._count(Sample),
            batch_count=self._count(Batch),
            pending_incoming_requests=pending_incoming,
            created_at=workspace.created_at,
        )

    def list_members(self) -> list[User]:
        """List users of the caller's workspace, sorted by name."""
        return (
            self.db.query(User)
            .filter(User.workspace_id == self.caller.workspace_id)
            .order_by(User.full_name)
            .all()
        )
