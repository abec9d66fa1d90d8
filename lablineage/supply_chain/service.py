"""Collaboration request service layer.

A request moves custody of work from one workspace to another:

    pending -> accepted -> in_progress -> completed
    pending -> rejected

Only the receiving workspace drives transitions. Accepting runs the
workflow's side effects in the same transaction as the status change.
"""

import logging
from datetime import UTC, datetime

from sqlalchemy import case, or_, update
from sqlalchemy.orm import Session, joinedload

from lablineage.audit.service import record_audit
from lablineage.db.models import (
    HandoffPriority,
    HandoffStatus,
    HandoffWorkflow,
    LifecycleState,
    ObjectType,
    Organization,
    Project,
    Sample,
    SupplyChainRequest,
    User,
    UserRole,
    Workspace,
)
from lablineage.errors import (
    InvalidDataError,
    InvalidStateTransitionError,
    NotFoundError,
    PermissionDeniedError,
)
from lablineage.samples.schemas import SampleMetadata
from lablineage.supply_chain.schemas import (
    CollaborationComplete,
    CollaborationRequestCreate,
    CollaborationRequestResponse,
    CollaborationRespond,
    MaterialData,
)
from lablineage.tenancy import CallerContext, active, scoped

logger = logging.getLogger(__name__)

# Workflows whose acceptance opens a linked project in the receiving workspace
PROJECT_WORKFLOWS = {
    HandoffWorkflow.MATERIAL_TRANSFER,
    HandoffWorkflow.PRODUCT_CONTINUATION,
    HandoffWorkflow.SUPPLY_CHAIN,
}
# Workflows that also copy the material items over as samples
MATERIAL_WORKFLOWS = {HandoffWorkflow.MATERIAL_TRANSFER, HandoffWorkflow.SUPPLY_CHAIN}

PRIORITY_RANK = case(
    (SupplyChainRequest.priority == HandoffPriority.URGENT, 0),
    (SupplyChainRequest.priority == HandoffPriority.HIGH, 1),
    (SupplyChainRequest.priority == HandoffPriority.MEDIUM, 2),
    else_=3,
)


class CollaborationService:
    """Service class for cross-workspace collaboration requests."""

    def __init__(self, db: Session, caller: CallerContext):
        """Initialize collaboration service.

        Args:
            db: Database session.
            caller: Calling user context.
        """
        self.db = db
        self.caller = caller

    def _request_to_response(self, request: SupplyChainRequest) -> CollaborationRequestResponse:
        """Convert request model to response schema."""
        return CollaborationRequestResponse(
            id=request.id,
            direction=(
                "outgoing" if request.from_workspace_id == self.caller.workspace_id else "incoming"
            ),
            from_org_id=request.from_org_id,
            from_org_name=request.from_org.name,
            to_org_id=request.to_org_id,
            to_org_name=request.to_org.name,
            from_project_id=request.from_project_id,
            from_project_name=request.from_project.name,
            from_workspace_id=request.from_workspace_id,
            to_workspace_id=request.to_workspace_id,
            workflow_type=request.workflow_type,
            status=request.status,
            priority=request.priority,
            material_data=(
                MaterialData.model_validate(request.material_data)
                if request.material_data
                else None
            ),
            requirements=request.requirements,
            due_date=request.due_date,
            notes=request.notes,
            response_notes=request.response_notes,
            results=request.results,
            receiving_project_id=request.receiving_project_id,
            created_by_id=request.created_by_id,
            assigned_to_id=request.assigned_to_id,
            responded_by_id=request.responded_by_id,
            responded_at=request.responded_at,
            completed_at=request.completed_at,
            created_at=request.created_at,
            updated_at=request.updated_at,
        )

    def _require_writer(self) -> None:
        if self.caller.role == UserRole.VIEWER:
            raise PermissionDeniedError("Viewers cannot manage collaboration requests")

    def create_request(self, data: CollaborationRequestCreate) -> SupplyChainRequest:
        """Send a collaboration request to an organization in another workspace.

        Args:
            data: Request creation data.

        Returns:
            SupplyChainRequest: The pending request.

        Raises:
            InvalidDataError: If the sending organization or project is not in the
                caller's workspace, the receiver is unknown or in the same
                workspace, or material items reference samples outside the project.
        """
        self._require_writer()

        from_org = (
            scoped(self.db.query(Organization), Organization, self.caller.workspace_id)
            .filter(Organization.id == data.from_org_id)
            .first()
        )
        if from_org is None:
            raise InvalidDataError("Sending organization not found in this workspace")

        to_org = (
            active(self.db.query(Organization), Organization)
            .join(Workspace, Workspace.id == Organization.workspace_id)
            .filter(
                Organization.id == data.to_org_id,
                Workspace.lifecycle == LifecycleState.ACTIVE,
            )
            .first()
        )
        if to_org is None:
            raise InvalidDataError("Receiving organization not found")
        if to_org.workspace_id == self.caller.workspace_id:
            raise InvalidDataError("Collaboration requests must target another workspace")

        project = (
            scoped(self.db.query(Project), Project, self.caller.workspace_id)
            .filter(Project.id == data.from_project_id)
            .first()
        )
        if project is None:
            raise InvalidDataError("Project not found in this workspace")

        if data.material_data:
            for item in data.material_data.items:
                if item.sample_id is None:
                    continue
                sample = (
                    scoped(self.db.query(Sample), Sample, self.caller.workspace_id)
                    .filter(Sample.id == item.sample_id, Sample.project_id == project.id)
                    .first()
                )
                if sample is None:
                    raise InvalidDataError(f"Sample {item.sample_id} not found in the project")

        request = SupplyChainRequest(
            from_org_id=from_org.id,
            to_org_id=to_org.id,
            from_project_id=project.id,
            from_workspace_id=self.caller.workspace_id,
            to_workspace_id=to_org.workspace_id,
            workflow_type=data.workflow_type,
            status=HandoffStatus.PENDING,
            priority=data.priority,
            material_data=data.material_data.model_dump(mode="json") if data.material_data else None,
            requirements=data.requirements,
            due_date=data.due_date,
            notes=data.notes,
            created_by_id=self.caller.user_id,
        )
        self.db.add(request)
        self.db.flush()
        record_audit(
            self.db,
            self.caller,
            ObjectType.SUPPLY_CHAIN_REQUEST,
            request.id,
            "create",
            {"workflow_type": request.workflow_type.value, "to_org_id": request.to_org_id},
        )
        self.db.commit()
        self.db.refresh(request)

        logger.info(
            f"Collaboration request {request.id} ({request.workflow_type.value}) sent from "
            f"workspace {request.from_workspace_id} to {request.to_workspace_id}"
        )
        return request

    def list_requests(
        self,
        direction: str | None = None,
        status: HandoffStatus | None = None,
        workflow_type: HandoffWorkflow | None = None,
        priority: HandoffPriority | None = None,
    ) -> list[SupplyChainRequest]:
        """List requests the workspace sent or received, most urgent first.

        Args:
            direction: "incoming", "outgoing" or None for both.
            status: Optional status filter.
            workflow_type: Optional workflow filter.
            priority: Optional priority filter.

        Returns:
            list[SupplyChainRequest]: Ordered by priority, then newest first.
        """
        query = self.db.query(SupplyChainRequest).options(
            joinedload(SupplyChainRequest.from_org),
            joinedload(SupplyChainRequest.to_org),
            joinedload(SupplyChainRequest.from_project),
        )
        workspace_id = self.caller.workspace_id
        if direction == "incoming":
            query = query.filter(SupplyChainRequest.to_workspace_id == workspace_id)
        elif direction == "outgoing":
            query = query.filter(SupplyChainRequest.from_workspace_id == workspace_id)
        else:
            query = query.filter(
                or_(
                    SupplyChainRequest.to_workspace_id == workspace_id,
                    SupplyChainRequest.from_workspace_id == workspace_id,
                )
            )

        if status:
            query = query.filter(SupplyChainRequest.status == status)
        if workflow_type:
            query = query.filter(SupplyChainRequest.workflow_type == workflow_type)
        if priority:
            query = query.filter(SupplyChainRequest.priority == priority)

        return query.order_by(PRIORITY_RANK, SupplyChainRequest.created_at.desc()).all()

    def get_request(self, request_id: str) -> SupplyChainRequest:
        """Get a request visible to the sending or receiving workspace.

        Raises:
            NotFoundError: If the request does not exist or involves neither side.
        """
        request = (
            self.db.query(SupplyChainRequest)
            .filter(
                SupplyChainRequest.id == request_id,
                or_(
                    SupplyChainRequest.to_workspace_id == self.caller.workspace_id,
                    SupplyChainRequest.from_workspace_id == self.caller.workspace_id,
                ),
            )
            .first()
        )
        if request is None:
            raise NotFoundError("Collaboration request not found")
        return request

    def _receiver_request(self, request_id: str) -> SupplyChainRequest:
        request = self.get_request(request_id)
        if request.to_workspace_id != self.caller.workspace_id:
            raise PermissionDeniedError("Only the receiving workspace can respond to a request")
        self._require_writer()
        return request

    def _move(
        self,
        request: SupplyChainRequest,
        expected: HandoffStatus,
        target: HandoffStatus,
        **values,
    ) -> None:
        """Compare-and-swap the request status and audit the move. Does not commit.

        Raises:
            InvalidStateTransitionError: If the request is not in ``expected``.
        """
        self._expect_status(request, expected, target)
        result = self.db.execute(
            update(SupplyChainRequest)
            .where(SupplyChainRequest.id == request.id, SupplyChainRequest.status == expected)
            .values(status=target, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidStateTransitionError("Request status changed concurrently, reload and retry")
        record_audit(
            self.db,
            self.caller,
            ObjectType.SUPPLY_CHAIN_REQUEST,
            request.id,
            target.value,
            {"from": expected.value},
        )

    @staticmethod
    def _expect_status(
        request: SupplyChainRequest, expected: HandoffStatus, target: HandoffStatus
    ) -> None:
        if request.status != expected:
            raise InvalidStateTransitionError(
                f"Cannot move request from {request.status.value} to {target.value}"
            )

    def _check_assignee(self, user_id: str) -> None:
        user = (
            self.db.query(User.id)
            .filter(
                User.id == user_id,
                User.workspace_id == self.caller.workspace_id,
                User.is_active.is_(True),
            )
            .first()
        )
        if user is None:
            raise InvalidDataError("Assignee must be an active member of the receiving workspace")

    def _open_receiving_project(self, request: SupplyChainRequest) -> Project:
        project = Project(
            workspace_id=request.to_workspace_id,
            name=f"{request.from_project.name} ({request.from_org.name})",
            description=request.requirements,
            external_client_name=request.from_org.name,
            executing_org_id=request.to_org_id,
            external_reference=request.from_project_id,
            created_by_id=self.caller.user_id,
        )
        self.db.add(project)
        self.db.flush()

        if request.workflow_type in MATERIAL_WORKFLOWS and request.material_data:
            material = MaterialData.model_validate(request.material_data)
            for item in material.items:
                metadata = SampleMetadata(
                    attributes={"quantity": item.quantity, "unit": item.unit, "notes": item.notes}
                )
                self.db.add(
                    Sample(
                        workspace_id=request.to_workspace_id,
                        project_id=project.id,
                        name=item.name,
                        sample_type=item.sample_type,
                        sample_metadata=metadata.model_dump(mode="json"),
                        external_reference=item.sample_id,
                        created_by_id=self.caller.user_id,
                    )
                )
            self.db.flush()
        return project

    def accept_request(self, request_id: str, data: CollaborationRespond) -> SupplyChainRequest:
        """Accept a pending request and run its workflow side effects.

        Material transfer and supply chain requests open a project in the
        receiving workspace holding one sample per material item. Product
        continuation opens the project only. Analysis-only requests create
        nothing on the receiving side.

        Raises:
            PermissionDeniedError: If the caller is on the sending side.
            InvalidStateTransitionError: If the request is not pending.
            InvalidDataError: If the assignee is not in the receiving workspace.
        """
        request = self._receiver_request(request_id)
        self._expect_status(request, HandoffStatus.PENDING, HandoffStatus.ACCEPTED)
        if data.assigned_to_id:
            self._check_assignee(data.assigned_to_id)

        try:
            self._move(
                request,
                HandoffStatus.PENDING,
                HandoffStatus.ACCEPTED,
                response_notes=data.response_notes,
                assigned_to_id=data.assigned_to_id,
                responded_by_id=self.caller.user_id,
                responded_at=datetime.now(UTC),
            )
            if request.workflow_type in PROJECT_WORKFLOWS:
                project = self._open_receiving_project(request)
                request.receiving_project_id = project.id
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(request)
        logger.info(f"Collaboration request {request.id} accepted by {self.caller.user_id}")
        return request

    def reject_request(self, request_id: str, data: CollaborationRespond) -> SupplyChainRequest:
        """Reject a pending request. Rejection is final."""
        request = self._receiver_request(request_id)
        try:
            self._move(
                request,
                HandoffStatus.PENDING,
                HandoffStatus.REJECTED,
                response_notes=data.response_notes,
                responded_by_id=self.caller.user_id,
                responded_at=datetime.now(UTC),
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(request)
        logger.info(f"Collaboration request {request.id} rejected by {self.caller.user_id}")
        return request

    def start_request(self, request_id: str) -> SupplyChainRequest:
        """Mark an accepted request as in progress."""
        request = self._receiver_request(request_id)
        try:
            self._move(request, HandoffStatus.ACCEPTED, HandoffStatus.IN_PROGRESS)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(request)
        return request

    def complete_request(self, request_id: str, data: CollaborationComplete) -> SupplyChainRequest:
        """Complete an in-progress request, storing results for the sender."""
        request = self._receiver_request(request_id)
        values = {"results": data.results, "completed_at": datetime.now(UTC)}
        if data.response_notes is not None:
            values["response_notes"] = data.response_notes
        try:
            self._move(request, HandoffStatus.IN_PROGRESS, HandoffStatus.COMPLETED, **values)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(request)
        logger.info(f"Collaboration request {request.id} completed")
        return request
