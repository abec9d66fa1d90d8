"""Batch service layer.

Batch status only moves forward along created, in_progress, ready, sent,
completed. Skipping ahead is allowed. ``failed`` can be entered from any
non-terminal status. Completed and failed batches accept annotations only.
"""

import logging
from datetime import UTC, datetime

from sqlalchemy import func, update
from sqlalchemy.orm import Session, joinedload

from lablineage.access.authorization import (
    Capability,
    require_capability,
    require_workspace_capability,
)
from lablineage.audit.service import record_audit
from lablineage.batches.schemas import (
    Annotation,
    AnnotationCreate,
    BatchCreate,
    BatchItemCreate,
    BatchItemResponse,
    BatchResponse,
    BatchUpdate,
)
from lablineage.db.models import (
    Analysis,
    AnalysisStatus,
    Batch,
    BatchItem,
    BatchStatus,
    DerivedSample,
    ExecutionMode,
    ObjectType,
    Organization,
    Sample,
)
from lablineage.errors import (
    AlreadyExistsError,
    IncompleteBatchError,
    InvalidDataError,
    InvalidStateTransitionError,
)
from lablineage.tenancy import CallerContext, active, scoped

logger = logging.getLogger(__name__)

STATUS_ORDER = [
    BatchStatus.CREATED,
    BatchStatus.IN_PROGRESS,
    BatchStatus.READY,
    BatchStatus.SENT,
    BatchStatus.COMPLETED,
]
TERMINAL_STATUSES = {BatchStatus.COMPLETED, BatchStatus.FAILED}
OPEN_FOR_ANALYSIS = {BatchStatus.CREATED, BatchStatus.IN_PROGRESS, BatchStatus.READY}
FINISHED_ANALYSIS = {AnalysisStatus.COMPLETED, AnalysisStatus.FAILED}


def can_transition(current: BatchStatus, target: BatchStatus) -> bool:
    """Whether a batch may move from ``current`` to ``target``."""
    if current in TERMINAL_STATUSES:
        return False
    if target == BatchStatus.FAILED:
        return True
    return STATUS_ORDER.index(target) > STATUS_ORDER.index(current)


class BatchService:
    """Service class for batch operations."""

    def __init__(self, db: Session, caller: CallerContext):
        """Initialize batch service.

        Args:
            db: Database session.
            caller: Calling user context.
        """
        self.db = db
        self.caller = caller

    def _batch_to_response(self, batch: Batch) -> BatchResponse:
        """Convert batch model to response schema."""
        analysis_count = (
            active(self.db.query(func.count(Analysis.id)), Analysis)
            .filter(Analysis.batch_id == batch.id)
            .scalar()
        )
        return BatchResponse(
            id=batch.id,
            workspace_id=batch.workspace_id,
            batch_code=batch.batch_code,
            description=batch.description,
            status=batch.status,
            execution_mode=batch.execution_mode,
            executed_by_org_id=batch.executed_by_org_id,
            executed_by_org_name=batch.executed_by_org.name if batch.executed_by_org else None,
            external_reference=batch.external_reference,
            items=[
                BatchItemResponse(
                    id=item.id,
                    sample_id=item.sample_id,
                    sample_name=item.sample.name,
                    derived_sample_id=item.derived_sample_id,
                    sequence=item.sequence,
                )
                for item in batch.items
            ],
            annotations=[Annotation.model_validate(a) for a in batch.annotations or []],
            analysis_count=analysis_count,
            sent_at=batch.sent_at,
            completed_at=batch.completed_at,
            created_at=batch.created_at,
            updated_at=batch.updated_at,
        )

    def _check_org(self, org_id: str) -> None:
        org = (
            scoped(self.db.query(Organization), Organization, self.caller.workspace_id)
            .filter(Organization.id == org_id)
            .first()
        )
        if org is None:
            raise InvalidDataError("Executing organization not found in this workspace")

    def _check_items(self, items: list[BatchItemCreate]) -> None:
        """Validate every item before anything is written.

        Raises:
            InvalidDataError: On duplicates, or samples and derived samples that
                are not live in the caller's workspace.
        """
        sample_ids = [item.sample_id for item in items]
        if len(sample_ids) != len(set(sample_ids)):
            raise InvalidDataError("A sample can appear only once in a batch")

        for item in items:
            sample = (
                scoped(self.db.query(Sample), Sample, self.caller.workspace_id)
                .filter(Sample.id == item.sample_id)
                .first()
            )
            if sample is None:
                raise InvalidDataError(f"Sample {item.sample_id} not found in this workspace")
            if item.derived_sample_id:
                derived = (
                    scoped(self.db.query(DerivedSample), DerivedSample, self.caller.workspace_id)
                    .filter(
                        DerivedSample.id == item.derived_sample_id,
                        DerivedSample.parent_sample_id == sample.id,
                    )
                    .first()
                )
                if derived is None:
                    raise InvalidDataError(
                        f"Derived sample {item.derived_sample_id} does not belong to "
                        f"sample {item.sample_id}"
                    )

    def create_batch(self, data: BatchCreate) -> Batch:
        """Create a batch and its items in one transaction.

        Args:
            data: Batch creation data.

        Returns:
            Batch: Created batch with items.

        Raises:
            InvalidDataError: If external execution lacks a reference or an item is invalid.
            AlreadyExistsError: If the batch code is already used in the workspace.
        """
        require_workspace_capability(self.caller, Capability.EDIT)
        if data.execution_mode == ExecutionMode.EXTERNAL and not data.external_reference:
            raise InvalidDataError("External execution requires an external reference")
        if data.executed_by_org_id:
            self._check_org(data.executed_by_org_id)

        # Codes stay reserved after soft delete
        existing = (
            self.db.query(Batch.id)
            .filter(
                Batch.workspace_id == self.caller.workspace_id,
                Batch.batch_code == data.batch_code,
            )
            .first()
        )
        if existing:
            raise AlreadyExistsError(f"Batch code '{data.batch_code}' already exists")

        self._check_items(data.items)

        try:
            batch = Batch(
                workspace_id=self.caller.workspace_id,
                batch_code=data.batch_code,
                description=data.description,
                execution_mode=data.execution_mode,
                executed_by_org_id=data.executed_by_org_id,
                external_reference=data.external_reference,
                annotations=[],
                created_by_id=self.caller.user_id,
            )
            self.db.add(batch)
            self.db.flush()

            for sequence, item in enumerate(data.items, start=1):
                self.db.add(
                    BatchItem(
                        batch_id=batch.id,
                        sample_id=item.sample_id,
                        derived_sample_id=item.derived_sample_id,
                        sequence=sequence,
                    )
                )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(batch)
        logger.info(f"Created batch {batch.id} with {len(data.items)} items")
        return batch

    def list_batches(self, status: BatchStatus | None = None) -> list[Batch]:
        """List live batches of the workspace, newest first."""
        query = scoped(
            self.db.query(Batch).options(
                joinedload(Batch.items).joinedload(BatchItem.sample),
                joinedload(Batch.executed_by_org),
            ),
            Batch,
            self.caller.workspace_id,
        )
        if status:
            query = query.filter(Batch.status == status)
        return query.order_by(Batch.created_at.desc()).all()

    def get_batch(self, batch_id: str) -> Batch:
        """Get a batch visible to the caller."""
        return require_capability(self.db, self.caller, ObjectType.BATCH, batch_id, Capability.VIEW)

    def update_batch(self, batch_id: str, data: BatchUpdate) -> Batch:
        """Update the supplied fields of an open batch.

        Raises:
            InvalidStateTransitionError: If the batch is completed or failed.
            InvalidDataError: If nothing was supplied or external execution lacks a reference.
        """
        batch = require_capability(self.db, self.caller, ObjectType.BATCH, batch_id, Capability.EDIT)
        if batch.status in TERMINAL_STATUSES:
            raise InvalidStateTransitionError(
                f"Batch is {batch.status.value}; only annotations may be added"
            )

        update_data = data.model_dump(exclude_unset=True, exclude_none=True)
        if not update_data:
            raise InvalidDataError("No fields to update")
        if "executed_by_org_id" in update_data:
            self._check_org(update_data["executed_by_org_id"])

        mode = update_data.get("execution_mode", batch.execution_mode)
        reference = update_data.get("external_reference", batch.external_reference)
        if mode == ExecutionMode.EXTERNAL and not reference:
            raise InvalidDataError("External execution requires an external reference")

        for field, value in update_data.items():
            setattr(batch, field, value)

        self.db.commit()
        self.db.refresh(batch)
        return batch

    def transition_batch(self, batch_id: str, target: BatchStatus) -> Batch:
        """Move a batch to a later status, or to failed.

        Args:
            batch_id: Batch to move.
            target: Requested status.

        Returns:
            Batch: The updated batch.

        Raises:
            InvalidStateTransitionError: If the move goes backwards, repeats the
                current status, or leaves a terminal status.
            IncompleteBatchError: If completing while analyses are unfinished.
        """
        batch = require_capability(self.db, self.caller, ObjectType.BATCH, batch_id, Capability.EDIT)
        current = batch.status
        if not can_transition(current, target):
            raise InvalidStateTransitionError(
                f"Cannot move batch from {current.value} to {target.value}"
            )

        values = {"status": target}
        now = datetime.now(UTC)
        if target == BatchStatus.SENT:
            values["sent_at"] = now
        elif target == BatchStatus.COMPLETED:
            values["completed_at"] = now

        result = self.db.execute(
            update(Batch)
            .where(Batch.id == batch.id, Batch.status == current)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            raise InvalidStateTransitionError("Batch status changed concurrently, reload and retry")

        if target == BatchStatus.COMPLETED:
            # Counted after the swap, under its row lock, with a locking read
            unfinished = len(
                active(self.db.query(Analysis.id), Analysis)
                .filter(
                    Analysis.batch_id == batch.id,
                    Analysis.status.notin_(FINISHED_ANALYSIS),
                )
                .with_for_update()
                .all()
            )
            if unfinished:
                self.db.rollback()
                raise IncompleteBatchError(
                    f"Batch has {unfinished} unfinished analyses and cannot be completed"
                )

        record_audit(
            self.db,
            self.caller,
            ObjectType.BATCH,
            batch.id,
            "transition",
            {"from": current.value, "to": target.value},
        )
        self.db.commit()
        self.db.refresh(batch)

        logger.info(f"Batch {batch.id} moved from {current.value} to {target.value}")
        return batch

    def add_annotation(self, batch_id: str, data: AnnotationCreate) -> Batch:
        """Append an annotation. Allowed in every status, terminal included."""
        batch = require_capability(self.db, self.caller, ObjectType.BATCH, batch_id, Capability.EDIT)
        annotation = Annotation(
            text=data.text, author_id=self.caller.user_id, created_at=datetime.now(UTC)
        )
        # Reassign so the JSON column is flagged dirty
        batch.annotations = [*(batch.annotations or []), annotation.model_dump(mode="json")]
        self.db.commit()
        self.db.refresh(batch)
        return batch

    def delete_batch(self, batch_id: str) -> None:
        """Soft delete a batch."""
        batch = require_capability(self.db, self.caller, ObjectType.BATCH, batch_id, Capability.EDIT)
        batch.mark_deleted()
        self.db.commit()
        logger.info(f"Deleted batch {batch_id}")
