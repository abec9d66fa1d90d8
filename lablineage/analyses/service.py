"""Analysis and analysis type service layer.

At most one analysis per (sample, analysis type) is authoritative. A new
result takes over authority only by superseding the current one: the
predecessor is demoted with a compare-and-swap and the successor inserted in
the same transaction, so concurrent supersessions of one analysis leave
exactly one winner.
"""

import logging

from datetime import UTC, datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from lablineage.access.authorization import Capability, require_capability
from lablineage.analyses.schemas import (
    AnalysisCreate,
    AnalysisResponse,
    AnalysisStatusUpdate,
    AnalysisTypeCreate,
)
from lablineage.audit.service import record_audit
from lablineage.batches.service import OPEN_FOR_ANALYSIS
from lablineage.db.models import (
    Analysis,
    AnalysisStatus,
    AnalysisType,
    Batch,
    BatchItem,
    ObjectType,
)
from lablineage.errors import (
    AlreadyExistsError,
    InvalidDataError,
    InvalidStateTransitionError,
    NotFoundError,
    PermissionDeniedError,
    StaleSupersessionError,
)
from lablineage.tenancy import CallerContext, scoped

logger = logging.getLogger(__name__)

ANALYSIS_TRANSITIONS = {
    AnalysisStatus.PENDING: {
        AnalysisStatus.IN_PROGRESS,
        AnalysisStatus.COMPLETED,
        AnalysisStatus.FAILED,
    },
    AnalysisStatus.IN_PROGRESS: {AnalysisStatus.COMPLETED, AnalysisStatus.FAILED},
    AnalysisStatus.COMPLETED: set(),
    AnalysisStatus.FAILED: set(),
}


class AnalysisService:
    """Service class for analyses."""

    def __init__(self, db: Session, caller: CallerContext):
        """Initialize analysis service.

        Args:
            db: Database session.
            caller: Calling user context.
        """
        self.db = db
        self.caller = caller

    def _analysis_to_response(self, analysis: Analysis) -> AnalysisResponse:
        """Convert analysis model to response schema."""
        return AnalysisResponse(
            id=analysis.id,
            workspace_id=analysis.workspace_id,
            batch_id=analysis.batch_id,
            sample_id=analysis.sample_id,
            analysis_type_id=analysis.analysis_type_id,
            analysis_type_name=analysis.analysis_type.name,
            status=analysis.status,
            results=analysis.results,
            notes=analysis.notes,
            is_authoritative=bool(analysis.is_authoritative),
            supersedes_id=analysis.supersedes_id,
            uploaded_by_id=analysis.uploaded_by_id,
            created_at=analysis.created_at,
            updated_at=analysis.updated_at,
        )

    def _current_authority(self, sample_id: str, analysis_type_id: str) -> Analysis | None:
        return (
            self.db.query(Analysis)
            .filter(
                Analysis.sample_id == sample_id,
                Analysis.analysis_type_id == analysis_type_id,
                Analysis.is_authoritative.is_(True),
            )
            .first()
        )

    def create_analysis(self, data: AnalysisCreate) -> Analysis:
        """Record an analysis for a sample in a batch.

        Args:
            data: Analysis creation data.

        Returns:
            Analysis: The new analysis.

        Raises:
            NotFoundError: If the batch or the analysis to supersede is not visible.
            InvalidStateTransitionError: If the batch no longer accepts analyses.
            InvalidDataError: If the sample is not in the batch, the type is unknown
                or inactive, or the superseded analysis is for another sample or type.
            AlreadyExistsError: If an authoritative analysis exists and this one
                does not supersede it.
            StaleSupersessionError: If the analysis to supersede lost authority first.
        """
        batch = require_capability(
            self.db, self.caller, ObjectType.BATCH, data.batch_id, Capability.EDIT
        )
        if batch.status not in OPEN_FOR_ANALYSIS:
            raise InvalidStateTransitionError(
                f"Batch is {batch.status.value} and no longer accepts analyses"
            )

        in_batch = (
            self.db.query(BatchItem.id)
            .filter(BatchItem.batch_id == batch.id, BatchItem.sample_id == data.sample_id)
            .first()
        )
        if in_batch is None:
            raise InvalidDataError("Sample is not part of this batch")

        analysis_type = (
            self.db.query(AnalysisType)
            .filter(AnalysisType.id == data.analysis_type_id, AnalysisType.is_active.is_(True))
            .first()
        )
        if analysis_type is None:
            raise InvalidDataError("Analysis type not found or inactive")

        if data.supersedes_id:
            return self._supersede(batch.workspace_id, data)

        if data.is_authoritative and self._current_authority(
            data.sample_id, data.analysis_type_id
        ):
            raise AlreadyExistsError(
                "An authoritative analysis already exists for this sample and type; "
                "supersede it instead"
            )

        analysis = self._new_analysis(batch.workspace_id, data, data.is_authoritative)
        try:
            self._claim_open_batch(batch.id)
            self.db.add(analysis)
            self.db.flush()
            record_audit(self.db, self.caller, ObjectType.ANALYSIS, analysis.id, "create")
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise AlreadyExistsError(
                "An authoritative analysis already exists for this sample and type"
            )
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(analysis)

        logger.info(f"Recorded analysis {analysis.id} for sample {data.sample_id}")
        return analysis

    def _claim_open_batch(self, batch_id: str) -> None:
        """Touch the batch row inside the current transaction while it is still open.

        Completion swaps the batch status on the same row, so an analysis
        insert and a completion of its batch cannot both commit.

        Raises:
            InvalidStateTransitionError: If the batch left the open statuses.
        """
        result = self.db.execute(
            update(Batch)
            .where(Batch.id == batch_id, Batch.status.in_(OPEN_FOR_ANALYSIS))
            .values(updated_at=datetime.now(UTC))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(f"Batch {batch_id} closed before analysis insert")
            raise InvalidStateTransitionError("Batch no longer accepts analyses")

    def _new_analysis(self, workspace_id: str, data: AnalysisCreate, authoritative: bool):
        return Analysis(
            workspace_id=workspace_id,
            batch_id=data.batch_id,
            sample_id=data.sample_id,
            analysis_type_id=data.analysis_type_id,
            status=data.status,
            results=data.results,
            notes=data.notes,
            # NULL rather than False keeps demoted rows out of the unique key
            is_authoritative=True if authoritative else None,
            supersedes_id=data.supersedes_id,
            uploaded_by_id=self.caller.user_id,
        )

    def _supersede(self, workspace_id: str, data: AnalysisCreate) -> Analysis:
        predecessor = (
            scoped(self.db.query(Analysis), Analysis, workspace_id)
            .filter(Analysis.id == data.supersedes_id)
            .first()
        )
        if predecessor is None:
            raise NotFoundError("Analysis to supersede not found")
        if (
            predecessor.sample_id != data.sample_id
            or predecessor.analysis_type_id != data.analysis_type_id
        ):
            raise InvalidDataError("A superseding analysis must share sample and analysis type")

        try:
            self._claim_open_batch(data.batch_id)
            result = self.db.execute(
                update(Analysis)
                .where(Analysis.id == predecessor.id, Analysis.is_authoritative.is_(True))
                .values(is_authoritative=None)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise StaleSupersessionError("Analysis has already been superseded")

            analysis = self._new_analysis(workspace_id, data, authoritative=True)
            self.db.add(analysis)
            self.db.flush()
            record_audit(
                self.db,
                self.caller,
                ObjectType.ANALYSIS,
                analysis.id,
                "supersede",
                {"supersedes_id": predecessor.id},
            )
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.warning(f"Concurrent supersession of analysis {predecessor.id}")
            raise StaleSupersessionError("Analysis has already been superseded")
        except StaleSupersessionError:
            self.db.rollback()
            logger.warning(f"Stale supersession of analysis {data.supersedes_id}")
            raise
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(analysis)
        logger.info(f"Analysis {analysis.id} superseded {data.supersedes_id}")
        return analysis

    def get_analysis(self, analysis_id: str) -> Analysis:
        """Get an analysis visible to the caller."""
        return require_capability(
            self.db, self.caller, ObjectType.ANALYSIS, analysis_id, Capability.VIEW
        )

    def list_analyses(
        self,
        batch_id: str | None = None,
        sample_id: str | None = None,
        analysis_type_id: str | None = None,
        authoritative_only: bool = False,
    ) -> list[Analysis]:
        """List live analyses of the workspace, newest first."""
        query = scoped(
            self.db.query(Analysis).options(joinedload(Analysis.analysis_type)),
            Analysis,
            self.caller.workspace_id,
        )
        if batch_id:
            query = query.filter(Analysis.batch_id == batch_id)
        if sample_id:
            query = query.filter(Analysis.sample_id == sample_id)
        if analysis_type_id:
            query = query.filter(Analysis.analysis_type_id == analysis_type_id)
        if authoritative_only:
            query = query.filter(Analysis.is_authoritative.is_(True))
        return query.order_by(Analysis.created_at.desc()).all()

    def get_authoritative(self, sample_id: str, analysis_type_id: str) -> Analysis | None:
        """Get the authoritative analysis for a sample and type, if any."""
        require_capability(self.db, self.caller, ObjectType.SAMPLE, sample_id, Capability.VIEW)
        return self._current_authority(sample_id, analysis_type_id)

    def update_status(self, analysis_id: str, data: AnalysisStatusUpdate) -> Analysis:
        """Move an analysis forward and optionally attach results.

        Raises:
            InvalidStateTransitionError: If the move is not forward from the current status.
        """
        analysis = require_capability(
            self.db, self.caller, ObjectType.ANALYSIS, analysis_id, Capability.EDIT
        )
        if data.status not in ANALYSIS_TRANSITIONS[analysis.status]:
            raise InvalidStateTransitionError(
                f"Cannot move analysis from {analysis.status.value} to {data.status.value}"
            )

        analysis.status = data.status
        if data.results is not None:
            analysis.results = data.results
        if data.notes is not None:
            analysis.notes = data.notes

        self.db.commit()
        self.db.refresh(analysis)
        return analysis


class AnalysisTypeService:
    """Service class for the shared analysis type catalog."""

    def __init__(self, db: Session, caller: CallerContext):
        """Initialize analysis type service.

        Args:
            db: Database session.
            caller: Calling user context.
        """
        self.db = db
        self.caller = caller

    def list_types(
        self, category: str | None = None, include_inactive: bool = False
    ) -> list[AnalysisType]:
        """List analysis types ordered by category and name."""
        query = self.db.query(AnalysisType)
        if not include_inactive:
            query = query.filter(AnalysisType.is_active.is_(True))
        if category:
            query = query.filter(AnalysisType.category == category)
        return query.order_by(AnalysisType.category, AnalysisType.name).all()

    def create_type(self, data: AnalysisTypeCreate) -> AnalysisType:
        """Add an analysis type.

        Raises:
            PermissionDeniedError: If the caller is not a workspace admin.
            AlreadyExistsError: If the name is taken.
        """
        if not self.caller.is_admin:
            raise PermissionDeniedError("Only workspace admins can add analysis types")

        if self.db.query(AnalysisType.id).filter(AnalysisType.name == data.name).first():
            raise AlreadyExistsError(f"Analysis type '{data.name}' already exists")

        analysis_type = AnalysisType(
            name=data.name, category=data.category, description=data.description
        )
        self.db.add(analysis_type)
        self.db.commit()
        self.db.refresh(analysis_type)
        return analysis_type
