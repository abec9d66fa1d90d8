"""Derived sample lineage service layer.

Revisions of a derived sample form a chain through ``supersedes_id``. A
record can be superseded once: the successor insert and the compare-and-swap
on the predecessor's ``superseded_by_id`` commit together, and the unique
key on ``supersedes_id`` rejects a second successor that slips past the swap.
"""

import logging
from datetime import UTC, datetime

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lablineage.access.authorization import (
    Capability,
    require_capability,
    require_workspace_capability,
)
from lablineage.audit.service import record_audit
from lablineage.config import get_settings
from lablineage.db.models import DerivedSample, LifecycleState, ObjectType, Sample
from lablineage.errors import InvalidDataError, InvalidLineageError, NotFoundError
from lablineage.lineage.schemas import (
    DerivationDetails,
    DerivedSampleCreate,
    DerivedSampleResponse,
)
from lablineage.tenancy import CallerContext, active, scoped

logger = logging.getLogger(__name__)


class DerivedSampleService:
    """Service class for derived samples."""

    def __init__(self, db: Session, caller: CallerContext):
        """Initialize derived sample service.

        Args:
            db: Database session.
            caller: Calling user context.
        """
        self.db = db
        self.caller = caller
        self.max_depth = get_settings().max_derivation_depth

    def _derived_to_response(self, derived: DerivedSample) -> DerivedSampleResponse:
        """Convert derived sample model to response schema."""
        return DerivedSampleResponse(
            id=derived.id,
            workspace_id=derived.workspace_id,
            parent_sample_id=derived.parent_sample_id,
            parent_derived_id=derived.parent_derived_id,
            depth=derived.depth,
            name=derived.name,
            derivation_method=derived.derivation_method,
            details=(
                DerivationDetails.model_validate(derived.derivation_metadata)
                if derived.derivation_metadata
                else None
            ),
            supersedes_id=derived.supersedes_id,
            superseded_by_id=derived.superseded_by_id,
            superseded_at=derived.superseded_at,
            is_current=derived.superseded_by_id is None,
            created_at=derived.created_at,
        )

    def _query(self):
        return scoped(self.db.query(DerivedSample), DerivedSample, self.caller.workspace_id)

    def create_derived_sample(self, data: DerivedSampleCreate) -> DerivedSample:
        """Create a derived sample, optionally superseding an earlier revision.

        Args:
            data: Derived sample creation data.

        Returns:
            DerivedSample: The new record.

        Raises:
            NotFoundError: If the parent sample or the revision to supersede
                is not visible in the caller's workspace.
            InvalidDataError: If the derivation is too deep or the revision
                derives from a different sample.
            InvalidLineageError: If the revision has already been superseded.
        """
        require_workspace_capability(self.caller, Capability.EDIT)
        parent = (
            scoped(self.db.query(Sample), Sample, self.caller.workspace_id)
            .filter(Sample.id == data.parent_sample_id)
            .first()
        )
        if parent is None:
            raise NotFoundError("Parent sample not found")

        predecessor = None
        if data.supersedes_id:
            predecessor = self._query().filter(DerivedSample.id == data.supersedes_id).first()
            if predecessor is None:
                raise NotFoundError("Derived sample to supersede not found")
            if predecessor.parent_sample_id != parent.id:
                raise InvalidDataError("A revision must derive from the same parent sample")
            if predecessor.superseded_by_id is not None:
                raise InvalidLineageError("Derived sample has already been superseded")

        parent_derived_id = data.parent_derived_id
        if parent_derived_id is None and predecessor is not None:
            parent_derived_id = predecessor.parent_derived_id

        depth = 1
        if parent_derived_id:
            parent_derived = (
                self._query()
                .filter(
                    DerivedSample.id == parent_derived_id,
                    DerivedSample.parent_sample_id == parent.id,
                )
                .first()
            )
            if parent_derived is None:
                raise InvalidDataError("Parent derived sample must derive from the same sample")
            depth = parent_derived.depth + 1

        if depth > self.max_depth:
            raise InvalidDataError(f"Maximum derivation depth of {self.max_depth} exceeded")

        derived = DerivedSample(
            workspace_id=self.caller.workspace_id,
            parent_sample_id=parent.id,
            parent_derived_id=parent_derived_id,
            depth=depth,
            name=data.name,
            derivation_method=data.derivation_method,
            derivation_metadata=data.details.model_dump(mode="json") if data.details else None,
            supersedes_id=predecessor.id if predecessor else None,
            created_by_id=self.caller.user_id,
        )

        try:
            self.db.add(derived)
            self.db.flush()

            if predecessor is not None:
                result = self.db.execute(
                    update(DerivedSample)
                    .where(
                        DerivedSample.id == predecessor.id,
                        DerivedSample.superseded_by_id.is_(None),
                        DerivedSample.lifecycle == LifecycleState.ACTIVE,
                    )
                    .values(superseded_by_id=derived.id, superseded_at=datetime.now(UTC))
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    raise InvalidLineageError("Derived sample has already been superseded")

            record_audit(
                self.db,
                self.caller,
                ObjectType.DERIVED_SAMPLE,
                derived.id,
                "supersede" if predecessor is not None else "create",
                {"supersedes_id": predecessor.id} if predecessor is not None else None,
            )
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.warning(f"Concurrent supersession of derived sample {data.supersedes_id}")
            raise InvalidLineageError("Derived sample has already been superseded")
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(derived)
        logger.info(
            f"Created derived sample {derived.id} from sample {parent.id}"
            + (f" superseding {predecessor.id}" if predecessor else "")
        )
        return derived

    def get_derived_sample(self, derived_id: str) -> DerivedSample:
        """Get a derived sample visible to the caller."""
        return require_capability(
            self.db,
            self.caller,
            ObjectType.DERIVED_SAMPLE,
            derived_id,
            Capability.VIEW,
            label="Derived sample",
        )

    def list_derived_samples(
        self, parent_sample_id: str, current_only: bool = False
    ) -> list[DerivedSample]:
        """List live derived samples of a sample, newest first.

        Args:
            parent_sample_id: Root sample.
            current_only: Only return lineage heads.
        """
        require_capability(
            self.db, self.caller, ObjectType.SAMPLE, parent_sample_id, Capability.VIEW
        )
        query = active(self.db.query(DerivedSample), DerivedSample).filter(
            DerivedSample.parent_sample_id == parent_sample_id
        )
        if current_only:
            query = query.filter(DerivedSample.superseded_by_id.is_(None))
        return query.order_by(DerivedSample.created_at.desc()).all()

    def _walk(self, start: DerivedSample, attr: str) -> list[DerivedSample]:
        """Follow ``attr`` links from ``start`` to the last live record.

        Raises:
            InvalidLineageError: If a record is reached twice.
        """
        chain = [start]
        visited = {start.id}
        next_id = getattr(start, attr)
        while next_id is not None:
            if next_id in visited:
                raise InvalidLineageError(f"Supersession cycle detected at {next_id}")
            visited.add(next_id)
            record = (
                active(self.db.query(DerivedSample), DerivedSample)
                .filter(
                    DerivedSample.id == next_id,
                    DerivedSample.workspace_id == start.workspace_id,
                )
                .first()
            )
            if record is None:
                break
            chain.append(record)
            next_id = getattr(record, attr)
        return chain

    def get_supersession_chain(self, derived_id: str) -> list[DerivedSample]:
        """Return a record and every revision it replaced, newest first."""
        start = self.get_derived_sample(derived_id)
        return self._walk(start, "supersedes_id")

    def get_lineage_head(self, derived_id: str) -> DerivedSample:
        """Return the latest live revision of the record's lineage."""
        start = self.get_derived_sample(derived_id)
        return self._walk(start, "superseded_by_id")[-1]

    def delete_derived_sample(self, derived_id: str) -> None:
        """Soft delete the current revision of a derived sample.

        Deleting a revision that replaced an earlier one makes the earlier one
        the head again, so the lineage keeps exactly one live head and can be
        revised further. The deleted record leaves the chain.

        Raises:
            InvalidDataError: If the record has been superseded or has live
                derivations of its own.
        """
        derived = require_capability(
            self.db,
            self.caller,
            ObjectType.DERIVED_SAMPLE,
            derived_id,
            Capability.EDIT,
            label="Derived sample",
        )
        if derived.superseded_by_id is not None:
            raise InvalidDataError("Only the current revision can be deleted")

        children = (
            active(self.db.query(func.count(DerivedSample.id)), DerivedSample)
            .filter(DerivedSample.parent_derived_id == derived.id)
            .scalar()
        )
        if children:
            raise InvalidDataError("Cannot delete a derived sample that has derivations")

        predecessor_id = derived.supersedes_id
        try:
            result = self.db.execute(
                update(DerivedSample)
                .where(
                    DerivedSample.id == derived.id,
                    DerivedSample.superseded_by_id.is_(None),
                    DerivedSample.lifecycle == LifecycleState.ACTIVE,
                )
                .values(
                    lifecycle=LifecycleState.DELETED,
                    deleted_at=datetime.now(UTC),
                    supersedes_id=None,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise InvalidDataError("Only the current revision can be deleted")

            if predecessor_id is not None:
                self.db.execute(
                    update(DerivedSample)
                    .where(
                        DerivedSample.id == predecessor_id,
                        DerivedSample.superseded_by_id == derived.id,
                    )
                    .values(superseded_by_id=None, superseded_at=None)
                    .execution_options(synchronize_session=False)
                )

            record_audit(
                self.db,
                self.caller,
                ObjectType.DERIVED_SAMPLE,
                derived.id,
                "delete",
                {"restored_head_id": predecessor_id} if predecessor_id else None,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Deleted derived sample {derived_id}"
            + (f", {predecessor_id} is current again" if predecessor_id else "")
        )
