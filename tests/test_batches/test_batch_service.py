"""Tests for batches and their status rules."""

import pytest
from sqlalchemy.orm import Session

from lablineage.db.models import (
    AnalysisType,
    BatchStatus,
    ExecutionMode,
    LifecycleState,
    Organization,
    Sample,
)
from lablineage.errors import (
    AlreadyExistsError,
    IncompleteBatchError,
    InvalidDataError,
    InvalidStateTransitionError,
)
from lablineage.tenancy import CallerContext


def _batch(db, caller, samples, code="B-2026-01", **kwargs):
    from lablineage.batches.schemas import BatchCreate, BatchItemCreate
    from lablineage.batches.service import BatchService

    return BatchService(db, caller).create_batch(
        BatchCreate(
            batch_code=code,
            items=[BatchItemCreate(sample_id=s.id) for s in samples],
            **kwargs,
        )
    )


class TestCanTransition:
    """Tests for the batch status rules."""

    @pytest.mark.parametrize(
        "current,target,allowed",
        [
            (BatchStatus.CREATED, BatchStatus.IN_PROGRESS, True),
            (BatchStatus.CREATED, BatchStatus.SENT, True),
            (BatchStatus.READY, BatchStatus.COMPLETED, True),
            (BatchStatus.SENT, BatchStatus.FAILED, True),
            (BatchStatus.SENT, BatchStatus.READY, False),
            (BatchStatus.READY, BatchStatus.READY, False),
            (BatchStatus.COMPLETED, BatchStatus.FAILED, False),
            (BatchStatus.FAILED, BatchStatus.CREATED, False),
        ],
    )
    def test_transitions(self, current, target, allowed):
        """Test forward moves and failure are allowed, nothing else."""
        from lablineage.batches.service import can_transition

        assert can_transition(current, target) is allowed


class TestBatchService:
    """Tests for BatchService."""

    def test_create_with_items(
        self,
        db: Session,
        member_caller: CallerContext,
        sample: Sample,
        second_sample: Sample,
    ):
        """Test items keep their submitted order."""
        from lablineage.batches.service import BatchService

        batch = _batch(db, member_caller, [second_sample, sample])

        assert batch.status == BatchStatus.CREATED
        assert [(i.sample_id, i.sequence) for i in batch.items] == [
            (second_sample.id, 1),
            (sample.id, 2),
        ]
        response = BatchService(db, member_caller)._batch_to_response(batch)
        assert response.items[0].sample_name == second_sample.name
        assert response.analysis_count == 0

    def test_external_requires_reference(
        self, db: Session, member_caller: CallerContext, sample: Sample
    ):
        """Test external execution needs an outside reference."""
        with pytest.raises(InvalidDataError, match="external reference"):
            _batch(db, member_caller, [sample], execution_mode=ExecutionMode.EXTERNAL)

        batch = _batch(
            db,
            member_caller,
            [sample],
            execution_mode=ExecutionMode.EXTERNAL,
            external_reference="LAB-4471",
        )
        assert batch.external_reference == "LAB-4471"

    def test_foreign_executing_org_rejected(
        self,
        db: Session,
        member_caller: CallerContext,
        sample: Sample,
        partner_org: Organization,
    ):
        """Test the executing organization must be local."""
        with pytest.raises(InvalidDataError, match="Executing organization"):
            _batch(db, member_caller, [sample], executed_by_org_id=partner_org.id)

    def test_code_reserved_after_delete(
        self, db: Session, member_caller: CallerContext, sample: Sample
    ):
        """Test batch codes cannot be reused, even after deletion."""
        from lablineage.batches.service import BatchService

        batch = _batch(db, member_caller, [sample])
        with pytest.raises(AlreadyExistsError):
            _batch(db, member_caller, [sample])

        BatchService(db, member_caller).delete_batch(batch.id)
        db.refresh(batch)
        assert batch.lifecycle == LifecycleState.DELETED
        with pytest.raises(AlreadyExistsError):
            _batch(db, member_caller, [sample])

    def test_same_code_in_other_workspace(
        self,
        db: Session,
        member_caller: CallerContext,
        member_b_caller: CallerContext,
        sample: Sample,
        other_sample: Sample,
    ):
        """Test codes are unique per workspace only."""
        _batch(db, member_caller, [sample])
        other = _batch(db, member_b_caller, [other_sample])
        assert other.workspace_id == member_b_caller.workspace_id

    def test_invalid_items_persist_nothing(
        self,
        db: Session,
        member_caller: CallerContext,
        sample: Sample,
        other_sample: Sample,
    ):
        """Test duplicates and foreign samples reject the whole batch."""
        from lablineage.batches.service import BatchService

        with pytest.raises(InvalidDataError, match="only once"):
            _batch(db, member_caller, [sample, sample])
        with pytest.raises(InvalidDataError, match="not found in this workspace"):
            _batch(db, member_caller, [sample, other_sample])

        assert BatchService(db, member_caller).list_batches() == []

    def test_transition_stamps_times(
        self, db: Session, member_caller: CallerContext, sample: Sample
    ):
        """Test sending and completing record their timestamps."""
        from lablineage.batches.service import BatchService

        service = BatchService(db, member_caller)
        batch = _batch(db, member_caller, [sample])

        batch = service.transition_batch(batch.id, BatchStatus.SENT)
        assert batch.status == BatchStatus.SENT
        assert batch.sent_at is not None

        with pytest.raises(InvalidStateTransitionError):
            service.transition_batch(batch.id, BatchStatus.READY)

        batch = service.transition_batch(batch.id, BatchStatus.COMPLETED)
        assert batch.completed_at is not None

        with pytest.raises(InvalidStateTransitionError):
            service.transition_batch(batch.id, BatchStatus.FAILED)

    def test_complete_blocked_by_unfinished_analyses(
        self,
        db: Session,
        member_caller: CallerContext,
        sample: Sample,
        analysis_type: AnalysisType,
    ):
        """Test completion waits for every analysis to finish."""
        from lablineage.analyses.schemas import AnalysisCreate, AnalysisStatusUpdate
        from lablineage.analyses.service import AnalysisService
        from lablineage.batches.service import BatchService
        from lablineage.db.models import AnalysisStatus

        service = BatchService(db, member_caller)
        batch = _batch(db, member_caller, [sample])
        analysis = AnalysisService(db, member_caller).create_analysis(
            AnalysisCreate(batch_id=batch.id, sample_id=sample.id, analysis_type_id=analysis_type.id)
        )

        with pytest.raises(IncompleteBatchError, match="1 unfinished"):
            service.transition_batch(batch.id, BatchStatus.COMPLETED)
        db.refresh(batch)
        assert batch.status == BatchStatus.CREATED

        AnalysisService(db, member_caller).update_status(
            analysis.id, AnalysisStatusUpdate(status=AnalysisStatus.COMPLETED, results={"Pb": 0.2})
        )
        batch = service.transition_batch(batch.id, BatchStatus.COMPLETED)
        assert batch.status == BatchStatus.COMPLETED

    def test_terminal_batch_accepts_annotations_only(
        self, db: Session, member_caller: CallerContext, sample: Sample
    ):
        """Test failed batches are frozen apart from annotations."""
        from lablineage.batches.schemas import AnnotationCreate, BatchUpdate
        from lablineage.batches.service import BatchService

        service = BatchService(db, member_caller)
        batch = _batch(db, member_caller, [sample])
        service.transition_batch(batch.id, BatchStatus.FAILED)

        with pytest.raises(InvalidStateTransitionError):
            service.update_batch(batch.id, BatchUpdate(description="Retry"))

        batch = service.add_annotation(batch.id, AnnotationCreate(text="Centrifuge broke"))
        batch = service.add_annotation(batch.id, AnnotationCreate(text="Rerun as B-2026-02"))
        assert [a["text"] for a in batch.annotations] == ["Centrifuge broke", "Rerun as B-2026-02"]
        assert batch.annotations[0]["author_id"] == member_caller.user_id

    def test_update_checks_external_reference(
        self, db: Session, member_caller: CallerContext, sample: Sample
    ):
        """Test switching to external mode needs a reference."""
        from lablineage.batches.schemas import BatchUpdate
        from lablineage.batches.service import BatchService

        service = BatchService(db, member_caller)
        batch = _batch(db, member_caller, [sample])

        with pytest.raises(InvalidDataError, match="external reference"):
            service.update_batch(batch.id, BatchUpdate(execution_mode=ExecutionMode.EXTERNAL))

        batch = service.update_batch(
            batch.id,
            BatchUpdate(execution_mode=ExecutionMode.EXTERNAL, external_reference="EXT-9"),
        )
        assert batch.execution_mode == ExecutionMode.EXTERNAL


class TestBatchRouter:
    """Tests for the batch endpoints."""

    def test_lifecycle_over_api(self, authenticated_client, sample: Sample):
        """Test create, transition and annotate through the API."""
        response = authenticated_client.post(
            "/api/batches",
            json={"batch_code": "API-1", "items": [{"sample_id": sample.id}]},
        )
        assert response.status_code == 201
        batch_id = response.json()["data"]["id"]

        response = authenticated_client.post(
            f"/api/batches/{batch_id}/transition", json={"status": "ready"}
        )
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "ready"

        response = authenticated_client.post(
            f"/api/batches/{batch_id}/transition", json={"status": "created"}
        )
        assert response.status_code == 409
        assert response.json()["success"] is False

        response = authenticated_client.post(
            f"/api/batches/{batch_id}/annotations", json={"text": "Labels reprinted"}
        )
        assert response.status_code == 200
        assert response.json()["data"]["annotations"][0]["text"] == "Labels reprinted"

    def test_duplicate_code_409(self, authenticated_client, sample: Sample):
        """Test duplicate codes conflict."""
        payload = {"batch_code": "DUP", "items": [{"sample_id": sample.id}]}
        assert authenticated_client.post("/api/batches", json=payload).status_code == 201
        assert authenticated_client.post("/api/batches", json=payload).status_code == 409

    def test_viewer_cannot_create(self, login_as, viewer_a, sample: Sample):
        """Test viewers cannot create batches."""
        client = login_as(viewer_a)
        response = client.post("/api/batches", json={"batch_code": "V-1", "items": []})
        assert response.status_code == 403
