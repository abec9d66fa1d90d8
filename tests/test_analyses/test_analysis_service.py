"""Tests for analyses, authority and the analysis type catalog."""

import pytest
from sqlalchemy.orm import Session

from lablineage.db.models import (
    Analysis,
    AnalysisStatus,
    AnalysisType,
    Batch,
    BatchStatus,
    Sample,
)
from lablineage.errors import (
    AlreadyExistsError,
    InvalidDataError,
    InvalidStateTransitionError,
    NotFoundError,
    PermissionDeniedError,
    StaleSupersessionError,
)
from lablineage.tenancy import CallerContext


@pytest.fixture
def batch(db: Session, member_caller: CallerContext, sample: Sample) -> Batch:
    """Create an open batch holding the sample."""
    from lablineage.batches.schemas import BatchCreate, BatchItemCreate
    from lablineage.batches.service import BatchService

    return BatchService(db, member_caller).create_batch(
        BatchCreate(batch_code="HM-01", items=[BatchItemCreate(sample_id=sample.id)])
    )


def _record(db, caller, batch, sample, analysis_type, **kwargs):
    from lablineage.analyses.schemas import AnalysisCreate
    from lablineage.analyses.service import AnalysisService

    return AnalysisService(db, caller).create_analysis(
        AnalysisCreate(
            batch_id=batch.id,
            sample_id=sample.id,
            analysis_type_id=analysis_type.id,
            **kwargs,
        )
    )


class TestCreateAnalysis:
    """Tests for recording analyses."""

    def test_first_analysis_is_authoritative(
        self,
        db: Session,
        member_caller: CallerContext,
        batch: Batch,
        sample: Sample,
        analysis_type: AnalysisType,
    ):
        """Test the first result for a sample and type holds authority."""
        from lablineage.analyses.service import AnalysisService

        analysis = _record(
            db, member_caller, batch, sample, analysis_type, results={"Pb": 0.4, "unit": "mg/kg"}
        )

        assert analysis.is_authoritative is True
        assert analysis.uploaded_by_id == member_caller.user_id
        response = AnalysisService(db, member_caller)._analysis_to_response(analysis)
        assert response.analysis_type_name == "Heavy metals"
        assert response.is_authoritative is True

    def test_second_authority_without_supersede_conflicts(
        self,
        db: Session,
        member_caller: CallerContext,
        batch: Batch,
        sample: Sample,
        analysis_type: AnalysisType,
    ):
        """Test only one analysis holds authority at a time."""
        _record(db, member_caller, batch, sample, analysis_type)

        with pytest.raises(AlreadyExistsError, match="supersede it instead"):
            _record(db, member_caller, batch, sample, analysis_type)

        extra = _record(db, member_caller, batch, sample, analysis_type, is_authoritative=False)
        assert extra.is_authoritative is None

    def test_sample_must_be_in_batch(
        self,
        db: Session,
        member_caller: CallerContext,
        batch: Batch,
        second_sample: Sample,
        analysis_type: AnalysisType,
    ):
        """Test analyses are only recorded for batched samples."""
        with pytest.raises(InvalidDataError, match="not part of this batch"):
            _record(db, member_caller, batch, second_sample, analysis_type)

    def test_inactive_type_rejected(
        self,
        db: Session,
        member_caller: CallerContext,
        batch: Batch,
        sample: Sample,
        analysis_type: AnalysisType,
    ):
        """Test retired analysis types cannot be used."""
        analysis_type.is_active = False
        db.commit()

        with pytest.raises(InvalidDataError, match="inactive"):
            _record(db, member_caller, batch, sample, analysis_type)

    def test_closed_batch_rejects_analyses(
        self,
        db: Session,
        member_caller: CallerContext,
        batch: Batch,
        sample: Sample,
        analysis_type: AnalysisType,
    ):
        """Test a sent batch no longer accepts results."""
        from lablineage.batches.service import BatchService

        BatchService(db, member_caller).transition_batch(batch.id, BatchStatus.SENT)

        with pytest.raises(InvalidStateTransitionError, match="no longer accepts"):
            _record(db, member_caller, batch, sample, analysis_type)

    def test_foreign_batch_not_found(
        self,
        db: Session,
        member_b_caller: CallerContext,
        batch: Batch,
        sample: Sample,
        analysis_type: AnalysisType,
    ):
        """Test batches of other workspaces are invisible."""
        with pytest.raises(NotFoundError):
            _record(db, member_b_caller, batch, sample, analysis_type)


class TestSupersession:
    """Tests for moving authority between analyses."""

    def test_supersede_moves_authority(
        self,
        db: Session,
        member_caller: CallerContext,
        batch: Batch,
        sample: Sample,
        analysis_type: AnalysisType,
    ):
        """Test the successor takes over and the predecessor is demoted."""
        from lablineage.analyses.service import AnalysisService

        first = _record(db, member_caller, batch, sample, analysis_type, results={"Pb": 0.4})
        second = _record(
            db,
            member_caller,
            batch,
            sample,
            analysis_type,
            results={"Pb": 0.38},
            supersedes_id=first.id,
        )

        db.refresh(first)
        assert first.is_authoritative is None
        assert second.is_authoritative is True
        assert second.supersedes_id == first.id

        service = AnalysisService(db, member_caller)
        assert service.get_authoritative(sample.id, analysis_type.id).id == second.id
        assert service._analysis_to_response(first).is_authoritative is False
        assert [a.id for a in service.list_analyses(authoritative_only=True)] == [second.id]

    def test_superseding_stale_predecessor_fails(
        self,
        db: Session,
        member_caller: CallerContext,
        batch: Batch,
        sample: Sample,
        analysis_type: AnalysisType,
    ):
        """Test losing authority first makes a second supersession stale."""
        first = _record(db, member_caller, batch, sample, analysis_type)
        _record(db, member_caller, batch, sample, analysis_type, supersedes_id=first.id)

        with pytest.raises(StaleSupersessionError):
            _record(db, member_caller, batch, sample, analysis_type, supersedes_id=first.id)

        authoritative = (
            db.query(Analysis)
            .filter(Analysis.sample_id == sample.id, Analysis.is_authoritative.is_(True))
            .count()
        )
        assert authoritative == 1
        assert db.query(Analysis).count() == 2

    def test_supersede_requires_same_sample_and_type(
        self,
        db: Session,
        member_caller: CallerContext,
        sample: Sample,
        second_sample: Sample,
        analysis_type: AnalysisType,
    ):
        """Test a successor must describe the same measurement."""
        from lablineage.batches.schemas import BatchCreate, BatchItemCreate
        from lablineage.batches.service import BatchService

        batch = BatchService(db, member_caller).create_batch(
            BatchCreate(
                batch_code="HM-02",
                items=[
                    BatchItemCreate(sample_id=sample.id),
                    BatchItemCreate(sample_id=second_sample.id),
                ],
            )
        )
        first = _record(db, member_caller, batch, sample, analysis_type)

        with pytest.raises(InvalidDataError, match="share sample and analysis type"):
            _record(db, member_caller, batch, second_sample, analysis_type, supersedes_id=first.id)

        db.refresh(first)
        assert first.is_authoritative is True

    def test_supersede_missing_predecessor(
        self,
        db: Session,
        member_caller: CallerContext,
        batch: Batch,
        sample: Sample,
        analysis_type: AnalysisType,
    ):
        """Test superseding an unknown analysis."""
        with pytest.raises(NotFoundError):
            _record(db, member_caller, batch, sample, analysis_type, supersedes_id="missing")


class TestAnalysisStatus:
    """Tests for analysis status changes."""

    def test_forward_moves_only(
        self,
        db: Session,
        member_caller: CallerContext,
        batch: Batch,
        sample: Sample,
        analysis_type: AnalysisType,
    ):
        """Test pending can jump to completed and completed is final."""
        from lablineage.analyses.schemas import AnalysisStatusUpdate
        from lablineage.analyses.service import AnalysisService

        service = AnalysisService(db, member_caller)
        analysis = _record(db, member_caller, batch, sample, analysis_type)

        analysis = service.update_status(
            analysis.id,
            AnalysisStatusUpdate(status=AnalysisStatus.COMPLETED, results={"Cd": 0.01}),
        )
        assert analysis.status == AnalysisStatus.COMPLETED
        assert analysis.results == {"Cd": 0.01}

        with pytest.raises(InvalidStateTransitionError):
            service.update_status(
                analysis.id, AnalysisStatusUpdate(status=AnalysisStatus.IN_PROGRESS)
            )


class TestAnalysisTypeService:
    """Tests for the analysis type catalog."""

    def test_admin_only_and_unique(
        self, db: Session, admin_caller: CallerContext, member_caller: CallerContext
    ):
        """Test creating types is privileged and names are unique."""
        from lablineage.analyses.schemas import AnalysisTypeCreate
        from lablineage.analyses.service import AnalysisTypeService

        data = AnalysisTypeCreate(name="Pesticide residues", category="chemistry")
        with pytest.raises(PermissionDeniedError):
            AnalysisTypeService(db, member_caller).create_type(data)

        created = AnalysisTypeService(db, admin_caller).create_type(data)
        assert created.is_active is True
        with pytest.raises(AlreadyExistsError):
            AnalysisTypeService(db, admin_caller).create_type(data)

    def test_list_filters(
        self, db: Session, member_caller: CallerContext, analysis_type: AnalysisType
    ):
        """Test category and inactive filtering."""
        from lablineage.analyses.service import AnalysisTypeService

        retired = AnalysisType(name="Old method", category="chemistry", is_active=False)
        db.add_all([retired, AnalysisType(name="Germination", category="biology")])
        db.commit()

        service = AnalysisTypeService(db, member_caller)
        assert [t.name for t in service.list_types(category="chemistry")] == ["Heavy metals"]
        names = [t.name for t in service.list_types(include_inactive=True)]
        assert names == ["Germination", "Heavy metals", "Old method"]


class TestAnalysisRouter:
    """Tests for the analysis endpoints."""

    def test_supersede_over_api(
        self, authenticated_client, batch: Batch, sample: Sample, analysis_type: AnalysisType
    ):
        """Test authority lookup and the stale supersession conflict."""
        payload = {
            "batch_id": batch.id,
            "sample_id": sample.id,
            "analysis_type_id": analysis_type.id,
        }
        first = authenticated_client.post("/api/analyses", json=payload).json()["data"]

        response = authenticated_client.post(
            "/api/analyses", json={**payload, "supersedes_id": first["id"]}
        )
        assert response.status_code == 201
        second = response.json()["data"]

        response = authenticated_client.post(
            "/api/analyses", json={**payload, "supersedes_id": first["id"]}
        )
        assert response.status_code == 409

        response = authenticated_client.get(
            "/api/analyses/authoritative",
            params={"sample_id": sample.id, "analysis_type_id": analysis_type.id},
        )
        assert response.status_code == 200
        assert response.json()["data"]["id"] == second["id"]

        response = authenticated_client.get(f"/api/analyses/{first['id']}")
        assert response.json()["data"]["is_authoritative"] is False

    def test_authoritative_none(
        self, authenticated_client, sample: Sample, analysis_type: AnalysisType
    ):
        """Test the lookup returns null data when nothing is recorded."""
        response = authenticated_client.get(
            "/api/analyses/authoritative",
            params={"sample_id": sample.id, "analysis_type_id": analysis_type.id},
        )
        assert response.status_code == 200
        assert response.json()["data"] is None

    def test_list_types(self, authenticated_client, analysis_type: AnalysisType):
        """Test listing the catalog."""
        response = authenticated_client.get("/api/analysis-types")
        assert response.status_code == 200
        assert response.json()["data"][0]["name"] == "Heavy metals"
