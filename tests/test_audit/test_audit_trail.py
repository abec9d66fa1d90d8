"""Tests for the audit trail written alongside mutations."""

import pytest
from sqlalchemy.orm import Session

from lablineage.db.models import (
    AccessLevel,
    AnalysisType,
    AuditLog,
    BatchStatus,
    HandoffWorkflow,
    ObjectType,
    Organization,
    Project,
    Sample,
    User,
)
from lablineage.errors import AlreadyGrantedError, InvalidStateTransitionError, NotFoundError
from lablineage.tenancy import CallerContext


def _entries(db: Session, object_type: ObjectType, object_id: str) -> list[AuditLog]:
    return (
        db.query(AuditLog)
        .filter(AuditLog.object_type == object_type, AuditLog.object_id == object_id)
        .all()
    )


def _actions(db: Session, object_type: ObjectType, object_id: str) -> set[str]:
    return {e.action for e in _entries(db, object_type, object_id)}


def _request(db, caller, from_org, to_org, project):
    from lablineage.supply_chain.schemas import CollaborationRequestCreate
    from lablineage.supply_chain.service import CollaborationService

    return CollaborationService(db, caller).create_request(
        CollaborationRequestCreate(
            from_org_id=from_org.id,
            to_org_id=to_org.id,
            from_project_id=project.id,
            workflow_type=HandoffWorkflow.ANALYSIS_ONLY,
        )
    )


class TestAccessAudit:
    """Tests for audit entries of grant changes."""

    def test_grant_update_and_revoke_are_recorded(
        self, db: Session, project: Project, admin_caller: CallerContext, member_b: User
    ):
        """Test each grant change writes one entry naming the grantee."""
        from lablineage.access.service import AccessGrantService

        service = AccessGrantService(db, admin_caller)
        service.grant_access(member_b.id, ObjectType.PROJECT, project.id, AccessLevel.VIEW)
        service.update_access_level(member_b.id, ObjectType.PROJECT, project.id, AccessLevel.EDIT)
        service.revoke_access(member_b.id, ObjectType.PROJECT, project.id)

        entries = _entries(db, ObjectType.PROJECT, project.id)
        assert {e.action for e in entries} == {"grant", "update_access", "revoke"}
        assert all(e.actor_id == admin_caller.user_id for e in entries)
        assert all(e.actor_workspace_id == admin_caller.workspace_id for e in entries)
        assert all(e.details["user_id"] == member_b.id for e in entries)

        update = next(e for e in entries if e.action == "update_access")
        assert update.details["from"] == "view"
        assert update.details["access_level"] == "edit"

    def test_refused_grant_writes_nothing(
        self, db: Session, project: Project, admin_caller: CallerContext, member_b: User
    ):
        """Test a failed mutation leaves no entry behind."""
        from lablineage.access.service import AccessGrantService

        service = AccessGrantService(db, admin_caller)
        service.grant_access(member_b.id, ObjectType.PROJECT, project.id, AccessLevel.VIEW)
        with pytest.raises(AlreadyGrantedError):
            service.grant_access(member_b.id, ObjectType.PROJECT, project.id, AccessLevel.FULL)

        assert len(_entries(db, ObjectType.PROJECT, project.id)) == 1


class TestWorkflowAudit:
    """Tests for audit entries of state machine moves and supersessions."""

    def test_handoff_moves_are_recorded(
        self,
        db: Session,
        member_caller: CallerContext,
        member_b_caller: CallerContext,
        lab_org: Organization,
        partner_org: Organization,
        project: Project,
    ):
        """Test create and every accepted move are on the request's trail."""
        from lablineage.supply_chain.schemas import CollaborationRespond
        from lablineage.supply_chain.service import CollaborationService

        request = _request(db, member_caller, lab_org, partner_org, project)
        service = CollaborationService(db, member_b_caller)
        service.accept_request(request.id, CollaborationRespond())
        service.start_request(request.id)

        entries = _entries(db, ObjectType.SUPPLY_CHAIN_REQUEST, request.id)
        assert {e.action for e in entries} == {"create", "accepted", "in_progress"}
        accepted = next(e for e in entries if e.action == "accepted")
        assert accepted.actor_workspace_id == member_b_caller.workspace_id
        assert accepted.details == {"from": "pending"}

    def test_refused_move_writes_nothing(
        self,
        db: Session,
        member_caller: CallerContext,
        member_b_caller: CallerContext,
        lab_org: Organization,
        partner_org: Organization,
        project: Project,
    ):
        """Test a rejected request's refused accept adds no entry."""
        from lablineage.supply_chain.schemas import CollaborationRespond
        from lablineage.supply_chain.service import CollaborationService

        request = _request(db, member_caller, lab_org, partner_org, project)
        service = CollaborationService(db, member_b_caller)
        service.reject_request(request.id, CollaborationRespond())
        with pytest.raises(InvalidStateTransitionError):
            service.accept_request(request.id, CollaborationRespond())

        assert _actions(db, ObjectType.SUPPLY_CHAIN_REQUEST, request.id) == {
            "create",
            "rejected",
        }

    def test_batch_transition_and_analysis_supersession(
        self,
        db: Session,
        member_caller: CallerContext,
        sample: Sample,
        analysis_type: AnalysisType,
    ):
        """Test batch moves and analysis supersessions are recorded."""
        from lablineage.analyses.schemas import AnalysisCreate
        from lablineage.analyses.service import AnalysisService
        from lablineage.batches.schemas import BatchCreate, BatchItemCreate
        from lablineage.batches.service import BatchService

        batches = BatchService(db, member_caller)
        batch = batches.create_batch(
            BatchCreate(batch_code="AUD-1", items=[BatchItemCreate(sample_id=sample.id)])
        )
        batches.transition_batch(batch.id, BatchStatus.IN_PROGRESS)

        analyses = AnalysisService(db, member_caller)
        first = analyses.create_analysis(
            AnalysisCreate(
                batch_id=batch.id, sample_id=sample.id, analysis_type_id=analysis_type.id
            )
        )
        second = analyses.create_analysis(
            AnalysisCreate(
                batch_id=batch.id,
                sample_id=sample.id,
                analysis_type_id=analysis_type.id,
                supersedes_id=first.id,
            )
        )

        transition = _entries(db, ObjectType.BATCH, batch.id)
        assert [(e.action, e.details) for e in transition] == [
            ("transition", {"from": "created", "to": "in_progress"})
        ]
        assert _actions(db, ObjectType.ANALYSIS, first.id) == {"create"}
        (supersede,) = _entries(db, ObjectType.ANALYSIS, second.id)
        assert supersede.action == "supersede"
        assert supersede.details == {"supersedes_id": first.id}

    def test_derived_sample_supersession_and_delete(
        self, db: Session, member_caller: CallerContext, sample: Sample
    ):
        """Test lineage revisions and head deletion are recorded."""
        from lablineage.lineage.schemas import DerivedSampleCreate
        from lablineage.lineage.service import DerivedSampleService

        service = DerivedSampleService(db, member_caller)
        v1 = service.create_derived_sample(
            DerivedSampleCreate(parent_sample_id=sample.id, name="v1")
        )
        v2 = service.create_derived_sample(
            DerivedSampleCreate(parent_sample_id=sample.id, name="v2", supersedes_id=v1.id)
        )
        service.delete_derived_sample(v2.id)

        assert _actions(db, ObjectType.DERIVED_SAMPLE, v1.id) == {"create"}
        entries = _entries(db, ObjectType.DERIVED_SAMPLE, v2.id)
        assert {e.action for e in entries} == {"supersede", "delete"}
        deleted = next(e for e in entries if e.action == "delete")
        assert deleted.details == {"restored_head_id": v1.id}


class TestAuditService:
    """Tests for reading the trail."""

    def test_both_sides_read_request_trail(
        self,
        db: Session,
        member_caller: CallerContext,
        member_b_caller: CallerContext,
        lab_org: Organization,
        partner_org: Organization,
        project: Project,
    ):
        """Test sender and receiver see the request trail."""
        from lablineage.audit.service import AuditService

        request = _request(db, member_caller, lab_org, partner_org, project)

        for caller in (member_caller, member_b_caller):
            entries = AuditService(db, caller).list_entries(
                ObjectType.SUPPLY_CHAIN_REQUEST, request.id
            )
            assert [e.action for e in entries] == ["create"]

    def test_foreign_object_trail_not_found(
        self, db: Session, project: Project, member_b_caller: CallerContext
    ):
        """Test objects of other workspaces keep their trail private."""
        from lablineage.audit.service import AuditService

        with pytest.raises(NotFoundError):
            AuditService(db, member_b_caller).list_entries(ObjectType.PROJECT, project.id)


class TestAuditRouter:
    """Tests for the audit endpoint."""

    def test_list_project_trail(
        self, admin_client, db: Session, project: Project, admin_caller, member_b: User
    ):
        """Test reading a trail through the API."""
        from lablineage.access.service import AccessGrantService

        AccessGrantService(db, admin_caller).grant_access(
            member_b.id, ObjectType.PROJECT, project.id, AccessLevel.VIEW
        )

        response = admin_client.get(f"/api/audit/project/{project.id}")
        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 1
        assert body["data"][0]["action"] == "grant"
        assert body["data"][0]["details"]["access_level"] == "view"

    def test_outsider_gets_404(self, login_as, project: Project, member_b: User):
        """Test another workspace's trail looks absent."""
        client = login_as(member_b)
        response = client.get(f"/api/audit/project/{project.id}")
        assert response.status_code == 404
        assert response.json()["success"] is False
