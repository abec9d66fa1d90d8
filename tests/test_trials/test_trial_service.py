"""Tests for trials and project parameter templates."""

import pytest
from pydantic import ValidationError
from sqlalchemy.orm import Session

from lablineage.db.models import LifecycleState, Project, TrialStatus
from lablineage.errors import InvalidDataError, NotFoundError
from lablineage.tenancy import CallerContext


def _template(*columns):
    from lablineage.trials.schemas import ParameterColumn, ParameterTemplate

    return ParameterTemplate(columns=[ParameterColumn(**c) for c in columns])


class TestValidateParameters:
    """Tests for checking sample parameters against a template."""

    def test_valid_values_pass(self):
        """Test well-typed values are returned unchanged."""
        from lablineage.trials.service import validate_parameters

        template = _template(
            {"key": "ph", "type": "number", "required": True},
            {"key": "plot", "type": "integer"},
            {"key": "irrigated", "type": "boolean"},
            {"key": "sown_on", "type": "date"},
            {"key": "variety", "type": "text"},
        )
        values = {"ph": 6.5, "plot": 3, "irrigated": False, "sown_on": "2026-04-01"}
        assert validate_parameters(template, values) == values

    def test_unknown_column(self):
        """Test keys outside the template are rejected."""
        from lablineage.trials.service import validate_parameters

        template = _template({"key": "ph", "type": "number"})
        with pytest.raises(InvalidDataError, match="Unknown parameter columns: colour"):
            validate_parameters(template, {"colour": "red"})

    def test_missing_required(self):
        """Test required columns must be present and non-null."""
        from lablineage.trials.service import validate_parameters

        template = _template({"key": "ph", "type": "number", "required": True})
        with pytest.raises(InvalidDataError, match="Missing required parameters: ph"):
            validate_parameters(template, {"ph": None})

    @pytest.mark.parametrize(
        "column_type,value",
        [
            ("integer", 2.5),
            ("integer", True),
            ("number", "7"),
            ("boolean", 1),
            ("date", "01/04/2026"),
            ("text", 12),
        ],
    )
    def test_type_mismatch(self, column_type, value):
        """Test values of the wrong type are rejected."""
        from lablineage.trials.service import validate_parameters

        template = _template({"key": "field", "type": column_type})
        with pytest.raises(InvalidDataError, match="must be of type"):
            validate_parameters(template, {"field": value})

    def test_duplicate_column_keys_rejected(self):
        """Test a template cannot declare a key twice."""
        with pytest.raises(ValidationError):
            _template({"key": "ph"}, {"key": "ph"})


class TestTrialService:
    """Tests for TrialService."""

    def test_create_and_list(self, db: Session, member_caller: CallerContext, project: Project):
        """Test creating a trial in a project."""
        from lablineage.trials.schemas import TrialCreate
        from lablineage.trials.service import TrialService

        service = TrialService(db, member_caller)
        trial = service.create_trial(project.id, TrialCreate(name="Plot A", objective="Yield"))

        assert trial.workspace_id == project.workspace_id
        assert trial.status == TrialStatus.PLANNED
        assert [t.id for t in service.list_trials(project.id)] == [trial.id]

    def test_create_in_foreign_project_not_found(
        self, db: Session, member_b_caller: CallerContext, project: Project
    ):
        """Test trials cannot be created in invisible projects."""
        from lablineage.trials.schemas import TrialCreate
        from lablineage.trials.service import TrialService

        with pytest.raises(NotFoundError, match="Project not found"):
            TrialService(db, member_b_caller).create_trial(project.id, TrialCreate(name="X"))

    def test_update_and_delete(self, db: Session, member_caller: CallerContext, project: Project):
        """Test updating then soft deleting a trial."""
        from lablineage.trials.schemas import TrialCreate, TrialUpdate
        from lablineage.trials.service import TrialService

        service = TrialService(db, member_caller)
        trial = service.create_trial(project.id, TrialCreate(name="Plot A"))

        with pytest.raises(InvalidDataError):
            service.update_trial(project.id, trial.id, TrialUpdate())

        updated = service.update_trial(
            project.id, trial.id, TrialUpdate(status=TrialStatus.ACTIVE)
        )
        assert updated.status == TrialStatus.ACTIVE

        service.delete_trial(project.id, trial.id)
        db.refresh(trial)
        assert trial.lifecycle == LifecycleState.DELETED
        with pytest.raises(NotFoundError, match="Trial not found"):
            service.get_trial(project.id, trial.id)

    def test_template_put_increments_version(
        self, db: Session, member_caller: CallerContext, project: Project
    ):
        """Test each overwrite fully replaces columns and bumps the version."""
        from lablineage.trials.service import TrialService

        service = TrialService(db, member_caller)
        assert service.get_parameter_template(project.id) is None

        first = service.put_parameter_template(
            project.id, _template({"key": "ph", "type": "number"}, {"key": "plot"})
        )
        assert first.version == 1
        assert [c["key"] for c in first.columns] == ["ph", "plot"]

        second = service.put_parameter_template(
            project.id, _template({"key": "moisture", "type": "number", "unit": "%"})
        )
        assert second.id == first.id
        assert second.version == 2
        assert [c["key"] for c in second.columns] == ["moisture"]

        response = service._template_to_response(service.get_parameter_template(project.id))
        assert response.columns[0].unit == "%"

    def test_viewer_cannot_put_template(
        self, db: Session, viewer_caller: CallerContext, project: Project
    ):
        """Test replacing a template needs edit capability."""
        from lablineage.errors import PermissionDeniedError
        from lablineage.trials.service import TrialService

        with pytest.raises(PermissionDeniedError):
            TrialService(db, viewer_caller).put_parameter_template(
                project.id, _template({"key": "ph"})
            )


class TestTrialRouter:
    """Tests for the trial endpoints."""

    def test_template_routes_not_shadowed(self, authenticated_client, project: Project):
        """Test the template route resolves before the trial id route."""
        base = f"/api/projects/{project.id}/trials"

        response = authenticated_client.get(f"{base}/parameter-template")
        assert response.status_code == 200
        assert response.json()["data"] is None

        response = authenticated_client.put(
            f"{base}/parameter-template",
            json={"columns": [{"key": "ph", "type": "number", "required": True}]},
        )
        assert response.status_code == 200
        assert response.json()["data"]["version"] == 1

    def test_create_trial(self, authenticated_client, project: Project):
        """Test creating a trial through the API."""
        response = authenticated_client.post(
            f"/api/projects/{project.id}/trials", json={"name": "Greenhouse"}
        )
        assert response.status_code == 201
        assert response.json()["data"]["project_id"] == project.id

    def test_unknown_project_404(self, authenticated_client):
        """Test listing trials of an unknown project."""
        response = authenticated_client.get("/api/projects/missing/trials")
        assert response.status_code == 404
