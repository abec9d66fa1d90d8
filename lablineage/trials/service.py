"""Trial and parameter template service layer."""

import logging
from datetime import date

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lablineage.access.authorization import Capability, require_capability
from lablineage.db.models import ObjectType, Project, Trial, TrialParameterTemplate
from lablineage.errors import AlreadyExistsError, InvalidDataError, NotFoundError
from lablineage.tenancy import CallerContext, active
from lablineage.trials.schemas import (
    ParameterColumn,
    ParameterTemplate,
    ParameterTemplateResponse,
    TrialCreate,
    TrialResponse,
    TrialUpdate,
)

logger = logging.getLogger(__name__)


def _matches_type(column_type: str, value) -> bool:
    if column_type == "text":
        return isinstance(value, str)
    if column_type == "boolean":
        return isinstance(value, bool)
    if column_type == "integer":
        return isinstance(value, int) and not isinstance(value, bool)
    if column_type == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if column_type == "date":
        if not isinstance(value, str):
            return False
        try:
            date.fromisoformat(value)
        except ValueError:
            return False
        return True
    return False


def validate_parameters(template: ParameterTemplate, values: dict) -> dict:
    """Check sample parameter values against a project's template.

    Args:
        template: The project's parameter template.
        values: Column key to value mapping supplied for a sample.

    Returns:
        dict: The values, unchanged, when valid.

    Raises:
        InvalidDataError: On unknown columns, missing required columns,
            or values of the wrong type.
    """
    columns: dict[str, ParameterColumn] = {c.key: c for c in template.columns}

    unknown = sorted(set(values) - set(columns))
    if unknown:
        raise InvalidDataError(f"Unknown parameter columns: {', '.join(unknown)}")

    missing = [c.key for c in template.columns if c.required and values.get(c.key) is None]
    if missing:
        raise InvalidDataError(f"Missing required parameters: {', '.join(missing)}")

    for key, value in values.items():
        if value is None:
            continue
        if not _matches_type(columns[key].type, value):
            raise InvalidDataError(f"Parameter '{key}' must be of type {columns[key].type}")

    return values


class TrialService:
    """Service class for trials and parameter templates of a project."""

    def __init__(self, db: Session, caller: CallerContext):
        """Initialize trial service.

        Args:
            db: Database session.
            caller: Calling user context.
        """
        self.db = db
        self.caller = caller

    def _trial_to_response(self, trial: Trial) -> TrialResponse:
        """Convert trial model to response schema."""
        return TrialResponse.model_validate(trial)

    def _template_to_response(self, template: TrialParameterTemplate) -> ParameterTemplateResponse:
        """Convert template model to response schema."""
        return ParameterTemplateResponse(
            project_id=template.project_id,
            schema_version=template.schema_version,
            columns=[ParameterColumn.model_validate(c) for c in template.columns],
            version=template.version,
            updated_at=template.updated_at,
        )

    def _project(self, project_id: str, needed: Capability) -> Project:
        return require_capability(
            self.db, self.caller, ObjectType.PROJECT, project_id, needed, label="Project"
        )

    def _trial(self, project_id: str, trial_id: str) -> Trial:
        trial = (
            active(self.db.query(Trial), Trial)
            .filter(Trial.id == trial_id, Trial.project_id == project_id)
            .first()
        )
        if trial is None:
            raise NotFoundError("Trial not found")
        return trial

    def create_trial(self, project_id: str, data: TrialCreate) -> Trial:
        """Create a trial in a project.

        Raises:
            NotFoundError: If the project is not visible to the caller.
        """
        project = self._project(project_id, Capability.EDIT)

        trial = Trial(
            workspace_id=project.workspace_id,
            project_id=project.id,
            name=data.name,
            objective=data.objective,
            notes=data.notes,
            status=data.status,
        )
        self.db.add(trial)
        self.db.commit()
        self.db.refresh(trial)

        logger.info(f"Created trial {trial.id} in project {project_id}")
        return trial

    def list_trials(self, project_id: str) -> list[Trial]:
        """List live trials of a project, newest first."""
        self._project(project_id, Capability.VIEW)
        return (
            active(self.db.query(Trial), Trial)
            .filter(Trial.project_id == project_id)
            .order_by(Trial.created_at.desc())
            .all()
        )

    def get_trial(self, project_id: str, trial_id: str) -> Trial:
        """Get a trial of a visible project."""
        self._project(project_id, Capability.VIEW)
        return self._trial(project_id, trial_id)

    def update_trial(self, project_id: str, trial_id: str, data: TrialUpdate) -> Trial:
        """Update the supplied fields of a trial.

        Raises:
            InvalidDataError: If no field was supplied.
        """
        self._project(project_id, Capability.EDIT)
        trial = self._trial(project_id, trial_id)

        update_data = data.model_dump(exclude_unset=True, exclude_none=True)
        if not update_data:
            raise InvalidDataError("No fields to update")

        for field, value in update_data.items():
            setattr(trial, field, value)

        self.db.commit()
        self.db.refresh(trial)
        return trial

    def delete_trial(self, project_id: str, trial_id: str) -> None:
        """Soft delete a trial."""
        self._project(project_id, Capability.EDIT)
        trial = self._trial(project_id, trial_id)
        trial.mark_deleted()
        self.db.commit()
        logger.info(f"Deleted trial {trial_id}")

    def get_parameter_template(self, project_id: str) -> TrialParameterTemplate | None:
        """Get a project's parameter template, or None if it has none."""
        self._project(project_id, Capability.VIEW)
        return (
            self.db.query(TrialParameterTemplate)
            .filter(TrialParameterTemplate.project_id == project_id)
            .first()
        )

    def put_parameter_template(
        self, project_id: str, data: ParameterTemplate
    ) -> TrialParameterTemplate:
        """Create or fully replace a project's parameter template.

        Each overwrite increments ``version``. When another first write for the
        project commits in between, this write is retried once as an overwrite.

        Raises:
            AlreadyExistsError: If the retry also loses to a concurrent write.
        """
        project = self._project(project_id, Capability.EDIT)
        columns = [c.model_dump() for c in data.columns]

        for attempt in range(2):
            template = (
                self.db.query(TrialParameterTemplate)
                .filter(TrialParameterTemplate.project_id == project_id)
                .with_for_update()
                .first()
            )
            if template is None:
                template = TrialParameterTemplate(
                    workspace_id=project.workspace_id,
                    project_id=project_id,
                    schema_version=data.schema_version,
                    columns=columns,
                    version=1,
                )
                self.db.add(template)
            else:
                template.schema_version = data.schema_version
                template.columns = columns
                template.version = template.version + 1

            try:
                self.db.commit()
                break
            except IntegrityError:
                self.db.rollback()
                logger.warning(f"Concurrent first write of parameter template for {project_id}")
                if attempt:
                    raise AlreadyExistsError(
                        "Parameter template was changed concurrently, please retry"
                    )

        self.db.refresh(template)

        logger.info(f"Saved parameter template v{template.version} for project {project_id}")
        return template
