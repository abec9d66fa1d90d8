"""Sample service layer."""

import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from lablineage.access.authorization import (
    Capability,
    require_capability,
    require_workspace_capability,
)
from lablineage.db.models import (
    DerivedSample,
    ObjectType,
    Project,
    Sample,
    Trial,
    TrialParameterTemplate,
)
from lablineage.errors import InvalidDataError
from lablineage.samples.schemas import SampleCreate, SampleMetadata, SampleResponse, SampleUpdate
from lablineage.tenancy import CallerContext, active, scoped
from lablineage.trials.schemas import ParameterTemplate
from lablineage.trials.service import validate_parameters

logger = logging.getLogger(__name__)


class SampleService:
    """Service class for sample operations."""

    def __init__(self, db: Session, caller: CallerContext):
        """Initialize sample service.

        Args:
            db: Database session.
            caller: Calling user context.
        """
        self.db = db
        self.caller = caller

    def _derived_count(self, sample_id: str) -> int:
        return (
            active(self.db.query(func.count(DerivedSample.id)), DerivedSample)
            .filter(DerivedSample.parent_sample_id == sample_id)
            .scalar()
        )

    def _sample_to_response(self, sample: Sample) -> SampleResponse:
        """Convert sample model to response schema."""
        return SampleResponse(
            id=sample.id,
            workspace_id=sample.workspace_id,
            project_id=sample.project_id,
            trial_id=sample.trial_id,
            name=sample.name,
            sample_type=sample.sample_type,
            metadata=(
                SampleMetadata.model_validate(sample.sample_metadata)
                if sample.sample_metadata
                else None
            ),
            parameters=sample.parameters,
            external_reference=sample.external_reference,
            derived_count=self._derived_count(sample.id),
            created_at=sample.created_at,
            updated_at=sample.updated_at,
        )

    def _check_trial(self, project_id: str, trial_id: str) -> None:
        trial = (
            active(self.db.query(Trial), Trial)
            .filter(Trial.id == trial_id, Trial.project_id == project_id)
            .first()
        )
        if trial is None:
            raise InvalidDataError("Trial not found in this project")

    def _check_parameters(self, project_id: str, parameters: dict) -> dict:
        template = (
            self.db.query(TrialParameterTemplate)
            .filter(TrialParameterTemplate.project_id == project_id)
            .first()
        )
        if template is None:
            return parameters
        return validate_parameters(
            ParameterTemplate(schema_version=template.schema_version, columns=template.columns),
            parameters,
        )

    def create_sample(self, data: SampleCreate) -> Sample:
        """Create a sample in one of the workspace's projects.

        Args:
            data: Sample creation data.

        Returns:
            Sample: Created sample.

        Raises:
            InvalidDataError: If the project is not in the caller's workspace, the
                trial is not in the project, or parameters fail the template.
        """
        require_workspace_capability(self.caller, Capability.EDIT)
        project = (
            scoped(self.db.query(Project), Project, self.caller.workspace_id)
            .filter(Project.id == data.project_id)
            .first()
        )
        if project is None:
            raise InvalidDataError("Project not found in this workspace")

        if data.trial_id:
            self._check_trial(project.id, data.trial_id)

        parameters = None
        if data.parameters is not None:
            parameters = self._check_parameters(project.id, data.parameters)

        sample = Sample(
            workspace_id=self.caller.workspace_id,
            project_id=project.id,
            trial_id=data.trial_id,
            name=data.name,
            sample_type=data.sample_type,
            sample_metadata=data.metadata.model_dump(mode="json") if data.metadata else None,
            parameters=parameters,
            external_reference=data.external_reference,
            created_by_id=self.caller.user_id,
        )
        self.db.add(sample)
        self.db.commit()
        self.db.refresh(sample)

        logger.info(f"Created sample {sample.id} in project {project.id}")
        return sample

    def list_samples(
        self, project_id: str | None = None, trial_id: str | None = None
    ) -> list[Sample]:
        """List live samples of the workspace, newest first."""
        query = scoped(self.db.query(Sample), Sample, self.caller.workspace_id)
        if project_id:
            query = query.filter(Sample.project_id == project_id)
        if trial_id:
            query = query.filter(Sample.trial_id == trial_id)
        return query.order_by(Sample.created_at.desc()).all()

    def get_sample(self, sample_id: str) -> Sample:
        """Get a sample visible to the caller, including through a grant."""
        return require_capability(
            self.db, self.caller, ObjectType.SAMPLE, sample_id, Capability.VIEW
        )

    def update_sample(self, sample_id: str, data: SampleUpdate) -> Sample:
        """Update the supplied fields of a sample.

        Raises:
            InvalidDataError: If nothing was supplied, or the trial or parameters are invalid.
        """
        sample = require_capability(
            self.db, self.caller, ObjectType.SAMPLE, sample_id, Capability.EDIT
        )

        update_data = data.model_dump(exclude_unset=True, exclude_none=True, mode="json")
        if not update_data:
            raise InvalidDataError("No fields to update")

        if "trial_id" in update_data:
            self._check_trial(sample.project_id, update_data["trial_id"])
        if "parameters" in update_data:
            update_data["parameters"] = self._check_parameters(
                sample.project_id, update_data["parameters"]
            )
        if "metadata" in update_data:
            update_data.pop("metadata")
            update_data["sample_metadata"] = data.metadata.model_dump(mode="json")

        for field, value in update_data.items():
            setattr(sample, field, value)

        self.db.commit()
        self.db.refresh(sample)
        return sample

    def delete_sample(self, sample_id: str) -> None:
        """Soft delete a sample.

        Raises:
            InvalidDataError: If live derived samples still reference it.
        """
        sample = require_capability(
            self.db, self.caller, ObjectType.SAMPLE, sample_id, Capability.EDIT
        )
        if self._derived_count(sample.id) > 0:
            raise InvalidDataError("Cannot delete a sample that has derived samples")

        sample.mark_deleted()
        self.db.commit()
        logger.info(f"Deleted sample {sample_id}")
