"""SQLAlchemy database models."""

import enum
from datetime import UTC, date, datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.mysql import CHAR
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


def generate_uuid() -> str:
    """Generate a UUID string for primary keys.

    Returns:
        str: UUID as 36-character string.
    """
    return str(uuid4())


def _enum(enum_cls: type[enum.Enum]) -> Enum:
    return Enum(enum_cls, values_callable=lambda x: [e.value for e in x])


class LifecycleState(str, enum.Enum):
    """Lifecycle of soft-deletable records."""

    ACTIVE = "active"
    DELETED = "deleted"


class UserRole(str, enum.Enum):
    """User role within a workspace."""

    ADMIN = "admin"
    MEMBER = "member"
    VIEWER = "viewer"


class OrganizationType(str, enum.Enum):
    """Kind of party an organization represents."""

    CLIENT = "client"
    LABORATORY = "laboratory"
    ANALYZER = "analyzer"
    PHARMA = "pharma"
    INTERNAL = "internal"


class WorkflowMode(str, enum.Enum):
    """Whether a project starts from analyses or from trials."""

    ANALYSIS_FIRST = "analysis_first"
    TRIAL_FIRST = "trial_first"


class ProjectStatus(str, enum.Enum):
    """Project status enumeration."""

    ACTIVE = "active"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class TrialStatus(str, enum.Enum):
    """Trial status enumeration."""

    PLANNED = "planned"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BatchStatus(str, enum.Enum):
    """Batch status enumeration, listed in forward order."""

    CREATED = "created"
    IN_PROGRESS = "in_progress"
    READY = "ready"
    SENT = "sent"
    COMPLETED = "completed"
    FAILED = "failed"  # Reachable from any non-terminal status


class ExecutionMode(str, enum.Enum):
    """Where a batch is analyzed."""

    PLATFORM = "platform"  # Results uploaded through this service
    EXTERNAL = "external"  # Run by an outside lab, tracked by reference


class AnalysisStatus(str, enum.Enum):
    """Analysis status enumeration."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class AccessLevel(str, enum.Enum):
    """Explicit access level stored in a grant."""

    VIEW = "view"
    EDIT = "edit"
    FULL = "full"


class ObjectType(str, enum.Enum):
    """Resource kinds that can carry access grants."""

    PROJECT = "project"
    TRIAL = "trial"
    SAMPLE = "sample"
    DERIVED_SAMPLE = "derived_sample"
    BATCH = "batch"
    ANALYSIS = "analysis"
    SUPPLY_CHAIN_REQUEST = "supply_chain_request"


class HandoffWorkflow(str, enum.Enum):
    """What a cross-workspace collaboration request hands over."""

    ANALYSIS_ONLY = "analysis_only"
    MATERIAL_TRANSFER = "material_transfer"
    PRODUCT_CONTINUATION = "product_continuation"
    SUPPLY_CHAIN = "supply_chain"


class HandoffStatus(str, enum.Enum):
    """Collaboration request status enumeration."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    REJECTED = "rejected"


class HandoffPriority(str, enum.Enum):
    """Collaboration request priority."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class SoftDeleteMixin:
    """Lifecycle columns shared by soft-deletable models.

    Attributes:
        lifecycle: Current lifecycle state.
        deleted_at: When the record was soft deleted.
    """

    lifecycle: Mapped[LifecycleState] = mapped_column(
        _enum(LifecycleState), default=LifecycleState.ACTIVE, nullable=False
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    @property
    def is_deleted(self) -> bool:
        return self.lifecycle == LifecycleState.DELETED

    def mark_deleted(self) -> None:
        """Move the record to the deleted state and stamp the time."""
        self.lifecycle = LifecycleState.DELETED
        self.deleted_at = datetime.now(UTC)


class Workspace(SoftDeleteMixin, Base):
    """Workspace model, the tenancy boundary.

    Attributes:
        id: Primary key UUID.
        name: Display name.
        slug: URL-friendly identifier.
        parent_workspace_id: Optional FK to a parent workspace.
        created_at: Creation timestamp.
    """

    __tablename__ = "workspaces"

    id: Mapped[str] = mapped_column(CHAR(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    parent_workspace_id: Mapped[str | None] = mapped_column(
        CHAR(36), ForeignKey("workspaces.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    # Relationships
    users: Mapped[list["User"]] = relationship("User", back_populates="workspace")
    organizations: Mapped[list["Organization"]] = relationship(
        "Organization", back_populates="workspace"
    )
    parent: Mapped[Optional["Workspace"]] = relationship("Workspace", remote_side=[id])


class User(Base):
    """User model. Identity is issued elsewhere; this row only carries membership.

    Attributes:
        id: Primary key UUID.
        workspace_id: FK to the user's workspace.
        email: Email address, unique within a workspace.
        full_name: Display name.
        role: Role within the workspace.
        is_active: Whether the account may call the API.
        created_at: Creation timestamp.
    """

    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("workspace_id", "email", name="uq_users_workspace_email"),
        Index("ix_users_workspace_id", "workspace_id"),
    )

    id: Mapped[str] = mapped_column(CHAR(36), primary_key=True, default=generate_uuid)
    workspace_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(_enum(UserRole), default=UserRole.MEMBER)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    # Relationships
    workspace: Mapped["Workspace"] = relationship("Workspace", back_populates="users")


class Organization(SoftDeleteMixin, Base):
    """Organization model: a party (client, lab, analyzer...) inside one workspace.

    Attributes:
        id: Primary key UUID.
        workspace_id: FK to the owning workspace.
        name: Organization name.
        type: Organization kind.
        contact: Versioned contact structure.
        is_partner: Whether other workspaces may discover this organization.
        created_at: Creation timestamp.
        updated_at: Last update timestamp.
    """

    __tablename__ = "organizations"
    __table_args__ = (Index("ix_organizations_workspace_id", "workspace_id"),)

    id: Mapped[str] = mapped_column(CHAR(36), primary_key=True, default=generate_uuid)
    workspace_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[OrganizationType] = mapped_column(_enum(OrganizationType), nullable=False)
    contact: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    is_partner: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    workspace: Mapped["Workspace"] = relationship("Workspace", back_populates="organizations")


class Project(SoftDeleteMixin, Base):
    """Project model.

    Exactly one of client_org_id and external_client_name is set.

    Attributes:
        id: Primary key UUID.
        workspace_id: FK to the owning workspace.
        name: Project name.
        description: Optional description.
        client_org_id: FK to the client organization (same workspace).
        external_client_name: Free-text client when it is not an organization here.
        executing_org_id: FK to the organization doing the work (same workspace).
        workflow_mode: Analysis-first or trial-first.
        status: Project status.
        external_reference: Reference to an upstream record, e.g. a handed-off project.
        created_by_id: FK to the creating user.
    """

    __tablename__ = "projects"
    __table_args__ = (
        Index("ix_projects_workspace_id", "workspace_id"),
        Index("ix_projects_client_org_id", "client_org_id"),
        Index("ix_projects_executing_org_id", "executing_org_id"),
    )

    id: Mapped[str] = mapped_column(CHAR(36), primary_key=True, default=generate_uuid)
    workspace_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    client_org_id: Mapped[str | None] = mapped_column(
        CHAR(36), ForeignKey("organizations.id", ondelete="RESTRICT"), nullable=True
    )
    external_client_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    executing_org_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("organizations.id", ondelete="RESTRICT"), nullable=False
    )
    workflow_mode: Mapped[WorkflowMode] = mapped_column(
        _enum(WorkflowMode), default=WorkflowMode.ANALYSIS_FIRST
    )
    status: Mapped[ProjectStatus] = mapped_column(_enum(ProjectStatus), default=ProjectStatus.ACTIVE)
    external_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_by_id: Mapped[str | None] = mapped_column(
        CHAR(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    client_org: Mapped[Optional["Organization"]] = relationship(
        "Organization", foreign_keys=[client_org_id]
    )
    executing_org: Mapped["Organization"] = relationship(
        "Organization", foreign_keys=[executing_org_id]
    )
    trials: Mapped[list["Trial"]] = relationship("Trial", back_populates="project")
    samples: Mapped[list["Sample"]] = relationship("Sample", back_populates="project")
    parameter_template: Mapped[Optional["TrialParameterTemplate"]] = relationship(
        "TrialParameterTemplate", back_populates="project", uselist=False
    )


class Trial(SoftDeleteMixin, Base):
    """Trial model: one experimental run inside a project."""

    __tablename__ = "trials"
    __table_args__ = (
        Index("ix_trials_project_id", "project_id"),
        Index("ix_trials_workspace_id", "workspace_id"),
    )

    id: Mapped[str] = mapped_column(CHAR(36), primary_key=True, default=generate_uuid)
    workspace_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    project_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    objective: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[TrialStatus] = mapped_column(_enum(TrialStatus), default=TrialStatus.PLANNED)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    project: Mapped["Project"] = relationship("Project", back_populates="trials")


class TrialParameterTemplate(Base):
    """Per-project list of typed parameter columns that samples fill in.

    Attributes:
        project_id: FK to the project (one template per project).
        schema_version: Version of the column structure format.
        columns: Ordered list of column definitions.
        version: Incremented on every overwrite.
    """

    __tablename__ = "trial_parameter_templates"

    id: Mapped[str] = mapped_column(CHAR(36), primary_key=True, default=generate_uuid)
    workspace_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    project_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("projects.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    schema_version: Mapped[int] = mapped_column(Integer, default=1)
    columns: Mapped[list] = mapped_column(JSON, nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    project: Mapped["Project"] = relationship("Project", back_populates="parameter_template")


class Sample(SoftDeleteMixin, Base):
    """Sample model.

    Attributes:
        id: Primary key UUID.
        workspace_id: FK to the owning workspace.
        project_id: FK to the project.
        trial_id: Optional FK to a trial of the same project.
        name: Sample name or code.
        sample_type: Free-text sample kind (soil, leaf, ...).
        sample_metadata: Versioned metadata structure (column "metadata").
        parameters: Values for the project's parameter template.
        external_reference: Upstream sample id for handed-off material.
    """

    __tablename__ = "samples"
    __table_args__ = (
        Index("ix_samples_workspace_id", "workspace_id"),
        Index("ix_samples_project_id", "project_id"),
    )

    id: Mapped[str] = mapped_column(CHAR(36), primary_key=True, default=generate_uuid)
    workspace_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    project_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    trial_id: Mapped[str | None] = mapped_column(
        CHAR(36), ForeignKey("trials.id", ondelete="SET NULL"), nullable=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    sample_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    sample_metadata: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    parameters: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    external_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_by_id: Mapped[str | None] = mapped_column(
        CHAR(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    project: Mapped["Project"] = relationship("Project", back_populates="samples")
    trial: Mapped[Optional["Trial"]] = relationship("Trial")
    derived_samples: Mapped[list["DerivedSample"]] = relationship(
        "DerivedSample", back_populates="parent_sample"
    )


class DerivedSample(SoftDeleteMixin, Base):
    """Derived sample model: an extract or aliquot of a sample.

    Revisions form a chain through supersedes_id; each record is superseded
    at most once, so the unique key on supersedes_id keeps one head per lineage.

    Attributes:
        parent_sample_id: FK to the root sample.
        parent_derived_id: FK to the derived sample this one was made from.
        depth: Generation number, 1 for direct derivations of a sample.
        supersedes_id: FK to the revision this record replaces.
        superseded_by_id: FK to the revision that replaced this record.
        superseded_at: When this record was replaced.
    """

    __tablename__ = "derived_samples"
    __table_args__ = (
        UniqueConstraint("supersedes_id", name="uq_derived_samples_supersedes_id"),
        Index("ix_derived_samples_workspace_id", "workspace_id"),
        Index("ix_derived_samples_parent_sample_id", "parent_sample_id"),
    )

    id: Mapped[str] = mapped_column(CHAR(36), primary_key=True, default=generate_uuid)
    workspace_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    parent_sample_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("samples.id", ondelete="CASCADE"), nullable=False
    )
    parent_derived_id: Mapped[str | None] = mapped_column(
        CHAR(36), ForeignKey("derived_samples.id", ondelete="SET NULL"), nullable=True
    )
    depth: Mapped[int] = mapped_column(Integer, default=1)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    derivation_method: Mapped[str | None] = mapped_column(String(100), nullable=True)
    derivation_metadata: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    supersedes_id: Mapped[str | None] = mapped_column(
        CHAR(36), ForeignKey("derived_samples.id", ondelete="SET NULL"), nullable=True
    )
    superseded_by_id: Mapped[str | None] = mapped_column(
        CHAR(36), ForeignKey("derived_samples.id", ondelete="SET NULL"), nullable=True
    )
    superseded_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_by_id: Mapped[str | None] = mapped_column(
        CHAR(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    # Relationships
    parent_sample: Mapped["Sample"] = relationship("Sample", back_populates="derived_samples")


class Batch(SoftDeleteMixin, Base):
    """Batch model: a group of samples sent for analysis together.

    Attributes:
        batch_code: Human-readable code, unique within the workspace.
        status: Current status; moves forward only.
        execution_mode: Platform or external.
        executed_by_org_id: Optional FK to the analyzing organization.
        external_reference: Required for external execution.
        annotations: Notes appended after the fact, allowed in any status.
    """

    __tablename__ = "batches"
    __table_args__ = (
        UniqueConstraint("workspace_id", "batch_code", name="uq_batches_workspace_code"),
        Index("ix_batches_workspace_id", "workspace_id"),
        Index("ix_batches_status", "status"),
    )

    id: Mapped[str] = mapped_column(CHAR(36), primary_key=True, default=generate_uuid)
    workspace_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    batch_code: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[BatchStatus] = mapped_column(_enum(BatchStatus), default=BatchStatus.CREATED)
    execution_mode: Mapped[ExecutionMode] = mapped_column(
        _enum(ExecutionMode), default=ExecutionMode.PLATFORM
    )
    executed_by_org_id: Mapped[str | None] = mapped_column(
        CHAR(36), ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True
    )
    external_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    annotations: Mapped[list | None] = mapped_column(JSON, nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_by_id: Mapped[str | None] = mapped_column(
        CHAR(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    items: Mapped[list["BatchItem"]] = relationship(
        "BatchItem",
        back_populates="batch",
        cascade="all, delete-orphan",
        order_by="BatchItem.sequence",
    )
    executed_by_org: Mapped[Optional["Organization"]] = relationship("Organization")


class BatchItem(Base):
    """A sample (optionally a specific derived sample) placed in a batch."""

    __tablename__ = "batch_items"
    __table_args__ = (UniqueConstraint("batch_id", "sample_id", name="uq_batch_items_sample"),)

    id: Mapped[str] = mapped_column(CHAR(36), primary_key=True, default=generate_uuid)
    batch_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("batches.id", ondelete="CASCADE"), nullable=False
    )
    sample_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("samples.id", ondelete="CASCADE"), nullable=False
    )
    derived_sample_id: Mapped[str | None] = mapped_column(
        CHAR(36), ForeignKey("derived_samples.id", ondelete="SET NULL"), nullable=True
    )
    sequence: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    # Relationships
    batch: Mapped["Batch"] = relationship("Batch", back_populates="items")
    sample: Mapped["Sample"] = relationship("Sample")


class AnalysisType(Base):
    """Catalog of analysis kinds, shared by every workspace."""

    __tablename__ = "analysis_types"

    id: Mapped[str] = mapped_column(CHAR(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class Analysis(SoftDeleteMixin, Base):
    """Analysis model: one result set for a sample and analysis type.

    is_authoritative is True for the current result and NULL otherwise, so
    the unique key on (sample_id, analysis_type_id, is_authoritative) only
    binds the authoritative row.

    Attributes:
        batch_id: FK to the batch the analysis ran in.
        sample_id: FK to the analyzed sample.
        analysis_type_id: FK to the analysis type.
        status: Analysis status.
        results: Result payload.
        is_authoritative: True for the current result, NULL when superseded.
        supersedes_id: FK to the analysis this one replaced.
    """

    __tablename__ = "analyses"
    __table_args__ = (
        UniqueConstraint(
            "sample_id",
            "analysis_type_id",
            "is_authoritative",
            name="uq_analyses_authoritative",
        ),
        Index("ix_analyses_workspace_id", "workspace_id"),
        Index("ix_analyses_batch_id", "batch_id"),
        Index("ix_analyses_sample_type", "sample_id", "analysis_type_id"),
    )

    id: Mapped[str] = mapped_column(CHAR(36), primary_key=True, default=generate_uuid)
    workspace_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    batch_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("batches.id", ondelete="CASCADE"), nullable=False
    )
    sample_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("samples.id", ondelete="CASCADE"), nullable=False
    )
    analysis_type_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("analysis_types.id", ondelete="RESTRICT"), nullable=False
    )
    status: Mapped[AnalysisStatus] = mapped_column(
        _enum(AnalysisStatus), default=AnalysisStatus.PENDING
    )
    results: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_authoritative: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    supersedes_id: Mapped[str | None] = mapped_column(
        CHAR(36), ForeignKey("analyses.id", ondelete="SET NULL"), nullable=True
    )
    uploaded_by_id: Mapped[str | None] = mapped_column(
        CHAR(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    analysis_type: Mapped["AnalysisType"] = relationship("AnalysisType")
    batch: Mapped["Batch"] = relationship("Batch")


class AccessGrant(Base):
    """Explicit per-object grant on top of the workspace role.

    Attributes:
        user_id: FK to the grantee.
        object_type: Kind of object.
        object_id: Id of the object (not a foreign key; objects live in many tables).
        access_level: Granted level.
        granted_by_id: FK to the granting user.
    """

    __tablename__ = "access_grants"
    __table_args__ = (
        UniqueConstraint("user_id", "object_type", "object_id", name="uq_access_grants_triple"),
        Index("ix_access_grants_object", "object_type", "object_id"),
    )

    id: Mapped[str] = mapped_column(CHAR(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    object_type: Mapped[ObjectType] = mapped_column(_enum(ObjectType), nullable=False)
    object_id: Mapped[str] = mapped_column(CHAR(36), nullable=False)
    access_level: Mapped[AccessLevel] = mapped_column(_enum(AccessLevel), nullable=False)
    granted_by_id: Mapped[str | None] = mapped_column(
        CHAR(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    # Relationships
    user: Mapped["User"] = relationship("User", foreign_keys=[user_id])


class SupplyChainRequest(Base):
    """Cross-workspace collaboration request.

    Attributes:
        from_org_id: FK to the sending organization (caller's workspace).
        to_org_id: FK to the receiving organization (another workspace).
        from_project_id: FK to the originating project.
        from_workspace_id: Denormalized workspace of from_org.
        to_workspace_id: Denormalized workspace of to_org.
        workflow_type: Fixed at creation.
        status: Request status.
        material_data: Versioned material description.
        results: Result summary stored by the receiver on completion.
        receiving_project_id: Project created in the receiving workspace on accept.
    """

    __tablename__ = "supply_chain_requests"
    __table_args__ = (
        Index("ix_supply_chain_requests_from_workspace", "from_workspace_id"),
        Index("ix_supply_chain_requests_to_workspace", "to_workspace_id"),
        Index("ix_supply_chain_requests_status", "status"),
    )

    id: Mapped[str] = mapped_column(CHAR(36), primary_key=True, default=generate_uuid)
    from_org_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    to_org_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    from_project_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    from_workspace_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    to_workspace_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    workflow_type: Mapped[HandoffWorkflow] = mapped_column(
        _enum(HandoffWorkflow), nullable=False
    )
    status: Mapped[HandoffStatus] = mapped_column(
        _enum(HandoffStatus), default=HandoffStatus.PENDING
    )
    priority: Mapped[HandoffPriority] = mapped_column(
        _enum(HandoffPriority), default=HandoffPriority.MEDIUM
    )
    material_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    requirements: Mapped[str | None] = mapped_column(Text, nullable=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    response_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    results: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    receiving_project_id: Mapped[str | None] = mapped_column(
        CHAR(36), ForeignKey("projects.id", ondelete="SET NULL"), nullable=True
    )
    created_by_id: Mapped[str | None] = mapped_column(
        CHAR(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    assigned_to_id: Mapped[str | None] = mapped_column(
        CHAR(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    responded_by_id: Mapped[str | None] = mapped_column(
        CHAR(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    responded_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    from_org: Mapped["Organization"] = relationship("Organization", foreign_keys=[from_org_id])
    to_org: Mapped["Organization"] = relationship("Organization", foreign_keys=[to_org_id])
    from_project: Mapped["Project"] = relationship("Project", foreign_keys=[from_project_id])


class AuditLog(Base):
    """Append-only record of a mutation, written in the mutation's transaction.

    Attributes:
        object_type: Kind of object acted on.
        object_id: Id of the object (not a foreign key).
        action: What happened, e.g. ``grant`` or ``accept``.
        actor_id: FK to the acting user.
        actor_workspace_id: Workspace the actor belonged to at the time.
        details: Action specific payload.
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_logs_object", "object_type", "object_id"),
        Index("ix_audit_logs_actor_workspace", "actor_workspace_id"),
    )

    id: Mapped[str] = mapped_column(CHAR(36), primary_key=True, default=generate_uuid)
    object_type: Mapped[ObjectType] = mapped_column(_enum(ObjectType), nullable=False)
    object_id: Mapped[str] = mapped_column(CHAR(36), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    actor_id: Mapped[str | None] = mapped_column(
        CHAR(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    actor_workspace_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(UTC), nullable=False
    )
