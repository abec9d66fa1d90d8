"""Initial database schema.

Revision ID: 001
Revises:
Create Date: 2026-10-16

Complete schema for the lab lineage service including:
- Workspaces (tenancy boundary), users and organizations
- Projects, trials and per-project trial parameter templates
- Samples and derived samples with revision chains
- Analysis batches, batch items, analysis types and analyses
- Object-level access grants
- Cross-workspace collaboration requests
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import mysql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _lifecycle_columns() -> list[sa.Column]:
    return [
        sa.Column(
            "lifecycle",
            sa.Enum("active", "deleted", name="lifecyclestate"),
            nullable=False,
            server_default="active",
        ),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
    ]


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column(
            "updated_at", sa.DateTime(), server_default=sa.func.now(), onupdate=sa.func.now()
        ),
    ]


def upgrade() -> None:
    """Create all tables."""

    # Workspaces (tenancy boundary)
    op.create_table(
        "workspaces",
        sa.Column("id", mysql.CHAR(36), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False),
        sa.Column("parent_workspace_id", mysql.CHAR(36), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        *_lifecycle_columns(),
        sa.ForeignKeyConstraint(["parent_workspace_id"], ["workspaces.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("slug"),
    )

    # Users table
    op.create_table(
        "users",
        sa.Column("id", mysql.CHAR(36), nullable=False),
        sa.Column("workspace_id", mysql.CHAR(36), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("role", sa.Enum("admin", "member", "viewer", name="userrole"), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True, default=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["workspace_id"], ["workspaces.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("workspace_id", "email", name="uq_users_workspace_email"),
    )
    op.create_index("ix_users_workspace_id", "users", ["workspace_id"])

    # Organizations (parties inside a workspace)
    op.create_table(
        "organizations",
        sa.Column("id", mysql.CHAR(36), nullable=False),
        sa.Column("workspace_id", mysql.CHAR(36), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column(
            "type",
            sa.Enum(
                "client",
                "laboratory",
                "analyzer",
                "pharma",
                "internal",
                name="organizationtype",
            ),
            nullable=False,
        ),
        sa.Column("contact", sa.JSON(), nullable=True),
        sa.Column("is_partner", sa.Boolean(), nullable=True, default=False),
        *_timestamps(),
        *_lifecycle_columns(),
        sa.ForeignKeyConstraint(["workspace_id"], ["workspaces.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_organizations_workspace_id", "organizations", ["workspace_id"])

    # Projects table
    op.create_table(
        "projects",
        sa.Column("id", mysql.CHAR(36), nullable=False),
        sa.Column("workspace_id", mysql.CHAR(36), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("client_org_id", mysql.CHAR(36), nullable=True),
        sa.Column("external_client_name", sa.String(255), nullable=True),
        sa.Column("executing_org_id", mysql.CHAR(36), nullable=False),
        sa.Column(
            "workflow_mode",
            sa.Enum("analysis_first", "trial_first", name="workflowmode"),
            nullable=True,
        ),
        sa.Column(
            "status",
            sa.Enum("active", "on_hold", "completed", "archived", name="projectstatus"),
            nullable=True,
        ),
        sa.Column("external_reference", sa.String(255), nullable=True),
        sa.Column("created_by_id", mysql.CHAR(36), nullable=True),
        *_timestamps(),
        *_lifecycle_columns(),
        sa.ForeignKeyConstraint(["workspace_id"], ["workspaces.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["client_org_id"], ["organizations.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["executing_org_id"], ["organizations.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["created_by_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_projects_workspace_id", "projects", ["workspace_id"])
    op.create_index("ix_projects_client_org_id", "projects", ["client_org_id"])
    op.create_index("ix_projects_executing_org_id", "projects", ["executing_org_id"])

    # Trials table
    op.create_table(
        "trials",
        sa.Column("id", mysql.CHAR(36), nullable=False),
        sa.Column("workspace_id", mysql.CHAR(36), nullable=False),
        sa.Column("project_id", mysql.CHAR(36), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("objective", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "status",
            sa.Enum("planned", "active", "completed", "cancelled", name="trialstatus"),
            nullable=True,
        ),
        *_timestamps(),
        *_lifecycle_columns(),
        sa.ForeignKeyConstraint(["workspace_id"], ["workspaces.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_trials_project_id", "trials", ["project_id"])
    op.create_index("ix_trials_workspace_id", "trials", ["workspace_id"])

    # Trial parameter templates (one per project)
    op.create_table(
        "trial_parameter_templates",
        sa.Column("id", mysql.CHAR(36), nullable=False),
        sa.Column("workspace_id", mysql.CHAR(36), nullable=False),
        sa.Column("project_id", mysql.CHAR(36), nullable=False),
        sa.Column("schema_version", sa.Integer(), nullable=True, default=1),
        sa.Column("columns", sa.JSON(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=True, default=1),
        *_timestamps(),
        sa.ForeignKeyConstraint(["workspace_id"], ["workspaces.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("project_id"),
    )

    # Samples table
    op.create_table(
        "samples",
        sa.Column("id", mysql.CHAR(36), nullable=False),
        sa.Column("workspace_id", mysql.CHAR(36), nullable=False),
        sa.Column("project_id", mysql.CHAR(36), nullable=False),
        sa.Column("trial_id", mysql.CHAR(36), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("sample_type", sa.String(100), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("parameters", sa.JSON(), nullable=True),
        sa.Column("external_reference", sa.String(255), nullable=True),
        sa.Column("created_by_id", mysql.CHAR(36), nullable=True),
        *_timestamps(),
        *_lifecycle_columns(),
        sa.ForeignKeyConstraint(["workspace_id"], ["workspaces.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["trial_id"], ["trials.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["created_by_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_samples_workspace_id", "samples", ["workspace_id"])
    op.create_index("ix_samples_project_id", "samples", ["project_id"])

    # Derived samples with revision chains
    op.create_table(
        "derived_samples",
        sa.Column("id", mysql.CHAR(36), nullable=False),
        sa.Column("workspace_id", mysql.CHAR(36), nullable=False),
        sa.Column("parent_sample_id", mysql.CHAR(36), nullable=False),
        sa.Column("parent_derived_id", mysql.CHAR(36), nullable=True),
        sa.Column("depth", sa.Integer(), nullable=True, default=1),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("derivation_method", sa.String(100), nullable=True),
        sa.Column("derivation_metadata", sa.JSON(), nullable=True),
        sa.Column("supersedes_id", mysql.CHAR(36), nullable=True),
        sa.Column("superseded_by_id", mysql.CHAR(36), nullable=True),
        sa.Column("superseded_at", sa.DateTime(), nullable=True),
        sa.Column("created_by_id", mysql.CHAR(36), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        *_lifecycle_columns(),
        sa.ForeignKeyConstraint(["workspace_id"], ["workspaces.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["parent_sample_id"], ["samples.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["parent_derived_id"], ["derived_samples.id"], ondelete="SET NULL"
        ),
        sa.ForeignKeyConstraint(["supersedes_id"], ["derived_samples.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(
            ["superseded_by_id"], ["derived_samples.id"], ondelete="SET NULL"
        ),
        sa.ForeignKeyConstraint(["created_by_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("supersedes_id", name="uq_derived_samples_supersedes_id"),
    )
    op.create_index("ix_derived_samples_workspace_id", "derived_samples", ["workspace_id"])
    op.create_index(
        "ix_derived_samples_parent_sample_id", "derived_samples", ["parent_sample_id"]
    )

    # Analysis batches
    op.create_table(
        "batches",
        sa.Column("id", mysql.CHAR(36), nullable=False),
        sa.Column("workspace_id", mysql.CHAR(36), nullable=False),
        sa.Column("batch_code", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "status",
            sa.Enum(
                "created",
                "in_progress",
                "ready",
                "sent",
                "completed",
                "failed",
                name="batchstatus",
            ),
            nullable=True,
        ),
        sa.Column(
            "execution_mode",
            sa.Enum("platform", "external", name="executionmode"),
            nullable=True,
        ),
        sa.Column("executed_by_org_id", mysql.CHAR(36), nullable=True),
        sa.Column("external_reference", sa.String(255), nullable=True),
        sa.Column("annotations", sa.JSON(), nullable=True),
        sa.Column("sent_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("created_by_id", mysql.CHAR(36), nullable=True),
        *_timestamps(),
        *_lifecycle_columns(),
        sa.ForeignKeyConstraint(["workspace_id"], ["workspaces.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["executed_by_org_id"], ["organizations.id"], ondelete="SET NULL"
        ),
        sa.ForeignKeyConstraint(["created_by_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("workspace_id", "batch_code", name="uq_batches_workspace_code"),
    )
    op.create_index("ix_batches_workspace_id", "batches", ["workspace_id"])
    op.create_index("ix_batches_status", "batches", ["status"])

    # Batch items
    op.create_table(
        "batch_items",
        sa.Column("id", mysql.CHAR(36), nullable=False),
        sa.Column("batch_id", mysql.CHAR(36), nullable=False),
        sa.Column("sample_id", mysql.CHAR(36), nullable=False),
        sa.Column("derived_sample_id", mysql.CHAR(36), nullable=True),
        sa.Column("sequence", sa.Integer(), nullable=True, default=0),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["batch_id"], ["batches.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["sample_id"], ["samples.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["derived_sample_id"], ["derived_samples.id"], ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("batch_id", "sample_id", name="uq_batch_items_sample"),
    )

    # Analysis types (global catalog)
    op.create_table(
        "analysis_types",
        sa.Column("id", mysql.CHAR(36), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True, default=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    # Analyses; is_authoritative is TRUE or NULL so the unique key binds one row
    op.create_table(
        "analyses",
        sa.Column("id", mysql.CHAR(36), nullable=False),
        sa.Column("workspace_id", mysql.CHAR(36), nullable=False),
        sa.Column("batch_id", mysql.CHAR(36), nullable=False),
        sa.Column("sample_id", mysql.CHAR(36), nullable=False),
        sa.Column("analysis_type_id", mysql.CHAR(36), nullable=False),
        sa.Column(
            "status",
            sa.Enum("pending", "in_progress", "completed", "failed", name="analysisstatus"),
            nullable=True,
        ),
        sa.Column("results", sa.JSON(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("is_authoritative", sa.Boolean(), nullable=True),
        sa.Column("supersedes_id", mysql.CHAR(36), nullable=True),
        sa.Column("uploaded_by_id", mysql.CHAR(36), nullable=True),
        *_timestamps(),
        *_lifecycle_columns(),
        sa.ForeignKeyConstraint(["workspace_id"], ["workspaces.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["batch_id"], ["batches.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["sample_id"], ["samples.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["analysis_type_id"], ["analysis_types.id"], ondelete="RESTRICT"
        ),
        sa.ForeignKeyConstraint(["supersedes_id"], ["analyses.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["uploaded_by_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "sample_id",
            "analysis_type_id",
            "is_authoritative",
            name="uq_analyses_authoritative",
        ),
    )
    op.create_index("ix_analyses_workspace_id", "analyses", ["workspace_id"])
    op.create_index("ix_analyses_batch_id", "analyses", ["batch_id"])
    op.create_index("ix_analyses_sample_type", "analyses", ["sample_id", "analysis_type_id"])

    # Object-level access grants
    op.create_table(
        "access_grants",
        sa.Column("id", mysql.CHAR(36), nullable=False),
        sa.Column("user_id", mysql.CHAR(36), nullable=False),
        sa.Column(
            "object_type",
            sa.Enum(
                "project",
                "trial",
                "sample",
                "derived_sample",
                "batch",
                "analysis",
                "supply_chain_request",
                name="objecttype",
            ),
            nullable=False,
        ),
        sa.Column("object_id", mysql.CHAR(36), nullable=False),
        sa.Column(
            "access_level", sa.Enum("view", "edit", "full", name="accesslevel"), nullable=False
        ),
        sa.Column("granted_by_id", mysql.CHAR(36), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["granted_by_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "user_id", "object_type", "object_id", name="uq_access_grants_triple"
        ),
    )
    op.create_index("ix_access_grants_object", "access_grants", ["object_type", "object_id"])

    # Cross-workspace collaboration requests
    op.create_table(
        "supply_chain_requests",
        sa.Column("id", mysql.CHAR(36), nullable=False),
        sa.Column("from_org_id", mysql.CHAR(36), nullable=False),
        sa.Column("to_org_id", mysql.CHAR(36), nullable=False),
        sa.Column("from_project_id", mysql.CHAR(36), nullable=False),
        sa.Column("from_workspace_id", mysql.CHAR(36), nullable=False),
        sa.Column("to_workspace_id", mysql.CHAR(36), nullable=False),
        sa.Column(
            "workflow_type",
            sa.Enum(
                "analysis_only",
                "material_transfer",
                "product_continuation",
                "supply_chain",
                name="handoffworkflow",
            ),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum(
                "pending",
                "accepted",
                "in_progress",
                "completed",
                "rejected",
                name="handoffstatus",
            ),
            default="pending",
        ),
        sa.Column(
            "priority",
            sa.Enum("low", "medium", "high", "urgent", name="handoffpriority"),
            default="medium",
        ),
        sa.Column("material_data", sa.JSON(), nullable=True),
        sa.Column("requirements", sa.Text(), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("response_notes", sa.Text(), nullable=True),
        sa.Column("results", sa.JSON(), nullable=True),
        sa.Column("receiving_project_id", mysql.CHAR(36), nullable=True),
        sa.Column("created_by_id", mysql.CHAR(36), nullable=True),
        sa.Column("assigned_to_id", mysql.CHAR(36), nullable=True),
        sa.Column("responded_by_id", mysql.CHAR(36), nullable=True),
        sa.Column("responded_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["from_org_id"], ["organizations.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["to_org_id"], ["organizations.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["from_project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["from_workspace_id"], ["workspaces.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["to_workspace_id"], ["workspaces.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["receiving_project_id"], ["projects.id"], ondelete="SET NULL"
        ),
        sa.ForeignKeyConstraint(["created_by_id"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["assigned_to_id"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["responded_by_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_supply_chain_requests_from_workspace", "supply_chain_requests", ["from_workspace_id"]
    )
    op.create_index(
        "ix_supply_chain_requests_to_workspace", "supply_chain_requests", ["to_workspace_id"]
    )
    op.create_index("ix_supply_chain_requests_status", "supply_chain_requests", ["status"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("supply_chain_requests")
    op.drop_table("access_grants")
    op.drop_table("analyses")
    op.drop_table("analysis_types")
    op.drop_table("batch_items")
    op.drop_table("batches")
    op.drop_table("derived_samples")
    op.drop_table("samples")
    op.drop_table("trial_parameter_templates")
    op.drop_table("trials")
    op.drop_table("projects")
    op.drop_table("organizations")
    op.drop_table("users")
    op.drop_table("workspaces")
