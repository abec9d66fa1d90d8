"""Add audit_logs table.

Revision ID: 002
Revises: 001
Create Date: 2026-10-16

Append-only trail of mutations: access grant changes, collaboration request
transitions, batch transitions and lineage or analysis supersessions.
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import mysql

# revision identifiers
revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "audit_logs",
        sa.Column("id", mysql.CHAR(36), nullable=False),
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
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("actor_id", mysql.CHAR(36), nullable=True),
        sa.Column("actor_workspace_id", mysql.CHAR(36), nullable=False),
        sa.Column("details", sa.JSON, nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.ForeignKeyConstraint(["actor_id"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["actor_workspace_id"], ["workspaces.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_logs_object", "audit_logs", ["object_type", "object_id"])
    op.create_index("ix_audit_logs_actor_workspace", "audit_logs", ["actor_workspace_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_logs_actor_workspace", table_name="audit_logs")
    op.drop_index("ix_audit_logs_object", table_name="audit_logs")
    op.drop_table("audit_logs")
