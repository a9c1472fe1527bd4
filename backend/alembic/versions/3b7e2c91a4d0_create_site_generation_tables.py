"""create site generation tables

Revision ID: 3b7e2c91a4d0
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b7e2c91a4d0"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create projects, user_settings, generation_versions and generated_files."""
    op.create_table(
        "projects",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("clerk_user_id", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=50), nullable=False, server_default="draft"),
        sa.Column("generation_config", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("last_generated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_projects_clerk_user_id"), "projects", ["clerk_user_id"], unique=False)

    op.create_table(
        "user_settings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("clerk_user_id", sa.String(length=255), nullable=False),
        sa.Column("plan", sa.String(length=50), nullable=False, server_default="free"),
        sa.Column("generation_credits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("generation_credits >= 0", name="ck_user_settings_credits_non_negative"),
    )
    op.create_index(op.f("ix_user_settings_clerk_user_id"), "user_settings", ["clerk_user_id"], unique=True)

    op.create_table(
        "generation_versions",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("project_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("version_number", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=50), nullable=False, server_default="generating"),
        sa.Column("trigger_type", sa.String(length=50), nullable=False),
        sa.Column("model_used", sa.String(length=100), nullable=True),
        sa.Column("generation_time_ms", sa.Integer(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("project_id", "version_number", name="uq_generation_versions_project_number"),
    )
    op.create_index(op.f("ix_generation_versions_project_id"), "generation_versions", ["project_id"], unique=False)

    op.create_table(
        "generated_files",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("project_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("version_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("file_path", sa.String(length=500), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("file_type", sa.String(length=50), nullable=False, server_default="component"),
        sa.Column("section_type", sa.String(length=50), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["version_id"], ["generation_versions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("version_id", "file_path", name="uq_generated_files_version_path"),
    )
    op.create_index(op.f("ix_generated_files_project_id"), "generated_files", ["project_id"], unique=False)
    op.create_index(op.f("ix_generated_files_version_id"), "generated_files", ["version_id"], unique=False)


def downgrade() -> None:
    """Drop the site generation tables."""
    op.drop_index(op.f("ix_generated_files_version_id"), table_name="generated_files")
    op.drop_index(op.f("ix_generated_files_project_id"), table_name="generated_files")
    op.drop_table("generated_files")
    op.drop_index(op.f("ix_generation_versions_project_id"), table_name="generation_versions")
    op.drop_table("generation_versions")
    op.drop_index(op.f("ix_user_settings_clerk_user_id"), table_name="user_settings")
    op.drop_table("user_settings")
    op.drop_index(op.f("ix_projects_clerk_user_id"), table_name="projects")
    op.drop_table("projects")
