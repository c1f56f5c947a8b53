"""initial

Revision ID: 001
Revises:
Create Date: 2026-10-18

Projects with document-level settings/script rows, scenes and shots with an
opaque metadata column, and per-project asset collections.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _project_id_column() -> sa.Column:
    return sa.Column("project_id", sa.String(64), nullable=False)


def upgrade() -> None:
    op.create_table(
        "projects",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("settings", postgresql.JSONB(), nullable=True),
        sa.Column("title_page", postgresql.JSONB(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_synced", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_projects_user_id", "projects", ["user_id"])

    op.create_table(
        "scripts",
        sa.Column("id", sa.String(64), nullable=False),
        _project_id_column(),
        sa.Column("content", postgresql.JSONB(), nullable=True),
        sa.Column("last_saved", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("project_id", name="scripts_project_id_unique"),
    )

    op.create_table(
        "scenes",
        sa.Column("id", sa.String(64), nullable=False),
        _project_id_column(),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("heading", sa.Text(), nullable=False),
        sa.Column("action_notes", sa.Text(), nullable=True),
        sa.Column("location_id", sa.String(64), nullable=True),
        sa.Column("script_elements", postgresql.JSONB(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_scenes_project_id", "scenes", ["project_id"])

    op.create_table(
        "shots",
        sa.Column("id", sa.String(64), nullable=False),
        _project_id_column(),
        sa.Column("scene_id", sa.String(64), nullable=True),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("shot_type", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("dialogue", sa.Text(), nullable=True),
        sa.Column("camera_movement", sa.Text(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["scene_id"], ["scenes.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_shots_project_id", "shots", ["project_id"])

    op.create_table(
        "characters",
        sa.Column("id", sa.String(64), nullable=False),
        _project_id_column(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("image_url", sa.String(2048), nullable=True),
        sa.Column("reference_photos", postgresql.JSONB(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_characters_project_id", "characters", ["project_id"])

    op.create_table(
        "outfits",
        sa.Column("id", sa.String(64), nullable=False),
        _project_id_column(),
        sa.Column("character_id", sa.String(64), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("reference_photos", postgresql.JSONB(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_outfits_project_id", "outfits", ["project_id"])

    op.create_table(
        "library_images",
        sa.Column("id", sa.String(64), nullable=False),
        _project_id_column(),
        sa.Column("url", sa.String(2048), nullable=False),
        sa.Column("shot_id", sa.String(64), nullable=True),
        sa.Column("prompt", sa.Text(), nullable=True),
        sa.Column("is_favorite", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_library_images_project_id", "library_images", ["project_id"])


def downgrade() -> None:
    op.drop_index("ix_library_images_project_id", table_name="library_images")
    op.drop_table("library_images")
    op.drop_index("ix_outfits_project_id", table_name="outfits")
    op.drop_table("outfits")
    op.drop_index("ix_characters_project_id", table_name="characters")
    op.drop_table("characters")
    op.drop_index("ix_shots_project_id", table_name="shots")
    op.drop_table("shots")
    op.drop_index("ix_scenes_project_id", table_name="scenes")
    op.drop_table("scenes")
    op.drop_table("scripts")
    op.drop_index("ix_projects_user_id", table_name="projects")
    op.drop_table("projects")
