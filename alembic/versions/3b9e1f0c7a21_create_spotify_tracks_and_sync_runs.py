"""Create spotify_tracks and sync_runs tables

Revision ID: 3b9e1f0c7a21
Revises:
Create Date: 2025-03-02 21:36:39.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3b9e1f0c7a21"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "spotify_tracks",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("spotify_id", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=500), nullable=False),
        sa.Column("artist", sa.String(length=500), nullable=False),
        sa.Column("album", sa.String(length=500), nullable=True),
        sa.Column("album_art_url", sa.String(length=1000), nullable=True),
        sa.Column("preview_url", sa.String(length=1000), nullable=True),
        sa.Column("external_url", sa.String(length=1000), nullable=True),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        sa.Column("is_liked", sa.Boolean(), nullable=False, server_default="1"),
        sa.Column("liked_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_spotify_tracks_spotify_id"),
        "spotify_tracks",
        ["spotify_id"],
        unique=True,
    )
    op.create_index(
        op.f("ix_spotify_tracks_is_liked"), "spotify_tracks", ["is_liked"], unique=False
    )
    op.create_index(
        "idx_liked_at", "spotify_tracks", ["is_liked", "liked_at"], unique=False
    )

    op.create_table(
        "sync_runs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column(
            "status", sa.String(length=20), nullable=False, server_default="pending"
        ),
        sa.Column("tracks_added", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("tracks_updated", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("tracks_removed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("tracks_skipped", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "total_tracks_processed", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("failure_kind", sa.String(length=20), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_sync_runs_started_at"), "sync_runs", ["started_at"], unique=False
    )
    op.create_index(op.f("ix_sync_runs_status"), "sync_runs", ["status"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_sync_runs_status"), table_name="sync_runs")
    op.drop_index(op.f("ix_sync_runs_started_at"), table_name="sync_runs")
    op.drop_table("sync_runs")
    op.drop_index("idx_liked_at", table_name="spotify_tracks")
    op.drop_index(op.f("ix_spotify_tracks_is_liked"), table_name="spotify_tracks")
    op.drop_index(op.f("ix_spotify_tracks_spotify_id"), table_name="spotify_tracks")
    op.drop_table("spotify_tracks")
