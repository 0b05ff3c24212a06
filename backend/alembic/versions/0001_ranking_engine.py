"""ratable entities, ranking snapshots and rating events

Revision ID: 0001_ranking_engine
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001_ranking_engine"
down_revision = None
branch_labels = None
depends_on = None


def _entity_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("sport_type", sa.String(), nullable=False),
        sa.Column("rating", sa.Float(), nullable=False, server_default=sa.text("1000.0")),
        sa.Column("total_points", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("matches_played", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("matches_won", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("current_rank", sa.Integer(), nullable=True),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "player",
        *_entity_columns(),
        sa.Column("user_id", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_player_sport_type", "player", ["sport_type"])

    op.create_table(
        "team",
        *_entity_columns(),
        sa.Column("matches_lost", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_team_sport_type", "team", ["sport_type"])

    op.create_table(
        "ranking_snapshot",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("sport_type", sa.String(), nullable=False),
        sa.Column("ranking_type", sa.String(), nullable=False),
        sa.Column("ranking_category", sa.String(), nullable=False),
        sa.Column("entity_id", sa.String(), nullable=False),
        sa.Column("rank", sa.Integer(), nullable=False),
        sa.Column("previous_rank", sa.Integer(), nullable=True),
        sa.Column("points", sa.Float(), nullable=False, server_default=sa.text("0.0")),
        sa.Column("rating", sa.Float(), nullable=False),
        sa.Column("ranking_date", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "sport_type",
            "ranking_type",
            "ranking_category",
            "entity_id",
            "ranking_date",
            name="uq_ranking_snapshot_partition_entity_date",
        ),
    )
    op.create_index(
        "ix_ranking_snapshot_entity_id", "ranking_snapshot", ["entity_id"]
    )
    op.create_index(
        "ix_ranking_snapshot_partition_date",
        "ranking_snapshot",
        ["sport_type", "ranking_type", "ranking_category", "ranking_date"],
    )

    op.create_table(
        "rating_event",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("match_id", sa.String(), nullable=True),
        sa.Column("sport_type", sa.String(), nullable=False),
        sa.Column("ranking_category", sa.String(), nullable=False),
        sa.Column("winner_id", sa.String(), nullable=False),
        sa.Column("loser_id", sa.String(), nullable=False),
        sa.Column("winner_delta", sa.Float(), nullable=False),
        sa.Column("loser_delta", sa.Float(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("match_id", name="uq_rating_event_match_id"),
    )


def downgrade() -> None:
    op.drop_table("rating_event")
    op.drop_index("ix_ranking_snapshot_partition_date", table_name="ranking_snapshot")
    op.drop_index("ix_ranking_snapshot_entity_id", table_name="ranking_snapshot")
    op.drop_table("ranking_snapshot")
    op.drop_index("ix_team_sport_type", table_name="team")
    op.drop_table("team")
    op.drop_index("ix_player_sport_type", table_name="player")
    op.drop_table("player")
