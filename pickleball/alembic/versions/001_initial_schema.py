"""001_initial_schema

Revision ID: 001
Revises:
Create Date: 2024-05-01 12:00:00.000000

Rotation schema: sessions, players, matches, match_players and the
partner / opponent history.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all rotation tables."""
    op.create_table(
        "sessions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("court_count", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("court_count >= 1", name="ck_sessions_court_count_positive"),
    )

    op.create_table(
        "players",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("matches_played", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_match_round", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["session_id"], ["sessions.id"]),
        sa.CheckConstraint("matches_played >= 0", name="ck_players_matches_played_nonneg"),
    )
    op.create_index("idx_players_session", "players", ["session_id"])
    op.create_index("idx_players_session_available", "players", ["session_id", "is_available"])

    op.create_table(
        "matches",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["session_id"], ["sessions.id"]),
        sa.CheckConstraint("round_number >= 1", name="ck_matches_round_positive"),
    )
    op.create_index("idx_matches_session", "matches", ["session_id"])
    op.create_index("idx_matches_session_round", "matches", ["session_id", "round_number"])
    op.create_index("idx_matches_status", "matches", ["status"])

    op.create_table(
        "match_players",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("match_id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column("team", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["match_id"], ["matches.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["player_id"], ["players.id"]),
        sa.CheckConstraint("team IN (1, 2)", name="ck_match_players_team"),
        sa.UniqueConstraint("match_id", "player_id", name="uq_match_players_match_player"),
    )
    op.create_index("idx_match_players_match", "match_players", ["match_id"])
    op.create_index("idx_match_players_player", "match_players", ["player_id"])

    op.create_table(
        "player_history",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column("other_player_id", sa.Integer(), nullable=False),
        sa.Column("relationship_type", sa.String(20), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_round", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["session_id"], ["sessions.id"]),
        sa.ForeignKeyConstraint(["player_id"], ["players.id"]),
        sa.ForeignKeyConstraint(["other_player_id"], ["players.id"]),
        sa.UniqueConstraint(
            "session_id",
            "player_id",
            "other_player_id",
            "relationship_type",
            name="uq_player_history_pair",
        ),
    )
    op.create_index(
        "idx_player_history_session_player", "player_history", ["session_id", "player_id"]
    )


def downgrade() -> None:
    """Drop all rotation tables."""
    op.drop_index("idx_player_history_session_player", table_name="player_history")
    op.drop_table("player_history")
    op.drop_index("idx_match_players_player", table_name="match_players")
    op.drop_index("idx_match_players_match", table_name="match_players")
    op.drop_table("match_players")
    op.drop_index("idx_matches_status", table_name="matches")
    op.drop_index("idx_matches_session_round", table_name="matches")
    op.drop_index("idx_matches_session", table_name="matches")
    op.drop_table("matches")
    op.drop_index("idx_players_session_available", table_name="players")
    op.drop_index("idx_players_session", table_name="players")
    op.drop_table("players")
    op.drop_table("sessions")
