"""Initial BrainBattle schema.

Creates users, refresh_tokens, profiles, subjects, challenges,
game_sessions, game_participants, user_progress, badges and user_badges.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18
"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _ts(name: str, nullable: bool = True) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    """Create all tables."""
    # --- Identity ---
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(256), nullable=False),
        _ts("created_at"),
        _ts("last_login"),
        sa.Column("login_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("is_banned", sa.Boolean(), server_default="false", nullable=False),
    )

    op.create_table(
        "refresh_tokens",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("token_hash", sa.String(128), nullable=False),
        _ts("issued_at", nullable=False),
        _ts("expires_at", nullable=False),
        _ts("revoked_at"),
        sa.Column("user_agent", sa.String(512), nullable=True),
        sa.Column("is_revoked", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("replaced_by", sa.String(36), nullable=True),
    )
    op.create_index("ix_refresh_tokens_user_id", "refresh_tokens", ["user_id"])

    op.create_table(
        "profiles",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("username", sa.String(64), nullable=True, unique=True),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("total_points", sa.Integer(), server_default="0", nullable=False),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_profiles_total_points", "profiles", ["total_points"])

    # --- Reference content ---
    op.create_table(
        "subjects",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(128), nullable=False, unique=True),
        sa.Column("icon", sa.String(16), nullable=False),
        sa.Column("color", sa.String(32), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _ts("created_at"),
    )

    op.create_table(
        "challenges",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("subject_id", sa.Uuid(), sa.ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("difficulty", sa.String(16), nullable=False),
        sa.Column("question", sa.Text(), nullable=False),
        sa.Column("options", sa.JSON(), nullable=False),
        sa.Column("correct_answer", sa.Text(), nullable=False),
        sa.Column("explanation", sa.Text(), nullable=True),
        _ts("created_at"),
    )
    op.create_index("ix_challenges_subject_id", "challenges", ["subject_id"])

    # --- Sessions ---
    op.create_table(
        "game_sessions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("subject_id", sa.Uuid(), sa.ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("difficulty", sa.String(16), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="waiting"),
        sa.Column("questions", sa.JSON(none_as_null=True), nullable=True),
        _ts("created_at"),
        _ts("started_at"),
        _ts("ended_at"),
        sa.CheckConstraint(
            "status IN ('waiting', 'starting', 'in_progress', 'completed')",
            name="ck_game_sessions_status",
        ),
        sa.CheckConstraint(
            "difficulty IN ('basic', 'intermediate', 'advanced')",
            name="ck_game_sessions_difficulty",
        ),
    )
    op.create_index("ix_game_sessions_status", "game_sessions", ["status"])
    op.create_index(
        "ix_game_sessions_matchmaking",
        "game_sessions",
        ["subject_id", "difficulty", "status", "created_at"],
    )

    op.create_table(
        "game_participants",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("session_id", sa.Uuid(), sa.ForeignKey("game_sessions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=True),
        sa.Column("is_ai", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("ai_name", sa.String(64), nullable=True),
        sa.Column("score", sa.Integer(), server_default="0", nullable=False),
        sa.Column("current_question", sa.Integer(), server_default="0", nullable=False),
        sa.Column("answers", sa.JSON(none_as_null=True), nullable=True),
        _ts("created_at"),
        _ts("completed_at"),
        sa.UniqueConstraint("session_id", "user_id", name="game_participants_session_user_key"),
    )
    op.create_index("ix_game_participants_session_id", "game_participants", ["session_id"])

    # --- Progress & badges ---
    op.create_table(
        "user_progress",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("subject_id", sa.Uuid(), sa.ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("difficulty", sa.String(16), nullable=False),
        sa.Column("completed", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("wins", sa.Integer(), server_default="0", nullable=False),
        _ts("created_at"),
        _ts("updated_at"),
        sa.UniqueConstraint("user_id", "subject_id", "difficulty", name="user_progress_user_subject_difficulty_key"),
    )

    op.create_table(
        "badges",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(128), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("icon", sa.String(16), nullable=False),
        sa.Column("badge_type", sa.String(32), nullable=False),
        sa.Column("subject_id", sa.Uuid(), sa.ForeignKey("subjects.id", ondelete="SET NULL"), nullable=True),
        sa.Column("difficulty", sa.String(16), nullable=True),
        _ts("created_at"),
    )

    op.create_table(
        "user_badges",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("badge_id", sa.Uuid(), sa.ForeignKey("badges.id", ondelete="CASCADE"), nullable=False),
        _ts("earned_at"),
        sa.UniqueConstraint("user_id", "badge_id", name="user_badges_user_id_badge_id_key"),
    )


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    for table in (
        "user_badges",
        "badges",
        "user_progress",
        "game_participants",
        "game_sessions",
        "challenges",
        "subjects",
        "profiles",
        "refresh_tokens",
        "users",
    ):
        op.drop_table(table)
