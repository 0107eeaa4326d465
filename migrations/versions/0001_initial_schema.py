"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-16 00:00:00.000000

Signal tables read by the emotional context engine. A subject key matches
user_id OR device_id, so both columns are indexed on every signal table.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- mood_checkins ---
    op.create_table(
        "mood_checkins",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=True),
        sa.Column("device_id", sa.String(64), nullable=True),
        sa.Column("mood_rating", sa.Integer(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("mood_rating BETWEEN 1 AND 10", name="ck_mood_rating_range"),
    )
    op.create_index("ix_mood_checkins_id", "mood_checkins", ["id"])
    op.create_index("ix_mood_checkins_user_id", "mood_checkins", ["user_id"])
    op.create_index("ix_mood_checkins_device_id", "mood_checkins", ["device_id"])
    op.create_index("ix_mood_checkins_created_at", "mood_checkins", ["created_at"])

    # --- activity_logs ---
    op.create_table(
        "activity_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=True),
        sa.Column("device_id", sa.String(64), nullable=True),
        sa.Column("activity_type", sa.String(64), nullable=False),
        sa.Column(
            "completed_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_activity_logs_id", "activity_logs", ["id"])
    op.create_index("ix_activity_logs_user_id", "activity_logs", ["user_id"])
    op.create_index("ix_activity_logs_device_id", "activity_logs", ["device_id"])
    op.create_index("ix_activity_logs_completed_at", "activity_logs", ["completed_at"])

    # --- long_term_memories ---
    op.create_table(
        "long_term_memories",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("kind", sa.String(32), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_long_term_memories_id", "long_term_memories", ["id"])
    op.create_index("ix_long_term_memories_user_id", "long_term_memories", ["user_id"])
    op.create_index("ix_long_term_memories_kind", "long_term_memories", ["kind"])
    op.create_index("ix_long_term_memories_updated_at", "long_term_memories", ["updated_at"])

    # --- user_settings ---
    op.create_table(
        "user_settings",
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column(
            "pattern_reflection_consent",
            sa.String(16),
            nullable=False,
            server_default="undecided",
        ),
        sa.Column("pattern_reflection_enabled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("pattern_reflection_last_prompt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("user_id"),
    )


def downgrade() -> None:
    op.drop_table("user_settings")
    op.drop_index("ix_long_term_memories_updated_at", table_name="long_term_memories")
    op.drop_index("ix_long_term_memories_kind", table_name="long_term_memories")
    op.drop_index("ix_long_term_memories_user_id", table_name="long_term_memories")
    op.drop_index("ix_long_term_memories_id", table_name="long_term_memories")
    op.drop_table("long_term_memories")
    op.drop_index("ix_activity_logs_completed_at", table_name="activity_logs")
    op.drop_index("ix_activity_logs_device_id", table_name="activity_logs")
    op.drop_index("ix_activity_logs_user_id", table_name="activity_logs")
    op.drop_index("ix_activity_logs_id", table_name="activity_logs")
    op.drop_table("activity_logs")
    op.drop_index("ix_mood_checkins_created_at", table_name="mood_checkins")
    op.drop_index("ix_mood_checkins_device_id", table_name="mood_checkins")
    op.drop_index("ix_mood_checkins_user_id", table_name="mood_checkins")
    op.drop_index("ix_mood_checkins_id", table_name="mood_checkins")
    op.drop_table("mood_checkins")
