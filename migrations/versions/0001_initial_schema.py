"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- devices ---
    op.create_table(
        "devices",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("device_id", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("last_seen", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_devices_id", "devices", ["id"])
    op.create_index("ix_devices_device_id", "devices", ["device_id"], unique=True)

    # --- chat_sessions ---
    op.create_table(
        "chat_sessions",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("device_id", sa.String(64), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("mood_score", sa.Integer(), nullable=False, server_default="50"),
        sa.Column("mood_label", sa.String(32), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "mood_score >= 0 AND mood_score <= 100", name="ck_chat_sessions_mood_score"
        ),
    )
    op.create_index("ix_chat_sessions_device_id", "chat_sessions", ["device_id"])
    op.create_index("ix_chat_sessions_start_time", "chat_sessions", ["start_time"])

    # --- mood_entries ---
    op.create_table(
        "mood_entries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("device_id", sa.String(64), nullable=False),
        sa.Column("session_id", sa.String(36), nullable=False),
        sa.Column("mood_score", sa.Integer(), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["session_id"], ["chat_sessions.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_mood_entries_id", "mood_entries", ["id"])
    op.create_index("ix_mood_entries_device_id", "mood_entries", ["device_id"])
    op.create_index("ix_mood_entries_session_id", "mood_entries", ["session_id"])


def downgrade() -> None:
    op.drop_index("ix_mood_entries_session_id", table_name="mood_entries")
    op.drop_index("ix_mood_entries_device_id", table_name="mood_entries")
    op.drop_index("ix_mood_entries_id", table_name="mood_entries")
    op.drop_table("mood_entries")
    op.drop_index("ix_chat_sessions_start_time", table_name="chat_sessions")
    op.drop_index("ix_chat_sessions_device_id", table_name="chat_sessions")
    op.drop_table("chat_sessions")
    op.drop_index("ix_devices_device_id", table_name="devices")
    op.drop_index("ix_devices_id", table_name="devices")
    op.drop_table("devices")
