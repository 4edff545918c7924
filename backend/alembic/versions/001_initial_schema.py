"""Initial schema — users, counselors, sessions, transfers, messages, moderation, audit.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("external_chat_handle", sa.String(64), nullable=False, unique=True),
        sa.Column("conversation_state", sa.String(32), nullable=False, server_default="idle"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("last_seen_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "counselors",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("external_chat_handle", sa.String(64), nullable=False, unique=True),
        sa.Column("availability", sa.String(16), nullable=False, server_default="away"),
        sa.Column("is_approved", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_suspended", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("strikes", sa.Integer, nullable=False, server_default="0"),
        sa.Column("sessions_handled", sa.Integer, nullable=False, server_default="0"),
        sa.Column("rating_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("rating_total", sa.Integer, nullable=False, server_default="0"),
        sa.Column("full_name", sa.String(200), nullable=True),
        sa.Column("username", sa.String(100), nullable=True),
        sa.Column("languages_spoken", sa.JSON, nullable=False),
        sa.Column("domain_expertise", sa.JSON, nullable=False),
        sa.Column("years_experience", sa.Integer, nullable=True),
        sa.Column("country", sa.String(100), nullable=True),
        sa.Column("location", sa.String(200), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("last_active_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_counselors_availability", "counselors", ["availability"])

    op.create_table(
        "sessions",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("counselor_id", UUID(as_uuid=True), sa.ForeignKey("counselors.id"), nullable=False),
        sa.Column("current_counselor_id", UUID(as_uuid=True), sa.ForeignKey("counselors.id"), nullable=False),
        sa.Column("previous_counselor_id", UUID(as_uuid=True), sa.ForeignKey("counselors.id"), nullable=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("duration_minutes", sa.Integer, nullable=True),
        sa.Column("consent_given", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("consent_timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("transfer_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("rating_score", sa.Integer, nullable=True),
        sa.Column("rated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_sessions_user_id", "sessions", ["user_id"])
    op.create_index("ix_sessions_counselor_id", "sessions", ["counselor_id"])
    op.create_index(
        "uq_sessions_active_user", "sessions", ["user_id"], unique=True,
        postgresql_where=sa.text("is_active"),
    )
    op.create_index(
        "uq_sessions_active_counselor", "sessions", ["current_counselor_id"], unique=True,
        postgresql_where=sa.text("is_active"),
    )

    op.create_table(
        "session_transfers",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("session_id", UUID(as_uuid=True), sa.ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("from_counselor_id", UUID(as_uuid=True), nullable=False),
        sa.Column("to_counselor_id", UUID(as_uuid=True), nullable=False),
        sa.Column("reason", sa.Text, nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_session_transfers_session_id", "session_transfers", ["session_id"])
    op.create_index("ix_session_transfers_from_counselor_id", "session_transfers", ["from_counselor_id"])
    op.create_index("ix_session_transfers_to_counselor_id", "session_transfers", ["to_counselor_id"])

    op.create_table(
        "messages",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("session_id", UUID(as_uuid=True), sa.ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("sender_id", UUID(as_uuid=True), nullable=False),
        sa.Column("sender_type", sa.String(16), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_messages_session_id", "messages", ["session_id"])
    op.create_index("ix_messages_sender_id", "messages", ["sender_id"])
    op.create_index("ix_messages_timestamp", "messages", ["timestamp"])

    op.create_table(
        "reports",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("session_id", UUID(as_uuid=True), nullable=False),
        sa.Column("counselor_id", UUID(as_uuid=True), nullable=False),
        sa.Column("reason", sa.Text, nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("processed", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processed_by", sa.String(64), nullable=True),
        sa.Column("action", sa.String(16), nullable=True),
    )
    op.create_index("ix_reports_session_id", "reports", ["session_id"])
    op.create_index("ix_reports_counselor_id", "reports", ["counselor_id"])
    op.create_index("ix_reports_timestamp", "reports", ["timestamp"])
    op.create_index("ix_reports_processed", "reports", ["processed"])

    op.create_table(
        "appeals",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("counselor_id", UUID(as_uuid=True), sa.ForeignKey("counselors.id"), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("strikes_at_filing", sa.Integer, nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("processed", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processed_by", sa.String(64), nullable=True),
        sa.Column("outcome", sa.String(32), nullable=True),
    )
    op.create_index("ix_appeals_counselor_id", "appeals", ["counselor_id"])
    op.create_index("ix_appeals_timestamp", "appeals", ["timestamp"])
    op.create_index("ix_appeals_processed", "appeals", ["processed"])

    op.create_table(
        "audit_entries",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("admin_id", sa.String(64), nullable=False),
        sa.Column("action", sa.String(64), nullable=False),
        sa.Column("target_id", sa.String(64), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("details", sa.JSON, nullable=True),
    )
    op.create_index("ix_audit_entries_admin_id", "audit_entries", ["admin_id"])
    op.create_index("ix_audit_entries_action", "audit_entries", ["action"])
    op.create_index("ix_audit_entries_timestamp", "audit_entries", ["timestamp"])

    op.create_table(
        "availability_changes",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("counselor_id", UUID(as_uuid=True), sa.ForeignKey("counselors.id"), nullable=False),
        sa.Column("previous_status", sa.String(16), nullable=False),
        sa.Column("new_status", sa.String(16), nullable=False),
        sa.Column("changed_by", sa.String(64), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_availability_changes_counselor_id", "availability_changes", ["counselor_id"])
    op.create_index("ix_availability_changes_timestamp", "availability_changes", ["timestamp"])


def downgrade() -> None:
    op.drop_table("availability_changes")
    op.drop_table("audit_entries")
    op.drop_table("appeals")
    op.drop_table("reports")
    op.drop_table("messages")
    op.drop_table("session_transfers")
    op.drop_table("sessions")
    op.drop_table("counselors")
    op.drop_table("users")
