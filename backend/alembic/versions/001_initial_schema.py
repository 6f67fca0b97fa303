"""Initial schema: users, recipients, recommendation requests and letters, outbox, audit.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("name", sa.String(255), default=""),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), default=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_users_email", "users", ["email"])

    op.create_table(
        "recipients",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("owner_id", UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("title", sa.String(255), default=""),
        sa.Column("institution", sa.String(255), default=""),
        sa.Column("department", sa.String(255), default=""),
        sa.Column("phone", sa.String(50), default=""),
        sa.Column("prefers_drafts", sa.Boolean(), default=False),
        sa.Column("notes", sa.Text(), default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("owner_id", "email", name="uq_recipients_owner_email"),
    )
    op.create_index("ix_recipients_owner_id", "recipients", ["owner_id"])

    op.create_table(
        "recommendation_requests",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("student_id", UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column(
            "recipient_id", UUID(as_uuid=True), sa.ForeignKey("recipients.id", ondelete="RESTRICT"), nullable=False
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("additional_context", sa.Text(), nullable=True),
        sa.Column("relationship_context", sa.Text(), nullable=True),
        sa.Column("communication_style", sa.String(20), nullable=False, server_default="polite"),
        sa.Column("priority", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("request_type", sa.String(20), nullable=False, server_default="direct_platform"),
        sa.Column("submission_method", sa.String(20), nullable=False, server_default="platform_only"),
        sa.Column("institution_name", sa.String(255), nullable=True),
        sa.Column("school_email", sa.String(255), nullable=True),
        sa.Column("school_instructions", sa.Text(), nullable=True),
        sa.Column("include_draft", sa.Boolean(), default=False),
        sa.Column("draft_content", sa.Text(), nullable=True),
        sa.Column("deadline", sa.DateTime(timezone=True), nullable=False),
        sa.Column("reminder_intervals", sa.JSON(), nullable=True),
        sa.Column("next_reminder_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_reminder_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reminder_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expired_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("secure_token", sa.String(128), nullable=True, unique=True),
        sa.Column("token_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_recommendation_requests_student_id", "recommendation_requests", ["student_id"])
    op.create_index("ix_recommendation_requests_recipient_id", "recommendation_requests", ["recipient_id"])
    op.create_index("idx_recrequests_student_status", "recommendation_requests", ["student_id", "status"])
    op.create_index("idx_recrequests_deadline_status", "recommendation_requests", ["deadline", "status"])
    op.create_index(
        "idx_recrequests_next_reminder_status", "recommendation_requests", ["next_reminder_date", "status"]
    )
    op.create_index("idx_recrequests_created", "recommendation_requests", ["created_at"])

    op.create_table(
        "recommendation_letters",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "request_id",
            UUID(as_uuid=True),
            sa.ForeignKey("recommendation_requests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("recipient_id", UUID(as_uuid=True), sa.ForeignKey("recipients.id", ondelete="SET NULL"), nullable=True),
        sa.Column("content", sa.Text(), default=""),
        sa.Column("file_name", sa.String(255), nullable=True),
        sa.Column("file_url", sa.String(1000), nullable=True),
        sa.Column("file_type", sa.String(100), nullable=True),
        sa.Column("file_size", sa.Integer(), nullable=True),
        sa.Column("submitted_by", sa.String(255), nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.UniqueConstraint("request_id", "version", name="uq_recletters_request_version"),
    )
    op.create_index("ix_recommendation_letters_request_id", "recommendation_letters", ["request_id"])

    op.create_table(
        "notification_logs",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "request_id",
            UUID(as_uuid=True),
            sa.ForeignKey("recommendation_requests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("notification_type", sa.String(50), nullable=False),
        sa.Column("recipient", sa.String(255), nullable=False),
        sa.Column("subject", sa.String(500), default=""),
        sa.Column("html", sa.Text(), default=""),
        sa.Column("text", sa.Text(), default=""),
        sa.Column("status", sa.String(20), nullable=False, server_default="queued"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_notification_logs_request_id", "notification_logs", ["request_id"])
    op.create_index("ix_notification_logs_status", "notification_logs", ["status"])

    op.create_table(
        "audit_logs",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column(
            "request_id",
            UUID(as_uuid=True),
            sa.ForeignKey("recommendation_requests.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("actor", sa.String(20), nullable=False, server_default="anonymous"),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("detail", sa.Text(), default=""),
        sa.Column("ip_address", sa.String(45), default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])
    op.create_index("idx_audit_logs_request_created", "audit_logs", ["request_id", "created_at"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("notification_logs")
    op.drop_table("recommendation_letters")
    op.drop_table("recommendation_requests")
    op.drop_table("recipients")
    op.drop_table("users")
