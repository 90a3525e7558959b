"""create applications and pending_notifications tables

Revision ID: b7c8d9e0f1a2
Revises:
Create Date: 2026-03-02 09:00:00.000000

This migration creates:
1. The applications table, one row per applicant keyed by their identity,
   with the form sections stored as JSON documents
2. The pending_notifications outbox for emails that failed to send
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "b7c8d9e0f1a2"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


application_status_enum = postgresql.ENUM(
    "draft",
    "submitted",
    "under_review",
    "accepted",
    "rejected",
    "waitlisted",
    "enrolled",
    name="application_status",
    create_type=False,
)

application_decision_enum = postgresql.ENUM(
    "accepted",
    "rejected",
    "waitlisted",
    name="application_decision",
    create_type=False,
)

notification_kind_enum = postgresql.ENUM(
    "submission",
    "decision",
    name="notification_kind",
    create_type=False,
)


def upgrade() -> None:
    """Create enum types, applications and pending_notifications."""
    bind = op.get_bind()
    application_status_enum.create(bind, checkfirst=True)
    application_decision_enum.create(bind, checkfirst=True)
    notification_kind_enum.create(bind, checkfirst=True)

    op.create_table(
        "applications",
        sa.Column("id", sa.String(length=128), primary_key=True),
        sa.Column("status", application_status_enum, nullable=False, server_default="draft"),
        sa.Column("personal_info", postgresql.JSON(), nullable=False),
        sa.Column("essays", postgresql.JSON(), nullable=False),
        sa.Column("misc", postgresql.JSON(), nullable=False),
        sa.Column("internal_decision", application_decision_enum, nullable=True),
        sa.Column(
            "notes",
            postgresql.JSON(),
            nullable=False,
            comment="Admin-only notes: [{content, author, timestamp}]",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "last_updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("decision_released_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
    )
    op.create_index("ix_applications_status", "applications", ["status"])
    op.create_index("ix_applications_last_updated_at", "applications", ["last_updated_at"])

    op.create_table(
        "pending_notifications",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "application_id",
            sa.String(length=128),
            sa.ForeignKey("applications.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("kind", notification_kind_enum, nullable=False),
        sa.Column("to_email", sa.String(length=255), nullable=False),
        sa.Column("recipient_name", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("decision", sa.String(length=20), nullable=True),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("last_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_pending_notifications_application_id",
        "pending_notifications",
        ["application_id"],
    )
    op.create_index("ix_pending_notifications_sent_at", "pending_notifications", ["sent_at"])


def downgrade() -> None:
    """Drop both tables and their enum types."""
    op.drop_index("ix_pending_notifications_sent_at", table_name="pending_notifications")
    op.drop_index("ix_pending_notifications_application_id", table_name="pending_notifications")
    op.drop_table("pending_notifications")

    op.drop_index("ix_applications_last_updated_at", table_name="applications")
    op.drop_index("ix_applications_status", table_name="applications")
    op.drop_table("applications")

    bind = op.get_bind()
    notification_kind_enum.drop(bind, checkfirst=True)
    application_decision_enum.drop(bind, checkfirst=True)
    application_status_enum.drop(bind, checkfirst=True)
