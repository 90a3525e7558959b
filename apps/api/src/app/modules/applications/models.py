"""
Applications Models

One application document per applicant, keyed by the applicant's identity,
plus the outbox of notifications that could not be delivered.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSON, UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class ApplicationStatus(str, enum.Enum):
    """Publicly visible lifecycle status of an application."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    WAITLISTED = "waitlisted"
    ENROLLED = "enrolled"


class Decision(str, enum.Enum):
    """Outcome an administrator can record and later release."""

    ACCEPTED = "accepted"
    REJECTED = "rejected"
    WAITLISTED = "waitlisted"


class NotificationKind(str, enum.Enum):
    """Types of applicant notifications."""

    SUBMISSION = "submission"
    DECISION = "decision"


class Application(Base):
    """
    Tutor programme application.

    ``id`` is the owning user's identity, so a user can never hold more
    than one application. Form sections are stored as JSON documents and
    updated by field path.
    """

    __tablename__ = "applications"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)

    status: Mapped[ApplicationStatus] = mapped_column(
        Enum(
            ApplicationStatus,
            name="application_status",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=ApplicationStatus.DRAFT,
    )

    # Form sections
    personal_info: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    essays: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    misc: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    # Admin-only data, never returned to the applicant
    internal_decision: Mapped[Decision | None] = mapped_column(
        Enum(Decision, name="application_decision", values_callable=lambda e: [m.value for m in e]),
        nullable=True,
    )
    # [{content: str, author: str, timestamp: iso8601}, ...]
    notes: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Lifecycle timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    decision_released_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Optimistic concurrency: a stale write raises StaleDataError
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_applications_status", "status"),
        Index("ix_applications_last_updated_at", "last_updated_at"),
    )


class PendingNotification(Base):
    """
    A notification that failed to send and is waiting for a retry.

    Rows are created only on failure; ``sent_at`` is set once a retry
    succeeds so the entry is never delivered twice.
    """

    __tablename__ = "pending_notifications"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    application_id: Mapped[str] = mapped_column(
        String(128),
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
    )

    kind: Mapped[NotificationKind] = mapped_column(
        Enum(
            NotificationKind,
            name="notification_kind",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )
    to_email: Mapped[str] = mapped_column(String(255), nullable=False)
    recipient_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    decision: Mapped[str | None] = mapped_column(String(20), nullable=True)

    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    last_attempt_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_pending_notifications_application_id", "application_id"),
        Index("ix_pending_notifications_sent_at", "sent_at"),
    )
