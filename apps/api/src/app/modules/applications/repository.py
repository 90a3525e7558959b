"""
Applications Repository

Document-store operations for application records and the pending
notification outbox. Records are keyed by the owner's identity and updated
by field path (``"personal_info.university"``), so a save only touches the
fields it names.

Design Principles:
- Single responsibility - only database operations, no business rules
- Every mutation refreshes ``last_updated_at``
- Timezone-aware datetime handling (UTC)
"""

import copy
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import and_, asc, case, delete, desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Application, ApplicationStatus, PendingNotification

# JSON document columns that accept nested field paths
DOCUMENT_FIELDS = frozenset({"personal_info", "essays", "misc"})

# Top-level fields that may be written through update_fields
UPDATABLE_FIELDS = DOCUMENT_FIELDS | frozenset(
    {
        "status",
        "internal_decision",
        "notes",
        "submitted_at",
        "last_updated_at",
        "decision_released_at",
    }
)


def apply_field_paths(application: Application, updates: dict[str, Any]) -> None:
    """
    Apply ``{field.path: value}`` updates onto an application in memory.

    A path without a dot replaces the whole field. A dotted path sets one
    key inside a JSON document, creating intermediate objects as needed.
    Documents are copied and reassigned so SQLAlchemy sees the change.

    Raises:
        ValueError: If a path names an unknown field or nests into a
            non-document field
    """
    for path, value in updates.items():
        column, _, rest = path.partition(".")

        if column not in UPDATABLE_FIELDS:
            raise ValueError(f"Unknown application field: {column}")

        if not rest:
            setattr(application, column, value)
            continue

        if column not in DOCUMENT_FIELDS:
            raise ValueError(f"Field {column} does not support nested paths")

        document = copy.deepcopy(getattr(application, column) or {})
        node = document
        keys = rest.split(".")
        for key in keys[:-1]:
            child = node.get(key)
            if not isinstance(child, dict):
                child = {}
                node[key] = child
            node = child
        node[keys[-1]] = value

        setattr(application, column, document)


async def get_by_id(db: AsyncSession, id: str) -> Application | None:
    """Get application by owner identity."""
    return await db.get(Application, id)


async def create(
    db: AsyncSession,
    id: str,
    personal_info: dict[str, Any],
    now: datetime | None = None,
) -> Application:
    """Create a new draft application for the given identity."""
    timestamp = now or datetime.now(UTC)

    new_application = Application(
        id=id,
        status=ApplicationStatus.DRAFT,
        personal_info=personal_info,
        essays={},
        misc={
            "availability": [],
            "dietary_restrictions": "",
            "referral_source": "",
            "agreed_to_terms": False,
        },
        notes=[],
        created_at=timestamp,
        last_updated_at=timestamp,
    )

    db.add(new_application)
    await db.commit()
    await db.refresh(new_application)

    return new_application


async def update_fields(
    db: AsyncSession,
    id: str,
    updates: dict[str, Any],
) -> Application:
    """
    Partially update an application by field path.

    ``last_updated_at`` is set to now unless the caller supplies it.

    Raises:
        ValueError: If application not found or a path is invalid
    """
    application = await get_by_id(db, id)
    if not application:
        raise ValueError(f"Application {id} not found")

    updates = dict(updates)
    updates.setdefault("last_updated_at", datetime.now(UTC))

    apply_field_paths(application, updates)

    await db.commit()
    await db.refresh(application)

    return application


async def delete_by_id(db: AsyncSession, id: str) -> bool:
    """
    Permanently delete an application (and, by cascade, its outbox rows).

    Returns:
        True if a record was deleted
    """
    result = await db.execute(delete(Application).where(Application.id == id))
    await db.commit()
    return (result.rowcount or 0) > 0


async def list_all(db: AsyncSession) -> list[Application]:
    """Get every application."""
    result = await db.execute(select(Application))
    return list(result.scalars().all())


async def add_note(
    db: AsyncSession,
    id: str,
    content: str,
    author: str,
) -> dict:
    """
    Append an admin note.

    Notes are never edited or removed; a new list is assigned to trigger
    SQLAlchemy change detection.

    Returns:
        The new note {content, author, timestamp}

    Raises:
        ValueError: If application not found
    """
    application = await get_by_id(db, id)
    if not application:
        raise ValueError(f"Application {id} not found")

    now = datetime.now(UTC)
    new_note = {
        "content": content,
        "author": author,
        "timestamp": now.isoformat(),
    }

    application.notes = [*(application.notes or []), new_note]
    application.last_updated_at = now

    await db.commit()
    await db.refresh(application)

    return new_note


# ============================================
# Admin Repository Methods
# ============================================


async def get_applications_for_admin(
    db: AsyncSession,
    *,
    status: ApplicationStatus | None = None,
    search: str | None = None,
    releasable_only: bool = False,
    sort_by: str = "last_updated_at",
    sort_order: str = "desc",
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[Application], int]:
    """
    Get applications with filters, sorting, and pagination.

    Args:
        db: Database session
        status: Filter by status (optional)
        search: Case-insensitive match on first name, last name, email or
                university (optional)
        releasable_only: Only under_review applications with an internal
                decision, i.e. those a batch release would accept
        sort_by: last_updated_at, submitted_at or created_at
        sort_order: asc or desc
        skip: Number of records to skip
        limit: Maximum records to return

    Returns:
        Tuple of (applications, total count matching filters)
    """
    query = select(Application)

    if status:
        query = query.where(Application.status == status)

    if releasable_only:
        query = query.where(
            Application.status == ApplicationStatus.UNDER_REVIEW,
            Application.internal_decision.is_not(None),
        )

    if search:
        pattern = f"%{search}%"
        query = query.where(
            or_(
                Application.personal_info["first_name"].as_string().ilike(pattern),
                Application.personal_info["last_name"].as_string().ilike(pattern),
                Application.personal_info["email"].as_string().ilike(pattern),
                Application.personal_info["university"].as_string().ilike(pattern),
            )
        )

    count_query = select(func.count()).select_from(query.subquery())
    total_result = await db.execute(count_query)
    total = total_result.scalar() or 0

    valid_sort_columns = {"last_updated_at", "submitted_at", "created_at"}
    if sort_by not in valid_sort_columns:
        sort_by = "last_updated_at"

    sort_column = getattr(Application, sort_by)
    if sort_order.lower() == "asc":
        query = query.order_by(asc(sort_column).nulls_last())
    else:
        query = query.order_by(desc(sort_column).nulls_last())

    query = query.offset(skip).limit(limit)

    result = await db.execute(query)
    applications = list(result.scalars().all())

    return applications, total


async def get_dashboard_stats(db: AsyncSession) -> dict:
    """
    Get aggregated counts for the admin dashboard.

    Returns:
        Dict with registered, submitted (anything past draft), reviewing
        (submitted or under_review), accepted (accepted or enrolled),
        awaiting_release (under_review with a decision) and by_status
    """
    totals_query = select(
        func.count().label("registered"),
        func.count(case((Application.status != ApplicationStatus.DRAFT, 1))).label("submitted"),
        func.count(
            case(
                (
                    Application.status.in_(
                        [ApplicationStatus.SUBMITTED, ApplicationStatus.UNDER_REVIEW]
                    ),
                    1,
                ),
            )
        ).label("reviewing"),
        func.count(
            case(
                (
                    Application.status.in_([ApplicationStatus.ACCEPTED, ApplicationStatus.ENROLLED]),
                    1,
                ),
            )
        ).label("accepted"),
        func.count(
            case(
                (
                    and_(
                        Application.status == ApplicationStatus.UNDER_REVIEW,
                        Application.internal_decision.is_not(None),
                    ),
                    1,
                ),
            )
        ).label("awaiting_release"),
    )

    totals_row = (await db.execute(totals_query)).one()

    by_status_result = await db.execute(
        select(Application.status, func.count()).group_by(Application.status)
    )
    by_status = {status.value: 0 for status in ApplicationStatus}
    for status, count in by_status_result.all():
        by_status[ApplicationStatus(status).value] = count

    return {
        "registered": totals_row.registered,
        "submitted": totals_row.submitted,
        "reviewing": totals_row.reviewing,
        "accepted": totals_row.accepted,
        "awaiting_release": totals_row.awaiting_release,
        "by_status": by_status,
    }


# ============================================
# Pending Notification Repository
# ============================================


async def create_pending_notification(
    db: AsyncSession,
    *,
    application_id: str,
    kind,
    to_email: str,
    recipient_name: str,
    decision: str | None,
    error: str | None,
) -> PendingNotification:
    """Record a notification that failed its first delivery attempt."""
    now = datetime.now(UTC)

    pending = PendingNotification(
        application_id=application_id,
        kind=kind,
        to_email=to_email,
        recipient_name=recipient_name,
        decision=decision,
        attempts=1,
        last_error=error,
        created_at=now,
        last_attempt_at=now,
    )

    db.add(pending)
    await db.commit()
    await db.refresh(pending)

    return pending


async def get_unsent_notifications(
    db: AsyncSession,
    max_attempts: int,
    limit: int = 100,
) -> list[PendingNotification]:
    """
    Get outbox entries that are still undelivered and under the attempt cap.

    Oldest first, so a backlog drains in order.
    """
    result = await db.execute(
        select(PendingNotification)
        .where(
            PendingNotification.sent_at.is_(None),
            PendingNotification.attempts < max_attempts,
        )
        .order_by(asc(PendingNotification.created_at))
        .limit(limit)
    )
    return list(result.scalars().all())


async def mark_notification_sent(db: AsyncSession, id: UUID) -> PendingNotification | None:
    """Mark an outbox entry delivered so it is never sent again."""
    pending = await db.get(PendingNotification, id)
    if not pending:
        return None

    now = datetime.now(UTC)
    pending.attempts += 1
    pending.last_attempt_at = now
    pending.sent_at = now
    pending.last_error = None

    await db.commit()
    await db.refresh(pending)

    return pending


async def record_notification_failure(
    db: AsyncSession,
    id: UUID,
    error: str,
) -> PendingNotification | None:
    """Count another failed attempt against an outbox entry."""
    pending = await db.get(PendingNotification, id)
    if not pending:
        return None

    pending.attempts += 1
    pending.last_attempt_at = datetime.now(UTC)
    pending.last_error = error

    await db.commit()
    await db.refresh(pending)

    return pending


async def abandon_notification(
    db: AsyncSession,
    id: UUID,
    reason: str,
    max_attempts: int,
) -> PendingNotification | None:
    """
    Stop retrying an outbox entry without delivering it.

    The attempt count is raised to the cap so the entry is no longer
    selected; the reason is kept for inspection.
    """
    pending = await db.get(PendingNotification, id)
    if not pending:
        return None

    pending.attempts = max(pending.attempts, max_attempts)
    pending.last_attempt_at = datetime.now(UTC)
    pending.last_error = reason

    await db.commit()
    await db.refresh(pending)

    return pending
