"""
Applications Background Jobs

Scheduled retry of notifications that failed on first delivery.

Design Principles:
- Jobs handle their own database sessions
- Jobs continue processing even if individual items fail
- An entry marked sent is never selected again, so reruns are safe

Schedule:
- Runs every 15 minutes; can also be triggered via the debug endpoints
"""

import logging
from datetime import UTC, datetime
from typing import Any

from apscheduler.triggers.interval import IntervalTrigger

from app.core.database import async_session_maker
from app.core.scheduler import register_job
from app.modules.applications import repository
from app.modules.applications.effects import deliver
from app.modules.applications.models import (
    Application,
    ApplicationStatus,
    NotificationKind,
    PendingNotification,
)
from app.modules.applications.state_machine import NotificationEffect

logger = logging.getLogger(__name__)

MAX_DELIVERY_ATTEMPTS = 5
RETRY_INTERVAL_MINUTES = 15

JOB_ID_RETRY_NOTIFICATIONS = "applications_retry_notifications"


def _stale_reason(entry: PendingNotification, application: Application | None) -> str | None:
    """
    Explain why a queued notification no longer matches its application.

    A decision email is only current while the application still shows that
    decision; a submission email is void once the application is back in
    draft. Returns None when the entry is still worth sending.
    """
    if application is None:
        return "Application no longer exists"

    current = ApplicationStatus(application.status)
    if entry.kind == NotificationKind.DECISION:
        if current.value != entry.decision:
            return f"Decision {entry.decision} superseded, application is {current.value}"
        return None

    if current == ApplicationStatus.DRAFT:
        return "Application was returned to draft"
    return None


async def _retry_notification(entry: PendingNotification) -> dict[str, Any]:
    """
    Attempt one outbox entry and record the outcome.

    Entries whose application has moved on are discarded unsent.

    Returns:
        Dict with processing result
    """
    async with async_session_maker() as db:
        application = await repository.get_by_id(db, entry.application_id)
        reason = _stale_reason(entry, application)
        if reason:
            await repository.abandon_notification(
                db, entry.id, reason, max_attempts=MAX_DELIVERY_ATTEMPTS
            )
            logger.info(
                f"Discarded queued {NotificationKind(entry.kind).value} notification {entry.id} "
                f"for application {entry.application_id}: {reason}"
            )
            return {"notification_id": str(entry.id), "status": "discarded", "error": reason}

    effect = NotificationEffect(
        kind=NotificationKind(entry.kind),
        to_email=entry.to_email,
        recipient_name=entry.recipient_name,
        decision=entry.decision,
    )

    try:
        sent = await deliver(effect)
        error = None if sent else "Email provider did not accept the message"
    except Exception as e:
        sent = False
        error = str(e) or e.__class__.__name__

    async with async_session_maker() as db:
        if sent:
            await repository.mark_notification_sent(db, entry.id)
            logger.info(
                f"Delivered queued {effect.kind.value} notification for "
                f"application {entry.application_id}"
            )
            return {"notification_id": str(entry.id), "status": "sent"}

        updated = await repository.record_notification_failure(db, entry.id, error)

    attempts = updated.attempts if updated else entry.attempts + 1
    if attempts >= MAX_DELIVERY_ATTEMPTS:
        logger.error(
            f"Giving up on {effect.kind.value} notification for application "
            f"{entry.application_id} after {attempts} attempts: {error}"
        )
        return {"notification_id": str(entry.id), "status": "abandoned", "error": error}

    logger.warning(
        f"Retry {attempts} failed for notification {entry.id} "
        f"(application {entry.application_id}): {error}"
    )
    return {"notification_id": str(entry.id), "status": "failed", "error": error}


async def retry_pending_notifications() -> dict[str, Any]:
    """
    Re-send notifications waiting in the outbox.

    Entries that have reached MAX_DELIVERY_ATTEMPTS are left in place for
    inspection and are not selected again.

    Returns:
        Dict with job execution summary including:
        - executed_at: When the job ran
        - processed: Per-entry results
        - total_sent: Entries delivered on this run
        - total_failed: Entries that failed again (including abandoned)
        - total_discarded: Entries dropped because the application moved on
        - total_errors: Entries that could not be processed at all
    """
    executed_at = datetime.now(UTC)

    logger.info("Starting pending notification retry job")

    results = {
        "executed_at": executed_at.isoformat(),
        "processed": [],
        "total_sent": 0,
        "total_failed": 0,
        "total_discarded": 0,
        "total_errors": 0,
    }

    async with async_session_maker() as db:
        entries = await repository.get_unsent_notifications(db, max_attempts=MAX_DELIVERY_ATTEMPTS)

    logger.info(f"Found {len(entries)} pending notifications to retry")

    for entry in entries:
        try:
            result = await _retry_notification(entry)
            results["processed"].append(result)
            if result["status"] == "sent":
                results["total_sent"] += 1
            elif result["status"] == "discarded":
                results["total_discarded"] += 1
            else:
                results["total_failed"] += 1
        except Exception as e:
            logger.error(f"Error retrying notification {entry.id}: {e}", exc_info=True)
            results["processed"].append(
                {
                    "notification_id": str(entry.id),
                    "status": "error",
                    "error": str(e),
                }
            )
            results["total_errors"] += 1

    logger.info(
        f"Notification retry job completed. Sent: {results['total_sent']}, "
        f"Failed: {results['total_failed']}, Discarded: {results['total_discarded']}, "
        f"Errors: {results['total_errors']}"
    )

    return results


def register_application_jobs() -> None:
    """
    Register application background jobs with the scheduler.

    Call during startup, before the scheduler is started.
    """
    register_job(
        job_id=JOB_ID_RETRY_NOTIFICATIONS,
        func=retry_pending_notifications,
        trigger=IntervalTrigger(minutes=RETRY_INTERVAL_MINUTES),
    )
    logger.info(
        f"Registered job: {JOB_ID_RETRY_NOTIFICATIONS} (interval: {RETRY_INTERVAL_MINUTES} minutes)"
    )
