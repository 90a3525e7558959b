"""
Notification runner for application transitions.

Effects are dispatched only after the transition has been committed. A
delivery failure never propagates to the caller: it is logged and parked in
the ``pending_notifications`` outbox for the retry job.
"""

import logging
from collections.abc import Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.email import send_decision_notification, send_submission_received
from app.modules.applications import repository
from app.modules.applications.models import NotificationKind
from app.modules.applications.state_machine import NotificationEffect

logger = logging.getLogger(__name__)


async def deliver(effect: NotificationEffect) -> bool:
    """
    Send one notification.

    Returns:
        True if the email provider accepted the message
    """
    if effect.kind == NotificationKind.SUBMISSION:
        return await send_submission_received(
            to_email=effect.to_email,
            applicant_name=effect.recipient_name,
        )

    return await send_decision_notification(
        to_email=effect.to_email,
        applicant_name=effect.recipient_name,
        decision=effect.decision or "",
    )


async def _park(
    db: AsyncSession,
    application_id: str,
    effect: NotificationEffect,
    error: str,
) -> None:
    try:
        await repository.create_pending_notification(
            db,
            application_id=application_id,
            kind=effect.kind,
            to_email=effect.to_email,
            recipient_name=effect.recipient_name,
            decision=effect.decision,
            error=error,
        )
        logger.info(f"Queued {effect.kind.value} notification for {application_id} for retry")
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(
            f"Could not queue {effect.kind.value} notification for {application_id}: {e}",
            exc_info=True,
        )


async def dispatch_effects(
    db: AsyncSession,
    application_id: str,
    effects: Iterable[NotificationEffect],
) -> int:
    """
    Send the notifications produced by a committed transition.

    Args:
        db: Database session (used only to record failed deliveries)
        application_id: Application the notifications belong to
        effects: Notifications to send

    Returns:
        Number of notifications delivered on this attempt
    """
    delivered = 0

    for effect in effects:
        try:
            sent = await deliver(effect)
            error = None if sent else "Email provider did not accept the message"
        except Exception as e:
            sent = False
            error = str(e) or e.__class__.__name__

        if sent:
            delivered += 1
            logger.info(f"Sent {effect.kind.value} notification to {effect.to_email}")
            continue

        logger.error(
            f"Failed to send {effect.kind.value} notification for application "
            f"{application_id}: {error}"
        )
        await _park(db, application_id, effect, error)

    return delivered
