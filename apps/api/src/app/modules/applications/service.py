"""
Applications Service Layer

Business logic for tutor programme applications.
Orchestrates authorization, the status state machine, repository writes and
notification dispatch.

This module implements:
1. Applicant Flow:
   - Get or create the caller's own draft application
   - Save draft form sections as field-path partial updates
   - Submit (required fields checked) and confirm enrollment
   - Status timeline and offer letter download

2. Admin Flow:
   - List, search and count applications
   - Record an internal decision and release it to the applicant
   - Batch release with per-item results
   - Reset to draft, progress to review, delete, add notes

Every operation starts with ``authorize``. Transitions are planned by the
pure state machine, persisted, and only then are their notifications sent,
so an email failure can never undo a committed transition.
"""

import asyncio
import contextlib
import enum
import logging
from datetime import UTC, datetime

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.core.auth import CurrentUser
from app.core.config import settings
from app.modules.applications import repository
from app.modules.applications.effects import dispatch_effects
from app.modules.applications.helpers import split_display_name
from app.modules.applications.models import Application, ApplicationStatus, Decision
from app.modules.applications.offer_letter import (
    generate_offer_letter_pdf,
    offer_letter_filename,
)
from app.modules.applications.schemas import (
    ApplicationFormUpdate,
    ApplicationStatusResponse,
    StatusStep,
)
from app.modules.applications.state_machine import (
    RELEASED_STATUSES,
    ApplicationEvent,
    DecisionNotAllowedError,
    InvalidStatusTransitionError,
    MissingDecisionError,
    MissingFieldsError,
    Transition,
    plan_internal_decision,
    plan_transition,
)

logger = logging.getLogger(__name__)


class ApplicationServiceError(Exception):
    """Base exception for application service errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


class NotAuthorizedError(ApplicationServiceError):
    """Raised when the caller may not perform an action."""

    def __init__(self, action: str):
        super().__init__(
            message=f"You are not allowed to {action.replace('_', ' ')} this application.",
            error_code="NOT_AUTHORIZED",
            status_code=403,
        )


class ApplicationNotFoundError(ApplicationServiceError):
    """Raised when an application is not found."""

    def __init__(self, application_id: str | None = None):
        message = (
            f"Application {application_id} not found" if application_id else "Application not found"
        )
        super().__init__(
            message=message,
            error_code="APPLICATION_NOT_FOUND",
            status_code=404,
        )


class MissingRequiredFieldsError(ApplicationServiceError):
    """Raised when submitting with required fields left empty."""

    def __init__(self, missing_fields: list[str]):
        self.missing_fields = missing_fields
        super().__init__(
            message=f"Please complete all required fields: {', '.join(missing_fields)}",
            error_code="MISSING_REQUIRED_FIELDS",
            status_code=422,
        )


class InvalidApplicationStateError(ApplicationServiceError):
    """Raised when application is in an invalid state for the requested operation."""

    def __init__(self, message: str, expected_state: str | None = None):
        self.expected_state = expected_state
        super().__init__(
            message=message,
            error_code="INVALID_APPLICATION_STATE",
            status_code=409,
        )


class NoInternalDecisionError(ApplicationServiceError):
    """Raised when releasing an application that has no internal decision."""

    def __init__(self):
        super().__init__(
            message="No internal decision marked to release.",
            error_code="NO_INTERNAL_DECISION",
            status_code=409,
        )


class CannotReleaseDecisionError(ApplicationServiceError):
    """Raised when the application is not under review (including already released)."""

    def __init__(self, current_status: str):
        super().__init__(
            message=f"Cannot release a decision for an application with status '{current_status}'. "
            "Only applications under review can be released.",
            error_code="CANNOT_RELEASE_DECISION",
            status_code=409,
        )


class CannotEnrollError(ApplicationServiceError):
    """Raised when enrolling without an accepted offer."""

    def __init__(self, current_status: str):
        super().__init__(
            message=f"Cannot confirm enrollment for an application with status '{current_status}'. "
            "Only accepted applicants can enroll.",
            error_code="CANNOT_ENROLL",
            status_code=409,
        )


class CannotProgressError(ApplicationServiceError):
    """Raised when moving to review from a status other than draft or submitted."""

    def __init__(self, current_status: str):
        super().__init__(
            message=f"Cannot move an application with status '{current_status}' to review.",
            error_code="CANNOT_PROGRESS",
            status_code=409,
        )


class OfferLetterUnavailableError(ApplicationServiceError):
    """Raised when requesting an offer letter before acceptance."""

    def __init__(self, current_status: str):
        super().__init__(
            message=f"No offer letter is available for an application with status '{current_status}'.",
            error_code="OFFER_LETTER_UNAVAILABLE",
            status_code=409,
        )


class ConcurrentModificationError(ApplicationServiceError):
    """Raised when the record changed underneath this request."""

    def __init__(self, application_id: str | None = None):
        super().__init__(
            message="The application was modified by someone else. Reload it and try again.",
            error_code="CONCURRENT_MODIFICATION",
            status_code=409,
        )


class StoreUnavailableError(ApplicationServiceError):
    """Raised when the database rejects or cannot complete an operation."""

    def __init__(self):
        super().__init__(
            message="Action failed, please retry.",
            error_code="STORE_UNAVAILABLE",
            status_code=503,
        )


# ============================================
# Authorization
# ============================================


class Action(str, enum.Enum):
    """Operations subject to authorization."""

    # Owner
    GET_OWN = "get_own"
    SAVE_DRAFT = "save_draft"
    SUBMIT = "submit"
    ENROLL = "enroll"
    VIEW_STATUS = "view_status"
    OFFER_LETTER = "download_offer_letter"

    # Admin
    LIST = "list"
    STATS = "view_stats"
    VIEW_DETAIL = "view_detail"
    SET_DECISION = "set_decision"
    RELEASE = "release"
    BATCH_RELEASE = "batch_release"
    RESET = "reset"
    PROGRESS = "progress"
    DELETE = "delete"
    ADD_NOTE = "add_note"


ADMIN_ACTIONS = frozenset(
    {
        Action.LIST,
        Action.STATS,
        Action.VIEW_DETAIL,
        Action.SET_DECISION,
        Action.RELEASE,
        Action.BATCH_RELEASE,
        Action.RESET,
        Action.PROGRESS,
        Action.DELETE,
        Action.ADD_NOTE,
    }
)

OWNER_ACTIONS = frozenset(
    {
        Action.GET_OWN,
        Action.SAVE_DRAFT,
        Action.SUBMIT,
        Action.ENROLL,
        Action.VIEW_STATUS,
        Action.OFFER_LETTER,
    }
)


def authorize(actor: CurrentUser, action: Action, application_id: str | None = None) -> None:
    """
    Check that ``actor`` may perform ``action`` on ``application_id``.

    Admin actions require the admin claim. Owner actions require the actor's
    identity to be the application key.

    Raises:
        NotAuthorizedError: If the check fails
    """
    if action in ADMIN_ACTIONS:
        allowed = actor.is_admin
    else:
        allowed = application_id is not None and actor.id == application_id

    if not allowed:
        logger.warning(
            f"Denied {action.value} on application {application_id} for user {actor.id}"
        )
        raise NotAuthorizedError(action.value)


# ============================================
# Persistence helpers
# ============================================


@contextlib.asynccontextmanager
async def _store_errors(db: AsyncSession, application_id: str | None = None):
    """Translate database failures into service errors, rolling back first."""
    try:
        yield
    except StaleDataError as e:
        await db.rollback()
        logger.warning(f"Concurrent modification of application {application_id}: {e}")
        raise ConcurrentModificationError(application_id) from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Database error on application {application_id}: {e}", exc_info=True)
        raise StoreUnavailableError() from e


async def _load(db: AsyncSession, application_id: str) -> Application:
    async with _store_errors(db, application_id):
        application = await repository.get_by_id(db, application_id)

    if not application:
        logger.warning(f"Application not found: {application_id}")
        raise ApplicationNotFoundError(application_id)

    return application


async def _persist(db: AsyncSession, application_id: str, changes: dict) -> Application:
    async with _store_errors(db, application_id):
        return await repository.update_fields(db, application_id, changes)


_NOTIFYING_EVENTS = {ApplicationEvent.SUBMIT, ApplicationEvent.RELEASE}


async def _commit_transition(
    db: AsyncSession,
    application: Application,
    transition: Transition,
) -> Application:
    """Persist a planned transition, then send its notifications."""
    application_id = application.id
    updated = await _persist(db, application_id, transition.changes)

    logger.info(
        f"Application {application_id}: {transition.from_status.value} -> "
        f"{transition.to_status.value} ({transition.event.value})"
    )

    if transition.effects:
        await dispatch_effects(db, application_id, transition.effects)
    elif transition.event in _NOTIFYING_EVENTS:
        logger.warning(
            f"Application {application_id} has no contact email, "
            f"{transition.event.value} notification skipped"
        )

    return updated


def _now() -> datetime:
    return datetime.now(UTC)


# ============================================
# Applicant Service Functions
# ============================================


async def get_or_create_my_application(db: AsyncSession, actor: CurrentUser) -> Application:
    """
    Get the caller's application, creating a draft on first access.

    The new draft is seeded with the name and email from the caller's token.
    """
    authorize(actor, Action.GET_OWN, actor.id)

    async with _store_errors(db, actor.id):
        application = await repository.get_by_id(db, actor.id)
    if application:
        return application

    first_name, last_name = split_display_name(actor.name)
    personal_info = {
        "first_name": first_name,
        "last_name": last_name,
        "email": actor.email or "",
    }

    try:
        application = await repository.create(db, actor.id, personal_info, now=_now())
    except IntegrityError:
        # Created by a concurrent request for the same user
        await db.rollback()
        logger.info(f"Application {actor.id} created concurrently, loading existing record")
        return await _load(db, actor.id)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to create application {actor.id}: {e}", exc_info=True)
        raise StoreUnavailableError() from e

    logger.info(f"Created draft application {actor.id}")
    return application


def _form_field_paths(form: ApplicationFormUpdate) -> dict:
    """Flatten a form update into ``{section.field: value}`` paths."""
    updates = {}
    for section in ("personal_info", "essays", "misc"):
        section_update = getattr(form, section)
        if section_update is None:
            continue
        for key, value in section_update.model_dump(exclude_unset=True, exclude_none=True).items():
            updates[f"{section}.{key}"] = value
    return updates


async def save_my_application(
    db: AsyncSession,
    actor: CurrentUser,
    form: ApplicationFormUpdate,
) -> Application:
    """
    Save draft form content.

    Only fields present in the request are written. Editing is closed once
    the application has been submitted.

    Raises:
        ApplicationNotFoundError: If the caller has no application yet
        InvalidApplicationStateError: If the application is not a draft
    """
    authorize(actor, Action.SAVE_DRAFT, actor.id)

    application = await _load(db, actor.id)

    if application.status != ApplicationStatus.DRAFT:
        raise InvalidApplicationStateError(
            "Your application has been submitted and can no longer be edited.",
            expected_state=ApplicationStatus.DRAFT.value,
        )

    updates = _form_field_paths(form)
    if not updates:
        return application

    logger.info(f"Saving {len(updates)} field(s) on application {actor.id}")
    return await _persist(db, actor.id, updates)


async def submit_application(db: AsyncSession, actor: CurrentUser) -> Application:
    """
    Submit the caller's draft.

    Lands in under_review (or submitted when auto review is disabled), stamps
    ``submitted_at`` and sends the submission confirmation.

    Raises:
        ApplicationNotFoundError: If the caller has no application
        InvalidApplicationStateError: If already submitted
        MissingRequiredFieldsError: If required fields are empty
    """
    authorize(actor, Action.SUBMIT, actor.id)

    application = await _load(db, actor.id)

    try:
        transition = plan_transition(
            application,
            ApplicationEvent.SUBMIT,
            now=_now(),
            auto_review=settings.auto_review_on_submit,
        )
    except MissingFieldsError as e:
        logger.info(f"Submit rejected for {actor.id}: missing {e.missing_fields}")
        raise MissingRequiredFieldsError(e.missing_fields) from e
    except InvalidStatusTransitionError as e:
        raise InvalidApplicationStateError(
            "Your application has already been submitted.",
            expected_state=ApplicationStatus.DRAFT.value,
        ) from e

    return await _commit_transition(db, application, transition)


async def enroll_application(db: AsyncSession, actor: CurrentUser) -> Application:
    """
    Confirm the caller's place on the programme.

    Raises:
        ApplicationNotFoundError: If the caller has no application
        CannotEnrollError: If the application is not accepted
    """
    authorize(actor, Action.ENROLL, actor.id)

    application = await _load(db, actor.id)

    try:
        transition = plan_transition(application, ApplicationEvent.ENROLL, now=_now())
    except InvalidStatusTransitionError as e:
        raise CannotEnrollError(e.current_status.value) from e

    return await _commit_transition(db, application, transition)


STATUS_LABELS: dict[ApplicationStatus, str] = {
    ApplicationStatus.DRAFT: "In Progress",
    ApplicationStatus.SUBMITTED: "Submitted",
    ApplicationStatus.UNDER_REVIEW: "Under Review",
    ApplicationStatus.ACCEPTED: "Accepted",
    ApplicationStatus.REJECTED: "Not Accepted",
    ApplicationStatus.WAITLISTED: "Waitlisted",
    ApplicationStatus.ENROLLED: "Enrolled",
}

STATUS_DESCRIPTIONS: dict[ApplicationStatus, str] = {
    ApplicationStatus.DRAFT: (
        "Please complete and submit your application form as soon as possible."
    ),
    ApplicationStatus.SUBMITTED: (
        "Thank you for submitting. We'll begin reviewing your application shortly."
    ),
    ApplicationStatus.UNDER_REVIEW: (
        "Our team is currently reviewing your application. "
        "You'll hear from us within 15 working days."
    ),
    ApplicationStatus.ACCEPTED: (
        "Congratulations, you've been accepted! Please confirm your place and "
        "download your offer letter."
    ),
    ApplicationStatus.REJECTED: (
        "Unfortunately, we are unable to offer you a place this time. "
        "We encourage you to apply again in future."
    ),
    ApplicationStatus.WAITLISTED: (
        "You've been placed on our waitlist. We'll notify you if a position becomes available."
    ),
    ApplicationStatus.ENROLLED: (
        "Your place is confirmed. We look forward to welcoming you to the programme."
    ),
}

_REVIEW_STARTED_STATUSES = {
    ApplicationStatus.UNDER_REVIEW,
    *RELEASED_STATUSES,
    ApplicationStatus.ENROLLED,
}
_DECIDED_STATUSES = {*RELEASED_STATUSES, ApplicationStatus.ENROLLED}


def _build_status_steps(application: Application) -> list[StatusStep]:
    """
    Build the applicant timeline.

    1. Account Created - always completed
    2. Application Form - completed once submitted, active while a draft
    3. Submitted - based on status past draft
    4. Under Review - active while being reviewed, completed once decided
    5. Decision - completed once a decision has been released
    """
    status = ApplicationStatus(application.status)
    is_submitted = status != ApplicationStatus.DRAFT
    is_reviewing = status in _REVIEW_STARTED_STATUSES
    is_decided = status in _DECIDED_STATUSES

    return [
        StatusStep(
            name="Account Created",
            completed=True,
            completed_at=application.created_at,
        ),
        StatusStep(
            name="Application Form",
            completed=is_submitted,
            active=not is_submitted,
        ),
        StatusStep(
            name="Submitted",
            completed=is_submitted,
            completed_at=application.submitted_at if is_submitted else None,
        ),
        StatusStep(
            name="Under Review",
            completed=is_decided,
            active=is_reviewing and not is_decided,
        ),
        StatusStep(
            name="Decision",
            completed=is_decided,
            completed_at=application.decision_released_at if is_decided else None,
        ),
    ]


async def get_application_status(db: AsyncSession, actor: CurrentUser) -> ApplicationStatusResponse:
    """
    Get the caller's status with label, description and timeline.

    Raises:
        ApplicationNotFoundError: If the caller has no application
    """
    authorize(actor, Action.VIEW_STATUS, actor.id)

    application = await _load(db, actor.id)
    status = ApplicationStatus(application.status)

    return ApplicationStatusResponse(
        id=application.id,
        status=status,
        status_label=STATUS_LABELS[status],
        status_description=STATUS_DESCRIPTIONS[status],
        submitted_at=application.submitted_at,
        decision_released_at=application.decision_released_at,
        steps=_build_status_steps(application),
    )


OFFER_LETTER_STATUSES = {ApplicationStatus.ACCEPTED, ApplicationStatus.ENROLLED}


async def get_offer_letter(db: AsyncSession, actor: CurrentUser) -> tuple[str, bytes]:
    """
    Render the caller's offer letter.

    Returns:
        Tuple of (filename, PDF bytes)

    Raises:
        ApplicationNotFoundError: If the caller has no application
        OfferLetterUnavailableError: If the caller has not been accepted
    """
    authorize(actor, Action.OFFER_LETTER, actor.id)

    application = await _load(db, actor.id)

    if application.status not in OFFER_LETTER_STATUSES:
        raise OfferLetterUnavailableError(ApplicationStatus(application.status).value)

    pdf = await asyncio.to_thread(generate_offer_letter_pdf, application)
    logger.info(f"Generated offer letter for application {application.id}")

    return offer_letter_filename(application), pdf


# ============================================
# Admin Service Functions
# ============================================


async def admin_get_applications_list(
    db: AsyncSession,
    actor: CurrentUser,
    *,
    status: ApplicationStatus | None = None,
    search: str | None = None,
    releasable_only: bool = False,
    sort_by: str = "last_updated_at",
    sort_order: str = "desc",
    skip: int = 0,
    limit: int = 20,
) -> dict:
    """
    Get paginated list of applications for admin dashboard.

    Returns:
        Dict with applications list, total count, skip, and limit
    """
    authorize(actor, Action.LIST)

    logger.info(
        f"Admin listing applications: status={status}, search={search}, "
        f"releasable_only={releasable_only}, sort={sort_by}:{sort_order}, "
        f"skip={skip}, limit={limit}"
    )

    # Validate and cap limit
    limit = min(max(1, limit), 100)
    skip = max(0, skip)

    async with _store_errors(db):
        applications, total = await repository.get_applications_for_admin(
            db,
            status=status,
            search=search,
            releasable_only=releasable_only,
            sort_by=sort_by,
            sort_order=sort_order,
            skip=skip,
            limit=limit,
        )

    logger.info(f"Found {total} applications, returning {len(applications)}")

    return {
        "applications": applications,
        "total": total,
        "skip": skip,
        "limit": limit,
    }


async def admin_get_dashboard_stats(db: AsyncSession, actor: CurrentUser) -> dict:
    """
    Get aggregated statistics for admin dashboard.

    Returns:
        Dict with registered, submitted, reviewing, accepted,
        awaiting_release and by_status
    """
    authorize(actor, Action.STATS)

    async with _store_errors(db):
        stats = await repository.get_dashboard_stats(db)

    logger.info(f"Dashboard stats: {stats}")
    return stats


async def admin_get_application_detail(
    db: AsyncSession,
    actor: CurrentUser,
    application_id: str,
) -> Application:
    """
    Get complete application details, including the internal decision and
    notes that the applicant never sees.
    """
    authorize(actor, Action.VIEW_DETAIL, application_id)
    logger.info(f"Admin {actor.id} getting application detail: {application_id}")
    return await _load(db, application_id)


async def admin_set_internal_decision(
    db: AsyncSession,
    actor: CurrentUser,
    application_id: str,
    decision: Decision | None,
) -> Application:
    """
    Record or clear the internal decision.

    Has no applicant-visible effect and sends nothing until released.

    Raises:
        ApplicationNotFoundError: If application doesn't exist
        InvalidApplicationStateError: If the application is not under review
    """
    authorize(actor, Action.SET_DECISION, application_id)

    application = await _load(db, application_id)

    try:
        changes = plan_internal_decision(application, decision, now=_now())
    except DecisionNotAllowedError as e:
        logger.warning(
            f"Cannot set decision on {application_id}: status={e.current_status.value}"
        )
        raise InvalidApplicationStateError(
            str(e), expected_state=ApplicationStatus.UNDER_REVIEW.value
        ) from e

    updated = await _persist(db, application_id, changes)
    logger.info(
        f"Admin {actor.id} set internal decision on {application_id} to "
        f"{decision.value if decision else None}"
    )
    return updated


async def _release(db: AsyncSession, application_id: str) -> Application:
    application = await _load(db, application_id)

    try:
        transition = plan_transition(application, ApplicationEvent.RELEASE, now=_now())
    except MissingDecisionError as e:
        logger.warning(f"Cannot release {application_id}: no internal decision")
        raise NoInternalDecisionError() from e
    except InvalidStatusTransitionError as e:
        logger.warning(f"Cannot release {application_id}: status={e.current_status.value}")
        raise CannotReleaseDecisionError(e.current_status.value) from e

    return await _commit_transition(db, application, transition)


async def admin_release_decision(
    db: AsyncSession,
    actor: CurrentUser,
    application_id: str,
) -> Application:
    """
    Release the internal decision to the applicant.

    The status becomes the internal decision and the decision email is sent.
    An application that has already been released cannot be released again.

    Raises:
        ApplicationNotFoundError: If application doesn't exist
        NoInternalDecisionError: If no decision has been recorded
        CannotReleaseDecisionError: If the application is not under review
    """
    authorize(actor, Action.RELEASE, application_id)
    logger.info(f"Admin {actor.id} releasing decision for {application_id}")
    return await _release(db, application_id)


async def admin_batch_release(
    db: AsyncSession,
    actor: CurrentUser,
    application_ids: list[str],
) -> dict:
    """
    Release several decisions, each independently.

    Items are processed one by one; a failure rolls back only that item and
    never undoes an earlier success. Duplicate ids are released once.

    Returns:
        Dict with outcome (success, partial, failed), released and failed
        item results, and their counts
    """
    authorize(actor, Action.BATCH_RELEASE)

    unique_ids = list(dict.fromkeys(application_ids))
    logger.info(f"Admin {actor.id} batch releasing {len(unique_ids)} application(s)")

    released: list[dict] = []
    failed: list[dict] = []

    for application_id in unique_ids:
        try:
            updated = await _release(db, application_id)
            released.append(
                {
                    "application_id": application_id,
                    "success": True,
                    "status": updated.status,
                }
            )
        except ApplicationServiceError as e:
            failed.append(
                {
                    "application_id": application_id,
                    "success": False,
                    "error": e.error_code,
                    "message": e.message,
                }
            )
        except Exception:
            logger.exception(f"Unexpected error releasing {application_id}")
            await db.rollback()
            failed.append(
                {
                    "application_id": application_id,
                    "success": False,
                    "error": "INTERNAL_ERROR",
                    "message": "An unexpected error occurred",
                }
            )

    if not failed:
        outcome = "success"
    elif not released:
        outcome = "failed"
    else:
        outcome = "partial"

    logger.info(
        f"Batch release finished: {len(released)} released, {len(failed)} failed ({outcome})"
    )

    return {
        "outcome": outcome,
        "released": released,
        "failed": failed,
        "success_count": len(released),
        "failure_count": len(failed),
    }


async def admin_reset_application(
    db: AsyncSession,
    actor: CurrentUser,
    application_id: str,
) -> Application:
    """
    Send an application back to draft from any status.

    Clears ``submitted_at``. Form content, the internal decision, notes and
    the first release time are kept.
    """
    authorize(actor, Action.RESET, application_id)

    application = await _load(db, application_id)
    transition = plan_transition(application, ApplicationEvent.RESET, now=_now())

    logger.info(f"Admin {actor.id} resetting application {application_id}")
    return await _commit_transition(db, application, transition)


async def admin_progress_application(
    db: AsyncSession,
    actor: CurrentUser,
    application_id: str,
) -> Application:
    """
    Move a draft or submitted application straight to review.

    Raises:
        ApplicationNotFoundError: If application doesn't exist
        CannotProgressError: If already under review, decided or enrolled
    """
    authorize(actor, Action.PROGRESS, application_id)

    application = await _load(db, application_id)

    try:
        transition = plan_transition(application, ApplicationEvent.PROGRESS, now=_now())
    except InvalidStatusTransitionError as e:
        logger.warning(f"Cannot progress {application_id}: status={e.current_status.value}")
        raise CannotProgressError(e.current_status.value) from e

    logger.info(f"Admin {actor.id} moving application {application_id} to review")
    return await _commit_transition(db, application, transition)


async def admin_delete_application(
    db: AsyncSession,
    actor: CurrentUser,
    application_id: str,
) -> None:
    """
    Permanently delete an application. This cannot be undone.

    Raises:
        ApplicationNotFoundError: If application doesn't exist
    """
    authorize(actor, Action.DELETE, application_id)

    await _load(db, application_id)

    async with _store_errors(db, application_id):
        deleted = await repository.delete_by_id(db, application_id)

    if not deleted:
        raise ApplicationNotFoundError(application_id)

    logger.info(f"Admin {actor.id} deleted application {application_id}")


async def admin_add_note(
    db: AsyncSession,
    actor: CurrentUser,
    application_id: str,
    content: str,
) -> dict:
    """
    Append an admin note, attributed to the caller's display name.

    Returns:
        The newly created note
    """
    authorize(actor, Action.ADD_NOTE, application_id)

    await _load(db, application_id)

    async with _store_errors(db, application_id):
        new_note = await repository.add_note(db, application_id, content, actor.display_name)

    logger.info(f"Admin {actor.id} added note to application {application_id}")
    return new_note
