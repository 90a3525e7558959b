"""
Applications Admin Router

API endpoints for administrators to review applications and release
decisions. All endpoints require a token carrying the admin claim.

Endpoints:
- GET /admin/applications - List applications with filters and pagination
- GET /admin/applications/stats - Get dashboard statistics
- POST /admin/applications/release - Release several decisions at once
- GET /admin/applications/{id} - Get application details
- PUT /admin/applications/{id}/internal-decision - Record or clear the decision
- POST /admin/applications/{id}/release - Release the decision to the applicant
- POST /admin/applications/{id}/reset - Send back to draft
- POST /admin/applications/{id}/progress - Move to review
- DELETE /admin/applications/{id} - Permanently delete
- POST /admin/applications/{id}/notes - Add admin note

Security:
- All endpoints require a valid JWT with the admin claim
- The service layer re-checks authorization for every operation
- Rate limiting on action endpoints to prevent abuse
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CurrentUser, get_current_admin_user
from app.core.database import get_db
from app.core.rate_limit import RateLimitExceeded, check_rate_limit
from app.modules.applications import service
from app.modules.applications.helpers import get_applicant_email, get_applicant_name
from app.modules.applications.models import ApplicationStatus
from app.modules.applications.schemas import (
    AddNoteRequest,
    AddNoteResponse,
    AdminApplicationDetail,
    ApplicationActionResponse,
    ApplicationListItem,
    ApplicationListResponse,
    BatchReleaseRequest,
    BatchReleaseResponse,
    DashboardStats,
    DecisionResponse,
    DeleteApplicationResponse,
    Note,
    SetDecisionRequest,
)
from app.modules.applications.service import ApplicationServiceError

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================
# Rate Limiting Configuration
# ============================================

RATE_LIMIT_SET_DECISION = (30, 60)  # 30 decision changes per minute
RATE_LIMIT_RELEASE = (20, 60)  # 20 single releases per minute
RATE_LIMIT_BATCH_RELEASE = (5, 60)  # 5 batch releases per minute
RATE_LIMIT_RESET = (10, 60)
RATE_LIMIT_PROGRESS = (30, 60)
RATE_LIMIT_DELETE = (10, 60)
RATE_LIMIT_NOTES = (30, 60)


async def _check_admin_rate_limit(
    admin: CurrentUser,
    action: str,
    limit: int,
    window_seconds: int,
) -> None:
    """
    Check rate limit for an admin action.

    Raises:
        RateLimitExceeded: If rate limit is exceeded
    """
    key = f"admin:{action}:{admin.id}"
    allowed = await check_rate_limit(key, limit, window_seconds)

    if not allowed:
        logger.warning(
            f"Rate limit exceeded for admin {admin.id} on action '{action}': "
            f"{limit}/{window_seconds}s"
        )
        raise RateLimitExceeded(limit, window_seconds)


# ============================================
# Helper Functions
# ============================================


def _handle_service_error(e: ApplicationServiceError) -> None:
    """Convert service errors to HTTPExceptions."""
    raise HTTPException(
        status_code=e.status_code,
        detail={
            "error": e.error_code,
            "message": e.message,
        },
    )


def _internal_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )


def _application_to_list_item(app) -> ApplicationListItem:
    """Convert Application model to ApplicationListItem schema."""
    personal_info = app.personal_info or {}
    return ApplicationListItem(
        id=app.id,
        applicant_name=get_applicant_name(app),
        email=get_applicant_email(app),
        university=personal_info.get("university") or "",
        year_of_study=personal_info.get("year_of_study") or "",
        status=app.status,
        internal_decision=app.internal_decision,
        created_at=app.created_at,
        submitted_at=app.submitted_at,
        last_updated_at=app.last_updated_at,
        decision_released_at=app.decision_released_at,
    )


def _action_response(app, message: str) -> ApplicationActionResponse:
    return ApplicationActionResponse(id=app.id, status=app.status, message=message)


# ============================================
# List & Stats Endpoints
# ============================================


@router.get(
    "",
    response_model=ApplicationListResponse,
    summary="List Applications",
    description="""
Get paginated list of applications with optional filters.

**Filters:**
- `status`: Filter by application status
- `search`: Search in first name, last name, email and university
- `releasable_only`: Only applications under review with a recorded decision

**Sorting:**
- `sort_by`: last_updated_at, submitted_at or created_at. Default: last_updated_at
- `sort_order`: asc or desc. Default: desc (most recently updated first)

**Pagination:**
- `skip`: Number of records to skip. Default: 0
- `limit`: Maximum records to return (1-100). Default: 20

**Access:** Admin only
""",
    responses={
        401: {"description": "Unauthorized - invalid or missing token"},
        403: {"description": "Forbidden - not an admin"},
    },
)
async def list_applications(
    status: ApplicationStatus | None = Query(None, description="Filter by application status"),
    search: str | None = Query(
        None,
        min_length=1,
        max_length=100,
        description="Search term for name, email or university",
    ),
    releasable_only: bool = Query(
        False,
        description="Only under_review applications with an internal decision",
    ),
    sort_by: str = Query("last_updated_at", description="Column to sort by"),
    sort_order: str = Query("desc", description="Sort direction (asc/desc)"),
    skip: int = Query(0, ge=0, description="Records to skip"),
    limit: int = Query(20, ge=1, le=100, description="Maximum records to return"),
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin_user),
) -> ApplicationListResponse:
    """
    List applications with filters and pagination.
    """
    try:
        result = await service.admin_get_applications_list(
            db,
            admin,
            status=status,
            search=search,
            releasable_only=releasable_only,
            sort_by=sort_by,
            sort_order=sort_order,
            skip=skip,
            limit=limit,
        )

        return ApplicationListResponse(
            applications=[_application_to_list_item(app) for app in result["applications"]],
            total=result["total"],
            skip=result["skip"],
            limit=result["limit"],
        )

    except ApplicationServiceError as e:
        _handle_service_error(e)
    except Exception as e:
        logger.exception(f"Error listing applications: {e}")
        raise _internal_error() from e


@router.get(
    "/stats",
    response_model=DashboardStats,
    summary="Get Dashboard Statistics",
    description="""
Get aggregated counts for the admin dashboard.

- `registered`: All application records
- `submitted`: Applications past draft
- `reviewing`: Submitted or under review
- `accepted`: Accepted or enrolled
- `awaiting_release`: Under review with an internal decision recorded
- `by_status`: Count per status

**Access:** Admin only
""",
)
async def get_stats(
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin_user),
) -> DashboardStats:
    """
    Get aggregated statistics for the admin dashboard.
    """
    try:
        stats = await service.admin_get_dashboard_stats(db, admin)
        return DashboardStats(**stats)

    except ApplicationServiceError as e:
        _handle_service_error(e)
    except Exception as e:
        logger.exception(f"Error getting dashboard stats: {e}")
        raise _internal_error() from e


# ============================================
# Batch Release
# ============================================


@router.post(
    "/release",
    response_model=BatchReleaseResponse,
    summary="Release Decisions (Batch)",
    description="""
Release the internal decision of several applications.

Each application is released independently: one failure never undoes
another's success. The response lists released and failed items and an
overall `outcome` of `success`, `partial` or `failed`.

**Access:** Admin only
""",
)
async def batch_release(
    request: BatchReleaseRequest,
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin_user),
) -> BatchReleaseResponse:
    """
    Release several decisions at once.
    """
    await _check_admin_rate_limit(admin, "batch_release", *RATE_LIMIT_BATCH_RELEASE)

    try:
        result = await service.admin_batch_release(db, admin, request.application_ids)
        return BatchReleaseResponse(**result)

    except ApplicationServiceError as e:
        _handle_service_error(e)
    except Exception as e:
        logger.exception(f"Error in batch release: {e}")
        raise _internal_error() from e


# ============================================
# Detail & Decision Endpoints
# ============================================


@router.get(
    "/{application_id}",
    response_model=AdminApplicationDetail,
    summary="Get Application Details",
    description="""
Get the complete application, including the internal decision and admin
notes that are never shown to the applicant.

**Access:** Admin only
""",
    responses={404: {"description": "Application not found"}},
)
async def get_application_detail(
    application_id: str,
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin_user),
) -> AdminApplicationDetail:
    """
    Get complete details of an application.
    """
    try:
        application = await service.admin_get_application_detail(db, admin, application_id)
        return AdminApplicationDetail.model_validate(application)

    except ApplicationServiceError as e:
        _handle_service_error(e)
    except Exception as e:
        logger.exception(f"Error getting application detail: {e}")
        raise _internal_error() from e


@router.put(
    "/{application_id}/internal-decision",
    response_model=DecisionResponse,
    summary="Set Internal Decision",
    description="""
Record (or clear, with `null`) the decision for an application under review.

The applicant sees nothing until the decision is released.

**Requirements:**
- Application must be in `under_review` status

**Access:** Admin only
""",
    responses={
        404: {"description": "Application not found"},
        409: {"description": "Application is not under review"},
    },
)
async def set_internal_decision(
    application_id: str,
    request: SetDecisionRequest,
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin_user),
) -> DecisionResponse:
    """
    Record the internal decision.
    """
    await _check_admin_rate_limit(admin, "set_decision", *RATE_LIMIT_SET_DECISION)

    try:
        application = await service.admin_set_internal_decision(
            db, admin, application_id, request.decision
        )
        return DecisionResponse(
            id=application.id,
            status=application.status,
            internal_decision=application.internal_decision,
            message="Internal decision saved" if request.decision else "Internal decision cleared",
        )

    except ApplicationServiceError as e:
        _handle_service_error(e)
    except Exception as e:
        logger.exception(f"Error setting internal decision: {e}")
        raise _internal_error() from e


@router.post(
    "/{application_id}/release",
    response_model=ApplicationActionResponse,
    summary="Release Decision",
    description="""
Release the recorded decision to the applicant.

**Requirements:**
- Application must be in `under_review` status
- An internal decision must be recorded

**Effects:**
- Status becomes the internal decision
- `decision_released_at` is set on the first release
- Decision email sent to the applicant

**Access:** Admin only
""",
    responses={
        404: {"description": "Application not found"},
        409: {"description": "No internal decision, or not under review"},
    },
)
async def release_decision(
    application_id: str,
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin_user),
) -> ApplicationActionResponse:
    """
    Release the decision for one application.
    """
    await _check_admin_rate_limit(admin, "release", *RATE_LIMIT_RELEASE)

    try:
        application = await service.admin_release_decision(db, admin, application_id)
        return _action_response(application, "Decision released. Notification sent to applicant.")

    except ApplicationServiceError as e:
        _handle_service_error(e)
    except Exception as e:
        logger.exception(f"Error releasing decision: {e}")
        raise _internal_error() from e


# ============================================
# Override Endpoints
# ============================================


@router.post(
    "/{application_id}/reset",
    response_model=ApplicationActionResponse,
    summary="Reset To Draft",
    description="""
Send an application back to `draft` from any status so the applicant can
edit and resubmit. Clears `submitted_at`; form content is kept.

**Access:** Admin only
""",
    responses={404: {"description": "Application not found"}},
)
async def reset_application(
    application_id: str,
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin_user),
) -> ApplicationActionResponse:
    """
    Reset an application to draft.
    """
    await _check_admin_rate_limit(admin, "reset", *RATE_LIMIT_RESET)

    try:
        application = await service.admin_reset_application(db, admin, application_id)
        return _action_response(application, "Application reset to draft")

    except ApplicationServiceError as e:
        _handle_service_error(e)
    except Exception as e:
        logger.exception(f"Error resetting application: {e}")
        raise _internal_error() from e


@router.post(
    "/{application_id}/progress",
    response_model=ApplicationActionResponse,
    summary="Move To Review",
    description="""
Move a `draft` or `submitted` application to `under_review`.

**Access:** Admin only
""",
    responses={
        404: {"description": "Application not found"},
        409: {"description": "Already under review, decided or enrolled"},
    },
)
async def progress_application(
    application_id: str,
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin_user),
) -> ApplicationActionResponse:
    """
    Move an application to review.
    """
    await _check_admin_rate_limit(admin, "progress", *RATE_LIMIT_PROGRESS)

    try:
        application = await service.admin_progress_application(db, admin, application_id)
        return _action_response(application, "Application is now under review")

    except ApplicationServiceError as e:
        _handle_service_error(e)
    except Exception as e:
        logger.exception(f"Error progressing application: {e}")
        raise _internal_error() from e


@router.delete(
    "/{application_id}",
    response_model=DeleteApplicationResponse,
    summary="Delete Application",
    description="""
Permanently delete an application. This cannot be undone.

**Access:** Admin only
""",
    responses={404: {"description": "Application not found"}},
)
async def delete_application(
    application_id: str,
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin_user),
) -> DeleteApplicationResponse:
    """
    Delete an application.
    """
    await _check_admin_rate_limit(admin, "delete", *RATE_LIMIT_DELETE)

    try:
        await service.admin_delete_application(db, admin, application_id)
        return DeleteApplicationResponse(id=application_id)

    except ApplicationServiceError as e:
        _handle_service_error(e)
    except Exception as e:
        logger.exception(f"Error deleting application: {e}")
        raise _internal_error() from e


# ============================================
# Notes
# ============================================


@router.post(
    "/{application_id}/notes",
    response_model=AddNoteResponse,
    summary="Add Note",
    description="""
Append a note to an application. Notes are visible to admins only and can
never be edited or removed.

**Access:** Admin only
""",
    responses={404: {"description": "Application not found"}},
)
async def add_note(
    application_id: str,
    request: AddNoteRequest,
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin_user),
) -> AddNoteResponse:
    """
    Add an admin note.
    """
    await _check_admin_rate_limit(admin, "add_note", *RATE_LIMIT_NOTES)

    try:
        new_note = await service.admin_add_note(db, admin, application_id, request.content)
        return AddNoteResponse(id=application_id, note=Note(**new_note))

    except ApplicationServiceError as e:
        _handle_service_error(e)
    except Exception as e:
        logger.exception(f"Error adding note: {e}")
        raise _internal_error() from e
