"""
Applications Router

API endpoints for applicants. Every endpoint acts on the caller's own
application, identified by the ``sub`` claim of their token.

Endpoints:
- GET /applications/form-options - Choices offered by the form
- GET /applications/me - Get (or start) my application
- PATCH /applications/me - Save draft form sections
- POST /applications/me/submit - Submit for review
- POST /applications/me/enroll - Confirm my place after acceptance
- GET /applications/me/status - Status and progress timeline
- GET /applications/me/offer-letter - Download offer letter PDF

Security:
- Bearer JWT required (except form options)
- Admin-only data (internal decision, notes) is never returned here
- Input validation via Pydantic schemas
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CurrentUser, get_current_user
from app.core.database import get_db
from app.modules.applications import service
from app.modules.applications.schemas import (
    ApplicantApplicationResponse,
    ApplicationActionResponse,
    ApplicationFormUpdate,
    ApplicationStatusResponse,
    FormOptionsResponse,
)
from app.modules.applications.service import ApplicationServiceError

logger = logging.getLogger(__name__)

router = APIRouter()

SUBJECTS = [
    "Mathematics",
    "Physics",
    "Chemistry",
    "Biology",
    "Computer Science",
    "Economics",
    "History",
    "English Literature",
    "Philosophy",
    "Psychology",
    "Engineering",
    "Medicine",
    "Law",
    "Other",
]

YEAR_OPTIONS = [
    "Year 1 (Undergraduate)",
    "Year 2 (Undergraduate)",
    "Year 3 (Undergraduate)",
    "Year 4 (Undergraduate)",
    "Masters",
    "PhD",
    "Postdoc",
    "Recent Graduate",
]

AVAILABILITY_OPTIONS = [
    "July 2026 - Full Month",
    "July 2026 - First Two Weeks",
    "July 2026 - Last Two Weeks",
    "August 2026 - Full Month",
    "August 2026 - First Two Weeks",
    "August 2026 - Last Two Weeks",
    "Flexible / Open to discussion",
]

REFERRAL_SOURCES = [
    "University careers service",
    "Friend or colleague",
    "Social media",
    "CAMCapy Society",
    "Email newsletter",
    "University notice board",
    "Other",
]


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
            "message": "An unexpected error occurred. Please try again later.",
        },
    )


@router.get(
    "/form-options",
    response_model=FormOptionsResponse,
    summary="List Form Options",
    description="Get the fixed choices offered by the application form.",
)
async def get_form_options() -> FormOptionsResponse:
    """
    Get subjects, year of study options, availability periods and referral
    sources.
    """
    return FormOptionsResponse(
        subjects=SUBJECTS,
        year_options=YEAR_OPTIONS,
        availability_options=AVAILABILITY_OPTIONS,
        referral_sources=REFERRAL_SOURCES,
    )


@router.get(
    "/me",
    response_model=ApplicantApplicationResponse,
    summary="Get My Application",
    description="""
Get the caller's application. A draft is created on first access, with the
name and email from the caller's token filled in.
""",
)
async def get_my_application(
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> ApplicantApplicationResponse:
    try:
        application = await service.get_or_create_my_application(db, user)
        return ApplicantApplicationResponse.model_validate(application)

    except ApplicationServiceError as e:
        _handle_service_error(e)
    except Exception as e:
        logger.exception(f"Error loading application for {user.id}: {e}")
        raise _internal_error() from e


@router.patch(
    "/me",
    response_model=ApplicantApplicationResponse,
    summary="Save Draft",
    description="""
Save form sections. Only the fields present in the body are written, so
sections can be saved independently.

**Requirements:**
- Application must be in `draft` status
""",
    responses={
        404: {"description": "No application yet (call GET /me first)"},
        409: {"description": "Application already submitted"},
    },
)
async def save_my_application(
    form: ApplicationFormUpdate,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> ApplicantApplicationResponse:
    try:
        application = await service.save_my_application(db, user, form)
        return ApplicantApplicationResponse.model_validate(application)

    except ApplicationServiceError as e:
        _handle_service_error(e)
    except Exception as e:
        logger.exception(f"Error saving application for {user.id}: {e}")
        raise _internal_error() from e


@router.post(
    "/me/submit",
    response_model=ApplicationActionResponse,
    summary="Submit Application",
    description="""
Submit the draft for review. A confirmation email is sent to the address in
the personal information section.

**Required fields:** first name, last name, email, university, year of
study, motivation essay and agreement to the terms.
""",
    responses={
        409: {"description": "Already submitted"},
        422: {"description": "Required fields missing"},
    },
)
async def submit_application(
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> ApplicationActionResponse:
    try:
        application = await service.submit_application(db, user)

        logger.info(f"Application {application.id} submitted")

        return ApplicationActionResponse(
            id=application.id,
            status=application.status,
            message="Application submitted. A confirmation email is on its way.",
        )

    except ApplicationServiceError as e:
        _handle_service_error(e)
    except Exception as e:
        logger.exception(f"Error submitting application for {user.id}: {e}")
        raise _internal_error() from e


@router.post(
    "/me/enroll",
    response_model=ApplicationActionResponse,
    summary="Confirm Enrollment",
    description="Accept the offer. Only available once the application is `accepted`.",
    responses={409: {"description": "Application is not accepted"}},
)
async def enroll(
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> ApplicationActionResponse:
    try:
        application = await service.enroll_application(db, user)
        return ApplicationActionResponse(
            id=application.id,
            status=application.status,
            message="Your place on the programme is confirmed.",
        )

    except ApplicationServiceError as e:
        _handle_service_error(e)
    except Exception as e:
        logger.exception(f"Error enrolling {user.id}: {e}")
        raise _internal_error() from e


@router.get(
    "/me/status",
    response_model=ApplicationStatusResponse,
    summary="Get Application Status",
    description="""
Get the status of the caller's application with a progress timeline:

1. Account Created
2. Application Form
3. Submitted
4. Under Review
5. Decision
""",
)
async def get_my_status(
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> ApplicationStatusResponse:
    try:
        return await service.get_application_status(db, user)

    except ApplicationServiceError as e:
        _handle_service_error(e)
    except Exception as e:
        logger.exception(f"Error getting status for {user.id}: {e}")
        raise _internal_error() from e


@router.get(
    "/me/offer-letter",
    summary="Download Offer Letter",
    description="Download the offer letter PDF. Available once `accepted` or `enrolled`.",
    responses={
        200: {"content": {"application/pdf": {}}, "description": "Offer letter PDF"},
        409: {"description": "No offer has been made"},
    },
)
async def download_offer_letter(
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> Response:
    try:
        filename, pdf = await service.get_offer_letter(db, user)
        return Response(
            content=pdf,
            media_type="application/pdf",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    except ApplicationServiceError as e:
        _handle_service_error(e)
    except Exception as e:
        logger.exception(f"Error generating offer letter for {user.id}: {e}")
        raise _internal_error() from e
