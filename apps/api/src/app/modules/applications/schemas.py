"""
Applications Schemas

Pydantic schemas for request validation and response serialization.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.modules.applications.models import ApplicationStatus, Decision

# ============================================
# Form Sections
# ============================================


class PersonalInfo(BaseModel):
    """Personal information section as stored on a draft."""

    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    date_of_birth: str = ""
    nationality: str = ""
    gender: str = ""
    university: str = ""
    college: str = ""
    department: str = ""
    programme: str = ""
    year_of_study: str = ""
    subjects: list[str] = Field(default_factory=list)
    other_subject: str = ""


class Essays(BaseModel):
    """Essay answers section."""

    motivation: str = ""
    experience: str = ""
    additional_info: str = ""


class Misc(BaseModel):
    """Availability, logistics and consent section."""

    availability: list[str] = Field(default_factory=list)
    dietary_restrictions: str = ""
    referral_source: str = ""
    agreed_to_terms: bool = False


class PersonalInfoUpdate(BaseModel):
    """Partial update of the personal information section.

    Only fields present in the request body are written.
    """

    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=30)
    date_of_birth: str | None = Field(None, max_length=20)
    nationality: str | None = Field(None, max_length=100)
    gender: str | None = Field(None, max_length=50)
    university: str | None = Field(None, max_length=200)
    college: str | None = Field(None, max_length=200)
    department: str | None = Field(None, max_length=200)
    programme: str | None = Field(None, max_length=200)
    year_of_study: str | None = Field(None, max_length=50)
    subjects: list[str] | None = Field(None, max_length=20)
    other_subject: str | None = Field(None, max_length=200)


class EssaysUpdate(BaseModel):
    """Partial update of the essays section."""

    motivation: str | None = Field(None, max_length=10000)
    experience: str | None = Field(None, max_length=10000)
    additional_info: str | None = Field(None, max_length=10000)


class MiscUpdate(BaseModel):
    """Partial update of the misc section."""

    availability: list[str] | None = Field(None, max_length=20)
    dietary_restrictions: str | None = Field(None, max_length=500)
    referral_source: str | None = Field(None, max_length=200)
    agreed_to_terms: bool | None = None


class ApplicationFormUpdate(BaseModel):
    """Request body for PATCH /applications/me."""

    personal_info: PersonalInfoUpdate | None = None
    essays: EssaysUpdate | None = None
    misc: MiscUpdate | None = None


# ============================================
# Applicant Responses
# ============================================


class ApplicantApplicationResponse(BaseModel):
    """The applicant's own view of their application.

    Never includes the internal decision or admin notes.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    status: ApplicationStatus
    personal_info: PersonalInfo
    essays: Essays
    misc: Misc
    created_at: datetime
    submitted_at: datetime | None = None
    last_updated_at: datetime
    decision_released_at: datetime | None = None


class StatusStep(BaseModel):
    """A single step in the application timeline."""

    name: str
    completed: bool
    active: bool = False
    completed_at: datetime | None = None


class ApplicationStatusResponse(BaseModel):
    """Response for GET /applications/me/status."""

    id: str
    status: ApplicationStatus
    status_label: str
    status_description: str
    submitted_at: datetime | None = None
    decision_released_at: datetime | None = None
    steps: list[StatusStep]


class ApplicationActionResponse(BaseModel):
    """Response after a status-changing action."""

    id: str = Field(..., description="Application id (owner identity)")
    status: ApplicationStatus = Field(..., description="Status after the action")
    message: str = Field(..., description="Success message")


class FormOptionsResponse(BaseModel):
    """Fixed choices offered by the application form."""

    subjects: list[str]
    year_options: list[str]
    availability_options: list[str]
    referral_sources: list[str]


# ============================================
# Admin Dashboard Schemas
# ============================================


class Note(BaseModel):
    """Admin note on an application. Never shown to applicants."""

    content: str = Field(..., description="Note content")
    author: str = Field(..., description="Display name of the admin who wrote it")
    timestamp: datetime = Field(..., description="When the note was added")


class AdminApplicationDetail(ApplicantApplicationResponse):
    """Complete application for admin review, including admin-only data."""

    internal_decision: Decision | None = Field(None, description="Unreleased decision")
    notes: list[Note] = Field(default_factory=list, description="Admin notes, oldest first")
    version: int = Field(..., description="Record version, incremented on every write")


class ApplicationListItem(BaseModel):
    """Application summary for the admin table."""

    id: str = Field(..., description="Application id (owner identity)")
    applicant_name: str = Field(..., description="First and last name")
    email: str = Field(..., description="Applicant contact email")
    university: str = Field(..., description="Applicant's university")
    year_of_study: str = Field(..., description="Applicant's year of study")
    status: ApplicationStatus = Field(..., description="Current status")
    internal_decision: Decision | None = Field(None, description="Unreleased decision")
    created_at: datetime = Field(..., description="When the application was created")
    submitted_at: datetime | None = Field(None, description="When it was submitted")
    last_updated_at: datetime = Field(..., description="Last modification")
    decision_released_at: datetime | None = Field(None, description="First release time")


class ApplicationListResponse(BaseModel):
    """Paginated list of applications for the admin dashboard."""

    applications: list[ApplicationListItem] = Field(
        ..., description="List of application summaries"
    )
    total: int = Field(..., ge=0, description="Total number of applications matching filters")
    skip: int = Field(..., ge=0, description="Number of records skipped")
    limit: int = Field(..., ge=1, le=100, description="Maximum records per page")


class DashboardStats(BaseModel):
    """Aggregated counts shown on the admin dashboard."""

    registered: int = Field(..., ge=0, description="All application records")
    submitted: int = Field(..., ge=0, description="Applications past draft")
    reviewing: int = Field(..., ge=0, description="Submitted or under review")
    accepted: int = Field(..., ge=0, description="Accepted or enrolled")
    awaiting_release: int = Field(
        ..., ge=0, description="Under review with an internal decision recorded"
    )
    by_status: dict[str, int] = Field(..., description="Count per status")


# ============================================
# Admin Action Request Schemas
# ============================================


class SetDecisionRequest(BaseModel):
    """Request body for setting or clearing the internal decision."""

    decision: Decision | None = Field(
        ...,
        description="Decision to record, or null to clear it",
        json_schema_extra={"example": "accepted"},
    )


class AddNoteRequest(BaseModel):
    """Request body for adding an admin note."""

    content: str = Field(
        ...,
        min_length=1,
        max_length=2000,
        description="Note content",
        json_schema_extra={"example": "Strong maths background, good interview."},
    )


class BatchReleaseRequest(BaseModel):
    """Request body for releasing several decisions at once."""

    application_ids: list[str] = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Applications to release",
    )


# ============================================
# Admin Action Response Schemas
# ============================================


class DecisionResponse(BaseModel):
    """Response after setting the internal decision."""

    id: str = Field(..., description="Application id")
    status: ApplicationStatus = Field(..., description="Current status (unchanged)")
    internal_decision: Decision | None = Field(None, description="Recorded decision")
    message: str = Field(default="Internal decision saved", description="Success message")


class ReleaseItemResult(BaseModel):
    """Outcome of releasing one application in a batch."""

    application_id: str
    success: bool
    status: ApplicationStatus | None = None
    error: str | None = None
    message: str | None = None


class BatchReleaseResponse(BaseModel):
    """Response after a batch release.

    Items are released independently; a failure never undoes an earlier
    success.
    """

    outcome: Literal["success", "partial", "failed"]
    released: list[ReleaseItemResult]
    failed: list[ReleaseItemResult]
    success_count: int = Field(..., ge=0)
    failure_count: int = Field(..., ge=0)


class AddNoteResponse(BaseModel):
    """Response after adding a note."""

    id: str = Field(..., description="Application id")
    note: Note = Field(..., description="The newly added note")
    message: str = Field(default="Note added successfully", description="Success message")


class DeleteApplicationResponse(BaseModel):
    """Response after permanently deleting an application."""

    id: str = Field(..., description="Deleted application id")
    message: str = Field(default="Application deleted", description="Success message")
