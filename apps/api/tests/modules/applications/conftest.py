"""
Fixtures for applications tests.
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.core.auth import CurrentUser
from app.modules.applications.models import Application, ApplicationStatus
from app.modules.applications.repository import apply_field_paths

APPLICANT_ID = "user-123"


def build_application(
    id: str = APPLICANT_ID,
    status: ApplicationStatus = ApplicationStatus.DRAFT,
    **overrides,
):
    """Build an application model with a complete form."""
    created_at = datetime.now(UTC) - timedelta(days=3)

    app = MagicMock(spec=Application)
    app.id = id
    app.status = status
    app.personal_info = {
        "first_name": "Jane",
        "last_name": "Doe",
        "email": "jane.doe@cam.ac.uk",
        "university": "University of Cambridge",
        "college": "Trinity",
        "year_of_study": "Year 2 (Undergraduate)",
        "subjects": ["Mathematics", "Physics"],
    }
    app.essays = {
        "motivation": "I want to share what I have learned.",
        "experience": "Two years of peer tutoring.",
        "additional_info": "",
    }
    app.misc = {
        "availability": ["July 2026 - Full Month"],
        "dietary_restrictions": "",
        "referral_source": "Social media",
        "agreed_to_terms": True,
    }
    app.internal_decision = None
    app.notes = []
    app.created_at = created_at
    app.submitted_at = None if status == ApplicationStatus.DRAFT else created_at + timedelta(days=1)
    app.last_updated_at = created_at + timedelta(days=1)
    app.decision_released_at = None
    app.version = 1

    for key, value in overrides.items():
        setattr(app, key, value)

    return app


@pytest.fixture
def make_application():
    """Factory for application models."""
    return build_application


@pytest.fixture
def mock_db():
    """Create a mock database session."""
    db = AsyncMock()
    db.commit = AsyncMock()
    db.refresh = AsyncMock()
    db.rollback = AsyncMock()
    db.get = AsyncMock()
    db.execute = AsyncMock()
    db.add = MagicMock()
    return db


@pytest.fixture
def applicant_user():
    """The applicant who owns APPLICANT_ID."""
    return CurrentUser(id=APPLICANT_ID, email="jane.doe@cam.ac.uk", name="Jane Doe")


@pytest.fixture
def other_user():
    """An authenticated applicant who owns a different record."""
    return CurrentUser(id="user-999", email="someone@else.com", name="Someone Else")


@pytest.fixture
def admin_user():
    """An authenticated administrator."""
    return CurrentUser(id="admin-1", email="admin@example.com", name="Ada Admin", is_admin=True)


@pytest.fixture
def store():
    """
    Patch the service's repository with an in-memory store.

    ``store.applications`` maps id -> application model. Writes go through
    the real field-path logic, so tests observe the same mutations the
    database would receive.
    """
    applications: dict = {}

    async def get_by_id(db, id):
        return applications.get(id)

    async def update_fields(db, id, updates):
        application = applications.get(id)
        if application is None:
            raise ValueError(f"Application {id} not found")
        updates = dict(updates)
        updates.setdefault("last_updated_at", datetime.now(UTC))
        apply_field_paths(application, updates)
        return application

    async def delete_by_id(db, id):
        return applications.pop(id, None) is not None

    async def add_note(db, id, content, author):
        note = {"content": content, "author": author, "timestamp": datetime.now(UTC).isoformat()}
        applications[id].notes = [*applications[id].notes, note]
        return note

    repo = MagicMock()
    repo.applications = applications
    repo.get_by_id = AsyncMock(side_effect=get_by_id)
    repo.update_fields = AsyncMock(side_effect=update_fields)
    repo.delete_by_id = AsyncMock(side_effect=delete_by_id)
    repo.add_note = AsyncMock(side_effect=add_note)
    repo.create = AsyncMock()
    repo.get_applications_for_admin = AsyncMock(return_value=([], 0))
    repo.get_dashboard_stats = AsyncMock()

    with patch("app.modules.applications.service.repository", repo):
        yield repo


@pytest.fixture
def dispatched():
    """Patch notification dispatch and record the effects passed to it."""
    with patch(
        "app.modules.applications.service.dispatch_effects",
        new=AsyncMock(return_value=1),
    ) as mock_dispatch:
        yield mock_dispatch

