"""
Unit tests for the applicant side of the applications service layer.

These tests cover:
- Authorization of owner actions
- First access creating a draft (including a concurrent first access)
- Saving draft sections by field path
- Submission and enrollment
- Status timeline and offer letter download
"""

from datetime import UTC, datetime
from unittest.mock import ANY, AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from app.core.auth import CurrentUser
from app.modules.applications.models import ApplicationStatus, Decision, NotificationKind
from app.modules.applications.schemas import (
    ApplicationFormUpdate,
    EssaysUpdate,
    MiscUpdate,
    PersonalInfoUpdate,
)
from app.modules.applications.service import (
    Action,
    ApplicationNotFoundError,
    CannotEnrollError,
    InvalidApplicationStateError,
    MissingRequiredFieldsError,
    NotAuthorizedError,
    OfferLetterUnavailableError,
    StoreUnavailableError,
    authorize,
    enroll_application,
    get_application_status,
    get_offer_letter,
    get_or_create_my_application,
    save_my_application,
    submit_application,
)

# ============================================
# Authorization
# ============================================


class TestAuthorize:
    """Tests for the authorize function."""

    def test_owner_may_act_on_own_application(self, applicant_user):
        authorize(applicant_user, Action.SUBMIT, "user-123")

    def test_owner_may_not_act_on_another_application(self, applicant_user):
        with pytest.raises(NotAuthorizedError) as exc_info:
            authorize(applicant_user, Action.SUBMIT, "user-999")

        assert exc_info.value.status_code == 403
        assert exc_info.value.error_code == "NOT_AUTHORIZED"

    def test_owner_action_without_target_is_denied(self, applicant_user):
        with pytest.raises(NotAuthorizedError):
            authorize(applicant_user, Action.VIEW_STATUS)

    @pytest.mark.parametrize(
        "action",
        [Action.RELEASE, Action.BATCH_RELEASE, Action.RESET, Action.DELETE, Action.LIST],
    )
    def test_applicant_may_not_perform_admin_actions(self, applicant_user, action):
        with pytest.raises(NotAuthorizedError):
            authorize(applicant_user, action, applicant_user.id)

    def test_admin_may_perform_admin_actions(self, admin_user):
        authorize(admin_user, Action.RELEASE, "user-123")
        authorize(admin_user, Action.LIST)

    def test_admin_is_not_owner_of_other_applications(self, admin_user):
        """Owner actions are keyed on identity, not the admin claim."""
        with pytest.raises(NotAuthorizedError):
            authorize(admin_user, Action.SUBMIT, "user-123")


# ============================================
# Get or create
# ============================================


class TestGetOrCreateMyApplication:
    """Tests for get_or_create_my_application function."""

    @pytest.mark.asyncio
    async def test_returns_existing_application(self, mock_db, store, applicant_user, make_application):
        existing = make_application(status=ApplicationStatus.UNDER_REVIEW)
        store.applications["user-123"] = existing

        result = await get_or_create_my_application(mock_db, applicant_user)

        assert result is existing
        store.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_creates_draft_seeded_from_token(self, mock_db, store, applicant_user, make_application):
        created = make_application()
        store.create.return_value = created

        result = await get_or_create_my_application(mock_db, applicant_user)

        assert result is created
        store.create.assert_awaited_once_with(
            mock_db,
            "user-123",
            {"first_name": "Jane", "last_name": "Doe", "email": "jane.doe@cam.ac.uk"},
            now=ANY,
        )

    @pytest.mark.asyncio
    async def test_creates_draft_without_display_name(self, mock_db, store, make_application):
        actor = CurrentUser(id="user-42", email="x@y.com")
        store.create.return_value = make_application(id="user-42")

        await get_or_create_my_application(mock_db, actor)

        personal_info = store.create.call_args.args[2]
        assert personal_info == {"first_name": "", "last_name": "", "email": "x@y.com"}

    @pytest.mark.asyncio
    async def test_concurrent_first_access_loads_existing(
        self, mock_db, store, applicant_user, make_application
    ):
        """A unique violation on create means another request got there first."""
        winner = make_application()

        async def create_race(db, id, personal_info, now=None):
            store.applications[id] = winner
            raise IntegrityError("INSERT INTO applications", {}, Exception("duplicate key"))

        store.create.side_effect = create_race

        result = await get_or_create_my_application(mock_db, applicant_user)

        assert result is winner
        mock_db.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_store_failure_on_create(self, mock_db, store, applicant_user):
        store.create.side_effect = OperationalError("INSERT", {}, Exception("connection lost"))

        with pytest.raises(StoreUnavailableError) as exc_info:
            await get_or_create_my_application(mock_db, applicant_user)

        assert exc_info.value.status_code == 503
        assert exc_info.value.message == "Action failed, please retry."
        mock_db.rollback.assert_awaited_once()


# ============================================
# Save draft
# ============================================


class TestSaveMyApplication:
    """Tests for save_my_application function."""

    @pytest.mark.asyncio
    async def test_save_writes_only_present_fields(
        self, mock_db, store, applicant_user, make_application
    ):
        application = make_application()
        store.applications["user-123"] = application

        form = ApplicationFormUpdate(
            personal_info=PersonalInfoUpdate(university="University of Oxford"),
            misc=MiscUpdate(availability=["August 2026 - Full Month"]),
        )

        result = await save_my_application(mock_db, applicant_user, form)

        store.update_fields.assert_awaited_once_with(
            mock_db,
            "user-123",
            {
                "personal_info.university": "University of Oxford",
                "misc.availability": ["August 2026 - Full Month"],
            },
        )
        assert result.personal_info["university"] == "University of Oxford"
        # Sibling fields untouched
        assert result.personal_info["college"] == "Trinity"
        assert result.misc["agreed_to_terms"] is True

    @pytest.mark.asyncio
    async def test_save_with_empty_form_is_noop(self, mock_db, store, applicant_user, make_application):
        application = make_application()
        store.applications["user-123"] = application

        result = await save_my_application(mock_db, applicant_user, ApplicationFormUpdate())

        assert result is application
        store.update_fields.assert_not_called()

    @pytest.mark.asyncio
    async def test_save_after_submission_rejected(
        self, mock_db, store, applicant_user, make_application
    ):
        store.applications["user-123"] = make_application(status=ApplicationStatus.UNDER_REVIEW)

        form = ApplicationFormUpdate(essays=EssaysUpdate(motivation="Changed my mind"))

        with pytest.raises(InvalidApplicationStateError) as exc_info:
            await save_my_application(mock_db, applicant_user, form)

        assert exc_info.value.status_code == 409
        store.update_fields.assert_not_called()

    @pytest.mark.asyncio
    async def test_save_without_application(self, mock_db, store, applicant_user):
        with pytest.raises(ApplicationNotFoundError):
            await save_my_application(mock_db, applicant_user, ApplicationFormUpdate())


# ============================================
# Submit
# ============================================


class TestSubmitApplication:
    """Tests for submit_application function."""

    @pytest.mark.asyncio
    async def test_submit_success(self, mock_db, store, dispatched, applicant_user, make_application):
        application = make_application()
        store.applications["user-123"] = application

        result = await submit_application(mock_db, applicant_user)

        assert result.status == ApplicationStatus.UNDER_REVIEW
        assert result.submitted_at is not None
        assert result.last_updated_at == result.submitted_at

        dispatched.assert_awaited_once()
        effects = dispatched.call_args.args[2]
        assert len(effects) == 1
        assert effects[0].kind == NotificationKind.SUBMISSION
        assert effects[0].to_email == "jane.doe@cam.ac.uk"

    @pytest.mark.asyncio
    async def test_submit_without_auto_review(
        self, mock_db, store, dispatched, applicant_user, make_application
    ):
        store.applications["user-123"] = make_application()

        with patch("app.modules.applications.service.settings") as mock_settings:
            mock_settings.auto_review_on_submit = False
            result = await submit_application(mock_db, applicant_user)

        assert result.status == ApplicationStatus.SUBMITTED

    @pytest.mark.asyncio
    async def test_submit_missing_fields(self, mock_db, store, dispatched, applicant_user, make_application):
        application = make_application(
            essays={"motivation": "", "experience": "", "additional_info": ""},
        )
        store.applications["user-123"] = application

        with pytest.raises(MissingRequiredFieldsError) as exc_info:
            await submit_application(mock_db, applicant_user)

        assert exc_info.value.status_code == 422
        assert exc_info.value.missing_fields == ["essays.motivation"]
        assert application.status == ApplicationStatus.DRAFT
        assert application.submitted_at is None
        store.update_fields.assert_not_called()
        dispatched.assert_not_called()

    @pytest.mark.asyncio
    async def test_submit_twice_rejected(self, mock_db, store, dispatched, applicant_user, make_application):
        store.applications["user-123"] = make_application()

        await submit_application(mock_db, applicant_user)

        with pytest.raises(InvalidApplicationStateError):
            await submit_application(mock_db, applicant_user)

        assert dispatched.await_count == 1

    @pytest.mark.asyncio
    async def test_submit_succeeds_when_email_fails(
        self, mock_db, store, applicant_user, make_application
    ):
        """A failed confirmation email never undoes the submission."""
        store.applications["user-123"] = make_application()

        with (
            patch(
                "app.modules.applications.effects.send_submission_received",
                new=AsyncMock(return_value=False),
            ),
            patch("app.modules.applications.effects.repository") as mock_outbox,
        ):
            mock_outbox.create_pending_notification = AsyncMock()
            result = await submit_application(mock_db, applicant_user)

        assert result.status == ApplicationStatus.UNDER_REVIEW
        mock_outbox.create_pending_notification.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_submit_store_failure_leaves_nothing_sent(
        self, mock_db, store, dispatched, applicant_user, make_application
    ):
        store.applications["user-123"] = make_application()
        store.update_fields.side_effect = OperationalError("UPDATE", {}, Exception("down"))

        with pytest.raises(StoreUnavailableError):
            await submit_application(mock_db, applicant_user)

        dispatched.assert_not_called()
        mock_db.rollback.assert_awaited_once()


# ============================================
# Enroll
# ============================================


class TestEnrollApplication:
    """Tests for enroll_application function."""

    @pytest.mark.asyncio
    async def test_enroll_success(self, mock_db, store, dispatched, applicant_user, make_application):
        store.applications["user-123"] = make_application(
            status=ApplicationStatus.ACCEPTED,
            internal_decision=Decision.ACCEPTED,
        )

        result = await enroll_application(mock_db, applicant_user)

        assert result.status == ApplicationStatus.ENROLLED
        dispatched.assert_not_called()

    @pytest.mark.parametrize(
        "status",
        [
            ApplicationStatus.DRAFT,
            ApplicationStatus.UNDER_REVIEW,
            ApplicationStatus.REJECTED,
            ApplicationStatus.WAITLISTED,
            ApplicationStatus.ENROLLED,
        ],
    )
    @pytest.mark.asyncio
    async def test_enroll_requires_acceptance(
        self, mock_db, store, applicant_user, make_application, status
    ):
        store.applications["user-123"] = make_application(status=status)

        with pytest.raises(CannotEnrollError) as exc_info:
            await enroll_application(mock_db, applicant_user)

        assert exc_info.value.error_code == "CANNOT_ENROLL"
        assert store.applications["user-123"].status == status


# ============================================
# Status
# ============================================


class TestGetApplicationStatus:
    """Tests for get_application_status function."""

    @pytest.mark.asyncio
    async def test_status_for_draft(self, mock_db, store, applicant_user, make_application):
        store.applications["user-123"] = make_application()

        result = await get_application_status(mock_db, applicant_user)

        assert result.status == ApplicationStatus.DRAFT
        assert result.status_label == "In Progress"
        assert [step.name for step in result.steps] == [
            "Account Created",
            "Application Form",
            "Submitted",
            "Under Review",
            "Decision",
        ]
        assert [step.completed for step in result.steps] == [True, False, False, False, False]
        assert result.steps[1].active is True

    @pytest.mark.asyncio
    async def test_status_under_review(self, mock_db, store, applicant_user, make_application):
        store.applications["user-123"] = make_application(
            status=ApplicationStatus.UNDER_REVIEW,
            internal_decision=Decision.ACCEPTED,
        )

        result = await get_application_status(mock_db, applicant_user)

        assert result.status_label == "Under Review"
        assert [step.completed for step in result.steps] == [True, True, True, False, False]
        assert result.steps[3].active is True

    @pytest.mark.asyncio
    async def test_unreleased_decision_not_exposed(self, mock_db, store, applicant_user, make_application):
        store.applications["user-123"] = make_application(
            status=ApplicationStatus.UNDER_REVIEW,
            internal_decision=Decision.REJECTED,
        )

        result = await get_application_status(mock_db, applicant_user)

        assert "internal_decision" not in result.model_dump()
        assert result.status == ApplicationStatus.UNDER_REVIEW

    @pytest.mark.asyncio
    async def test_status_after_release(self, mock_db, store, applicant_user, make_application):
        released_at = datetime(2026, 6, 1, tzinfo=UTC)
        store.applications["user-123"] = make_application(
            status=ApplicationStatus.WAITLISTED,
            decision_released_at=released_at,
        )

        result = await get_application_status(mock_db, applicant_user)

        assert result.status_label == "Waitlisted"
        assert all(step.completed for step in result.steps)
        assert result.steps[4].completed_at == released_at

    @pytest.mark.asyncio
    async def test_status_not_found(self, mock_db, store, applicant_user):
        with pytest.raises(ApplicationNotFoundError) as exc_info:
            await get_application_status(mock_db, applicant_user)

        assert exc_info.value.status_code == 404


# ============================================
# Offer letter
# ============================================


class TestGetOfferLetter:
    """Tests for get_offer_letter function."""

    @pytest.mark.parametrize("status", [ApplicationStatus.ACCEPTED, ApplicationStatus.ENROLLED])
    @pytest.mark.asyncio
    async def test_offer_letter_available(self, mock_db, store, applicant_user, make_application, status):
        store.applications["user-123"] = make_application(status=status)

        with patch(
            "app.modules.applications.service.generate_offer_letter_pdf",
            new=MagicMock(return_value=b"%PDF-1.4 letter"),
        ):
            filename, pdf = await get_offer_letter(mock_db, applicant_user)

        assert filename == "Offer_Letter_Jane_Doe.pdf"
        assert pdf == b"%PDF-1.4 letter"

    @pytest.mark.parametrize(
        "status",
        [
            ApplicationStatus.DRAFT,
            ApplicationStatus.UNDER_REVIEW,
            ApplicationStatus.REJECTED,
            ApplicationStatus.WAITLISTED,
        ],
    )
    @pytest.mark.asyncio
    async def test_offer_letter_requires_acceptance(
        self, mock_db, store, applicant_user, make_application, status
    ):
        store.applications["user-123"] = make_application(
            status=status,
            internal_decision=Decision.ACCEPTED,
        )

        with pytest.raises(OfferLetterUnavailableError) as exc_info:
            await get_offer_letter(mock_db, applicant_user)

        assert exc_info.value.status_code == 409
