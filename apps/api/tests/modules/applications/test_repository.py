"""
Unit tests for applications repository.

Database calls are mocked; field-path logic runs against real model
instances.
"""

import uuid
from datetime import UTC, datetime
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from app.modules.applications import repository
from app.modules.applications.models import (
    Application,
    ApplicationStatus,
    NotificationKind,
    PendingNotification,
)


def _application(**fields):
    defaults = {
        "id": "user-123",
        "status": ApplicationStatus.DRAFT,
        "personal_info": {"first_name": "Jane", "last_name": "Doe", "email": "jane@cam.ac.uk"},
        "essays": {},
        "misc": {"agreed_to_terms": False},
        "notes": [],
    }
    defaults.update(fields)
    return Application(**defaults)


class TestApplyFieldPaths:
    """Tests for apply_field_paths."""

    def test_nested_path_updates_one_key(self):
        application = _application()

        repository.apply_field_paths(application, {"personal_info.university": "Oxford"})

        assert application.personal_info == {
            "first_name": "Jane",
            "last_name": "Doe",
            "email": "jane@cam.ac.uk",
            "university": "Oxford",
        }

    def test_nested_path_reassigns_document(self):
        """The document is copied so the ORM sees a new value."""
        original = {"first_name": "Jane"}
        application = _application(personal_info=original)

        repository.apply_field_paths(application, {"personal_info.last_name": "Doe"})

        assert application.personal_info is not original
        assert original == {"first_name": "Jane"}

    def test_deep_path_creates_intermediate_objects(self):
        application = _application(misc={})

        repository.apply_field_paths(application, {"misc.travel.arrival": "2026-07-01"})

        assert application.misc == {"travel": {"arrival": "2026-07-01"}}

    def test_top_level_path_replaces_field(self):
        application = _application()

        repository.apply_field_paths(
            application,
            {"status": ApplicationStatus.SUBMITTED, "submitted_at": None},
        )

        assert application.status == ApplicationStatus.SUBMITTED
        assert application.submitted_at is None

    def test_none_clears_nested_value(self):
        application = _application()

        repository.apply_field_paths(application, {"personal_info.email": None})

        assert application.personal_info["email"] is None

    def test_unknown_field_rejected(self):
        with pytest.raises(ValueError, match="Unknown application field"):
            repository.apply_field_paths(_application(), {"version": 5})

    def test_nested_path_on_scalar_field_rejected(self):
        with pytest.raises(ValueError, match="does not support nested paths"):
            repository.apply_field_paths(_application(), {"status.value": "draft"})


class TestCreate:
    @pytest.mark.asyncio
    async def test_create_draft(self, mock_db):
        now = datetime(2026, 3, 1, tzinfo=UTC)

        result = await repository.create(
            mock_db,
            "user-123",
            {"first_name": "Jane", "last_name": "Doe", "email": "jane@cam.ac.uk"},
            now=now,
        )

        mock_db.add.assert_called_once_with(result)
        mock_db.commit.assert_awaited_once()
        assert result.id == "user-123"
        assert result.status == ApplicationStatus.DRAFT
        assert result.essays == {}
        assert result.misc["agreed_to_terms"] is False
        assert result.misc["availability"] == []
        assert result.notes == []
        assert result.internal_decision is None
        assert result.created_at == now
        assert result.last_updated_at == now


class TestUpdateFields:
    @pytest.mark.asyncio
    async def test_update_fields_sets_last_updated(self, mock_db):
        application = _application()
        mock_db.get.return_value = application

        result = await repository.update_fields(
            mock_db, "user-123", {"essays.motivation": "Teaching"}
        )

        assert result is application
        assert application.essays == {"motivation": "Teaching"}
        assert application.last_updated_at is not None
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_update_fields_keeps_supplied_timestamp(self, mock_db):
        stamp = datetime(2026, 4, 1, tzinfo=UTC)
        application = _application()
        mock_db.get.return_value = application

        await repository.update_fields(
            mock_db,
            "user-123",
            {"status": ApplicationStatus.UNDER_REVIEW, "last_updated_at": stamp},
        )

        assert application.last_updated_at == stamp

    @pytest.mark.asyncio
    async def test_update_fields_not_found(self, mock_db):
        mock_db.get.return_value = None

        with pytest.raises(ValueError, match="not found"):
            await repository.update_fields(mock_db, "missing", {"status": ApplicationStatus.DRAFT})

        mock_db.commit.assert_not_called()


class TestNotesAndDelete:
    @pytest.mark.asyncio
    async def test_add_note_appends(self, mock_db):
        existing = {"content": "first", "author": "Ada", "timestamp": "2026-01-01T00:00:00+00:00"}
        application = _application(notes=[existing])
        mock_db.get.return_value = application

        note = await repository.add_note(mock_db, "user-123", "second", "Grace")

        assert note["content"] == "second"
        assert note["author"] == "Grace"
        assert datetime.fromisoformat(note["timestamp"]).tzinfo is not None
        assert application.notes == [existing, note]
        assert application.last_updated_at is not None

    @pytest.mark.asyncio
    async def test_add_note_not_found(self, mock_db):
        mock_db.get.return_value = None

        with pytest.raises(ValueError):
            await repository.add_note(mock_db, "missing", "note", "Ada")

    @pytest.mark.asyncio
    async def test_delete_by_id(self, mock_db):
        mock_db.execute.return_value = MagicMock(rowcount=1)

        assert await repository.delete_by_id(mock_db, "user-123") is True
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_delete_by_id_missing(self, mock_db):
        mock_db.execute.return_value = MagicMock(rowcount=0)

        assert await repository.delete_by_id(mock_db, "missing") is False


class TestDashboardStats:
    @pytest.mark.asyncio
    async def test_stats_fill_every_status(self, mock_db):
        totals = MagicMock()
        totals.one.return_value = SimpleNamespace(
            registered=5, submitted=3, reviewing=2, accepted=1, awaiting_release=1
        )
        by_status = MagicMock()
        by_status.all.return_value = [
            (ApplicationStatus.DRAFT, 2),
            (ApplicationStatus.UNDER_REVIEW, 2),
            (ApplicationStatus.ACCEPTED, 1),
        ]
        mock_db.execute.side_effect = [totals, by_status]

        stats = await repository.get_dashboard_stats(mock_db)

        assert stats["registered"] == 5
        assert stats["awaiting_release"] == 1
        assert stats["by_status"] == {
            "draft": 2,
            "submitted": 0,
            "under_review": 2,
            "accepted": 1,
            "rejected": 0,
            "waitlisted": 0,
            "enrolled": 0,
        }


class TestPendingNotifications:
    @pytest.mark.asyncio
    async def test_create_pending_notification(self, mock_db):
        pending = await repository.create_pending_notification(
            mock_db,
            application_id="user-123",
            kind=NotificationKind.DECISION,
            to_email="jane@cam.ac.uk",
            recipient_name="Jane Doe",
            decision="accepted",
            error="timeout",
        )

        mock_db.add.assert_called_once_with(pending)
        assert pending.attempts == 1
        assert pending.last_error == "timeout"
        assert pending.sent_at is None

    @pytest.mark.asyncio
    async def test_mark_notification_sent(self, mock_db):
        pending = PendingNotification(
            id=uuid.uuid4(),
            application_id="user-123",
            kind=NotificationKind.SUBMISSION,
            to_email="jane@cam.ac.uk",
            attempts=2,
            last_error="timeout",
        )
        mock_db.get.return_value = pending

        result = await repository.mark_notification_sent(mock_db, pending.id)

        assert result.attempts == 3
        assert result.sent_at is not None
        assert result.last_error is None

    @pytest.mark.asyncio
    async def test_record_notification_failure(self, mock_db):
        pending = PendingNotification(
            id=uuid.uuid4(),
            application_id="user-123",
            kind=NotificationKind.SUBMISSION,
            to_email="jane@cam.ac.uk",
            attempts=1,
        )
        mock_db.get.return_value = pending

        result = await repository.record_notification_failure(mock_db, pending.id, "bounced")

        assert result.attempts == 2
        assert result.last_error == "bounced"
        assert result.sent_at is None

    @pytest.mark.asyncio
    async def test_abandon_notification_reaches_cap(self, mock_db):
        pending = PendingNotification(
            id=uuid.uuid4(),
            application_id="user-123",
            kind=NotificationKind.DECISION,
            to_email="jane@cam.ac.uk",
            decision="accepted",
            attempts=1,
        )
        mock_db.get.return_value = pending

        result = await repository.abandon_notification(
            mock_db, pending.id, "superseded", max_attempts=5
        )

        assert result.attempts == 5
        assert result.last_error == "superseded"
        assert result.sent_at is None
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_mark_missing_notification(self, mock_db):
        mock_db.get.return_value = None

        assert await repository.mark_notification_sent(mock_db, uuid.uuid4()) is None


@pytest.mark.asyncio
async def test_list_all(mock_db):
    applications = [_application(), _application(id="user-456")]
    result = MagicMock()
    result.scalars.return_value.all.return_value = applications
    mock_db.execute.return_value = result

    assert await repository.list_all(mock_db) == applications
