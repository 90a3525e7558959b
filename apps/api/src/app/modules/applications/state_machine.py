"""
Application Status State Machine

Pure transition rules for the application lifecycle:

    draft -> submitted / under_review -> accepted | rejected | waitlisted
    accepted -> enrolled
    any -> draft (admin reset)

``plan_transition`` takes the current application and an event and returns
a ``Transition`` describing the field changes to persist and the
notifications to send. Nothing here touches the database or the network;
the service layer persists ``changes`` and hands ``effects`` to the
notification runner.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from app.modules.applications.helpers import get_applicant_email, get_applicant_name
from app.modules.applications.models import ApplicationStatus, Decision, NotificationKind


class ApplicationEvent(str, enum.Enum):
    """Events that move an application between statuses."""

    SUBMIT = "submit"
    PROGRESS = "progress"
    RELEASE = "release"
    ENROLL = "enroll"
    RESET = "reset"


# Statuses an applicant sees as a released decision
RELEASED_STATUSES: frozenset[ApplicationStatus] = frozenset(
    {
        ApplicationStatus.ACCEPTED,
        ApplicationStatus.REJECTED,
        ApplicationStatus.WAITLISTED,
    }
)

# Valid status transitions, including the admin reset edge back to draft
VALID_STATUS_TRANSITIONS: dict[ApplicationStatus, set[ApplicationStatus]] = {
    ApplicationStatus.DRAFT: {
        ApplicationStatus.SUBMITTED,  # Applicant submits
        ApplicationStatus.UNDER_REVIEW,  # Submit with auto review, or admin progress
        ApplicationStatus.DRAFT,  # Admin reset
    },
    ApplicationStatus.SUBMITTED: {
        ApplicationStatus.UNDER_REVIEW,  # Admin progress
        ApplicationStatus.DRAFT,
    },
    ApplicationStatus.UNDER_REVIEW: {
        ApplicationStatus.ACCEPTED,  # Release
        ApplicationStatus.REJECTED,  # Release
        ApplicationStatus.WAITLISTED,  # Release
        ApplicationStatus.DRAFT,
    },
    ApplicationStatus.ACCEPTED: {
        ApplicationStatus.ENROLLED,  # Applicant confirms
        ApplicationStatus.DRAFT,
    },
    ApplicationStatus.REJECTED: {ApplicationStatus.DRAFT},
    ApplicationStatus.WAITLISTED: {ApplicationStatus.DRAFT},
    # Terminal for the applicant; only an admin reset leaves it
    ApplicationStatus.ENROLLED: {ApplicationStatus.DRAFT},
}

# Statuses each event may start from
EVENT_SOURCE_STATUSES: dict[ApplicationEvent, frozenset[ApplicationStatus]] = {
    ApplicationEvent.SUBMIT: frozenset({ApplicationStatus.DRAFT}),
    ApplicationEvent.PROGRESS: frozenset({ApplicationStatus.DRAFT, ApplicationStatus.SUBMITTED}),
    ApplicationEvent.RELEASE: frozenset({ApplicationStatus.UNDER_REVIEW}),
    ApplicationEvent.ENROLL: frozenset({ApplicationStatus.ACCEPTED}),
    ApplicationEvent.RESET: frozenset(ApplicationStatus),
}

# Form fields that must be filled in before submission: (section, key)
REQUIRED_FIELDS: tuple[tuple[str, str], ...] = (
    ("personal_info", "first_name"),
    ("personal_info", "last_name"),
    ("personal_info", "email"),
    ("personal_info", "university"),
    ("personal_info", "year_of_study"),
    ("essays", "motivation"),
    ("misc", "agreed_to_terms"),
)


class TransitionError(ValueError):
    """Base class for rejected transitions."""


class InvalidStatusTransitionError(TransitionError):
    """Raised when an event is not allowed from the current status."""

    def __init__(self, current_status: ApplicationStatus, event: ApplicationEvent):
        self.current_status = current_status
        self.event = event
        allowed = sorted(s.value for s in EVENT_SOURCE_STATUSES[event])
        super().__init__(
            f"Cannot {event.value} an application in status {current_status.value}. "
            f"Allowed from: {allowed}"
        )


class MissingFieldsError(TransitionError):
    """Raised when submitting with required form fields left empty."""

    def __init__(self, missing_fields: list[str]):
        self.missing_fields = missing_fields
        super().__init__(f"Missing required fields: {', '.join(missing_fields)}")


class MissingDecisionError(TransitionError):
    """Raised when releasing an application that has no internal decision."""

    def __init__(self):
        super().__init__("No internal decision marked to release.")


class DecisionNotAllowedError(TransitionError):
    """Raised when the internal decision is changed outside of review."""

    def __init__(self, current_status: ApplicationStatus):
        self.current_status = current_status
        super().__init__(
            f"Internal decision can only be changed while under_review "
            f"(current status: {current_status.value})"
        )


@dataclass(frozen=True)
class NotificationEffect:
    """An email to send after a transition has been persisted."""

    kind: NotificationKind
    to_email: str
    recipient_name: str
    decision: str | None = None


@dataclass(frozen=True)
class Transition:
    """Outcome of planning an event against an application."""

    event: ApplicationEvent
    from_status: ApplicationStatus
    to_status: ApplicationStatus
    changes: dict[str, Any]
    effects: tuple[NotificationEffect, ...] = field(default_factory=tuple)


def is_valid_transition(current: ApplicationStatus, new: ApplicationStatus) -> bool:
    return new in VALID_STATUS_TRANSITIONS.get(current, set())


def missing_required_fields(application: Any) -> list[str]:
    """Return the dotted paths of required fields that are empty."""
    missing = []
    for section, key in REQUIRED_FIELDS:
        value = (getattr(application, section, None) or {}).get(key)
        if isinstance(value, str):
            value = value.strip()
        if not value:
            missing.append(f"{section}.{key}")
    return missing


def _notification(application: Any, kind: NotificationKind, decision: str | None = None):
    """Build the notification effect, or None when there is no recipient."""
    to_email = get_applicant_email(application)
    if not to_email:
        return None
    return NotificationEffect(
        kind=kind,
        to_email=to_email,
        recipient_name=get_applicant_name(application),
        decision=decision,
    )


def _target_status(
    application: Any,
    event: ApplicationEvent,
    auto_review: bool,
) -> ApplicationStatus:
    if event == ApplicationEvent.SUBMIT:
        return ApplicationStatus.UNDER_REVIEW if auto_review else ApplicationStatus.SUBMITTED
    if event == ApplicationEvent.PROGRESS:
        return ApplicationStatus.UNDER_REVIEW
    if event == ApplicationEvent.RELEASE:
        if application.internal_decision is None:
            raise MissingDecisionError()
        return ApplicationStatus(Decision(application.internal_decision).value)
    if event == ApplicationEvent.ENROLL:
        return ApplicationStatus.ENROLLED
    return ApplicationStatus.DRAFT


def plan_transition(
    application: Any,
    event: ApplicationEvent,
    *,
    now: datetime,
    auto_review: bool = True,
) -> Transition:
    """
    Work out what ``event`` does to ``application``.

    Args:
        application: The current record (read only)
        event: The requested event
        now: Timestamp to stamp onto the record
        auto_review: Whether a submission lands directly in under_review

    Returns:
        Transition with the field changes and notification effects

    Raises:
        InvalidStatusTransitionError: Event not allowed from current status
        MissingFieldsError: Submitting an incomplete form
        MissingDecisionError: Releasing without an internal decision
    """
    current = ApplicationStatus(application.status)

    if current not in EVENT_SOURCE_STATUSES[event]:
        raise InvalidStatusTransitionError(current, event)

    if event == ApplicationEvent.SUBMIT:
        missing = missing_required_fields(application)
        if missing:
            raise MissingFieldsError(missing)

    target = _target_status(application, event, auto_review)

    if not is_valid_transition(current, target):
        raise InvalidStatusTransitionError(current, event)

    changes: dict[str, Any] = {"status": target, "last_updated_at": now}
    effects: list[NotificationEffect] = []

    if event == ApplicationEvent.SUBMIT:
        changes["submitted_at"] = now
        effect = _notification(application, NotificationKind.SUBMISSION)
        if effect:
            effects.append(effect)

    elif event == ApplicationEvent.RELEASE:
        # Set once; a later re-release after a reset keeps the first timestamp
        if application.decision_released_at is None:
            changes["decision_released_at"] = now
        effect = _notification(application, NotificationKind.DECISION, decision=target.value)
        if effect:
            effects.append(effect)

    elif event == ApplicationEvent.RESET:
        changes["submitted_at"] = None

    return Transition(
        event=event,
        from_status=current,
        to_status=target,
        changes=changes,
        effects=tuple(effects),
    )


def plan_internal_decision(
    application: Any,
    decision: Decision | None,
    *,
    now: datetime,
) -> dict[str, Any]:
    """
    Work out the changes for setting or clearing the internal decision.

    Raises:
        DecisionNotAllowedError: If the application is not under_review
    """
    current = ApplicationStatus(application.status)
    if current != ApplicationStatus.UNDER_REVIEW:
        raise DecisionNotAllowedError(current)

    return {"internal_decision": decision, "last_updated_at": now}
