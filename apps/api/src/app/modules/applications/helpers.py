"""
Applications Shared Helpers

Small accessors over the JSON form sections, shared by the state machine,
the service layer, the notification runner and the offer letter.
"""

from typing import Any


def get_applicant_email(application: Any) -> str:
    """
    Get the applicant's contact email from the personal info section.

    Returns:
        The stripped email, or "" when none has been entered
    """
    personal_info = application.personal_info or {}
    return (personal_info.get("email") or "").strip()


def get_applicant_name(application: Any) -> str:
    """
    Get the applicant's full name ("First Last").

    Returns:
        The joined name with surrounding whitespace removed; "" if both parts
        are empty
    """
    personal_info = application.personal_info or {}
    first = personal_info.get("first_name") or ""
    last = personal_info.get("last_name") or ""
    return f"{first} {last}".strip()


def split_display_name(display_name: str | None) -> tuple[str, str]:
    """
    Split an identity display name into first and last name.

    The first word is the first name; everything after it is the last name.
    """
    if not display_name:
        return "", ""
    parts = display_name.strip().split(" ", 1)
    first = parts[0]
    last = parts[1].strip() if len(parts) > 1 else ""
    return first, last
