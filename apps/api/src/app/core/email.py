"""
Email Service using Resend

Sends the applicant notifications for the application workflow:
- "submission": application received
- "decision": released outcome (accepted, rejected, waitlisted)
"""

import asyncio
import logging
import os
from html import escape

import resend

from app.core.config import settings

logger = logging.getLogger(__name__)

resend.api_key = os.getenv("RESEND_API_KEY")

EMAIL_FROM = os.getenv("EMAIL_FROM", "Cambridge Tutor Programme <noreply@jianshanacademy.com>")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

SUBMISSION_SUBJECT = "Application Received - Cambridge Tutor Programme"
DECISION_SUBJECT = "Application Update - Cambridge Tutor Programme"

DECISION_CONTENT: dict[str, dict[str, str]] = {
    "accepted": {
        "title": "Congratulations!",
        "message": (
            "We are delighted to inform you that your application has been accepted! "
            "Please log into your portal to view the details and confirm your participation."
        ),
    },
    "rejected": {
        "title": "Application Update",
        "message": (
            "After careful consideration, we regret to inform you that we are unable to offer "
            "you a position this time. We encourage you to apply again in the future."
        ),
    },
    "waitlisted": {
        "title": "Waitlisted",
        "message": (
            "Your application has been placed on our waitlist. We will notify you if a position "
            "becomes available. Thank you for your patience."
        ),
    },
}


async def send_email(
    to_email: str,
    subject: str,
    html_content: str,
) -> bool:
    """
    Send an email using Resend.

    Args:
        to_email: Recipient email address
        subject: Email subject line
        html_content: HTML content of the email

    Returns:
        True if email was sent successfully
    """
    if not resend.api_key:
        logger.warning("RESEND_API_KEY not set - logging email instead of sending")
        logger.info(f"EMAIL TO: {to_email} | SUBJECT: {subject}")
        return True

    try:
        params: resend.Emails.SendParams = {
            "from": EMAIL_FROM,
            "to": [to_email],
            "subject": subject,
            "html": html_content,
        }

        # Run sync Resend call in thread pool to avoid blocking event loop
        email = await asyncio.to_thread(resend.Emails.send, params)
        logger.info(f"Email sent successfully to {to_email}, id: {email['id']}")
        return True
    except Exception as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        return False


def _render(title: str, applicant_name: str, paragraphs: list[str]) -> str:
    safe_name = escape(applicant_name or "Applicant")
    safe_programme = escape(settings.programme_name)
    safe_org = escape(settings.programme_organization)
    body = "\n".join(f"<p>{p}</p>" for p in paragraphs)

    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>
            body {{ font-family: 'Helvetica Neue', Arial, sans-serif; line-height: 1.6; color: #374151; }}
            .container {{ max-width: 600px; margin: 0 auto; padding: 40px 20px; }}
            .header {{ text-align: center; margin-bottom: 32px; color: #1a1a2e; }}
            .card {{ background: #f8fafc; border-radius: 12px; padding: 32px; margin-bottom: 24px; }}
            .button {{ display: inline-block; background-color: #1f495b; color: white; padding: 14px 28px; text-decoration: none; border-radius: 8px; margin: 16px 0; }}
            .footer {{ text-align: center; color: #9ca3af; font-size: 12px; }}
        </style>
    </head>
    <body>
        <div class="container">
            <div class="header">
                <h1>{safe_programme}</h1>
                <p>{safe_org}</p>
            </div>
            <div class="card">
                <h2>{escape(title)}</h2>
                <p>Dear {safe_name},</p>
                {body}
                <a href="{FRONTEND_URL}/dashboard" class="button">Open your portal</a>
            </div>
            <div class="footer">
                <p>{safe_programme} | {safe_org}</p>
            </div>
        </div>
    </body>
    </html>
    """


async def send_submission_received(to_email: str, applicant_name: str) -> bool:
    """Send the "application received" notification."""
    html_content = _render(
        "Application Received",
        applicant_name,
        [
            f"Thank you for submitting your application to the {escape(settings.programme_name)}. "
            "We have received your application and our team will review it shortly.",
            "You can check the status of your application at any time by logging into your "
            "portal account.",
            "We aim to respond within 15 working days.",
        ],
    )
    return await send_email(to_email=to_email, subject=SUBMISSION_SUBJECT, html_content=html_content)


async def send_decision_notification(to_email: str, applicant_name: str, decision: str) -> bool:
    """Send the released decision. Unknown outcomes use the rejected wording."""
    content = DECISION_CONTENT.get(decision, DECISION_CONTENT["rejected"])
    html_content = _render(content["title"], applicant_name, [content["message"]])
    return await send_email(to_email=to_email, subject=DECISION_SUBJECT, html_content=html_content)
