"""
Offer letter PDF for accepted applicants.
"""

from datetime import UTC, datetime
from io import BytesIO

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from app.core.config import settings
from app.modules.applications.helpers import get_applicant_name

LEFT_MARGIN = 60
BODY_FONT = ("Times-Roman", 12)


def offer_letter_filename(application) -> str:
    name = get_applicant_name(application) or "Applicant"
    parts = ("".join(ch for ch in part if ch.isascii() and ch.isalnum()) for part in name.split())
    safe_name = "_".join(part for part in parts if part) or "Applicant"
    return f"Offer_Letter_{safe_name}.pdf"


def _draw_wrapped(c, text, x, y, max_width, font=BODY_FONT, leading=18):
    words = text.split()
    line = ""
    for w in words:
        test = (line + " " + w).strip()
        if c.stringWidth(test, *font) <= max_width:
            line = test
        else:
            c.drawString(x, y, line)
            y -= leading
            line = w
    if line:
        c.drawString(x, y, line)
        y -= leading
    return y


def generate_offer_letter_pdf(application) -> bytes:
    """
    Render the offer letter for an accepted (or enrolled) application.

    Returns:
        PDF document bytes
    """
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    width, height = A4
    text_width = width - 2 * LEFT_MARGIN

    name = get_applicant_name(application) or "Applicant"
    released_at = application.decision_released_at or datetime.now(UTC)
    year = released_at.year
    reference = str(application.id)[:8].upper()

    c.setTitle(f"Offer Letter - {name}")

    # Header
    c.setFont("Helvetica-Bold", 18)
    c.drawString(LEFT_MARGIN, height - 80, settings.programme_organization)
    c.setFont("Helvetica", 10)
    c.drawString(LEFT_MARGIN, height - 96, "Admissions Office")
    c.drawRightString(width - LEFT_MARGIN, height - 80, f"{released_at:%d %B %Y}")
    c.line(LEFT_MARGIN, height - 110, width - LEFT_MARGIN, height - 110)

    # Body
    y = height - 160
    c.setFont("Helvetica-Bold", 10)
    c.drawString(LEFT_MARGIN, y, "OFFICIAL ADMISSION DECISION")
    y -= 40
    c.setFont("Times-Bold", 30)
    c.drawString(LEFT_MARGIN, y, "Congratulations!")
    y -= 45

    c.setFont(*BODY_FONT)
    c.drawString(LEFT_MARGIN, y, f"Dear {name},")
    y -= 30

    paragraphs = [
        f"We are delighted to inform you that you have been accepted as a "
        f"{settings.programme_role} for the {settings.programme_name} {year}.",
        "Your application stood out among a highly competitive pool of candidates. "
        "The selection committee was impressed by your academic achievements, your "
        "teaching experience and your enthusiasm for mentoring young students.",
        "We look forward to the perspective you will bring to the programme.",
    ]
    for paragraph in paragraphs:
        y = _draw_wrapped(c, paragraph, LEFT_MARGIN, y, text_width)
        y -= 12

    # Summary
    y -= 10
    c.setFont("Helvetica-Bold", 9)
    for i, label in enumerate(("PROGRAMME DATES", "ROLE", "COHORT")):
        c.drawString(LEFT_MARGIN + i * text_width / 3, y, label)
    y -= 18
    c.setFont("Times-Bold", 13)
    summary = (settings.programme_dates, settings.programme_role, f"Class of {year}")
    for i, value in enumerate(summary):
        c.drawString(LEFT_MARGIN + i * text_width / 3, y, value)
    y -= 40

    c.setFont(*BODY_FONT)
    y = _draw_wrapped(
        c,
        f"We await your confirmation and look forward to welcoming you to the "
        f"{settings.programme_organization} community.",
        LEFT_MARGIN,
        y,
        text_width,
    )

    # Signature
    y -= 50
    c.line(LEFT_MARGIN, y, LEFT_MARGIN + 200, y)
    c.setFont("Helvetica-Bold", 11)
    c.drawString(LEFT_MARGIN, y - 16, settings.offer_signatory_name)
    c.setFont("Helvetica", 9)
    c.drawString(LEFT_MARGIN, y - 30, settings.programme_organization)

    # Footer
    c.setFont("Helvetica", 8)
    c.drawString(
        LEFT_MARGIN, 50, f"(c) {year} {settings.programme_organization}. All rights reserved."
    )
    c.drawRightString(width - LEFT_MARGIN, 50, f"APP ID: {reference}")

    c.showPage()
    c.save()

    pdf = buf.getvalue()
    buf.close()
    return pdf
