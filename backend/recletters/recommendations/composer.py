"""Email content for recommendation requests.

Pure rendering: every function takes the request (ORM row or any object with
the same attributes) and returns a ComposedEmail. Nothing here sends, reads
the database or looks at the clock, and every optional field may be missing.
"""

from dataclasses import dataclass
from datetime import datetime
from html import escape

from .models import CommunicationStyle
from .policy import InstructionVariant, resolve_delivery_policy
from .scheduler import UrgencyLevel, urgency_message
from .timeutils import as_utc

_TEAM_SIGNATURE = "The Recommendation Letters Team"
_BUTTON_LABEL = "Submit Recommendation Letter"

_URGENCY_PREFIX = {
    UrgencyLevel.CRITICAL: "🚨 URGENT: ",
    UrgencyLevel.HIGH: "⚠️ IMPORTANT: ",
    UrgencyLevel.MEDIUM: "📅 REMINDER: ",
}

# background, border, text
_URGENCY_COLORS = {
    UrgencyLevel.CRITICAL: ("#f8d7da", "#f5c6cb", "#721c24"),
    UrgencyLevel.HIGH: ("#fff3cd", "#ffeaa7", "#856404"),
    UrgencyLevel.MEDIUM: ("#d1ecf1", "#bee5eb", "#0c5460"),
}


@dataclass(frozen=True)
class ComposedEmail:
    subject: str
    html: str
    text: str


def portal_url(base_url: str, token: str | None) -> str:
    return f"{base_url.rstrip('/')}/recommendation/{token or ''}"


# ── Field helpers ──────────────────────────────────────────────────────


def _recipient_name(request) -> str:
    recipient = getattr(request, "recipient", None)
    return (getattr(recipient, "name", "") or "").strip()


def _student_name(request) -> str:
    student = getattr(request, "student", None)
    if student is None:
        return "A student"
    return (getattr(student, "name", "") or getattr(student, "email", "") or "").strip() or "A student"


def _format_date(value: datetime | None) -> str:
    if value is None:
        return "the deadline"
    value = as_utc(value)
    return f"{value:%B} {value.day}, {value.year}"


def _plural_days(days: int) -> str:
    return f"{days} day" if abs(days) == 1 else f"{days} days"


def _style(request) -> CommunicationStyle:
    try:
        return CommunicationStyle(getattr(request, "communication_style", None) or CommunicationStyle.POLITE)
    except ValueError:
        return CommunicationStyle.POLITE


def _greeting(request) -> str:
    name = _recipient_name(request)
    if not name:
        return "Hello,"
    if _style(request) == CommunicationStyle.FRIENDLY:
        return f"Hi {name},"
    return f"Dear {name},"


def _closing(request) -> str:
    if _style(request) == CommunicationStyle.FRIENDLY:
        return "Thank you so much for your help!"
    return "Thank you for your time and consideration."


def _context_paragraph(request) -> str:
    student = _student_name(request)
    base = (
        f"I hope this email finds you well. {student} has requested a recommendation "
        "letter from you for the following purpose:"
    )
    relationship = (getattr(request, "relationship_context", "") or "").strip()
    if relationship:
        return f"{base}\n\nAbout your connection, {student} wrote: \"{relationship}\""
    return base


def _instruction_variant(request) -> tuple[InstructionVariant, bool]:
    policy = resolve_delivery_policy(request.request_type, request.submission_method)
    return policy.instruction_variant, policy.include_portal_link


def _paragraphs(text: str) -> str:
    return "".join(
        f'<p style="margin:0 0 16px; color:#374151; font-size:15px; line-height:1.6;">{escape(chunk)}</p>'
        for chunk in text.split("\n\n")
    )


def _boxed(title: str, inner_html: str, background: str = "#f9fafb", border: str = "#e5e7eb") -> str:
    return (
        f'<div style="background-color:{background}; border:1px solid {border}; padding:15px; '
        f'border-radius:6px; margin:20px 0;">'
        f'<h4 style="margin-top:0;">{escape(title)}</h4>{inner_html}</div>'
    )


def _button(url: str, color: str = "#1e40af") -> str:
    safe_url = escape(url, quote=True)
    return (
        '<div style="text-align:center; margin:30px 0;">'
        f'<a href="{safe_url}" style="background-color:{color}; color:#ffffff; padding:12px 24px; '
        f'text-decoration:none; border-radius:5px; display:inline-block;">{_BUTTON_LABEL}</a></div>'
        '<p style="color:#6b7280; font-size:13px;">Or copy and paste this link into your browser:</p>'
        f'<p style="word-break:break-all; color:#6b7280; font-size:13px;">{escape(url)}</p>'
    )


def _wrap(title: str, inner_html: str, footer: str) -> str:
    """Shared layout: DOCTYPE, inline styles for email clients."""
    return f"""\
<!DOCTYPE html>
<html lang="en" xmlns="http://www.w3.org/1999/xhtml">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{escape(title)}</title>
</head>
<body style="margin:0; padding:0; background-color:#f4f4f5; font-family:Arial,Helvetica,sans-serif;">
  <div style="max-width:600px; margin:0 auto; background-color:#ffffff; padding:32px;">
    <h2 style="color:#111827;">{escape(title)}</h2>
    {inner_html}
    <hr style="margin:30px 0; border:none; border-top:1px solid #e5e7eb;">
    <p style="font-size:12px; color:#9ca3af;">{escape(footer)}</p>
  </div>
</body>
</html>"""


# ── Instructions ───────────────────────────────────────────────────────


def get_submission_instructions(request, variant: InstructionVariant, link: str | None, reminder: bool = False) -> tuple[str, str]:
    """Instruction block as (html, text) for the given variant.

    ``link`` is None when the policy excludes the portal link; no submit
    button is rendered in that case.
    """
    institution = (getattr(request, "institution_name", "") or "").strip() or "the school"
    student = _student_name(request)

    if variant == InstructionVariant.SCHOOL_ONLY:
        if reminder:
            text = (
                f"Reminder: The institution ({institution}) should be sending you a direct email "
                "with their submission link. Please check your email for their request."
            )
            return _paragraphs(text), text
        text = (
            f"Important: The institution ({institution}) will be sending you a direct email with their "
            "own submission link. Please use their provided link to submit your recommendation letter.\n\n"
            "This platform is being used to provide you with the student's information and any "
            "supporting materials to help you write the recommendation letter."
        )
        return _paragraphs(text), text

    button_html = _button(link) if link else ""
    link_text = f"\n\nSubmit here: {link}" if link else ""

    if variant == InstructionVariant.HYBRID and not reminder:
        options = [
            "You can submit through this platform using the link below",
            f"OR submit directly to the institution ({institution}) when they send you their email",
            f"If possible, please provide a copy to {student} as well",
        ]
        items = "".join(f"<li>{escape(option)}</li>" for option in options)
        html = f"<p><strong>Submission Options:</strong></p><ul>{items}</ul>{button_html}"
        text = "Submission Options:\n" + "\n".join(f"  - {option}" for option in options) + link_text
        return html, text

    html = (
        '<p style="color:#374151; font-size:15px;">To submit your recommendation letter, '
        f"please click the button below:</p>{button_html}"
    )
    return html, "To submit your recommendation letter, please use the link below." + link_text


# ── Public composers ───────────────────────────────────────────────────


def compose_initial(request, portal_base_url: str) -> ComposedEmail:
    """First message to the recommender."""
    variant, include_link = _instruction_variant(request)
    link = portal_url(portal_base_url, request.secure_token) if include_link else None
    student = _student_name(request)
    title = getattr(request, "title", "") or "Recommendation letter"
    deadline = _format_date(getattr(request, "deadline", None))

    greeting = _greeting(request)
    context = _context_paragraph(request)
    instructions_html, instructions_text = get_submission_instructions(request, variant, link)

    html_parts = [
        _paragraphs(greeting),
        _paragraphs(context),
        _boxed(title, f"<p><strong>Deadline:</strong> {escape(deadline)}</p>"),
    ]
    text_parts = [greeting, context, f"  {title}\n  Deadline: {deadline}"]

    institution_name = (getattr(request, "institution_name", "") or "").strip()
    school_email = (getattr(request, "school_email", "") or "").strip()
    school_instructions = (getattr(request, "school_instructions", "") or "").strip()
    if institution_name or school_email or school_instructions:
        rows = [
            (label, value)
            for label, value in (
                ("Institution", institution_name),
                ("School Email", school_email),
                ("School Instructions", school_instructions),
            )
            if value
        ]
        html_parts.append(
            _boxed(
                "Institution Information",
                "".join(f"<p><strong>{label}:</strong> {escape(value)}</p>" for label, value in rows),
                background="#e3f2fd",
                border="#2196f3",
            )
        )
        text_parts.append("Institution Information\n" + "\n".join(f"  {label}: {value}" for label, value in rows))

    html_parts.append(instructions_html)
    text_parts.append(instructions_text)

    if link:
        expiry = _format_date(getattr(request, "token_expires_at", None))
        html_parts.append(f'<p style="color:#6b7280; font-size:13px;">This link will expire on {escape(expiry)}.</p>')
        text_parts.append(f"This link will expire on {expiry}.")

    draft = (getattr(request, "draft_content", "") or "").strip()
    if getattr(request, "include_draft", False) and draft:
        intro = f"{student} has provided a draft that you may use as a starting point:"
        draft_html = escape(draft).replace("\n", "<br>")
        html_parts.append(
            _boxed(
                "Draft Content (Optional)",
                f'<p>{escape(intro)}</p><div style="background-color:#ffffff; padding:10px;">{draft_html}</div>',
                background="#fff3cd",
                border="#ffeaa7",
            )
        )
        text_parts.append(f"Draft Content (Optional)\n{intro}\n\n{draft}")

    additional = (getattr(request, "additional_context", "") or "").strip()
    if additional:
        html_parts.append(_boxed("Additional Context", f"<p>{escape(additional)}</p>"))
        text_parts.append(f"Additional Context\n{additional}")

    closing = _closing(request)
    html_parts.append(_paragraphs(closing) + f"<p>Best regards,<br>{_TEAM_SIGNATURE}</p>")
    text_parts.append(f"{closing}\n\nBest regards,\n{_TEAM_SIGNATURE}")

    footer = (
        "This is an automated message. Please do not reply to this email. "
        "If you have any questions, please contact the student directly."
    )
    return ComposedEmail(
        subject=f"Recommendation Letter Request - {student}",
        html=_wrap("Recommendation Letter Request", "".join(html_parts), footer),
        text="\n\n".join(text_parts + ["--", footer]) + "\n",
    )


def compose_reminder(
    request,
    days_until_deadline: int,
    urgency_level: UrgencyLevel,
    portal_base_url: str,
) -> ComposedEmail:
    """Reminder to the recommender; tone escalates with urgency."""
    variant, include_link = _instruction_variant(request)
    link = portal_url(portal_base_url, request.secure_token) if include_link else None
    student = _student_name(request)
    title = getattr(request, "title", "") or "Recommendation letter"
    deadline = _format_date(getattr(request, "deadline", None))
    remaining = _plural_days(days_until_deadline)
    level = UrgencyLevel(urgency_level)

    prefix = _URGENCY_PREFIX.get(level, "")
    subject = f"{prefix}Recommendation Letter for {student} - Due in {remaining}"

    greeting = _greeting(request)
    html_parts = [_paragraphs(greeting)]
    text_parts = [greeting]

    if level != UrgencyLevel.LOW:
        background, border, color = _URGENCY_COLORS[level]
        banner = urgency_message(days_until_deadline, level)
        html_parts.append(
            f'<div style="background-color:{background}; border:1px solid {border}; padding:15px; '
            f'border-radius:6px; margin:20px 0;"><h4 style="margin-top:0; color:{color}; font-weight:bold;">'
            f"{escape(banner)}</h4></div>"
        )
        text_parts.append(banner)

    pending = f"This is a reminder that you have a pending recommendation letter request from {student}."
    html_parts.append(_paragraphs(pending))
    text_parts.append(pending)

    html_parts.append(
        _boxed(
            title,
            f"<p><strong>Deadline:</strong> {escape(deadline)}</p>"
            f"<p><strong>Time remaining:</strong> {escape(remaining)}</p>",
            background="#fff3cd",
            border="#ffeaa7",
        )
    )
    text_parts.append(f"  {title}\n  Deadline: {deadline}\n  Time remaining: {remaining}")

    instructions_html, instructions_text = get_submission_instructions(request, variant, link, reminder=True)
    html_parts.append(instructions_html)
    text_parts.append(instructions_text)

    html_parts.append(
        _paragraphs("Thank you for your time and consideration.") + f"<p>Best regards,<br>{_TEAM_SIGNATURE}</p>"
    )
    text_parts.append(f"Thank you for your time and consideration.\n\nBest regards,\n{_TEAM_SIGNATURE}")

    footer = (
        "This is an automated reminder. Please do not reply to this email. "
        "If you have any questions, please contact the student directly."
    )
    return ComposedEmail(
        subject=subject,
        html=_wrap("Recommendation Letter Reminder", "".join(html_parts), footer),
        text="\n\n".join(text_parts + ["--", footer]) + "\n",
    )


def compose_completion(request) -> ComposedEmail:
    """Tells the requester that the recommender submitted."""
    student = _student_name(request)
    recommender = _recipient_name(request) or "your recommender"
    title = getattr(request, "title", "") or "Recommendation letter"

    html_parts = [
        _paragraphs(f"Dear {student},"),
        _paragraphs(f"Great news! Your recommendation letter has been submitted by {recommender}."),
        _boxed(
            title,
            f"<p><strong>Submitted by:</strong> {escape(recommender)}</p>"
            '<p><strong>Status:</strong> <span style="color:#28a745;">&#10003; Received</span></p>',
            background="#d4edda",
            border="#c3e6cb",
        ),
        _paragraphs("You can view the details of this recommendation request in your dashboard."),
        f"<p>Best regards,<br>{_TEAM_SIGNATURE}</p>",
    ]
    text = (
        f"Dear {student},\n\n"
        f"Great news! Your recommendation letter has been submitted by {recommender}.\n\n"
        f"  {title}\n  Submitted by: {recommender}\n  Status: Received\n\n"
        "You can view the details of this recommendation request in your dashboard.\n\n"
        f"Best regards,\n{_TEAM_SIGNATURE}\n"
    )
    return ComposedEmail(
        subject=f"Recommendation Letter Received - {title}",
        html=_wrap(
            "Recommendation Letter Received!",
            "".join(html_parts),
            "This is an automated message. Please do not reply to this email.",
        ),
        text=text,
    )
