"""Prompt builder for the digest summary."""

from src.mcp.types import EmailMessage

# ── Per-message block ───────────────────────────────────────────────────────────

NO_SUBJECT = "No Subject"
UNKNOWN_SENDER = "Unknown Sender"
NO_CONTENT = "No content"
UNKNOWN_DATE = "Unknown date"


def has_content(email: EmailMessage) -> bool:
    """True if the message has a subject, a snippet or a text body."""
    return bool(email.subject or email.snippet or email.body_text)


def render_email(email: EmailMessage) -> str:
    """Render one message as the fixed Subject/From/Date/Content block."""
    return (
        f"Subject: {email.subject or NO_SUBJECT}\n"
        f"From: {email.sender or UNKNOWN_SENDER}\n"
        f"Date: {email.date or email.internal_date or UNKNOWN_DATE}\n"
        f"Content: {email.snippet or email.body_text or NO_CONTENT}\n"
        "---"
    )


# ── Prompt ─────────────────────────────────────────────────────────────────────


def build_summary_prompt(emails: list[EmailMessage], timeframe: int, timeframe_unit: str) -> str:
    """Build the instruction prompt asking for a categorised, action-focused summary."""
    emails_text = "\n\n".join(render_email(e) for e in emails)
    return (
        f"Please provide a comprehensive summary of the following {len(emails)} emails "
        f"from the last {timeframe} {timeframe_unit}.\n\n"
        "Group the emails by topic/category and highlight:\n"
        "- Key action items or requests\n"
        "- Important updates or announcements\n"
        "- Urgent items needing attention\n"
        "- Overall themes and patterns\n\n"
        f"Emails data:\n{emails_text}\n\n"
        "Please structure your response with clear sections and bullet points for easy reading."
    )


def build_messages(emails: list[EmailMessage], timeframe: int, timeframe_unit: str) -> list[dict[str, str]]:
    """Build the single-turn messages list for the summary request."""
    return [
        {
            "role": "user",
            "content": build_summary_prompt(emails, timeframe, timeframe_unit),
        }
    ]
