"""Send stage — mail the digest back to the recipient."""

from __future__ import annotations

import html
import logging

from src.digest.types import MailService, SendResult, SummaryResult
from src.errors import DigestError, UpstreamCallError
from src.mcp.types import SendRequest, SendResponse

logger = logging.getLogger(__name__)


def build_subject(email_count: int, timeframe: int, timeframe_unit: str) -> str:
    return f"Email Summary - {email_count} emails from last {timeframe} {timeframe_unit}"


async def send_summary(mail: MailService, summary: SummaryResult) -> SendResult:
    """Send the summary as a new email.

    ``email_sent`` is only set once the send call has returned; any failure
    propagates as UpstreamCallError and no SendResult is produced.
    """
    request = SendRequest(
        user_id=summary.user_id,
        to=summary.recipient_email,
        subject=build_subject(summary.email_count, summary.timeframe, summary.timeframe_unit),
        body_text=summary.summary,
        body_html=f"<pre>{html.escape(summary.summary)}</pre>",
    )
    response = await _dispatch(mail, request)
    logger.info("Summary of %d email(s) sent to %s", summary.email_count, summary.recipient_email)

    return SendResult(
        summary=summary.summary,
        email_count=summary.email_count,
        total_results=summary.total_results,
        usage=summary.usage,
        email_sent=True,
        message_id=response.id or "",
    )


async def _dispatch(mail: MailService, request: SendRequest) -> SendResponse:
    try:
        response = await mail.send_message(request)
    except DigestError:
        raise
    except Exception as exc:
        raise UpstreamCallError("mail_send", str(exc) or type(exc).__name__) from exc
    # Services that report nothing still count as a completed send.
    return response if isinstance(response, SendResponse) else SendResponse()
