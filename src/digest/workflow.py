"""The digest workflow: fetch → summarise → send, strictly in sequence."""

from __future__ import annotations

import logging
from datetime import datetime

from src.digest.fetcher import fetch_recent_emails
from src.digest.sender import send_summary
from src.digest.summarizer import summarize_emails
from src.digest.types import DigestOutput, DigestRequest, MailService, SendResult
from src.llm.generator import TextGenerator

logger = logging.getLogger(__name__)


class DigestWorkflow:
    """Runs the three digest stages against a mail service and a text generator.

    Holds no state between runs, so one instance can serve concurrent runs
    for different requests.

    Usage::

        async with gmail_client() as gmail:
            workflow = DigestWorkflow(gmail, AnthropicGenerator())
            output = await workflow.run(DigestRequest(recipient_email="me@example.com"))
    """

    def __init__(self, mail: MailService, generator: TextGenerator) -> None:
        self._mail = mail
        self._generator = generator

    async def run(self, request: DigestRequest, now: datetime | None = None) -> DigestOutput:
        """Run the full pipeline and return the projected output."""
        result = await self.run_stages(request, now=now)
        return DigestOutput.from_send_result(result)

    async def run_stages(self, request: DigestRequest, now: datetime | None = None) -> SendResult:
        """Run the full pipeline and return the send stage's result unprojected.

        Any stage failure aborts the run; later stages are not started.
        """
        logger.info(
            "Digest run: last %s %s for %s → %s",
            request.timeframe,
            request.timeframe_unit,
            request.user_id,
            request.recipient_email,
        )
        fetched = await fetch_recent_emails(self._mail, request, now=now)
        summary = await summarize_emails(self._generator, fetched)
        return await send_summary(self._mail, summary)
