"""Summarise stage — turn the fetched messages into one natural-language digest."""

from __future__ import annotations

import logging

from src.digest.prompts import build_messages, has_content
from src.digest.types import FetchResult, SummaryResult
from src.errors import DigestError, UpstreamCallError
from src.llm.generator import GenerationRequest, TextGenerator

logger = logging.getLogger(__name__)

SUMMARY_MAX_TOKENS = 4000
SUMMARY_TEMPERATURE = 0.3
FAILED_SUMMARY = "Failed to generate summary"


def empty_summary(timeframe: int, timeframe_unit: str) -> str:
    return f"No emails found in the last {timeframe} {timeframe_unit}."


async def summarize_emails(generator: TextGenerator, fetched: FetchResult) -> SummaryResult:
    """Summarise the usable messages of a fetch result.

    Messages with no subject, snippet or body text are dropped first.  When
    nothing is left the summary is a fixed sentence and the generator is not
    called.

    Raises:
        UpstreamCallError: if the generation call fails.
    """
    usable = [e for e in fetched.emails if has_content(e)]
    usage = None

    if not usable:
        logger.info("No usable emails in the last %s %s", fetched.timeframe, fetched.timeframe_unit)
        summary = empty_summary(fetched.timeframe, fetched.timeframe_unit)
    else:
        logger.info("Summarising %d of %d email(s)", len(usable), len(fetched.emails))
        request = GenerationRequest(
            messages=build_messages(usable, fetched.timeframe, fetched.timeframe_unit),
            max_tokens=SUMMARY_MAX_TOKENS,
            temperature=SUMMARY_TEMPERATURE,
        )
        try:
            result = await generator.generate(request)
        except DigestError:
            raise
        except Exception as exc:
            raise UpstreamCallError("text_generation", str(exc) or type(exc).__name__) from exc

        if not result.text:
            logger.warning("Generation returned no text; using placeholder summary")
        summary = result.text or FAILED_SUMMARY
        usage = result.usage

    return SummaryResult(
        summary=summary,
        email_count=len(usable),
        total_results=fetched.result_count,
        usage=usage,
        recipient_email=fetched.recipient_email,
        timeframe=fetched.timeframe,
        timeframe_unit=fetched.timeframe_unit,
        user_id=fetched.user_id,
    )
