"""Fetch stage — search the mailbox for the window and re-filter by exact cutoff."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime

from dateutil import parser as date_parser

from src.digest.types import DigestRequest, FetchResult, MailService
from src.digest.window import compute_cutoff, epoch_millis, format_query_date
from src.errors import DigestError, MalformedResponseError, UpstreamCallError
from src.mcp.types import EmailMessage, SearchRequest, SearchResponse

logger = logging.getLogger(__name__)

# Obsolete zone names RFC 5322 still allows in Date headers (offsets in seconds).
_RFC5322_ZONES = {
    "EST": -5 * 3600, "EDT": -4 * 3600,
    "CST": -6 * 3600, "CDT": -5 * 3600,
    "MST": -7 * 3600, "MDT": -6 * 3600,
    "PST": -8 * 3600, "PDT": -7 * 3600,
}

# Two defaults that differ in every date field; a header parsing differently
# under each is missing part of its date.
_DEFAULT_A = datetime(2000, 1, 1)
_DEFAULT_B = datetime(2001, 2, 2)


async def fetch_recent_emails(
    mail: MailService,
    request: DigestRequest,
    now: datetime | None = None,
) -> FetchResult:
    """Return the messages received inside the request's time window.

    Gmail's ``after:`` operator only has day granularity, so the search is a
    coarse pre-filter and every returned message is checked again against
    the exact cutoff instant.

    Raises:
        UpstreamCallError: if the search call fails.
        MalformedResponseError: if the search response is not a SearchResponse.
    """
    now = now or datetime.now().astimezone()
    cutoff = compute_cutoff(now, request.timeframe, request.timeframe_unit)
    query = f"after:{format_query_date(cutoff)}"
    logger.info("Searching emails with query: %r (cutoff: %s)", query, cutoff.isoformat())

    search = SearchRequest(
        user_id=request.user_id,
        query=query,
        max_results=request.max_results,
        include_spam_trash=False,
    )
    try:
        response = await mail.search_messages(search)
    except DigestError:
        raise
    except Exception as exc:
        raise UpstreamCallError("mail_search", str(exc) or type(exc).__name__) from exc

    if not isinstance(response, SearchResponse):
        raise MalformedResponseError(
            f"mail search returned {type(response).__name__}, expected SearchResponse"
        )

    all_emails = list(response.messages or [])
    filtered = filter_since(all_emails, epoch_millis(cutoff))
    logger.info(
        "Found %d emails from Gmail API, %d after client-side filtering",
        len(all_emails),
        len(filtered),
    )

    return FetchResult(
        emails=filtered,
        result_count=len(filtered),
        max_results=request.max_results,
        user_id=request.user_id,
        timeframe=request.timeframe,
        timeframe_unit=request.timeframe_unit,
        recipient_email=request.recipient_email,
    )


def filter_since(emails: Iterable[EmailMessage], cutoff_ms: int) -> list[EmailMessage]:
    """Keep messages at or after ``cutoff_ms``, and any message whose time is unknown."""
    kept: list[EmailMessage] = []
    for email in emails:
        timestamp = message_timestamp_ms(email)
        if timestamp is None or timestamp >= cutoff_ms:
            kept.append(email)
    return kept


def message_timestamp_ms(email: EmailMessage) -> int | None:
    """Epoch millis for a message, or None when it carries no usable date.

    ``internal_date`` wins when it is a valid integer; otherwise the ``date``
    header is parsed.  A header that doesn't parse counts as no date.
    """
    if email.internal_date:
        try:
            return int(email.internal_date.strip())
        except ValueError:
            logger.debug("Ignoring non-numeric internalDate %r on %s", email.internal_date, email.id)
    if email.date:
        try:
            parsed = parse_date_header(email.date)
        except (ValueError, OverflowError):
            parsed = None
        if parsed is not None:
            return epoch_millis(parsed)
        logger.debug("Unparsable date %r on %s; keeping message", email.date, email.id)
    return None


def parse_date_header(value: str) -> datetime | None:
    """Parse a Date header, or None when it lacks a full year, month and day.

    dateutil fills missing fields from its default, so partial dates such as
    ``"2024"`` would otherwise land on an arbitrary day.
    """
    first = date_parser.parse(value, default=_DEFAULT_A, tzinfos=_RFC5322_ZONES)
    second = date_parser.parse(value, default=_DEFAULT_B, tzinfos=_RFC5322_ZONES)
    if first.date() != second.date():
        return None
    return first
