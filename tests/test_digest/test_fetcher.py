"""Tests for the fetch stage — the mail service is an AsyncMock."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from src.digest.fetcher import fetch_recent_emails, filter_since, message_timestamp_ms
from src.digest.types import DigestRequest
from src.digest.window import epoch_millis
from src.errors import MalformedResponseError, UpstreamCallError
from src.mcp.gmail_client import MCPError
from src.mcp.types import EmailMessage, MessageBody, SearchRequest, SearchResponse

NOW = datetime(2024, 3, 6, 12, 0)
NOW_MS = epoch_millis(NOW)
DAY_MS = 86_400_000


def _request(**overrides: object) -> DigestRequest:
    values: dict[str, object] = {"recipient_email": "me@example.com"}
    values.update(overrides)
    return DigestRequest(**values)  # type: ignore[arg-type]


# ── message_timestamp_ms ───────────────────────────────────────────────────────


class TestMessageTimestamp:
    def test_prefers_internal_date(self) -> None:
        email = EmailMessage(internal_date="1700000000000", date="Mon, 1 Jan 2001 00:00:00 +0000")
        assert message_timestamp_ms(email) == 1_700_000_000_000

    def test_parses_rfc2822_date(self) -> None:
        email = EmailMessage(date="Tue, 14 Nov 2023 22:13:20 +0000")
        assert message_timestamp_ms(email) == 1_700_000_000_000

    def test_named_zone_date_uses_zone_offset(self) -> None:
        email = EmailMessage(date="Mon, 01 Jan 2024 12:00:00 EST")
        expected = epoch_millis(datetime(2024, 1, 1, 17, 0, tzinfo=timezone.utc))
        assert message_timestamp_ms(email) == expected

    def test_pacific_daylight_date(self) -> None:
        email = EmailMessage(date="Tue, 14 Nov 2023 15:13:20 PDT")
        assert message_timestamp_ms(email) == 1_700_000_000_000

    def test_parses_iso_date(self) -> None:
        email = EmailMessage(date="2023-11-14T22:13:20Z")
        assert message_timestamp_ms(email) == 1_700_000_000_000

    def test_no_date_info_is_none(self) -> None:
        assert message_timestamp_ms(EmailMessage(subject="x")) is None

    def test_unparsable_date_is_none(self) -> None:
        assert message_timestamp_ms(EmailMessage(date="sometime last week-ish ???")) is None

    def test_partial_date_is_none(self) -> None:
        assert message_timestamp_ms(EmailMessage(date="2024")) is None
        assert message_timestamp_ms(EmailMessage(date="March 2024")) is None

    def test_non_numeric_internal_date_falls_back_to_date(self) -> None:
        email = EmailMessage(internal_date="n/a", date="2023-11-14T22:13:20Z")
        assert message_timestamp_ms(email) == 1_700_000_000_000


# ── filter_since ───────────────────────────────────────────────────────────────


class TestFilterSince:
    def test_undated_message_always_kept(self) -> None:
        email = EmailMessage(subject="No date at all")
        assert filter_since([email], 10**15) == [email]

    def test_just_before_cutoff_excluded(self) -> None:
        email = EmailMessage(internal_date="1700000000000")
        assert filter_since([email], 1_700_000_000_001) == []

    def test_equal_to_cutoff_included(self) -> None:
        email = EmailMessage(internal_date="1700000000000")
        assert filter_since([email], 1_700_000_000_000) == [email]

    def test_unparsable_date_kept(self) -> None:
        email = EmailMessage(date="not a date")
        assert filter_since([email], 1_700_000_000_000) == [email]

    def test_named_zone_inside_hours_window_kept(self) -> None:
        now = datetime(2024, 1, 1, 17, 30, tzinfo=timezone.utc)
        email = EmailMessage(date="Mon, 01 Jan 2024 12:00:00 EST")
        assert filter_since([email], epoch_millis(now) - 3_600_000) == [email]

    def test_partial_date_kept(self) -> None:
        email = EmailMessage(date="2024")
        assert filter_since([email], 10**15) == [email]

    def test_preserves_order(self) -> None:
        a = EmailMessage(id="a", internal_date="1700000000500")
        b = EmailMessage(id="b", internal_date="1600000000000")
        c = EmailMessage(id="c")
        d = EmailMessage(id="d", internal_date="1700000000001")
        assert [e.id for e in filter_since([a, b, c, d], 1_700_000_000_000)] == ["a", "c", "d"]


# ── fetch_recent_emails ────────────────────────────────────────────────────────


class TestFetchRecentEmails:
    async def test_search_request_uses_coarse_date_query(self, mail: MagicMock) -> None:
        await fetch_recent_emails(mail, _request(max_results=25, user_id="me"), now=NOW)
        mail.search_messages.assert_awaited_once_with(
            SearchRequest(
                user_id="me",
                query="after:2024/03/05",
                max_results=25,
                include_spam_trash=False,
            )
        )

    async def test_hours_window_queries_same_day(self, mail: MagicMock) -> None:
        await fetch_recent_emails(mail, _request(timeframe=2, timeframe_unit="hours"), now=NOW)
        assert mail.search_messages.call_args.args[0].query == "after:2024/03/06"

    async def test_filters_out_messages_before_cutoff(self, mail: MagicMock) -> None:
        recent = EmailMessage(id="new", subject="New", internal_date=str(NOW_MS - 1000))
        old = EmailMessage(id="old", subject="Old", internal_date=str(NOW_MS - 2 * DAY_MS))
        mail.search_messages.return_value = SearchResponse(messages=[recent, old])

        result = await fetch_recent_emails(mail, _request(), now=NOW)

        assert result.emails == [recent]
        assert result.result_count == 1

    async def test_sub_day_window_refines_day_query(self, mail: MagicMock) -> None:
        ten_min_ago = EmailMessage(id="a", internal_date=str(NOW_MS - 10 * 60_000))
        two_hours_ago = EmailMessage(id="b", internal_date=str(NOW_MS - 2 * 3_600_000))
        mail.search_messages.return_value = SearchResponse(messages=[ten_min_ago, two_hours_ago])

        result = await fetch_recent_emails(
            mail, _request(timeframe=30, timeframe_unit="minutes"), now=NOW
        )

        assert [e.id for e in result.emails] == ["a"]

    async def test_missing_messages_is_empty(self, mail: MagicMock) -> None:
        mail.search_messages.return_value = SearchResponse(messages=None)
        result = await fetch_recent_emails(mail, _request(), now=NOW)
        assert result.emails == []
        assert result.result_count == 0

    async def test_echoes_request_fields(self, mail: MagicMock) -> None:
        request = _request(max_results=7, user_id="someone@example.com", timeframe=3, timeframe_unit="hours")
        result = await fetch_recent_emails(mail, request, now=NOW)
        assert result.max_results == 7
        assert result.user_id == "someone@example.com"
        assert result.timeframe == 3
        assert result.timeframe_unit == "hours"
        assert result.recipient_email == "me@example.com"

    async def test_unknown_unit_falls_back_to_one_day(self, mail: MagicMock) -> None:
        inside = EmailMessage(id="in", internal_date=str(NOW_MS - DAY_MS + 1))
        outside = EmailMessage(id="out", internal_date=str(NOW_MS - DAY_MS - 1))
        mail.search_messages.return_value = SearchResponse(messages=[inside, outside])

        result = await fetch_recent_emails(mail, _request(timeframe=9, timeframe_unit="weeks"), now=NOW)

        assert [e.id for e in result.emails] == ["in"]
        assert result.timeframe_unit == "weeks"

    async def test_keeps_messages_with_body_only(self, mail: MagicMock) -> None:
        email = EmailMessage(body=MessageBody(text="hello"))
        mail.search_messages.return_value = SearchResponse(messages=[email])
        result = await fetch_recent_emails(mail, _request(), now=NOW)
        assert result.emails == [email]

    async def test_service_exception_becomes_upstream_error(self, mail: MagicMock) -> None:
        mail.search_messages.side_effect = TimeoutError("search timed out")
        with pytest.raises(UpstreamCallError) as excinfo:
            await fetch_recent_emails(mail, _request(), now=NOW)
        assert excinfo.value.operation == "mail_search"
        assert isinstance(excinfo.value.__cause__, TimeoutError)

    async def test_mcp_error_propagates_unchanged(self, mail: MagicMock) -> None:
        error = MCPError("mail_search", "Tool 'search_gmail_messages' returned error")
        mail.search_messages.side_effect = error
        with pytest.raises(MCPError) as excinfo:
            await fetch_recent_emails(mail, _request(), now=NOW)
        assert excinfo.value is error

    async def test_non_response_is_malformed(self, mail: MagicMock) -> None:
        mail.search_messages.return_value = None
        with pytest.raises(MalformedResponseError):
            await fetch_recent_emails(mail, _request(), now=NOW)

    async def test_default_now_is_current_time(self, mail: MagicMock) -> None:
        await fetch_recent_emails(mail, _request())
        query = mail.search_messages.call_args.args[0].query
        today = datetime.now(timezone.utc).astimezone().date()
        assert query.startswith("after:")
        assert query[len("after:"):] <= today.strftime("%Y/%m/%d")
