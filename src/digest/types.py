"""Records passed between the digest stages, and the mail service interface."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from email_validator import EmailNotValidError, validate_email

from src.digest.window import TimeUnit
from src.errors import ValidationError
from src.mcp.types import EmailMessage, SearchRequest, SearchResponse, SendRequest, SendResponse

logger = logging.getLogger(__name__)

DEFAULT_MAX_RESULTS = 50
DEFAULT_USER_ID = "me"
DEFAULT_TIMEFRAME = 1
DEFAULT_TIMEFRAME_UNIT = TimeUnit.DAYS.value


# ── Mail service interface ─────────────────────────────────────────────────────


@runtime_checkable
class MailService(Protocol):
    """The two mail operations a digest run needs.  GmailClient implements it."""

    async def search_messages(self, request: SearchRequest) -> SearchResponse: ...

    async def send_message(self, request: SendRequest) -> SendResponse: ...


# ── Pipeline input ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class DigestRequest:
    """Validated input for one digest run.

    Construction raises ValidationError for a malformed recipient address or
    out-of-range numbers, so a bad request never reaches the mail service.
    An unrecognised ``timeframe_unit`` is accepted; the cutoff calculation
    falls back to a one-day window for it.
    """

    recipient_email: str
    max_results: int = DEFAULT_MAX_RESULTS
    user_id: str = DEFAULT_USER_ID
    timeframe: int = DEFAULT_TIMEFRAME
    timeframe_unit: str = DEFAULT_TIMEFRAME_UNIT

    def __post_init__(self) -> None:
        if not isinstance(self.recipient_email, str):
            raise ValidationError("recipient_email must be a string")
        try:
            validate_email(self.recipient_email, check_deliverability=False)
        except EmailNotValidError as exc:
            raise ValidationError(
                f"recipient_email {self.recipient_email!r} is not a valid email address: {exc}"
            ) from exc

        if not _is_int(self.max_results) or self.max_results < 0:
            raise ValidationError(f"max_results must be an integer >= 0, got {self.max_results!r}")
        if not _is_int(self.timeframe) or self.timeframe <= 0:
            raise ValidationError(f"timeframe must be a positive integer, got {self.timeframe!r}")
        if not isinstance(self.user_id, str) or not self.user_id:
            raise ValidationError("user_id must be a non-empty string")

        if isinstance(self.timeframe_unit, TimeUnit):
            object.__setattr__(self, "timeframe_unit", self.timeframe_unit.value)
        elif not isinstance(self.timeframe_unit, str):
            raise ValidationError(f"timeframe_unit must be a string, got {self.timeframe_unit!r}")
        elif self.timeframe_unit not in {u.value for u in TimeUnit}:
            logger.warning(
                "timeframe_unit %r is not one of %s; a 1-day window will be used",
                self.timeframe_unit,
                ", ".join(u.value for u in TimeUnit),
            )


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


# ── Stage outputs ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class FetchResult:
    """Output of the fetch stage: the messages inside the window plus the echoed query."""

    emails: list[EmailMessage]
    result_count: int
    max_results: int
    user_id: str
    timeframe: int
    timeframe_unit: str
    recipient_email: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "emails": [e.to_dict() for e in self.emails],
            "resultCount": self.result_count,
            "maxResults": self.max_results,
            "userId": self.user_id,
            "timeframe": self.timeframe,
            "timeframeUnit": self.timeframe_unit,
            "recipientEmail": self.recipient_email,
        }


@dataclass(frozen=True)
class SummaryResult:
    summary: str
    email_count: int
    total_results: int
    recipient_email: str
    timeframe: int
    timeframe_unit: str
    user_id: str
    usage: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary,
            "emailCount": self.email_count,
            "totalResults": self.total_results,
            "usage": self.usage,
            "recipientEmail": self.recipient_email,
            "timeframe": self.timeframe,
            "timeframeUnit": self.timeframe_unit,
            "userId": self.user_id,
        }


@dataclass(frozen=True)
class SendResult:
    summary: str
    email_count: int
    total_results: int
    email_sent: bool
    message_id: str
    usage: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary,
            "emailCount": self.email_count,
            "totalResults": self.total_results,
            "usage": self.usage,
            "emailSent": self.email_sent,
            "messageId": self.message_id,
        }


@dataclass(frozen=True)
class DigestOutput:
    """What a completed run reports back to its invoker."""

    summary: str
    email_count: int
    total_results: int
    email_sent: bool
    usage: dict[str, Any] | None = field(default=None)

    @classmethod
    def from_send_result(cls, result: SendResult) -> DigestOutput:
        return cls(
            summary=result.summary,
            email_count=result.email_count,
            total_results=result.total_results,
            email_sent=result.email_sent,
            usage=result.usage,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary,
            "emailCount": self.email_count,
            "totalResults": self.total_results,
            "usage": self.usage,
            "emailSent": self.email_sent,
        }
