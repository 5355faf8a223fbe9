"""Request/response types for the mail service contract."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class MessageBody:
    text: str | None = None


@dataclass(frozen=True)
class EmailMessage:
    """An email as returned by the mail search, with every field optional.

    The search backend decides which fields it fills in: a lightweight
    result may carry only ``id`` and ``snippet``, a full fetch adds
    ``body``, ``date`` and sometimes ``internal_date`` (epoch millis as a
    numeric string).  Nothing downstream may assume a field is present.
    """

    id: str | None = None
    thread_id: str | None = None
    subject: str | None = None
    sender: str | None = None
    date: str | None = None
    internal_date: str | None = None
    snippet: str | None = None
    body: MessageBody | None = None

    @property
    def body_text(self) -> str | None:
        return self.body.text if self.body is not None else None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EmailMessage:
        """Map a loosely-typed message dict (Gmail/MCP JSON) to an EmailMessage."""
        body_raw = data.get("body")
        if isinstance(body_raw, dict):
            body = MessageBody(text=_opt_str(body_raw.get("text")))
        elif body_raw:
            body = MessageBody(text=str(body_raw))
        else:
            body = None

        internal_raw = data.get("internalDate", data.get("internal_date"))
        return cls(
            id=_opt_str(data.get("message_id", data.get("id"))),
            thread_id=_opt_str(data.get("thread_id", data.get("threadId"))),
            subject=_opt_str(data.get("subject")),
            sender=_opt_str(data.get("from")),
            date=_opt_str(data.get("date")),
            internal_date=_opt_str(internal_raw),
            snippet=_opt_str(data.get("snippet")),
            body=body,
        )

    def to_dict(self) -> dict[str, Any]:
        """Wire shape with only the fields that are present."""
        out: dict[str, Any] = {}
        for key, value in (
            ("id", self.id),
            ("threadId", self.thread_id),
            ("subject", self.subject),
            ("from", self.sender),
            ("date", self.date),
            ("internalDate", self.internal_date),
            ("snippet", self.snippet),
        ):
            if value is not None:
                out[key] = value
        if self.body is not None:
            out["body"] = {"text": self.body.text} if self.body.text is not None else {}
        return out


@dataclass(frozen=True)
class SearchRequest:
    user_id: str
    query: str
    max_results: int
    include_spam_trash: bool = False


@dataclass(frozen=True)
class SearchResponse:
    messages: list[EmailMessage] | None = None


@dataclass(frozen=True)
class SendRequest:
    user_id: str
    to: str
    subject: str
    body_text: str
    body_html: str


@dataclass(frozen=True)
class SendResponse:
    id: str | None = None


def _opt_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)
