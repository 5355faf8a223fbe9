"""Gmail MCP client — wraps workspace-mcp Gmail tools behind the mail service contract."""

import json
import logging
import os
import re
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from mcp import ClientSession
from mcp.client.stdio import StdioServerParameters, stdio_client
from mcp.types import TextContent

from src.errors import MalformedResponseError, UpstreamCallError
from src.mcp.types import (
    EmailMessage,
    MessageBody,
    SearchRequest,
    SearchResponse,
    SendRequest,
    SendResponse,
)

logger = logging.getLogger(__name__)

# Gmail search operator that widens a query to Spam and Trash
_ANYWHERE = "in:anywhere"

# Gmail's own alias for the authenticated mailbox
_SELF_USER_ID = "me"

# JSON-decoded value from an MCP tool response
_JsonValue = dict[str, Any] | list[Any] | str | None


class MCPError(UpstreamCallError):
    """Raised when a workspace-mcp tool call returns an error."""


class GmailClient:
    """Async adapter from the mail service contract to workspace-mcp tools.

    Holds a single MCP session for the lifetime of a digest run.  Use the
    `gmail_client()` context manager to construct and tear down correctly.
    """

    def __init__(self, session: ClientSession, user_email: str) -> None:
        self._session = session
        self._user_email = user_email

    # ── Public API ─────────────────────────────────────────────────────────────

    async def search_messages(self, request: SearchRequest) -> SearchResponse:
        """Search the mailbox and return matching messages with their content.

        Makes two MCP calls: a lightweight ID search, then a batch content
        fetch.  A search that yields no IDs skips the second call.
        """
        query = request.query
        if request.include_spam_trash:
            query = f"{query} {_ANYWHERE}"
        user = self._resolve_user(request.user_id)

        raw = await self._call(
            "search_gmail_messages",
            {"query": query, "page_size": request.max_results,
             "user_google_email": user},
            operation="mail_search",
        )
        ids = self._parse_search_ids(raw)
        if not ids:
            return SearchResponse(messages=[])

        content = await self._call(
            "get_gmail_messages_content_batch",
            {"message_ids": ids, "user_google_email": user},
            operation="mail_search",
        )
        return SearchResponse(messages=self._parse_batch_emails(content))

    async def send_message(self, request: SendRequest) -> SendResponse:
        """Send an email and return the new message ID when the server reports one.

        workspace-mcp takes a single body, so the plain text is sent; the
        HTML rendering is only used when there is no text.
        """
        body, body_format = (
            (request.body_text, "plain") if request.body_text else (request.body_html, "html")
        )
        raw = await self._call(
            "send_gmail_message",
            {
                "to": request.to,
                "subject": request.subject,
                "body": body,
                "body_format": body_format,
                "user_google_email": self._resolve_user(request.user_id),
            },
            operation="mail_send",
        )
        message_id = self._parse_sent_id(raw)
        logger.info("Sent email to %s: %r (id=%s)", request.to, request.subject, message_id)
        return SendResponse(id=message_id)

    # ── Internal helpers ───────────────────────────────────────────────────────

    def _resolve_user(self, user_id: str) -> str:
        return self._user_email if user_id == _SELF_USER_ID else user_id

    async def _call(
        self, tool_name: str, arguments: dict[str, Any], *, operation: str
    ) -> _JsonValue:
        """Call a workspace-mcp tool and return the parsed JSON result.

        Raises MCPError if the tool returns an error.  Plain-string responses
        (e.g. "Email sent!") are returned as-is.
        """
        logger.debug("MCP → %s %s", tool_name, arguments)
        result = await self._session.call_tool(tool_name, arguments)

        if result.isError:
            raise MCPError(operation, f"Tool {tool_name!r} returned error: {result.content}")

        if not result.content:
            return None

        # Extract text from the first TextContent block
        text: str | None = None
        for item in result.content:
            if isinstance(item, TextContent):
                text = item.text
                break

        if text is None:
            return None

        try:
            parsed: _JsonValue = json.loads(text)
            return parsed
        except json.JSONDecodeError:
            return text  # some tools return plain confirmation strings

    @staticmethod
    def _parse_search_ids(raw: _JsonValue) -> list[str]:
        """Extract message IDs from a search response (text, JSON list or ``{"messages": …}``)."""
        if raw is None:
            return []
        if isinstance(raw, dict):
            messages = raw.get("messages")
            if messages is None:
                return []
            if not isinstance(messages, list):
                raise MalformedResponseError(
                    f"search response 'messages' is {type(messages).__name__}, expected a list"
                )
            raw = messages
        if isinstance(raw, list):
            return [
                str(m.get("message_id") or m.get("id"))
                for m in raw
                if isinstance(m, dict) and (m.get("message_id") or m.get("id"))
            ]
        if isinstance(raw, str):
            return re.findall(r"Message ID:\s*(\S+)", raw)
        raise MalformedResponseError(f"Unexpected search response type: {type(raw).__name__}")

    @staticmethod
    def _parse_batch_emails(raw: _JsonValue) -> list[EmailMessage]:
        """Parse one or more emails from a batch content response.

        workspace-mcp returns text blocks like::

            Message ID: abc123
            Subject: Hello
            From: alice@example.com
            Date: Mon, 1 Jan 2026 12:00:00 +0000

            Body text follows after a blank line...
        """
        if raw is None:
            return []
        if isinstance(raw, dict):
            raw = raw.get("messages", [])
        if isinstance(raw, list):
            return [EmailMessage.from_dict(m) for m in raw if isinstance(m, dict)]
        if not isinstance(raw, str):
            raise MalformedResponseError(
                f"Unexpected message content response type: {type(raw).__name__}"
            )

        emails: list[EmailMessage] = []
        # Split into per-message blocks on "Message ID:" boundaries
        blocks = re.split(r"(?=^Message ID:)", raw, flags=re.MULTILINE)
        for block in blocks:
            block = block.strip()
            if not block.startswith("Message ID:"):
                continue

            def _header(name: str) -> str | None:
                m = re.search(rf"^{name}:[ \t]*(.*)$", block, re.MULTILINE)
                value = m.group(1).strip() if m else ""
                return value or None

            # Body: everything after the header block (first blank line)
            body = ""
            header_end = re.search(r"\n\s*\n", block)
            if header_end:
                body = block[header_end.end():].strip()

            emails.append(EmailMessage(
                id=_header("Message ID"),
                subject=_header("Subject"),
                sender=_header("From"),
                date=_header("Date"),
                snippet=body[:200] or None,
                body=MessageBody(text=body) if body else None,
            ))
        return emails

    @staticmethod
    def _parse_sent_id(raw: _JsonValue) -> str | None:
        if isinstance(raw, dict):
            value = raw.get("id") or raw.get("message_id")
            return str(value) if value else None
        if isinstance(raw, str):
            m = re.search(r"Message ID:\s*(\S+)", raw)
            return m.group(1) if m else None
        return None


@asynccontextmanager
async def gmail_client(
    *,
    user_email: str | None = None,
    server_command: str | None = None,
) -> AsyncIterator[GmailClient]:
    """Async context manager that yields a connected GmailClient.

    Spawns `workspace-mcp` as a subprocess via the MCP stdio transport,
    initialises the session and tears everything down on exit.  Connection
    failures propagate to the caller; there is no reconnect loop.

    Args:
        user_email: Google account email. Falls back to USER_GOOGLE_EMAIL env var.
        server_command: Command used to launch the MCP server.
                        Defaults to GMAIL_MCP_SERVER_PATH env var (or "uvx").

    Example::

        async with gmail_client() as client:
            response = await client.search_messages(request)
    """
    email = user_email or os.environ.get("USER_GOOGLE_EMAIL", "")
    if not email:
        raise ValueError(
            "user_email must be provided or USER_GOOGLE_EMAIL env var must be set"
        )

    cmd = server_command or os.environ.get("GMAIL_MCP_SERVER_PATH", "uvx")
    # Detect uvx by name or full path (e.g. C:\...\uvx.exe) and pass workspace-mcp args
    _cmd_basename = os.path.basename(cmd).lower().replace(".exe", "")
    args = ["workspace-mcp", "--tools", "gmail"] if _cmd_basename == "uvx" else []

    # Non-default port for workspace-mcp's internal OAuth server
    mcp_port = os.environ.get("WORKSPACE_MCP_PORT", "18741")

    server_params = StdioServerParameters(
        command=cmd,
        args=args,
        env={
            **os.environ,
            "GOOGLE_OAUTH_CLIENT_ID": os.environ.get("GOOGLE_OAUTH_CLIENT_ID", ""),
            "GOOGLE_OAUTH_CLIENT_SECRET": os.environ.get("GOOGLE_OAUTH_CLIENT_SECRET", ""),
            "USER_GOOGLE_EMAIL": email,
            "MCP_SINGLE_USER_MODE": "1",
            "WORKSPACE_MCP_PORT": mcp_port,
            "PYTHONUTF8": "1",
        },
    )

    async with stdio_client(server_params) as (read, write):
        async with ClientSession(read, write) as session:
            await session.initialize()
            logger.info("Gmail MCP client connected (%s)", email)
            yield GmailClient(session, email)
