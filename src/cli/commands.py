"""CLI command implementations — `run` the whole digest, or just `fetch`."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from typing import Any

import click
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from src.digest.config import DigestConfig
from src.digest.fetcher import fetch_recent_emails
from src.digest.types import DigestOutput, DigestRequest, FetchResult, SendResult
from src.digest.window import TimeUnit
from src.digest.workflow import DigestWorkflow
from src.errors import DigestError, ValidationError
from src.llm.generator import AnthropicGenerator
from src.mcp.gmail_client import gmail_client

logger = logging.getLogger(__name__)
console = Console(width=200)


def _request_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by every command that builds a DigestRequest."""
    options = [
        click.option("--recipient", default=None, help="Summary recipient. Defaults to DIGEST_RECIPIENT."),
        click.option("--timeframe", default=None, type=int, help="How far back to look."),
        click.option(
            "--unit",
            default=None,
            type=click.Choice([u.value for u in TimeUnit]),
            help="Unit of --timeframe.",
        ),
        click.option("--max-results", default=None, type=int, help="Search result cap."),
        click.option("--user-id", default=None, help="Mailbox to search ('me' = configured account)."),
        click.option("--json", "as_json", is_flag=True, help="Print the result as JSON."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _build_request(
    config: DigestConfig,
    recipient: str | None,
    timeframe: int | None,
    unit: str | None,
    max_results: int | None,
    user_id: str | None,
) -> DigestRequest:
    try:
        return config.to_request(
            recipient_email=recipient,
            timeframe=timeframe,
            timeframe_unit=unit,
            max_results=max_results,
            user_id=user_id,
        )
    except ValidationError as exc:
        console.print(f"[red]{exc.kind} error: {escape(str(exc))}[/red]")
        raise SystemExit(1) from exc


def _find_reportable(exc: BaseException) -> BaseException | None:
    """Dig a DigestError/ValueError out of the exception groups raised by the MCP transport."""
    if isinstance(exc, (DigestError, ValueError)):
        return exc
    if isinstance(exc, BaseExceptionGroup):
        for inner in exc.exceptions:
            found = _find_reportable(inner)
            if found is not None:
                return found
    return None


def _report_failure(exc: BaseException) -> None:
    if isinstance(exc, DigestError):
        console.print(f"[red]{exc.kind} error: {escape(str(exc))}[/red]")
    else:
        console.print(f"[red]Gmail error: {escape(str(exc))}[/red]")


# ── email-digest run ─────────────────────────────────────────────────────────────


@click.command()
@_request_options
@click.pass_obj
def run(
    config: DigestConfig,
    recipient: str | None,
    timeframe: int | None,
    unit: str | None,
    max_results: int | None,
    user_id: str | None,
    as_json: bool,
) -> None:
    """Fetch recent emails, summarise them with Claude and mail the summary."""
    request = _build_request(config, recipient, timeframe, unit, max_results, user_id)
    code = asyncio.run(_run_async(config, request, as_json))
    if code:
        raise SystemExit(code)


async def _run_async(config: DigestConfig, request: DigestRequest, as_json: bool) -> int:
    try:
        async with gmail_client() as gmail:
            workflow = DigestWorkflow(gmail, AnthropicGenerator(model=config.model))
            result = await workflow.run_stages(request)
    except Exception as exc:
        reportable = _find_reportable(exc)
        if reportable is None:
            raise
        logger.error("Digest run failed: %s", reportable)
        _report_failure(reportable)
        return 1

    _print_send_result(result, request, as_json)
    return 0


def _print_send_result(result: SendResult, request: DigestRequest, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps(DigestOutput.from_send_result(result).to_dict(), indent=2))
        return

    console.print(
        Panel(
            Text(result.summary),
            title=(
                f"[bold]{result.email_count} email(s) from the last "
                f"{request.timeframe} {request.timeframe_unit}[/bold]"
            ),
            border_style="green",
        )
    )
    console.print(
        f"[green]Sent[/green] to {request.recipient_email}"
        + (f" [dim](message id {result.message_id})[/dim]" if result.message_id else "")
    )
    if result.usage:
        console.print(
            f"[dim]Tokens: {result.usage.get('input_tokens', '?')} in, "
            f"{result.usage.get('output_tokens', '?')} out[/dim]"
        )


# ── email-digest fetch ───────────────────────────────────────────────────────────


@click.command()
@_request_options
@click.pass_obj
def fetch(
    config: DigestConfig,
    recipient: str | None,
    timeframe: int | None,
    unit: str | None,
    max_results: int | None,
    user_id: str | None,
    as_json: bool,
) -> None:
    """List the emails a digest run would summarise, without summarising or sending."""
    request = _build_request(config, recipient, timeframe, unit, max_results, user_id)
    code = asyncio.run(_fetch_async(request, as_json))
    if code:
        raise SystemExit(code)


async def _fetch_async(request: DigestRequest, as_json: bool) -> int:
    try:
        async with gmail_client() as gmail:
            fetched = await fetch_recent_emails(gmail, request)
    except Exception as exc:
        reportable = _find_reportable(exc)
        if reportable is None:
            raise
        logger.error("Fetch failed: %s", reportable)
        _report_failure(reportable)
        return 1

    _print_fetch_result(fetched, as_json)
    return 0


def _print_fetch_result(fetched: FetchResult, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps(fetched.to_dict(), indent=2))
        return

    if not fetched.emails:
        console.print(
            f"[yellow]No emails found in the last "
            f"{fetched.timeframe} {fetched.timeframe_unit}.[/yellow]"
        )
        return

    table = Table(box=box.ROUNDED, show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", width=3)
    table.add_column("Subject", max_width=50)
    table.add_column("From", max_width=32)
    table.add_column("Date", max_width=32)

    for i, email in enumerate(fetched.emails, start=1):
        table.add_row(
            str(i),
            Text(email.subject or ""),
            Text(email.sender or ""),
            email.date or email.internal_date or "",
        )

    console.print(
        f"\n[bold]{fetched.result_count}[/bold] email(s) from the last "
        f"{fetched.timeframe} {fetched.timeframe_unit}\n"
    )
    console.print(table)
