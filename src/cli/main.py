"""CLI entry point for the email digest."""

import logging

import click
from dotenv import load_dotenv

from src.digest.config import DigestConfig

logger = logging.getLogger(__name__)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log pipeline progress at INFO level.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Email digest — summarise recent mail with Claude and mail the summary back."""
    load_dotenv()
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )
    ctx.obj = DigestConfig.from_env()


# Import and register commands after cli is defined to avoid circular imports.
from src.cli.commands import fetch, run  # noqa: E402

cli.add_command(run)
cli.add_command(fetch)
