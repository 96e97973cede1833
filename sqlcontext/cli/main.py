"""Main CLI entry point for sqlcontext."""

from __future__ import annotations

import click

from sqlcontext import __version__
from sqlcontext.cli.commands import register_commands
from sqlcontext.cli.commands.database import ping_command, scan_command
from sqlcontext.cli.utils import configure_logging, console
from sqlcontext.config import get_environment_settings


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version information")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, version: bool, verbose: bool) -> None:
    """sqlcontext - database connection lifecycle and streaming scans."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    settings = get_environment_settings()
    configure_logging("DEBUG" if verbose or settings.debug else settings.log_level)

    if version:
        console.print(f"sqlcontext v{__version__}")
        return

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


COMMAND_REGISTRY = [
    ping_command,
    scan_command,
]

register_commands(cli, COMMAND_REGISTRY)


if __name__ == "__main__":
    cli()
