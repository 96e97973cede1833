"""Shared CLI utilities for sqlcontext."""

from __future__ import annotations

import logging
from typing import Any, Callable

import click
from rich.console import Console
from rich.markup import escape

# Single console instance reused across CLI modules
console = Console()


def configure_logging(level: str) -> None:
    """Route library logging to stderr at ``level``."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def print_exception(message: str, error: Exception, verbose: bool = False) -> None:
    """Render a formatted exception message.

    Args:
        message: Friendly context message to display before the exception.
        error: Original exception instance.
        verbose: When True, render the full traceback for debugging.
    """
    console.print(f"[red]{message}: {escape(str(error))}[/red]")
    if verbose:
        import traceback

        console.print(f"[dim]{escape(traceback.format_exc())}[/dim]")


def connection_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Add the options identifying the database to connect to."""
    options = [
        click.option("--host", "-H", required=True, envvar="SQLCONTEXT_HOST", help="Database server"),
        click.option("--database", "-d", required=True, envvar="SQLCONTEXT_DATABASE", help="Database name"),
        click.option("--user", "-u", required=True, envvar="SQLCONTEXT_USER", help="User name"),
        click.option(
            "--password",
            "-p",
            envvar="SQLCONTEXT_PASSWORD",
            default="",
            show_default=False,
            help="Password (or set SQLCONTEXT_PASSWORD)",
        ),
        click.option("--protocol", envvar="SQLCONTEXT_PROTOCOL", help="SQLAlchemy dialect, e.g. mysql+pymysql"),
    ]
    for option in reversed(options):
        func = option(func)
    return func
