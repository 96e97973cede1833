"""Database CLI commands."""

from __future__ import annotations

import csv
import sys
import time
from typing import Optional

import click
from rich.table import Table

from sqlcontext.cli.utils import connection_options, console, print_exception
from sqlcontext.config import get_environment_settings
from sqlcontext.db import ConnectionContext, iter_rows
from sqlcontext.exceptions import DatabaseError


def _open_context(
    host: str,
    database: str,
    user: str,
    password: str,
    protocol: Optional[str],
    fetch_size: Optional[int] = None,
) -> ConnectionContext:
    overrides = {}
    env_settings = get_environment_settings()
    if fetch_size is not None:
        env_settings = env_settings.model_copy(update={'fetch_size': fetch_size})
        overrides['streaming'] = env_settings.streaming_options()
    settings = env_settings.context_settings(**overrides)
    return ConnectionContext(host, database, user, password, protocol=protocol, settings=settings)


@click.command(name="ping")
@connection_options
@click.pass_context
def ping_command(
    ctx: click.Context,
    host: str,
    database: str,
    user: str,
    password: str,
    protocol: Optional[str],
) -> None:
    """Open a connection and run SELECT 1."""
    start_time = time.time()
    try:
        with _open_context(host, database, user, password, protocol) as context:
            with context.prepare_statement("SELECT 1") as statement:
                statement.execute_query().scalar()
        elapsed = round((time.time() - start_time) * 1000, 2)
        console.print(f"[green]✓ Connected to {host}/{database} in {elapsed} ms[/green]")
    except DatabaseError as exc:
        print_exception(f"{exc.kind.value.title()} error", exc, ctx.obj.get('verbose', False))
        raise SystemExit(1) from exc


@click.command(name="scan")
@click.argument("sql")
@connection_options
@click.option("--limit", "-n", type=int, help="Stop after this many rows")
@click.option("--fetch-size", type=click.IntRange(min=1), help="Rows fetched per server round trip")
@click.option("--format", "output_format", type=click.Choice(["table", "csv"]), default="table", help="Output format")
@click.pass_context
def scan_command(
    ctx: click.Context,
    sql: str,
    host: str,
    database: str,
    user: str,
    password: str,
    protocol: Optional[str],
    limit: Optional[int],
    fetch_size: Optional[int],
    output_format: str,
) -> None:
    """Stream the rows of a query without buffering the result set."""
    try:
        with _open_context(host, database, user, password, protocol, fetch_size) as context:
            result = context.execute_streaming_query(sql)
            columns = list(result.keys())

            if output_format == "csv":
                writer = csv.writer(sys.stdout)
                writer.writerow(columns)
                for row in iter_rows(result, limit):
                    writer.writerow(list(row))
                return

            table = Table(show_header=True, header_style="bold magenta")
            for column in columns:
                table.add_column(column, style="cyan")
            row_count = 0
            for row in iter_rows(result, limit):
                table.add_row(*["" if value is None else str(value) for value in row])
                row_count += 1
            console.print(table)
            console.print(f"\n{row_count:,} rows")
    except DatabaseError as exc:
        print_exception(f"{exc.kind.value.title()} error", exc, ctx.obj.get('verbose', False))
        raise SystemExit(1) from exc
