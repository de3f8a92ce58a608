from __future__ import annotations

import sys
from typing import Annotated

import typer

from velox.cli.commands._shared import get_connection, output_result, reported_errors
from velox.core.exceptions import InputError
from velox.core.exit_codes import ExitCode
from velox.core.query_source import resolve_query_source
from velox.procedures.base import single_result
from velox.procedures.query import Query


def query_command(
    ctx: typer.Context,
    file: Annotated[
        str | None,
        typer.Argument(help="SQL file to execute"),
    ] = None,
    execute: Annotated[
        str | None,
        typer.Option("--execute", "-e", help="Execute inline SQL query"),
    ] = None,
    timeout: Annotated[
        float | None,
        typer.Option("--timeout", "-t", help="Statement timeout in seconds"),
    ] = None,
) -> None:
    """Execute a SQL query from file, inline (-e), or stdin."""
    try:
        is_tty = sys.stdin.isatty()
    except (ValueError, AttributeError):
        is_tty = False
    if execute is None and file is None and is_tty:
        typer.echo(ctx.get_help())
        raise typer.Exit()

    try:
        sql = resolve_query_source(inline=execute, file_path=file)
    except InputError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(ExitCode.INPUT_ERROR) from exc

    with reported_errors(ctx), get_connection(ctx, timeout=timeout) as conn:
        result = single_result(Query(conn, sql).execute())
        output_result(ctx, result)
