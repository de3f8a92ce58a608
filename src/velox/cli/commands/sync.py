"""Build a Model from a query definition and synchronize a criteria document."""

from __future__ import annotations

from typing import Annotated

import typer

from velox.cli.commands._shared import get_connection, output_result, reported_errors
from velox.core.criteria import Diff
from velox.core.definition import build_model, load_definition
from velox.core.logging import get_logger
from velox.core.query_source import resolve_query_source


def sync_command(
    ctx: typer.Context,
    definition: Annotated[
        str,
        typer.Argument(help="Query definition file (TOML)"),
    ],
    criteria_file: Annotated[
        str | None,
        typer.Argument(help="Criteria document (JSON); stdin when piped"),
    ] = None,
    execute: Annotated[
        str | None,
        typer.Option("--execute", "-e", help="Inline criteria document (JSON)"),
    ] = None,
    passthru: Annotated[
        bool,
        typer.Option(
            "--passthru",
            help="Compile select criteria into the select statement instead of filtering",
        ),
    ] = False,
    envelope: Annotated[
        bool,
        typer.Option("--envelope", help="Print {lastQuery, columns, data} as JSON"),
    ] = False,
    timeout: Annotated[
        float | None,
        typer.Option("--timeout", "-t", help="Statement timeout in seconds"),
    ] = None,
) -> None:
    """Load a Model, apply a criteria document, and print the synchronized data."""
    log = get_logger("velox.cli")
    with reported_errors(ctx):
        query_definition = load_definition(definition)
        text = resolve_query_source(
            inline=execute, file_path=criteria_file, label="Criteria", required=False
        )
        criteria = Diff.from_json(text)
        with get_connection(ctx, timeout=timeout) as conn:
            model = build_model(query_definition, conn, criteria, passthru=passthru)
            log.debug(
                "model synchronized",
                definition=query_definition.name,
                rows=len(model),
            )
            output_result(ctx, model, envelope=envelope)
