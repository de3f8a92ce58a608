"""Show the statements a criteria document compiles to, without a database."""

from __future__ import annotations

import json
from typing import Annotated

import typer

from velox.cli.commands._shared import reported_errors
from velox.core.criteria import Diff
from velox.core.definition import VERBS, build_procedure, load_definition
from velox.core.models import ProcedureInput
from velox.core.query_source import resolve_query_source


def compile_command(
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
    verb: Annotated[
        str | None,
        typer.Option("--verb", help="Only compile this operation: select|update|insert|delete"),
    ] = None,
    compact: Annotated[
        bool,
        typer.Option("--compact", help="Compact JSON output (no indentation)"),
    ] = False,
) -> None:
    """Print the SQL and parameter sets each operation compiles to."""
    if verb is not None and verb not in VERBS:
        typer.echo(f"Invalid verb: '{verb}'. Must be one of: {', '.join(VERBS)}", err=True)
        raise typer.Exit(2)

    with reported_errors(ctx):
        query_definition = load_definition(definition)
        text = resolve_query_source(inline=execute, file_path=criteria_file, label="Criteria")
        criteria = Diff.from_json(text)

        plan: dict[str, list[dict[str, object]]] = {}
        for name in [verb] if verb else list(VERBS):
            section = query_definition.procedure(name)
            entries = getattr(criteria, name)
            if section is None or not entries:
                continue
            procedure = build_procedure(section, None, name, query_definition.name)
            if procedure.input_kind is ProcedureInput.CRITERIA:
                procedure.add_criteria(entries)  # type: ignore[attr-defined]
            else:
                procedure.feed(entries)
            plan[name] = procedure.dump()

    indent = None if compact or ctx.ensure_object(dict).get("compact") else 2
    typer.echo(json.dumps(plan, indent=indent, default=str))
