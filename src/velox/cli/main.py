"""Velox CLI entry point and command registration."""

from __future__ import annotations

import atexit
import os
from pathlib import Path  # noqa: TC003
from typing import Annotated

import sentry_sdk
import typer

from velox.__about__ import __version__
from velox.cli.commands.compile import compile_command
from velox.cli.commands.config import config_app
from velox.cli.commands.query import query_command
from velox.cli.commands.sync import sync_command
from velox.cli.output import OutputFormat, report_error  # noqa: TC001
from velox.core.config import AppConfig, ReportingConfig, load_config
from velox.core.exceptions import ConfigError, VeloxError
from velox.core.logging import get_logger, setup_logging
from velox.core.monitoring import setup_sentry

app = typer.Typer(
    help="Velox - cross-backend SQL execution and data sync",
    no_args_is_help=True,
)

app.add_typer(config_app, name="config")
app.command("query")(query_command)
app.command("sync")(sync_command)
app.command("compile")(compile_command)


def version_callback(value: bool) -> None:
    if value:
        typer.echo(f"velox {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Enable verbose logging"),
    ] = False,
    profile: Annotated[
        str | None,
        typer.Option("--profile", "-P", help="Named connection profile"),
    ] = None,
    engine: Annotated[
        str | None,
        typer.Option("--engine", help="Database engine: postgres|mysql|sqlite"),
    ] = None,
    host: Annotated[
        str | None,
        typer.Option("--host", "-H", help="Database host"),
    ] = None,
    port: Annotated[
        int | None,
        typer.Option("--port", "-p", help="Database port"),
    ] = None,
    database: Annotated[
        str | None,
        typer.Option("--database", "-d", help="Database name (file path for sqlite)"),
    ] = None,
    user: Annotated[
        str | None,
        typer.Option("--user", "-U", help="User name"),
    ] = None,
    password: Annotated[
        str | None,
        typer.Option("--password", "-W", help="Password"),
    ] = None,
    dsn: Annotated[
        str | None,
        typer.Option("--dsn", help="Connection DSN"),
    ] = None,
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config file"),
    ] = None,
    format: Annotated[
        OutputFormat | None,
        typer.Option("--format", "-f", help="Output format: table|json|csv"),
    ] = None,
    table: Annotated[
        bool,
        typer.Option("--table", help="Shorthand for --format table"),
    ] = False,
    compact: Annotated[
        bool,
        typer.Option("--compact", help="Compact JSON output (no indentation)"),
    ] = False,
    width: Annotated[
        int,
        typer.Option("--width", help="Column width for table format"),
    ] = 40,
    no_header: Annotated[
        bool,
        typer.Option("--no-header", help="Suppress header row in CSV output"),
    ] = False,
    json_errors: Annotated[
        bool,
        typer.Option("--json-errors", help="Report errors as JSON on stderr"),
    ] = False,
    stacktrace: Annotated[
        bool,
        typer.Option("--stacktrace", help="Include stack traces in error reports"),
    ] = False,
) -> None:
    """Velox - cross-backend SQL execution and data sync."""
    setup_logging(verbose, json_output=json_errors)

    try:
        app_config = load_config(config_file)
    except ConfigError as e:
        # Commands reload the file and report the error with the right exit code.
        get_logger("velox.cli").warning("config not loaded", error=e.message)
        app_config = AppConfig()

    reporting = app_config.reporting.model_copy(
        update={
            "json_output": json_errors or app_config.reporting.json_output,
            "stacktrace": stacktrace or app_config.reporting.stacktrace,
        }
    )

    sentry_enabled = setup_sentry(os.environ.get("VELOX_SENTRY_DSN") or app_config.sentry_dsn)

    transaction = sentry_sdk.start_transaction(op="cli", name=ctx.invoked_subcommand or "velox")
    transaction.__enter__()

    def cleanup() -> None:
        transaction.__exit__(None, None, None)
        sentry_sdk.flush(timeout=2)

    atexit.register(cleanup)

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["profile"] = profile
    ctx.obj["engine"] = engine
    ctx.obj["host"] = host
    ctx.obj["port"] = port
    ctx.obj["database"] = database
    ctx.obj["user"] = user
    ctx.obj["password"] = password
    ctx.obj["dsn"] = dsn
    ctx.obj["config_file"] = config_file
    ctx.obj["reporting"] = reporting
    ctx.obj["sentry_enabled"] = sentry_enabled

    # Format options (global)
    fmt = "table" if table else (format.value if format else None)
    ctx.obj["format"] = fmt
    ctx.obj["compact"] = compact
    ctx.obj["width"] = width
    ctx.obj["no_header"] = no_header


def run() -> None:
    """Entry point with global error handling."""
    try:
        app()
    except VeloxError as e:
        sentry_sdk.capture_exception(e)
        report_error(e, ReportingConfig())
        raise SystemExit(e.exit_code) from None
    except SystemExit:
        raise
    except KeyboardInterrupt:
        raise SystemExit(130) from None
    except Exception as e:
        sentry_sdk.capture_exception(e)
        typer.echo(f"Error: {e}", err=True)
        raise SystemExit(1) from None
