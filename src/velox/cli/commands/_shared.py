"""Shared CLI plumbing for command modules.

Connection creation, format-option handling, error reporting and output
helpers.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import sentry_sdk
import typer

from velox.cli.output import get_formatter, report_error, write_output
from velox.core.config import ReportingConfig, load_config, resolve_config
from velox.core.connection import Connection
from velox.core.exceptions import VeloxError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from velox.formatters.base import Dataset


def get_connection(ctx: typer.Context, timeout: float | None = None) -> Connection:
    obj = ctx.ensure_object(dict)
    config = load_config(obj.get("config_file"))

    cli_overrides: dict[str, Any] = {}
    for key in ("engine", "host", "port", "database", "user", "password"):
        val = obj.get(key)
        if val is not None:
            cli_overrides[key] = val
    if timeout is not None:
        cli_overrides["timeout"] = timeout

    resolved = resolve_config(
        config,
        profile_name=obj.get("profile"),
        dsn=obj.get("dsn"),
        **cli_overrides,
    )

    return Connection(resolved)


def format_options(ctx: typer.Context) -> dict[str, Any]:
    obj = ctx.ensure_object(dict)
    return {
        "format_flag": obj.get("format"),
        "compact": obj.get("compact", False),
        "width": obj.get("width", 40),
        "no_header": obj.get("no_header", False),
    }


def output_result(ctx: typer.Context, dataset: Dataset, envelope: bool = False) -> None:
    opts = format_options(ctx)
    formatter = get_formatter(**opts, envelope=envelope)
    write_output(formatter, dataset)


@contextmanager
def reported_errors(ctx: typer.Context) -> Iterator[None]:
    """Report VeloxErrors per the resolved reporting mode and exit with their code."""
    reporting = ctx.ensure_object(dict).get("reporting") or ReportingConfig()
    try:
        yield
    except VeloxError as e:
        sentry_sdk.capture_exception(e)
        report_error(e, reporting)
        raise typer.Exit(int(e.exit_code)) from e
