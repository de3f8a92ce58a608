"""Output format selection, TTY auto-detection and error reporting."""

from __future__ import annotations

import json
import sys
from enum import StrEnum
from typing import TYPE_CHECKING

import typer

if TYPE_CHECKING:
    from velox.core.config import ReportingConfig
    from velox.core.exceptions import VeloxError
    from velox.formatters.base import Dataset, Formatter


class OutputFormat(StrEnum):
    TABLE = "table"
    JSON = "json"
    CSV = "csv"


def detect_tty() -> bool:
    return sys.stdout.isatty()


def resolve_format(format_flag: str | None) -> str:
    """Determine the output format.

    Explicit --format overrides TTY detection.
    Default: table for TTY, csv for pipes.
    """
    if format_flag is not None:
        return format_flag
    return "table" if detect_tty() else "csv"


def get_formatter(
    format_flag: str | None = None,
    *,
    compact: bool = False,
    width: int = 40,
    no_header: bool = False,
    envelope: bool = False,
) -> Formatter:
    """Build and return the appropriate formatter instance."""
    # Import here to trigger registry population from formatter modules.
    import velox.formatters.csv  # noqa: F401
    import velox.formatters.json  # noqa: F401
    import velox.formatters.table  # noqa: F401
    from velox.formatters.base import registry

    fmt_name = "json" if envelope else resolve_format(format_flag)

    kwargs: dict[str, object] = {}
    if fmt_name == "table":
        kwargs["width"] = width
    elif fmt_name == "json":
        kwargs["compact"] = compact
        kwargs["envelope"] = envelope
    elif fmt_name == "csv":
        kwargs["no_header"] = no_header

    return registry.get(fmt_name, **kwargs)


def write_output(formatter: Formatter, dataset: Dataset) -> None:
    """Write formatted output to stdout."""
    for line in formatter.format(dataset):
        sys.stdout.write(line + "\n")


def report_error(error: VeloxError, reporting: ReportingConfig) -> None:
    """Report an error on stderr as text or as a JSON document."""
    if not reporting.stderr:
        return
    if reporting.json_output:
        typer.echo(json.dumps(error.to_dict(stacktrace=reporting.stacktrace)), err=True)
        return
    typer.echo(f"Error [{int(error.code)}]: {error.message}", err=True)
    if reporting.stacktrace:
        for line in error.to_dict(stacktrace=True)["trace"]:
            typer.echo(line.rstrip("\n"), err=True)
