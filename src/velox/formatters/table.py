"""Rich table writer for interactive terminals.

Columns holding only numbers are right-aligned. A named Model titles the
table, and the caption carries the row count and the last refresh time.
"""

from __future__ import annotations

import shutil
from decimal import Decimal
from io import StringIO
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.table import Table

from velox.formatters.base import registry, text_rows

if TYPE_CHECKING:
    from collections.abc import Iterator

    from velox.formatters.base import Dataset

_NO_RESULTS = "No results"


def _clip(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[: limit - 1] + "…"


def _numeric(rows: list[dict[str, Any]], column: str) -> bool:
    values = [row[column] for row in rows if row.get(column) is not None]
    return bool(values) and all(
        isinstance(v, (int, float, Decimal)) and not isinstance(v, bool) for v in values
    )


def _caption(dataset: Dataset, count: int) -> str:
    text = f"{count} row" if count == 1 else f"{count} rows"
    refreshed = dataset.last_query()
    if refreshed is not None:
        text += f", refreshed {refreshed:%Y-%m-%d %H:%M:%S}"
    return text


class TableFormatter:
    def __init__(self, width: int = 40) -> None:
        self.width = width

    def format(self, dataset: Dataset) -> Iterator[str]:
        rows = dataset.data()
        if not rows:
            yield _NO_RESULTS
            return

        table = Table(title=getattr(dataset, "name", None), caption=_caption(dataset, len(rows)))
        for column in dataset.columns():
            table.add_column(column, justify="right" if _numeric(rows, column) else "left", no_wrap=True)
        for cells in text_rows(dataset):
            table.add_row(*(_clip(cell, self.width) for cell in cells))

        buf = StringIO()
        term_width = shutil.get_terminal_size((120, 24)).columns
        Console(file=buf, force_terminal=True, width=term_width).print(table)
        yield from buf.getvalue().rstrip("\n").splitlines()


registry.register("table", TableFormatter)
