"""CSV writer: an optional header record, then one RFC 4180 record per row."""

from __future__ import annotations

import csv
from io import StringIO
from typing import TYPE_CHECKING

from velox.formatters.base import registry, text_rows

if TYPE_CHECKING:
    from collections.abc import Iterator

    from velox.formatters.base import Dataset


class CSVFormatter:
    def __init__(self, no_header: bool = False) -> None:
        self.no_header = no_header

    def format(self, dataset: Dataset) -> Iterator[str]:
        buf = StringIO()
        writer = csv.writer(buf)

        def record(cells: list[str]) -> str:
            writer.writerow(cells)
            line = buf.getvalue().removesuffix(writer.dialect.lineterminator)
            buf.seek(0)
            buf.truncate()
            return line

        if not self.no_header:
            yield record(dataset.columns())
        for cells in text_rows(dataset):
            yield record(cells)


registry.register("csv", CSVFormatter)
