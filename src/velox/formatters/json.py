"""JSON formatter for dataset output.

Plain mode writes the rows as an array of objects. Envelope mode writes
``{"lastQuery": ..., "columns": [...], "data": [...]}`` for consumers that
track refreshes.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from velox.formatters.base import registry

if TYPE_CHECKING:
    from collections.abc import Iterator

    from velox.formatters.base import Dataset


def _serialize_value(val: Any) -> Any:
    if isinstance(val, (int, float, str, bool, type(None))):
        return val
    return str(val)


class JSONFormatter:
    def __init__(self, compact: bool = False, envelope: bool = False) -> None:
        self.compact = compact
        self.envelope = envelope

    def format(self, dataset: Dataset) -> Iterator[str]:
        rows = [
            {name: _serialize_value(val) for name, val in row.items()}
            for row in dataset.data()
        ]
        payload: Any = rows
        if self.envelope:
            last = dataset.last_query()
            payload = {
                "lastQuery": last.isoformat() if last is not None else None,
                "columns": dataset.columns(),
                "data": rows,
            }

        if self.compact:
            yield json.dumps(payload, default=str)
        else:
            yield json.dumps(payload, indent=2, default=str)


registry.register("json", JSONFormatter)
