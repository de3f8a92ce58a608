"""ResultSet: the row collection every procedure produces.

Rows are column-to-value mappings kept in insertion order. Columns are
taken from the first row and only grow through merge().
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, overload

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator
    from datetime import datetime

Row = dict[str, Any]


def freeze(value: Any) -> Any:
    """Hashable stand-in for a row value (lists, dicts and buffers included)."""
    if isinstance(value, dict):
        return tuple(sorted((k, freeze(v)) for k, v in value.items()))
    if isinstance(value, (list, tuple)):
        return tuple(freeze(v) for v in value)
    if isinstance(value, (set, frozenset)):
        return frozenset(freeze(v) for v in value)
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    return value


def row_fingerprint(row: Row) -> tuple[Any, ...]:
    """Value-equality key for a row, independent of column order."""
    return tuple(sorted((k, freeze(v)) for k, v in row.items()))


class ResultSet:
    """Ordered collection of rows returned by a procedure."""

    def __init__(
        self, rows: Iterable[Row] | None = None, columns: Iterable[str] | None = None
    ) -> None:
        self._rows: list[Row] = []
        self._columns: list[str] = list(columns or ())
        self._affected: list[Any] = []
        self.affected_count = 0
        for row in rows or ():
            self.append(row)

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[Row]:
        return iter(self._rows)

    @overload
    def __getitem__(self, index: int) -> Row: ...

    @overload
    def __getitem__(self, index: slice) -> list[Row]: ...

    def __getitem__(self, index: int | slice) -> Row | list[Row]:
        return self._rows[index]

    def __setitem__(self, index: int, row: Row) -> None:
        self._rows[index] = dict(row)

    def __delitem__(self, index: int) -> None:
        del self._rows[index]

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ResultSet):
            return self._rows == other._rows
        if isinstance(other, list):
            return self._rows == other
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"ResultSet(rows={len(self._rows)}, columns={self._columns!r})"

    def append(self, row: Row) -> None:
        if not self._rows and not self._columns:
            self._columns = list(row)
        self._rows.append(dict(row))

    def merge(self, other: ResultSet, filter_duplicates: bool = False) -> None:
        """Append another ResultSet's rows, like SQL UNION ALL.

        With filter_duplicates, rows already present are skipped (UNION).
        The other ResultSet is left unchanged.
        """
        seen = {row_fingerprint(r) for r in self._rows} if filter_duplicates else None
        for row in other:
            if seen is not None:
                key = row_fingerprint(row)
                if key in seen:
                    continue
                seen.add(key)
            self._rows.append(dict(row))
        self._extend_columns_from(other.columns())
        self.append_affected(other.last_affected())
        self.affected_count += other.affected_count

    def columns(self) -> list[str]:
        return list(self._columns)

    def data(self) -> list[Row]:
        return list(self._rows)

    def last_query(self) -> datetime | None:
        return None

    def last_affected(self) -> list[Any]:
        """Identities of the rows touched by the write that produced this set."""
        return list(self._affected)

    def append_affected(self, affected: Iterable[Any]) -> None:
        self._affected.extend(affected)

    def _extend_columns_from(self, names: Iterable[str]) -> None:
        known = set(self._columns)
        for name in names:
            if name not in known:
                self._columns.append(name)
                known.add(name)
