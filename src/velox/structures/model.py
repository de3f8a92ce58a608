"""Model: an in-memory dataset kept in sync with the database by diffing.

A Model is bound to a select procedure, executed on construction, and to
optional update/insert/delete procedures. After each write the select is
re-run and the snapshot is reconciled against the fresh rows: rows that
vanished are removed and rows that appeared are appended. A changed row
therefore surfaces as a delete plus an insert; the database is the source
of truth and the Model has no notion of row identity beyond
``key_column``.
"""

from __future__ import annotations

import locale
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, overload

from velox.core.criteria import Criterion, Diff, coerce_criteria
from velox.core.error_codes import ErrorCode
from velox.core.exceptions import CompilationError, InputError
from velox.core.logging import get_logger
from velox.core.models import ProcedureInput, QueryType, ResultSetOption
from velox.core.results import ResultSet, freeze, row_fingerprint
from velox.procedures.base import single_result
from velox.procedures.transaction import Transaction
from velox.structures.compare import condition_matches

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from velox.procedures.base import Procedure

Row = dict[str, Any]

_DML_TYPES: dict[str, QueryType] = {
    "update": QueryType.UPDATE,
    "insert": QueryType.INSERT,
    "delete": QueryType.DELETE,
}

_DESCRIPTOR_KEYS = frozenset({"where", "values"})
_DIGITS_RE = re.compile(r"(\d+)")


class ModelState(Enum):
    FRESH = "fresh"
    DIRTY = "dirty"
    SYNCHRONIZING = "synchronizing"


class SortMode(Enum):
    REGULAR = "regular"
    NUMERIC = "numeric"
    STRING = "string"
    LOCALE = "locale"
    NATURAL = "natural"
    CASE_INSENSITIVE = "case_insensitive"


@dataclass(frozen=True)
class SortKey:
    column: str
    descending: bool = False
    mode: SortMode = SortMode.REGULAR


def _numeric(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _regular(value: Any) -> tuple[Any, ...]:
    if isinstance(value, (int, float, Decimal)):
        return (0, value)
    if isinstance(value, str):
        return (1, value)
    return (2, str(value))


def _natural(value: Any) -> tuple[Any, ...]:
    parts = _DIGITS_RE.split(str(value))
    return tuple(int(p) if i % 2 else p.casefold() for i, p in enumerate(parts))


_SORT_KEYS = {
    SortMode.REGULAR: _regular,
    SortMode.NUMERIC: lambda v: (_numeric(v),),
    SortMode.STRING: lambda v: (str(v),),
    SortMode.LOCALE: lambda v: (locale.strxfrm(str(v)),),
    SortMode.NATURAL: _natural,
    SortMode.CASE_INSENSITIVE: lambda v: (str(v).casefold(),),
}


def _is_descriptor(row: Any) -> bool:
    return isinstance(row, dict) and bool(row) and set(row) <= _DESCRIPTOR_KEYS


class Model:
    """Query-backed dataset exposing ``columns()``, ``data()`` and ``last_query()``."""

    def __init__(
        self,
        select: Procedure | None,
        update: Procedure | None = None,
        insert: Procedure | None = None,
        delete: Procedure | None = None,
        *,
        key_column: str | None = None,
        name: str | None = None,
    ) -> None:
        if select is None:
            raise InputError(
                "The select procedure has not been defined",
                code=ErrorCode.PROCEDURE_UNDEFINED,
            )
        if select.query_type is not QueryType.PROC:
            select.query_type = QueryType.SELECT
        self._select = select
        self.key_column = key_column
        self.name = name

        self._procedures: dict[str, Procedure] = {}
        self._defaulted: set[str] = set()
        for verb, procedure in (("update", update), ("insert", insert), ("delete", delete)):
            if procedure is None:
                # Stand-in that accepts nothing; writes for this verb are ignored.
                procedure = Transaction(select.connection, name=f"{verb} (undefined)")
                self._defaulted.add(verb)
            else:
                if procedure.query_type is not QueryType.PROC:
                    procedure.query_type = _DML_TYPES[verb]
                if procedure.input_kind is ProcedureInput.PARAMETER_SETS:
                    procedure.result_option = ResultSetOption.NONE
            self._procedures[verb] = procedure

        self._data: list[Row] = []
        self._columns: list[str] = []
        self._last_query: datetime | None = None
        self._diff = Diff()
        self._filter: list[Criterion] = []
        self._state = ModelState.FRESH
        self.delay_select = False
        self.select()

    def __repr__(self) -> str:
        label = f" {self.name!r}" if self.name else ""
        return f"Model{label}(rows={len(self._data)}, state={self._state.value})"

    # Sequence behaviour

    def __len__(self) -> int:
        return len(self.data())

    def __iter__(self) -> Iterator[Row]:
        return iter(self.data())

    @overload
    def __getitem__(self, index: int) -> Row: ...

    @overload
    def __getitem__(self, index: slice) -> list[Row]: ...

    def __getitem__(self, index: int | slice) -> Row | list[Row]:
        rows = self.data()
        if isinstance(index, slice):
            return rows[index]
        try:
            return rows[index]
        except IndexError:
            raise InputError(
                f"Offset {index} is out of bounds", code=ErrorCode.OFFSET_OUT_OF_BOUNDS
            ) from None

    def __setitem__(self, index: int, row: Row) -> None:
        raise InputError(
            "Model rows cannot be assigned by index; use insert() or update()",
            code=ErrorCode.MODEL_ROW_ASSIGNMENT,
        )

    def __delitem__(self, index: int) -> None:
        row = self[index]
        self.delete([self._identity(row)])

    # Dataset contract

    @property
    def state(self) -> ModelState:
        return self._state

    def columns(self) -> list[str]:
        return list(self._columns)

    def data(self) -> list[Row]:
        if not self._filter:
            return list(self._data)
        return [row for row in self._data if self._matches_filter(row)]

    def last_query(self) -> datetime | None:
        return self._last_query

    def diff(self) -> Diff:
        """The diff detected by the most recent refresh."""
        return self._diff

    # Refresh

    def select(self, diff: bool = False) -> Diff:
        """Run the select procedure and replace or reconcile the snapshot."""
        log = get_logger("velox.model")
        results = self._select.execute()
        if isinstance(results, list) and not results:
            fresh = ResultSet()
        else:
            fresh = single_result(results)
        self._last_query = datetime.now(timezone.utc)

        if not diff:
            self._data = fresh.data()
            self._columns = fresh.columns()
            self._diff = Diff()
            self._state = ModelState.FRESH
            log.debug("model loaded", model=repr(self), rows=len(self._data))
            return self._diff

        new_rows = fresh.data()
        new_keys = {row_fingerprint(r) for r in new_rows}
        old_keys = {row_fingerprint(r) for r in self._data}

        survivors: list[Row] = []
        removed: list[Row] = []
        for row in self._data:
            (survivors if row_fingerprint(row) in new_keys else removed).append(row)

        added: list[Row] = []
        seen: set[tuple[Any, ...]] = set()
        for row in new_rows:
            key = row_fingerprint(row)
            if key not in old_keys and key not in seen:
                added.append(row)
                seen.add(key)

        self._data = survivors + added
        if fresh.columns():
            self._columns = fresh.columns()
        self._diff = Diff(
            delete=[Criterion.matching(r) for r in removed],
            insert=[Criterion.inserting(r) for r in added],
        )
        if self._state is not ModelState.SYNCHRONIZING:
            self._state = ModelState.FRESH
        log.debug(
            "model refreshed",
            model=repr(self),
            deleted=len(removed),
            inserted=len(added),
        )
        return self._diff

    # Writes

    def update(self, rows: Iterable[Any]) -> None:
        self._execute_dml("update", rows)

    def insert(self, rows: Iterable[Any]) -> None:
        self._execute_dml("insert", rows)

    def delete(self, rows: Iterable[Any]) -> None:
        self._execute_dml("delete", rows)

    def _execute_dml(self, verb: str, rows: Iterable[Any]) -> None:
        log = get_logger("velox.model")
        rows = list(rows)
        if verb in self._defaulted:
            log.warning("no procedure defined; rows ignored", model=repr(self), verb=verb, rows=len(rows))
            return

        procedure = self._procedures[verb]
        procedure.clear()
        procedure.feed(self._prepare_rows(verb, procedure, rows))
        procedure.execute()
        if self._state is not ModelState.SYNCHRONIZING:
            self._state = ModelState.DIRTY
        log.debug("model write", model=repr(self), verb=verb, rows=len(rows))

        if not self.delay_select:
            self.select(diff=True)

    def _input_kind(self, procedure: Procedure) -> ProcedureInput:
        if procedure.input_kind is ProcedureInput.STEPS:
            leading = procedure.leading_procedure  # type: ignore[attr-defined]
            return leading.input_kind if leading is not None else ProcedureInput.NONE
        return procedure.input_kind

    def _identity(self, row: Row) -> Row:
        if self.key_column and self.key_column in row:
            return {self.key_column: row[self.key_column]}
        return dict(row)

    def _prepare_rows(self, verb: str, procedure: Procedure, rows: list[Any]) -> list[Any]:
        kind = self._input_kind(procedure)
        prepared: list[Any] = []
        for row in rows:
            if _is_descriptor(row):
                row = coerce_criteria(row)[0]
            if kind is ProcedureInput.CRITERIA:
                prepared.append(row if isinstance(row, Criterion) else self._criterion_for(verb, row))
            elif isinstance(row, Criterion):
                prepared.append(row.parameters() if verb == "update" else row.row())
            else:
                prepared.append(row)
        return prepared

    def _criterion_for(self, verb: str, row: Row) -> Criterion:
        """Turn a plain data row into a descriptor for this verb."""
        if verb == "insert":
            return Criterion.inserting(row)
        if verb == "delete":
            return Criterion.matching(self._identity(row))
        if not self.key_column or self.key_column not in row:
            raise CompilationError(
                "Updating with plain rows needs a key column; pass where/values descriptors",
                code=ErrorCode.CRITERIA_KEYS,
            )
        values = {k: v for k, v in row.items() if k != self.key_column}
        return Criterion(where=[{self.key_column: ["=", row[self.key_column]]}], values=values)

    def synchronize(self, diff: Diff | dict[str, Any] | str) -> Diff:
        """Apply update, then delete, then insert, and refresh once at the end.

        The diff's ``select`` entries become the Model's filter. Steps run
        one after another; a failure leaves earlier steps applied.
        """
        if isinstance(diff, str):
            diff = Diff.from_json(diff)
        elif isinstance(diff, dict):
            diff = Diff.from_data(diff)

        self.delay_select = True
        self._state = ModelState.SYNCHRONIZING
        try:
            if diff.update:
                self.update(diff.update)
            if diff.delete:
                self.delete(diff.delete)
            if diff.insert:
                self.insert(diff.insert)
            if diff.select:
                self.set_filter(diff.select)
        finally:
            self.delay_select = False
            self._state = ModelState.DIRTY
        return self.select(diff=True)

    # Querying the snapshot

    def row(self, key: Any) -> Row | None:
        """The first row whose key column equals ``key``."""
        if not self.key_column:
            raise InputError("No key column is configured", code=ErrorCode.INVALID_COLUMN)
        for row in self._data:
            if row.get(self.key_column) == key:
                return row
        return None

    def count_distinct(self, column: str) -> int:
        if not self._data:
            return 0
        self._require_column(column)
        return len({freeze(row.get(column)) for row in self._data})

    def _require_column(self, column: str) -> None:
        if column not in self._columns:
            raise InputError(
                f"Column '{column}' does not exist in the result set",
                code=ErrorCode.INVALID_COLUMN,
            )

    def set_filter(self, criteria: Diff | Iterable[Any] | None = None) -> None:
        """Restrict data() to rows matching any of the select criteria."""
        if criteria is None:
            self._filter = []
            return
        if isinstance(criteria, Diff):
            criteria = criteria.select
        parsed = coerce_criteria(list(criteria))
        for criterion in parsed:
            for group in criterion.where or []:
                for column in group:
                    self._require_column(column)
        self._filter = parsed

    def _matches_filter(self, row: Row) -> bool:
        for criterion in self._filter:
            groups = criterion.where or [{}]
            for group in groups:
                if all(
                    condition_matches(row.get(column), column, condition)
                    for column, condition in group.items()
                ):
                    return True
        return False

    def sort(self, *keys: SortKey | str) -> None:
        """Reorder the snapshot in place by one or more columns.

        None sorts before every other value in ascending order.
        """
        sort_keys = [SortKey(k) if isinstance(k, str) else k for k in keys]
        for key in sort_keys:
            self._require_column(key.column)
        # Stable sorts applied from the least significant key.
        for key in reversed(sort_keys):
            transform = _SORT_KEYS[key.mode]

            def _key(row: Row, column: str = key.column, fn: Any = transform) -> tuple[Any, ...]:
                value = row.get(column)
                if value is None:
                    return (0,)
                return (1, *fn(value))

            self._data.sort(key=_key, reverse=key.descending)
