"""Parameterized SQL with batched parameter sets."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from velox.core.criteria import Criterion, is_scalar
from velox.core.error_codes import ErrorCode
from velox.core.exceptions import CompilationError
from velox.core.logging import get_logger
from velox.core.models import ProcedureInput, QueryType, ResultSetOption
from velox.core.placeholders import scan
from velox.core.results import ResultSet
from velox.procedures.base import (
    ProcedureBase,
    Results,
    aggregate,
    fields_result_set,
    outcome_to_result_set,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from velox.core.connection import Connection

ParameterSet = dict[str, Any] | list[Any]


class PreparedStatement(ProcedureBase):
    """One SQL text executed once per parameter set.

    Placeholders are ``:name`` or ``?``; a statement may not mix the two.
    Parameter sets are validated as they are added and persist across
    executions until clear() is called.
    """

    input_kind = ProcedureInput.PARAMETER_SETS

    def __init__(
        self,
        connection: Connection | None,
        sql: str,
        query_type: QueryType | None = None,
        result_option: ResultSetOption | int = ResultSetOption.UNION_ALL,
        name: str | None = None,
        key_prefix: str = "",
    ) -> None:
        super().__init__(connection, sql, query_type, result_option, name)
        self.key_prefix = key_prefix
        self._info = scan(sql)
        if self._info.is_mixed:
            raise CompilationError(
                "Named and positional placeholders cannot be mixed",
                code=ErrorCode.MIXED_PLACEHOLDERS,
            )
        self._parameter_sets: list[ParameterSet] = []

    @property
    def placeholders(self) -> tuple[str, ...]:
        return self._info.names

    @property
    def parameter_sets(self) -> list[ParameterSet]:
        return [p.copy() for p in self._parameter_sets]

    def add_parameter_set(
        self, params: Mapping[str, Any] | Sequence[Any], key_prefix: str | None = None
    ) -> None:
        """Validate one set of placeholder values and queue it for execution."""
        prefix = self.key_prefix if key_prefix is None else key_prefix
        if isinstance(params, Mapping):
            bound: ParameterSet = self._bind_named(params, prefix)
        elif isinstance(params, (list, tuple)):
            bound = self._bind_positional(params)
        else:
            raise CompilationError(
                f"Parameter set must be a mapping or a sequence, got {type(params).__name__}",
                code=ErrorCode.PARAMETER_SET_MISMATCH,
            )
        values = bound.values() if isinstance(bound, dict) else bound
        for value in values:
            if not is_scalar(value):
                raise CompilationError(
                    "Parameter values must be scalars or null",
                    code=ErrorCode.NON_SCALAR_VALUE,
                )
        self._parameter_sets.append(bound)

    def _bind_named(self, params: Mapping[str, Any], prefix: str) -> dict[str, Any]:
        if self._info.positional:
            raise CompilationError(
                "Statement uses positional placeholders; pass a sequence",
                code=ErrorCode.PARAMETER_SET_MISMATCH,
            )
        bound: dict[str, Any] = {}
        for key, value in params.items():
            name = key[len(prefix):] if prefix and key.startswith(prefix) else key
            name = name.lstrip(":")
            if name not in self._info.names:
                raise CompilationError(
                    f"Unknown placeholder: '{key}'", code=ErrorCode.PLACEHOLDER_UNKNOWN
                )
            bound[name] = value
        missing = [n for n in self._info.names if n not in bound]
        if missing:
            raise CompilationError(
                f"Parameter set is missing placeholders: {', '.join(missing)}",
                code=ErrorCode.PARAMETER_SET_MISMATCH,
            )
        return bound

    def _bind_positional(self, params: Sequence[Any]) -> list[Any]:
        if self._info.is_named:
            raise CompilationError(
                "Statement uses named placeholders; pass a mapping",
                code=ErrorCode.PARAMETER_SET_MISMATCH,
            )
        if len(params) != self._info.positional:
            raise CompilationError(
                f"Expected {self._info.positional} positional values, got {len(params)}",
                code=ErrorCode.PARAMETER_SET_MISMATCH,
            )
        return list(params)

    def feed(self, rows: Iterable[Any]) -> None:
        """Add rows as parameter sets, keeping only the columns the SQL uses."""
        for row in rows:
            if isinstance(row, Criterion):
                row = row.parameters()
            if isinstance(row, Mapping) and self._info.is_named:
                row = {k: v for k, v in row.items() if k.lstrip(":") in self._info.names}
            self.add_parameter_set(row)

    def execute(self) -> Results:
        self._require_sql()
        conn = self._require_connection()
        log = get_logger("velox.procedures")

        param_sets: list[ParameterSet | None] = list(self._parameter_sets)
        if not param_sets:
            if self._info.names or self._info.positional:
                raise CompilationError(
                    f"{self!r} has placeholders but no parameter sets",
                    code=ErrorCode.PARAMETER_SET_MISMATCH,
                )
            param_sets = [None]

        log.debug("executing prepared statement", procedure=repr(self), sets=len(param_sets))
        if (
            self.result_option is ResultSetOption.NONE
            and self.query_type in (QueryType.UPDATE, QueryType.DELETE)
            and param_sets[0] is not None
        ):
            rs = ResultSet()
            rs.affected_count = conn.run_many(self.sql, param_sets)  # type: ignore[arg-type]
            self._results = rs
            return rs

        per_set: list[ResultSet] = []
        for params in param_sets:
            outcome = conn.run(self.sql, params)
            if self.result_option is ResultSetOption.FIELDS_ONLY:
                per_set.append(fields_result_set(outcome))
            else:
                per_set.append(outcome_to_result_set(outcome, self.query_type))
        self._results = aggregate(per_set, self.result_option)
        return self._results

    def clear(self) -> None:
        super().clear()
        self._parameter_sets = []

    def dump(self) -> list[dict[str, Any]]:
        return [
            {
                "type": self.query_type.name,
                "sql": self.sql,
                "parameters": self.parameter_sets,
            }
        ]
