"""Criteria-driven statement compiler.

A StatementSet holds a SQL template with ``<<columns>>``, ``<<values>>`` and
``<<condition>>`` tokens plus criteria descriptors. Descriptors are grouped by
shape (value columns, and per AND-group the column/operator/arity triples) so
one PreparedStatement is generated per shape, with every descriptor of that
shape becoming a parameter set:

    SELECT <<columns>> FROM addresses WHERE <<condition>>
    INSERT INTO addresses (<<columns>>) VALUES (<<values>>)
    UPDATE addresses SET <<values>> WHERE <<condition>>
    DELETE FROM addresses WHERE <<condition>>
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from velox.core.criteria import (
    NULL_OPERATORS,
    RANGE_OPERATORS,
    SET_OPERATORS,
    Criterion,
    Diff,
    coerce_criteria,
    is_scalar,
    validate_condition,
    validate_identifier,
)
from velox.core.error_codes import ErrorCode
from velox.core.exceptions import CompilationError
from velox.core.logging import get_logger
from velox.core.models import ProcedureInput, QueryType, ResultSetOption
from velox.core.results import ResultSet
from velox.procedures.base import ProcedureBase, Results, aggregate
from velox.procedures.prepared import PreparedStatement

if TYPE_CHECKING:
    from collections.abc import Iterable

    from velox.core.connection import Connection

Shape = tuple[tuple[str, ...], tuple[tuple[tuple[str, str, int], ...], ...]]

# Keys each query type requires on a descriptor (and the only ones allowed).
_REQUIRED_KEYS: dict[QueryType, frozenset[str]] = {
    QueryType.SELECT: frozenset({"where"}),
    QueryType.DELETE: frozenset({"where"}),
    QueryType.INSERT: frozenset({"values"}),
    QueryType.UPDATE: frozenset({"where", "values"}),
}


def _shape(criterion: Criterion) -> Shape:
    values = tuple(sorted(criterion.values or ()))
    groups = []
    for group in criterion.where or []:
        leaves = []
        for column, condition in group.items():
            op, operands = validate_condition(column, condition)
            arity = len(operands[0]) if op in SET_OPERATORS else len(operands)
            leaves.append((column, op, arity))
        groups.append(tuple(sorted(leaves)))
    return values, tuple(groups)


class StatementSet(ProcedureBase):
    """Compiles criteria into the fewest PreparedStatements and runs them."""

    input_kind = ProcedureInput.CRITERIA

    def __init__(
        self,
        connection: Connection | None,
        sql: str,
        query_type: QueryType | None = None,
        result_option: ResultSetOption | int = ResultSetOption.UNION_ALL,
        name: str | None = None,
        criteria: Any = None,
    ) -> None:
        super().__init__(connection, sql, query_type, result_option, name)
        if self.query_type is QueryType.PROC:
            raise CompilationError(
                "Stored procedure calls are not supported by StatementSet",
                code=ErrorCode.STORED_PROCEDURE_UNSUPPORTED,
            )
        self._criteria: list[Criterion] = []
        if criteria is not None:
            self.add_criteria(criteria)

    @property
    def criteria(self) -> list[Criterion]:
        return list(self._criteria)

    def add_criteria(self, criteria: Any) -> None:
        """Validate and queue descriptors (a list, a single one, or a Diff)."""
        if isinstance(criteria, Diff):
            criteria = {
                QueryType.SELECT: criteria.select,
                QueryType.INSERT: criteria.insert,
                QueryType.UPDATE: criteria.update,
                QueryType.DELETE: criteria.delete,
            }[self.query_type]
        required = _REQUIRED_KEYS[self.query_type]
        accepted: list[Criterion] = []
        for index, criterion in enumerate(coerce_criteria(criteria)):
            present = {k for k in ("where", "values") if getattr(criterion, k) is not None}
            if present != required or (criterion.values is not None and not criterion.values):
                raise CompilationError(
                    f"Element at index {index} does not contain the correct keys "
                    f"for {self.query_type.name}: expected {sorted(required)}",
                    code=ErrorCode.CRITERIA_KEYS,
                )
            for column, value in (criterion.values or {}).items():
                validate_identifier(column)
                if not is_scalar(value):
                    raise CompilationError(
                        f"Value for '{column}' is not a scalar or null",
                        code=ErrorCode.NON_SCALAR_VALUE,
                    )
            _shape(criterion)
            accepted.append(criterion)
        self._criteria.extend(accepted)

    def feed(self, rows: Iterable[Any]) -> None:
        self.add_criteria(list(rows))

    def compile(self) -> list[PreparedStatement]:
        """One PreparedStatement per distinct criteria shape, in first-seen order."""
        if not self._criteria:
            raise CompilationError(
                "Criteria must be set before a StatementSet can be executed",
                code=ErrorCode.CRITERIA_NOT_SET,
            )
        groups: dict[Shape, list[Criterion]] = {}
        for criterion in self._criteria:
            groups.setdefault(_shape(criterion), []).append(criterion)

        statements = []
        for members in groups.values():
            stmt = PreparedStatement(
                self.connection,
                self._render(members[0]),
                self.query_type,
                self.result_option,
                name=self.name,
            )
            for criterion in members:
                stmt.add_parameter_set(self._parameters(criterion))
            statements.append(stmt)
        return statements

    def _render(self, criterion: Criterion) -> str:
        values = sorted(criterion.values or ())
        if self.query_type is QueryType.UPDATE:
            values_sql = ", ".join(f"{c} = :v{i}" for i, c in enumerate(values))
        else:
            values_sql = ", ".join(f":v{i}" for i in range(len(values)))
        if self.query_type in (QueryType.INSERT, QueryType.UPDATE):
            columns_sql = ", ".join(values)
        else:
            columns_sql = "*"
        return (
            self.sql.replace("<<condition>>", self._render_condition(criterion))
            .replace("<<columns>>", columns_sql)
            .replace("<<values>>", values_sql)
        )

    def _render_condition(self, criterion: Criterion) -> str:
        ors = []
        for g, group in enumerate(criterion.where or []):
            ands = []
            for i, (column, condition) in enumerate(sorted(group.items())):
                op, operands = validate_condition(column, condition)
                name = f"w{g}_{i}"
                if op in NULL_OPERATORS:
                    ands.append(f"{column} {op}")
                elif op in RANGE_OPERATORS:
                    ands.append(f"{column} {op} :{name}_0 AND :{name}_1")
                elif op in SET_OPERATORS:
                    items = ", ".join(f":{name}_{k}" for k in range(len(operands[0])))
                    ands.append(f"{column} {op} ({items})")
                else:
                    ands.append(f"{column} {op} :{name}")
            if len(ands) == 1:
                ors.append(ands[0])
            elif ands:
                ors.append("(" + " AND ".join(ands) + ")")
        if not ors:
            return "1=1"
        if len(ors) == 1:
            return ors[0]
        return "(" + " OR ".join(ors) + ")"

    def _parameters(self, criterion: Criterion) -> dict[str, Any]:
        # Names come from leaf positions, never from column text.
        params: dict[str, Any] = {}
        for g, group in enumerate(criterion.where or []):
            for i, (column, condition) in enumerate(sorted(group.items())):
                op, operands = validate_condition(column, condition)
                name = f"w{g}_{i}"
                if op in NULL_OPERATORS:
                    continue
                if op in RANGE_OPERATORS:
                    params[f"{name}_0"], params[f"{name}_1"] = operands
                elif op in SET_OPERATORS:
                    for k, value in enumerate(operands[0]):
                        params[f"{name}_{k}"] = value
                else:
                    params[name] = operands[0]
        values = criterion.values or {}
        for i, column in enumerate(sorted(values)):
            params[f"v{i}"] = values[column]
        return params

    def execute(self) -> Results:
        conn = self._require_connection()
        statements = self.compile()
        log = get_logger("velox.procedures")
        log.debug(
            "executing statement set",
            procedure=repr(self),
            criteria=len(self._criteria),
            statements=len(statements),
        )

        collected: list[ResultSet] = []
        with conn.transaction():
            for stmt in statements:
                results = stmt.execute()
                if isinstance(results, list):
                    collected.extend(results)
                else:
                    collected.append(results)
        self._results = aggregate(collected, self.result_option)
        return self._results

    def clear(self) -> None:
        super().clear()
        self._criteria = []

    def dump(self) -> list[dict[str, Any]]:
        dumped = []
        for stmt in self.compile():
            dumped.extend(stmt.dump())
        return dumped
