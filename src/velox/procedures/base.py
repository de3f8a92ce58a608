"""Shared procedure interface and result aggregation."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from velox.core.error_codes import ErrorCode
from velox.core.exceptions import CompilationError, ConsistencyError, ExecutionError
from velox.core.models import (
    ProcedureInput,
    QueryType,
    ResultSetOption,
    StatementOutcome,
    infer_query_type,
)
from velox.core.results import ResultSet

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from velox.core.connection import Connection

Results = ResultSet | list[ResultSet]


@runtime_checkable
class Procedure(Protocol):
    """Anything executable against a connection that yields a ResultSet."""

    connection: Connection | None
    query_type: QueryType
    result_option: ResultSetOption
    name: str | None
    input_kind: ProcedureInput

    def execute(self) -> Any: ...

    def get_results(self) -> Any: ...

    def clear(self) -> None: ...

    def feed(self, rows: Iterable[Any]) -> None: ...

    def last_affected(self) -> list[Any]: ...

    def dump(self) -> list[dict[str, Any]]: ...


def coerce_option(option: Any) -> ResultSetOption:
    try:
        return ResultSetOption(option)
    except ValueError:
        raise CompilationError(
            f"Invalid result option: {option!r}", code=ErrorCode.INVALID_RESULT_OPTION
        ) from None


def outcome_to_result_set(outcome: StatementOutcome, query_type: QueryType) -> ResultSet:
    """Rows of one round trip, plus the keys a write touched."""
    rs = ResultSet(outcome.rows, columns=[c.name for c in outcome.columns])
    if query_type is not QueryType.SELECT and outcome.returned_rows:
        first = outcome.columns[0].name
        rs.append_affected(row[first] for row in outcome.rows)
    elif query_type is QueryType.INSERT and outcome.last_row_id:
        rs.append_affected([outcome.last_row_id])
    rs.affected_count = outcome.row_count
    return rs


def fields_result_set(outcome: StatementOutcome) -> ResultSet:
    rows = [
        {"name": c.name, "type_code": c.type_code, "type_name": c.type_name}
        for c in outcome.columns
    ]
    return ResultSet(rows, columns=["name", "type_code", "type_name"])


def aggregate(result_sets: Sequence[ResultSet], option: ResultSetOption) -> Results:
    """Combine per-execution ResultSets according to the result option."""
    if option is ResultSetOption.ARRAY:
        return list(result_sets)

    combined = ResultSet()
    if option is ResultSetOption.NONE:
        for rs in result_sets:
            combined.append_affected(rs.last_affected())
            combined.affected_count += rs.affected_count
        return combined

    dedupe = option in (ResultSetOption.UNION, ResultSetOption.FIELDS_ONLY)
    for rs in result_sets:
        combined.merge(rs, filter_duplicates=dedupe)
    return combined


def single_result(results: Results) -> ResultSet:
    """Unwrap ARRAY output where exactly one ResultSet is expected."""
    if isinstance(results, ResultSet):
        return results
    if len(results) == 1:
        return results[0]
    raise ConsistencyError(
        "Multiple result sets returned, check the result option",
        code=ErrorCode.MULTIPLE_RESULT_SETS,
    )


class ProcedureBase:
    """State common to Query, PreparedStatement and StatementSet."""

    input_kind = ProcedureInput.NONE

    def __init__(
        self,
        connection: Connection | None,
        sql: str,
        query_type: QueryType | None = None,
        result_option: ResultSetOption | int = ResultSetOption.UNION_ALL,
        name: str | None = None,
    ) -> None:
        self.connection = connection
        self.sql = sql
        self.query_type = QueryType(query_type) if query_type is not None else infer_query_type(sql)
        self.result_option = coerce_option(result_option)
        self.name = name
        self._results: Results | None = None

    def __repr__(self) -> str:
        label = f" {self.name!r}" if self.name else ""
        return f"{type(self).__name__}{label}({self.query_type.name})"

    def __call__(self) -> Results:
        return self.execute()

    def execute(self) -> Results:
        raise NotImplementedError

    def _require_connection(self) -> Connection:
        if self.connection is None:
            raise ExecutionError(
                f"{self!r} is not bound to a connection",
                code=ErrorCode.TRANSACTION_NO_CONNECTION,
            )
        return self.connection

    def _require_sql(self) -> None:
        if not self.sql or not self.sql.strip():
            raise ExecutionError("SQL has not been set", code=ErrorCode.SQL_NOT_SET)

    def get_results(self) -> Results:
        if self._results is None:
            raise ExecutionError(
                "Results are not yet available; execute the procedure first",
                code=ErrorCode.RESULTS_NOT_AVAILABLE,
            )
        return self._results

    def last_affected(self) -> list[Any]:
        if self._results is None:
            return []
        if isinstance(self._results, ResultSet):
            return self._results.last_affected()
        affected: list[Any] = []
        for rs in self._results:
            affected.extend(rs.last_affected())
        return affected

    def clear(self) -> None:
        self._results = None
