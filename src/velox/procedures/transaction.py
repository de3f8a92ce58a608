"""Transaction: ordered procedures and functions across connections.

Each connection a step touches is placed into a transaction on first use.
A failing step rolls back every touched connection and aborts the rest;
after the last step every touched connection is committed, and commit
failures are collected rather than short-circuited.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import sentry_sdk

from velox.core.error_codes import ErrorCode
from velox.core.exceptions import (
    CommitError,
    CompilationError,
    ExecutionError,
    TransactionError,
    VeloxError,
)
from velox.core.logging import bound_context, get_logger
from velox.core.models import ProcedureInput, QueryType, ResultSetOption
from velox.procedures.query import Query

if TYPE_CHECKING:
    from collections.abc import Iterable

    from velox.core.cancellation import CancellationToken
    from velox.core.connection import Connection
    from velox.core.results import ResultSet
    from velox.procedures.base import Procedure

StepFunction = Callable[..., Any]


@dataclass
class Step:
    """One entry of the execution order: a procedure or a function."""

    target: Any
    name: str | None = None
    arguments: list[Any] = field(default_factory=list)

    @property
    def is_function(self) -> bool:
        return not hasattr(self.target, "input_kind")

    def describe(self) -> dict[str, Any]:
        if self.is_function:
            label = getattr(self.target, "__name__", repr(self.target))
            return {"name": self.name, "function": label, "arguments": self.arguments}
        try:
            statements = self.target.dump()
        except CompilationError:
            statements = []
        return {
            "name": self.name,
            "procedure": repr(self.target),
            "statements": statements,
            "arguments": self.arguments,
        }


class Transaction:
    """Runs steps in order with all-or-nothing semantics across connections."""

    input_kind = ProcedureInput.STEPS
    query_type = QueryType.PROC
    result_option = ResultSetOption.ARRAY

    def __init__(
        self,
        connection: Connection | None = None,
        name: str | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> None:
        self.connection = connection
        self.name = name
        self.cancel_token = cancel_token
        self._steps: list[Step] = []
        self._results: list[Any] = []
        self._touched: list[Connection] = []
        self._saved_tokens: dict[int, CancellationToken | None] = {}
        self._position = 0
        self._aborted = False
        self._last_affected: list[Any] = []

    def __repr__(self) -> str:
        label = f" {self.name!r}" if self.name else ""
        return f"Transaction{label}(steps={len(self._steps)})"

    def __len__(self) -> int:
        return len(self._steps)

    def __call__(self) -> Any:
        return self.execute()

    # Building

    def add_query(
        self,
        procedure: Procedure | str,
        connection: Connection | None = None,
        name: str | None = None,
    ) -> None:
        """Append a procedure; a SQL string becomes a Query on the given or base connection."""
        if isinstance(procedure, str):
            target = connection or self.connection
            if target is None:
                raise TransactionError(
                    "A SQL string step needs a connection and the Transaction has none",
                    code=ErrorCode.TRANSACTION_NO_CONNECTION,
                )
            procedure = Query(target, procedure, name=name)
        elif connection is not None:
            procedure.connection = connection
        elif procedure.connection is None:
            if self.connection is None:
                raise TransactionError(
                    f"{procedure!r} has no connection and the Transaction has none",
                    code=ErrorCode.TRANSACTION_NO_CONNECTION,
                )
            procedure.connection = self.connection
        self._steps.append(Step(procedure, name or procedure.name))

    def add_function(self, fn: StepFunction, name: str | None = None) -> None:
        """Append a function called as ``fn(previous_result, next_procedure, *arguments)``."""
        self._steps.append(Step(fn, name))

    @property
    def leading_procedure(self) -> Any:
        """The first procedure step, which receives Transaction-level input."""
        for step in self._steps:
            if not step.is_function:
                return step.target
        return None

    def add_parameter_set(self, params: Any, key_prefix: str | None = None) -> None:
        leading = self.leading_procedure
        if leading is None or leading.input_kind is not ProcedureInput.PARAMETER_SETS:
            raise TransactionError(
                "Parameter sets need a leading PreparedStatement",
                code=ErrorCode.PARAMETERS_WITHOUT_PREPARED,
            )
        leading.add_parameter_set(params, key_prefix)

    def add_criteria(self, criteria: Any) -> None:
        leading = self.leading_procedure
        if leading is None or leading.input_kind is not ProcedureInput.CRITERIA:
            raise TransactionError(
                "Criteria need a leading StatementSet",
                code=ErrorCode.CRITERIA_WITHOUT_STATEMENT_SET,
            )
        leading.add_criteria(criteria)

    def feed(self, rows: Iterable[Any]) -> None:
        leading = self.leading_procedure
        if leading is None:
            raise TransactionError(
                "Input needs a leading procedure",
                code=ErrorCode.PARAMETERS_WITHOUT_PREPARED,
            )
        leading.feed(rows)

    def add_step_arguments(self, arguments: dict[int | str, Any]) -> None:
        """Attach arguments to steps by index or by name.

        Procedure steps receive them as input before running; function steps
        receive them as extra positional arguments.
        """
        for key, args in arguments.items():
            values = list(args) if isinstance(args, (list, tuple)) else [args]
            if isinstance(key, int):
                self._steps[key].arguments = values
                continue
            for step in self._steps:
                if step.name == key:
                    step.arguments = values

    # Execution

    def _touch(self, conn: Connection) -> None:
        if any(c is conn for c in self._touched):
            return
        self._saved_tokens[id(conn)] = conn.cancel_token
        if self.cancel_token is not None:
            conn.cancel_token = self.cancel_token
        conn.begin_transaction()
        self._touched.append(conn)

    def _release(self) -> None:
        for conn in self._touched:
            conn.cancel_token = self._saved_tokens.get(id(conn))
        self._touched = []
        self._saved_tokens = {}

    def _check_usable(self) -> None:
        if self._aborted:
            raise TransactionError(
                "Transaction was aborted and cannot be reused",
                code=ErrorCode.TRANSACTION_ABORTED,
            )

    def execute_next(self) -> bool:
        """Run the next step. Returns False when no steps remain."""
        self._check_usable()
        if self._position >= len(self._steps):
            return False

        log = get_logger("velox.transaction")
        index = self._position
        step = self._steps[index]
        log.debug("running step", transaction=repr(self), step=index, name=step.name)
        try:
            if self.cancel_token is not None:
                self.cancel_token.check()
            if step.is_function:
                previous = self._results[-1] if self._results else None
                following = self._steps[index + 1].target if index + 1 < len(self._steps) else None
                result = step.target(previous, following, *step.arguments)
            else:
                procedure = step.target
                if procedure.connection is None:
                    raise ExecutionError(
                        f"{procedure!r} is not bound to a connection",
                        code=ErrorCode.TRANSACTION_NO_CONNECTION,
                    )
                self._touch(procedure.connection)
                if step.arguments:
                    procedure.feed(step.arguments)
                result = procedure.execute()
                self._last_affected = procedure.last_affected()
        except Exception as e:
            code = (
                ErrorCode.USER_FUNCTION_FAILED
                if step.is_function
                else ErrorCode.TRANSACTION_STEP_FAILED
            )
            kind = "User function" if step.is_function else "Procedure"
            log.error("step failed", transaction=repr(self), step=index, error=str(e))
            rollback_errors = self._rollback_touched()
            self._aborted = True
            raise TransactionError(
                f"{kind} at step {index} failed: {e}",
                code=code,
                step_index=index,
                rollback_errors=rollback_errors,
            ) from e

        self._results.append(result)
        self._position += 1
        return True

    def execute(self) -> Any:
        """Run all remaining steps and commit. Returns the last step's result."""
        self._check_usable()
        with (
            bound_context(transaction=self.name or "anonymous"),
            sentry_sdk.start_span(op="db.transaction", description=repr(self)) as span,
        ):
            span.set_data("steps", len(self._steps))
            while self.execute_next():
                pass
            self.commit()
        return self.get_results()

    def commit(self) -> None:
        """Commit every touched connection, attempting all even if some fail."""
        log = get_logger("velox.transaction")
        failures: list[Exception] = []
        for conn in self._touched:
            try:
                if conn.in_transaction:
                    conn.commit()
            except VeloxError as e:
                log.error("commit failed", target=conn.describe(), error=str(e))
                failures.append(e)
        committed = len(self._touched) - len(failures)
        self._release()
        if failures:
            self._aborted = True
            raise CommitError(
                f"{len(failures)} connection(s) failed to commit", failures
            )
        log.debug("transaction committed", transaction=repr(self), connections=committed)

    def rollback(self) -> None:
        """Roll back every touched connection and abort the Transaction."""
        errors = self._rollback_touched()
        self._aborted = True
        if errors:
            raise TransactionError(
                "Rollback failed on one or more connections",
                code=ErrorCode.TRANSACTION_ABORTED,
                rollback_errors=errors,
            )

    def _rollback_touched(self) -> list[Exception]:
        log = get_logger("velox.transaction")
        errors: list[Exception] = []
        for conn in self._touched:
            if not conn.in_transaction:
                continue
            try:
                conn.rollback()
            except VeloxError as e:
                log.error("rollback failed", target=conn.describe(), error=str(e))
                errors.append(e)
        self._release()
        return errors

    # Results

    def get_results(self, index: int | None = None) -> Any:
        if index is None:
            if not self._results:
                raise ExecutionError(
                    "Results are not yet available; execute the Transaction first",
                    code=ErrorCode.RESULTS_NOT_AVAILABLE,
                )
            return self._results[-1]
        try:
            return self._results[index]
        except IndexError:
            raise ExecutionError(
                f"No results for step {index}", code=ErrorCode.RESULTS_NOT_AVAILABLE
            ) from None

    def last_affected(self) -> list[Any]:
        return list(self._last_affected)

    def clear(self) -> None:
        """Reset execution state and drop the input pending on every procedure step.

        Step arguments stay attached and are fed again, once, on the next run.
        """
        for step in self._steps:
            if not step.is_function:
                step.target.clear()
        self._results = []
        self._position = 0
        self._aborted = False
        self._last_affected = []

    def dump(self) -> list[dict[str, Any]]:
        return self.plan()

    def plan(self) -> list[dict[str, Any]]:
        return [step.describe() for step in self._steps]

    @property
    def results(self) -> list[ResultSet | Any]:
        return list(self._results)
