"""Static SQL procedure."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from velox.core.error_codes import ErrorCode
from velox.core.exceptions import InputError
from velox.core.logging import get_logger
from velox.core.models import ResultSetOption
from velox.procedures.base import (
    ProcedureBase,
    Results,
    aggregate,
    fields_result_set,
    outcome_to_result_set,
)

if TYPE_CHECKING:
    from collections.abc import Iterable


class Query(ProcedureBase):
    """A single SQL statement without parameters."""

    def execute(self) -> Results:
        self._require_sql()
        conn = self._require_connection()
        log = get_logger("velox.procedures")
        log.debug("executing query", procedure=repr(self))

        outcome = conn.run(self.sql)
        if self.result_option is ResultSetOption.FIELDS_ONLY:
            rs = fields_result_set(outcome)
        else:
            rs = outcome_to_result_set(outcome, self.query_type)
        self._results = aggregate([rs], self.result_option)
        return self._results

    def feed(self, rows: Iterable[Any]) -> None:
        if list(rows):
            raise InputError(
                f"{self!r} does not accept input", code=ErrorCode.INPUT_NOT_SUPPORTED
            )

    def dump(self) -> list[dict[str, Any]]:
        return [{"type": self.query_type.name, "sql": self.sql, "parameters": []}]
