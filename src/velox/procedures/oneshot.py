"""Run a single procedure and hand back its results."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from velox.core.error_codes import ErrorCode
from velox.core.exceptions import InputError
from velox.core.models import ProcedureInput

if TYPE_CHECKING:
    from velox.procedures.base import Procedure


def one_shot(procedure: Procedure, input: Any = None) -> Any:
    """Feed optional input to a procedure, execute it and return its results.

    Parameter sets go to a PreparedStatement, criteria to a StatementSet and
    step arguments (``{index_or_name: args}``) to a Transaction, which is run
    to completion and committed. A Query accepts no input.
    """
    if input:
        kind = procedure.input_kind
        if kind is ProcedureInput.NONE:
            raise InputError(
                "Input is not supported for Query objects",
                code=ErrorCode.INPUT_NOT_SUPPORTED,
            )
        if kind is ProcedureInput.STEPS:
            procedure.add_step_arguments(input)  # type: ignore[attr-defined]
        elif kind is ProcedureInput.CRITERIA:
            procedure.add_criteria(input)  # type: ignore[attr-defined]
        elif isinstance(input, dict):
            procedure.add_parameter_set(input)  # type: ignore[attr-defined]
        else:
            for params in input:
                procedure.add_parameter_set(params)  # type: ignore[attr-defined]
    procedure.execute()
    return procedure.get_results()
