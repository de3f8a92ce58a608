"""Criteria wire format: the VeloxQL diff object and its descriptors.

A Diff holds ``select``, ``update``, ``insert`` and ``delete`` sequences of
Criterion descriptors. Each descriptor has ``where`` (a list of AND-groups
joined by OR, each group mapping a column to ``[operator, operand...]``)
and/or ``values`` (a column-to-value map).
"""

from __future__ import annotations

import datetime as dt
import json
import re
import uuid
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from velox.core.error_codes import ErrorCode
from velox.core.exceptions import CompilationError

COMPARISON_OPERATORS = frozenset(
    {"=", ">", "<", ">=", "<=", "<>", "LIKE", "NOT LIKE"}
)
RANGE_OPERATORS = frozenset({"BETWEEN", "NOT BETWEEN"})
SET_OPERATORS = frozenset({"IN", "NOT IN"})
NULL_OPERATORS = frozenset({"IS NULL", "IS NOT NULL"})
SUPPORTED_OPERATORS = COMPARISON_OPERATORS | RANGE_OPERATORS | SET_OPERATORS | NULL_OPERATORS

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]*(\.[A-Za-z_][A-Za-z0-9_$]*)*$")

_SCALAR_TYPES = (
    str,
    int,
    float,
    bool,
    bytes,
    Decimal,
    dt.date,
    dt.time,
    dt.timedelta,
    uuid.UUID,
)

AndGroup = dict[str, list[Any]]


def is_scalar(value: Any) -> bool:
    return value is None or isinstance(value, _SCALAR_TYPES)


def normalize_operator(operator: Any) -> str:
    if not isinstance(operator, str):
        raise CompilationError(
            f"Unsupported operator: {operator!r}", code=ErrorCode.UNSUPPORTED_OPERATOR
        )
    op = " ".join(operator.upper().split())
    if op not in SUPPORTED_OPERATORS:
        raise CompilationError(
            f"Unsupported operator: {operator!r}", code=ErrorCode.UNSUPPORTED_OPERATOR
        )
    return op


def validate_identifier(column: str) -> str:
    if not isinstance(column, str) or not _IDENTIFIER_RE.match(column):
        raise CompilationError(
            f"Invalid column name: {column!r}", code=ErrorCode.INVALID_IDENTIFIER
        )
    return column


def validate_condition(column: str, condition: list[Any]) -> tuple[str, list[Any]]:
    """Check one ``[operator, operand...]`` leaf. Returns (operator, operands)."""
    validate_identifier(column)
    if not condition:
        raise CompilationError(
            f"Operator missing for column '{column}'", code=ErrorCode.OPERAND_MISSING
        )
    op = normalize_operator(condition[0])
    operands = list(condition[1:])

    if op in NULL_OPERATORS:
        return op, []
    if op in RANGE_OPERATORS:
        if len(operands) != 2:
            raise CompilationError(
                f"{op} on '{column}' requires exactly two operands",
                code=ErrorCode.BETWEEN_OPERAND_MISSING,
            )
    elif op in SET_OPERATORS:
        if len(operands) != 1 or not isinstance(operands[0], (list, tuple)):
            raise CompilationError(
                f"{op} on '{column}' requires an array operand",
                code=ErrorCode.IN_OPERAND_NOT_ARRAY,
            )
        if not operands[0]:
            raise CompilationError(
                f"{op} on '{column}' requires a non-empty array operand",
                code=ErrorCode.IN_OPERAND_NOT_ARRAY,
            )
        operands = [list(operands[0])]
    elif len(operands) != 1:
        raise CompilationError(
            f"{op} on '{column}' requires exactly one operand",
            code=ErrorCode.OPERAND_MISSING,
        )

    scalars = operands[0] if op in SET_OPERATORS else operands
    for value in scalars:
        if not is_scalar(value):
            raise CompilationError(
                f"Operand for '{column}' is not a scalar or null",
                code=ErrorCode.NON_SCALAR_VALUE,
            )
    return op, operands


class Criterion(BaseModel):
    """One select/update/insert/delete descriptor."""

    model_config = ConfigDict(extra="forbid")

    where: list[AndGroup] | None = None
    values: dict[str, Any] | None = None

    @field_validator("where", mode="before")
    @classmethod
    def normalize_where(cls, v: Any) -> Any:
        # A single mapping is one AND-group; bare scalars mean equality.
        if isinstance(v, dict):
            v = [v]
        if not isinstance(v, list):
            return v
        groups = []
        for group in v:
            if not isinstance(group, dict):
                groups.append(group)
                continue
            normalized = {}
            for column, condition in group.items():
                if condition is None:
                    condition = ["IS NULL"]
                elif not isinstance(condition, (list, tuple)):
                    condition = ["=", condition]
                normalized[column] = list(condition)
            groups.append(normalized)
        return groups

    @classmethod
    def matching(cls, row: dict[str, Any]) -> Criterion:
        """Equality criterion selecting exactly this row's values."""
        group = {
            column: (["IS NULL"] if value is None else ["=", value])
            for column, value in row.items()
        }
        return cls(where=[group])

    @classmethod
    def inserting(cls, row: dict[str, Any]) -> Criterion:
        return cls(values=dict(row))

    def equalities(self) -> dict[str, Any]:
        """Equality terms of the first AND-group as a column-to-value map."""
        row: dict[str, Any] = {}
        for group in (self.where or [])[:1]:
            for column, condition in group.items():
                op = normalize_operator(condition[0])
                if op == "=" and len(condition) > 1:
                    row[column] = condition[1]
                elif op == "IS NULL":
                    row[column] = None
        return row

    def row(self) -> dict[str, Any]:
        """The row this descriptor describes: its values, else its equality terms."""
        if self.values is not None:
            return dict(self.values)
        return self.equalities()

    def parameters(self) -> dict[str, Any]:
        """Flat placeholder values for a prepared statement: equalities, then values."""
        params = self.equalities()
        params.update(self.values or {})
        return params


class Diff(BaseModel):
    """The VeloxQL object: criteria for each kind of operation."""

    select: list[Criterion] = []
    update: list[Criterion] = []
    insert: list[Criterion] = []
    delete: list[Criterion] = []

    @classmethod
    def from_data(cls, data: Any) -> Diff:
        if not isinstance(data, dict):
            raise CompilationError(
                "Criteria document must be an object", code=ErrorCode.CRITERIA_INVALID
            )
        lowered = {str(k).lower(): v for k, v in data.items()}
        try:
            return cls.model_validate(lowered)
        except ValidationError as e:
            raise CompilationError(
                f"Criteria format is invalid: {e}", code=ErrorCode.CRITERIA_INVALID
            ) from e

    @classmethod
    def from_json(cls, text: str) -> Diff:
        if not text.strip():
            return cls()
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise CompilationError(
                f"Criteria document is not valid JSON: {e}",
                code=ErrorCode.CRITERIA_INVALID,
            ) from e
        return cls.from_data(data)

    @property
    def is_empty(self) -> bool:
        return not (self.select or self.update or self.insert or self.delete)


def coerce_criteria(criteria: Any) -> list[Criterion]:
    """Accept Criterion objects or plain mappings; reject anything else."""
    if isinstance(criteria, (Criterion, dict)):
        criteria = [criteria]
    if not isinstance(criteria, (list, tuple)):
        raise CompilationError(
            "Criteria must be a list of descriptors", code=ErrorCode.CRITERIA_INVALID
        )
    result: list[Criterion] = []
    for index, item in enumerate(criteria):
        if isinstance(item, Criterion):
            result.append(item)
            continue
        if not isinstance(item, dict):
            raise CompilationError(
                f"Element at index {index} is not a criteria descriptor",
                code=ErrorCode.CRITERIA_INVALID,
            )
        try:
            result.append(Criterion.model_validate(item))
        except ValidationError as e:
            raise CompilationError(
                f"Element at index {index} does not contain the correct keys: {e}",
                code=ErrorCode.CRITERIA_KEYS,
            ) from e
    return result
