"""Statement outcome models and procedure enums.

Pydantic models for the raw outcome of one database round trip, as
returned by Connection.run().
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Any

from pydantic import BaseModel, ConfigDict


class QueryType(IntEnum):
    SELECT = 1
    INSERT = 2
    UPDATE = 3
    DELETE = 4
    PROC = 5


class ResultSetOption(IntEnum):
    NONE = 0
    ARRAY = 1
    UNION = 2
    UNION_ALL = 3
    FIELDS_ONLY = 4


class ProcedureInput(Enum):
    """What a procedure accepts through ``feed()``."""

    NONE = "none"
    PARAMETER_SETS = "parameter_sets"
    CRITERIA = "criteria"
    STEPS = "steps"


_LEADING_KEYWORDS: dict[str, QueryType] = {
    "select": QueryType.SELECT,
    "with": QueryType.SELECT,
    "insert": QueryType.INSERT,
    "update": QueryType.UPDATE,
    "delete": QueryType.DELETE,
    "call": QueryType.PROC,
}


def infer_query_type(sql: str) -> QueryType:
    """Guess the query type from the first keyword; anything unknown is a SELECT."""
    words = sql.lstrip(" \t\r\n(;").split(None, 1)
    if not words:
        return QueryType.SELECT
    return _LEADING_KEYWORDS.get(words[0].lower(), QueryType.SELECT)


# Mapping from psycopg type OIDs to human-readable names.
# Covers the most common PostgreSQL types; unknown OIDs fall back to "unknown".
_TYPE_NAMES: dict[int, str] = {
    16: "bool",
    20: "int8",
    21: "int2",
    23: "int4",
    25: "text",
    26: "oid",
    114: "json",
    700: "float4",
    701: "float8",
    1042: "bpchar",
    1043: "varchar",
    1082: "date",
    1083: "time",
    1114: "timestamp",
    1184: "timestamptz",
    1186: "interval",
    1700: "numeric",
    2950: "uuid",
    3802: "jsonb",
}


def type_name_for(type_code: Any) -> str:
    if isinstance(type_code, int):
        return _TYPE_NAMES.get(type_code, "unknown")
    return "unknown"


class ColumnMeta(BaseModel):
    """Metadata for a single result column."""

    name: str
    type_code: Any = None
    type_name: str = "unknown"


class StatementOutcome(BaseModel):
    """Result of a single statement execution."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    columns: list[ColumnMeta]
    rows: list[dict[str, Any]]
    row_count: int
    last_row_id: Any = None
    status_message: str = ""

    @property
    def returned_rows(self) -> bool:
        return bool(self.columns)
