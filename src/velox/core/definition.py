"""Query definition files.

A definition is a TOML document naming the procedures behind a Model:

    key_column = "id"

    [select]
    sql = "SELECT * FROM addresses WHERE <<condition>>"

    [insert]
    sql = "INSERT INTO addresses (<<columns>>) VALUES (<<values>>)"

    [delete]
    sql = "DELETE FROM addresses WHERE id = :id"
    kind = "prepared"

``kind`` is ``statement_set`` (default), ``prepared`` or ``query``; ``result``
optionally names a result option (``none``, ``array``, ``union``,
``union_all``, ``fields_only``).
"""

from __future__ import annotations

import tomllib
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ValidationError, field_validator

from velox.core.criteria import Criterion, Diff
from velox.core.error_codes import ErrorCode
from velox.core.exceptions import ConfigError, InputError
from velox.core.models import QueryType, ResultSetOption
from velox.procedures.prepared import PreparedStatement
from velox.procedures.query import Query
from velox.procedures.statement_set import StatementSet
from velox.structures.model import Model

if TYPE_CHECKING:
    from velox.core.connection import Connection
    from velox.procedures.base import Procedure

VERBS: dict[str, QueryType] = {
    "select": QueryType.SELECT,
    "update": QueryType.UPDATE,
    "insert": QueryType.INSERT,
    "delete": QueryType.DELETE,
}


class ProcedureKind(StrEnum):
    QUERY = "query"
    PREPARED = "prepared"
    STATEMENT_SET = "statement_set"


class ProcedureDefinition(BaseModel):
    sql: str
    kind: ProcedureKind = ProcedureKind.STATEMENT_SET
    result: ResultSetOption | None = None

    @field_validator("result", mode="before")
    @classmethod
    def parse_result_option(cls, v: Any) -> Any:
        if isinstance(v, str):
            try:
                return ResultSetOption[v.upper()]
            except KeyError:
                valid = ", ".join(o.name.lower() for o in ResultSetOption)
                msg = f"Invalid result option: '{v}'. Must be one of: {valid}"
                raise ValueError(msg) from None
        return v


class QueryDefinition(BaseModel):
    name: str | None = None
    key_column: str | None = None
    select: ProcedureDefinition | None = None
    update: ProcedureDefinition | None = None
    insert: ProcedureDefinition | None = None
    delete: ProcedureDefinition | None = None

    def procedure(self, verb: str) -> ProcedureDefinition | None:
        return getattr(self, verb)


def load_definition(path: Path | str) -> QueryDefinition:
    """Load a query definition from TOML.

    Raises InputError when the file is missing and ConfigError when it is
    malformed.
    """
    path = Path(path)
    if not path.exists():
        raise InputError(f"Query definition file does not exist: {path}")

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        msg = f"Malformed TOML in {path}: {e}"
        raise ConfigError(msg) from e

    data.setdefault("name", path.stem)
    try:
        return QueryDefinition.model_validate(data)
    except ValidationError as e:
        msg = f"Invalid query definition in {path}: {e}"
        raise ConfigError(msg) from e


def build_procedure(
    definition: ProcedureDefinition,
    connection: Connection | None,
    verb: str,
    name: str | None = None,
) -> Procedure:
    """Instantiate the procedure a definition section describes."""
    kwargs: dict[str, Any] = {"name": name}
    if definition.result is not None:
        kwargs["result_option"] = definition.result
    query_type = VERBS[verb]
    if definition.kind is ProcedureKind.QUERY:
        return Query(connection, definition.sql, query_type, **kwargs)
    if definition.kind is ProcedureKind.PREPARED:
        return PreparedStatement(connection, definition.sql, query_type, **kwargs)
    return StatementSet(connection, definition.sql, query_type, **kwargs)


def build_model(
    definition: QueryDefinition,
    connection: Connection,
    criteria: Diff | None = None,
    passthru: bool = False,
) -> Model:
    """Build the Model a definition describes and apply a criteria document.

    Select criteria normally become the Model's filter. With ``passthru``
    they are compiled into the select StatementSet instead.
    """
    criteria = criteria or Diff()
    if definition.select is None:
        raise InputError(
            "The query definition has no select procedure",
            code=ErrorCode.PROCEDURE_UNDEFINED,
        )

    select = build_procedure(definition.select, connection, "select", definition.name)
    if isinstance(select, StatementSet):
        if passthru and criteria.select:
            select.add_criteria(criteria.select)
        else:
            select.add_criteria([Criterion(where=[])])
    if passthru:
        criteria = criteria.model_copy(update={"select": []})

    procedures = {
        verb: build_procedure(section, connection, verb, definition.name)
        for verb in ("update", "insert", "delete")
        if (section := definition.procedure(verb)) is not None
    }
    model = Model(select, key_column=definition.key_column, name=definition.name, **procedures)
    if not criteria.is_empty:
        model.synchronize(criteria)
    return model
