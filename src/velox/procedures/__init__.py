"""Procedures: executable units that yield ResultSets."""

from velox.procedures.base import Procedure, single_result
from velox.procedures.oneshot import one_shot
from velox.procedures.prepared import PreparedStatement
from velox.procedures.query import Query
from velox.procedures.statement_set import StatementSet
from velox.procedures.transaction import Transaction

__all__ = [
    "PreparedStatement",
    "Procedure",
    "Query",
    "StatementSet",
    "Transaction",
    "one_shot",
    "single_result",
]
