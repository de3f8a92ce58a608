"""Velox: criteria-driven SQL compilation and diff-synchronized datasets."""

from velox.__about__ import __version__
from velox.core.cancellation import CancellationToken
from velox.core.connection import Connection
from velox.core.criteria import Criterion, Diff
from velox.core.models import QueryType, ResultSetOption
from velox.core.results import ResultSet
from velox.procedures import (
    PreparedStatement,
    Query,
    StatementSet,
    Transaction,
    one_shot,
)
from velox.structures import Model, SortKey, SortMode

__all__ = [
    "CancellationToken",
    "Connection",
    "Criterion",
    "Diff",
    "Model",
    "PreparedStatement",
    "Query",
    "QueryType",
    "ResultSet",
    "ResultSetOption",
    "SortKey",
    "SortMode",
    "StatementSet",
    "Transaction",
    "__version__",
    "one_shot",
]
