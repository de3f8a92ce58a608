"""In-memory data structures backed by procedures."""

from velox.structures.compare import sql_compare
from velox.structures.model import Model, ModelState, SortKey, SortMode

__all__ = ["Model", "ModelState", "SortKey", "SortMode", "sql_compare"]
