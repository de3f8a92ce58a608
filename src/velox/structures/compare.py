"""SQL-like comparisons for filtering rows held in memory.

Behaves like MySQL/MariaDB: string comparisons are case-insensitive, LIKE
supports the ``%`` and ``_`` wildcards, and any comparison against NULL
is false.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Any

from velox.core.criteria import normalize_operator, validate_condition


@lru_cache(maxsize=256)
def _like_pattern(pattern: str) -> re.Pattern[str]:
    parts = []
    for char in pattern:
        if char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("^" + "".join(parts) + "$", re.DOTALL | re.IGNORECASE)


def _coerce_pair(left: Any, right: Any) -> tuple[Any, Any]:
    if isinstance(left, str) and isinstance(right, str):
        return left.casefold(), right.casefold()
    if isinstance(left, str) and isinstance(right, (int, float)):
        try:
            return float(left), right
        except ValueError:
            return left.casefold(), str(right)
    if isinstance(right, str) and isinstance(left, (int, float)):
        try:
            return left, float(right)
        except ValueError:
            return str(left), right.casefold()
    return left, right


def sql_compare(left: Any, operator: str, right: Any = None) -> bool:
    """Evaluate ``left <operator> right`` the way a SQL WHERE clause would.

    ``right`` is a two-item sequence for BETWEEN and a sequence for IN.
    """
    op = normalize_operator(operator)
    if op == "IS NULL":
        return left is None
    if op == "IS NOT NULL":
        return left is not None
    if left is None:
        return False

    if op in ("BETWEEN", "NOT BETWEEN"):
        low, high = right
        inside = sql_compare(left, ">=", low) and sql_compare(left, "<=", high)
        return inside if op == "BETWEEN" else not inside
    if op in ("IN", "NOT IN"):
        found = any(sql_compare(left, "=", item) for item in right)
        return found if op == "IN" else not found
    if right is None:
        return False
    if op in ("LIKE", "NOT LIKE"):
        matched = _like_pattern(str(right)).match(str(left)) is not None
        return matched if op == "LIKE" else not matched

    a, b = _coerce_pair(left, right)
    try:
        if op == "=":
            return a == b
        if op == "<>":
            return a != b
        if op == "<":
            return a < b
        if op == ">":
            return a > b
        if op == "<=":
            return a <= b
        return a >= b
    except TypeError:
        # Incomparable types never satisfy an ordering comparison.
        return False


def condition_matches(value: Any, column: str, condition: list[Any]) -> bool:
    """Apply one ``[operator, operand...]`` leaf to a row value."""
    op, operands = validate_condition(column, condition)
    if op in ("BETWEEN", "NOT BETWEEN"):
        return sql_compare(value, op, operands)
    if op in ("IN", "NOT IN"):
        return sql_compare(value, op, operands[0])
    return sql_compare(value, op, operands[0] if operands else None)
