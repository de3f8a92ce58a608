"""Placeholder scanning and paramstyle translation.

Procedures are written with ``:name`` named placeholders or ``?`` positional
placeholders. Drivers disagree on paramstyle, so the SQL is rewritten per
connection. Placeholders inside quoted literals, quoted identifiers, comments
and PostgreSQL ``::`` casts are left alone; for pyformat drivers every
literal ``%`` is doubled, inside quotes too.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

# Order matters: literals and comments must win over placeholder matches.
_TOKEN_RE = re.compile(
    r"""
      '(?:[^']|'')*'
    | "(?:[^"]|"")*"
    | `[^`]*`
    | --[^\n]*
    | /\*.*?\*/
    | ::
    | (?<![\w:]):(?P<name>[A-Za-z_][A-Za-z0-9_]*)
    | (?P<qmark>\?)
    | (?P<percent>%)
    """,
    re.VERBOSE | re.DOTALL,
)

NAMED = "named"
PYFORMAT = "pyformat"


@dataclass(frozen=True)
class PlaceholderInfo:
    """Placeholders found in a SQL text, named ones in first-seen order."""

    names: tuple[str, ...]
    positional: int

    @property
    def is_named(self) -> bool:
        return bool(self.names)

    @property
    def is_mixed(self) -> bool:
        return bool(self.names) and self.positional > 0


def scan(sql: str) -> PlaceholderInfo:
    names: dict[str, None] = {}
    positional = 0
    for match in _TOKEN_RE.finditer(sql):
        if match.group("name"):
            names[match.group("name")] = None
        elif match.group("qmark"):
            positional += 1
    return PlaceholderInfo(names=tuple(names), positional=positional)


def translate(sql: str, paramstyle: str) -> str:
    """Rewrite ``:name`` / ``?`` placeholders into the driver's paramstyle."""
    if paramstyle == NAMED:
        return sql

    def _replace(match: re.Match[str]) -> str:
        if match.group("name"):
            return f"%({match.group('name')})s"
        if match.group("qmark"):
            return "%s"
        if match.group("percent"):
            return "%%"
        return match.group(0).replace("%", "%%")

    return _TOKEN_RE.sub(_replace, sql)
