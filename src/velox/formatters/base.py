"""Formatter protocol and registry for output formatting."""

from __future__ import annotations

from datetime import date, datetime, time
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterator


@runtime_checkable
class Dataset(Protocol):
    """Anything a formatter can render: Model and ResultSet both qualify."""

    def columns(self) -> list[str]: ...

    def data(self) -> list[dict[str, Any]]: ...

    def last_query(self) -> datetime | None: ...


@runtime_checkable
class Formatter(Protocol):
    """Protocol for output formatters.

    Each formatter transforms a Dataset into lines of formatted text.
    Yielding strings (rather than returning a single string) enables
    streaming output for large result sets without buffering everything
    in memory.
    """

    def format(self, dataset: Dataset) -> Iterator[str]:
        """Transform a Dataset into formatted output lines."""
        ...


class FormatterRegistry:
    """Registry for looking up formatters by name."""

    def __init__(self) -> None:
        self._formatters: dict[str, type[Formatter]] = {}

    def register(self, name: str, formatter_class: type[Formatter]) -> None:
        self._formatters[name] = formatter_class

    def get(self, name: str, **kwargs: object) -> Formatter:
        """Return a formatter instance by name.

        Raises KeyError if the format name is not registered.
        """
        if name not in self._formatters:
            available = ", ".join(sorted(self._formatters))
            msg = f"Unknown format {name!r}. Available: {available}"
            raise KeyError(msg)
        return self._formatters[name](**kwargs)

    @property
    def available(self) -> list[str]:
        return sorted(self._formatters)


# Global registry instance populated by formatter modules.
registry = FormatterRegistry()


def cell_text(value: Any) -> str:
    """Render one column value for the text writers.

    NULL is the empty string. Temporal values use ISO 8601 and binary
    values print as ``\\x`` plus hex, the way psql shows bytea.
    """
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "\\x" + bytes(value).hex()
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return str(value)


def text_rows(dataset: Dataset) -> Iterator[list[str]]:
    """Yield every row as cell text in column order; missing columns render as NULL."""
    columns = dataset.columns()
    for row in dataset.data():
        yield [cell_text(row.get(name)) for name in columns]
