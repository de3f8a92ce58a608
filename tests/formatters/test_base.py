"""Tests for the Formatter protocol, Dataset protocol and registry."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from velox.core.results import ResultSet
from velox.formatters.base import Dataset, Formatter, FormatterRegistry, cell_text, text_rows


class _StubFormatter:
    def format(self, dataset):
        for row in dataset.data():
            yield str(row)


class _BadFormatter:
    """Missing format method."""

    pass


@pytest.mark.unit
def test_stub_formatter_implements_protocol():
    assert isinstance(_StubFormatter(), Formatter)


@pytest.mark.unit
def test_bad_formatter_does_not_implement_protocol():
    assert not isinstance(_BadFormatter(), Formatter)


@pytest.mark.unit
def test_result_set_is_a_dataset():
    assert isinstance(ResultSet(), Dataset)


@pytest.mark.unit
def test_formatter_yields_strings():
    lines = list(_StubFormatter().format(ResultSet([{"id": 1}, {"id": 2}])))
    assert lines == ["{'id': 1}", "{'id': 2}"]


@pytest.mark.unit
def test_text_rows_follow_column_order_and_fill_missing():
    rs = ResultSet([{"id": 1, "city": "A"}, {"id": 2}])
    assert list(text_rows(rs)) == [["1", "A"], ["2", ""]]


@pytest.mark.unit
@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (None, ""),
        (0, "0"),
        (False, "False"),
        (Decimal("1.50"), "1.50"),
        (b"\x00\xff", "\\x00ff"),
        (datetime(2026, 1, 2, 3, 4, 5), "2026-01-02T03:04:05"),
        (date(2026, 1, 2), "2026-01-02"),
    ],
)
def test_cell_text(value, expected):
    assert cell_text(value) == expected


@pytest.mark.unit
def test_registry_register_and_get():
    reg = FormatterRegistry()
    reg.register("stub", _StubFormatter)
    assert isinstance(reg.get("stub"), _StubFormatter)


@pytest.mark.unit
def test_registry_get_unknown_lists_available():
    reg = FormatterRegistry()
    reg.register("csv", _StubFormatter)
    reg.register("json", _StubFormatter)
    with pytest.raises(KeyError, match="csv, json"):
        reg.get("nope")


@pytest.mark.unit
def test_registry_available_returns_sorted_names():
    reg = FormatterRegistry()
    reg.register("json", _StubFormatter)
    reg.register("csv", _StubFormatter)
    assert reg.available == ["csv", "json"]
