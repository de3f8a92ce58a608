"""Tests for output format selection, TTY detection and error reporting."""

import json

import pytest

from velox.cli.output import OutputFormat, get_formatter, report_error, resolve_format
from velox.core.config import ReportingConfig
from velox.core.exceptions import CompilationError
from velox.formatters.csv import CSVFormatter
from velox.formatters.json import JSONFormatter
from velox.formatters.table import TableFormatter


@pytest.mark.unit
def test_output_format_enum_values():
    assert OutputFormat.TABLE.value == "table"
    assert OutputFormat.JSON.value == "json"
    assert OutputFormat.CSV.value == "csv"


@pytest.mark.unit
def test_resolve_format_explicit():
    assert resolve_format("json") == "json"
    assert resolve_format("csv") == "csv"


@pytest.mark.unit
def test_resolve_format_tty_defaults_to_table(monkeypatch):
    monkeypatch.setattr("velox.cli.output.detect_tty", lambda: True)
    assert resolve_format(None) == "table"


@pytest.mark.unit
def test_resolve_format_non_tty_defaults_to_csv(monkeypatch):
    monkeypatch.setattr("velox.cli.output.detect_tty", lambda: False)
    assert resolve_format(None) == "csv"


@pytest.mark.unit
def test_get_formatter_types():
    assert isinstance(get_formatter("table"), TableFormatter)
    assert isinstance(get_formatter("json"), JSONFormatter)
    assert isinstance(get_formatter("csv"), CSVFormatter)


@pytest.mark.unit
def test_get_formatter_passes_options():
    assert get_formatter("table", width=12).width == 12
    assert get_formatter("json", compact=True).compact is True
    assert get_formatter("csv", no_header=True).no_header is True


@pytest.mark.unit
def test_envelope_forces_json():
    fmt = get_formatter("csv", envelope=True)
    assert isinstance(fmt, JSONFormatter)
    assert fmt.envelope is True


@pytest.mark.unit
class TestReportError:
    def test_text(self, capsys):
        report_error(CompilationError("bad criteria"), ReportingConfig())
        assert capsys.readouterr().err.strip() == "Error [63]: bad criteria"

    def test_json(self, capsys):
        report_error(CompilationError("bad criteria"), ReportingConfig(json_output=True))
        data = json.loads(capsys.readouterr().err)
        assert data["code"] == 63
        assert data["class"] == "CompilationError"

    def test_silenced(self, capsys):
        report_error(CompilationError("bad"), ReportingConfig(stderr=False))
        assert capsys.readouterr().err == ""
