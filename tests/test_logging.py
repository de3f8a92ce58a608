"""Tests for logging setup."""

import json

import pytest

from velox.core.logging import bound_context, get_logger, setup_logging


@pytest.mark.unit
class TestSetupLogging:
    def test_setup_without_errors(self):
        """Logger initializes without errors."""
        setup_logging()

    def test_setup_verbose(self):
        setup_logging(verbose=True)


@pytest.mark.unit
class TestGetLogger:
    def test_get_logger_without_name(self):
        setup_logging()
        assert get_logger() is not None

    def test_get_logger_with_name(self):
        setup_logging()
        assert get_logger("velox.test") is not None


@pytest.mark.unit
class TestLogOutput:
    def test_log_to_stderr(self, capsys):
        """Log output goes to stderr, not stdout."""
        setup_logging(verbose=True)
        log = get_logger()
        log.info("test message")

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "test message" in captured.err

    def test_debug_suppressed_when_not_verbose(self, capsys):
        setup_logging(verbose=False)
        get_logger("velox.test").debug("hidden detail")

        captured = capsys.readouterr()
        assert "hidden detail" not in captured.err

    def test_json_output(self, capsys):
        setup_logging(json_output=True)
        get_logger("velox.test").info("statement failed", rows=3)

        line = capsys.readouterr().err.strip().splitlines()[-1]
        data = json.loads(line)
        assert data["event"] == "statement failed"
        assert data["rows"] == 3
        assert data["logger"] == "velox.test"
        assert data["level"] == "info"


@pytest.mark.unit
class TestRedaction:
    def test_password_key_masked(self, capsys):
        setup_logging(json_output=True)
        get_logger().info("connecting", password="hunter2")

        err = capsys.readouterr().err
        assert "hunter2" not in err
        assert '"password": "***"' in err

    def test_dsn_credentials_masked(self, capsys):
        setup_logging(json_output=True)
        get_logger().info("connecting", target="postgresql://loader:hunter2@db:5432/app")

        err = capsys.readouterr().err
        assert "hunter2" not in err
        assert "postgresql://loader:***@db:5432/app" in err


@pytest.mark.unit
def test_bound_context(capsys):
    setup_logging(json_output=True)
    with bound_context(transaction="nightly"):
        get_logger().info("inside")
    get_logger().info("outside")

    inside, outside = (json.loads(line) for line in capsys.readouterr().err.strip().splitlines())
    assert inside["transaction"] == "nightly"
    assert "transaction" not in outside
