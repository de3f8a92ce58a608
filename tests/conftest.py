"""Shared test fixtures for velox."""

import sqlite3
from pathlib import Path
from tempfile import TemporaryDirectory

import pytest
from typer.testing import CliRunner

from velox.cli.main import app
from velox.core.config import Engine, ResolvedConfig
from velox.core.connection import Connection

ADDRESS_ROWS = [
    (1, "Dallas", "TX"),
    (2, "Falls City", "TX"),
    (3, "Falls City", "NE"),
    (4, "Portland", "OR"),
]


def create_addresses_db(path: Path) -> Path:
    """SQLite file with an ``addresses`` table and four seed rows."""
    db = sqlite3.connect(path)
    db.execute(
        "CREATE TABLE addresses (id INTEGER PRIMARY KEY, city TEXT NOT NULL, state TEXT)"
    )
    db.executemany("INSERT INTO addresses (id, city, state) VALUES (?, ?, ?)", ADDRESS_ROWS)
    db.commit()
    db.close()
    return path


def create_ledger_db(path: Path) -> Path:
    """SQLite file with an empty ``ledger`` table."""
    db = sqlite3.connect(path)
    db.execute(
        "CREATE TABLE ledger (id INTEGER PRIMARY KEY, address_id INTEGER NOT NULL, note TEXT)"
    )
    db.commit()
    db.close()
    return path


def sqlite_connection(path: Path | str) -> Connection:
    return Connection(ResolvedConfig(engine=Engine.SQLITE, dbname=str(path)))


def fetch_all(path: Path, sql: str) -> list[tuple]:
    """Read rows through an independent handle, outside any velox transaction."""
    db = sqlite3.connect(path)
    try:
        return db.execute(sql).fetchall()
    finally:
        db.close()


@pytest.fixture
def runner():
    """Typer CLI test runner."""
    return CliRunner()


@pytest.fixture
def cli_runner(runner):
    """Invoke the CLI app with the given arguments."""

    def invoke(*args: str, **kwargs):
        return runner.invoke(app, list(args), **kwargs)

    return invoke


@pytest.fixture
def temp_dir():
    """Temporary directory for test files."""
    with TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def addresses_db(temp_dir):
    return create_addresses_db(temp_dir / "addresses.db")


@pytest.fixture
def ledger_db(temp_dir):
    return create_ledger_db(temp_dir / "ledger.db")


@pytest.fixture
def conn(addresses_db):
    """Connection to the seeded addresses database."""
    connection = sqlite_connection(addresses_db)
    yield connection
    connection.close()


@pytest.fixture
def ledger_conn(ledger_db):
    """A second, independent connection for cross-connection transactions."""
    connection = sqlite_connection(ledger_db)
    yield connection
    connection.close()
