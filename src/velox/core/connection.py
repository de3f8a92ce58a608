"""Database connection for velox.

Wraps psycopg v3 (PostgreSQL), pymysql (MySQL/MariaDB) and sqlite3 handles
behind one interface: statement round trips, SQL-level transactions with a
depth counter, statement timeout, and exception mapping to the VeloxError
hierarchy.
"""

from __future__ import annotations

import sqlite3
import time
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import psycopg
import psycopg.errors
import pymysql
import pymysql.err
import sentry_sdk

from velox.core import placeholders
from velox.core.config import Engine
from velox.core.error_codes import ErrorCode
from velox.core.exceptions import (
    ConfigError,
    ExecutionError,
    NetworkError,
    TimeoutError,
    VeloxError,
)
from velox.core.logging import get_logger
from velox.core.models import ColumnMeta, StatementOutcome, type_name_for

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from velox.core.cancellation import CancellationToken
    from velox.core.config import ResolvedConfig
    from velox.core.results import ResultSet

_BEGIN_STATEMENTS: dict[Engine, str] = {
    Engine.POSTGRES: "BEGIN",
    Engine.MYSQL: "START TRANSACTION",
    Engine.SQLITE: "BEGIN",
}

# pymysql error numbers
_MYSQL_TIMEOUT_ERRNOS = frozenset({3024})
_MYSQL_NETWORK_ERRNOS = frozenset({2002, 2003, 2006, 2013, 2055})
_MYSQL_SYNTAX_ERRNO = 1064


def _normalize(sql: str) -> str:
    return " ".join(sql.split())


class Connection:
    """One engine/credential set with a lazily opened driver handle."""

    def __init__(
        self,
        config: ResolvedConfig,
        cancel_token: CancellationToken | None = None,
    ) -> None:
        self.config = config
        self.engine = config.engine
        self.cancel_token = cancel_token
        self._handle: Any = None
        self._depth = 0
        self._savepoint: str | None = None
        self._validate()

    def _validate(self) -> None:
        if self.engine is Engine.SQLITE:
            return
        if not self.config.host:
            raise ConfigError(
                f"No host given for {self.engine.value} connection",
                code=ErrorCode.HOST_MISSING,
            )
        if not self.config.dbname:
            raise ConfigError(
                f"No database given for {self.engine.value} connection",
                code=ErrorCode.DATABASE_MISSING,
            )
        if not self.config.user:
            raise ConfigError(
                f"No user given for {self.engine.value} connection",
                code=ErrorCode.USER_MISSING,
            )

    def __enter__(self) -> Connection:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Connection({self.describe()!r})"

    @property
    def paramstyle(self) -> str:
        if self.engine is Engine.SQLITE:
            return placeholders.NAMED
        return placeholders.PYFORMAT

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    @property
    def depth(self) -> int:
        return self._depth

    def describe(self) -> str:
        return self.config.describe()

    def _connect(self) -> Any:
        if self._handle is not None:
            return self._handle

        log = get_logger("velox.connection")
        try:
            if self.engine is Engine.POSTGRES:
                self._handle = psycopg.connect(
                    host=self.config.host,
                    port=self.config.effective_port,
                    dbname=self.config.dbname,
                    user=self.config.user,
                    password=self.config.password,
                    connect_timeout=self.config.connect_timeout,
                    application_name=self.config.application_name,
                    autocommit=True,
                )
            elif self.engine is Engine.MYSQL:
                self._handle = pymysql.connect(
                    host=self.config.host,
                    port=self.config.effective_port,
                    database=self.config.dbname,
                    user=self.config.user,
                    password=self.config.password or "",
                    connect_timeout=self.config.connect_timeout,
                    autocommit=True,
                )
            else:
                self._handle = sqlite3.connect(
                    self.config.dbname or ":memory:",
                    timeout=self.config.connect_timeout,
                    isolation_level=None,
                )
        except (psycopg.OperationalError, pymysql.err.OperationalError, sqlite3.Error) as e:
            msg = f"Connection failed to {self.describe()}: {e}"
            raise NetworkError(msg) from e

        log.debug("connected", target=self.describe())
        self._apply_statement_timeout()
        return self._handle

    def _apply_statement_timeout(self) -> None:
        timeout_ms = int(self.config.default_timeout * 1000)
        if timeout_ms <= 0:
            return
        if self.engine is Engine.POSTGRES:
            self._control(f"SET statement_timeout = {timeout_ms}")
        elif self.engine is Engine.MYSQL:
            self._control(f"SET SESSION max_execution_time = {timeout_ms}")

    def _map_error(self, e: Exception) -> VeloxError:
        """Translate a driver exception into the VeloxError hierarchy."""
        if isinstance(e, psycopg.errors.QueryCanceled):
            msg = f"Statement timed out after {self.config.default_timeout}s: {e}"
            return TimeoutError(msg)
        if isinstance(e, psycopg.errors.SyntaxError):
            return ExecutionError(f"SQL error: {e}", code=ErrorCode.PREPARE_FAILED)
        if isinstance(e, psycopg.OperationalError):
            return NetworkError(f"Database error: {e}")
        if isinstance(e, pymysql.err.Error):
            errno = e.args[0] if e.args and isinstance(e.args[0], int) else None
            if errno in _MYSQL_TIMEOUT_ERRNOS:
                msg = f"Statement timed out after {self.config.default_timeout}s: {e}"
                return TimeoutError(msg)
            if errno in _MYSQL_NETWORK_ERRNOS:
                return NetworkError(f"Database error: {e}")
            if errno == _MYSQL_SYNTAX_ERRNO:
                return ExecutionError(f"SQL error: {e}", code=ErrorCode.PREPARE_FAILED)
        if isinstance(e, sqlite3.Error) and "syntax error" in str(e):
            return ExecutionError(f"SQL error: {e}", code=ErrorCode.PREPARE_FAILED)
        return ExecutionError(f"Execution failed: {e}")

    def _control(self, sql: str) -> None:
        """Run a session or transaction control statement."""
        conn = self._connect()
        cur = conn.cursor()
        try:
            cur.execute(sql)
        except (psycopg.Error, pymysql.err.Error, sqlite3.Error) as e:
            raise self._map_error(e) from e
        finally:
            cur.close()

    def _prepare(self, sql: str, params: Any) -> tuple[str, Any]:
        text = placeholders.translate(sql, self.paramstyle)
        if params is None:
            params = ()
        return text, params

    def run(self, sql: str, params: dict[str, Any] | Sequence[Any] | None = None) -> StatementOutcome:
        """Execute one statement and return its outcome."""
        if self.cancel_token is not None:
            self.cancel_token.check()

        log = get_logger("velox.connection")
        conn = self._connect()
        text, bound = self._prepare(sql, params)
        sql_normalized = _normalize(sql)
        log.debug("executing statement", sql=sql_normalized)

        with sentry_sdk.start_span(op="db.query", description=sql_normalized[:100]) as span:
            start_time = time.monotonic()
            cur = conn.cursor()
            try:
                cur.execute(text, bound)
                columns: list[ColumnMeta] = []
                rows: list[dict[str, Any]] = []
                if cur.description:
                    for desc in cur.description:
                        columns.append(
                            ColumnMeta(
                                name=desc[0],
                                type_code=desc[1],
                                type_name=type_name_for(desc[1]),
                            )
                        )
                    names = [c.name for c in columns]
                    rows = [dict(zip(names, row, strict=True)) for row in cur.fetchall()]
                row_count = len(rows) if columns else max(cur.rowcount, 0)
                outcome = StatementOutcome(
                    columns=columns,
                    rows=rows,
                    row_count=row_count,
                    last_row_id=getattr(cur, "lastrowid", None),
                    status_message=getattr(cur, "statusmessage", None) or "",
                )
            except (psycopg.Error, pymysql.err.Error, sqlite3.Error) as e:
                error = self._map_error(e)
                span.set_status(
                    "deadline_exceeded" if isinstance(error, TimeoutError) else "internal_error"
                )
                log.error("statement failed", sql=sql_normalized, error=str(e))
                raise error from e
            finally:
                cur.close()

            duration_ms = (time.monotonic() - start_time) * 1000
            span.set_data("row_count", outcome.row_count)
            span.set_data("duration_ms", duration_ms)
            log.debug(
                "statement complete",
                duration_ms=f"{duration_ms:.1f}",
                row_count=outcome.row_count,
            )
            return outcome

    def run_many(self, sql: str, param_sets: Sequence[dict[str, Any] | Sequence[Any]]) -> int:
        """Execute one statement for every parameter set in a single batch call."""
        if self.cancel_token is not None:
            self.cancel_token.check()

        log = get_logger("velox.connection")
        conn = self._connect()
        text = placeholders.translate(sql, self.paramstyle)
        sql_normalized = _normalize(sql)
        log.debug("executing batch", sql=sql_normalized, sets=len(param_sets))

        with sentry_sdk.start_span(op="db.query", description=sql_normalized[:100]) as span:
            cur = conn.cursor()
            try:
                cur.executemany(text, list(param_sets))
                affected = max(cur.rowcount, 0)
            except (psycopg.Error, pymysql.err.Error, sqlite3.Error) as e:
                span.set_status("internal_error")
                log.error("batch failed", sql=sql_normalized, error=str(e))
                raise self._map_error(e) from e
            finally:
                cur.close()
            span.set_data("row_count", affected)
            span.set_data("batch_size", len(param_sets))
            return affected

    def execute(self, procedure: Any) -> ResultSet | list[ResultSet]:
        """Execute a procedure, or a SQL string wrapped in a Query, and return its results."""
        if isinstance(procedure, str):
            from velox.procedures.query import Query

            procedure = Query(self, procedure)
        return procedure.execute()

    def begin_transaction(self) -> None:
        """Open a transaction, or nest one level deeper in the open one."""
        if self._depth == 0:
            self._control(_BEGIN_STATEMENTS[self.engine])
            get_logger("velox.connection").debug("transaction begun", target=self.describe())
        self._depth += 1

    def commit(self) -> None:
        """Close one level; COMMIT is issued when the outermost level closes."""
        self._require_transaction("commit")
        if self._depth > 1:
            self._depth -= 1
            return
        log = get_logger("velox.connection")
        try:
            self._control("COMMIT")
        except VeloxError:
            # SQLite keeps the transaction open after a failed COMMIT.
            try:
                self._control("ROLLBACK")
            except VeloxError as e:
                log.warning("rollback after failed commit failed", target=self.describe(), error=str(e))
            raise
        finally:
            self._depth = 0
            self._savepoint = None
        log.debug("transaction committed", target=self.describe())

    def rollback(self, to_savepoint: bool = False) -> None:
        """Roll back the whole transaction, or only to the last savepoint."""
        self._require_transaction("rollback")
        if to_savepoint:
            if self._savepoint is None:
                raise ExecutionError(
                    "No savepoint has been set", code=ErrorCode.NO_ACTIVE_TRANSACTION
                )
            self._control(f"ROLLBACK TO SAVEPOINT {self._savepoint}")
            return
        self._depth = 0
        self._savepoint = None
        self._control("ROLLBACK")
        get_logger("velox.connection").debug("transaction rolled back", target=self.describe())

    def set_savepoint(self, name: str = "velox_savepoint") -> None:
        self._require_transaction("set a savepoint")
        self._control(f"SAVEPOINT {name}")
        self._savepoint = name

    def _require_transaction(self, action: str) -> None:
        if self._depth == 0:
            raise ExecutionError(
                f"Cannot {action}: no active transaction",
                code=ErrorCode.NO_ACTIVE_TRANSACTION,
            )

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Run the block in a (possibly nested) transaction."""
        self.begin_transaction()
        try:
            yield self
        except BaseException:
            if self._depth > 0:
                self.rollback()
            raise
        self.commit()

    def close(self) -> None:
        """Close the database handle."""
        if self._handle is not None:
            self._handle.close()
            self._handle = None
            self._depth = 0
            self._savepoint = None
