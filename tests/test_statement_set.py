"""Tests for the criteria-driven StatementSet compiler."""

import pytest

from tests.conftest import fetch_all
from velox.core.criteria import Criterion, Diff
from velox.core.error_codes import ErrorCode
from velox.core.exceptions import CompilationError, ExecutionError
from velox.core.models import ProcedureInput, QueryType, ResultSetOption
from velox.procedures import StatementSet, Transaction, one_shot

SELECT_SQL = "SELECT <<columns>> FROM addresses WHERE <<condition>>"
INSERT_SQL = "INSERT INTO addresses (<<columns>>) VALUES (<<values>>)"
UPDATE_SQL = "UPDATE addresses SET <<values>> WHERE <<condition>>"
DELETE_SQL = "DELETE FROM addresses WHERE <<condition>>"


def _code(exc_info):
    return exc_info.value.code


@pytest.fixture
def round_trips(conn, monkeypatch):
    """Count statements sent through the connection."""
    calls = []
    original = conn.run

    def counting_run(sql, params=None):
        calls.append(sql)
        return original(sql, params)

    monkeypatch.setattr(conn, "run", counting_run)
    return calls


@pytest.mark.unit
class TestCompile:
    def test_falls_city_example(self, conn, round_trips):
        stmt = StatementSet(
            conn,
            SELECT_SQL,
            criteria={"where": [{"city": ["=", "Falls City"], "state": ["=", "TX"]}]},
        )
        statements = stmt.compile()
        assert len(statements) == 1
        assert statements[0].sql == (
            "SELECT * FROM addresses WHERE (city = :w0_0 AND state = :w0_1)"
        )
        assert statements[0].parameter_sets == [{"w0_0": "Falls City", "w0_1": "TX"}]

        result = stmt.execute()
        assert result.data() == [{"id": 2, "city": "Falls City", "state": "TX"}]
        assert len(round_trips) == 1

    def test_same_shape_shares_one_statement(self, conn):
        stmt = StatementSet(conn, SELECT_SQL)
        stmt.add_criteria(
            [
                {"where": [{"id": ["=", 1]}]},
                {"where": [{"id": ["=", 4]}]},
                {"where": [{"city": ["LIKE", "F%"]}]},
            ]
        )
        statements = stmt.compile()
        assert len(statements) == 2
        assert len(statements[0].parameter_sets) == 2

    def test_in_arity_is_part_of_shape(self, conn):
        stmt = StatementSet(conn, SELECT_SQL)
        stmt.add_criteria(
            [
                {"where": [{"id": ["IN", [1, 2]]}]},
                {"where": [{"id": ["IN", [3]]}]},
            ]
        )
        sqls = [s.sql for s in stmt.compile()]
        assert sqls == [
            "SELECT * FROM addresses WHERE id IN (:w0_0_0, :w0_0_1)",
            "SELECT * FROM addresses WHERE id IN (:w0_0_0)",
        ]

    def test_or_groups_and_between(self, conn):
        stmt = StatementSet(
            conn,
            SELECT_SQL,
            criteria={"where": [{"id": ["BETWEEN", 1, 2]}, {"state": ["IS NULL"]}]},
        )
        [compiled] = stmt.compile()
        assert compiled.sql == (
            "SELECT * FROM addresses WHERE "
            "(id BETWEEN :w0_0_0 AND :w0_0_1 OR state IS NULL)"
        )
        assert compiled.parameter_sets == [{"w0_0_0": 1, "w0_0_1": 2}]
        assert [r["id"] for r in stmt.execute()] == [1, 2]

    def test_in_leaf_next_to_lookalike_column(self, conn):
        conn.run("ALTER TABLE addresses ADD COLUMN id_0 INTEGER")
        conn.run("UPDATE addresses SET id_0 = 99")
        stmt = StatementSet(
            conn,
            SELECT_SQL,
            criteria={"where": [{"id": ["IN", [1, 2]], "id_0": ["=", 99]}]},
        )
        [compiled] = stmt.compile()
        assert compiled.sql == (
            "SELECT * FROM addresses WHERE (id IN (:w0_0_0, :w0_0_1) AND id_0 = :w0_1)"
        )
        assert compiled.parameter_sets == [{"w0_0_0": 1, "w0_0_1": 2, "w0_1": 99}]
        assert sorted(r["id"] for r in stmt.execute()) == [1, 2]

    def test_dotted_and_underscored_columns_bind_separately(self):
        stmt = StatementSet(
            None,
            "SELECT * FROM a JOIN b ON a.id = b.id WHERE <<condition>>",
            criteria={"where": [{"a.b": ["=", 1], "a_b": ["=", 2]}]},
        )
        [compiled] = stmt.compile()
        assert compiled.sql.endswith("WHERE (a.b = :w0_0 AND a_b = :w0_1)")
        assert compiled.parameter_sets == [{"w0_0": 1, "w0_1": 2}]

    def test_same_shape_in_any_key_order(self, conn):
        stmt = StatementSet(conn, SELECT_SQL)
        stmt.add_criteria(
            [
                {"where": [{"city": ["=", "Dallas"], "state": ["=", "TX"]}]},
                {"where": [{"state": ["=", "NE"], "city": ["=", "Falls City"]}]},
            ]
        )
        [compiled] = stmt.compile()
        assert compiled.parameter_sets == [
            {"w0_0": "Dallas", "w0_1": "TX"},
            {"w0_0": "Falls City", "w0_1": "NE"},
        ]
        assert sorted(r["id"] for r in stmt.execute()) == [1, 3]

    def test_values_bind_by_position(self, conn, addresses_db):
        stmt = StatementSet(conn, INSERT_SQL)
        stmt.add_criteria([{"values": {"state": "ID", "city": "Boise"}}])
        [compiled] = stmt.compile()
        assert compiled.sql == "INSERT INTO addresses (city, state) VALUES (:v0, :v1)"
        stmt.execute()
        assert fetch_all(addresses_db, "SELECT city, state FROM addresses WHERE id = 5") == [
            ("Boise", "ID")
        ]

    def test_empty_where_matches_everything(self, conn):
        stmt = StatementSet(conn, SELECT_SQL, criteria=Criterion(where=[]))
        assert stmt.compile()[0].sql == "SELECT * FROM addresses WHERE 1=1"
        assert len(stmt.execute()) == 4

    def test_no_criteria(self, conn):
        with pytest.raises(CompilationError) as exc_info:
            StatementSet(conn, SELECT_SQL).execute()
        assert _code(exc_info) == ErrorCode.CRITERIA_NOT_SET

    def test_stored_procedure_rejected(self, conn):
        with pytest.raises(CompilationError) as exc_info:
            StatementSet(conn, "CALL refresh(<<values>>)")
        assert _code(exc_info) == ErrorCode.STORED_PROCEDURE_UNSUPPORTED

    def test_input_kind(self, conn):
        assert StatementSet(conn, SELECT_SQL).input_kind is ProcedureInput.CRITERIA


@pytest.mark.unit
class TestValidation:
    def test_between_with_one_operand(self, conn, round_trips):
        stmt = StatementSet(conn, SELECT_SQL)
        with pytest.raises(CompilationError) as exc_info:
            stmt.add_criteria({"where": [{"id": ["BETWEEN", 1]}]})
        assert _code(exc_info) == ErrorCode.BETWEEN_OPERAND_MISSING
        assert round_trips == []

    def test_in_with_scalar(self, conn, round_trips):
        with pytest.raises(CompilationError) as exc_info:
            StatementSet(conn, SELECT_SQL, criteria={"where": [{"state": ["IN", "TX"]}]})
        assert _code(exc_info) == ErrorCode.IN_OPERAND_NOT_ARRAY
        assert round_trips == []

    def test_unsupported_operator(self, conn):
        with pytest.raises(CompilationError) as exc_info:
            StatementSet(conn, SELECT_SQL, criteria={"where": [{"id": ["~", 1]}]})
        assert _code(exc_info) == ErrorCode.UNSUPPORTED_OPERATOR

    def test_insert_requires_values_only(self, conn):
        stmt = StatementSet(conn, INSERT_SQL)
        with pytest.raises(CompilationError) as exc_info:
            stmt.add_criteria([{"values": {"city": "A"}}, {"where": [{"id": 1}]}])
        assert _code(exc_info) == ErrorCode.CRITERIA_KEYS
        assert "index 1" in exc_info.value.message
        assert stmt.criteria == []

    def test_update_requires_where_and_values(self, conn):
        with pytest.raises(CompilationError) as exc_info:
            StatementSet(conn, UPDATE_SQL, criteria={"values": {"city": "A"}})
        assert _code(exc_info) == ErrorCode.CRITERIA_KEYS

    def test_empty_values_rejected(self, conn):
        with pytest.raises(CompilationError) as exc_info:
            StatementSet(conn, INSERT_SQL, criteria={"values": {}})
        assert _code(exc_info) == ErrorCode.CRITERIA_KEYS

    def test_invalid_value_column(self, conn):
        with pytest.raises(CompilationError) as exc_info:
            StatementSet(conn, INSERT_SQL, criteria={"values": {"city) --": "A"}})
        assert _code(exc_info) == ErrorCode.INVALID_IDENTIFIER

    def test_non_scalar_value(self, conn):
        with pytest.raises(CompilationError) as exc_info:
            StatementSet(conn, INSERT_SQL, criteria={"values": {"city": ["A"]}})
        assert _code(exc_info) == ErrorCode.NON_SCALAR_VALUE


@pytest.mark.unit
class TestWrites:
    def test_insert(self, conn, addresses_db):
        stmt = StatementSet(conn, INSERT_SQL, result_option=ResultSetOption.NONE)
        stmt.add_criteria([{"values": {"city": "Austin", "state": "TX"}}])
        stmt.execute()
        assert stmt.last_affected() == [5]
        assert fetch_all(addresses_db, "SELECT city FROM addresses WHERE id = 5") == [("Austin",)]

    def test_update(self, conn, addresses_db):
        stmt = StatementSet(conn, UPDATE_SQL, QueryType.UPDATE)
        stmt.add_criteria({"where": [{"id": ["=", 1]}], "values": {"city": "Houston"}})
        [compiled] = stmt.compile()
        assert compiled.sql == "UPDATE addresses SET city = :v0 WHERE id = :w0_0"
        stmt.execute()
        assert fetch_all(addresses_db, "SELECT city FROM addresses WHERE id = 1") == [("Houston",)]

    def test_delete(self, conn, addresses_db):
        stmt = StatementSet(conn, DELETE_SQL)
        stmt.add_criteria({"where": [{"state": ["IN", ["TX", "NE"]]}]})
        stmt.execute()
        assert fetch_all(addresses_db, "SELECT id FROM addresses") == [(4,)]

    def test_failure_rolls_back_every_statement(self, conn, addresses_db):
        stmt = StatementSet(conn, INSERT_SQL)
        stmt.add_criteria(
            [
                {"values": {"city": "Austin", "state": "TX"}},
                {"values": {"state": "TX"}},
            ]
        )
        with pytest.raises(ExecutionError):
            stmt.execute()
        assert not conn.in_transaction
        assert fetch_all(addresses_db, "SELECT COUNT(*) FROM addresses") == [(4,)]

    def test_diff_picks_matching_operation(self, conn):
        diff = Diff.from_data(
            {
                "select": [{"where": [{"id": 2}]}],
                "delete": [{"where": [{"id": 3}]}],
            }
        )
        stmt = StatementSet(conn, SELECT_SQL, criteria=diff)
        assert len(stmt.criteria) == 1
        assert stmt.execute().data()[0]["id"] == 2

    def test_clear_drops_criteria(self, conn):
        stmt = StatementSet(conn, SELECT_SQL, criteria={"where": []})
        stmt.clear()
        assert stmt.criteria == []

    def test_dump_without_connection(self):
        stmt = StatementSet(None, DELETE_SQL, criteria={"where": [{"id": ["<>", 2]}]})
        assert stmt.dump() == [
            {
                "type": "DELETE",
                "sql": "DELETE FROM addresses WHERE id <> :w0_0",
                "parameters": [{"w0_0": 2}],
            }
        ]


@pytest.mark.unit
class TestOneShot:
    def test_criteria_input(self, conn):
        stmt = StatementSet(conn, SELECT_SQL)
        result = one_shot(stmt, [{"where": [{"city": "Portland"}]}])
        assert result.data() == [{"id": 4, "city": "Portland", "state": "OR"}]

    def test_leading_statement_set_in_transaction(self, conn):
        txn = Transaction(conn)
        txn.add_query(StatementSet(conn, SELECT_SQL))
        txn.add_criteria({"where": [{"id": ["<", 3]}]})
        assert len(txn.execute()) == 2
