"""Tests for Query and result aggregation."""

import pytest

from velox.core.error_codes import ErrorCode
from velox.core.exceptions import CompilationError, ConsistencyError, ExecutionError, InputError
from velox.core.models import ProcedureInput, QueryType, ResultSetOption, infer_query_type
from velox.core.results import ResultSet
from velox.procedures import Procedure, Query, single_result
from velox.procedures.base import aggregate


@pytest.mark.unit
class TestInferQueryType:
    @pytest.mark.parametrize(
        ("sql", "expected"),
        [
            ("SELECT 1", QueryType.SELECT),
            ("  with x as (select 1) select * from x", QueryType.SELECT),
            ("INSERT INTO t VALUES (1)", QueryType.INSERT),
            ("update t set a = 1", QueryType.UPDATE),
            ("DELETE FROM t", QueryType.DELETE),
            ("CALL refresh()", QueryType.PROC),
            ("PRAGMA table_info(t)", QueryType.SELECT),
            ("", QueryType.SELECT),
        ],
    )
    def test_first_keyword(self, sql, expected):
        assert infer_query_type(sql) is expected


@pytest.mark.unit
class TestQuery:
    def test_implements_protocol(self, conn):
        query = Query(conn, "SELECT 1")
        assert isinstance(query, Procedure)
        assert query.input_kind is ProcedureInput.NONE

    def test_select(self, conn):
        query = Query(conn, "SELECT id, city FROM addresses WHERE state = 'TX' ORDER BY id")
        result = query.execute()
        assert isinstance(result, ResultSet)
        assert result.data() == [{"id": 1, "city": "Dallas"}, {"id": 2, "city": "Falls City"}]
        assert query.get_results() is result

    def test_callable(self, conn):
        assert Query(conn, "SELECT 7 AS n")().data() == [{"n": 7}]

    def test_results_before_execute(self, conn):
        with pytest.raises(ExecutionError) as exc_info:
            Query(conn, "SELECT 1").get_results()
        assert exc_info.value.code == ErrorCode.RESULTS_NOT_AVAILABLE

    def test_clear_forgets_results(self, conn):
        query = Query(conn, "SELECT 1")
        query.execute()
        query.clear()
        with pytest.raises(ExecutionError):
            query.get_results()

    def test_sql_required(self, conn):
        with pytest.raises(ExecutionError) as exc_info:
            Query(conn, "   ").execute()
        assert exc_info.value.code == ErrorCode.SQL_NOT_SET

    def test_connection_required(self):
        with pytest.raises(ExecutionError) as exc_info:
            Query(None, "SELECT 1").execute()
        assert exc_info.value.code == ErrorCode.TRANSACTION_NO_CONNECTION

    def test_rejects_input(self, conn):
        with pytest.raises(InputError) as exc_info:
            Query(conn, "SELECT 1").feed([{"id": 1}])
        assert exc_info.value.code == ErrorCode.INPUT_NOT_SUPPORTED

    def test_insert_reports_affected_key(self, conn):
        query = Query(conn, "INSERT INTO addresses (city, state) VALUES ('Austin', 'TX')")
        result = query.execute()
        assert len(result) == 0
        assert result.affected_count == 1
        assert query.last_affected() == [5]

    def test_fields_only(self, conn):
        query = Query(conn, "SELECT id, city FROM addresses", result_option=ResultSetOption.FIELDS_ONLY)
        names = [row["name"] for row in query.execute()]
        assert names == ["id", "city"]

    def test_array_option(self, conn):
        result = Query(conn, "SELECT 1 AS n", result_option=ResultSetOption.ARRAY).execute()
        assert isinstance(result, list)
        assert single_result(result).data() == [{"n": 1}]

    def test_invalid_result_option(self, conn):
        with pytest.raises(CompilationError) as exc_info:
            Query(conn, "SELECT 1", result_option=99)
        assert exc_info.value.code == ErrorCode.INVALID_RESULT_OPTION

    def test_dump(self, conn):
        assert Query(conn, "DELETE FROM addresses").dump() == [
            {"type": "DELETE", "sql": "DELETE FROM addresses", "parameters": []}
        ]

    def test_repr_includes_name(self, conn):
        assert repr(Query(conn, "SELECT 1", name="ping")) == "Query 'ping'(SELECT)"


@pytest.mark.unit
class TestAggregate:
    def _sets(self):
        a = ResultSet([{"id": 1}, {"id": 2}])
        a.affected_count = 2
        b = ResultSet([{"id": 2}, {"id": 3}])
        b.affected_count = 2
        return [a, b]

    def test_union_all(self):
        assert aggregate(self._sets(), ResultSetOption.UNION_ALL).data() == [
            {"id": 1}, {"id": 2}, {"id": 2}, {"id": 3}
        ]

    def test_union(self):
        assert aggregate(self._sets(), ResultSetOption.UNION).data() == [
            {"id": 1}, {"id": 2}, {"id": 3}
        ]

    def test_array(self):
        result = aggregate(self._sets(), ResultSetOption.ARRAY)
        assert isinstance(result, list)
        assert len(result) == 2

    def test_none_keeps_only_counts(self):
        result = aggregate(self._sets(), ResultSetOption.NONE)
        assert len(result) == 0
        assert result.affected_count == 4

    def test_single_result_rejects_many(self):
        with pytest.raises(ConsistencyError) as exc_info:
            single_result(self._sets())
        assert exc_info.value.code == ErrorCode.MULTIPLE_RESULT_SETS
