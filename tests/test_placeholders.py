"""Tests for placeholder scanning and paramstyle translation."""

import pytest

from velox.core.placeholders import NAMED, PYFORMAT, scan, translate


@pytest.mark.unit
class TestScan:
    def test_named_in_first_seen_order(self):
        info = scan("SELECT * FROM t WHERE b = :b AND a = :a OR b = :b")
        assert info.names == ("b", "a")
        assert info.positional == 0
        assert info.is_named

    def test_positional(self):
        info = scan("INSERT INTO t VALUES (?, ?, ?)")
        assert info.names == ()
        assert info.positional == 3

    def test_mixed(self):
        assert scan("SELECT * FROM t WHERE a = :a AND b = ?").is_mixed

    def test_ignores_literals_and_comments(self):
        sql = (
            "SELECT ':nope', \"col:x\", `q?` FROM t -- :comment ?\n"
            "WHERE a = :real /* :block ? */"
        )
        info = scan(sql)
        assert info.names == ("real",)
        assert info.positional == 0

    def test_ignores_postgres_casts(self):
        info = scan("SELECT :value::int, created::date FROM t")
        assert info.names == ("value",)

    def test_escaped_quote_in_literal(self):
        assert scan("SELECT 'it''s :not' WHERE x = :yes").names == ("yes",)


@pytest.mark.unit
class TestTranslate:
    def test_named_paramstyle_untouched(self):
        sql = "SELECT * FROM t WHERE a = :a AND b LIKE '10%'"
        assert translate(sql, NAMED) == sql

    def test_pyformat_named(self):
        assert (
            translate("UPDATE t SET a = :a WHERE id = :id", PYFORMAT)
            == "UPDATE t SET a = %(a)s WHERE id = %(id)s"
        )

    def test_pyformat_positional(self):
        assert translate("INSERT INTO t VALUES (?, ?)", PYFORMAT) == "INSERT INTO t VALUES (%s, %s)"

    def test_percent_escaped(self):
        assert (
            translate("SELECT * FROM t WHERE a LIKE 'x' || :p || '%' AND b % 2 = 0", PYFORMAT)
            == "SELECT * FROM t WHERE a LIKE 'x' || %(p)s || '%%' AND b %% 2 = 0"
        )

    def test_cast_preserved(self):
        assert translate("SELECT :v::text", PYFORMAT) == "SELECT %(v)s::text"
