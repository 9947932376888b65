"""Tests for the optional sqlglot cross-check."""

from __future__ import annotations

import sqlglot

from sqlgate.diagnostics import codes
from sqlgate.policy import OperationClass
from sqlgate.strict import StatementKind, check_strict, classify


class TestClassify:
    def test_select(self) -> None:
        assert classify(sqlglot.parse_one("SELECT 1")) == StatementKind.READ

    def test_union(self) -> None:
        assert classify(sqlglot.parse_one("SELECT 1 UNION SELECT 2")) == StatementKind.READ

    def test_insert(self) -> None:
        assert classify(sqlglot.parse_one("INSERT INTO t VALUES (1)")) == StatementKind.DML

    def test_drop(self) -> None:
        assert classify(sqlglot.parse_one("DROP TABLE t")) == StatementKind.DDL

    def test_select_into(self) -> None:
        stmt = sqlglot.parse_one("SELECT * INTO copy_t FROM t", dialect="tsql")
        assert classify(stmt) == StatementKind.DDL

    def test_writable_cte(self) -> None:
        stmt = sqlglot.parse_one(
            "WITH gone AS (DELETE FROM t WHERE id = 1 RETURNING *) SELECT * FROM gone"
        )
        assert classify(stmt) == StatementKind.DML


class TestCheckStrict:
    def test_read_matches(self) -> None:
        assert check_strict(OperationClass.READ_ONLY_QUERY, "SELECT id FROM users") is None

    def test_read_rejects_dml(self) -> None:
        diag = check_strict(OperationClass.READ_ONLY_QUERY, "DELETE FROM t WHERE id = 1")
        assert diag is not None
        assert diag.code == codes.STRICT_MISMATCH
        assert diag.message == "parsed statement is dml, expected read"

    def test_select_into_is_not_a_read(self) -> None:
        diag = check_strict(OperationClass.READ_ONLY_QUERY, "SELECT * INTO copy_t FROM t")
        assert diag is not None
        assert diag.code == codes.STRICT_MISMATCH

    def test_mutation_with_where(self) -> None:
        assert check_strict(OperationClass.GUARDED_MUTATION, "UPDATE t SET a = 1 WHERE id = 2") is None

    def test_where_inside_literal_is_not_a_guard(self) -> None:
        diag = check_strict(OperationClass.GUARDED_MUTATION, "UPDATE t SET note = ' WHERE '")
        assert diag is not None
        assert diag.code == codes.MISSING_GUARD_CLAUSE
        assert diag.message == "UPDATE without WHERE clause"

    def test_ddl(self) -> None:
        sql = "CREATE TABLE a (id INT); DROP TABLE b"
        assert check_strict(OperationClass.DATA_DEFINITION, sql) is None

    def test_diagnostic_batch_settings(self) -> None:
        sql = "SET STATISTICS IO ON; SELECT 1; SET STATISTICS IO OFF"
        assert check_strict(OperationClass.DIAGNOSTIC_BATCH, sql) is None

    def test_syntax_error(self) -> None:
        diag = check_strict(OperationClass.READ_ONLY_QUERY, "SELECT * FROM (")
        assert diag is not None
        assert diag.code == codes.SYNTAX_ERROR
