"""Tests for tool dispatch: validation gates execution."""

from __future__ import annotations

import asyncio
import json
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from sqlgate.adapters._base import AdapterError, ConnectionConfig, DatabaseType, ExecutionResult
from sqlgate.adapters.duckdb import DuckDBAdapter
from sqlgate.diagnostics import codes
from sqlgate.dispatch import (
    DispatchContext,
    Tool,
    _safe_error_message,
    available_tools,
    dispatch,
    sanitize_columns,
)
from sqlgate.policy import OperationClass


@pytest.fixture
def adapter():
    a = DuckDBAdapter()
    config = ConnectionConfig(name="test", db_type=DatabaseType.DUCKDB)
    asyncio.run(a.connect(config))
    asyncio.run(a.execute("CREATE TABLE users (id INTEGER, name TEXT)"))
    asyncio.run(a.execute("INSERT INTO users VALUES (1, 'alice'), (2, 'bob'), (3, 'carol')"))
    yield a
    asyncio.run(a.close())


@pytest.fixture
def mock_adapter():
    a = MagicMock()
    a.execute = AsyncMock(return_value=ExecutionResult(columns=[], rows=[], row_count=0))
    return a


class TestAccepted:
    def test_read_data(self, adapter) -> None:
        result = asyncio.run(dispatch(Tool.READ_DATA, "SELECT id, name FROM users ORDER BY id", adapter))
        assert result.success
        assert result.operation == OperationClass.READ_ONLY_QUERY
        assert result.execution.columns == ["id", "name"]
        assert result.execution.rows[0] == {"id": 1, "name": "alice"}
        assert result.execution.row_count == 3
        assert not result.execution.truncated

    def test_tool_by_name(self, adapter) -> None:
        result = asyncio.run(dispatch("read_data", "SELECT 1 AS x", adapter))
        assert result.success
        assert result.tool == "read_data"

    def test_update_data(self, adapter) -> None:
        result = asyncio.run(dispatch(
            Tool.UPDATE_DATA, "UPDATE users SET name = 'zoe' WHERE id = 1", adapter,
        ))
        assert result.success
        check = asyncio.run(adapter.execute("SELECT name FROM users WHERE id = 1"))
        assert check.rows == [{"name": "zoe"}]

    def test_execute_ddl(self, adapter) -> None:
        result = asyncio.run(dispatch(Tool.EXECUTE_DDL, "CREATE TABLE events (id INTEGER)", adapter))
        assert result.success
        check = asyncio.run(adapter.execute("SELECT COUNT(*) AS n FROM events"))
        assert check.rows == [{"n": 0}]

    def test_dba_read_data(self, adapter) -> None:
        result = asyncio.run(dispatch(Tool.DBA_READ_DATA, "SELECT COUNT(*) AS n FROM users", adapter))
        assert result.success
        assert result.operation == OperationClass.DIAGNOSTIC_BATCH

    def test_row_cap(self, adapter) -> None:
        context = DispatchContext(max_rows=2)
        result = asyncio.run(dispatch(Tool.READ_DATA, "SELECT id FROM users", adapter, context))
        assert result.success
        assert result.execution.row_count == 2
        assert result.execution.truncated

    def test_original_text_is_executed(self, mock_adapter) -> None:
        sql = "SELECT id\n  FROM users -- note"
        asyncio.run(dispatch(Tool.READ_DATA, sql, mock_adapter))
        mock_adapter.execute.assert_awaited_once_with(sql, max_rows=10_000)

    def test_write_tools_are_not_row_capped(self, mock_adapter) -> None:
        sql = "UPDATE users SET name = 'x' WHERE id = 1"
        asyncio.run(dispatch(Tool.UPDATE_DATA, sql, mock_adapter))
        mock_adapter.execute.assert_awaited_once_with(sql, max_rows=None)


class TestRejected:
    def test_validation_failure_never_executes(self, mock_adapter) -> None:
        result = asyncio.run(dispatch(Tool.READ_DATA, "SELECT 1; DROP TABLE users", mock_adapter))
        assert not result.success
        assert result.error == "SECURITY_VALIDATION_FAILED"
        assert result.message == "Security validation failed: Multiple SQL statements are not allowed."
        assert result.validation.code == codes.MULTIPLE_STATEMENTS
        mock_adapter.execute.assert_not_awaited()

    def test_update_without_where(self, mock_adapter) -> None:
        result = asyncio.run(dispatch(Tool.UPDATE_DATA, "UPDATE users SET name = 'x'", mock_adapter))
        assert result.error == "SECURITY_VALIDATION_FAILED"
        assert result.validation.code == codes.MISSING_GUARD_CLAUSE
        mock_adapter.execute.assert_not_awaited()

    def test_length_checked_first(self, mock_adapter) -> None:
        sql = "SELECT 1; DROP TABLE t" + " " * 20_000
        result = asyncio.run(dispatch(Tool.READ_DATA, sql, mock_adapter))
        assert result.validation.code == codes.INPUT_TOO_LONG
        assert result.validation.normalized_query is None

    def test_unknown_tool(self, mock_adapter) -> None:
        result = asyncio.run(dispatch("drop_everything", "SELECT 1", mock_adapter))
        assert result.error == "UNKNOWN_TOOL"
        assert "read_data" in result.message
        mock_adapter.execute.assert_not_awaited()

    def test_read_only_mode_hides_write_tools(self, mock_adapter) -> None:
        context = DispatchContext(read_only=True)
        result = asyncio.run(dispatch(
            Tool.UPDATE_DATA, "UPDATE users SET name = 'x' WHERE id = 1", mock_adapter, context,
        ))
        assert result.error == "TOOL_NOT_AVAILABLE"
        mock_adapter.execute.assert_not_awaited()

    def test_overrides_apply_per_operation(self, mock_adapter) -> None:
        context = DispatchContext(
            overrides={OperationClass.READ_ONLY_QUERY: {"max_length": 10}}
        )
        result = asyncio.run(dispatch(Tool.READ_DATA, "SELECT id FROM users", mock_adapter, context))
        assert result.validation.code == codes.INPUT_TOO_LONG

    def test_bad_override_fails_closed(self, mock_adapter) -> None:
        context = DispatchContext(overrides={OperationClass.READ_ONLY_QUERY: {"bogus": 1}})
        result = asyncio.run(dispatch(Tool.READ_DATA, "SELECT 1", mock_adapter, context))
        assert result.validation.code == codes.INTERNAL_ERROR
        mock_adapter.execute.assert_not_awaited()

    def test_rejection_is_logged(self, mock_adapter, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="sqlgate.dispatch"):
            asyncio.run(dispatch(Tool.READ_DATA, "DELETE FROM users WHERE id = 1", mock_adapter))
        assert "SQL security validation failed" in caplog.text


class TestStrict:
    def test_select_into_blocked(self, mock_adapter) -> None:
        context = DispatchContext(strict=True)
        result = asyncio.run(dispatch(
            Tool.READ_DATA, "SELECT * INTO copy_users FROM users", mock_adapter, context,
        ))
        assert result.error == "STRICT_VALIDATION_FAILED"
        assert result.validation.code == codes.STRICT_MISMATCH
        mock_adapter.execute.assert_not_awaited()

    def test_off_by_default(self, mock_adapter) -> None:
        result = asyncio.run(dispatch(Tool.READ_DATA, "SELECT * INTO copy_users FROM users", mock_adapter))
        assert result.success

    def test_strict_accepts_matching_statement(self, adapter) -> None:
        context = DispatchContext(strict=True)
        result = asyncio.run(dispatch(Tool.READ_DATA, "SELECT id FROM users", adapter, context))
        assert result.success


class TestExecutionErrors:
    def test_missing_table(self, adapter) -> None:
        result = asyncio.run(dispatch(Tool.READ_DATA, "SELECT * FROM no_such_table", adapter))
        assert not result.success
        assert result.error == "EXECUTION_FAILED"
        assert result.message == "Failed to execute query: Object does not exist"

    def test_generic_failure_hidden(self, mock_adapter) -> None:
        mock_adapter.execute.side_effect = AdapterError("disk quota exceeded on /var/lib/db")
        result = asyncio.run(dispatch(Tool.READ_DATA, "SELECT 1", mock_adapter))
        assert result.message == "Failed to execute query: Database operation failed"

    @pytest.mark.parametrize(("raw", "safe"), [
        ("Invalid object name 'dbo.x'.", "Invalid object name 'dbo.x'."),
        ("Table already exists", "Object already exists"),
        ("Parser Error: syntax error at or near \"FORM\"", "SQL syntax error"),
        ("permission denied for table users", "Insufficient permissions for this operation"),
        ("connection reset by peer", "Database operation failed"),
    ])
    def test_safe_error_message(self, raw: str, safe: str) -> None:
        assert _safe_error_message(raw) == safe


class TestHelpers:
    def test_available_tools(self) -> None:
        assert available_tools(DispatchContext()) == list(Tool)
        assert available_tools(DispatchContext(read_only=True)) == [
            Tool.READ_DATA, Tool.DBA_READ_DATA,
        ]

    def test_sanitize_columns(self) -> None:
        raw = ExecutionResult(
            columns=["id", "name<script>", "total-amount.usd"],
            rows=[{"id": 1, "name<script>": "a", "total-amount.usd": 2}],
            row_count=1,
        )
        clean = sanitize_columns(raw)
        assert clean.columns == ["id", "namescript", "total-amount.usd"]
        assert clean.rows == [{"id": 1, "namescript": "a", "total-amount.usd": 2}]

    def test_sanitize_noop_returns_same_object(self) -> None:
        raw = ExecutionResult(columns=["id"], rows=[{"id": 1}], row_count=1)
        assert sanitize_columns(raw) is raw


class TestAudit:
    def test_rejection_written(self, mock_adapter, audit_root) -> None:
        context = DispatchContext(audit=True, db_name="duckdb")
        asyncio.run(dispatch(Tool.READ_DATA, "SELECT 1 UNION SELECT 2", mock_adapter, context))
        entry = json.loads(next(audit_root.glob("*.jsonl")).read_text().strip())
        assert entry["accepted"] is False
        assert entry["code"] == "V0202"
        assert entry["tool"] == "read_data"
        assert entry["db"] == "duckdb"

    def test_success_written(self, adapter, audit_root) -> None:
        context = DispatchContext(audit=True)
        asyncio.run(dispatch(Tool.READ_DATA, "SELECT id FROM users", adapter, context))
        entry = json.loads(next(audit_root.glob("*.jsonl")).read_text().strip())
        assert entry["accepted"] is True
        assert entry["row_count"] == 3

    def test_disabled_by_default(self, mock_adapter, audit_root) -> None:
        asyncio.run(dispatch(Tool.READ_DATA, "SELECT 1", mock_adapter))
        assert not audit_root.exists()


def test_to_dict_shape(mock_adapter) -> None:
    result = asyncio.run(dispatch(Tool.READ_DATA, "SELECT 1 UNION SELECT 2", mock_adapter))
    data = result.to_dict()
    assert data == {
        "success": False,
        "tool": "read_data",
        "message": "Security validation failed: UNION-based queries are not allowed.",
        "error": "SECURITY_VALIDATION_FAILED",
        "operation": "read_only_query",
        "code": "V0202",
        "rule": "union-injection",
    }
