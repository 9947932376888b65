"""DuckDB adapter — in-process execution for local use and tests."""

from __future__ import annotations

import time

import duckdb as _duckdb

from sqlgate.adapters._base import (
    AdapterError,
    ConnectionConfig,
    DatabaseType,
    ExecutionResult,
)


class DuckDBAdapter:
    """DuckDB adapter — in-process, no server needed."""

    def __init__(self) -> None:
        self._conn: _duckdb.DuckDBPyConnection | None = None

    async def connect(self, config: ConnectionConfig) -> None:
        path = config.params.get("path", ":memory:")
        try:
            self._conn = _duckdb.connect(path)
        except Exception as e:
            raise AdapterError(f"DuckDB connection failed: {e}") from e

    async def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _ensure_conn(self) -> _duckdb.DuckDBPyConnection:
        if self._conn is None:
            raise AdapterError("Not connected. Call connect() first.")
        return self._conn

    async def execute(self, sql: str, *, max_rows: int | None = None) -> ExecutionResult:
        conn = self._ensure_conn()

        t0 = time.monotonic()
        try:
            result = conn.execute(sql)
            columns = [desc[0] for desc in result.description] if result.description else []
            if max_rows is None:
                rows_raw = result.fetchall()
            else:
                # One extra row tells us whether the cap cut anything off.
                rows_raw = result.fetchmany(max_rows + 1)
        except Exception as e:
            raise AdapterError(f"DuckDB execution failed: {e}") from e
        duration_ms = (time.monotonic() - t0) * 1000

        truncated = max_rows is not None and len(rows_raw) > max_rows
        if truncated:
            rows_raw = rows_raw[:max_rows]
        rows = [dict(zip(columns, row, strict=True)) for row in rows_raw]

        return ExecutionResult(
            columns=columns,
            rows=rows,
            row_count=len(rows),
            truncated=truncated,
            duration_ms=duration_ms,
        )

    def db_type(self) -> DatabaseType:
        return DatabaseType.DUCKDB
