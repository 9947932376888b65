"""Database adapter protocol — the boundary between dispatch and drivers.

The validator never talks to a database. Dispatch hands already-validated
text to an adapter and nothing else.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


class DatabaseType(enum.Enum):
    DUCKDB = "duckdb"


@dataclass
class ConnectionConfig:
    name: str
    db_type: DatabaseType
    params: dict[str, str] = field(default_factory=dict)


@dataclass
class ExecutionResult:
    """Query execution result."""

    columns: list[str]
    rows: list[dict[str, object]]
    row_count: int
    truncated: bool = False
    duration_ms: float | None = None


class AdapterError(Exception):
    """Raised by adapters for connection/execution failures."""


@runtime_checkable
class DatabaseAdapter(Protocol):
    async def connect(self, config: ConnectionConfig) -> None: ...
    async def close(self) -> None: ...
    async def execute(self, sql: str, *, max_rows: int | None = None) -> ExecutionResult: ...
    def db_type(self) -> DatabaseType: ...
