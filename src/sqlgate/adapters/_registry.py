"""Lazy adapter loading — imports driver modules only when needed."""

from __future__ import annotations

import contextlib
import importlib
from collections.abc import AsyncIterator

from sqlgate.adapters._base import AdapterError, ConnectionConfig, DatabaseAdapter, DatabaseType

_ADAPTER_MAP: dict[DatabaseType, tuple[str, str, str]] = {
    # db type -> (module, class, pip extra)
    DatabaseType.DUCKDB: ("sqlgate.adapters.duckdb", "DuckDBAdapter", "duckdb"),
}


def get_adapter(db_type: DatabaseType) -> type[DatabaseAdapter]:
    """Lazy-load an adapter class by database type.

    Raises AdapterError with install hint if the driver package is missing.
    """
    entry = _ADAPTER_MAP.get(db_type)
    if entry is None:
        raise AdapterError(f"No adapter registered for {db_type.value}")

    module_path, class_name, extra = entry
    try:
        mod = importlib.import_module(module_path)
    except ImportError as e:
        raise AdapterError(
            f"Missing driver for {db_type.value}. "
            f"Install with: pip install 'sqlgate[{extra}]'"
        ) from e

    return getattr(mod, class_name)


@contextlib.asynccontextmanager
async def open_adapter(config: ConnectionConfig) -> AsyncIterator[DatabaseAdapter]:
    """Connect an adapter for `config` and close it on exit."""
    adapter = get_adapter(config.db_type)()
    await adapter.connect(config)
    try:
        yield adapter
    finally:
        await adapter.close()
