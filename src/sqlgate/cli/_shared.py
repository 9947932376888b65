"""Shared helpers for CLI commands."""

from __future__ import annotations

import sys

import click

from sqlgate.adapters._base import ConnectionConfig, DatabaseType
from sqlgate.config import ConfigError, PolicyOverrides, load_overrides
from sqlgate.policy import OperationClass

OPERATION_CHOICE = click.Choice([op.value for op in OperationClass])


def resolve_sql_stdin(sql: str | None, from_stdin: bool) -> str:
    """Resolve SQL from positional argument or stdin. Exactly one source required."""
    if sql and from_stdin:
        raise click.UsageError("Provide SQL as an argument or --from-stdin, not both.")
    if from_stdin:
        if sys.stdin.isatty():
            raise click.UsageError("--from-stdin requires piped input (stdin is a terminal).")
        return sys.stdin.read()
    if sql is None:
        raise click.UsageError("Missing argument 'SQL'. Provide SQL or use --from-stdin.")
    return sql


def load_policy_overrides(path: str | None) -> PolicyOverrides:
    """Load overrides for a command, turning config errors into usage errors."""
    try:
        return load_overrides(path)
    except ConfigError as e:
        raise click.BadParameter(str(e), param_hint="'--policies'") from e


def parse_db(value: str) -> ConnectionConfig:
    """Resolve a --db value in 'type' or 'type:key=val,key=val' format."""
    db_type_str, _, params_str = value.partition(":")

    try:
        db_type = DatabaseType(db_type_str)
    except ValueError as e:
        valid = ", ".join(t.value for t in DatabaseType)
        raise click.BadParameter(
            f"Unknown database type '{db_type_str}'. Valid: {valid}",
            param_hint="'--db'",
        ) from e

    params: dict[str, str] = {}
    if params_str:
        for part in params_str.split(","):
            if "=" not in part:
                raise click.BadParameter(
                    f"Expected key=value pair, got '{part}'",
                    param_hint="'--db'",
                )
            k, v = part.split("=", 1)
            params[k.strip()] = v.strip()

    return ConnectionConfig(name=db_type_str, db_type=db_type, params=params)
