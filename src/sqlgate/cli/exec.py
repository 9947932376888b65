"""The `exec` command: dispatch SQL through a tool and execute it if accepted.

Validation always runs first. A rejected query is reported and never sent
to the database.
"""

from __future__ import annotations

import asyncio
import json

import click

from sqlgate.adapters._base import AdapterError, ConnectionConfig
from sqlgate.adapters._registry import open_adapter
from sqlgate.auditlog import cleanup_old_logs
from sqlgate.cli._output import format_dispatch
from sqlgate.cli._shared import load_policy_overrides, parse_db
from sqlgate.dispatch import DEFAULT_MAX_ROWS, DispatchContext, DispatchResult, Tool, dispatch


async def _run_exec(
    tool: Tool, sql: str, config: ConnectionConfig, context: DispatchContext
) -> DispatchResult:
    async with open_adapter(config) as adapter:
        return await dispatch(tool, sql, adapter, context)


@click.command("exec")
@click.argument("tool", type=click.Choice([t.value for t in Tool]))
@click.argument("sql")
@click.option("--db", required=True, envvar="SQLGATE_DB", help="Database as type[:key=val,...].")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["json", "text"]),
    default="json",
    help="Output format.",
)
@click.option("--policies", default=None, help="Policy override file (TOML).")
@click.option("--read-only", is_flag=True, envvar="SQLGATE_READONLY", help="Refuse write tools.")
@click.option("--strict", is_flag=True, help="Also require the parsed statement to match the tool.")
@click.option("--max-rows", type=int, default=DEFAULT_MAX_ROWS, show_default=True,
              help="Cap on rows returned by read tools.")
@click.option("--no-audit", is_flag=True, help="Do not write the audit log.")
def exec_cmd(
    tool: str,
    sql: str,
    db: str,
    output_format: str,
    policies: str | None,
    read_only: bool,
    strict: bool,
    max_rows: int,
    no_audit: bool,
) -> None:
    """Validate SQL for TOOL and execute it when the policy accepts it."""
    if not no_audit:
        cleanup_old_logs()

    try:
        config = parse_db(db)
    except click.BadParameter as e:
        click.echo(f"error: {e.format_message()}", err=True)
        raise SystemExit(1) from e

    context = DispatchContext(
        overrides=load_policy_overrides(policies),
        read_only=read_only,
        strict=strict,
        max_rows=max_rows,
        db_name=config.name,
        audit=not no_audit,
    )

    try:
        result = asyncio.run(_run_exec(Tool(tool), sql, config, context))
    except AdapterError as e:
        if output_format == "json":
            click.echo(json.dumps({"success": False, "error": "CONNECTION_FAILED",
                                   "message": str(e)}, indent=2))
        else:
            click.echo(f"error: {e}", err=True)
        raise SystemExit(1) from e

    click.echo(format_dispatch(result, output_format=output_format))
    if not result.success:
        raise SystemExit(1)
