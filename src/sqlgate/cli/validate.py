"""The `validate` command: check SQL against an operation policy without executing."""

from __future__ import annotations

import click

from sqlgate.cli._output import format_result
from sqlgate.cli._shared import OPERATION_CHOICE, load_policy_overrides, resolve_sql_stdin
from sqlgate.policy import OperationClass, validate as run_validation


@click.command()
@click.argument("sql", required=False)
@click.option(
    "--op",
    "operation",
    type=OPERATION_CHOICE,
    default=OperationClass.READ_ONLY_QUERY.value,
    show_default=True,
    help="Operation class whose policy applies.",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["json", "text"]),
    default="text",
    help="Output format.",
)
@click.option("--policies", default=None, help="Policy override file (TOML).")
@click.option("--from-stdin", is_flag=True, help="Read SQL from stdin.")
def validate(
    sql: str | None,
    operation: str,
    output_format: str,
    policies: str | None,
    from_stdin: bool,
) -> None:
    """Validate SQL against an operation policy without executing."""
    sql = resolve_sql_stdin(sql, from_stdin)
    op = OperationClass(operation)
    overrides = load_policy_overrides(policies)
    result = run_validation(op, sql, overrides.get(op))
    click.echo(format_result(result, sql=sql, output_format=output_format, operation=op.value))
    if not result.is_valid:
        raise SystemExit(1)
