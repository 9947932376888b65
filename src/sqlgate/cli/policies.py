"""The `policies` command: show the effective policy for each operation class."""

from __future__ import annotations

import json

import click

from sqlgate.cli._output import policy_to_dict
from sqlgate.cli._shared import OPERATION_CHOICE, load_policy_overrides
from sqlgate.policy import OperationClass, get_policy


@click.command()
@click.option("--op", "operation", type=OPERATION_CHOICE, default=None,
              help="Only show this operation class.")
@click.option("--policies", "policies_file", default=None, help="Policy override file (TOML).")
def policies(operation: str | None, policies_file: str | None) -> None:
    """Print effective policies (built-ins plus overrides) as JSON."""
    overrides = load_policy_overrides(policies_file)
    selected = [OperationClass(operation)] if operation else list(OperationClass)
    data = {op.value: policy_to_dict(get_policy(op, overrides.get(op))) for op in selected}
    click.echo(json.dumps(data, indent=2))
