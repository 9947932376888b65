"""CLI entry point."""

from __future__ import annotations

import logging

import click

from sqlgate.cli.exec import exec_cmd
from sqlgate.cli.policies import policies
from sqlgate.cli.validate import validate


@click.group()
@click.version_option(package_name="sqlgate")
@click.option("-v", "--verbose", is_flag=True, help="Log dispatch decisions to stderr.")
def main(verbose: bool) -> None:
    """sqlgate: operation-specific safety checks for raw SQL."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


main.add_command(validate)
main.add_command(policies)
main.add_command(exec_cmd)
