"""Test the policies CLI command."""

import json

from click.testing import CliRunner

from sqlgate.cli import main


def test_policies_lists_every_operation_class() -> None:
    runner = CliRunner()
    result = runner.invoke(main, ["policies"])
    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert set(data) == {
        "read_only_query", "guarded_mutation", "data_definition", "diagnostic_batch",
    }
    assert data["guarded_mutation"]["requires_guard_clause"] is True
    assert "UPDATE" not in data["guarded_mutation"]["denied_keywords"]
    assert data["diagnostic_batch"]["allowed_statements"] == ["statistics-toggle", "showplan-toggle"]


def test_policies_single_operation() -> None:
    runner = CliRunner()
    result = runner.invoke(main, ["policies", "--op", "data_definition"])
    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert list(data) == ["data_definition"]
    policy = data["data_definition"]
    assert policy["required_leading_verbs"] == ["ALTER", "CREATE", "DROP", "TRUNCATE"]
    assert policy["allow_multiple_statements"] is True
    assert policy["max_length"] == 50000
    assert policy["protected_targets"] == ["system-database", "system-catalog"]


def test_policies_reflect_overrides(tmp_path) -> None:
    path = tmp_path / "policies.toml"
    path.write_text('[read_only_query]\nmax_length = 2000\ndenied_patterns = ["union-injection"]\n')
    runner = CliRunner()
    result = runner.invoke(main, ["policies", "--op", "read_only_query", "--policies", str(path)])
    assert result.exit_code == 0
    policy = json.loads(result.stdout)["read_only_query"]
    assert policy["max_length"] == 2000
    assert policy["denied_patterns"] == ["union-injection"]
