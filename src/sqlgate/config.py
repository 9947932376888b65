"""Policy overrides — ~/.sqlgate/policies.toml.

One table per operation class, keyed by the class value:

    [read_only_query]
    max_length = 20000

    [data_definition]
    allowed_object_types = ["TABLE", "INDEX", "FUNCTION"]
    denied_patterns = ["statement-chaining", "dynamic-execution"]

Pattern fields take rule names from the built-in catalogue.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path

from sqlgate.policy import OperationClass, get_policy
from sqlgate.policy.patterns import RULE_CATALOGUE

_POLICIES_FILE = Path.home() / ".sqlgate" / "policies.toml"
ENV_VAR = "SQLGATE_POLICIES"

_RULE_FIELDS = frozenset({"denied_patterns", "allowed_statements", "protected_targets"})

PolicyOverrides = dict[OperationClass, dict[str, object]]


class ConfigError(Exception):
    """Raised when the policy override file is unreadable or invalid."""


def policies_path(explicit: str | os.PathLike[str] | None = None) -> Path:
    """Resolve the override file: explicit path, then $SQLGATE_POLICIES, then home default."""
    if explicit is not None:
        return Path(explicit)
    env = os.environ.get(ENV_VAR)
    if env:
        return Path(env)
    return _POLICIES_FILE


def _resolve_rules(op: str, key: str, names: object) -> tuple:
    if not isinstance(names, list):
        raise ConfigError(f"[{op}] {key} must be a list of rule names")
    unknown = [n for n in names if n not in RULE_CATALOGUE]
    if unknown:
        valid = ", ".join(sorted(RULE_CATALOGUE))
        raise ConfigError(f"[{op}] {key}: unknown rule(s) {', '.join(map(str, unknown))}. Valid: {valid}")
    return tuple(RULE_CATALOGUE[n] for n in names)


def parse_overrides(data: dict) -> PolicyOverrides:
    """Turn parsed TOML into per-class override mappings, validating each one."""
    result: PolicyOverrides = {}
    for op_name, table in data.items():
        try:
            op = OperationClass(op_name)
        except ValueError as e:
            valid = ", ".join(o.value for o in OperationClass)
            raise ConfigError(f"Unknown operation class '{op_name}'. Valid: {valid}") from e
        if not isinstance(table, dict):
            raise ConfigError(f"[{op_name}] must be a table")

        overrides: dict[str, object] = {}
        for key, value in table.items():
            if key in _RULE_FIELDS:
                overrides[key] = _resolve_rules(op_name, key, value)
            elif isinstance(value, list):
                overrides[key] = tuple(str(v) for v in value)
            else:
                overrides[key] = value

        # Build once so bad fields fail here, at load time, not per query.
        try:
            get_policy(op, overrides)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"[{op_name}] {e}") from e
        result[op] = overrides
    return result


def load_overrides(path: str | os.PathLike[str] | None = None) -> PolicyOverrides:
    """Load policy overrides. A missing default file means no overrides."""
    file = policies_path(path)
    if not file.exists():
        if path is not None:
            raise ConfigError(f"Policy file not found: {file}")
        return {}
    try:
        data = tomllib.loads(file.read_text())
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {file}: {e}") from e
    return parse_overrides(data)
