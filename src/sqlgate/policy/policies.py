"""Declarative validation policies, one per operation class.

A policy is plain data. The engine in `sqlgate.policy` reads it and never
special-cases an operation class, so a new class only needs a new entry in
BUILTIN_POLICIES.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from sqlgate.policy import patterns as p
from sqlgate.policy._types import OperationClass

DEFAULT_GUARD_TOKEN = " WHERE "
DEFAULT_OBJECT_TYPE_VERBS = frozenset({"CREATE", "ALTER"})


def _upper_set(values: Iterable[str]) -> frozenset[str]:
    if isinstance(values, str):
        values = [values]
    return frozenset(v.strip().upper() for v in values)


def _upper_seq(values: Iterable[str]) -> tuple[str, ...]:
    if isinstance(values, str):
        values = [values]
    elif isinstance(values, (set, frozenset)):
        values = sorted(values)
    seen: dict[str, None] = {}
    for v in values:
        seen.setdefault(v.strip().upper(), None)
    return tuple(seen)


@dataclass(frozen=True)
class ValidationPolicy:
    required_leading_verbs: frozenset[str]
    denied_keywords: tuple[str, ...] = ()
    denied_patterns: tuple[p.PatternRule, ...] = ()
    requires_guard_clause: bool = False
    guard_token: str = DEFAULT_GUARD_TOKEN
    allowed_object_types: frozenset[str] | None = None
    object_type_verbs: frozenset[str] = DEFAULT_OBJECT_TYPE_VERBS
    allowed_statements: tuple[p.PatternRule, ...] = ()
    protected_targets: tuple[p.PatternRule, ...] = ()
    allow_multiple_statements: bool = False
    max_length: int = 10_000
    description: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        # TOML strings like "false" are truthy; only real bools and ints are accepted.
        for name in ("requires_guard_clause", "allow_multiple_statements"):
            value = getattr(self, name)
            if not isinstance(value, bool):
                raise TypeError(f"{name} must be a boolean, got {value!r}")
        if not isinstance(self.max_length, int) or isinstance(self.max_length, bool):
            raise TypeError(f"max_length must be an integer, got {self.max_length!r}")
        if not isinstance(self.guard_token, str):
            raise TypeError(f"guard_token must be a string, got {self.guard_token!r}")

        # Accept any iterable from overrides/config; store canonical upper-case forms.
        object.__setattr__(self, "required_leading_verbs", _upper_set(self.required_leading_verbs))
        object.__setattr__(self, "denied_keywords", _upper_seq(self.denied_keywords))
        object.__setattr__(self, "denied_patterns", tuple(self.denied_patterns))
        object.__setattr__(self, "object_type_verbs", _upper_set(self.object_type_verbs))
        object.__setattr__(self, "allowed_statements", tuple(self.allowed_statements))
        object.__setattr__(self, "protected_targets", tuple(self.protected_targets))
        object.__setattr__(self, "guard_token", self.guard_token.upper())
        if self.allowed_object_types is not None:
            object.__setattr__(self, "allowed_object_types", _upper_set(self.allowed_object_types))
        if not self.required_leading_verbs and not self.allowed_statements:
            raise ValueError("policy must allow at least one leading verb or statement shape")
        if self.max_length < 1:
            raise ValueError(f"max_length must be positive, got {self.max_length}")

    @property
    def effective_denied_keywords(self) -> tuple[str, ...]:
        """Denied keywords minus the policy's own leading verbs, in declared order."""
        return tuple(k for k in self.denied_keywords if k not in self.required_leading_verbs)

    @property
    def scan_verbs(self) -> frozenset[str]:
        """Denied statement verbs used by the `{verbs}` pattern rules."""
        return p.statement_verbs(self.effective_denied_keywords)

    def with_overrides(self, overrides: Mapping[str, object] | None) -> ValidationPolicy:
        """Return a copy with `overrides` applied. Unknown fields raise ValueError."""
        if not overrides:
            return self
        known = {f.name for f in dataclasses.fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ValueError(f"unknown policy field(s): {', '.join(unknown)}")
        return dataclasses.replace(self, **overrides)


# -- Built-in keyword lists -----------------------------------------------------

_READ_DENIED = (
    "DELETE", "DROP", "INSERT", "UPDATE", "ALTER", "CREATE", "TRUNCATE", "EXEC", "EXECUTE",
    "MERGE", "REPLACE", "GRANT", "REVOKE", "COMMIT", "ROLLBACK", "TRANSACTION",
    "BEGIN", "DECLARE", "SET", "USE", "BACKUP", "RESTORE", "KILL", "SHUTDOWN",
    "WAITFOR", "OPENROWSET", "OPENDATASOURCE", "OPENQUERY", "OPENXML", "BULK",
)

# SET is part of UPDATE syntax; the leading verb is subtracted by the engine.
_MUTATION_DENIED = tuple(k for k in _READ_DENIED if k != "SET")

_DEFINITION_DENIED = (
    "EXEC", "EXECUTE", "INSERT", "UPDATE", "DELETE", "SELECT",
    "MERGE", "REPLACE", "GRANT", "REVOKE", "COMMIT", "ROLLBACK",
    "TRANSACTION", "BEGIN", "DECLARE", "SET", "USE", "BACKUP",
    "RESTORE", "KILL", "SHUTDOWN", "WAITFOR", "OPENROWSET",
    "OPENDATASOURCE", "OPENQUERY", "OPENXML", "BULK", "DBCC",
)

_DIAGNOSTIC_DENIED = (
    "DELETE", "DROP", "UPDATE", "INSERT", "ALTER", "CREATE",
    "TRUNCATE", "MERGE", "REPLACE", "GRANT", "REVOKE",
    "EXEC", "EXECUTE", "DECLARE", "USE",
    "BACKUP", "RESTORE", "KILL", "SHUTDOWN",
    "OPENROWSET", "OPENDATASOURCE", "OPENQUERY", "OPENXML", "BULK",
    "DBCC CHECKDB", "DBCC CHECKALLOC", "DBCC CHECKTABLE", "DBCC CHECKFILEGROUP",
)

DEFINITION_OBJECT_TYPES = frozenset({
    "TABLE", "INDEX", "VIEW", "TRIGGER", "CONSTRAINT",
    "DEFAULT", "RULE", "SCHEMA", "SEQUENCE", "SYNONYM",
})


READ_ONLY_QUERY = ValidationPolicy(
    description="single SELECT statement, no side effects",
    required_leading_verbs=frozenset({"SELECT"}),
    denied_keywords=_READ_DENIED,
    denied_patterns=(
        p.STATEMENT_CHAINING,
        p.UNION_INJECTION,
        p.COMMENT_SMUGGLED_KEYWORD,
        p.DYNAMIC_EXECUTION,
        p.BULK_EXTERNAL_DATA,
        p.SYSTEM_INTROSPECTION,
        p.TIMING_ATTACK,
        p.CHAR_CODE_OBFUSCATION,
        p.CHAR_CONVERSION,
    ),
    max_length=10_000,
)

GUARDED_MUTATION = ValidationPolicy(
    description="single UPDATE statement guarded by WHERE",
    required_leading_verbs=frozenset({"UPDATE"}),
    requires_guard_clause=True,
    denied_keywords=_MUTATION_DENIED,
    denied_patterns=(
        p.STATEMENT_CHAINING,
        p.COMMENT_SMUGGLED_KEYWORD,
        p.DYNAMIC_EXECUTION,
        p.BULK_EXTERNAL_DATA,
        p.TIMING_ATTACK,
        p.CHAR_CODE_OBFUSCATION,
    ),
    max_length=10_000,
)

DATA_DEFINITION = ValidationPolicy(
    description="CREATE/ALTER/DROP/TRUNCATE batch on allow-listed object types",
    required_leading_verbs=frozenset({"CREATE", "ALTER", "DROP", "TRUNCATE"}),
    denied_keywords=_DEFINITION_DENIED,
    denied_patterns=(
        p.STATEMENT_CHAINING,
        p.COMMENT_SMUGGLED_KEYWORD,
        p.DYNAMIC_EXECUTION,
        p.BULK_EXTERNAL_DATA,
        p.TIMING_ATTACK,
        p.CHAR_CODE_OBFUSCATION,
    ),
    allowed_object_types=DEFINITION_OBJECT_TYPES,
    protected_targets=(p.SYSTEM_DATABASE, p.SYSTEM_CATALOG),
    allow_multiple_statements=True,
    max_length=50_000,
)

DIAGNOSTIC_BATCH = ValidationPolicy(
    description="SELECT statements plus SET STATISTICS / SET SHOWPLAN toggles",
    required_leading_verbs=frozenset({"SELECT"}),
    allowed_statements=(p.STATISTICS_TOGGLE, p.SHOWPLAN_TOGGLE),
    denied_keywords=_DIAGNOSTIC_DENIED,
    denied_patterns=(
        p.STATEMENT_CHAINING,
        p.COMMENT_SMUGGLED_KEYWORD,
        p.DBCC_MODIFICATION,
        p.SERVER_CONFIGURATION,
        p.BULK_EXTERNAL_DATA,
        p.TIMING_ATTACK,
        p.CHAR_CODE_OBFUSCATION,
        p.CREDENTIAL_REFERENCE,
    ),
    allow_multiple_statements=True,
    max_length=50_000,
)

BUILTIN_POLICIES: Mapping[OperationClass, ValidationPolicy] = MappingProxyType({
    OperationClass.READ_ONLY_QUERY: READ_ONLY_QUERY,
    OperationClass.GUARDED_MUTATION: GUARDED_MUTATION,
    OperationClass.DATA_DEFINITION: DATA_DEFINITION,
    OperationClass.DIAGNOSTIC_BATCH: DIAGNOSTIC_BATCH,
})


def get_policy(
    operation: OperationClass | str,
    overrides: Mapping[str, object] | None = None,
) -> ValidationPolicy:
    """Look up the built-in policy for `operation` and apply `overrides`.

    Raises ValueError for an unknown operation class or policy field.
    """
    return BUILTIN_POLICIES[OperationClass(operation)].with_overrides(overrides)
