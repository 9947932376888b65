"""Optional AST cross-check: parse with sqlglot and classify each statement.

This layer sits outside the validator. The validator's textual verdict is
authoritative for accept/reject boundaries; the dispatch layer can run this
second pass on top of an accepted verdict to catch statements whose parsed
shape disagrees with the operation class (writable CTEs, SELECT INTO,
guards that only appear inside string literals).
"""

from __future__ import annotations

import enum

import sqlglot
from sqlglot import exp

from sqlgate.diagnostics import Diagnostic, codes
from sqlgate.policy._types import OperationClass

DEFAULT_DIALECT = "tsql"


class StatementKind(enum.Enum):
    READ = "read"
    DML = "dml"
    DDL = "ddl"
    SETTING = "setting"  # SET STATISTICS / SHOWPLAN and other session toggles
    ADMIN = "admin"      # GRANT, COPY, raw commands
    UNKNOWN = "unknown"  # Anything we can't classify → rejected


_READ_TYPES = (exp.Select, exp.Union, exp.Intersect, exp.Except)
_DML_TYPES = (exp.Insert, exp.Update, exp.Delete, exp.Merge)
_DDL_TYPES = (exp.Create, exp.Drop, exp.Alter, exp.TruncateTable)
_ADMIN_TYPES = (exp.Grant, exp.Copy)

_EXPECTED: dict[OperationClass, frozenset[StatementKind]] = {
    OperationClass.READ_ONLY_QUERY: frozenset({StatementKind.READ}),
    OperationClass.GUARDED_MUTATION: frozenset({StatementKind.DML}),
    OperationClass.DATA_DEFINITION: frozenset({StatementKind.DDL}),
    OperationClass.DIAGNOSTIC_BATCH: frozenset({StatementKind.READ, StatementKind.SETTING}),
}


def _has_dml_in_cte(statement: exp.Expression) -> bool:
    """Check if any CTE contains a DML operation (writable CTE)."""
    return any(isinstance(cte.this, _DML_TYPES) for cte in statement.find_all(exp.CTE))


def _has_into(statement: exp.Expression) -> bool:
    """Check for SELECT INTO (creates a table despite being a SELECT)."""
    return isinstance(statement, exp.Select) and statement.find(exp.Into) is not None


def classify(statement: exp.Expression) -> StatementKind:
    """Classify a parsed statement.

    Anything not positively identified as the expected kind is classified as
    something else, which the caller rejects.
    """
    if isinstance(statement, exp.Set):
        return StatementKind.SETTING
    if isinstance(statement, exp.Command):
        if str(statement.this).upper() == "SET":
            return StatementKind.SETTING
        return StatementKind.ADMIN
    if isinstance(statement, _ADMIN_TYPES):
        return StatementKind.ADMIN
    if isinstance(statement, _READ_TYPES):
        if _has_dml_in_cte(statement):
            return StatementKind.DML
        if _has_into(statement):
            return StatementKind.DDL
        return StatementKind.READ
    if isinstance(statement, _DML_TYPES):
        return StatementKind.DML
    if isinstance(statement, _DDL_TYPES):
        return StatementKind.DDL
    return StatementKind.UNKNOWN


def check_strict(
    operation: OperationClass, sql: str, *, dialect: str = DEFAULT_DIALECT
) -> Diagnostic | None:
    """Parse `sql` and confirm every statement fits `operation`.

    Returns None when the parsed shape agrees, else a blocking Diagnostic.
    """
    try:
        statements = [s for s in sqlglot.parse(sql, dialect=dialect) if s is not None]
    except sqlglot.errors.SqlglotError as e:
        return Diagnostic.error(codes.SYNTAX_ERROR, f"SQL syntax error: {e}").note(
            "strict mode requires the query to parse"
        )

    if not statements:
        return Diagnostic.error(codes.EMPTY_INPUT, "empty query")

    expected = _EXPECTED[operation]
    for statement in statements:
        kind = classify(statement)
        if kind not in expected:
            allowed = ", ".join(sorted(k.value for k in expected))
            return Diagnostic.error(
                codes.STRICT_MISMATCH,
                f"parsed statement is {kind.value}, expected {allowed}",
            ).note("the statement's structure does not match the requested operation")

        if operation is OperationClass.GUARDED_MUTATION:
            diag = check_mutation_without_where(statement)
            if diag is not None:
                return diag
    return None


def check_mutation_without_where(statement: exp.Expression) -> Diagnostic | None:
    """Block UPDATE/DELETE statements whose parse tree has no WHERE clause."""
    if not isinstance(statement, (exp.Update, exp.Delete)):
        return None
    if statement.args.get("where") is not None:
        return None

    verb = "UPDATE" if isinstance(statement, exp.Update) else "DELETE"
    return Diagnostic.error(
        codes.MISSING_GUARD_CLAUSE, f"{verb} without WHERE clause"
    ).note("the WHERE text is not part of the statement (string literal or comment?)")
