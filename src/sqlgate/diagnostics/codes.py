"""Stable, searchable validation code registry.

Ranges:
- V0001      — Empty input
- V01xx      — Statement shape (leading verb, guard, object type, batching)
- V02xx      — Denylist hits (keywords, patterns, protected targets)
- V03xx      — Resource limits
- V04xx      — Strict AST cross-check (opt-in)
- V09xx      — Internal (fail-closed)
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class DiagnosticCode:
    value: int
    name: str

    def __str__(self) -> str:
        return f"V{self.value:04d}"


# General
EMPTY_INPUT = DiagnosticCode(1, "EmptyInput")

# Statement shape (V01xx)
INVALID_LEADING_VERB = DiagnosticCode(101, "InvalidLeadingVerb")
MISSING_GUARD_CLAUSE = DiagnosticCode(102, "MissingGuardClause")
DISALLOWED_OBJECT_TYPE = DiagnosticCode(103, "DisallowedObjectType")
MULTIPLE_STATEMENTS = DiagnosticCode(104, "MultipleStatementsNotAllowed")

# Denylist hits (V02xx)
DENIED_KEYWORD = DiagnosticCode(201, "DeniedKeyword")
DENIED_PATTERN = DiagnosticCode(202, "DeniedPattern")
PROTECTED_TARGET = DiagnosticCode(203, "ProtectedTarget")

# Resource limits (V03xx)
INPUT_TOO_LONG = DiagnosticCode(301, "InputTooLong")

# Strict AST layer (V04xx)
SYNTAX_ERROR = DiagnosticCode(401, "SyntaxError")
STRICT_MISMATCH = DiagnosticCode(402, "StrictMismatch")

# Internal (V09xx)
INTERNAL_ERROR = DiagnosticCode(901, "InternalError")
