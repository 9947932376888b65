"""Shared output formatting for CLI commands."""

from __future__ import annotations

import json

from sqlgate.diagnostics import codes
from sqlgate.diagnostics.render import render_json, render_text
from sqlgate.diagnostics.types import ValidationResult
from sqlgate.dispatch import DispatchResult
from sqlgate.policy import ValidationPolicy


def format_result(
    result: ValidationResult,
    *,
    sql: str | None = None,
    output_format: str = "text",
    operation: str | None = None,
) -> str:
    if output_format == "json":
        return json.dumps(render_json(result, operation=operation), indent=2)
    # Keyword spans index the normalized text; pattern spans index the raw text.
    source = result.normalized_query if result.code == codes.DENIED_KEYWORD else sql
    return render_text(result, original_sql=source)


def format_dispatch(result: DispatchResult, *, output_format: str = "json") -> str:
    if output_format == "json":
        return json.dumps(result.to_dict(), indent=2, default=str)

    lines = [f"{'ok' if result.success else 'error'}: {result.message}"]
    execution = result.execution
    if execution is not None and execution.columns:
        lines.append(" | ".join(execution.columns))
        lines.append("-+-".join("-" * max(len(c), 5) for c in execution.columns))
        for row in execution.rows:
            lines.append(" | ".join(str(row.get(c, "")) for c in execution.columns))
        more = " (truncated)" if execution.truncated else ""
        lines.append(f"\n({execution.row_count} rows{more})")
    return "\n".join(lines)


def policy_to_dict(policy: ValidationPolicy) -> dict:
    return {
        "description": policy.description,
        "required_leading_verbs": sorted(policy.required_leading_verbs),
        "allowed_statements": [r.name for r in policy.allowed_statements],
        "requires_guard_clause": policy.requires_guard_clause,
        "denied_keywords": list(policy.effective_denied_keywords),
        "denied_patterns": [r.name for r in policy.denied_patterns],
        "allowed_object_types": (
            sorted(policy.allowed_object_types) if policy.allowed_object_types is not None else None
        ),
        "protected_targets": [r.name for r in policy.protected_targets],
        "allow_multiple_statements": policy.allow_multiple_statements,
        "max_length": policy.max_length,
    }
