"""Render validation results for terminal (text) and agent (JSON) output."""

from __future__ import annotations

from sqlgate.diagnostics.types import Diagnostic, ValidationResult


def render_json(result: ValidationResult, *, operation: str | None = None) -> dict:
    """Render a ValidationResult as a JSON-serializable dict."""
    d: dict = {
        "valid": result.is_valid,
        "reason": result.reason,
        "normalized_query": result.normalized_query,
    }
    if operation is not None:
        d["operation"] = operation
    if result.diagnostic is not None:
        d["diagnostic"] = _diagnostic_to_dict(result.diagnostic)
    return d


def render_text(result: ValidationResult, *, original_sql: str | None = None) -> str:
    """Render a ValidationResult as human-readable text."""
    if result.is_valid:
        return "ok: query validation passed"

    d = result.diagnostic
    if d is None:
        return f"error: {result.reason}"

    lines = [f"error[{d.code}]: {d.message}"]
    if d.location is not None and original_sql is not None:
        lines.append(f"  --> {d.location.start}..{d.location.end}: {d.location.slice(original_sql)!r}")
    for note in d.notes:
        lines.append(f"  = note: {note}")
    return "\n".join(lines)


def _diagnostic_to_dict(d: Diagnostic) -> dict:
    out: dict = {
        "code": str(d.code),
        "kind": d.code.name,
        "message": d.message,
        "notes": d.notes,
    }
    if d.rule is not None:
        out["rule"] = d.rule
    if d.location is not None:
        out["span"] = [d.location.start, d.location.end]
    return out
