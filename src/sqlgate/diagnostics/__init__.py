"""Diagnostic system: codes, result types, and rendering."""

from sqlgate.diagnostics.codes import DiagnosticCode
from sqlgate.diagnostics.types import Diagnostic, Span, ValidationResult

__all__ = [
    "Diagnostic",
    "DiagnosticCode",
    "Span",
    "ValidationResult",
]
