"""Diagnostic and result types produced by the validator.

Every check in the policy engine reports through a single Diagnostic. The
engine stops at the first failing check, so a ValidationResult carries at
most one diagnostic and its message doubles as the user-facing reason.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlgate.diagnostics.codes import DiagnosticCode


@dataclass(frozen=True)
class Span:
    start: int
    end: int

    def slice(self, sql: str) -> str:
        return sql[self.start : self.end]

    def __len__(self) -> int:
        return self.end - self.start


@dataclass
class Diagnostic:
    code: DiagnosticCode
    message: str
    rule: str | None = None
    location: Span | None = None
    notes: list[str] = field(default_factory=list)

    # -- Builder classmethods ---------------------------------------------------

    @classmethod
    def error(cls, code: DiagnosticCode, message: str, *, rule: str | None = None) -> Diagnostic:
        return cls(code=code, message=message, rule=rule)

    # -- Builder chain methods --------------------------------------------------

    def span(self, span: Span) -> Diagnostic:
        self.location = span
        return self

    def note(self, note: str) -> Diagnostic:
        self.notes.append(note)
        return self


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    reason: str | None = None
    normalized_query: str | None = None
    diagnostic: Diagnostic | None = field(default=None, hash=False)

    @classmethod
    def accept(cls, normalized_query: str) -> ValidationResult:
        return cls(is_valid=True, normalized_query=normalized_query)

    @classmethod
    def reject(
        cls, diagnostic: Diagnostic, *, normalized_query: str | None = None
    ) -> ValidationResult:
        return cls(
            is_valid=False,
            reason=diagnostic.message,
            normalized_query=normalized_query,
            diagnostic=diagnostic,
        )

    @property
    def code(self) -> DiagnosticCode | None:
        return self.diagnostic.code if self.diagnostic is not None else None

    @property
    def rule(self) -> str | None:
        return self.diagnostic.rule if self.diagnostic is not None else None
